from .schedule import (
    BackupFrequency,
    BaseSchedule,
    DailySchedule,
    EveryHoursSchedule,
    EveryMinutesSchedule,
    ManualSchedule,
    MonthlySchedule,
    WeeklySchedule,
    Weekday,
)
from .job import BackupJob, BackupOptions, BackupStatus, Schedule
from .history import BackupHistory, BackupProgress

__all__ = [
    "BackupFrequency", "BaseSchedule", "ManualSchedule", "EveryMinutesSchedule", "EveryHoursSchedule",
    "DailySchedule", "WeeklySchedule", "MonthlySchedule", "Weekday", "Schedule",
    "BackupJob", "BackupOptions", "BackupStatus", "BackupHistory", "BackupProgress",
]
