from abc import ABC, abstractmethod
from datetime import time
from enum import Enum, IntEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BackupFrequency(str, Enum):
    MANUAL = "manual"
    EVERY_MINUTES = "every_minutes"
    EVERY_HOURS = "every_hours"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

class Weekday(IntEnum):
    """
    Day of week, numbered like datetime.weekday().
    """
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

class BaseSchedule(BaseModel, ABC):
    """
    Base class for all schedule types.
    """
    model_config = ConfigDict(frozen=True)

    frequency: str

    @property
    def kind(self) -> BackupFrequency:
        return BackupFrequency(self.frequency)

    @property
    def is_manual(self) -> bool:
        return self.kind == BackupFrequency.MANUAL

    @abstractmethod
    def format_schedule(self) -> str:
        pass

class ManualSchedule(BaseSchedule):
    """
    The job only runs when triggered by hand.
    """
    frequency: Literal["manual"] = "manual"

    def format_schedule(self) -> str:
        return "Manual execution only"

class EveryMinutesSchedule(BaseSchedule):
    frequency: Literal["every_minutes"] = "every_minutes"
    interval: int = Field(1, ge=1, description="Minutes between two runs")

    def format_schedule(self) -> str:
        return f"Every {self.interval} minute(s)"

class EveryHoursSchedule(BaseSchedule):
    frequency: Literal["every_hours"] = "every_hours"
    interval: int = Field(1, ge=1, description="Hours between two runs")

    def format_schedule(self) -> str:
        return f"Every {self.interval} hour(s)"

class DailySchedule(BaseSchedule):
    frequency: Literal["daily"] = "daily"
    time_of_day: time = Field(time(2, 0), description="Local wall-clock time of the daily run")

    def format_schedule(self) -> str:
        return f"Daily at {self.time_of_day.strftime('%H:%M')}"

class WeeklySchedule(BaseSchedule):
    frequency: Literal["weekly"] = "weekly"
    day_of_week: Weekday = Weekday.SUNDAY
    time_of_day: time = Field(time(2, 0), description="Local wall-clock time of the weekly run")

    def format_schedule(self) -> str:
        return f"Weekly on {self.day_of_week.name.capitalize()} at {self.time_of_day.strftime('%H:%M')}"

class MonthlySchedule(BaseSchedule):
    """
    Runs once a month. Days past the end of a short month fall back to its last day.
    """
    frequency: Literal["monthly"] = "monthly"
    day_of_month: int = Field(1, ge=1, le=31)
    time_of_day: time = Field(time(2, 0), description="Local wall-clock time of the monthly run")

    def format_schedule(self) -> str:
        return f"Monthly on day {self.day_of_month} at {self.time_of_day.strftime('%H:%M')}"
