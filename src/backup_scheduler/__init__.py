"""
Backup Scheduling System

This module defines the core concepts and components of a backup scheduling engine.

Core Concepts:

BackupJob:
    A BackupJob is the durable definition of a recurring backup: which paths are
    copied, where the snapshots go, when it runs and which files it keeps.
    It does not represent an actual execution.

BackupHistory:
    A BackupHistory record describes a single execution of a BackupJob.
    Each execution writes one timestamped snapshot directory and appends one record.

Snapshot:
    The output directory of one execution, named ``{job_id}_{yyyy-MM-dd_HH-mm-ss}``.
    Old snapshots are pruned by the job's retention policy.

Relationships:
    - A BackupJob can have many BackupHistory records and snapshots.
    - The JobScheduler launches due jobs; the executor runs them; the storage keeps both.
"""

from .domain import (
    BackupFrequency,
    BackupHistory,
    BackupJob,
    BackupOptions,
    BackupProgress,
    BackupStatus,
    DailySchedule,
    EveryHoursSchedule,
    EveryMinutesSchedule,
    ManualSchedule,
    MonthlySchedule,
    WeeklySchedule,
    Weekday,
)
from .schedule_calculator import calculate_next_run
from .retention import RetentionManager
from .executors import FileCopyExecutor
from .scheduler import JobScheduler
from .service import BackupService

__all__ = [
    "BackupFrequency", "BackupHistory", "BackupJob", "BackupOptions", "BackupProgress", "BackupStatus",
    "DailySchedule", "EveryHoursSchedule", "EveryMinutesSchedule", "ManualSchedule", "MonthlySchedule",
    "WeeklySchedule", "Weekday", "calculate_next_run", "RetentionManager", "FileCopyExecutor",
    "JobScheduler", "BackupService",
]
