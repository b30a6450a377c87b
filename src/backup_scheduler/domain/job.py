import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, Field

from .schedule import (
    DailySchedule,
    EveryHoursSchedule,
    EveryMinutesSchedule,
    ManualSchedule,
    MonthlySchedule,
    WeeklySchedule,
)


class BackupStatus(str, Enum):
    NEVER_RUN = "never_run"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (BackupStatus.NEVER_RUN, BackupStatus.RUNNING)

Schedule = Annotated[
    Union[ManualSchedule, EveryMinutesSchedule, EveryHoursSchedule, DailySchedule, WeeklySchedule, MonthlySchedule],
    Field(discriminator="frequency"),
]

class BackupOptions(BaseModel):
    """
    Execution policy of a backup job: file filters, metadata handling and retention.
    """
    include_hidden: bool = Field(False, description="Copy files flagged as hidden")
    include_system: bool = Field(False, description="Copy files flagged as system files")
    exclude_patterns: List[str] = Field(default_factory=list, description="Wildcard patterns matched against file names; a match excludes the file")
    include_patterns: List[str] = Field(default_factory=list, description="Wildcard patterns matched against file names; empty means include everything")
    preserve_attributes: bool = True
    preserve_timestamps: bool = True
    verify_after_backup: bool = True
    enable_retention: bool = True
    max_backup_count: int = Field(10, ge=0, description="Snapshots to keep, 0 for unlimited")
    retention_days: int = Field(30, ge=0, description="Maximum snapshot age in days, 0 for unlimited")

class BackupJob(BaseModel):
    """
    Durable definition of a recurring backup.
    """
    id: str = Field(default_factory=lambda: f"bkp_{uuid.uuid4().hex[:8]}", description="Unique job identifier")
    name: str = Field(..., description="Job name")
    description: str = ""
    is_enabled: bool = True
    source_paths: List[str] = Field(default_factory=list, description="Files or directories to back up, in order")
    destination_path: str = Field(..., description="Directory receiving the timestamped snapshots")
    schedule: Schedule = Field(default_factory=ManualSchedule)
    options: BackupOptions = Field(default_factory=BackupOptions)

    last_run_time: Optional[datetime] = None
    last_run_status: BackupStatus = BackupStatus.NEVER_RUN
    last_backup_size: int = 0
    total_backup_count: int = 0
    next_run_time: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_manual(self) -> bool:
        return self.schedule.is_manual

    @property
    def is_schedulable(self) -> bool:
        return self.is_enabled and not self.is_manual

    @property
    def snapshot_prefix(self) -> str:
        return f"{self.id}_"

    def record_run(self, started_at: datetime, status: BackupStatus, backup_size: int) -> None:
        """
        Update the run statistics after an execution reached a terminal state.
        """
        self.last_run_time = started_at
        self.last_run_status = status
        self.last_backup_size = backup_size
        self.total_backup_count += 1

    @property
    def readable_string(self) -> str:
        summary = f"Backup Job: '{self.name}'"
        if self.description:
            summary += f"\nDescription: {self.description}"
        sources = ", ".join(self.source_paths) or "(none)"
        return f"{summary}\n{self.schedule.format_schedule()}\nSources: {sources}\nDestination: {self.destination_path}"
