import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, Field

from .job import BackupJob, BackupStatus


class BackupHistory(BaseModel):
    """
    Record of one attempted execution of a backup job.

    Created with RUNNING status when the execution starts and finalized once it
    reaches a terminal status. Finalized records are only ever appended to storage.
    """
    id: str = Field(default_factory=lambda: f"hst_{uuid.uuid4().hex[:8]}", description="Unique history identifier")
    job_id: str
    job_name: str = ""
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    status: BackupStatus = BackupStatus.RUNNING
    error_message: Optional[str] = None

    total_files: int = 0
    processed_files: int = 0
    failed_files: int = 0
    total_bytes: int = 0
    processed_bytes: int = 0

    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    destination_path: str = ""

    @classmethod
    def start(cls, job: BackupJob) -> "BackupHistory":
        return cls(job_id=job.id, job_name=job.name, start_time=datetime.now(), status=BackupStatus.RUNNING)

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    def finish(self, status: BackupStatus, error_message: Optional[str] = None) -> None:
        if not status.is_terminal:
            raise ValueError(f"Cannot finish a history record with non-terminal status {status.value}")
        self.status = status
        if error_message is not None:
            self.error_message = error_message
        self.end_time = datetime.now()

class BackupProgress(BaseModel):
    """
    Live progress of a running backup or restore, pushed to progress sinks.
    """
    job_id: Optional[str] = None
    job_name: str = ""
    current_file: str = ""
    total_files: int = 0
    processed_files: int = 0
    total_bytes: int = 0
    processed_bytes: int = 0
    status: BackupStatus = BackupStatus.RUNNING
    start_time: datetime = Field(default_factory=datetime.now)

    @property
    def percent_complete(self) -> int:
        if self.total_files <= 0:
            return 0
        return int(self.processed_files / self.total_files * 100)

    @property
    def elapsed(self) -> timedelta:
        return datetime.now() - self.start_time

    @property
    def estimated_time_remaining(self) -> Optional[timedelta]:
        if self.processed_bytes == 0 or self.total_bytes == 0:
            return None
        seconds = self.elapsed.total_seconds()
        if seconds <= 0:
            return None
        bytes_per_second = self.processed_bytes / seconds
        remaining_bytes = max(self.total_bytes - self.processed_bytes, 0)
        return timedelta(seconds=remaining_bytes / bytes_per_second)
