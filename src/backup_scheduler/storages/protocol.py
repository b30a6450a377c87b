from typing import List, Optional, Protocol
from backup_scheduler.domain.job import BackupJob
from backup_scheduler.domain.history import BackupHistory

class Storage(Protocol):
    async def load_jobs(self) -> List[BackupJob]:
        """Load every backup job."""
        ...

    async def load_job(self, job_id: str) -> Optional[BackupJob]:
        """Load one job by its ID, or None if it does not exist."""
        ...

    async def save_job(self, job: BackupJob) -> None:
        """Insert or update a job by id. Sets created_at on first save and modified_at on every save."""
        ...

    async def delete_job(self, job_id: str) -> bool:
        """Delete a job by its ID. Return True if a job was removed."""
        ...

    async def load_history(self, limit: int = 100) -> List[BackupHistory]:
        """List history records of all jobs, newest first."""
        ...

    async def load_history_for_job(self, job_id: str, limit: int = 50) -> List[BackupHistory]:
        """List history records of one job, newest first."""
        ...

    async def save_history(self, history: BackupHistory) -> None:
        """Append a finalized history record."""
        ...

    async def cleanup_history(self, keep_days: int = 90) -> int:
        """Delete history records that started more than keep_days ago. Return the number removed."""
        ...
