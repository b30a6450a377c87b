import asyncio
from typing import Callable, Optional, Protocol

from backup_scheduler.domain.history import BackupHistory, BackupProgress
from backup_scheduler.domain.job import BackupJob

ProgressSink = Callable[[BackupProgress], None]


class BackupExecutor(Protocol):
    """
    Protocol class for backup executors.
    """

    async def execute(
        self,
        job: BackupJob,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BackupHistory:
        """
        Run the given job once and return its finalized history record.

        Args:
            job (BackupJob): The job to be executed.
            progress (Optional[ProgressSink]): Receives progress snapshots.
            cancel_event (Optional[asyncio.Event]): Stops the run before the next file once set.
        """
        ...

    def is_running(self, job_id: str) -> bool:
        """
        Return True while an execution of the given job is in flight.
        """
        ...

    async def verify_backup(self, backup_path: str) -> bool:
        ...

    async def restore_backup(
        self,
        backup_path: str,
        destination_path: str,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BackupProgress:
        ...
