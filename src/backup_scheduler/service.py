"""
Backup Service - entry point wiring storage, executor and scheduler together.

Usage:
    service = await BackupService.create(SchedulerSettings())
    await service.start()
    job = await service.create_job(BackupJob(name="docs", source_paths=[...], destination_path="..."))
    ...
    await service.close()
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from backup_scheduler.config import SchedulerSettings
from backup_scheduler.domain.history import BackupHistory, BackupProgress
from backup_scheduler.domain.job import BackupJob
from backup_scheduler.errors import JobAlreadyRunningError, JobNotFoundError
from backup_scheduler.executors.file_copy import FileCopyExecutor
from backup_scheduler.executors.protocol import BackupExecutor, ProgressSink
from backup_scheduler.filesystems.local import LocalFileSystem
from backup_scheduler.logging_config import setup_logging
from backup_scheduler.notifiers.webhook import WebhookNotifier
from backup_scheduler.retention import RetentionManager
from backup_scheduler.scheduler import JobScheduler
from backup_scheduler.storages.protocol import Storage
from backup_scheduler.storages.sqlalchemy import SqlAlchemyStorage

logger = logging.getLogger(__name__)


class BackupService:
    """
    Job management and manual execution on top of the scheduler.

    Keeps the job table of the scheduler in line with the stored jobs: created
    and updated jobs are (re)scheduled, disabled and deleted ones unscheduled.
    """

    def __init__(
        self,
        storage: Storage,
        executor: BackupExecutor,
        scheduler: JobScheduler,
        settings: Optional[SchedulerSettings] = None,
        retention: Optional[RetentionManager] = None,
    ):
        self.storage = storage
        self.executor = executor
        self.scheduler = scheduler
        self.settings = settings or SchedulerSettings()
        self.retention = retention or RetentionManager(LocalFileSystem())

    @classmethod
    async def create(cls, settings: Optional[SchedulerSettings] = None) -> "BackupService":
        """
        Build a service backed by SQLAlchemy storage and the local file system.
        """
        settings = settings or SchedulerSettings()
        setup_logging(settings.log_level)

        storage = SqlAlchemyStorage(settings.database_url)
        await storage.create_tables()

        fs = LocalFileSystem()
        retention = RetentionManager(fs)
        executor = FileCopyExecutor(storage, fs, retention=retention)
        scheduler = JobScheduler(executor, storage, tick_interval=settings.tick_interval_seconds)
        if settings.webhook_url:
            WebhookNotifier(settings.webhook_url, timeout=settings.webhook_timeout_seconds).attach(scheduler)

        return cls(storage, executor, scheduler, settings, retention)

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    async def close(self) -> None:
        if self.scheduler.is_running:
            await self.scheduler.stop()
        await self.scheduler.wait_for_executions()
        dispose = getattr(self.storage, "dispose", None)
        if dispose is not None:
            await dispose()

    async def list_jobs(self) -> List[BackupJob]:
        return await self.storage.load_jobs()

    async def get_job(self, job_id: str) -> Optional[BackupJob]:
        return await self.storage.load_job(job_id)

    async def create_job(self, job: BackupJob) -> BackupJob:
        job.id = f"bkp_{uuid.uuid4().hex[:8]}"
        job.created_at = job.modified_at = datetime.now()
        await self.storage.save_job(job)
        logger.info(f"Created backup job: {job.name}")
        if job.is_schedulable:
            await self.scheduler.schedule_job(job)
        return job

    async def update_job(self, job: BackupJob) -> BackupJob:
        job.modified_at = datetime.now()
        if job.is_schedulable:
            await self.storage.save_job(job)
            await self.scheduler.reschedule_job(job)
        else:
            await self.scheduler.unschedule_job(job.id)
            job.next_run_time = None
            await self.storage.save_job(job)
        logger.info(f"Updated backup job: {job.name}")
        return job

    async def delete_job(self, job_id: str) -> bool:
        await self.scheduler.unschedule_job(job_id)
        deleted = await self.storage.delete_job(job_id)
        if deleted:
            logger.info(f"Deleted backup job: {job_id}")
        return deleted

    async def run_job_now(
        self,
        job_id: str,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BackupHistory:
        """
        Run a job immediately, outside of its schedule.

        Raises:
            JobNotFoundError: If no job with that id is stored.
            JobAlreadyRunningError: If the job is executing right now.
        """
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if self.executor.is_running(job_id):
            raise JobAlreadyRunningError(job_id)
        return await self.executor.execute(job, progress=progress, cancel_event=cancel_event)

    async def verify_backup(self, backup_path: str) -> bool:
        return await self.executor.verify_backup(backup_path)

    async def restore_backup(
        self,
        backup_path: str,
        destination_path: str,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BackupProgress:
        return await self.executor.restore_backup(backup_path, destination_path, progress, cancel_event)

    async def cleanup_old_backups(self, job: BackupJob) -> List[str]:
        """
        Apply the job's retention policy to its snapshots now. Returns the deleted paths.
        """
        return await asyncio.to_thread(self.retention.cleanup, job)

    async def get_history(self, job_id: str, limit: int = 50) -> List[BackupHistory]:
        return await self.storage.load_history_for_job(job_id, limit)

    async def get_all_history(self, limit: Optional[int] = None) -> List[BackupHistory]:
        return await self.storage.load_history(limit or self.settings.history_limit)

    async def cleanup_history(self, keep_days: Optional[int] = None) -> int:
        keep_days = self.settings.history_keep_days if keep_days is None else keep_days
        removed = await self.storage.cleanup_history(keep_days)
        if removed:
            logger.info(f"Cleaned up {removed} old history entries")
        return removed
