import asyncio
import logging
import os
from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel

from backup_scheduler.domain.history import BackupHistory, BackupProgress
from backup_scheduler.domain.job import BackupJob, BackupOptions, BackupStatus
from backup_scheduler.errors import SnapshotNotFoundError
from backup_scheduler.executors.protocol import BackupExecutor, ProgressSink
from backup_scheduler.file_filter import should_include
from backup_scheduler.filesystems.protocol import FileSystem
from backup_scheduler.retention import RetentionManager
from backup_scheduler.storages.protocol import Storage

logger = logging.getLogger(__name__)

SNAPSHOT_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


class FileCandidate(NamedTuple):
    source_path: str
    relative_path: str
    size: int

class FileCopyResult(BaseModel):
    """
    Outcome of copying one file into a snapshot.
    """
    relative_path: str
    success: bool
    bytes_copied: int = 0
    error: Optional[str] = None

    @property
    def error_message(self) -> str:
        return f"Failed to copy {self.relative_path}: {self.error}"

class FileCopyExecutor(BackupExecutor):
    """
    Backup executor that copies the selected source files into a new
    timestamped snapshot directory below the job destination.

    Blocking file-system calls run in worker threads. Runs of the same job are
    serialized; runs of different jobs proceed independently.
    """

    def __init__(self, storage: Storage, fs: FileSystem, retention: Optional[RetentionManager] = None):
        self.storage: Storage = storage
        self.fs: FileSystem = fs
        self.retention: RetentionManager = retention or RetentionManager(fs)
        self._job_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def is_running(self, job_id: str) -> bool:
        lock = self._job_locks.get(job_id)
        return lock is not None and lock.locked()

    async def execute(
        self,
        job: BackupJob,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BackupHistory:
        lock = self._job_locks.setdefault(job.id, asyncio.Lock())
        self._lock_users[job.id] = self._lock_users.get(job.id, 0) + 1
        try:
            async with lock:
                return await self._execute(job, progress, cancel_event)
        finally:
            self._lock_users[job.id] -= 1
            if self._lock_users[job.id] == 0:
                del self._lock_users[job.id]
                del self._job_locks[job.id]

    async def _execute(
        self,
        job: BackupJob,
        progress: Optional[ProgressSink],
        cancel_event: Optional[asyncio.Event],
    ) -> BackupHistory:
        history = BackupHistory.start(job)
        tracker = BackupProgress(job_id=job.id, job_name=job.name, start_time=history.start_time)
        stats_recorded = False

        try:
            logger.info(f"Starting backup job: {job.name}")
            await self._refresh_statistics(job)

            snapshot_name = f"{job.snapshot_prefix}{history.start_time.strftime(SNAPSHOT_TIMESTAMP_FORMAT)}"
            snapshot_dir = os.path.join(job.destination_path, snapshot_name)
            await asyncio.to_thread(self.fs.make_dirs, snapshot_dir)
            history.destination_path = snapshot_dir

            candidates = await asyncio.to_thread(self._collect_files, job, history)
            history.total_files = tracker.total_files = len(candidates)
            history.total_bytes = tracker.total_bytes = sum(candidate.size for candidate in candidates)
            self._report(progress, tracker)
            logger.info(f"Found {history.total_files} files to backup ({history.total_bytes} bytes)")

            cancelled = await self._copy_files(candidates, snapshot_dir, job.options, history, tracker, progress, cancel_event)

            if cancelled:
                logger.info(f"Backup job cancelled: {job.name}")
                history.finish(BackupStatus.CANCELLED)
            else:
                if job.options.verify_after_backup:
                    logger.info("Verifying backup...")
                    history.warnings.extend(await asyncio.to_thread(self._verify_snapshot, snapshot_dir))

                if history.failed_files > 0:
                    logger.warning(f"Backup completed with {history.failed_files} failed files")
                    history.finish(BackupStatus.COMPLETED_WITH_WARNINGS)
                else:
                    logger.info("Backup completed successfully")
                    history.finish(BackupStatus.COMPLETED)

            job.record_run(history.start_time, history.status, history.processed_bytes)
            stats_recorded = True
            await self.storage.save_job(job)
            await self.storage.save_history(history)
        except Exception as e:
            logger.exception(f"Backup job failed: {job.name}")
            history.finish(BackupStatus.FAILED, error_message=str(e))
            if stats_recorded:
                job.last_run_status = history.status
            else:
                job.record_run(history.start_time, history.status, history.processed_bytes)
            await self._persist_failure(job, history)
            tracker.status = history.status
            self._report(progress, tracker)
            return history

        if history.status in (BackupStatus.COMPLETED, BackupStatus.COMPLETED_WITH_WARNINGS):
            await self._apply_retention(job)

        tracker.status = history.status
        self._report(progress, tracker)
        return history

    def _collect_files(self, job: BackupJob, history: BackupHistory) -> List[FileCandidate]:
        candidates: List[FileCandidate] = []
        for source_path in job.source_paths:
            if self.fs.is_dir(source_path):
                for file_path in self.fs.walk_files(source_path):
                    if should_include(file_path, job.options, self.fs):
                        relative_path = os.path.relpath(file_path, source_path)
                        candidates.append(FileCandidate(file_path, relative_path, self._size_of(file_path)))
            elif self.fs.is_file(source_path):
                if should_include(source_path, job.options, self.fs):
                    candidates.append(FileCandidate(source_path, os.path.basename(source_path), self._size_of(source_path)))
            else:
                warning = f"Source path not found: {source_path}"
                history.warnings.append(warning)
                logger.warning(warning)
        return candidates

    def _size_of(self, path: str) -> int:
        try:
            return self.fs.file_size(path)
        except OSError:
            return 0

    async def _copy_files(
        self,
        candidates: List[FileCandidate],
        snapshot_dir: str,
        options: BackupOptions,
        history: BackupHistory,
        tracker: BackupProgress,
        progress: Optional[ProgressSink],
        cancel_event: Optional[asyncio.Event],
    ) -> bool:
        """
        Copy every candidate into the snapshot. Returns True if the run was cancelled.
        """
        for candidate in candidates:
            if cancel_event is not None and cancel_event.is_set():
                return True

            result = await asyncio.to_thread(self._copy_file, candidate, snapshot_dir, options)
            if result.success:
                history.processed_files += 1
                history.processed_bytes += result.bytes_copied
            else:
                history.failed_files += 1
                history.errors.append(result.error_message)
                logger.error(result.error_message)

            tracker.processed_files = history.processed_files
            tracker.processed_bytes = history.processed_bytes
            tracker.current_file = candidate.relative_path
            self._report(progress, tracker)
        return False

    def _copy_file(self, candidate: FileCandidate, snapshot_dir: str, options: BackupOptions) -> FileCopyResult:
        destination = os.path.join(snapshot_dir, candidate.relative_path)
        try:
            self.fs.make_dirs(os.path.dirname(destination))
            self.fs.copy_file(candidate.source_path, destination)
            if options.preserve_timestamps:
                self.fs.copy_timestamps(candidate.source_path, destination)
            if options.preserve_attributes:
                self.fs.copy_attributes(candidate.source_path, destination)
        except Exception as e:
            return FileCopyResult(relative_path=candidate.relative_path, success=False, error=str(e))
        return FileCopyResult(relative_path=candidate.relative_path, success=True, bytes_copied=candidate.size)

    def _verify_snapshot(self, snapshot_dir: str) -> List[str]:
        problems: List[str] = []
        if not self.fs.is_dir(snapshot_dir):
            return [f"Backup path does not exist: {snapshot_dir}"]
        try:
            files = list(self.fs.walk_files(snapshot_dir))
        except OSError as e:
            return [f"Verification could not list {snapshot_dir}: {e}"]
        for file_path in files:
            try:
                self.fs.read_first_byte(file_path)
            except OSError as e:
                problems.append(f"Verification failed for {os.path.relpath(file_path, snapshot_dir)}: {e}")
        return problems

    async def verify_backup(self, backup_path: str) -> bool:
        """
        Check that every file of a snapshot can be opened and read.
        """
        try:
            problems = await asyncio.to_thread(self._verify_snapshot, backup_path)
        except OSError as e:
            logger.error(f"Backup verification failed: {backup_path}: {e}")
            return False
        if problems:
            for problem in problems:
                logger.warning(problem)
            return False
        logger.info(f"Backup verification passed: {backup_path}")
        return True

    async def restore_backup(
        self,
        backup_path: str,
        destination_path: str,
        progress: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BackupProgress:
        """
        Copy a snapshot back to a destination directory, without filtering.

        Raises:
            SnapshotNotFoundError: If the snapshot directory does not exist.
            OSError: If a file cannot be restored.
        """
        logger.info(f"Starting restore from {backup_path} to {destination_path}")
        if not await asyncio.to_thread(self.fs.is_dir, backup_path):
            raise SnapshotNotFoundError(backup_path)

        await asyncio.to_thread(self.fs.make_dirs, destination_path)
        files = await asyncio.to_thread(lambda: list(self.fs.walk_files(backup_path)))
        tracker = BackupProgress(job_name="Restore", total_files=len(files))
        self._report(progress, tracker)

        for source_file in files:
            if cancel_event is not None and cancel_event.is_set():
                tracker.status = BackupStatus.CANCELLED
                break
            relative_path = os.path.relpath(source_file, backup_path)
            await asyncio.to_thread(self._restore_file, source_file, os.path.join(destination_path, relative_path))
            tracker.processed_files += 1
            tracker.current_file = relative_path
            self._report(progress, tracker)
        else:
            tracker.status = BackupStatus.COMPLETED

        self._report(progress, tracker)
        logger.info(f"Restore finished ({tracker.status.value}): {tracker.processed_files} files")
        return tracker

    def _restore_file(self, source: str, destination: str) -> None:
        self.fs.make_dirs(os.path.dirname(destination))
        self.fs.copy_file(source, destination)

    async def _refresh_statistics(self, job: BackupJob) -> None:
        """Take over the run statistics last persisted for the job."""
        stored = await self.storage.load_job(job.id)
        if stored is None:
            return
        job.last_run_time = stored.last_run_time
        job.last_run_status = stored.last_run_status
        job.last_backup_size = stored.last_backup_size
        job.total_backup_count = stored.total_backup_count

    async def _persist_failure(self, job: BackupJob, history: BackupHistory) -> None:
        try:
            await self.storage.save_job(job)
        except Exception:
            logger.exception(f"Failed to save statistics for job: {job.name}")
        try:
            await self.storage.save_history(history)
        except Exception:
            logger.exception(f"Failed to save history for job: {job.name}")

    async def _apply_retention(self, job: BackupJob) -> None:
        try:
            await asyncio.to_thread(self.retention.cleanup, job)
        except Exception:
            logger.exception(f"Failed to cleanup old backups for job: {job.name}")

    def _report(self, progress: Optional[ProgressSink], tracker: BackupProgress) -> None:
        if progress is None:
            return
        try:
            progress(tracker.model_copy())
        except Exception:
            logger.exception("Progress sink raised an error")
