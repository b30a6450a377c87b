import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from backup_scheduler.domain.history import BackupHistory
from backup_scheduler.domain.job import BackupJob
from backup_scheduler.executors.protocol import BackupExecutor
from backup_scheduler.schedule_calculator import calculate_next_run
from backup_scheduler.storages.protocol import Storage

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 60.0

StartedListener = Callable[[BackupJob], Any]
CompletedListener = Callable[[BackupHistory], Any]
FailedListener = Callable[[BackupJob, BaseException], Any]


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"

@dataclass
class ScheduledEntry:
    """
    In-memory pairing of a job with its next run. Never persisted.
    """
    job: BackupJob
    next_run: datetime
    executing: bool = False

class JobScheduler:
    """
    Periodically launches the backup jobs whose next run has passed.

    The job table and the running state are guarded by a single asyncio lock
    that is never held while a backup executes. Each due job runs in its own
    task; the tick never waits for it.

    Listeners registered in ``on_backup_started``, ``on_backup_completed`` and
    ``on_backup_failed`` may be plain or async callables. They are called from
    the execution task, and errors they raise are logged and ignored.
    """

    def __init__(
        self,
        executor: BackupExecutor,
        storage: Storage,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.executor: BackupExecutor = executor
        self.storage: Storage = storage
        self.tick_interval: float = tick_interval
        self._clock = clock

        self._entries: Dict[str, ScheduledEntry] = {}
        self._lock = asyncio.Lock()
        self._state: SchedulerState = SchedulerState.STOPPED
        self._tick_task: Optional[asyncio.Task] = None
        self._executions: Set[asyncio.Task] = set()

        self.on_backup_started: List[StartedListener] = []
        self.on_backup_completed: List[CompletedListener] = []
        self.on_backup_failed: List[FailedListener] = []

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    @property
    def scheduled_entries(self) -> List[ScheduledEntry]:
        return [replace(entry) for entry in self._entries.values()]

    async def start(self) -> None:
        """
        Load the enabled, non-manual jobs from storage and start ticking.
        """
        async with self._lock:
            if self.is_running:
                logger.warning("Scheduler already running")
                return

            logger.info("Starting backup scheduler")
            jobs = await self.storage.load_jobs()
            now = self._clock()

            self._entries.clear()
            for job in jobs:
                if not job.is_schedulable:
                    continue
                next_run = calculate_next_run(job.schedule, now)
                if next_run is None:
                    logger.warning(f"Could not calculate next run time for job: {job.name}")
                    continue
                self._entries[job.id] = ScheduledEntry(job=job, next_run=next_run)
                job.next_run_time = next_run
                await self.storage.save_job(job)
                logger.info(f"Scheduled job {job.name} for {next_run}")

            self._state = SchedulerState.RUNNING
            self._tick_task = asyncio.create_task(self._tick_loop())
            logger.info(f"Backup scheduler started with {len(self._entries)} jobs")

    async def stop(self) -> None:
        """
        Stop ticking and clear the job table. Executions already in flight keep running.
        """
        async with self._lock:
            if not self.is_running:
                logger.warning("Scheduler not running")
                return

            logger.info("Stopping backup scheduler")
            tick_task, self._tick_task = self._tick_task, None
            self._entries.clear()
            self._state = SchedulerState.STOPPED

        if tick_task is not None:
            tick_task.cancel()
            try:
                await tick_task
            except asyncio.CancelledError:
                pass
        logger.info("Backup scheduler stopped")

    async def schedule_job(self, job: BackupJob) -> None:
        async with self._lock:
            if job.is_manual:
                logger.debug(f"Job {job.name} is manual, not scheduling")
                return

            next_run = calculate_next_run(job.schedule, self._clock())
            if next_run is None:
                logger.warning(f"Could not calculate next run time for job: {job.name}")
                return

            self._entries[job.id] = ScheduledEntry(job=job, next_run=next_run)
            job.next_run_time = next_run
            await self.storage.save_job(job)
            logger.info(f"Scheduled job {job.name} for {next_run}")

    async def unschedule_job(self, job_id: str) -> None:
        async with self._lock:
            if self._entries.pop(job_id, None) is not None:
                logger.info(f"Unscheduled job: {job_id}")

    async def reschedule_job(self, job: BackupJob) -> None:
        await self.unschedule_job(job.id)
        await self.schedule_job(job)

    def get_next_run_time(self, job: BackupJob) -> Optional[datetime]:
        return calculate_next_run(job.schedule, self._clock())

    async def tick(self) -> List[asyncio.Task]:
        """
        Launch every due job in its own task and return the launched tasks without awaiting them.
        """
        now = self._clock()
        async with self._lock:
            if not self.is_running:
                return []
            due: List[ScheduledEntry] = []
            for entry in self._entries.values():
                if entry.next_run > now or entry.executing:
                    continue
                if self.executor.is_running(entry.job.id):
                    logger.info(f"Job {entry.job.name} is due but already running, skipping")
                    continue
                entry.executing = True
                due.append(entry)

        if due:
            logger.info(f"Found {len(due)} due backup jobs")

        launched: List[asyncio.Task] = []
        for entry in due:
            task = asyncio.create_task(self._run_scheduled(entry))
            self._executions.add(task)
            task.add_done_callback(self._executions.discard)
            launched.append(task)
        return launched

    async def wait_for_executions(self) -> None:
        """
        Wait until every execution launched so far has finished.
        """
        while self._executions:
            await asyncio.gather(*list(self._executions), return_exceptions=True)

    async def _tick_loop(self) -> None:
        try:
            while True:
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Error in scheduler tick")
                await asyncio.sleep(self.tick_interval)
        except asyncio.CancelledError:
            pass

    async def _run_scheduled(self, entry: ScheduledEntry) -> None:
        job = entry.job
        history: Optional[BackupHistory] = None
        error: Optional[BaseException] = None

        try:
            logger.info(f"Executing scheduled backup: {job.name}")
            await self._notify(self.on_backup_started, job)
            history = await self.executor.execute(job)
        except Exception as e:
            logger.exception(f"Scheduled backup failed: {job.name}")
            error = e

        try:
            await self._after_execution(entry)
        except Exception as e:
            logger.exception(f"Failed to update schedule for job: {job.name}")
            if error is None:
                error = e

        if error is None and history is not None:
            await self._notify(self.on_backup_completed, history)
        else:
            await self._notify(self.on_backup_failed, job, error)

    async def _after_execution(self, entry: ScheduledEntry) -> None:
        async with self._lock:
            entry.executing = False
            if self._entries.get(entry.job.id) is not entry:
                # unscheduled, rescheduled or stopped while the backup was running
                return

            # runs made elsewhere may have updated the stored statistics
            stored = await self.storage.load_job(entry.job.id)
            if stored is not None:
                entry.job = stored
            job = entry.job
            next_run = calculate_next_run(job.schedule, self._clock())
            job.next_run_time = next_run
            if next_run is None:
                del self._entries[job.id]
                logger.warning(f"Job {job.name} removed from schedule (no next run time)")
            else:
                entry.next_run = next_run
                logger.info(f"Next run for {job.name}: {next_run}")
            await self.storage.save_job(job)

    async def _notify(self, listeners: List[Callable[..., Any]], *args: Any) -> None:
        for listener in list(listeners):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Backup scheduler listener raised an error")
