import asyncio
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio

from backup_scheduler.config import SchedulerSettings
from backup_scheduler.domain.history import BackupHistory
from backup_scheduler.domain.job import BackupJob, BackupOptions, BackupStatus
from backup_scheduler.domain.schedule import EveryHoursSchedule, ManualSchedule
from backup_scheduler.errors import JobAlreadyRunningError, JobNotFoundError
from backup_scheduler.executors.file_copy import FileCopyExecutor
from backup_scheduler.filesystems.local import LocalFileSystem
from backup_scheduler.scheduler import JobScheduler
from backup_scheduler.service import BackupService
from backup_scheduler.storages.sqlalchemy import InMemoryStorage


class BusyExecutor(FileCopyExecutor):
    def is_running(self, job_id: str) -> bool:
        return True

@pytest_asyncio.fixture(scope="function")
async def storage():
    storage = InMemoryStorage()
    await storage.create_tables()
    yield storage
    await storage.dispose()

@pytest.fixture(scope="function")
def service(storage) -> BackupService:
    executor = FileCopyExecutor(storage, LocalFileSystem())
    scheduler = JobScheduler(executor, storage, tick_interval=3600)
    return BackupService(storage, executor, scheduler, SchedulerSettings(history_limit=5, history_keep_days=30))

@pytest.fixture(scope="function")
def source_dir(tmp_path: Path) -> Path:
    source = tmp_path / "data"
    source.mkdir()
    (source / "a.txt").write_text("alpha")
    (source / "b.txt").write_text("bravo")
    return source

def new_job(source: Path, destination: Path, schedule=None) -> BackupJob:
    return BackupJob(
        name="Documents",
        source_paths=[str(source)],
        destination_path=str(destination),
        schedule=schedule or ManualSchedule(),
        options=BackupOptions(enable_retention=False),
    )

@pytest.mark.asyncio
async def test_create_job_assigns_id_and_schedules(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out", EveryHoursSchedule(interval=2)))

    assert job.id.startswith("bkp_")
    assert [e.job.id for e in service.scheduler.scheduled_entries] == [job.id]
    stored = await service.get_job(job.id)
    assert stored is not None
    assert stored.next_run_time is not None

@pytest.mark.asyncio
async def test_create_manual_job_is_not_scheduled(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out"))

    assert service.scheduler.scheduled_entries == []
    assert [j.id for j in await service.list_jobs()] == [job.id]

@pytest.mark.asyncio
async def test_disabling_job_unschedules_it(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out", EveryHoursSchedule(interval=2)))

    job.is_enabled = False
    await service.update_job(job)

    assert service.scheduler.scheduled_entries == []
    stored = await service.get_job(job.id)
    assert stored.is_enabled is False
    assert stored.next_run_time is None

@pytest.mark.asyncio
async def test_update_job_reschedules(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out"))

    job.schedule = EveryHoursSchedule(interval=1)
    await service.update_job(job)

    assert [e.job.id for e in service.scheduler.scheduled_entries] == [job.id]

@pytest.mark.asyncio
async def test_delete_job(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out", EveryHoursSchedule(interval=2)))

    assert await service.delete_job(job.id) is True
    assert service.scheduler.scheduled_entries == []
    assert await service.get_job(job.id) is None
    assert await service.delete_job(job.id) is False

@pytest.mark.asyncio
async def test_run_job_now_records_history(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out"))

    history = await service.run_job_now(job.id)

    assert history.status == BackupStatus.COMPLETED
    assert history.processed_files == 2
    assert [h.id for h in await service.get_history(job.id)] == [history.id]
    assert [h.id for h in await service.get_all_history()] == [history.id]
    assert await service.verify_backup(history.destination_path) is True

@pytest.mark.asyncio
async def test_run_unknown_job_raises(service):
    with pytest.raises(JobNotFoundError):
        await service.run_job_now("bkp_missing")

@pytest.mark.asyncio
async def test_run_job_now_refuses_running_job(storage, source_dir: Path, tmp_path: Path):
    executor = BusyExecutor(storage, LocalFileSystem())
    service = BackupService(storage, executor, JobScheduler(executor, storage))
    job = await service.create_job(new_job(source_dir, tmp_path / "out"))

    with pytest.raises(JobAlreadyRunningError):
        await service.run_job_now(job.id)

@pytest.mark.asyncio
async def test_restore_through_service(service, source_dir: Path, tmp_path: Path):
    job = await service.create_job(new_job(source_dir, tmp_path / "out"))
    history = await service.run_job_now(job.id)

    progress = await service.restore_backup(history.destination_path, str(tmp_path / "restored"))

    assert progress.status == BackupStatus.COMPLETED
    assert (tmp_path / "restored" / "b.txt").read_text() == "bravo"

@pytest.mark.asyncio
async def test_history_defaults_come_from_settings(service, storage):
    now = datetime.now()
    for days in range(8):
        await storage.save_history(BackupHistory(job_id="job1", start_time=now - timedelta(days=days * 10 + 5)))

    assert len(await service.get_all_history()) == 5
    # entries older than 30 days: 35, 45, 55, 65, 75 days
    assert await service.cleanup_history() == 5
    assert await service.cleanup_history(keep_days=0) == 3

@pytest.mark.asyncio
async def test_start_and_stop(service):
    await service.start()
    assert service.is_running

    await service.stop()
    assert not service.is_running

@pytest.mark.asyncio
async def test_create_wires_webhook_notifier():
    settings = SchedulerSettings(
        database_url="sqlite+aiosqlite:///:memory:",
        webhook_url="https://hooks.example.com/backup",
        tick_interval_seconds=5,
    )

    service = await BackupService.create(settings)
    try:
        assert service.scheduler.tick_interval == 5
        assert len(service.scheduler.on_backup_completed) == 1
        assert len(service.scheduler.on_backup_failed) == 1
        assert await service.list_jobs() == []
    finally:
        await service.close()

@pytest.mark.asyncio
async def test_manual_and_scheduled_runs_both_count(storage, source_dir: Path, tmp_path: Path):
    now = [datetime(2024, 4, 10, 12, 0)]
    executor = FileCopyExecutor(storage, LocalFileSystem())
    scheduler = JobScheduler(executor, storage, tick_interval=3600, clock=lambda: now[0])
    service = BackupService(storage, executor, scheduler)
    job = await service.create_job(new_job(source_dir, tmp_path / "out", EveryHoursSchedule(interval=1)))
    await service.start()
    await asyncio.sleep(0)

    await service.run_job_now(job.id)
    now[0] += timedelta(hours=2)
    await scheduler.tick()
    await scheduler.wait_for_executions()
    await service.stop()

    stored = await service.get_job(job.id)
    assert len(await service.get_history(job.id)) == 2
    assert stored.total_backup_count == 2
    assert stored.next_run_time == now[0] + timedelta(hours=1)

@pytest.mark.asyncio
async def test_cleanup_old_backups_applies_retention(service, tmp_path: Path):
    destination = tmp_path / "out"
    destination.mkdir()
    job = await service.create_job(BackupJob(
        name="Retained",
        destination_path=str(destination),
        options=BackupOptions(max_backup_count=1, retention_days=0),
    ))
    for name in ["first", "second"]:
        (destination / f"{job.snapshot_prefix}{name}").mkdir()
    (destination / "other_job_snapshot").mkdir()

    deleted = await service.cleanup_old_backups(job)

    assert len(deleted) == 1
    remaining = sorted(p.name for p in destination.iterdir())
    assert len(remaining) == 2
    assert "other_job_snapshot" in remaining
