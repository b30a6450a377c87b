from datetime import datetime

import pytest
from aioresponses import aioresponses

from backup_scheduler.domain.history import BackupHistory
from backup_scheduler.domain.job import BackupJob, BackupStatus
from backup_scheduler.notifiers.webhook import WebhookNotifier
from backup_scheduler.scheduler import JobScheduler
from backup_scheduler.storages.sqlalchemy import InMemoryStorage

WEBHOOK_URL = "https://hooks.example.com/backup"


@pytest.fixture(scope="function")
def notifier() -> WebhookNotifier:
    return WebhookNotifier(WEBHOOK_URL, timeout=5, headers={"X-Token": "secret"})

@pytest.fixture(scope="function")
def sample_job() -> BackupJob:
    return BackupJob(id="job1", name="Documents", source_paths=["/data"], destination_path="/backups")

@pytest.fixture(scope="function")
def sample_history(sample_job: BackupJob) -> BackupHistory:
    history = BackupHistory(
        job_id=sample_job.id,
        job_name=sample_job.name,
        start_time=datetime(2024, 4, 10, 12, 0),
        processed_files=3,
        total_files=3,
    )
    history.finish(BackupStatus.COMPLETED)
    return history

@pytest.mark.asyncio
async def test_completed_notification_posts_history(notifier, sample_history):
    with aioresponses() as m:
        m.post(WEBHOOK_URL, status=200)

        assert await notifier.on_backup_completed(sample_history) is True

        ((method, url), calls), = m.requests.items()
        assert method == "POST"
        payload = calls[0].kwargs["json"]
        assert payload["event"] == "backup_completed"
        assert payload["job_id"] == "job1"
        assert payload["status"] == "completed"
        assert payload["history"]["processed_files"] == 3
        assert calls[0].kwargs["headers"]["X-Token"] == "secret"

@pytest.mark.asyncio
async def test_failed_notification_carries_error(notifier, sample_job):
    with aioresponses() as m:
        m.post(WEBHOOK_URL, status=204)

        assert await notifier.on_backup_failed(sample_job, RuntimeError("disk full")) is True

        (_, calls), = m.requests.items()
        payload = calls[0].kwargs["json"]
        assert payload["event"] == "backup_failed"
        assert payload["error"] == "disk full"

@pytest.mark.asyncio
async def test_server_error_returns_false(notifier, sample_history):
    with aioresponses() as m:
        m.post(WEBHOOK_URL, status=500, body="boom")

        assert await notifier.on_backup_completed(sample_history) is False

@pytest.mark.asyncio
async def test_connection_error_returns_false(notifier, sample_job):
    with aioresponses() as m:
        m.post(WEBHOOK_URL, exception=Exception("Connection error"))

        assert await notifier.on_backup_failed(sample_job, RuntimeError("x")) is False

def test_attach_registers_listeners(notifier):
    scheduler = JobScheduler(executor=None, storage=InMemoryStorage())

    notifier.attach(scheduler)

    assert scheduler.on_backup_completed == [notifier.on_backup_completed]
    assert scheduler.on_backup_failed == [notifier.on_backup_failed]
    assert scheduler.on_backup_started == []
