import asyncio
import sys
from datetime import time

from backup_scheduler.config import SchedulerSettings
from backup_scheduler.domain.history import BackupProgress
from backup_scheduler.domain.job import BackupJob, BackupOptions
from backup_scheduler.domain.schedule import DailySchedule
from backup_scheduler.service import BackupService


def print_progress(progress: BackupProgress) -> None:
    print(f"[{progress.percent_complete:3d}%] {progress.current_file}")

async def main(source: str, destination: str):
    settings = SchedulerSettings(database_url="sqlite+aiosqlite:///example_backups.db", tick_interval_seconds=30)
    service = await BackupService.create(settings)
    await service.start()

    job = await service.create_job(BackupJob(
        name="Nightly documents",
        source_paths=[source],
        destination_path=destination,
        schedule=DailySchedule(time_of_day=time(2, 0)),
        options=BackupOptions(exclude_patterns=["*.tmp", "~*"], max_backup_count=7),
    ))
    print(f"Job created: {job.readable_string}")
    print(f"Next run: {job.next_run_time}")

    history = await service.run_job_now(job.id, progress=print_progress)
    print(f"Backup finished with status {history.status.value}: {history.processed_files}/{history.total_files} files")
    for warning in history.warnings:
        print(f"  warning: {warning}")
    for error in history.errors:
        print(f"  error: {error}")

    await service.close()

if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: simple.py SOURCE DESTINATION")
        sys.exit(1)
    asyncio.run(main(sys.argv[1], sys.argv[2]))
