import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List

import pytest

from backup_scheduler.domain.job import BackupJob, BackupOptions
from backup_scheduler.filesystems.local import LocalFileSystem
from backup_scheduler.retention import RetentionManager

NOW = datetime(2024, 4, 10, 12, 0)


class DatedFileSystem(LocalFileSystem):
    """Local file system with creation times assigned by directory name."""

    def __init__(self, creation_times: Dict[str, datetime], undeletable: List[str] = ()):
        self.creation_times = creation_times
        self.undeletable = set(undeletable)

    def get_creation_time(self, path: str) -> datetime:
        return self.creation_times[os.path.basename(path)]

    def remove_tree(self, path: str) -> None:
        if os.path.basename(path) in self.undeletable:
            raise PermissionError(f"Access denied: {path}")
        super().remove_tree(path)

def make_snapshots(destination: Path, names_and_ages: Dict[str, int]) -> Dict[str, datetime]:
    creation_times = {}
    for name, age_days in names_and_ages.items():
        (destination / name).mkdir()
        (destination / name / "file.txt").write_text(name)
        creation_times[name] = NOW - timedelta(days=age_days)
    return creation_times

def make_job(destination: Path, **options) -> BackupJob:
    return BackupJob(
        id="job1",
        name="Retention Job",
        destination_path=str(destination),
        options=BackupOptions(**options),
    )

def remaining(destination: Path) -> List[str]:
    return sorted(p.name for p in destination.iterdir())

@pytest.fixture(scope="function")
def snapshots(tmp_path: Path) -> Dict[str, datetime]:
    return make_snapshots(tmp_path, {
        "job1_a": 0,
        "job1_b": 1,
        "job1_c": 5,
        "job1_d": 10,
        "job1_e": 40,
        "job2_old": 100,
    })

def test_count_policy_keeps_newest(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots))
    job = make_job(tmp_path, max_backup_count=2, retention_days=0)

    deleted = manager.cleanup(job, now=NOW)

    assert len(deleted) == 3
    assert remaining(tmp_path) == ["job1_a", "job1_b", "job2_old"]

def test_age_policy_removes_old_snapshots(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots))
    job = make_job(tmp_path, max_backup_count=0, retention_days=7)

    manager.cleanup(job, now=NOW)

    assert remaining(tmp_path) == ["job1_a", "job1_b", "job1_c", "job2_old"]

def test_policies_apply_independently(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots))
    job = make_job(tmp_path, max_backup_count=4, retention_days=3)

    deleted = manager.cleanup(job, now=NOW)

    # count policy removes job1_e, age policy additionally removes job1_c and job1_d
    assert sorted(os.path.basename(p) for p in deleted) == ["job1_c", "job1_d", "job1_e"]
    assert remaining(tmp_path) == ["job1_a", "job1_b", "job2_old"]

def test_other_jobs_are_never_touched(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots))
    job = make_job(tmp_path, max_backup_count=1, retention_days=1)

    manager.cleanup(job, now=NOW)

    assert "job2_old" in remaining(tmp_path)

def test_disabled_retention_is_noop(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots))
    job = make_job(tmp_path, enable_retention=False, max_backup_count=1, retention_days=1)

    assert manager.cleanup(job, now=NOW) == []
    assert len(remaining(tmp_path)) == 6

def test_missing_destination_is_noop(tmp_path: Path) -> None:
    manager = RetentionManager(LocalFileSystem())
    job = make_job(tmp_path / "does-not-exist", max_backup_count=1)

    assert manager.cleanup(job) == []

def test_failed_deletion_does_not_stop_the_rest(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots, undeletable=["job1_c"]))
    job = make_job(tmp_path, max_backup_count=2, retention_days=0)

    deleted = manager.cleanup(job, now=NOW)

    assert sorted(os.path.basename(p) for p in deleted) == ["job1_d", "job1_e"]
    assert remaining(tmp_path) == ["job1_a", "job1_b", "job1_c", "job2_old"]

def test_list_snapshots_orders_newest_first(tmp_path: Path, snapshots: Dict[str, datetime]) -> None:
    manager = RetentionManager(DatedFileSystem(snapshots))
    job = make_job(tmp_path)

    names = [os.path.basename(path) for path, _ in manager.list_snapshots(job)]

    assert names == ["job1_a", "job1_b", "job1_c", "job1_d", "job1_e"]
