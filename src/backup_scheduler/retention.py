import logging
import os
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from backup_scheduler.domain.job import BackupJob
from backup_scheduler.filesystems.protocol import FileSystem

logger = logging.getLogger(__name__)


class RetentionManager:
    """
    Prunes old snapshots of a backup job by count and by age.
    """

    def __init__(self, fs: FileSystem):
        self.fs = fs

    def list_snapshots(self, job: BackupJob) -> List[Tuple[str, datetime]]:
        """
        Return ``(path, creation_time)`` of every snapshot directory of the job, newest first.
        """
        prefix = job.snapshot_prefix
        snapshots = [
            (path, self.fs.get_creation_time(path))
            for path in self.fs.list_dirs(job.destination_path)
            if os.path.basename(path).startswith(prefix)
        ]
        snapshots.sort(key=lambda snapshot: snapshot[1], reverse=True)
        return snapshots

    def cleanup(self, job: BackupJob, now: Optional[datetime] = None) -> List[str]:
        """
        Delete the snapshots of a job that exceed its retention policy.

        The count policy and the age policy are applied independently; a
        snapshot selected by either is deleted. A failed deletion is logged
        and does not stop the remaining ones.

        Returns:
            List[str]: Paths of the deleted snapshot directories.
        """
        options = job.options
        if not options.enable_retention:
            return []
        if not self.fs.is_dir(job.destination_path):
            return []

        now = now or datetime.now()
        snapshots = self.list_snapshots(job)
        logger.info(f"Found {len(snapshots)} snapshot(s) for job {job.id}")

        to_delete: List[Tuple[str, str]] = []
        if options.max_backup_count > 0:
            to_delete.extend((path, "count") for path, _ in snapshots[options.max_backup_count:])
        if options.retention_days > 0:
            cutoff = now - timedelta(days=options.retention_days)
            already = {path for path, _ in to_delete}
            to_delete.extend(
                (path, "age") for path, created in snapshots
                if created < cutoff and path not in already
            )

        deleted: List[str] = []
        for path, reason in to_delete:
            try:
                logger.info(f"Deleting old backup (by {reason}): {path}")
                self.fs.remove_tree(path)
                deleted.append(path)
            except OSError as e:
                logger.warning(f"Failed to delete backup directory {path}: {e}")
        return deleted
