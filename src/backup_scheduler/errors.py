class BackupSchedulerError(Exception):
    """Base class for errors raised by the backup engine."""


class JobNotFoundError(BackupSchedulerError):
    def __init__(self, job_id: str):
        super().__init__(f"Backup job '{job_id}' not found")
        self.job_id = job_id


class JobAlreadyRunningError(BackupSchedulerError):
    def __init__(self, job_id: str):
        super().__init__(f"Backup job '{job_id}' is already running")
        self.job_id = job_id


class SnapshotNotFoundError(BackupSchedulerError, FileNotFoundError):
    def __init__(self, path: str):
        super().__init__(f"Backup snapshot not found: {path}")
        self.path = path
