from .protocol import BackupExecutor, ProgressSink
from .file_copy import FileCandidate, FileCopyExecutor, FileCopyResult

__all__ = ["BackupExecutor", "ProgressSink", "FileCandidate", "FileCopyExecutor", "FileCopyResult"]
