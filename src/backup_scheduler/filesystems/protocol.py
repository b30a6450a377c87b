from datetime import datetime
from enum import IntFlag
from typing import Iterator, List, Protocol


class FileAttributes(IntFlag):
    NONE = 0
    READ_ONLY = 1
    HIDDEN = 2
    SYSTEM = 4


class FileSystem(Protocol):
    """
    Protocol for the raw file-system primitives used by the backup engine.

    All operations are synchronous and surface OS failures as the built-in
    exceptions (FileNotFoundError, PermissionError, OSError).
    """

    def exists(self, path: str) -> bool:
        ...

    def is_dir(self, path: str) -> bool:
        ...

    def is_file(self, path: str) -> bool:
        ...

    def walk_files(self, root: str) -> Iterator[str]:
        """Yield the full path of every file below root, recursively."""
        ...

    def list_dirs(self, path: str) -> List[str]:
        """Return the full paths of the immediate subdirectories of path."""
        ...

    def file_size(self, path: str) -> int:
        ...

    def get_attributes(self, path: str) -> FileAttributes:
        ...

    def get_creation_time(self, path: str) -> datetime:
        ...

    def make_dirs(self, path: str) -> None:
        ...

    def copy_file(self, source: str, destination: str) -> None:
        """Copy file contents, overwriting destination if present."""
        ...

    def copy_attributes(self, source: str, destination: str) -> None:
        ...

    def copy_timestamps(self, source: str, destination: str) -> None:
        ...

    def remove_tree(self, path: str) -> None:
        ...

    def read_first_byte(self, path: str) -> bytes:
        ...
