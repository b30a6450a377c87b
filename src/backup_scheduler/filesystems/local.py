import os
import shutil
import stat
from datetime import datetime
from typing import Iterator, List

from backup_scheduler.filesystems.protocol import FileAttributes, FileSystem

_WIN_HIDDEN = getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0x2)
_WIN_SYSTEM = getattr(stat, "FILE_ATTRIBUTE_SYSTEM", 0x4)


class LocalFileSystem(FileSystem):
    """
    FileSystem implementation backed by the local disk.

    On POSIX systems a file is hidden when its name starts with a dot and no
    file is ever flagged as a system file. On Windows the native attribute bits
    are used.
    """

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def walk_files(self, root: str) -> Iterator[str]:
        def _raise(error: OSError) -> None:
            raise error

        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
            for filename in sorted(filenames):
                yield os.path.join(dirpath, filename)

    def list_dirs(self, path: str) -> List[str]:
        with os.scandir(path) as entries:
            return [entry.path for entry in entries if entry.is_dir(follow_symlinks=False)]

    def file_size(self, path: str) -> int:
        return os.path.getsize(path)

    def get_attributes(self, path: str) -> FileAttributes:
        st = os.stat(path)
        attributes = FileAttributes.NONE
        if not os.access(path, os.W_OK) or not st.st_mode & stat.S_IWUSR:
            attributes |= FileAttributes.READ_ONLY

        native = getattr(st, "st_file_attributes", None)
        if native is not None:
            if native & _WIN_HIDDEN:
                attributes |= FileAttributes.HIDDEN
            if native & _WIN_SYSTEM:
                attributes |= FileAttributes.SYSTEM
        elif os.path.basename(path).startswith("."):
            attributes |= FileAttributes.HIDDEN
        return attributes

    def get_creation_time(self, path: str) -> datetime:
        st = os.stat(path)
        # st_birthtime is missing on most Linux builds; st_ctime is the closest fallback
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return datetime.fromtimestamp(created)

    def make_dirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def copy_file(self, source: str, destination: str) -> None:
        shutil.copyfile(source, destination)

    def copy_attributes(self, source: str, destination: str) -> None:
        shutil.copymode(source, destination)

    def copy_timestamps(self, source: str, destination: str) -> None:
        st = os.stat(source)
        os.utime(destination, ns=(st.st_atime_ns, st.st_mtime_ns))

    def remove_tree(self, path: str) -> None:
        shutil.rmtree(path)

    def read_first_byte(self, path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read(1)
