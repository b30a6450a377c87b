from .protocol import FileAttributes, FileSystem
from .local import LocalFileSystem

__all__ = ["FileAttributes", "FileSystem", "LocalFileSystem"]
