import os
import re
from functools import lru_cache
from typing import Pattern

from backup_scheduler.domain.job import BackupOptions
from backup_scheduler.filesystems.protocol import FileAttributes, FileSystem


@lru_cache(maxsize=256)
def _compile_wildcard(pattern: str) -> Pattern[str]:
    # Only '*' and '?' are wildcards; everything else, brackets included, is literal
    regex = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)

def matches_pattern(file_name: str, pattern: str) -> bool:
    """
    Case-insensitive wildcard match of a file name, where ``*`` matches any run
    of characters and ``?`` exactly one.
    """
    return _compile_wildcard(pattern).match(file_name) is not None

def should_include(path: str, options: BackupOptions, fs: FileSystem) -> bool:
    """
    Decide whether a file takes part in a backup.

    Attribute checks come first, then exclude patterns, then include patterns,
    so an exclude match always wins. Files whose attributes cannot be read are
    left out.
    """
    try:
        attributes = fs.get_attributes(path)
    except OSError:
        return False

    if not options.include_hidden and attributes & FileAttributes.HIDDEN:
        return False
    if not options.include_system and attributes & FileAttributes.SYSTEM:
        return False

    file_name = os.path.basename(path)
    if any(matches_pattern(file_name, pattern) for pattern in options.exclude_patterns):
        return False
    if not options.include_patterns:
        return True
    return any(matches_pattern(file_name, pattern) for pattern in options.include_patterns)
