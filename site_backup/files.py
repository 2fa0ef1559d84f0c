"""Archiving of configured directories."""
from __future__ import annotations

import logging
import os
import re
import tarfile
from pathlib import Path
from typing import Iterable, Optional

from .config import DirectoryEntry
from .errors import ArchiveError
from .utils import expand_path

LOGGER = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".tar"


def backup_files(destination: Path, directories: Iterable[DirectoryEntry]) -> bool:
    """Write ``<destination>/<name>.tar`` for every directory entry."""

    destination = Path(destination)
    for entry in directories:
        source = expand_path(entry.path)
        archive_path = destination / f"{entry.name}{ARCHIVE_EXTENSION}"
        LOGGER.info("Archiving directory '%s' into '%s'.", source, archive_path)
        count = archive_directory(source, archive_path, entry.filter)
        LOGGER.info("Directory '%s' archived, %d members.", entry.name, count)
    return True


def archive_directory(source: Path, archive_path: Path, pattern: Optional[str] = None) -> int:
    """Pack the contents of *source* into *archive_path*.

    Members are named by their path relative to *source*. When *pattern* is
    set only files whose relative path matches the regular expression are
    added and directories are left implicit. Returns the number of members.
    """

    source = Path(source)
    if not source.exists():
        raise ArchiveError(f"Source directory '{source}' does not exist.")
    if not source.is_dir():
        raise ArchiveError(f"Source '{source}' is not a directory.")
    if not os.access(source, os.R_OK | os.X_OK):
        raise ArchiveError(f"Source directory '{source}' is not readable.")

    try:
        regex = re.compile(pattern) if pattern else None
    except re.error as exc:
        raise ArchiveError(f"Invalid filter '{pattern}' for '{source}': {exc}") from exc

    count = 0
    try:
        with tarfile.open(archive_path, "w") as archive:
            for path in sorted(source.rglob("*")):
                arcname = path.relative_to(source).as_posix()
                if path.is_dir():
                    if regex is None:
                        archive.add(path, arcname=arcname, recursive=False)
                        count += 1
                    continue
                if regex is not None and not regex.search(arcname):
                    continue
                archive.add(path, arcname=arcname, recursive=False)
                count += 1
    except OSError as exc:
        raise ArchiveError(f"Cannot archive '{source}': {exc}") from exc
    return count


__all__ = ["ARCHIVE_EXTENSION", "archive_directory", "backup_files"]
