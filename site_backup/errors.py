"""Exceptions raised by backup runs."""
from __future__ import annotations


class BackupError(RuntimeError):
    """Base class for failures of a backup run or retention sweep."""


class ResourceCreationError(BackupError):
    """Raised when the working directory or result archive cannot be created."""


class ArchiveError(BackupError):
    """Raised when a source directory cannot be archived."""


class DumpExecutionError(BackupError):
    """Raised when a database dump command cannot be built or has failed.

    ``results`` holds the outcomes of the dumps made before the failure,
    the failed one included.
    """

    def __init__(self, message: str, results=None):
        super().__init__(message)
        self.results = list(results or [])


class DeletionError(BackupError):
    """An expired archive that could not be deleted."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


__all__ = [
    "ArchiveError",
    "BackupError",
    "DeletionError",
    "DumpExecutionError",
    "ResourceCreationError",
]
