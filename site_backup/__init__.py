"""Scheduled backups of site directories and MySQL databases."""
from __future__ import annotations

from .backup import BackupRun, BackupRunner
from .config import AppConfig, ConfigError, load_config
from .errors import BackupError
from .params import resolve_config
from .retention import RetentionSweeper

__version__ = "1.0.0"

__all__ = [
    "AppConfig",
    "BackupError",
    "BackupRun",
    "BackupRunner",
    "ConfigError",
    "RetentionSweeper",
    "load_config",
    "resolve_config",
]
