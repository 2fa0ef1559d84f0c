"""Configuration models and helpers for the backup tool."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import yaml

from .utils import expand_path

CONFIG_FILENAME = "config.yaml"

DEFAULT_FILENAME_FORMAT = "%Y_%m_%d-%H_%M_%S"
DEFAULT_PRIMARY_DB = "DATABASE_URL"
DEFAULT_MYSQLDUMP = (
    'mysqldump --add-drop-table --allow-keywords -q -c -u "{username}" -h "{host}" '
    "-p'{password}' {db} | gzip -9"
)

DUMP_POLICIES = {"continue", "abort"}


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    path: str
    filter: Optional[str] = None

    @classmethod
    def from_value(cls, name: str, value) -> "DirectoryEntry":
        if isinstance(value, (str, Path)):
            return cls(name=name, path=str(value))
        if isinstance(value, dict):
            if not value.get("path"):
                raise ConfigError(f"Directory '{name}' has no 'path'.")
            return cls(name=name, path=str(value["path"]), filter=value.get("filter") or None)
        raise ConfigError(f"Directory '{name}' must be a path or a mapping with 'path'.")

    def to_dict(self) -> Union[str, Dict]:
        if self.filter is None:
            return self.path
        return {"path": self.path, "filter": self.filter}


@dataclass
class DatabaseEntry:
    name: str
    db: Optional[str] = None
    host: str = "localhost"
    username: str = ""
    password: str = ""
    command: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Optional[Dict]) -> "DatabaseEntry":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Database '{name}' must be a mapping.")
        known_keys = {"db", "host", "username", "password", "command"}
        extra = {key: str(value) for key, value in data.items() if key not in known_keys}
        password = data.get("password")
        return cls(
            name=name,
            db=data.get("db"),
            host=str(data.get("host") or "localhost"),
            username=str(data.get("username") or ""),
            password="" if password is None else str(password),
            command=data.get("command") or None,
            extra=extra,
        )

    def params(self) -> Dict[str, str]:
        """Values available as ``{key}`` placeholders in a dump command."""

        result = dict(self.extra)
        result.update(
            {
                "db": self.db if self.db is not None else self.name,
                "host": self.host,
                "username": self.username,
                "password": self.password,
            }
        )
        return result

    def to_dict(self) -> Dict:
        result: Dict[str, object] = {
            "db": self.db,
            "host": self.host,
            "username": self.username,
            "password": self.password,
            "command": self.command,
        }
        result.update(self.extra)
        return {key: value for key, value in result.items() if value is not None}


@dataclass
class AppConfig:
    backups_folder: Path
    backup_filename: Union[str, Callable] = DEFAULT_FILENAME_FORMAT
    expire_time: Optional[int] = None
    directories: Dict[str, DirectoryEntry] = field(default_factory=dict)
    db: Optional[str] = DEFAULT_PRIMARY_DB
    databases: Dict[str, DatabaseEntry] = field(default_factory=dict)
    mysqldump: str = DEFAULT_MYSQLDUMP
    on_dump_failure: str = "continue"

    def validate(self) -> None:
        folder = self.backups_folder
        if not folder.is_dir():
            raise ConfigError(f'Directory for backups "{folder}" does not exist.')
        if not os.access(folder, os.W_OK):
            raise ConfigError(f'Directory for backups "{folder}" is not writable.')
        if self.expire_time is not None and self.expire_time < 0:
            raise ConfigError("Field 'expire_time' must be non-negative.")
        if self.on_dump_failure not in DUMP_POLICIES:
            raise ConfigError(
                f"Unknown on_dump_failure policy '{self.on_dump_failure}'. Use 'continue' or 'abort'."
            )
        if not self.mysqldump:
            raise ConfigError("Field 'mysqldump' must not be empty.")

    @classmethod
    def from_dict(cls, data: Dict) -> "AppConfig":
        if not data.get("backups_folder"):
            raise ConfigError("Configuration must contain 'backups_folder'.")

        directories = data.get("directories") or {}
        databases = data.get("databases") or {}
        if not isinstance(directories, dict):
            raise ConfigError("Field 'directories' must be a mapping of name to path.")
        if not isinstance(databases, dict):
            raise ConfigError("Field 'databases' must be a mapping of name to parameters.")

        primary = data.get("db", DEFAULT_PRIMARY_DB)
        config = cls(
            backups_folder=expand_path(data["backups_folder"]),
            backup_filename=_backup_filename(data.get("backup_filename")),
            expire_time=_expire_time(data.get("expire_time")),
            directories={
                str(name): DirectoryEntry.from_value(str(name), value)
                for name, value in directories.items()
            },
            db=str(primary) if primary else None,
            databases={
                str(name): DatabaseEntry.from_dict(str(name), params)
                for name, params in databases.items()
            },
            mysqldump=data.get("mysqldump") or DEFAULT_MYSQLDUMP,
            on_dump_failure=str(data.get("on_dump_failure") or "continue").lower(),
        )
        config.validate()
        return config

    def to_dict(self) -> Dict:
        filename = self.backup_filename
        if callable(filename):
            filename = f"{filename.__module__}:{filename.__qualname__}"
        return {
            "backups_folder": str(self.backups_folder),
            "backup_filename": filename,
            "expire_time": self.expire_time or False,
            "directories": {name: entry.to_dict() for name, entry in self.directories.items()},
            "db": self.db or False,
            "databases": {name: entry.to_dict() for name, entry in self.databases.items()},
            "mysqldump": self.mysqldump,
            "on_dump_failure": self.on_dump_failure,
        }


# ---------------------------------------------------------------------------
def _safe_int(value, default: Optional[int] = None) -> Optional[int]:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Value '{value}' cannot be converted to an integer.")


def _backup_filename(value) -> Union[str, Callable]:
    if value is None or value == "":
        return DEFAULT_FILENAME_FORMAT
    if callable(value):
        return value
    return str(value)


def _expire_time(value) -> Optional[int]:
    if value is None or value is False:
        return None
    if value is True:
        raise ConfigError("Field 'expire_time' must be a number of seconds or false.")
    seconds = _safe_int(value)
    return seconds or None


# ---------------------------------------------------------------------------
def load_config(path: Path = Path(CONFIG_FILENAME)) -> AppConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' not found.")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping.")
    return AppConfig.from_dict(data)


def save_config(config: AppConfig, path: Path = Path(CONFIG_FILENAME)) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(
            config.to_dict(),
            fh,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
        )


__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_FILENAME_FORMAT",
    "DEFAULT_MYSQLDUMP",
    "DatabaseEntry",
    "DirectoryEntry",
    "load_config",
    "save_config",
]
