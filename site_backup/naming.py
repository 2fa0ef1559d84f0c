"""Filename strategies for backup runs."""
from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Union

from .config import DEFAULT_FILENAME_FORMAT
from .errors import ResourceCreationError


@dataclass
class DateFormatFilename:
    fmt: str = DEFAULT_FILENAME_FORMAT
    clock: Callable[[], datetime] = field(default=datetime.now, repr=False)

    def __call__(self, runner) -> str:
        return self.clock().strftime(self.fmt)


@dataclass
class CallableFilename:
    func: Callable[[object], str]

    def __call__(self, runner) -> str:
        return str(self.func(runner))


FilenameStrategy = Union[DateFormatFilename, CallableFilename]


def filename_strategy(
    value: Union[str, Callable, None],
    clock: Callable[[], datetime] = datetime.now,
) -> FilenameStrategy:
    """Build a strategy from the ``backup_filename`` setting.

    A callable is used as is. A ``package.module:function`` reference is
    imported. Any other string is a :py:meth:`datetime.strftime` format.
    """

    if value is None or value == "":
        return DateFormatFilename(DEFAULT_FILENAME_FORMAT, clock)
    if callable(value):
        return CallableFilename(value)
    value = str(value)
    if ":" in value and "%" not in value:
        return CallableFilename(_import_callable(value))
    return DateFormatFilename(value, clock)


def _import_callable(reference: str) -> Callable:
    module_name, _, attribute = reference.partition(":")
    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as exc:
        raise ResourceCreationError(f"Cannot import filename function '{reference}': {exc}") from exc
    if not callable(target):
        raise ResourceCreationError(f"Filename function '{reference}' is not callable.")
    return target


def check_filename(name: str) -> str:
    """Make sure *name* can be used as a single path component."""

    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\0" in name:
        raise ResourceCreationError(f"Backup filename '{name}' is not a valid path component.")
    return name


__all__ = [
    "CallableFilename",
    "DateFormatFilename",
    "FilenameStrategy",
    "check_filename",
    "filename_strategy",
]
