"""Removal of expired backup archives."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .errors import DeletionError
from .files import ARCHIVE_EXTENSION

LOGGER = logging.getLogger(__name__)


@dataclass
class SweepReport:
    deleted: List[Path] = field(default_factory=list)
    failed: List[DeletionError] = field(default_factory=list)


@dataclass
class RetentionSweeper:
    folder: Path
    expire_time: Optional[int]
    clock: Callable[[], float] = field(default=time.time, repr=False)
    logger: logging.Logger = field(default=LOGGER, repr=False)

    @property
    def enabled(self) -> bool:
        return bool(self.expire_time)

    def expired(self) -> List[Path]:
        """Archives directly inside the folder modified at or before the cutoff."""

        cutoff = self.clock() - self.expire_time
        result = []
        for path in sorted(Path(self.folder).iterdir()):
            if not path.name.endswith(ARCHIVE_EXTENSION) or not path.is_file():
                continue
            if path.stat().st_mtime <= cutoff:
                result.append(path)
        return result

    def sweep(self) -> SweepReport:
        report = SweepReport()
        if not self.enabled:
            self.logger.debug("Backup expiration is disabled, nothing to delete.")
            return report

        for path in self.expired():
            try:
                path.unlink()
            except OSError as exc:
                error = DeletionError(f"Cannot delete expired backup '{path}': {exc}", path)
                self.logger.error("%s", error)
                report.failed.append(error)
            else:
                self.logger.info("Expired backup '%s' deleted.", path)
                report.deleted.append(path)
        return report

    def delete_junk(self) -> bool:
        """Run a sweep. Individual failures are only logged."""

        self.sweep()
        return True


__all__ = ["RetentionSweeper", "SweepReport"]
