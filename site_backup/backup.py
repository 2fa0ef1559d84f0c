"""Core backup logic: one full run over all directories and databases."""
from __future__ import annotations

import logging
import shutil
import tarfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .config import AppConfig
from .dump import DumpResult, backup_database
from .errors import DumpExecutionError, ResourceCreationError
from .files import ARCHIVE_EXTENSION, backup_files
from .naming import check_filename, filename_strategy
from .retention import RetentionSweeper

LOGGER = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class BackupRun:
    filename: str
    working_directory: Path
    archive: Path
    started_at: datetime
    dumps: List[DumpResult] = field(default_factory=list)
    state: str = RUNNING

    @property
    def failed_dumps(self) -> List[DumpResult]:
        return [result for result in self.dumps if not result.ok]


@dataclass
class BackupRunner:
    config: AppConfig
    clock: Callable[[], datetime] = datetime.now
    logger: logging.Logger = LOGGER
    last_run: Optional[BackupRun] = field(default=None, init=False)

    def create(self) -> Path:
        """Run a full backup and return the path of the result archive.

        The working directory is kept when the run fails.
        """

        run = self._start_run()
        self.last_run = run
        self.logger.info("Starting backup '%s'.", run.filename)
        try:
            self.backup_files(run.working_directory)
            try:
                run.dumps = self.backup_database(run.working_directory)
            except DumpExecutionError as exc:
                run.dumps = exc.results
                raise

            self._bundle(run.working_directory, run.archive)
            shutil.rmtree(run.working_directory)
        except Exception:
            run.state = FAILED
            self.logger.error(
                "Backup '%s' failed, working directory '%s' is left in place.",
                run.filename,
                run.working_directory,
            )
            raise

        run.state = COMPLETED
        if run.failed_dumps:
            self.logger.warning(
                "Backup '%s' is incomplete, failed dumps: %s",
                run.filename,
                ", ".join(result.name for result in run.failed_dumps),
            )
        self.logger.info("Backup '%s' saved to '%s'.", run.filename, run.archive)
        return run.archive

    # ------------------------------------------------------------------
    def backup_files(self, save_to: Path) -> bool:
        return backup_files(save_to, self.config.directories.values())

    # ------------------------------------------------------------------
    def backup_database(self, save_to: Path) -> List[DumpResult]:
        return backup_database(
            save_to,
            self.config.databases.values(),
            template=self.config.mysqldump,
            policy=self.config.on_dump_failure,
        )

    # ------------------------------------------------------------------
    def delete_junk(self) -> bool:
        sweeper = RetentionSweeper(
            folder=self.config.backups_folder,
            expire_time=self.config.expire_time,
            clock=lambda: self.clock().timestamp(),
        )
        return sweeper.delete_junk()

    # ------------------------------------------------------------------
    def backup_filename(self, now: Optional[datetime] = None) -> str:
        clock = self.clock if now is None else (lambda: now)
        strategy = filename_strategy(self.config.backup_filename, clock)
        return check_filename(strategy(self))

    # ------------------------------------------------------------------
    def _start_run(self) -> BackupRun:
        base = self.config.backups_folder
        now = self.clock()
        filename = self.backup_filename(now)
        folder = base / filename
        archive = base / f"{filename}{ARCHIVE_EXTENSION}"

        # A leftover of a failed run must be inspected and removed by hand.
        if folder.exists() or folder.is_symlink():
            raise ResourceCreationError(f'Working directory "{folder}" already exists.')
        if archive.exists():
            raise ResourceCreationError(f'Backup archive "{archive}" already exists.')
        try:
            folder.mkdir()
        except OSError as exc:
            raise ResourceCreationError(f'Can not create folder for backup: "{folder}": {exc}') from exc

        return BackupRun(
            filename=filename,
            working_directory=folder.resolve(),
            archive=archive.resolve(),
            started_at=now,
        )

    # ------------------------------------------------------------------
    def _bundle(self, folder: Path, archive_path: Path) -> None:
        self.logger.info("Bundling '%s' into '%s'.", folder, archive_path)
        try:
            with tarfile.open(archive_path, "w") as archive:
                for path in sorted(folder.iterdir()):
                    archive.add(path, arcname=path.name)
        except OSError as exc:
            archive_path.unlink(missing_ok=True)
            raise ResourceCreationError(f'Can not create backup archive "{archive_path}": {exc}') from exc


__all__ = ["BackupRun", "BackupRunner"]
