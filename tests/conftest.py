"""
Shared pytest fixtures.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from site_backup.config import AppConfig

FIXED_NOW = datetime(2016, 1, 2, 15, 4, 5)


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2016-01-02 15:04:05."""
    return lambda: FIXED_NOW


@pytest.fixture
def backups_folder(tmp_path) -> Path:
    """Empty, writable folder for backups."""
    folder = tmp_path / "backups"
    folder.mkdir()
    return folder


@pytest.fixture
def site_dir(tmp_path) -> Path:
    """Small directory tree to archive."""
    root = tmp_path / "site"
    (root / "sub").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "a.txt").write_text("alpha")
    (root / "sub" / "b.log").write_text("beta")
    (root / "sub" / "c.txt").write_text("gamma")
    return root


@pytest.fixture
def make_config(backups_folder):
    """Build a validated AppConfig on top of the backups folder."""

    def _make(**overrides) -> AppConfig:
        data = {"backups_folder": str(backups_folder), "db": False}
        data.update(overrides)
        return AppConfig.from_dict(data)

    return _make
