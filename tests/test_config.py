"""
Unit tests for configuration loading and validation.
"""

import pytest

from site_backup.config import (
    DEFAULT_FILENAME_FORMAT,
    DEFAULT_MYSQLDUMP,
    AppConfig,
    ConfigError,
    DatabaseEntry,
    DirectoryEntry,
    load_config,
    save_config,
)


class TestAppConfig:
    """AppConfig.from_dict and validation."""

    def test_defaults(self, backups_folder):
        """Only backups_folder is required."""
        config = AppConfig.from_dict({"backups_folder": str(backups_folder)})

        assert config.backups_folder == backups_folder.resolve()
        assert config.backup_filename == DEFAULT_FILENAME_FORMAT
        assert config.expire_time is None
        assert config.directories == {}
        assert config.databases == {}
        assert config.db == "DATABASE_URL"
        assert config.mysqldump == DEFAULT_MYSQLDUMP
        assert config.on_dump_failure == "continue"

    def test_numeric_backup_filename(self, make_config):
        """An unquoted number in YAML becomes a string name."""
        assert make_config(backup_filename=20160102).backup_filename == "20160102"

    def test_missing_backups_folder_key(self):
        """A configuration without backups_folder is rejected."""
        with pytest.raises(ConfigError, match="backups_folder"):
            AppConfig.from_dict({})

    def test_backups_folder_must_exist(self, tmp_path):
        """Startup fails fast when the folder does not exist."""
        with pytest.raises(ConfigError, match="does not exist"):
            AppConfig.from_dict({"backups_folder": str(tmp_path / "missing")})

    def test_backups_folder_must_be_writable(self, backups_folder, monkeypatch):
        """Startup fails fast when the folder is not writable."""
        monkeypatch.setattr("site_backup.config.os.access", lambda path, mode: False)

        with pytest.raises(ConfigError, match="not writable"):
            AppConfig.from_dict({"backups_folder": str(backups_folder)})

    def test_backups_folder_expands_home(self, tmp_path, monkeypatch):
        """~ is expanded to an absolute path."""
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "b").mkdir()

        config = AppConfig.from_dict({"backups_folder": "~/b"})

        assert config.backups_folder == (tmp_path / "b").resolve()
        assert config.backups_folder.is_absolute()

    @pytest.mark.parametrize("value", [None, False, 0])
    def test_expire_time_disabled(self, make_config, value):
        """Absent, false and zero disable expiration."""
        assert make_config(expire_time=value).expire_time is None

    def test_expire_time_from_string(self, make_config):
        """expire_time accepts numeric strings."""
        assert make_config(expire_time="3600").expire_time == 3600

    def test_expire_time_negative(self, make_config):
        """Negative expire_time is rejected."""
        with pytest.raises(ConfigError, match="expire_time"):
            make_config(expire_time=-1)

    def test_expire_time_true(self, make_config):
        """true is not a number of seconds."""
        with pytest.raises(ConfigError, match="expire_time"):
            make_config(expire_time=True)

    def test_unknown_dump_policy(self, make_config):
        """on_dump_failure accepts only continue and abort."""
        with pytest.raises(ConfigError, match="on_dump_failure"):
            make_config(on_dump_failure="retry")

    def test_db_false_disables_primary(self, make_config):
        """db: false disables the primary connection lookup."""
        assert make_config(db=False).db is None


class TestDirectoryEntry:
    """Directory definitions."""

    def test_plain_path(self, make_config):
        """name: path form."""
        config = make_config(directories={"uploads": "/srv/uploads"})

        assert config.directories["uploads"] == DirectoryEntry("uploads", "/srv/uploads")

    def test_mapping_with_filter(self, make_config):
        """name: {path, filter} form."""
        config = make_config(directories={"conf": {"path": "/srv/conf", "filter": r"\.ini$"}})

        entry = config.directories["conf"]
        assert entry.path == "/srv/conf"
        assert entry.filter == r"\.ini$"

    def test_mapping_without_path(self, make_config):
        """A mapping must contain path."""
        with pytest.raises(ConfigError, match="conf"):
            make_config(directories={"conf": {"filter": "x"}})

    def test_entry_is_read_only(self):
        """Entries cannot be mutated during a run."""
        entry = DirectoryEntry("a", "/a")

        with pytest.raises(AttributeError):
            entry.path = "/b"


class TestDatabaseEntry:
    """Database definitions."""

    def test_from_dict(self):
        """Known keys are mapped, the rest goes to extra."""
        entry = DatabaseEntry.from_dict(
            "shop",
            {"host": "db1", "username": "u", "password": 1234, "port": 3307},
        )

        assert entry.db is None
        assert entry.host == "db1"
        assert entry.password == "1234"
        assert entry.extra == {"port": "3307"}
        assert entry.command is None

    def test_missing_password_is_empty(self):
        """A missing or null password becomes an empty string."""
        assert DatabaseEntry.from_dict("shop", {"password": None}).password == ""
        assert DatabaseEntry.from_dict("shop", {}).password == ""

    def test_params_default_db_to_name(self):
        """params() falls back to the entry name for db."""
        params = DatabaseEntry(name="shop", username="u", extra={"port": "3307"}).params()

        assert params == {
            "db": "shop",
            "host": "localhost",
            "username": "u",
            "password": "",
            "port": "3307",
        }


class TestLoadConfig:
    """YAML loading and saving."""

    def test_load_yaml(self, tmp_path, backups_folder):
        """A YAML file is parsed into AppConfig."""
        path = tmp_path / "config.yaml"
        path.write_text(
            f"backups_folder: {backups_folder}\n"
            "expire_time: 60\n"
            "directories:\n"
            "  site: /var/www\n"
            "databases:\n"
            "  shop:\n"
            "    username: root\n"
            "    password: ''\n"
        )

        config = load_config(path)

        assert config.expire_time == 60
        assert config.directories["site"].path == "/var/www"
        assert config.databases["shop"].password == ""

    def test_missing_file(self, tmp_path):
        """A missing configuration file is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML is reported as ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("backups_folder: [unclosed\n")

        with pytest.raises(ConfigError, match="not valid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        """The top level must be a mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_save_and_load(self, tmp_path, make_config):
        """save_config writes a file load_config reads back."""
        config = make_config(
            expire_time=10,
            directories={"conf": {"path": "/srv/conf", "filter": "x"}},
            databases={"shop": {"username": "u", "password": "p", "port": 3307}},
        )
        path = tmp_path / "out" / "config.yaml"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.expire_time == 10
        assert loaded.directories == config.directories
        assert loaded.databases["shop"] == config.databases["shop"]
        assert loaded.db is None
