"""Tests for config module."""

import json
import unicodedata
import pytest
from datetime import timedelta
from pathlib import Path

from tasktrack.config import (
    StoreConfig,
    create_config,
    load_config,
    map_path,
    open_store,
    validate_config,
)
from tasktrack.errors import ConfigError
from tasktrack.models import Task
from tasktrack.storage import FileBackedStore


class TestMapPath:
    """Test map_path function."""

    def test_map_path_tilde_with_subpath(self):
        """Test mapping tilde with subpath."""
        result = map_path("~/test/path", "/config/dir")
        assert result == str((Path.home() / "test/path").resolve())

    def test_map_path_tilde_alone(self):
        """Test mapping tilde alone."""
        assert map_path("~") == str(Path.home().resolve())

    @pytest.mark.parametrize("at_path", ["@", "@/tasks.csv", "@\\data\\tasks.csv"])
    def test_map_path_rejects_package_shortcut(self, at_path):
        """Test that '@' paths never resolve into the installed package."""
        with pytest.raises(ConfigError, match="'@'"):
            map_path(at_path, "/config/dir")

    def test_map_path_backslash_separators(self, temp_dir):
        """Test that Windows-style separators are normalized."""
        result = map_path("data\\tasks.csv", str(temp_dir))
        assert Path(result).parts[-2:] == ("data", "tasks.csv")

    def test_map_path_absolute(self, temp_dir):
        """Test mapping absolute path."""
        target = temp_dir.resolve() / "tasks.csv"
        assert map_path(str(target), "/config/dir") == str(target)

    def test_map_path_relative(self, temp_dir):
        """Test mapping relative path against the config directory."""
        result = map_path("data/../tasks.csv", str(temp_dir))
        assert result == str((temp_dir / "tasks.csv").resolve())

    def test_map_path_relative_without_base(self):
        """Test that relative paths need a base directory."""
        with pytest.raises(ConfigError, match="Relative"):
            map_path("tasks.csv")

    def test_map_path_normalizes_nfc(self):
        """Test path text normalization from NFD to NFC."""
        nfd_name = "caf\u0065\u0301.csv"
        result = map_path(f"~/{nfd_name}")
        assert unicodedata.normalize("NFC", nfd_name) in result

    def test_map_path_rejects_nul(self):
        """Test that NUL-containing path is rejected."""
        with pytest.raises(ConfigError, match="NUL"):
            map_path("bad\0path", "/config/dir")

    def test_map_path_rejects_drive_relative(self):
        """Test rejection of drive-relative Windows paths."""
        with pytest.raises(ValueError, match="Drive-relative"):
            map_path("C:tasks.csv", "/config/dir")


class TestValidateConfig:
    """Test validate_config function."""

    def test_minimal_config_valid(self):
        validate_config({"data_path": "~/tasks.csv"})

    def test_unbounded_history_valid(self):
        validate_config({"data_path": "~/tasks.csv", "history_capacity": None, "slot_minutes": 30})

    def test_not_an_object(self):
        with pytest.raises(ConfigError, match="JSON object"):
            validate_config(["data_path"])

    @pytest.mark.parametrize("data_path", [None, "", 5])
    def test_bad_data_path(self, data_path):
        with pytest.raises(ConfigError, match="data_path"):
            validate_config({"data_path": data_path})

    @pytest.mark.parametrize("capacity", [0, -2, True, "10", 1.5])
    def test_bad_history_capacity(self, capacity):
        with pytest.raises(ConfigError, match="history_capacity"):
            validate_config({"data_path": "~/tasks.csv", "history_capacity": capacity})

    @pytest.mark.parametrize("slot_minutes", [0, None, "15", False])
    def test_bad_slot_minutes(self, slot_minutes):
        with pytest.raises(ConfigError, match="slot_minutes"):
            validate_config({"data_path": "~/tasks.csv", "slot_minutes": slot_minutes})


class TestLoadConfig:
    """Test load_config function."""

    def test_load_maps_data_path(self, temp_dir):
        config_path = temp_dir / "settings.json"
        config_path.write_text(json.dumps({"data_path": "./data/tasks.csv", "slot_minutes": 30}), encoding="utf-8")

        config = load_config(str(config_path))
        assert config.data_path == str((temp_dir / "data" / "tasks.csv").resolve())
        assert config.history_capacity == 10
        assert config.slot_minutes == 30
        assert config.slot_size == timedelta(minutes=30)

    def test_load_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_config(str(temp_dir / "absent.json"))

    def test_load_invalid_json(self, temp_dir):
        config_path = temp_dir / "settings.json"
        config_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(str(config_path))

    def test_load_rejects_package_data_path(self, temp_dir):
        config_path = temp_dir / "settings.json"
        config_path.write_text(json.dumps({"data_path": "@/tasks.csv"}), encoding="utf-8")
        with pytest.raises(ConfigError, match="'@'"):
            load_config(str(config_path))

    def test_load_invalid_values(self, temp_dir):
        config_path = temp_dir / "settings.json"
        config_path.write_text(json.dumps({"data_path": "x.csv", "history_capacity": 0}), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(str(config_path))


class TestCreateConfig:
    """Test create_config function."""

    def test_create_writes_defaults(self, temp_dir):
        config_path = temp_dir / "nested" / "settings.json"
        config = create_config(str(config_path))

        assert json.loads(config_path.read_text(encoding="utf-8")) == {
            "data_path": "./tasks.csv",
            "history_capacity": 10,
            "slot_minutes": 15,
        }
        assert config.data_path == str((temp_dir / "nested" / "tasks.csv").resolve())

    def test_create_then_load(self, temp_dir):
        config_path = str(temp_dir / "settings.json")
        created = create_config(config_path)
        assert load_config(config_path) == created

    def test_create_refuses_overwrite(self, temp_dir):
        config_path = temp_dir / "settings.json"
        config_path.write_text("{}", encoding="utf-8")
        with pytest.raises(ConfigError, match="already exist"):
            create_config(str(config_path))
        assert config_path.read_text(encoding="utf-8") == "{}"


class TestStoreConfig:
    """Test settings model and store construction."""

    def test_dict_roundtrip(self):
        payload = {"data_path": "/data/tasks.csv", "history_capacity": None, "slot_minutes": 5}
        assert StoreConfig.from_dict(payload).to_dict() == payload

    def test_open_store(self, temp_dir):
        config = StoreConfig(data_path=str(temp_dir / "tasks.csv"), history_capacity=2, slot_minutes=30)
        store = open_store(config)

        assert isinstance(store, FileBackedStore)
        assert store.history.capacity == 2
        assert store.slots.slot_size == timedelta(minutes=30)

        store.create_task(Task(name="persisted"))
        reopened = open_store(config)
        assert [t.name for t in reopened.get_all_tasks()] == ["persisted"]
