"""Settings file management: loading, creation, and path mapping."""

import json
import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

from tasktrack.errors import ConfigError
from tasktrack.storage import FileBackedStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 10
DEFAULT_SLOT_MINUTES = 15

_WINDOWS_DRIVE_RELATIVE_RE = re.compile(r"^[A-Za-z]:[^/\\]")
_SEPARATORS_RE = re.compile(r"[\\/]+")


@dataclass
class StoreConfig:
    """In-memory settings model."""

    data_path: str
    history_capacity: int | None = DEFAULT_HISTORY_CAPACITY
    slot_minutes: int = DEFAULT_SLOT_MINUTES

    @property
    def slot_size(self) -> timedelta:
        return timedelta(minutes=self.slot_minutes)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StoreConfig":
        """Create settings model from dict payload."""
        return cls(
            data_path=str(payload["data_path"]),
            history_capacity=payload.get("history_capacity", DEFAULT_HISTORY_CAPACITY),
            slot_minutes=payload.get("slot_minutes", DEFAULT_SLOT_MINUTES),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize settings model to dict payload."""
        return {
            "data_path": self.data_path,
            "history_capacity": self.history_capacity,
            "slot_minutes": self.slot_minutes,
        }


def _clean_path_text(path: str) -> str:
    text = unicodedata.normalize("NFC", path)
    if "\0" in text:
        raise ConfigError("Path cannot contain NUL bytes")
    if _WINDOWS_DRIVE_RELATIVE_RE.match(text):
        raise ConfigError(f"Invalid path: {path}. Drive-relative paths are not supported.")
    if text.startswith("@"):
        raise ConfigError(f"Invalid path: {path}. The '@' package-directory shortcut is not supported.")
    return _SEPARATORS_RE.sub("/", text)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def map_path(path: str, config_dir: str | None = None) -> str:
    """Resolve a settings path string to an absolute path string.

    ~ or ~/...  -> user home directory
    Absolute    -> used as-is
    Relative    -> resolved relative to config_dir if given; error otherwise

    Paths starting with '@' are rejected so data never lands inside the
    installed package.
    """
    candidate = Path(_clean_path_text(path)).expanduser()
    if not candidate.is_absolute():
        if config_dir is None:
            raise ConfigError(
                "Relative settings paths are not supported. "
                "Use an absolute path or start with '~/'."
            )
        candidate = Path(config_dir) / candidate
    return str(candidate.resolve())


def validate_config(raw: Any) -> None:
    """Validate settings structure.

    Raises:
        ConfigError: If settings are invalid
    """
    if not isinstance(raw, dict):
        raise ConfigError("Settings must be a JSON object")

    data_path = raw.get("data_path")
    if not isinstance(data_path, str) or not data_path:
        raise ConfigError("data_path must be a non-empty string")

    capacity = raw.get("history_capacity", DEFAULT_HISTORY_CAPACITY)
    if capacity is not None and not _is_positive_int(capacity):
        raise ConfigError("history_capacity must be a positive integer or null")

    slot_minutes = raw.get("slot_minutes", DEFAULT_SLOT_MINUTES)
    if not _is_positive_int(slot_minutes):
        raise ConfigError("slot_minutes must be a positive integer")


def load_config(path: str) -> StoreConfig:
    """Load and validate settings from a JSON file.

    Returns:
        StoreConfig with an absolute data_path

    Raises:
        FileNotFoundError: If the settings file doesn't exist
        ConfigError: If the file is not valid JSON or fails validation
    """
    config_path = Path(map_path(path))

    if not config_path.exists():
        raise FileNotFoundError(f"Settings not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in settings file: {e}") from e

    validate_config(raw)
    raw["data_path"] = map_path(raw["data_path"], str(config_path.parent))
    return StoreConfig.from_dict(raw)


def create_config(path: str) -> StoreConfig:
    """Create a new settings file with defaults.

    Defaults:
        - data_path: same directory as the settings file, "tasks.csv"
        - history_capacity: 10
        - slot_minutes: 15
    """
    config_path = Path(map_path(path))
    if config_path.exists():
        raise ConfigError(f"Settings already exist: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)

    raw = {
        "data_path": "./tasks.csv",
        "history_capacity": DEFAULT_HISTORY_CAPACITY,
        "slot_minutes": DEFAULT_SLOT_MINUTES,
    }

    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(raw, f, indent=2, ensure_ascii=False)
    logger.info("Created settings file %s", config_path)

    raw["data_path"] = map_path(raw["data_path"], str(config_path.parent))
    return StoreConfig.from_dict(raw)


def open_store(config: StoreConfig) -> FileBackedStore:
    """Build the file-backed store described by ``config``."""
    return FileBackedStore.load(
        config.data_path,
        history_capacity=config.history_capacity,
        slot_size=config.slot_size,
    )
