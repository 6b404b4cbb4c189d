"""Hierarchical work item store with derived epic state."""

from .config import StoreConfig, create_config, load_config, open_store
from .errors import (
    AppError,
    ConfigError,
    FormatError,
    NotFoundError,
    ScheduleConflictError,
    ValidationError,
)
from .history import HistoryTracker
from .models import Entity, Epic, SubTask, Task, TaskKind, TaskStatus
from .storage import FileBackedStore, load_store, save_store
from .store import EntityStore
from .timeslots import TimeSlotIndex

__all__ = [
    "AppError",
    "ConfigError",
    "Entity",
    "EntityStore",
    "Epic",
    "FileBackedStore",
    "FormatError",
    "HistoryTracker",
    "NotFoundError",
    "ScheduleConflictError",
    "StoreConfig",
    "SubTask",
    "Task",
    "TaskKind",
    "TaskStatus",
    "TimeSlotIndex",
    "ValidationError",
    "create_config",
    "load_config",
    "load_store",
    "open_store",
    "save_store",
]
