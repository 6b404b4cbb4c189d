"""Typed domain models for tasktrack.

Task, Epic and SubTask are three separate immutable records rather than a
class hierarchy. Each carries the shared identity/metadata fields (``id``,
``name``, ``description``, ``status``) and its own extras. Equality and
hashing use ``id`` alone: two values with the same id are the same work item
whatever their other fields say. Use :meth:`to_dict` to compare content.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from tasktrack.errors import ValidationError


class TaskStatus(str, Enum):
    """Work item lifecycle statuses."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskKind(str, Enum):
    """Discriminator for the three entity variants."""

    TASK = "TASK"
    EPIC = "EPIC"
    SUBTASK = "SUBTASK"


def _coerce_status(value: Any) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid task status: {value}") from None


def _check_duration(duration: timedelta | None) -> None:
    if duration is not None and duration < timedelta(0):
        raise ValidationError(f"Duration cannot be negative: {duration}")


def _end_of(start: datetime | None, duration: timedelta | None) -> datetime | None:
    if start is None or duration is None:
        return None
    return start + duration


def _format_time(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value}") from None


def _format_minutes(value: timedelta | None) -> int | float | None:
    if value is None:
        return None
    minutes = value.total_seconds() / 60
    return int(minutes) if minutes.is_integer() else minutes


def _parse_minutes(value: Any) -> timedelta | None:
    if value is None or value == "":
        return None
    if isinstance(value, timedelta):
        return value
    try:
        return timedelta(minutes=float(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid duration: {value}") from None


def _optional_id(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid id: {value}") from None


class _Identity:
    """Id-based equality shared by all entity records."""

    id: int | None

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return self.id == other.id

    def __hash__(self) -> int:
        if self.id is None:
            return object.__hash__(self)
        return hash(self.id)


@dataclass(frozen=True, eq=False)
class Task(_Identity):
    """A standalone work item.

    ``id`` is ``None`` until the store assigns one.
    """

    kind: ClassVar[TaskKind] = TaskKind.TASK

    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.NEW
    start_time: datetime | None = None
    duration: timedelta | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", _coerce_status(self.status))
        _check_duration(self.duration)

    @property
    def end_time(self) -> datetime | None:
        return _end_of(self.start_time, self.duration)

    def with_id(self, entity_id: int) -> "Task":
        return replace(self, id=entity_id)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Task":
        """Create task from a dict-like payload."""
        if "name" not in payload:
            raise ValidationError("Task missing required field: name")
        return cls(
            id=_optional_id(payload.get("id")),
            name=str(payload["name"]),
            description=str(payload.get("description") or ""),
            status=payload.get("status") or TaskStatus.NEW,
            start_time=_parse_time(payload.get("start_time")),
            duration=_parse_minutes(payload.get("duration")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize task to dict payload."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "start_time": _format_time(self.start_time),
            "duration": _format_minutes(self.duration),
            "end_time": _format_time(self.end_time),
        }


@dataclass(frozen=True, eq=False)
class Epic(_Identity):
    """A work item aggregating subtasks.

    ``status`` and the time fields are derived by the store from the epic's
    subtasks; values passed by a caller on creation are ignored.
    """

    kind: ClassVar[TaskKind] = TaskKind.EPIC

    name: str
    description: str = ""
    id: int | None = None
    subtask_ids: tuple[int, ...] = ()
    status: TaskStatus = TaskStatus.NEW
    start_time: datetime | None = None
    duration: timedelta | None = None
    end_time: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", _coerce_status(self.status))
        # Ordered, no duplicates.
        object.__setattr__(self, "subtask_ids", tuple(dict.fromkeys(self.subtask_ids)))
        _check_duration(self.duration)

    def with_id(self, entity_id: int) -> "Epic":
        return replace(self, id=entity_id)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Epic":
        """Create epic from a dict-like payload."""
        if "name" not in payload:
            raise ValidationError("Epic missing required field: name")
        return cls(
            id=_optional_id(payload.get("id")),
            name=str(payload["name"]),
            description=str(payload.get("description") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize epic to dict payload."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "subtask_ids": list(self.subtask_ids),
            "start_time": _format_time(self.start_time),
            "duration": _format_minutes(self.duration),
            "end_time": _format_time(self.end_time),
        }


@dataclass(frozen=True, eq=False)
class SubTask(_Identity):
    """A work item that belongs to exactly one epic."""

    kind: ClassVar[TaskKind] = TaskKind.SUBTASK

    name: str
    epic_id: int
    description: str = ""
    status: TaskStatus = TaskStatus.NEW
    start_time: datetime | None = None
    duration: timedelta | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", _coerce_status(self.status))
        _check_duration(self.duration)

    @property
    def end_time(self) -> datetime | None:
        return _end_of(self.start_time, self.duration)

    def with_id(self, entity_id: int) -> "SubTask":
        return replace(self, id=entity_id)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SubTask":
        """Create subtask from a dict-like payload."""
        missing = {"name", "epic_id"} - set(payload.keys())
        if missing:
            raise ValidationError(f"SubTask missing required fields: {', '.join(sorted(missing))}")
        epic_id = _optional_id(payload["epic_id"])
        if epic_id is None:
            raise ValidationError("SubTask missing required field: epic_id")
        return cls(
            id=_optional_id(payload.get("id")),
            name=str(payload["name"]),
            epic_id=epic_id,
            description=str(payload.get("description") or ""),
            status=payload.get("status") or TaskStatus.NEW,
            start_time=_parse_time(payload.get("start_time")),
            duration=_parse_minutes(payload.get("duration")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize subtask to dict payload."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "epic_id": self.epic_id,
            "start_time": _format_time(self.start_time),
            "duration": _format_minutes(self.duration),
            "end_time": _format_time(self.end_time),
        }


Entity = Union[Task, Epic, SubTask]
