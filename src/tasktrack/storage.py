"""Store persistence to a flat comma-separated file.

Layout: one header line, then one line per task, epic and subtask (in that
order)::

    id,type,name,status,description,epic,start_time,duration,end_time
    1,TASK,Buy milk,NEW,2% milk,,,,
    2,EPIC,Move house,IN_PROGRESS,Q3 relocation,,,,
    3,SUBTASK,Pack boxes,DONE,Use labels,2,2026-03-01T10:00:00,90,

Fields holding a comma or a quote are quoted with quotes doubled. Line
breaks and backslashes inside names and descriptions are written as the
two-character escapes ``\\n``, ``\\r`` and ``\\\\`` so every record stays
on one line. Only the first five columns are required (six for subtasks).
The header line is required; its first six columns must match.
"""

import csv
import io
import logging
import re
from datetime import datetime, timedelta
from pathlib import Path

from tasktrack.errors import AppError, FormatError
from tasktrack.models import Entity, Epic, SubTask, Task, TaskKind, TaskStatus
from tasktrack.store import EntityStore

logger = logging.getLogger(__name__)

HEADER = ("id", "type", "name", "status", "description", "epic", "start_time", "duration", "end_time")
MIN_FIELDS = 5
MIN_SUBTASK_FIELDS = 6

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r"}
_ESCAPE_RE = re.compile(r"[\\\n\r]")
_UNESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def escape_text(value: str) -> str:
    """Encode backslashes and line breaks as two-character escapes."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], value)


def unescape_text(value: str) -> str:
    """Inverse of :func:`escape_text`; unknown escapes are kept verbatim."""
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), value)


def _format_time(value: datetime | None) -> str:
    return "" if value is None else value.isoformat()


def _format_minutes(value: timedelta | None) -> str:
    if value is None:
        return ""
    minutes = value.total_seconds() / 60
    return str(int(minutes)) if minutes.is_integer() else str(minutes)


def _field(fields: list[str], index: int) -> str:
    return fields[index] if len(fields) > index else ""


def _parse_time(value: str) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse_minutes(value: str) -> timedelta | None:
    return timedelta(minutes=float(value)) if value else None


def to_record(entity: Entity) -> list[str]:
    """Convert an entity into the persisted field list."""
    return [
        str(entity.id),
        entity.kind.value,
        escape_text(entity.name),
        entity.status.value,
        escape_text(entity.description),
        str(entity.epic_id) if isinstance(entity, SubTask) else "",
        _format_time(entity.start_time),
        _format_minutes(entity.duration),
        _format_time(entity.end_time) if isinstance(entity, Epic) else "",
    ]


def from_record(fields: list[str]) -> Entity:
    """Parse a persisted field list into an entity.

    Raises:
        FormatError: If fields are missing or cannot be parsed
    """
    if len(fields) < MIN_FIELDS:
        raise FormatError(f"Expected at least {MIN_FIELDS} fields, got {len(fields)}")

    try:
        entity_id = int(fields[0])
        kind = TaskKind(fields[1])
        name = unescape_text(fields[2])
        status = TaskStatus(fields[3])
        description = unescape_text(fields[4])
        start_time = _parse_time(_field(fields, 6))
        duration = _parse_minutes(_field(fields, 7))

        if kind is TaskKind.TASK:
            return Task(
                id=entity_id,
                name=name,
                description=description,
                status=status,
                start_time=start_time,
                duration=duration,
            )
        if kind is TaskKind.EPIC:
            return Epic(
                id=entity_id,
                name=name,
                description=description,
                status=status,
                start_time=start_time,
                duration=duration,
                end_time=_parse_time(_field(fields, 8)),
            )
        if len(fields) < MIN_SUBTASK_FIELDS or not fields[5]:
            raise FormatError("SubTask record is missing its epic id", entity_id=entity_id, name=name)
        return SubTask(
            id=entity_id,
            name=name,
            epic_id=int(fields[5]),
            description=description,
            status=status,
            start_time=start_time,
            duration=duration,
        )
    except FormatError:
        raise
    except ValueError as e:
        raise FormatError(f"Malformed record: {e}") from e


def format_line(entity: Entity) -> str:
    """Render one entity as a single persisted line (without newline)."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(to_record(entity))
    return buffer.getvalue().rstrip("\n")


def parse_line(line: str) -> Entity:
    """Parse one persisted line into an entity.

    Raises:
        FormatError: If the line is malformed
    """
    try:
        rows = list(csv.reader([line], strict=True))
    except csv.Error as e:
        raise FormatError(f"Malformed line: {e}") from e
    if not rows:
        raise FormatError("Empty line")
    return from_record(rows[0])


def save_store(path: str | Path, store: EntityStore) -> None:
    """Rewrite the file at ``path`` with the full store contents."""
    file_path = Path(path)
    entities = store.get_all_entities()
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerow(HEADER)
            for entity in entities:
                writer.writerow(to_record(entity))
    except OSError as e:
        raise FormatError(f"Failed to save store file: {file_path}: {e}") from e
    logger.debug("Saved %d records to %s", len(entities), file_path)


def _check_header(file_path: Path, fields: list[str]) -> None:
    expected = HEADER[:MIN_SUBTASK_FIELDS]
    if tuple(fields[:MIN_SUBTASK_FIELDS]) != expected:
        raise FormatError(f"{file_path}: line 1: expected header starting with {','.join(expected)}")


def _read_entities(file_path: Path) -> list[Entity]:
    entities: list[Entity] = []
    try:
        with open(file_path, "r", encoding="utf-8", newline="") as f:
            reader = csv.reader(f, strict=True)
            header = next(reader, None)
            if header is None:
                return entities
            _check_header(file_path, header)
            for fields in reader:
                if not fields or fields == [""]:
                    continue
                try:
                    entities.append(from_record(fields))
                except FormatError as e:
                    raise FormatError(
                        f"{file_path}: line {reader.line_num}: {e}",
                        entity_id=e.entity_id,
                        name=e.name,
                    ) from e
    except csv.Error as e:
        raise FormatError(f"{file_path}: malformed CSV: {e}") from e
    except OSError as e:
        raise FormatError(f"Failed to read store file: {file_path}: {e}") from e
    return entities


def load_store(path: str | Path, store: EntityStore) -> EntityStore:
    """Fill an empty ``store`` from the file at ``path`` and return it.

    A missing or empty file leaves the store empty. The whole file is parsed
    before anything is inserted, and any malformed line or broken reference
    fails the whole load with ``store`` left empty.

    Raises:
        FormatError: If the file cannot be read, lacks the header line, or
            holds an invalid record
    """
    file_path = Path(path)
    if not file_path.exists():
        return store

    entities = _read_entities(file_path)
    try:
        store.restore(entities)
    except AppError as e:
        raise FormatError(f"{file_path}: {e}", entity_id=e.entity_id, name=e.name) from e

    logger.info("Loaded %d records from %s", len(entities), file_path)
    return store


class FileBackedStore(EntityStore):
    """Entity store that rewrites its file after every successful change."""

    def __init__(self, path: str | Path, **kwargs):
        super().__init__(**kwargs)
        self.path = Path(path)

    def save(self) -> None:
        save_store(self.path, self)

    def _after_change(self) -> None:
        self.save()

    @classmethod
    def load(cls, path: str | Path, **kwargs) -> "FileBackedStore":
        """Open the store persisted at ``path``; a missing file gives an empty store."""
        return load_store(path, cls(path, **kwargs))
