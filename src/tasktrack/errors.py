"""Custom exception hierarchy for tasktrack."""


class AppError(Exception):
    """Base exception for app-specific failures.

    ``entity_id`` and ``name`` identify the offending entity when known, so
    transport adapters can build a meaningful response without parsing the
    message.
    """

    def __init__(self, message: str, *, entity_id: int | None = None, name: str | None = None):
        super().__init__(message)
        self.entity_id = entity_id
        self.name = name


class ValidationError(AppError, ValueError):
    """Bad, missing or duplicate input, or a broken reference."""


class NotFoundError(AppError, LookupError):
    """Operation targets an id that does not exist."""


class ScheduleConflictError(AppError):
    """Requested time window overlaps an already scheduled item."""

    def __init__(self, message: str, *, entity_id=None, name=None, start=None, end=None):
        super().__init__(message, entity_id=entity_id, name=name)
        self.start = start
        self.end = end


class FormatError(AppError, ValueError):
    """Persisted data cannot be parsed or written."""


class ConfigError(AppError, ValueError):
    """Settings file validation errors."""
