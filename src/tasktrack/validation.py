"""Input validation helpers for tasktrack."""

from typing import Any, Iterable

from tasktrack.errors import ValidationError


def validate_entity(value: Any, expected: type, entity_name: str) -> None:
    """Reject a missing or wrongly typed entity argument."""
    if value is None:
        raise ValidationError(f"{entity_name} cannot be None")
    if not isinstance(value, expected):
        raise ValidationError(
            f"Expected a {entity_name}, got {type(value).__name__}",
            entity_id=getattr(value, "id", None),
        )


def validate_positive_id(entity_id: Any) -> None:
    """Validate that an id is a positive integer.

    Raises:
        ValidationError: If id is not an int or is zero/negative
    """
    if isinstance(entity_id, bool) or not isinstance(entity_id, int) or entity_id <= 0:
        raise ValidationError(
            f"Id must be a positive integer, got: {entity_id!r}",
            entity_id=entity_id if isinstance(entity_id, int) else None,
        )


def validate_name(name: Any, entity_name: str, entity_id: int | None = None) -> None:
    """Validate that a name is a non-empty string."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{entity_name} name must be a non-empty string", entity_id=entity_id)


def validate_unique_name(name: str, entity_id: int | None, existing: Iterable[Any]) -> None:
    """Reject a name already used by a *different* entity.

    Entity equality is id-based, so the check compares ids explicitly rather
    than relying on ``==`` between records.
    """
    for other in existing:
        if other.id != entity_id and other.name == name:
            raise ValidationError(
                f"A task named '{name}' already exists (id {other.id})",
                entity_id=entity_id,
                name=name,
            )
