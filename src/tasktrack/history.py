"""Bounded record of recently viewed work items."""

from collections import OrderedDict

from tasktrack.models import Entity


class HistoryTracker:
    """Order-preserving view history keyed by entity id, oldest first.

    Backed by an ``OrderedDict`` (hash index plus linked order), so add and
    remove by id are O(1). Re-adding an id moves it to the most recent
    position. With ``capacity`` set, the oldest entry is evicted once the
    bound is exceeded.
    """

    def __init__(self, capacity: int | None = None):
        if capacity is not None and capacity <= 0:
            raise ValueError("History capacity must be a positive integer")
        self.capacity = capacity
        self._entries: OrderedDict[int, Entity] = OrderedDict()

    def add(self, entity: Entity | None) -> None:
        """Record a view of ``entity``; ``None`` is ignored.

        Entities are immutable records, so the stored value is a snapshot of
        the entity at view time.
        """
        if entity is None:
            return
        self._entries.pop(entity.id, None)
        self._entries[entity.id] = entity
        if self.capacity is not None and len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def remove(self, entity_id: int) -> None:
        self._entries.pop(entity_id, None)

    def get_history(self) -> list[Entity]:
        """Return a copy of the history, oldest first."""
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries
