"""Fixed-size time bucket occupancy used to reject overlapping schedules."""

from datetime import datetime, timedelta

from tasktrack.errors import ScheduleConflictError

DEFAULT_SLOT_SIZE = timedelta(minutes=15)


class TimeSlotIndex:
    """Counts, per time bucket, how many scheduled items occupy it.

    Buckets are aligned to a grid of ``slot_size`` starting at midnight, and
    timestamps are truncated to the minute. An item scheduled over
    ``[start, end]`` occupies every bucket that begins before ``end``, so an
    item ending at 11:00 and one starting at 11:00 do not collide. A
    zero-length item occupies nothing, wherever it falls on the grid.

    Reservations are counted, not stored: every :meth:`reserve` must be
    matched by a :meth:`release` for the same window or the index keeps
    phantom occupancy.
    """

    def __init__(self, slot_size: timedelta = DEFAULT_SLOT_SIZE):
        if slot_size <= timedelta(0) or slot_size % timedelta(minutes=1):
            raise ValueError(f"Slot size must be a positive whole number of minutes: {slot_size}")
        self.slot_size = slot_size
        self._occupancy: dict[datetime, int] = {}

    def _floor(self, moment: datetime) -> datetime:
        moment = moment.replace(second=0, microsecond=0)
        midnight = moment.replace(hour=0, minute=0)
        return midnight + ((moment - midnight) // self.slot_size) * self.slot_size

    def slots_for(self, start: datetime | None, end: datetime | None) -> set[datetime]:
        """Return the bucket timestamps covering ``[start, end]``.

        Empty when either bound is missing or ``start`` is after ``end``.
        """
        if start is None or end is None or start > end:
            return set()

        slots: set[datetime] = set()
        current = self._floor(start)
        last = end.replace(second=0, microsecond=0)
        while current <= last:
            slots.add(current)
            current += self.slot_size
        return slots

    def _occupied_by(self, start: datetime | None, end: datetime | None) -> set[datetime]:
        if start is None or end is None or end <= start:
            return set()
        return {slot for slot in self.slots_for(start, end) if slot < end}

    def is_available(self, start: datetime | None, end: datetime | None) -> bool:
        """Return True if no bucket of the window is occupied.

        A missing or inverted window does not take part in conflict checks
        and is always available.
        """
        return not any(slot in self._occupancy for slot in self._occupied_by(start, end))

    def reserve(self, entity) -> None:
        if entity.start_time is None or entity.duration is None:
            return
        for slot in self._occupied_by(entity.start_time, entity.end_time):
            self._occupancy[slot] = self._occupancy.get(slot, 0) + 1

    def release(self, entity) -> None:
        if entity.start_time is None or entity.duration is None:
            return
        for slot in self._occupied_by(entity.start_time, entity.end_time):
            count = self._occupancy.get(slot)
            if count is None:
                continue
            if count == 1:
                del self._occupancy[slot]
            else:
                self._occupancy[slot] = count - 1

    def validate(self, entity) -> None:
        """Raise ScheduleConflictError if the entity's window is taken."""
        if not self.is_available(entity.start_time, entity.end_time):
            raise ScheduleConflictError(
                f"'{entity.name}' overlaps an already scheduled item "
                f"({entity.start_time.isoformat()} - {entity.end_time.isoformat()})",
                entity_id=entity.id,
                name=entity.name,
                start=entity.start_time,
                end=entity.end_time,
            )

    def occupancy(self) -> dict[datetime, int]:
        """Return a copy of the per-bucket counters."""
        return dict(self._occupancy)

    def clear(self) -> None:
        self._occupancy.clear()

    def __len__(self) -> int:
        return len(self._occupancy)
