"""Epic state derived from its subtasks."""

from datetime import datetime, timedelta
from typing import Iterable, NamedTuple

from tasktrack.models import SubTask, TaskStatus


class EpicWindow(NamedTuple):
    """Aggregate time window of an epic."""

    start_time: datetime | None
    duration: timedelta | None
    end_time: datetime | None


EMPTY_WINDOW = EpicWindow(None, None, None)


def derive_epic_status(statuses: Iterable[TaskStatus]) -> TaskStatus:
    """Compute an epic's status from its subtask statuses.

    No subtasks -> NEW. Any IN_PROGRESS -> IN_PROGRESS. All NEW -> NEW.
    All DONE -> DONE. A NEW/DONE mix -> IN_PROGRESS. The result does not
    depend on the order of ``statuses``.
    """
    seen: set[TaskStatus] = set()
    for status in statuses:
        if status == TaskStatus.IN_PROGRESS:
            return TaskStatus.IN_PROGRESS
        seen.add(status)

    if not seen or seen == {TaskStatus.NEW}:
        return TaskStatus.NEW
    if seen == {TaskStatus.DONE}:
        return TaskStatus.DONE
    return TaskStatus.IN_PROGRESS


def aggregate_epic_window(subtasks: Iterable[SubTask]) -> EpicWindow:
    """Aggregate the time window of an epic from its timed subtasks.

    Only subtasks that have both ``start_time`` and ``duration`` take part:
    start is the earliest start, duration the sum of durations and end the
    latest end.
    """
    earliest: datetime | None = None
    latest: datetime | None = None
    total = timedelta(0)
    timed = False

    for subtask in subtasks:
        if subtask.start_time is None or subtask.duration is None:
            continue
        timed = True
        if earliest is None or subtask.start_time < earliest:
            earliest = subtask.start_time
        end = subtask.end_time
        if latest is None or end > latest:
            latest = end
        total += subtask.duration

    if not timed:
        return EMPTY_WINDOW
    return EpicWindow(earliest, total, latest)
