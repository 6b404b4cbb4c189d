"""In-memory entity store: relationship-aware CRUD over tasks, epics and subtasks."""

import logging
import threading
from dataclasses import replace
from datetime import timedelta
from functools import wraps
from typing import Iterable

from tasktrack.derivation import aggregate_epic_window, derive_epic_status
from tasktrack.errors import NotFoundError, ScheduleConflictError, ValidationError
from tasktrack.history import HistoryTracker
from tasktrack.models import Entity, Epic, SubTask, Task
from tasktrack.timeslots import DEFAULT_SLOT_SIZE, TimeSlotIndex
from tasktrack.validation import (
    validate_entity,
    validate_name,
    validate_positive_id,
    validate_unique_name,
)

logger = logging.getLogger(__name__)


def _locked(method):
    """Run a public store operation under the store's lock."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class EntityStore:
    """Owns the task, epic and subtask maps and keeps them consistent.

    Stored records are immutable, so every read hands out a snapshot that
    callers cannot use to change store state. Epics are never updated
    directly: their subtask list, status and time window are rewritten
    whenever one of their subtasks changes.

    Successful point lookups are recorded in :attr:`history`. Tasks and
    subtasks with a time window hold a reservation in :attr:`slots`.

    A re-entrant lock guards every public operation, so a threaded caller
    never observes a half-applied mutation.
    """

    def __init__(
        self,
        history_capacity: int | None = None,
        slot_size: timedelta = DEFAULT_SLOT_SIZE,
    ):
        self._tasks: dict[int, Task] = {}
        self._epics: dict[int, Epic] = {}
        self._subtasks: dict[int, SubTask] = {}
        self._next_id = 1
        self.history = HistoryTracker(history_capacity)
        self.slots = TimeSlotIndex(slot_size)
        self._lock = threading.RLock()

    def _after_change(self) -> None:
        """Hook run after every successful mutating operation."""

    # -------------------- ids --------------------

    @_locked
    def generate_id(self) -> int:
        """Return the next id; ids are shared by all kinds and never reused."""
        entity_id = self._next_id
        self._next_id += 1
        return entity_id

    def _id_in_use(self, entity_id: int) -> bool:
        return entity_id in self._tasks or entity_id in self._epics or entity_id in self._subtasks

    def _supplied_id(self, entity: Entity) -> int | None:
        """Validate a caller-chosen id; None means the store assigns one."""
        if not entity.id:
            return None
        validate_positive_id(entity.id)
        if self._id_in_use(entity.id):
            raise ValidationError(
                f"Id {entity.id} is already in use",
                entity_id=entity.id,
                name=entity.name,
            )
        return entity.id

    def _assign_id(self, supplied: int | None) -> int:
        if supplied is None:
            return self.generate_id()
        self._next_id = max(self._next_id, supplied + 1)
        return supplied

    # -------------------- epic derivation --------------------

    def _refresh_epic(self, epic_id: int) -> None:
        """Recompute an epic's status and time window from its subtasks."""
        epic = self._epics.get(epic_id)
        if epic is None:
            return

        subtasks: list[SubTask] = []
        for subtask_id in epic.subtask_ids:
            subtask = self._subtasks.get(subtask_id)
            if subtask is None:
                logger.warning("Epic %s lists unknown subtask %s", epic_id, subtask_id)
                continue
            subtasks.append(subtask)

        window = aggregate_epic_window(subtasks)
        self._epics[epic_id] = replace(
            epic,
            status=derive_epic_status(subtask.status for subtask in subtasks),
            start_time=window.start_time,
            duration=window.duration,
            end_time=window.end_time,
        )

    def _link(self, epic_id: int, subtask_id: int) -> None:
        epic = self._epics[epic_id]
        self._epics[epic_id] = replace(epic, subtask_ids=epic.subtask_ids + (subtask_id,))

    def _unlink(self, epic_id: int, subtask_id: int) -> None:
        epic = self._epics.get(epic_id)
        if epic is None:
            return
        remaining = tuple(sid for sid in epic.subtask_ids if sid != subtask_id)
        self._epics[epic_id] = replace(epic, subtask_ids=remaining)

    # -------------------- create --------------------

    @_locked
    def create_task(self, task: Task) -> int:
        """Insert a new task and return its id.

        Raises:
            ValidationError: If task is missing, its name is empty or taken
                by another task, or a supplied id is invalid or in use
            ScheduleConflictError: If its time window is already occupied
        """
        validate_entity(task, Task, "Task")
        validate_name(task.name, "Task", task.id)
        supplied = self._supplied_id(task)
        validate_unique_name(task.name, supplied, self._tasks.values())
        self.slots.validate(task)

        task = task.with_id(self._assign_id(supplied))
        self._tasks[task.id] = task
        self.slots.reserve(task)
        logger.debug("Created task %s (%s)", task.id, task.name)
        self._after_change()
        return task.id

    @_locked
    def create_epic(self, epic: Epic) -> int:
        """Insert a new epic with no subtasks and status NEW; return its id."""
        validate_entity(epic, Epic, "Epic")
        validate_name(epic.name, "Epic", epic.id)
        supplied = self._supplied_id(epic)

        entity_id = self._assign_id(supplied)
        self._epics[entity_id] = Epic(id=entity_id, name=epic.name, description=epic.description)
        logger.debug("Created epic %s (%s)", entity_id, epic.name)
        self._after_change()
        return entity_id

    @_locked
    def create_subtask(self, subtask: SubTask) -> int:
        """Insert a new subtask under an existing epic and return its id.

        Raises:
            ValidationError: If subtask is missing, unnamed, or would be its
                own epic
            NotFoundError: If the referenced epic does not exist
            ScheduleConflictError: If its time window is already occupied
        """
        validate_entity(subtask, SubTask, "SubTask")
        validate_name(subtask.name, "SubTask", subtask.id)
        supplied = self._supplied_id(subtask)
        candidate = self._next_id if supplied is None else supplied
        if candidate == subtask.epic_id:
            raise ValidationError(
                "SubTask cannot be its own epic",
                entity_id=candidate,
                name=subtask.name,
            )
        if subtask.epic_id not in self._epics:
            raise NotFoundError(
                f"Epic {subtask.epic_id} does not exist",
                entity_id=subtask.epic_id,
            )
        self.slots.validate(subtask)

        subtask = subtask.with_id(self._assign_id(supplied))
        self._subtasks[subtask.id] = subtask
        self.slots.reserve(subtask)
        self._link(subtask.epic_id, subtask.id)
        self._refresh_epic(subtask.epic_id)
        logger.debug("Created subtask %s (%s) under epic %s", subtask.id, subtask.name, subtask.epic_id)
        self._after_change()
        return subtask.id

    # -------------------- read --------------------

    @_locked
    def get_task_by_id(self, task_id: int) -> Task | None:
        """Return the task with this id, or None if absent.

        Absence is reported as ``None`` rather than an exception or a
        wrapper object; an invalid id still raises ValidationError. The
        same contract holds for :meth:`get_epic_by_id` and
        :meth:`get_subtask_by_id`.
        """
        validate_positive_id(task_id)
        task = self._tasks.get(task_id)
        self.history.add(task)
        return task

    @_locked
    def get_epic_by_id(self, epic_id: int) -> Epic | None:
        """Return the epic with this id, or None if absent."""
        validate_positive_id(epic_id)
        epic = self._epics.get(epic_id)
        self.history.add(epic)
        return epic

    @_locked
    def get_subtask_by_id(self, subtask_id: int) -> SubTask | None:
        """Return the subtask with this id, or None if absent."""
        validate_positive_id(subtask_id)
        subtask = self._subtasks.get(subtask_id)
        self.history.add(subtask)
        return subtask

    @_locked
    def get_all_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    @_locked
    def get_all_epics(self) -> list[Epic]:
        return list(self._epics.values())

    @_locked
    def get_all_subtasks(self) -> list[SubTask]:
        return list(self._subtasks.values())

    @_locked
    def get_all_entities(self) -> list[Entity]:
        """Return one consistent snapshot of tasks, then epics, then subtasks."""
        return [*self._tasks.values(), *self._epics.values(), *self._subtasks.values()]

    @_locked
    def get_subtasks_by_epic_id(self, epic_id: int) -> list[SubTask]:
        """Return the epic's subtasks in the epic's list order.

        Raises:
            NotFoundError: If the epic does not exist
        """
        validate_positive_id(epic_id)
        epic = self._epics.get(epic_id)
        if epic is None:
            raise NotFoundError(f"Epic {epic_id} does not exist", entity_id=epic_id)
        return [self._subtasks[sid] for sid in epic.subtask_ids if sid in self._subtasks]

    @_locked
    def get_history(self) -> list[Entity]:
        """Return recently viewed entities, oldest first."""
        return self.history.get_history()

    @_locked
    def get_prioritized_tasks(self) -> list[Entity]:
        """Return every scheduled item ordered by start time, then id."""
        scheduled = [
            entity
            for entity in (*self._tasks.values(), *self._subtasks.values(), *self._epics.values())
            if entity.start_time is not None
        ]
        return sorted(scheduled, key=lambda entity: (entity.start_time, entity.id))

    # -------------------- update --------------------

    def _reschedule(self, old: Task | SubTask, new: Task | SubTask) -> None:
        """Move a slot reservation from ``old`` to ``new``, or leave it untouched."""
        self.slots.release(old)
        try:
            self.slots.validate(new)
        except ScheduleConflictError:
            self.slots.reserve(old)
            raise
        self.slots.reserve(new)

    @_locked
    def update_task(self, task: Task) -> None:
        """Replace a stored task with ``task``.

        Raises:
            ValidationError: If the task id is unknown, or the name is empty
                or taken by another task
            ScheduleConflictError: If the new time window is occupied
        """
        validate_entity(task, Task, "Task")
        if task.id not in self._tasks:
            raise ValidationError(f"Task {task.id} does not exist", entity_id=task.id, name=task.name)
        validate_name(task.name, "Task", task.id)
        validate_unique_name(task.name, task.id, self._tasks.values())

        self._reschedule(self._tasks[task.id], task)
        self._tasks[task.id] = task
        logger.debug("Updated task %s", task.id)
        self._after_change()

    @_locked
    def update_subtask(self, subtask: SubTask) -> None:
        """Replace a stored subtask, moving it between epics if needed.

        Raises:
            ValidationError: If the subtask id is unknown, the name is empty,
                or it would become its own epic
            NotFoundError: If the referenced epic does not exist
            ScheduleConflictError: If the new time window is occupied
        """
        validate_entity(subtask, SubTask, "SubTask")
        if subtask.id not in self._subtasks:
            raise ValidationError(
                f"SubTask {subtask.id} does not exist",
                entity_id=subtask.id,
                name=subtask.name,
            )
        validate_name(subtask.name, "SubTask", subtask.id)
        if subtask.id == subtask.epic_id:
            raise ValidationError("SubTask cannot be its own epic", entity_id=subtask.id, name=subtask.name)
        if subtask.epic_id not in self._epics:
            raise NotFoundError(f"Epic {subtask.epic_id} does not exist", entity_id=subtask.epic_id)

        old = self._subtasks[subtask.id]
        self._reschedule(old, subtask)
        self._subtasks[subtask.id] = subtask
        if old.epic_id != subtask.epic_id:
            self._unlink(old.epic_id, subtask.id)
            self._refresh_epic(old.epic_id)
            self._link(subtask.epic_id, subtask.id)
        self._refresh_epic(subtask.epic_id)
        logger.debug("Updated subtask %s", subtask.id)
        self._after_change()

    # -------------------- delete --------------------

    def _drop_subtask(self, subtask_id: int, *, detach: bool = True) -> bool:
        subtask = self._subtasks.pop(subtask_id, None)
        if subtask is None:
            return False
        self.slots.release(subtask)
        self.history.remove(subtask_id)
        if detach:
            self._unlink(subtask.epic_id, subtask_id)
            self._refresh_epic(subtask.epic_id)
        return True

    def _drop_all_subtasks(self) -> None:
        for subtask in self._subtasks.values():
            self.slots.release(subtask)
            self.history.remove(subtask.id)
        self._subtasks.clear()
        for epic_id, epic in list(self._epics.items()):
            self._epics[epic_id] = replace(epic, subtask_ids=())
            self._refresh_epic(epic_id)

    @_locked
    def delete_task_by_id(self, task_id: int) -> None:
        """Remove a task; a missing id is a no-op."""
        validate_positive_id(task_id)
        task = self._tasks.pop(task_id, None)
        if task is None:
            return
        self.slots.release(task)
        self.history.remove(task_id)
        logger.debug("Deleted task %s", task_id)
        self._after_change()

    @_locked
    def delete_subtask_by_id(self, subtask_id: int) -> None:
        """Remove a subtask and re-derive its epic; a missing id is a no-op."""
        validate_positive_id(subtask_id)
        if self._drop_subtask(subtask_id):
            logger.debug("Deleted subtask %s", subtask_id)
            self._after_change()

    @_locked
    def delete_epic_by_id(self, epic_id: int) -> None:
        """Remove an epic together with all of its subtasks.

        Raises:
            NotFoundError: If the epic does not exist
        """
        validate_positive_id(epic_id)
        epic = self._epics.get(epic_id)
        if epic is None:
            raise NotFoundError(f"Epic {epic_id} does not exist", entity_id=epic_id)

        for subtask_id in epic.subtask_ids:
            self._drop_subtask(subtask_id, detach=False)
        del self._epics[epic_id]
        self.history.remove(epic_id)
        logger.debug("Deleted epic %s with %d subtasks", epic_id, len(epic.subtask_ids))
        self._after_change()

    @_locked
    def delete_all_tasks(self) -> None:
        for task in self._tasks.values():
            self.slots.release(task)
            self.history.remove(task.id)
        self._tasks.clear()
        self._after_change()

    @_locked
    def delete_all_subtasks(self) -> None:
        """Remove every subtask; all epics fall back to NEW with no window."""
        self._drop_all_subtasks()
        self._after_change()

    @_locked
    def delete_all_epics(self) -> None:
        """Remove every epic and, with them, every subtask."""
        self._drop_all_subtasks()
        for epic_id in self._epics:
            self.history.remove(epic_id)
        self._epics.clear()
        self._after_change()

    # -------------------- bulk restore --------------------

    def _reset(self) -> None:
        self._tasks.clear()
        self._epics.clear()
        self._subtasks.clear()
        self.history.clear()
        self.slots.clear()
        self._next_id = 1

    def _insert_restored(self, entity: Entity) -> None:
        validate_positive_id(entity.id)
        if self._id_in_use(entity.id):
            raise ValidationError(f"Duplicate id {entity.id}", entity_id=entity.id, name=entity.name)

        if isinstance(entity, Task):
            self._tasks[entity.id] = entity
            self.slots.reserve(entity)
        elif isinstance(entity, Epic):
            self._epics[entity.id] = entity
        elif isinstance(entity, SubTask):
            self._subtasks[entity.id] = entity
            self.slots.reserve(entity)
        else:
            raise ValidationError(f"Cannot restore {type(entity).__name__}")

    def _rebuild_links(self) -> None:
        links: dict[int, list[int]] = {epic_id: [] for epic_id in self._epics}
        for subtask in self._subtasks.values():
            if subtask.epic_id not in links:
                raise ValidationError(
                    f"SubTask {subtask.id} references missing epic {subtask.epic_id}",
                    entity_id=subtask.id,
                    name=subtask.name,
                )
            links[subtask.epic_id].append(subtask.id)

        for epic_id, subtask_ids in links.items():
            self._epics[epic_id] = replace(self._epics[epic_id], subtask_ids=tuple(subtask_ids))
            self._refresh_epic(epic_id)

    @_locked
    def restore(self, entities: Iterable[Entity]) -> None:
        """Fill an empty store with previously persisted entities.

        Create-time checks are skipped. Every epic's subtask list is rebuilt
        from the subtasks' ``epic_id`` fields and re-derived, and the id
        counter moves one past the highest restored id.

        The restore is all or nothing: on failure the store is left empty
        with its id counter back at 1. The change hook is not run.

        Raises:
            ValidationError: If the store is not empty, an id is invalid or
                repeated, or a subtask references a missing epic
        """
        if self._tasks or self._epics or self._subtasks:
            raise ValidationError("Restore needs an empty store")

        try:
            for entity in entities:
                self._insert_restored(entity)
            self._rebuild_links()
        except Exception:
            self._reset()
            raise

        self._next_id = max((*self._tasks, *self._epics, *self._subtasks), default=0) + 1
