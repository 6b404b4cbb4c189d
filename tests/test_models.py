"""Tests for typed entity models."""

import pytest
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta

from tasktrack.errors import ValidationError
from tasktrack.models import Epic, SubTask, Task, TaskKind, TaskStatus


class TestIdentity:
    """Test id-based equality and hashing."""

    def test_same_id_means_same_task(self):
        a = Task(id=1, name="A", description="first")
        b = Task(id=1, name="B", description="second", status=TaskStatus.DONE)
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_different_ids_differ(self):
        assert Task(id=1, name="A") != Task(id=2, name="A")

    def test_unassigned_ids_compare_by_identity(self):
        a = Task(name="A")
        b = Task(name="A")
        assert a == a
        assert a != b

    def test_different_kinds_never_equal(self):
        assert Task(id=1, name="A") != Epic(id=1, name="A")

    def test_records_are_immutable(self):
        task = Task(id=1, name="A")
        with pytest.raises(FrozenInstanceError):
            task.name = "B"


class TestTask:
    """Test task model behavior."""

    def test_defaults(self):
        task = Task(name="A")
        assert task.id is None
        assert task.status == TaskStatus.NEW
        assert task.description == ""
        assert task.kind == TaskKind.TASK

    def test_status_coerced_from_string(self):
        assert Task(name="A", status="DONE").status is TaskStatus.DONE

    def test_invalid_status(self):
        with pytest.raises(ValidationError, match="Invalid task status"):
            Task(name="A", status="BOGUS")

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError, match="Duration cannot be negative"):
            Task(name="A", duration=timedelta(minutes=-5))

    def test_end_time_derived(self):
        task = Task(name="A", start_time=datetime(2026, 3, 2, 10, 0), duration=timedelta(minutes=45))
        assert task.end_time == datetime(2026, 3, 2, 10, 45)

    def test_end_time_absent_without_both_fields(self):
        assert Task(name="A", start_time=datetime(2026, 3, 2, 10, 0)).end_time is None
        assert Task(name="A", duration=timedelta(minutes=5)).end_time is None

    def test_with_id_returns_new_record(self):
        task = Task(name="A")
        assigned = task.with_id(7)
        assert assigned.id == 7
        assert task.id is None

    def test_from_dict_roundtrip(self):
        payload = {
            "id": 3,
            "type": "TASK",
            "name": "Ship feature",
            "description": "release",
            "status": "IN_PROGRESS",
            "start_time": "2026-03-02T10:00:00",
            "duration": 90,
            "end_time": "2026-03-02T11:30:00",
        }
        assert Task.from_dict(payload).to_dict() == payload

    def test_from_dict_requires_name(self):
        with pytest.raises(ValidationError, match="name"):
            Task.from_dict({"description": "x"})


class TestEpic:
    """Test epic model behavior."""

    def test_subtask_ids_deduplicated_in_order(self):
        epic = Epic(id=1, name="E", subtask_ids=(3, 2, 3, 5))
        assert epic.subtask_ids == (3, 2, 5)

    def test_from_dict_ignores_derived_fields(self):
        epic = Epic.from_dict({"name": "E", "status": "DONE", "subtask_ids": [4]})
        assert epic.status == TaskStatus.NEW
        assert epic.subtask_ids == ()

    def test_to_dict(self):
        epic = Epic(id=1, name="E", subtask_ids=(2,), status=TaskStatus.DONE)
        payload = epic.to_dict()
        assert payload["type"] == "EPIC"
        assert payload["subtask_ids"] == [2]
        assert payload["status"] == "DONE"
        assert payload["start_time"] is None


class TestSubTask:
    """Test subtask model behavior."""

    def test_from_dict_requires_epic_id(self):
        with pytest.raises(ValidationError, match="epic_id"):
            SubTask.from_dict({"name": "S"})

    def test_from_dict_rejects_bad_epic_id(self):
        with pytest.raises(ValidationError, match="Invalid id"):
            SubTask.from_dict({"name": "S", "epic_id": "abc"})

    def test_from_dict_roundtrip(self):
        payload = {
            "id": 4,
            "type": "SUBTASK",
            "name": "Pack",
            "description": "",
            "status": "NEW",
            "epic_id": 1,
            "start_time": None,
            "duration": None,
            "end_time": None,
        }
        assert SubTask.from_dict(payload).to_dict() == payload
