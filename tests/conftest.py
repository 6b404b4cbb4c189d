"""Pytest configuration and fixtures for tasktrack tests."""

import pytest
import tempfile
from pathlib import Path
from datetime import datetime, timedelta

from tasktrack.models import Epic, SubTask, Task, TaskStatus
from tasktrack.store import EntityStore


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def base_time():
    """Fixed wall-clock anchor for scheduled items."""
    return datetime(2026, 3, 2, 10, 0)


@pytest.fixture
def store():
    """Empty store with unbounded history."""
    return EntityStore()


@pytest.fixture
def populated_store(base_time):
    """Store holding one task and one epic with two subtasks.

    Ids: task 1, epic 2, subtasks 3 (NEW, 09:00-09:30) and 4 (DONE, 13:00-14:00).
    """
    s = EntityStore()
    s.create_task(Task(name="Buy milk", description="2% milk"))
    epic_id = s.create_epic(Epic(name="Move house", description="Q3 relocation"))
    s.create_subtask(
        SubTask(
            name="Pack boxes",
            epic_id=epic_id,
            start_time=base_time - timedelta(hours=1),
            duration=timedelta(minutes=30),
        )
    )
    s.create_subtask(
        SubTask(
            name="Load truck",
            epic_id=epic_id,
            status=TaskStatus.DONE,
            start_time=base_time + timedelta(hours=3),
            duration=timedelta(hours=1),
        )
    )
    return s
