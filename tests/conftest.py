# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from reminder_bot.core.state import AppState
from reminder_bot.tasks.task_service import TaskService
from reminder_bot.tasks.task_store import TaskStore

from .fakes import FixedClock


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the scheduler.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        scan_interval_seconds=30.0,
        dispatch_timeout_seconds=None,
        scan_batch_limit=None,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, clock: FixedClock) -> AppState:
    """
    AppState wired with a real SQLite store and a fixed clock.

    NOTE: We keep the real TaskStore here because its correctness is part
    of what we want to test.
    """
    return AppState(
        settings=settings,
        task_store=store,
        service=TaskService(store, clock=clock),
    )
