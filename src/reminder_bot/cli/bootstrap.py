# src/reminder_bot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the task store and the service into AppState,
- builds schedulers for whichever dispatcher a connector provides.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import TaskDispatcher
from ..core.state import AppState
from ..tasks.task_scheduler import TaskScheduler
from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path)
    return AppState(
        settings=settings,
        task_store=store,
        service=TaskService(store),
    )


def create_scheduler(state: AppState, dispatcher: TaskDispatcher) -> TaskScheduler:
    settings = state.settings
    scheduler = TaskScheduler(
        state.task_store,
        dispatcher,
        interval_seconds=getattr(settings, "scan_interval_seconds", 30.0),
        dispatch_timeout_seconds=getattr(settings, "dispatch_timeout_seconds", None),
        batch_limit=getattr(settings, "scan_batch_limit", None),
    )
    logger.debug("Scheduler built for %s", type(dispatcher).__name__)
    return scheduler
