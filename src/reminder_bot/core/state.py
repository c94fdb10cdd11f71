# src/reminder_bot/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """Everything the connectors need, wired once in cli.bootstrap."""

    # Settings (or a SimpleNamespace in tests).
    settings: Any

    task_store: TaskStore
    service: TaskService

    # Guards command handling when several connectors run in parallel.
    lock: threading.Lock = field(default_factory=threading.Lock)
