# src/reminder_bot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The service and the scheduler depend on Protocols instead of concrete
implementations. This keeps connectors and storage swappable and makes
testing easier.
"""

from datetime import datetime
from typing import Awaitable, Protocol

from ..tasks.task_models import DispatchResult, NewTask, Task


class TaskRepo(Protocol):
    """Narrow view of the task store used by the service and the scheduler."""

    def save(self, task: NewTask) -> int: ...
    def find_due(self, cutoff: datetime, limit: int | None = None) -> list[Task]: ...
    def delete(self, task_id: int) -> None: ...


class TaskDispatcher(Protocol):
    """
    Connector-side port: how the scheduler delivers a reminder.

    The connector decides how to interpret `destination` (Matrix room id,
    console, ...) and how to render the text. It reports failure either by
    returning DispatchResult(ok=False, ...) or by raising.
    """

    def send_text(self, *, destination: str, text: str) -> Awaitable[DispatchResult]: ...
