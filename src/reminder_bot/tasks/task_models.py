# src/reminder_bot/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from .task_errors import TaskError


@dataclass(slots=True, frozen=True)
class ParsedTask:
    """Result of parsing "DD.MM.YYYY HH:MM body"."""

    due_at: datetime
    body: str


@dataclass(slots=True, frozen=True)
class NewTask:
    """A reminder that passed validation but has no store id yet."""

    destination: str
    due_at: datetime
    body: str


@dataclass(slots=True, frozen=True)
class Task:
    id: int
    destination: str
    due_at: datetime  # naive server-local time, minute precision
    body: str


class CreateStatus(StrEnum):
    CREATED = "created"
    FORMAT_ERROR = "format_error"
    EXPIRED = "expired"


@dataclass(slots=True, frozen=True)
class CreateResult:
    """
    Outcome of TaskService.create_task.

    Carries enough for the caller to compose the user-facing reply:
    the created task on success, or the rejection error otherwise.
    """

    status: CreateStatus
    task: Task | None = None
    error: TaskError | None = None

    @property
    def ok(self) -> bool:
        return self.status == CreateStatus.CREATED


@dataclass(slots=True, frozen=True)
class DispatchResult:
    """Delivery acknowledgement returned by a TaskDispatcher."""

    ok: bool
    error_code: str | int | None = None
    description: str | None = None

    @classmethod
    def success(cls) -> DispatchResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, error_code: str | int | None, description: str | None = None) -> DispatchResult:
        return cls(ok=False, error_code=error_code, description=description)


@dataclass(slots=True)
class ScanReport:
    cutoff: datetime
    delivered: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    delete_failed: list[int] = field(default_factory=list)
    query_failed: bool = False

    @property
    def due(self) -> int:
        return len(self.delivered) + len(self.failed) + len(self.delete_failed)
