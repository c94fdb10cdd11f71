# src/reminder_bot/tasks/task_errors.py

from __future__ import annotations

from datetime import datetime


class TaskError(Exception):
    """Base class for reminder task errors."""


class FormatError(TaskError):
    """
    Input text is not "DD.MM.YYYY HH:MM body".

    reason:
    - "mismatch": the text does not match the grammar at all
    - "invalid_date": the grammar matches but the date/time does not exist
    - "empty_body": nothing but whitespace after the time
    """

    def __init__(self, reason: str, text: str = "") -> None:
        super().__init__(f"wrong reminder format ({reason}): {text!r}")
        self.reason = reason
        self.text = text


class ExpiredError(TaskError):
    """Parsed due time is not after the current minute."""

    def __init__(self, due_at: datetime, now: datetime) -> None:
        super().__init__(f"due time {due_at:%d.%m.%Y %H:%M} is not in the future (now {now:%d.%m.%Y %H:%M})")
        self.due_at = due_at
        self.now = now


class StoreError(TaskError):
    """Persistence failure (save / query / delete)."""


class DispatchError(TaskError):
    """Delivery was not acknowledged by the transport."""

    def __init__(self, destination: str, error_code: str | int | None, description: str | None = None) -> None:
        super().__init__(f"dispatch to {destination} failed code={error_code} {description or ''}".rstrip())
        self.destination = destination
        self.error_code = error_code
        self.description = description
