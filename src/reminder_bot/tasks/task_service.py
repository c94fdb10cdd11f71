# src/reminder_bot/tasks/task_service.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..core.ports import TaskRepo
from .task_errors import ExpiredError, FormatError
from .task_models import CreateResult, CreateStatus, NewTask, Task
from .task_parser import FORMAT_HINT, parse_task_text, truncate_to_minute

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class TaskService:
    """
    Creation side of the reminder engine plus the texts of the inbound
    command surface (greeting, format help, create result).

    Sending replies is up to the connector; the service never talks to a
    transport.
    """

    def __init__(self, repo: TaskRepo, *, clock: Clock = datetime.now) -> None:
        self._repo = repo
        self._clock = clock

    def greet(self, destination: str) -> str:
        logger.debug("greet destination=%s", destination)
        return "Hello there!\nHow to create a reminder - /notify"

    def explain_format(self, destination: str) -> str:
        logger.debug("explain_format destination=%s", destination)
        return f'To create a reminder send a message in the format "{FORMAT_HINT}"'

    def create_task(self, destination: str, text: str, now: datetime | None = None) -> CreateResult:
        """
        Parse `text` and persist a reminder for `destination`.

        - FormatError / ExpiredError are returned inside the result (nothing saved)
        - StoreError propagates to the caller

        `now` defaults to the injected clock. The comparison is done at minute
        granularity, the same way the scheduler decides what is due, so a
        reminder for the current minute is rejected.
        """
        if now is None:
            now = self._clock()

        try:
            parsed = parse_task_text(text)
        except FormatError as e:
            logger.info("Rejected reminder destination=%s reason=%s", destination, e.reason)
            return CreateResult(status=CreateStatus.FORMAT_ERROR, error=e)

        current_minute = truncate_to_minute(now)
        if parsed.due_at <= current_minute:
            err = ExpiredError(parsed.due_at, now)
            logger.info("Rejected expired reminder destination=%s due_at=%s", destination, parsed.due_at)
            return CreateResult(status=CreateStatus.EXPIRED, error=err)

        new_task = NewTask(destination=destination, due_at=parsed.due_at, body=parsed.body)
        task_id = self._repo.save(new_task)
        task = Task(id=task_id, destination=destination, due_at=parsed.due_at, body=parsed.body)

        logger.info("Reminder %s created destination=%s due_at=%s", task_id, destination, parsed.due_at)
        return CreateResult(status=CreateStatus.CREATED, task=task)

    @staticmethod
    def describe_result(result: CreateResult) -> str:
        if result.status == CreateStatus.CREATED and result.task is not None:
            return f"Reminder created for {result.task.due_at:%d.%m.%Y %H:%M}"
        if result.status == CreateStatus.EXPIRED:
            return "Reminder time is already in the past"
        return "Wrong format, check /notify"
