# src/reminder_bot/tasks/task_parser.py

from __future__ import annotations

"""
Reminder text parser.

Accepted grammar (exact, no permissive date parsing):

    DD.MM.YYYY HH:MM <body>

Zero-padded day/month, 4-digit year, 24-hour zero-padded time, exactly one
space, then the body verbatim. The parser never looks at the clock; checking
that the time lies in the future is the service's job.
"""

import re
from datetime import datetime

from .task_errors import FormatError
from .task_models import ParsedTask

DATE_FORMAT = "%d.%m.%Y %H:%M"
FORMAT_HINT = "dd.mm.yyyy hh:mm your task"

TASK_REGEX = re.compile(r"([0-9]{2}\.[0-9]{2}\.[0-9]{4} [0-9]{2}:[0-9]{2}) (.*)", re.DOTALL)


def truncate_to_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


def parse_task_text(text: str) -> ParsedTask:
    """
    Parse raw user text into (due_at, body).

    Raises FormatError on a grammar mismatch, a non-existent date/time
    (31.02.2030, 24:00, ...) or an empty body.
    """
    m = TASK_REGEX.fullmatch(text or "")
    if not m:
        raise FormatError("mismatch", text)

    stamp, body = m.group(1), m.group(2)

    try:
        due_at = datetime.strptime(stamp, DATE_FORMAT)
    except ValueError as e:
        raise FormatError("invalid_date", text) from e

    if not body.strip():
        raise FormatError("empty_body", text)

    return ParsedTask(due_at=due_at, body=body)
