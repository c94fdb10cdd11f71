# tests/test_task_parser.py

from __future__ import annotations

from datetime import datetime

import pytest

from reminder_bot.tasks.task_errors import FormatError
from reminder_bot.tasks.task_parser import parse_task_text, truncate_to_minute


def test_parse_valid_text() -> None:
    parsed = parse_task_text("17.05.2030 10:30 buy milk and bread")
    assert parsed.due_at == datetime(2030, 5, 17, 10, 30)
    assert parsed.body == "buy milk and bread"


def test_body_is_kept_verbatim() -> None:
    parsed = parse_task_text("01.01.2031 00:00  two leading spaces\nsecond line")
    assert parsed.body == " two leading spaces\nsecond line"


@pytest.mark.parametrize(
    "text",
    [
        "17/05/2030 10:30 slashes",
        "17.05.2030 10-30 dash in time",
        "7.05.2030 10:30 no padding",
        "17.05.30 10:30 short year",
        "aa.05.2030 10:30 letters",
        "17.05.2030 10:30",
        "17.05.2030T10:30 no space",
        "remind me tomorrow",
        "",
    ],
)
def test_structural_mismatch(text: str) -> None:
    with pytest.raises(FormatError) as exc:
        parse_task_text(text)
    assert exc.value.reason == "mismatch"


@pytest.mark.parametrize(
    "text",
    [
        "31.02.2030 10:00 x",
        "31.04.2030 10:00 x",
        "29.02.2031 10:00 not a leap year",
        "10.10.2030 24:00 x",
        "10.10.2030 12:60 x",
        "00.10.2030 12:00 x",
    ],
)
def test_invalid_calendar_date(text: str) -> None:
    with pytest.raises(FormatError) as exc:
        parse_task_text(text)
    assert exc.value.reason == "invalid_date"


def test_leap_day_is_accepted() -> None:
    assert parse_task_text("29.02.2032 08:00 leap").due_at == datetime(2032, 2, 29, 8, 0)


@pytest.mark.parametrize("text", ["17.05.2030 10:30 ", "17.05.2030 10:30    "])
def test_empty_body_rejected(text: str) -> None:
    with pytest.raises(FormatError) as exc:
        parse_task_text(text)
    assert exc.value.reason == "empty_body"


def test_truncate_to_minute() -> None:
    assert truncate_to_minute(datetime(2030, 1, 1, 9, 59, 59, 999999)) == datetime(2030, 1, 1, 9, 59)
