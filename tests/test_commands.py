# tests/test_commands.py

from __future__ import annotations

from reminder_bot.cli.commands import CommandRegistry, handle_message


def test_command_registry_routes_and_passes_destination(state) -> None:
    reg = CommandRegistry()
    seen: list[str] = []

    def h(state, args, destination):
        seen.append(destination)
        return "h:" + ",".join(args)

    reg.register("a", h, "a", aliases=["alias"])

    assert reg.handle(state, "/a x y", "!room:a") == "h:x,y"
    assert reg.handle(state, "/ALIAS", "!room:b") == "h:"
    assert seen == ["!room:a", "!room:b"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello", "d") is None
    assert "Unknown command" in (reg.handle(state, "/nope", "d") or "")
    assert "Empty command" in (reg.handle(state, "/", "d") or "")


def test_start_and_notify(state) -> None:
    assert "/notify" in handle_message(state, "/start", "d")
    assert "dd.mm.yyyy hh:mm" in handle_message(state, "/notify", "d")
    assert "/list" in handle_message(state, "/help", "d")


def test_plain_text_creates_reminder(state) -> None:
    # fixed clock: 17.05.2030 10:00:15
    reply = handle_message(state, "17.05.2030 12:30 call mom", "!room:a")
    assert reply == "Reminder created for 17.05.2030 12:30"

    listing = handle_message(state, "/list", "!room:a")
    assert "17.05.2030 12:30 call mom" in listing
    assert handle_message(state, "/list", "!room:other") == "No pending reminders."
    assert "Pending reminders: 1" in handle_message(state, "/status", "!room:a")


def test_rejections_are_reported(state) -> None:
    assert "Wrong format" in handle_message(state, "tomorrow call mom", "d")
    assert "past" in handle_message(state, "01.01.2000 00:00 old task", "d")
    assert state.task_store.count_tasks() == 0
