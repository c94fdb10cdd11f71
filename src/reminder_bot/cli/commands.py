# src/reminder_bot/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..core.state import AppState
from ..tasks.task_errors import StoreError

CommandHandler = Callable[[AppState, list[str], str], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/start, /notify, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, destination: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, args, destination)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def handle_message(
    state: AppState,
    text: str,
    destination: str,
    *,
    now: datetime | None = None,
    commands: CommandRegistry | None = None,
) -> str:
    """
    Inbound entry point shared by all connectors.

    Slash commands go to the registry; any other text is treated as a
    reminder request ("dd.mm.yyyy hh:mm text").
    """
    text = (text or "").strip()
    reg = commands or registry

    reply = reg.handle(state, text, destination)
    if reply is not None:
        return reply

    try:
        result = state.service.create_task(destination, text, now=now)
    except StoreError:
        logger.exception("Failed to save reminder destination=%s", destination)
        return "Could not save the reminder, please try again later."

    return state.service.describe_result(result)


def cmd_start(state: AppState, args: list[str], destination: str) -> str:
    return state.service.greet(destination)


def cmd_notify(state: AppState, args: list[str], destination: str) -> str:
    return state.service.explain_format(destination)


def cmd_help(state: AppState, args: list[str], destination: str) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], destination: str) -> str:
    try:
        total = state.task_store.count_tasks()
    except StoreError:
        logger.exception("count_tasks failed")
        total = -1
    interval = getattr(state.settings, "scan_interval_seconds", None)
    return (
        "Status:\n"
        f"  Pending reminders: {total if total >= 0 else 'unknown'}\n"
        f"  Scan interval: {interval}s"
    )


def cmd_list(state: AppState, args: list[str], destination: str) -> str:
    """
    /list -> pending reminders for this chat
    """
    try:
        tasks = state.task_store.list_tasks_for_destination(destination)
    except StoreError:
        logger.exception("list_tasks_for_destination failed destination=%s", destination)
        return "Could not load reminders, please try again later."

    if not tasks:
        return "No pending reminders."
    lines = ["Pending reminders:"]
    for i, t in enumerate(tasks, start=1):
        lines.append(f"{i}. {t.due_at:%d.%m.%Y %H:%M} {t.body}")
    return "\n".join(lines)


registry.register("start", cmd_start, help_text="Say hello.")
registry.register("notify", cmd_notify, help_text="How to create a reminder.")
registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show pending reminder count and scan interval.")
registry.register("list", cmd_list, help_text="List pending reminders for this chat.")
