# src/reminder_bot/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from dataclasses import dataclass
from datetime import datetime

from ..cli.bootstrap import create_scheduler
from ..cli.commands import handle_message
from ..core.state import AppState
from ..tasks.task_models import DispatchResult
from ..tasks.task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)

CONSOLE_DESTINATION = "console"


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


class ConsoleDispatcher:
    """Delivers reminders for the "console" destination by printing them."""

    async def send_text(self, *, destination: str, text: str) -> DispatchResult:
        if destination != CONSOLE_DESTINATION:
            return DispatchResult.failure("unknown_destination", f"console cannot deliver to {destination!r}")
        try:
            print(f"\n[{_ts_local()}] <<< Reminder:\n{text}\n", flush=True)
        except OSError as e:
            return DispatchResult.failure("stdout", str(e))
        return DispatchResult.success()


@dataclass
class SchedulerBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    scheduler: TaskScheduler

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.scheduler.request_stop)
        except RuntimeError:
            logger.debug("Failed to signal scheduler stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_scheduler_in_background(state: AppState, dispatcher) -> SchedulerBackgroundRunner | None:
    """
    Run the reminder scheduler on its own event loop in a background thread,
    so the blocking console REPL can run in the main thread.
    """
    scheduler = create_scheduler(state, dispatcher)
    ready = threading.Event()
    holder: dict[str, object] = {}

    async def _main() -> None:
        runner = scheduler.start()
        ready.set()
        with contextlib.suppress(asyncio.CancelledError):
            await runner

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        holder["loop"] = loop
        try:
            loop.run_until_complete(_main())
        finally:
            with contextlib.suppress(RuntimeError):
                loop.close()

    t = threading.Thread(target=runner, name="reminder-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    if not isinstance(loop, asyncio.AbstractEventLoop) or not scheduler.running:
        logger.error("Scheduler thread did not initialize properly.")
        return None

    logger.info("Scheduler background thread started.")
    return SchedulerBackgroundRunner(thread=t, loop=loop, scheduler=scheduler)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    print(f"[{_ts_local()}] [CONSOLE] Type /start or /notify. Use /exit to quit.\n")

    while True:
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            with state.lock:
                reply = handle_message(state, user_input, CONSOLE_DESTINATION)
        except Exception:
            logger.exception("Console message handler crashed.")
            reply = "Internal error while handling a message."

        print(f"[{_ts_local()}] {reply}")

    logger.info("Console connector finished.")
