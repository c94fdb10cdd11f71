# src/reminder_bot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- console REPL in the main thread (optional),
- Matrix connector in a background thread (optional).

Exactly one reminder scheduler runs per process: inside the Matrix connector
when Matrix is enabled, otherwise on its own background thread for the console.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import (
    ConsoleDispatcher,
    SchedulerBackgroundRunner,
    run_console_loop,
    start_scheduler_in_background,
)
from ..connectors.matrix_connector import MatrixBackgroundRunner, start_matrix_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def start_background_connectors(
    state,
) -> tuple[MatrixBackgroundRunner | None, SchedulerBackgroundRunner | None]:
    """
    Start Matrix (which owns the scheduler) if enabled and logged in;
    otherwise run the scheduler for the console on its own thread.
    """
    settings = state.settings
    console_dispatcher = ConsoleDispatcher() if settings.console_enabled else None

    matrix_runner: MatrixBackgroundRunner | None = None
    scheduler_runner: SchedulerBackgroundRunner | None = None

    if settings.matrix_enabled:
        matrix_runner = start_matrix_in_background(state, local=console_dispatcher)
        if matrix_runner is None:
            logger.warning("Matrix is not serving; reminders go to the console only.")
    if matrix_runner is None and console_dispatcher is not None:
        scheduler_runner = start_scheduler_in_background(state, console_dispatcher)

    return matrix_runner, scheduler_runner


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)

    matrix_runner, scheduler_runner = start_background_connectors(state)

    if matrix_runner is None and scheduler_runner is None:
        logger.error("No connector could be started; reminders would never be delivered.")
        return

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            # The REPL handles Ctrl+C itself (KeyboardInterrupt from input()).
            run_console_loop(state)
            stop_main.set()
        else:
            try:
                signal.signal(signal.SIGINT, _handle_signal)
                signal.signal(signal.SIGTERM, _handle_signal)
            except (ValueError, OSError, AttributeError):
                # Some platforms may not support SIGTERM, etc.
                pass
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        if matrix_runner is not None:
            matrix_runner.stop()
            matrix_runner.join(timeout=10.0)
        if scheduler_runner is not None:
            scheduler_runner.stop()
            scheduler_runner.join(timeout=10.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
