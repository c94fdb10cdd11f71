# src/reminder_bot/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from dataclasses import dataclass

from nio import AsyncClient, MatrixRoom, RoomMessageText, RoomSendResponse

from ..cli.bootstrap import create_scheduler
from ..cli.commands import handle_message
from ..core.ports import TaskDispatcher
from ..core.state import AppState
from ..tasks.task_models import DispatchResult
from .console_connector import CONSOLE_DESTINATION
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

REMINDER_PREFIX = "Reminder:\n"
LOGIN_TIMEOUT_SECONDS = 60.0
SYNC_RETRY_SECONDS = 15.0


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


async def _send_text(client: AsyncClient, *, room_id: str, text: str):
    return await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


class MatrixDispatcher:
    """
    Delivers reminders to Matrix rooms; the destination is the room id.

    Reminders created from the console ("console" destination) are handed to
    `local` when a console connector runs in the same process.
    """

    def __init__(self, client: AsyncClient, *, local: TaskDispatcher | None = None) -> None:
        self._client = client
        self._local = local

    async def send_text(self, *, destination: str, text: str) -> DispatchResult:
        if destination == CONSOLE_DESTINATION:
            if self._local is None:
                return DispatchResult.failure("no_console", "console connector is not running")
            return await self._local.send_text(destination=destination, text=text)

        resp = await _send_text(self._client, room_id=destination, text=f"{REMINDER_PREFIX}{text}")
        if isinstance(resp, RoomSendResponse):
            return DispatchResult.success()
        return DispatchResult.failure(getattr(resp, "status_code", None), getattr(resp, "message", None) or repr(resp))


async def _serve_matrix(
    state: AppState,
    client: AsyncClient,
    stop_event: asyncio.Event,
    local: TaskDispatcher | None,
) -> None:
    """
    Matrix connector (async), after login:

    scheduler -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.

    A failing sync is retried every SYNC_RETRY_SECONDS; the scheduler keeps
    delivering meanwhile and only stops together with the connector.
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    # ---- Reminder scheduler ----
    scheduler = create_scheduler(state, MatrixDispatcher(client, local=local))
    scheduler.start()

    # ---- Message callback ----

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        # Ignore history from before startup.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return

        if event.sender == client.user_id:
            return

        if allowed_rooms is not None and room.room_id not in allowed_rooms:
            return

        body = (event.body or "").strip()
        if not body:
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)

        try:
            with state.lock:
                reply = handle_message(state, body, room.room_id)
        except Exception:
            logger.exception("Message handler crashed.")
            reply = "Internal error while handling a message."

        try:
            resp = await _send_text(client, room_id=room.room_id, text=reply)
            if not isinstance(resp, RoomSendResponse):
                logger.error("Failed to send reply to %s: %r", room.room_id, resp)
        except Exception:
            logger.exception("Failed to send reply to %s.", room.room_id)

    client.add_event_callback(message_callback, RoomMessageText)

    # ---- Sync loop ----

    full_state = True
    try:
        while not stop_event.is_set():
            try:
                await client.sync(timeout=30000, full_state=full_state)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Matrix sync failed; retrying in %.0fs.", SYNC_RETRY_SECONDS)
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(stop_event.wait(), timeout=SYNC_RETRY_SECONDS)
                continue

            if full_state:
                logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))
                full_state = False

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    finally:
        await scheduler.stop()

        with contextlib.suppress(Exception):
            await client.close()

        logger.info("Matrix connector stopped.")


@dataclass
class MatrixBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal Matrix stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_matrix_in_background(
    state: AppState,
    *,
    local: TaskDispatcher | None = None,
    login_timeout_seconds: float = LOGIN_TIMEOUT_SECONDS,
) -> MatrixBackgroundRunner | None:
    """
    Start Matrix connector (and the reminder scheduler with it) in a background
    thread, so the console REPL can run in parallel.

    Returns only after the login attempt finished. None means Matrix is not
    serving (disabled, misconfigured, login failed or timed out) and no
    scheduler was started, so the caller must run one itself.
    """
    settings = state.settings
    if not getattr(settings, "matrix_enabled", False):
        logger.info("Matrix connector disabled, not starting.")
        return None

    if not settings.matrix_homeserver or not settings.matrix_user_id:
        logger.error("Matrix is enabled but not configured (homeserver/user_id).")
        return None

    login_done = threading.Event()
    decision = threading.Lock()
    holder: dict[str, object] = {}

    def _accept_login(logged_in: bool) -> bool:
        # Once the caller gave up waiting, a late login must not start a
        # second scheduler next to the caller's fallback one.
        with decision:
            if holder.get("abandoned"):
                return False
            holder["logged_in"] = logged_in
            login_done.set()
            return logged_in

    async def _bootstrap(stop_event: asyncio.Event) -> None:
        try:
            client = await create_matrix_client(settings)
        except Exception:
            logger.exception("Matrix login crashed.")
            client = None

        if not _accept_login(client is not None):
            if client is not None:
                logger.warning("Matrix login finished after the caller gave up; closing.")
                with contextlib.suppress(Exception):
                    await client.close()
            return

        assert client is not None
        logger.info("Matrix client started (user=%s, homeserver=%s).", client.user_id, settings.matrix_homeserver)
        await _serve_matrix(state, client, stop_event, local)

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event

        try:
            loop.run_until_complete(_bootstrap(stop_event))
        finally:
            with contextlib.suppress(RuntimeError):
                loop.close()

    t = threading.Thread(target=runner, name="matrix-connector", daemon=True)
    t.start()

    login_done.wait(timeout=login_timeout_seconds)
    with decision:
        if "logged_in" not in holder:
            holder["abandoned"] = True
            logger.error("Matrix login did not finish within %.0fs.", login_timeout_seconds)
            return None

    if not holder["logged_in"]:
        logger.error("Matrix client creation failed; Matrix connector is not running.")
        return None

    loop = holder.get("loop")
    stop_event = holder.get("stop_event")
    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Matrix thread did not initialize properly.")
        return None

    logger.info("Matrix background thread started.")
    return MatrixBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
