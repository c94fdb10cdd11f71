# src/reminder_bot/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from .task_errors import StoreError
from .task_models import NewTask, Task

logger = logging.getLogger(__name__)

# Minute-precision ISO text sorts chronologically, so due-time comparisons
# can be done directly in SQL.
DUE_AT_FORMAT = "%Y-%m-%dT%H:%M"


def _due_to_str(dt: datetime) -> str:
    return dt.strftime(DUE_AT_FORMAT)


def _str_to_due(s: str) -> datetime:
    return datetime.strptime(s, DUE_AT_FORMAT)


class TaskStore:
    """
    SQLite store for pending reminders.

    One row per pending reminder: (id, destination, due_at, body).
    Rows are inserted on creation and deleted after delivery; nothing else
    is persisted and rows are never updated.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except StoreError:
            total = -1
        logger.info("TaskStore ready db=%s pending=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreError(f"cannot open task db {self._db_path}: {e}") from e
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    destination TEXT NOT NULL,
                    due_at TEXT NOT NULL,
                    body TEXT NOT NULL
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_destination ON tasks(destination)")

            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"schema setup failed for {self._db_path}: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            destination=str(row["destination"]),
            due_at=_str_to_due(row["due_at"]),
            body=str(row["body"]),
        )

    def _rows_to_tasks(self, rows: list[sqlite3.Row]) -> list[Task]:
        """
        Decode rows, skipping (and logging) rows that cannot be decoded.

        A row edited by hand with a malformed due_at must not keep every
        other reminder from being delivered.
        """
        out: list[Task] = []
        for row in rows:
            try:
                out.append(self._row_to_task(row))
            except (TypeError, ValueError) as e:
                logger.error("Skipping undecodable task row id=%s in %s: %s", row["id"], self._db_path, e)
        return out

    # ---- public API ----

    def count_tasks(self) -> int:
        try:
            conn = self._get_conn()
            try:
                (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
                return int(n)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"count failed: {e}") from e

    def save(self, task: NewTask) -> int:
        if not task.destination:
            raise ValueError("destination is required")
        if not task.body or not task.body.strip():
            raise ValueError("body is required")

        try:
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    "INSERT INTO tasks(destination, due_at, body) VALUES (?, ?, ?)",
                    (task.destination, _due_to_str(task.due_at), task.body),
                )
                conn.commit()
                rowid = cur.lastrowid
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"save failed destination={task.destination}: {e}") from e

        if rowid is None:
            raise StoreError("SQLite did not return lastrowid for tasks insert")
        task_id = int(rowid)
        logger.debug("Task saved id=%s destination=%s due_at=%s", task_id, task.destination, task.due_at)
        return task_id

    def find_due(self, cutoff: datetime, limit: int | None = None) -> list[Task]:
        """Return tasks with due_at <= cutoff, oldest first."""
        sql = "SELECT * FROM tasks WHERE due_at <= ? ORDER BY due_at ASC, id ASC"
        params: tuple = (_due_to_str(cutoff),)
        if limit is not None and limit > 0:
            sql += " LIMIT ?"
            params += (int(limit),)

        try:
            conn = self._get_conn()
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"find_due failed cutoff={cutoff}: {e}") from e
        return self._rows_to_tasks(rows)

    def delete(self, task_id: int) -> None:
        """Delete a task. Deleting an id that no longer exists is a no-op."""
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
                conn.commit()
                removed = cur.rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"delete failed task_id={task_id}: {e}") from e

        if removed == 0:
            logger.debug("Task %s already deleted", task_id)

    def list_tasks_for_destination(self, destination: str, limit: int = 20) -> list[Task]:
        """Pending reminders for one destination, soonest first."""
        if not destination:
            return []
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute(
                    """
                    SELECT *
                    FROM tasks
                    WHERE destination = ?
                    ORDER BY due_at ASC, id ASC
                        LIMIT ?
                    """,
                    (destination, int(limit)),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"list failed destination={destination}: {e}") from e
        return self._rows_to_tasks(rows)
