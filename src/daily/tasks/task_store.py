# src/daily/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator
from datetime import datetime
from datetime import time as dtime
from pathlib import Path
from typing import Any

from ..errors import StoreReadError, StoreWriteError
from .task_models import Task, TaskCategory, format_time_of_day, new_task_id, parse_time_of_day

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"
_LAST_RESET_KEY = "last_reset_at"


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    db_path=":memory:" selects a shared-cache in-memory database. A keeper
    connection stays open for the lifetime of the store so the data survives
    between the short-lived per-call connections.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._keeper: sqlite3.Connection | None = None
        if str(db_path) == IN_MEMORY:
            self._target = f"file:daily-{new_task_id()}?mode=memory&cache=shared"
            self._uri = True
            self._keeper = sqlite3.connect(self._target, uri=True, check_same_thread=False)
        else:
            path = Path(db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._target = str(path)
            self._uri = False
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except StoreReadError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self.location, total)

    @property
    def location(self) -> str:
        return IN_MEMORY if self._keeper is not None else self._target

    def close(self) -> None:
        """Release the keeper connection of an in-memory store (no-op for files)."""
        if self._keeper is not None:
            with contextlib.suppress(sqlite3.Error):
                self._keeper.close()
            self._keeper = None

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._target, timeout=30.0, uri=self._uri)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    def _configure_conn(self, conn: sqlite3.Connection) -> None:
        if self._uri:
            return
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _reading(self, what: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreReadError(f"{what}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreReadError(f"{what}: {e}") from e
        finally:
            conn.close()

    @contextlib.contextmanager
    def _writing(self, what: str) -> Iterator[sqlite3.Connection]:
        """One transaction: commit on success, roll back everything on failure."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreWriteError(f"{what}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise StoreWriteError(f"{what}: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._writing("ensure schema") as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    category TEXT NOT NULL DEFAULT 'required',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    scheduled_time TEXT,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS app_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("sort_order", "INTEGER NOT NULL DEFAULT 0")
            add_col("category", "TEXT NOT NULL DEFAULT 'required'")
            add_col("is_completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("scheduled_time", "TEXT")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_category_done ON tasks(category, is_completed)"
            )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            order=int(row["sort_order"] or 0),
            category=TaskCategory.from_db(row["category"]),
            is_completed=bool(row["is_completed"]),
            created_at=float(row["created_at"] or 0.0),
            scheduled_time=parse_time_of_day(row["scheduled_time"]),
        )

    def _select(self, what: str, where: str = "", params: tuple[Any, ...] = ()) -> list[Task]:
        sql = "SELECT * FROM tasks"
        if where:
            sql += f" WHERE {where}"
        sql += (
            " ORDER BY CASE category WHEN 'required' THEN 0 ELSE 1 END,"
            " sort_order ASC, created_at ASC"
        )
        with self._reading(what) as conn:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]

    # ---- public API: queries ----

    def count_tasks(
        self, *, category: TaskCategory | None = None, completed: bool | None = None
    ) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        if category is not None:
            clauses.append("category = ?")
            params.append(category.value)
        if completed is not None:
            clauses.append("is_completed = ?")
            params.append(int(completed))
        sql = "SELECT COUNT(*) FROM tasks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        with self._reading("count_tasks") as conn:
            (n,) = conn.execute(sql, params).fetchone()
            return int(n)

    def list_tasks(
        self, *, category: TaskCategory | None = None, completed: bool | None = None
    ) -> list[Task]:
        clauses: list[str] = []
        params: list[Any] = []
        if category is not None:
            clauses.append("category = ?")
            params.append(category.value)
        if completed is not None:
            clauses.append("is_completed = ?")
            params.append(int(completed))
        return self._select("list_tasks", " AND ".join(clauses), tuple(params))

    def get_all_tasks(self) -> list[Task]:
        return self._select("get_all_tasks")

    def get_incomplete_tasks(self) -> list[Task]:
        return self._select("get_incomplete_tasks", "is_completed = 0")

    def get_task_by_id(self, task_id: str) -> Task | None:
        if not task_id:
            return None
        with self._reading("get_task_by_id") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    def next_order(self, category: TaskCategory) -> int:
        with self._reading("next_order") as conn:
            (top,) = conn.execute(
                "SELECT MAX(sort_order) FROM tasks WHERE category = ?", (category.value,)
            ).fetchone()
            return int(top or 0) + 1

    def get_last_reset_at(self) -> datetime | None:
        with self._reading("get_last_reset_at") as conn:
            row = conn.execute(
                "SELECT value FROM app_meta WHERE key = ?", (_LAST_RESET_KEY,)
            ).fetchone()
        if not row:
            return None
        try:
            return datetime.fromisoformat(row["value"])
        except ValueError:
            logger.warning("Ignoring malformed last_reset_at=%r", row["value"])
            return None

    # ---- public API: mutations ----

    def add_task(
        self,
        *,
        title: str,
        category: TaskCategory = TaskCategory.REQUIRED,
        scheduled_time: dtime | None = None,
        order: int | None = None,
        is_completed: bool = False,
        task_id: str | None = None,
    ) -> Task:
        if order is None:
            order = self.next_order(category)

        task = Task(
            id=task_id or new_task_id(),
            title=(title or "").strip(),
            order=int(order),
            category=category,
            is_completed=bool(is_completed),
            created_at=time.time(),
            scheduled_time=scheduled_time,
        )

        with self._writing("add_task") as conn:
            conn.execute(
                """
                INSERT INTO tasks(id, title, sort_order, category, is_completed, scheduled_time, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.order,
                    task.category.value,
                    int(task.is_completed),
                    format_time_of_day(task.scheduled_time),
                    task.created_at,
                ),
            )
        logger.debug(
            "Task added id=%s category=%s order=%s scheduled=%s",
            task.id,
            task.category.value,
            task.order,
            format_time_of_day(task.scheduled_time),
        )
        return task

    def update_completion(self, task_id: str, is_completed: bool) -> bool:
        """
        Set is_completed on one task.

        Returns True only if a row actually changed; setting a task to its
        current value is a no-op and performs no write.
        """
        with self._writing("update_completion") as conn:
            cur = conn.execute(
                "UPDATE tasks SET is_completed = ? WHERE id = ? AND is_completed != ?",
                (int(is_completed), str(task_id), int(is_completed)),
            )
            return cur.rowcount == 1

    def update_task_fields(
        self,
        task_id: str,
        *,
        title: str | None = None,
        scheduled_time: dtime | None = None,
        clear_scheduled_time: bool = False,
        order: int | None = None,
    ) -> None:
        fields: list[str] = []
        params: list[Any] = []

        if title is not None:
            fields.append("title = ?")
            params.append(title.strip())

        if clear_scheduled_time:
            fields.append("scheduled_time = NULL")
        elif scheduled_time is not None:
            fields.append("scheduled_time = ?")
            params.append(format_time_of_day(scheduled_time))

        if order is not None:
            fields.append("sort_order = ?")
            params.append(int(order))

        if not fields:
            return

        params.append(str(task_id))
        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"
        with self._writing("update_task_fields") as conn:
            conn.execute(sql, params)

    def bulk_set_completion(self, is_completed: bool) -> int:
        with self._writing("bulk_set_completion") as conn:
            cur = conn.execute("UPDATE tasks SET is_completed = ?", (int(is_completed),))
            return int(cur.rowcount)

    def reset_all_completion(self, reset_at: datetime) -> int:
        """
        Mark every task incomplete and record reset_at, in one transaction.

        Either all tasks flip and last_reset_at moves, or nothing changes.
        Returns the number of tasks that were completed before the reset.
        """
        with self._writing("reset_all_completion") as conn:
            cur = conn.execute("UPDATE tasks SET is_completed = 0 WHERE is_completed != 0")
            flipped = int(cur.rowcount)
            conn.execute(
                "INSERT INTO app_meta(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (_LAST_RESET_KEY, reset_at.isoformat()),
            )
            return flipped

    def delete_task(self, task_id: str) -> bool:
        with self._writing("delete_task") as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
            return cur.rowcount == 1

    def delete_all_tasks(self) -> int:
        with self._writing("delete_all_tasks") as conn:
            cur = conn.execute("DELETE FROM tasks")
            return int(cur.rowcount)
