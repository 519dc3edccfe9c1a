# src/tasklite/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from pathlib import Path

from ..errors import RemoteOperationError
from .task_models import StatusHistoryEntry, Task, TaskStatus, now_ms

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task document store.

    One row per task document, partitioned by owner. The status history is a
    JSON array in the row, appended with union semantics.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except RemoteOperationError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise RemoteOperationError(f"Task store unavailable: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("TaskStore query failed db=%s", self._db_path)
            raise RemoteOperationError(f"Task store error: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    owner_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    status_history TEXT NOT NULL DEFAULT '[]',
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (owner_id, id)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner_created ON tasks(owner_id, created_at)")
            conn.commit()

    @staticmethod
    def _history_to_str(history: list[StatusHistoryEntry]) -> str:
        return json.dumps([e.to_doc() for e in history], ensure_ascii=False)

    @staticmethod
    def _str_to_history_docs(s: str | None) -> list:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Corrupt status_history JSON; treating as empty.")
            return []
        return val if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task.from_doc(
            row["id"],
            {
                "name": row["name"],
                "statusHistory": self._str_to_history_docs(row["status_history"]),
                "createdAt": row["created_at"],
            },
        )

    # ---- public API ----

    def count_tasks(self, owner_id: str | None = None) -> int:
        with self._conn() as conn:
            if owner_id is None:
                (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            else:
                (n,) = conn.execute("SELECT COUNT(*) FROM tasks WHERE owner_id = ?", (owner_id,)).fetchone()
            return int(n)

    def create_task(self, owner_id: str, name: str, *, now: int | None = None) -> str:
        if not owner_id:
            raise ValueError("owner_id is required")
        if not name or not name.strip():
            raise ValueError("name is required")

        ts = now_ms() if now is None else int(now)
        task_id = uuid.uuid4().hex
        seed = [StatusHistoryEntry(status=TaskStatus.TO_DO.value, timestamp=ts)]

        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO tasks(owner_id, id, name, status_history, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (owner_id, task_id, name.strip(), self._history_to_str(seed), ts, ts),
            )
            conn.commit()

        logger.debug("Task created owner=%s id=%s", owner_id, task_id)
        return task_id

    def get_task(self, owner_id: str, task_id: str) -> Task | None:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE owner_id = ? AND id = ?",
                (owner_id, task_id),
            ).fetchone()
            return self._row_to_task(row) if row else None

    def list_tasks(self, owner_id: str) -> list[Task]:
        """All tasks of one owner, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE owner_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (owner_id,),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]

    def revision(self, owner_id: str) -> tuple[int, int]:
        """
        Cheap change marker for one owner's collection: (row count, last write).

        Writes always bump updated_at, so any create/append/rename changes it.
        """
        with self._conn() as conn:
            n, last = conn.execute(
                "SELECT COUNT(*), COALESCE(MAX(updated_at), 0) FROM tasks WHERE owner_id = ?",
                (owner_id,),
            ).fetchone()
            return int(n), int(last)

    def _bump(self, conn: sqlite3.Connection, owner_id: str) -> int:
        # updated_at must strictly increase per owner so revision() never misses a write.
        (last,) = conn.execute(
            "SELECT COALESCE(MAX(updated_at), 0) FROM tasks WHERE owner_id = ?",
            (owner_id,),
        ).fetchone()
        return max(now_ms(), int(last) + 1)

    def append_status(self, owner_id: str, task_id: str, entry: StatusHistoryEntry) -> bool:
        """
        Union-append an entry to the task's history.

        Returns False when a value-identical entry is already stored.
        """
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT status_history FROM tasks WHERE owner_id = ? AND id = ?",
                (owner_id, task_id),
            ).fetchone()
            if row is None:
                conn.rollback()
                raise RemoteOperationError(f"Task not found: {task_id}")

            docs = self._str_to_history_docs(row["status_history"])
            doc = entry.to_doc()
            if doc in docs:
                conn.rollback()
                logger.debug("append_status: duplicate entry ignored task_id=%s", task_id)
                return False

            docs.append(doc)
            conn.execute(
                "UPDATE tasks SET status_history = ?, updated_at = ? WHERE owner_id = ? AND id = ?",
                (json.dumps(docs, ensure_ascii=False), self._bump(conn, owner_id), owner_id, task_id),
            )
            conn.commit()

        logger.debug("append_status task_id=%s status=%s", task_id, entry.status)
        return True

    def rename_task(self, owner_id: str, task_id: str, name: str) -> None:
        if not name or not name.strip():
            raise ValueError("name is required")

        with self._conn() as conn:
            cur = conn.execute(
                "UPDATE tasks SET name = ?, updated_at = ? WHERE owner_id = ? AND id = ?",
                (name.strip(), self._bump(conn, owner_id), owner_id, task_id),
            )
            conn.commit()
            if cur.rowcount != 1:
                raise RemoteOperationError(f"Task not found: {task_id}")
