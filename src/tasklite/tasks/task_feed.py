# src/tasklite/tasks/task_feed.py

from __future__ import annotations

"""
Local document backend.

Implements the TaskBackend port on top of TaskStore (SQLite) and LocalAuth:
- remote-style async operations scoped by principal,
- a live feed that polls the owner's collection and pushes full snapshots
  (newest first) whenever it changes.

To stop a feed, cancel its subscription; closing the backend cancels all of them.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from ..config import BackendConfig
from ..core.auth import LocalAuth
from ..core.ports import ErrorCallback, SnapshotCallback
from ..errors import RemoteOperationError
from .task_models import StatusHistoryEntry, Task
from .task_store import TaskStore

logger = logging.getLogger(__name__)


class FeedSubscription:
    """Cancellable handle returned by LocalTaskBackend.subscribe_tasks()."""

    def __init__(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._closed = False
        self._runner: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, runner: asyncio.Task[None]) -> None:
        self._runner = runner

    def deliver(self, tasks: list[Task]) -> None:
        if self._closed:
            return
        self._on_snapshot(tasks)

    def fail(self, exc: Exception) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_error(exc)

    def cancel(self) -> None:
        self._closed = True
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()


class LocalTaskBackend:
    """
    SQLite-backed stand-in for the hosted document database.

    Lifecycle: open() -> use -> close(). Also usable as an async context manager.
    """

    def __init__(
            self,
            config: BackendConfig,
            *,
            db_path: str | Path,
            principal_path: str | Path,
            poll_seconds: float = 0.5,
    ) -> None:
        self._config = config
        self._db_path = Path(db_path)
        self._auth = LocalAuth(principal_path)
        self._poll_seconds = max(0.01, float(poll_seconds))
        self._store: TaskStore | None = None
        self._subscriptions: set[FeedSubscription] = set()

    @property
    def is_open(self) -> bool:
        return self._store is not None

    def open(self) -> None:
        if self._store is not None:
            return
        self._store = TaskStore(self._db_path)
        logger.info("Backend opened app_id=%s project_id=%s", self._config.app_id, self._config.project_id)

    def close(self) -> None:
        for sub in list(self._subscriptions):
            sub.cancel()
        self._subscriptions.clear()
        if self._store is not None:
            self._store = None
            logger.info("Backend closed.")

    async def __aenter__(self) -> LocalTaskBackend:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def sign_out(self) -> None:
        self._auth.sign_out()

    # ---- helpers ----

    def _require_store(self) -> TaskStore:
        if self._store is None:
            raise RemoteOperationError("Backend is not open.")
        return self._store

    @staticmethod
    def _require_principal(principal_id: str) -> str:
        if not principal_id:
            raise RemoteOperationError("Permission denied: missing principal.")
        return principal_id

    # ---- TaskBackend ----

    async def authenticate(self) -> str:
        self._require_store()
        return self._auth.authenticate()

    async def create_task(self, principal_id: str, name: str) -> str:
        store = self._require_store()
        return store.create_task(self._require_principal(principal_id), name)

    async def append_status(self, principal_id: str, task_id: str, entry: StatusHistoryEntry) -> None:
        store = self._require_store()
        store.append_status(self._require_principal(principal_id), task_id, entry)

    async def rename_task(self, principal_id: str, task_id: str, name: str) -> None:
        store = self._require_store()
        store.rename_task(self._require_principal(principal_id), task_id, name)

    async def watch_tasks(self, principal_id: str) -> AsyncIterator[list[Task]]:
        """Yield the owner's full task list each time it changes (first one immediately)."""
        owner = self._require_principal(principal_id)
        last_revision: tuple[int, int] | None = None

        while True:
            store = self._require_store()
            revision = store.revision(owner)
            if revision != last_revision:
                last_revision = revision
                tasks = store.list_tasks(owner)
                logger.debug("Feed snapshot owner=%s... tasks=%d", owner[:8], len(tasks))
                yield tasks
            await asyncio.sleep(self._poll_seconds)

    def subscribe_tasks(
            self,
            principal_id: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> FeedSubscription:
        sub = FeedSubscription(on_snapshot, on_error)
        self._subscriptions.add(sub)
        runner = asyncio.get_running_loop().create_task(self._pump(principal_id, sub))
        sub.attach(runner)
        return sub

    async def _pump(self, principal_id: str, sub: FeedSubscription) -> None:
        try:
            async for snapshot in self.watch_tasks(principal_id):
                if sub.closed:
                    break
                sub.deliver(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Task feed failed: %s", e)
            sub.fail(e)
        finally:
            self._subscriptions.discard(sub)
