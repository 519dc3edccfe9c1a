# src/tasklite/sync/controller.py

from __future__ import annotations

"""
Sync controller.

Owns the local view of the principal's tasks:
- the latest feed snapshot (replaced wholesale on every push),
- optimistic status entries not yet confirmed by a snapshot,
- per-task "updating" flags and user-facing notifications.

Reads flow feed -> snapshot -> tasks. Writes flow action -> optimistic apply ->
remote write -> commit (snapshot confirms later) or abort (rollback + notification).
"""

import asyncio
import logging
from collections.abc import Container
from dataclasses import dataclass, field

from ..core.ports import TaskBackend, TaskSubscription
from ..errors import AuthRequiredError, RemoteOperationError, ValidationError
from ..tasks.history import (
    RegressionSeverity,
    aggregate_regressions,
    classify_severity,
    compute_current_status,
)
from ..tasks.task_models import StatusHistoryEntry, Task, TaskStatus, now_ms
from .optimistic import OptimisticChange, PendingEntries

logger = logging.getLogger(__name__)

FEED_ERROR_MESSAGE = "Could not fetch tasks. Check permissions and backend setup."


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    message: str
    created_at: int = field(default_factory=now_ms)


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Task name cannot be empty.")
    return cleaned


class SyncController:
    """Single writer of local task state; runs on one event loop."""

    def __init__(self, backend: TaskBackend) -> None:
        self._backend = backend

        self.principal: str | None = None
        self.loaded = False
        self.feed_error: str | None = None
        self.notifications: list[Notification] = []

        self._snapshot: list[Task] = []
        self._pending: PendingEntries = {}
        self._updating: set[str] = set()
        self._locks: dict[str, asyncio.Lock] = {}

        self._subscription: TaskSubscription | None = None
        self._subscribed = False
        self._generation = 0

    # ---- lifecycle ----

    async def start(self) -> str:
        """Authenticate, then subscribe to the principal's feed."""
        try:
            principal = await self._backend.authenticate()
        except Exception as e:
            logger.exception("authenticate failed")
            self._notify("Error", "Sign-in failed. Please try again.")
            raise RemoteOperationError(f"Sign-in failed: {e}") from e

        self.principal = principal
        self.subscribe(principal)
        return principal

    async def stop(self) -> None:
        self.unsubscribe()
        self.principal = None

    async def __aenter__(self) -> SyncController:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ---- feed ----

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    def subscribe(self, principal: str) -> None:
        if not principal:
            raise AuthRequiredError()
        if self._subscribed:
            self.unsubscribe()

        self._generation += 1
        generation = self._generation
        self.principal = principal
        self._subscribed = True
        self.loaded = False
        self.feed_error = None

        try:
            self._subscription = self._backend.subscribe_tasks(
                principal,
                lambda tasks: self._apply_snapshot(generation, tasks),
                lambda exc: self._on_feed_error(generation, exc),
            )
        except Exception as e:
            # The contract says errors go to on_error; treat a raise the same way.
            self._on_feed_error(generation, e)
            return

        logger.info("Subscribed to task feed principal=%s...", principal[:8])

    def unsubscribe(self) -> None:
        """Stop the feed and drop local state. Safe to call any number of times."""
        self._generation += 1
        sub, self._subscription = self._subscription, None
        was_subscribed, self._subscribed = self._subscribed, False

        if sub is not None:
            try:
                sub.cancel()
            except Exception:
                logger.debug("Subscription cancel failed.", exc_info=True)

        self._snapshot = []
        self._pending.clear()
        self._updating.clear()
        self._prune_locks(set())
        self.loaded = False

        if was_subscribed:
            logger.info("Unsubscribed from task feed.")

    def _is_live(self, generation: int) -> bool:
        return self._subscribed and generation == self._generation

    def _apply_snapshot(self, generation: int, tasks: list[Task]) -> None:
        if not self._is_live(generation):
            logger.debug("Dropping stale snapshot generation=%s", generation)
            return

        self._snapshot = list(tasks)
        self.loaded = True
        self.feed_error = None

        # Drop optimistic entries the server now has, and ones for vanished tasks.
        by_id = {t.id: t for t in self._snapshot}
        for task_id in list(self._pending):
            task = by_id.get(task_id)
            if task is None:
                self._pending.pop(task_id, None)
                continue
            remaining = tuple(e for e in self._pending[task_id] if e not in task.status_history)
            if remaining:
                self._pending[task_id] = remaining
            else:
                self._pending.pop(task_id, None)
        self._prune_locks(by_id.keys())

    def _prune_locks(self, keep: Container[str]) -> None:
        # A held lock still guards an in-flight change; it goes on a later pass.
        for task_id, lock in list(self._locks.items()):
            if task_id not in keep and not lock.locked():
                del self._locks[task_id]

    def _on_feed_error(self, generation: int, exc: Exception) -> None:
        if not self._is_live(generation):
            return
        logger.error("Task feed error: %s", exc)
        self.feed_error = FEED_ERROR_MESSAGE
        self.loaded = True
        self._notify("Error", f"Error loading tasks: {exc}")

    # ---- read side ----

    @property
    def tasks(self) -> list[Task]:
        """Snapshot order (newest first) with optimistic entries appended."""
        out: list[Task] = []
        for task in self._snapshot:
            pending = [e for e in self._pending.get(task.id, ()) if e not in task.status_history]
            out.append(
                Task(
                    id=task.id,
                    name=task.name,
                    created_at=task.created_at,
                    status_history=[*task.status_history, *pending],
                )
            )
        return out

    def get_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def is_updating(self, task_id: str) -> bool:
        return task_id in self._updating

    @property
    def total_regressions(self) -> int:
        return aggregate_regressions(self.tasks)

    @property
    def severity(self) -> RegressionSeverity:
        return classify_severity(self.total_regressions)

    # ---- notifications ----

    def _notify(self, title: str, message: str) -> None:
        self.notifications.append(Notification(title=title, message=message))

    def dismiss_notification(self, index: int = 0) -> Notification | None:
        if 0 <= index < len(self.notifications):
            return self.notifications.pop(index)
        return None

    # ---- write side ----

    def _require_principal(self) -> str:
        if not self.principal:
            raise AuthRequiredError()
        return self.principal

    async def add_task(self, name: str) -> str:
        """
        Create a task seeded with TO DO.

        No optimistic insert: the task shows up when the feed pushes it.
        """
        cleaned = _clean_name(name)
        principal = self._require_principal()

        try:
            task_id = await self._backend.create_task(principal, cleaned)
        except Exception as e:
            logger.exception("create_task failed")
            self._notify("Error", "Failed to add task. Please try again.")
            raise RemoteOperationError(f"Error adding task: {e}") from e

        logger.info("Task added id=%s", task_id)
        return task_id

    async def change_status(self, task_id: str, new_status: TaskStatus | str) -> bool:
        """
        Append a status entry optimistically, then confirm it remotely.

        Returns False (and does nothing) if the task already has that status.
        Calls for the same task run one at a time.
        """
        if not task_id:
            raise ValidationError("Please select a task.")
        status = new_status if isinstance(new_status, TaskStatus) else TaskStatus.parse(new_status)
        principal = self._require_principal()

        lock = self._locks.setdefault(task_id, asyncio.Lock())
        async with lock:
            task = self.get_task(task_id)
            if task is None:
                raise ValidationError(f"Unknown task: {task_id}")
            if compute_current_status(task.status_history) == status:
                return False

            # Timestamps strictly increase within a task so no two transitions compare equal.
            ts = now_ms()
            if task.status_history:
                ts = max(ts, task.status_history[-1].timestamp + 1)

            generation = self._generation
            change = OptimisticChange(
                self._pending,
                task_id,
                StatusHistoryEntry(status=status.value, timestamp=ts),
                still_live=lambda: self._is_live(generation),
            )
            change.apply()
            self._updating.add(task_id)

            try:
                await self._backend.append_status(principal, task_id, change.entry)
            except asyncio.CancelledError:
                change.abort()
                raise
            except Exception as e:
                change.abort()
                logger.exception("append_status failed task_id=%s status=%s", task_id, status.value)
                if self._is_live(generation):
                    self._notify("Error", "Failed to update status. Please try again.")
                raise RemoteOperationError(f"Error updating status: {e}") from e
            else:
                change.commit()
            finally:
                self._updating.discard(task_id)

        logger.info("Task %s -> %s", task_id, status.value)
        return True

    async def rename_task(self, task_id: str, new_name: str) -> None:
        """Overwrite the task name remotely; the feed brings the change back."""
        if not task_id:
            raise ValidationError("Please select a task.")
        cleaned = _clean_name(new_name)
        principal = self._require_principal()

        try:
            await self._backend.rename_task(principal, task_id, cleaned)
        except Exception as e:
            logger.exception("rename_task failed task_id=%s", task_id)
            self._notify("Error", "Failed to rename task. Please try again.")
            raise RemoteOperationError(f"Error updating task name: {e}") from e

        logger.info("Task %s renamed", task_id)
