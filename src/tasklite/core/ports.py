# src/tasklite/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync controller.

The controller depends on Protocols instead of concrete implementations.
This keeps the document backend swappable and makes testing easier.
"""

from collections.abc import Callable
from typing import Protocol

from ..tasks.task_models import StatusHistoryEntry, Task

SnapshotCallback = Callable[[list[Task]], None]
ErrorCallback = Callable[[Exception], None]


class TaskSubscription(Protocol):
    """
    Handle for a live task feed.

    cancel() is synchronous and idempotent: once it returns, no further
    callback is delivered.
    """

    @property
    def closed(self) -> bool: ...

    def cancel(self) -> None: ...


class TaskBackend(Protocol):
    """
    Persistence/auth collaborator.

    Every task operation is scoped to the owning principal.
    """

    async def authenticate(self) -> str: ...

    def subscribe_tasks(
            self,
            principal_id: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> TaskSubscription: ...

    async def create_task(self, principal_id: str, name: str) -> str: ...

    async def append_status(self, principal_id: str, task_id: str, entry: StatusHistoryEntry) -> None: ...

    async def rename_task(self, principal_id: str, task_id: str, name: str) -> None: ...
