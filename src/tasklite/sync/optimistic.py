# src/tasklite/sync/optimistic.py

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from ..tasks.task_models import StatusHistoryEntry

logger = logging.getLogger(__name__)

# task_id -> locally appended entries not yet seen in a feed snapshot
PendingEntries = dict[str, tuple[StatusHistoryEntry, ...]]


class ChangePhase(str, Enum):
    NEW = "new"
    APPLIED = "applied"
    COMMITTED = "committed"
    ABORTED = "aborted"


class OptimisticChange:
    """
    Reversible local transaction for one status change.

    apply()  -> capture the task's pending entries, then append the tentative one
    commit() -> forget the captured state (the next snapshot confirms the entry)
    abort()  -> put the captured state back

    Nothing is touched once still_live() is False: the controller has been
    unsubscribed and its local state must not come back.
    """

    def __init__(
            self,
            pending: PendingEntries,
            task_id: str,
            entry: StatusHistoryEntry,
            *,
            still_live: Callable[[], bool],
    ) -> None:
        self._pending = pending
        self.task_id = task_id
        self.entry = entry
        self._still_live = still_live
        self._prior: tuple[StatusHistoryEntry, ...] | None = None
        self.phase = ChangePhase.NEW

    def apply(self) -> None:
        if self.phase != ChangePhase.NEW:
            raise RuntimeError(f"cannot apply a change in phase {self.phase.value}")
        self._prior = self._pending.get(self.task_id, ())
        self._pending[self.task_id] = self._prior + (self.entry,)
        self.phase = ChangePhase.APPLIED

    def commit(self) -> None:
        if self.phase != ChangePhase.APPLIED:
            return
        self._prior = None
        self.phase = ChangePhase.COMMITTED

    def abort(self) -> None:
        if self.phase != ChangePhase.APPLIED:
            return
        self.phase = ChangePhase.ABORTED
        prior, self._prior = self._prior, None

        if not self._still_live():
            logger.debug("abort after unsubscribe; nothing to restore task_id=%s", self.task_id)
            return

        if prior:
            self._pending[self.task_id] = prior
        else:
            self._pending.pop(self.task_id, None)
