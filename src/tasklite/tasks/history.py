# src/tasklite/tasks/history.py

"""
Derived facts over a task's status history.

Everything here is a pure function of the history sequence, so it can be
called from the render path and from tests without any coordination.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from enum import StrEnum
from typing import Final

from .task_models import StatusHistoryEntry, Task, TaskStatus

# A regression is a direct step back from testing into development.
REGRESSION_FROM: Final = TaskStatus.IN_TEST
REGRESSION_TO: Final = TaskStatus.IN_PROGRESS

WARNING_MAX_REGRESSIONS: Final = 5

HIDDEN_IN_TRANSITIONS: Final[frozenset[str]] = frozenset(
    {
        TaskStatus.TO_DO,
        TaskStatus.READY_FOR_PROD,
        TaskStatus.PULL_REQUEST,
        TaskStatus.IN_QA,
    }
)


class RegressionSeverity(StrEnum):
    NOMINAL = "nominal"
    WARNING = "warning"
    CRITICAL = "critical"


def compute_current_status(history: Sequence[StatusHistoryEntry]) -> str | None:
    """Status of the last entry, or None for an empty history."""
    if not history:
        return None
    return history[-1].status


def count_regressions(history: Sequence[StatusHistoryEntry]) -> int:
    """
    Count adjacent (IN TEST -> IN PROGRESS) pairs.

    Only direct transitions count: IN TEST, DONE, IN PROGRESS is zero.
    """
    regressions = 0
    for i in range(1, len(history)):
        if history[i - 1].status == REGRESSION_FROM and history[i].status == REGRESSION_TO:
            regressions += 1
    return regressions


def aggregate_regressions(tasks: Iterable[Task]) -> int:
    return sum(count_regressions(t.status_history) for t in tasks)


def classify_severity(total_regressions: int) -> RegressionSeverity:
    if total_regressions <= 0:
        return RegressionSeverity.NOMINAL
    if total_regressions <= WARNING_MAX_REGRESSIONS:
        return RegressionSeverity.WARNING
    return RegressionSeverity.CRITICAL


class RenderableTransitions:
    """
    Lazy view of a history without the statuses hidden from the transition chain.

    Each iteration starts over from the first entry, so the same view can be
    rendered more than once.
    """

    __slots__ = ("_history",)

    def __init__(self, history: Sequence[StatusHistoryEntry]) -> None:
        self._history = history

    def __iter__(self) -> Iterator[tuple[str, int]]:
        for entry in self._history:
            if entry.status in HIDDEN_IN_TRANSITIONS:
                continue
            yield entry.status, entry.timestamp


def renderable_transitions(history: Sequence[StatusHistoryEntry]) -> RenderableTransitions:
    return RenderableTransitions(history)


def history_newest_first(history: Iterable[StatusHistoryEntry]) -> list[StatusHistoryEntry]:
    return sorted(history, key=lambda e: e.timestamp, reverse=True)
