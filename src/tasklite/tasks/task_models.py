# src/tasklite/tasks/task_models.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..errors import ValidationError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class TaskStatus(StrEnum):
    """
    Workflow stages, in the order they are offered for selection.

    Values are the display strings stored in documents.
    """

    TO_DO = "TO DO"
    IN_PROGRESS = "IN PROGRESS"
    PULL_REQUEST = "PULL REQUEST"
    IN_TEST = "IN TEST"
    IN_QA = "IN QA"
    READY_FOR_PROD = "READY FOR PROD"
    IN_UAT = "IN UAT"
    DONE = "DONE"

    @classmethod
    def parse(cls, raw: str | None) -> TaskStatus:
        """
        Lenient lookup for user input: "in test", "IN_TEST", "in-test" all work.
        Raises ValidationError for empty or unknown values.
        """
        text = " ".join((raw or "").replace("_", " ").replace("-", " ").split()).upper()
        if not text:
            raise ValidationError("Please select a new status.")
        try:
            return cls(text)
        except ValueError:
            raise ValidationError(f"Unknown status: {raw!r}") from None


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    # Kept as str so values outside TaskStatus survive a round trip.
    status: str
    timestamp: int

    def to_doc(self) -> dict[str, Any]:
        return {"status": str(self.status), "timestamp": int(self.timestamp)}

    @classmethod
    def from_doc(cls, raw: Any) -> StatusHistoryEntry | None:
        if not isinstance(raw, dict):
            return None
        status = raw.get("status")
        ts = raw.get("timestamp")
        if not isinstance(status, str) or isinstance(ts, bool) or not isinstance(ts, int | float):
            return None
        return cls(status=status, timestamp=int(ts))


@dataclass(slots=True)
class Task:
    id: str
    name: str
    created_at: int
    status_history: list[StatusHistoryEntry] = field(default_factory=list)

    @property
    def current_status(self) -> str | None:
        from .history import compute_current_status

        return compute_current_status(self.status_history)

    def to_doc(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "statusHistory": [e.to_doc() for e in self.status_history],
            "createdAt": int(self.created_at),
        }

    @classmethod
    def from_doc(cls, task_id: str, doc: dict[str, Any]) -> Task:
        """Decode a stored document. Malformed history entries are skipped."""
        history: list[StatusHistoryEntry] = []
        raw_history = doc.get("statusHistory")
        if isinstance(raw_history, list):
            for raw in raw_history:
                entry = StatusHistoryEntry.from_doc(raw)
                if entry is None:
                    logger.debug("Skipping malformed history entry task_id=%s raw=%r", task_id, raw)
                    continue
                history.append(entry)

        created_at = doc.get("createdAt")
        return cls(
            id=str(task_id),
            name=str(doc.get("name") or ""),
            created_at=int(created_at) if isinstance(created_at, int | float) else 0,
            status_history=history,
        )
