# src/tasklite/cli/render.py

"""Plain-text rendering of the dashboard (banner, task table, history)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..tasks.history import (
    RegressionSeverity,
    classify_severity,
    compute_current_status,
    count_regressions,
    history_newest_first,
    renderable_transitions,
)
from ..tasks.task_models import Task, TaskStatus

RESET = "\033[0m"
BOLD = "\033[1m"

STATUS_COLORS: dict[str, str] = {
    TaskStatus.TO_DO: "\033[37m",
    TaskStatus.IN_PROGRESS: "\033[34m",
    TaskStatus.PULL_REQUEST: "\033[33m",
    TaskStatus.IN_TEST: "\033[38;5;208m",
    TaskStatus.IN_QA: "\033[38;5;205m",
    TaskStatus.READY_FOR_PROD: "\033[92m",
    TaskStatus.IN_UAT: "\033[38;5;63m",
    TaskStatus.DONE: "\033[36m",
}
UNKNOWN_STATUS_COLOR = "\033[90m"

SEVERITY_COLORS: dict[RegressionSeverity, str] = {
    RegressionSeverity.NOMINAL: "\033[42;97m",
    RegressionSeverity.WARNING: "\033[43;30m",
    RegressionSeverity.CRITICAL: "\033[41;97m",
}


def _paint(text: str, code: str, use_color: bool) -> str:
    return f"{code}{text}{RESET}" if use_color else text


def status_label(status: str | None, *, use_color: bool = False) -> str:
    if status is None:
        return "N/A"
    return _paint(status, STATUS_COLORS.get(status, UNKNOWN_STATUS_COLOR), use_color)


def short_principal(principal: str | None) -> str:
    if not principal:
        return "N/A"
    return principal[:8] + "..."


def time_ago(ts_ms: int, *, now_ms: int | None = None) -> str:
    now = int(datetime.now().timestamp() * 1000) if now_ms is None else now_ms
    seconds = max(0, (now - ts_ms) // 1000)
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} h ago"
    return f"{hours // 24} d ago"


def _date(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000).strftime("%Y-%m-%d")


def _datetime(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000).strftime("%b %d, %Y, %I:%M:%S %p")


def render_banner(total_regressions: int, *, use_color: bool = False) -> str:
    severity = classify_severity(total_regressions)
    text = f" Total Regressions (IN TEST -> IN PROGRESS): {total_regressions} [{severity.value}] "
    return _paint(text, SEVERITY_COLORS[severity], use_color)


def render_transitions(task: Task, *, use_color: bool = False) -> str:
    parts = [
        f"{status_label(status, use_color=use_color)} ({_date(ts)})"
        for status, ts in renderable_transitions(task.status_history)
    ]
    return " -> ".join(parts) if parts else "-"


def render_task_table(
        tasks: Sequence[Task],
        *,
        updating: set[str] | frozenset[str] = frozenset(),
        use_color: bool = False,
) -> str:
    if not tasks:
        return "No tasks yet. Add one to get started!"

    lines: list[str] = []
    for i, task in enumerate(tasks, start=1):
        current = compute_current_status(task.status_history)
        marker = " (updating...)" if task.id in updating else ""
        since = f", {time_ago(task.status_history[-1].timestamp)}" if task.status_history else ""
        lines.append(
            f"{i:>3}. {task.name}  [{status_label(current, use_color=use_color)}{since}]{marker}"
            f"  regressions: {count_regressions(task.status_history)}  id: {task.id[:8]}"
        )
        lines.append(f"     {render_transitions(task, use_color=use_color)}")
    return "\n".join(lines)


def render_dashboard(
        tasks: Sequence[Task],
        *,
        total_regressions: int,
        principal: str | None,
        updating: set[str] | frozenset[str] = frozenset(),
        use_color: bool = False,
) -> str:
    header = _paint("Task Regression Dashboard", BOLD, use_color)
    return "\n".join(
        [
            header,
            f"User ID: {short_principal(principal)}",
            render_banner(total_regressions, use_color=use_color),
            "",
            render_task_table(tasks, updating=updating, use_color=use_color),
        ]
    )


def render_history(task: Task, *, use_color: bool = False) -> str:
    lines = [f"{task.name}", "Complete status history for this task:"]
    for entry in history_newest_first(task.status_history):
        lines.append(f"  {status_label(entry.status, use_color=use_color):<20} {_datetime(entry.timestamp)}")
    return "\n".join(lines)
