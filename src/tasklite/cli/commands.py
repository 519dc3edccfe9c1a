# src/tasklite/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Sequence
from typing import cast

from ..core.state import AppState
from ..errors import AuthRequiredError, RemoteOperationError, ValidationError
from ..tasks.task_models import Task, TaskStatus
from .render import render_dashboard, render_history, short_principal

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, /move, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        self._raw: set[CommandHandler] = set()

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        raw_args: bool = False,
    ) -> None:
        """
        raw_args=True hands the handler the untouched rest of the line as a
        single argument (whitespace inside it preserved) instead of split words.
        """
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        if raw_args:
            self._raw.add(handler)
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Tracker errors become reply text; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        if handler in self._raw:
            rest = line[1:].lstrip()[len(parts[0]):].strip()
            args = [rest] if rest else []
        else:
            args = parts[1:]

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except ValidationError as e:
            logger.debug("Validation failed for /%s: %s", name, e)
            return str(e)
        except AuthRequiredError as e:
            return f"Not ready: {e}"
        except RemoteOperationError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


def resolve_task(tasks: Sequence[Task], ref: str | None) -> Task:
    """
    Find a task by 1-based row number (as shown by /list) or by id prefix.

    An all-digit ref is always a row number; it never falls back to id matching.
    """
    ref = (ref or "").strip()
    if not ref:
        raise ValidationError("Please select a task.")

    if ref.isdigit():
        idx = int(ref)
        if not 1 <= idx <= len(tasks):
            raise ValidationError(f"No task #{idx}. Use /list to see task numbers.")
        return tasks[idx - 1]

    matches = [t for t in tasks if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValidationError(f"Task reference {ref!r} is ambiguous.")
    raise ValidationError(f"No task matches {ref!r}. Use /list to see task numbers.")


def _tasks(state: AppState) -> list[Task]:
    return state.runner.read(lambda c: c.tasks)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    def snapshot(c):
        tasks = c.tasks
        return (
            c.loaded,
            c.feed_error,
            tasks,
            c.total_regressions,
            c.principal,
            {t.id for t in tasks if c.is_updating(t.id)},
            len(c.notifications),
        )

    loaded, feed_error, tasks, total, principal, updating, n_notes = state.runner.read(snapshot)
    if feed_error:
        return f"Error: {feed_error}"
    if not loaded:
        return "Loading dashboard..."

    out = render_dashboard(
        tasks,
        total_regressions=total,
        principal=principal,
        updating=updating,
        use_color=state.use_color,
    )
    if n_notes:
        out += f"\n\n{n_notes} notification(s). Use /notes to read, /dismiss to clear."
    return out


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <task name>
    """
    name = args[0] if args else ""
    task_id = state.runner.run(state.runner.controller.add_task(name))
    if emit:
        emit("Task submitted; it will appear in /list once synced.")
    return f"Task added successfully. (id: {task_id[:8]})"


def cmd_move(state: AppState, args: list[str]) -> str:
    """
    /move <#|id> <status>
    """
    if len(args) < 2:
        raise ValidationError("Please select a task and a new status. Usage: /move <#|id> <status>")

    task = resolve_task(_tasks(state), args[0])
    status = TaskStatus.parse(" ".join(args[1:]))

    changed = state.runner.run(state.runner.controller.change_status(task.id, status))
    if not changed:
        return f"'{task.name}' is already {status.value}."
    return "Task status updated successfully."


def cmd_rename(state: AppState, args: list[str]) -> str:
    """
    /rename <#|id> <new name>
    """
    ref, *rest = args[0].split(maxsplit=1) if args else [""]
    new_name = rest[0] if rest else ""
    if not ref:
        raise ValidationError("Please select a task. Usage: /rename <#|id> <new name>")

    task = resolve_task(_tasks(state), ref)
    state.runner.run(state.runner.controller.rename_task(task.id, new_name))
    return "Task name updated successfully."


def cmd_history(state: AppState, args: list[str]) -> str:
    task = resolve_task(_tasks(state), args[0] if args else None)
    return render_history(task, use_color=state.use_color)


def cmd_statuses(state: AppState, args: list[str]) -> str:
    lines = ["Statuses:"]
    for i, status in enumerate(TaskStatus, start=1):
        lines.append(f"  {i}. {status.value}")
    return "\n".join(lines)


def cmd_whoami(state: AppState, args: list[str]) -> str:
    principal = state.runner.read(lambda c: c.principal)
    return f"User ID: {short_principal(principal)}"


def cmd_notes(state: AppState, args: list[str]) -> str:
    notes = state.runner.read(lambda c: list(c.notifications))
    if not notes:
        return "No notifications."
    lines = ["Notifications:"]
    for i, n in enumerate(notes, start=1):
        lines.append(f"  {i}. {n.title}: {n.message}")
    return "\n".join(lines)


def cmd_dismiss(state: AppState, args: list[str]) -> str:
    """
    /dismiss      -> dismiss the oldest notification
    /dismiss <n>  -> dismiss notification n
    /dismiss all  -> dismiss everything
    """
    if args and args[0].lower() == "all":

        def clear(c) -> int:
            n = len(c.notifications)
            c.notifications.clear()
            return n

        return f"Dismissed {state.runner.read(clear)} notification(s)."

    index = 0
    if args:
        if not args[0].isdigit():
            raise ValidationError("Usage: /dismiss [n|all]")
        index = int(args[0]) - 1

    removed = state.runner.read(lambda c: c.dismiss_notification(index))
    if removed is None:
        return "Nothing to dismiss."
    return f"Dismissed: {removed.message}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show the regression dashboard.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <name>.", raw_args=True)
registry.register("move", cmd_move, help_text="Change status: /move <#|id> <status>.", aliases=["mv"])
registry.register("rename", cmd_rename, help_text="Rename a task: /rename <#|id> <name>.", raw_args=True)
registry.register("history", cmd_history, help_text="Full status history: /history <#|id>.")
registry.register("statuses", cmd_statuses, help_text="List workflow statuses.")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user id.")
registry.register("notes", cmd_notes, help_text="Show notifications.")
registry.register("dismiss", cmd_dismiss, help_text="Dismiss notifications: /dismiss [n|all].")
