# tests/test_commands.py

from __future__ import annotations

import time
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasklite.cli.commands import CommandRegistry, registry, resolve_task
from tasklite.config import BackendConfig
from tasklite.core.state import AppState
from tasklite.errors import RemoteOperationError, ValidationError
from tasklite.sync.runner import start_controller_in_background
from tasklite.tasks.task_feed import LocalTaskBackend
from tasklite.tasks.task_models import Task


def _wait_until(predicate, timeout: float = 3.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


@pytest.fixture()
def state(tmp_path: Path, backend_config: BackendConfig):
    backend = LocalTaskBackend(
        backend_config,
        db_path=tmp_path / "tasks.sqlite3",
        principal_path=tmp_path / "principal",
        poll_seconds=0.01,
    )
    runner = start_controller_in_background(backend)
    st = AppState(settings=SimpleNamespace(app_name="test"), runner=runner, use_color=False)
    _wait_until(lambda: runner.read(lambda c: c.loaded))
    yield st
    runner.stop()
    runner.join(timeout=5.0)


def _task_count(state: AppState) -> int:
    return state.runner.read(lambda c: len(c.tasks))


def test_command_registry_routes_2_and_3_params() -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert reg.handle(None, "/a x") == "h2"
    assert reg.handle(None, "/BEE y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command() -> None:
    reg = CommandRegistry()
    assert reg.handle(None, "hello") is None
    assert "Unknown command" in (reg.handle(None, "/nope") or "")
    assert "Empty command" in (reg.handle(None, "/") or "")


def test_command_registry_turns_tracker_errors_into_replies() -> None:
    reg = CommandRegistry()

    def bad_input(state, args):
        raise ValidationError("Task name cannot be empty.")

    def remote(state, args):
        raise RemoteOperationError("network down")

    reg.register("v", bad_input, "v")
    reg.register("r", remote, "r")

    assert reg.handle(None, "/v") == "Task name cannot be empty."
    assert reg.handle(None, "/r") == "Error: network down"


def test_resolve_task_by_row_or_id_prefix() -> None:
    tasks = [
        Task(id="abc123", name="one", created_at=2),
        Task(id="abd456", name="two", created_at=1),
    ]
    assert resolve_task(tasks, "2").name == "two"
    assert resolve_task(tasks, "abc").name == "one"
    with pytest.raises(ValidationError, match="ambiguous"):
        resolve_task(tasks, "ab")
    with pytest.raises(ValidationError):
        resolve_task(tasks, "zzz")
    with pytest.raises(ValidationError):
        resolve_task(tasks, "")


def test_out_of_range_row_number_never_matches_an_id_prefix() -> None:
    tasks = [
        Task(id="aaaa", name="picked", created_at=2),
        Task(id="3f00", name="other", created_at=1),
    ]
    with pytest.raises(ValidationError, match="No task #3"):
        resolve_task(tasks, "3")
    with pytest.raises(ValidationError, match="No task #0"):
        resolve_task(tasks, "0")
    assert resolve_task(tasks, "3f").name == "other"


def test_raw_args_keep_inner_whitespace() -> None:
    reg = CommandRegistry()
    seen: list[list[str]] = []

    def raw(state, args):
        seen.append(args)
        return "ok"

    reg.register("raw", raw, "raw", raw_args=True)
    reg.register("split", lambda state, args: seen.append(args) or "ok", "split")

    reg.handle(None, "/raw   Fix  A\tthen B  ")
    reg.handle(None, "/raw")
    reg.handle(None, "/split Fix  A")
    assert seen == [["Fix  A\tthen B"], [], ["Fix", "A"]]


def test_console_flow(state: AppState) -> None:
    assert "Add a task" in registry.handle(state, "/help")
    assert "No tasks yet" in registry.handle(state, "/list")
    assert registry.handle(state, "/add   ") == "Task name cannot be empty."

    assert registry.handle(state, "/add Write spec").startswith("Task added successfully.")
    _wait_until(lambda: _task_count(state) == 1)

    assert registry.handle(state, "/move 1 in progress") == "Task status updated successfully."
    assert registry.handle(state, "/move 1 IN_PROGRESS") == "'Write spec' is already IN PROGRESS."
    assert registry.handle(state, "/move 1 in test") == "Task status updated successfully."
    assert registry.handle(state, "/move 1 in progress") == "Task status updated successfully."
    assert "Unknown status" in registry.handle(state, "/move 1 shipped")

    dashboard = registry.handle(state, "/list")
    assert "Total Regressions (IN TEST -> IN PROGRESS): 1 [warning]" in dashboard
    assert "Write spec" in dashboard
    assert "IN PROGRESS" in dashboard

    history = registry.handle(state, "/history 1")
    assert history.splitlines()[0] == "Write spec"
    assert len(history.splitlines()) == 2 + 4

    assert registry.handle(state, "/rename 1 Write the spec") == "Task name updated successfully."
    _wait_until(lambda: state.runner.read(lambda c: c.tasks[0].name) == "Write the spec")

    assert registry.handle(state, "/move 9 DONE") == "No task #9. Use /list to see task numbers."
    assert registry.handle(state, "/rename 1 Write  the   spec") == "Task name updated successfully."
    _wait_until(lambda: state.runner.read(lambda c: c.tasks[0].name) == "Write  the   spec")

    assert registry.handle(state, "/whoami").startswith("User ID: ")
    assert registry.handle(state, "/notes") == "No notifications."
    assert registry.handle(state, "/dismiss") == "Nothing to dismiss."


def test_console_loop_treats_bare_text_as_add(state: AppState, capsys: pytest.CaptureFixture[str]) -> None:
    from tasklite.connectors.console_connector import run_console_loop

    lines = iter(["", "Ship it", "/statuses", "/exit", "/never reached"])
    run_console_loop(state, read_line=lambda _prompt: next(lines))

    out = capsys.readouterr().out
    assert "Task added successfully." in out
    assert "8. DONE" in out
    _wait_until(lambda: _task_count(state) == 1)
