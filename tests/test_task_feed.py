# tests/test_task_feed.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tasklite.config import BackendConfig
from tasklite.errors import RemoteOperationError
from tasklite.sync.controller import SyncController
from tasklite.tasks.task_feed import LocalTaskBackend
from tasklite.tasks.task_models import StatusHistoryEntry, Task, TaskStatus


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_authenticate_is_stable_across_restarts(tmp_path: Path, backend_config: BackendConfig) -> None:
    def make() -> LocalTaskBackend:
        return LocalTaskBackend(
            backend_config,
            db_path=tmp_path / "tasks.sqlite3",
            principal_path=tmp_path / "principal",
        )

    async with make() as first:
        p1 = await first.authenticate()
        assert await first.authenticate() == p1

    async with make() as second:
        assert await second.authenticate() == p1
        second.sign_out()
        assert await second.authenticate() != p1


@pytest.mark.asyncio
async def test_operations_fail_when_closed(local_backend: LocalTaskBackend) -> None:
    with pytest.raises(RemoteOperationError):
        await local_backend.authenticate()
    with pytest.raises(RemoteOperationError):
        await local_backend.create_task("p", "t")


@pytest.mark.asyncio
async def test_missing_principal_is_a_remote_error(local_backend: LocalTaskBackend) -> None:
    async with local_backend:
        with pytest.raises(RemoteOperationError):
            await local_backend.create_task("", "t")


@pytest.mark.asyncio
async def test_feed_pushes_initial_and_changed_snapshots(local_backend: LocalTaskBackend) -> None:
    snapshots: list[list[Task]] = []
    errors: list[Exception] = []

    async with local_backend:
        principal = await local_backend.authenticate()
        sub = local_backend.subscribe_tasks(principal, snapshots.append, errors.append)

        await _wait_for(lambda: len(snapshots) == 1)
        assert snapshots[0] == []

        task_id = await local_backend.create_task(principal, "first")
        await _wait_for(lambda: len(snapshots) == 2)
        assert [t.id for t in snapshots[-1]] == [task_id]

        await local_backend.append_status(principal, task_id, StatusHistoryEntry("IN TEST", 5))
        await _wait_for(lambda: len(snapshots) == 3)
        assert snapshots[-1][0].current_status == TaskStatus.IN_TEST

        # Nothing changed -> nothing pushed.
        await asyncio.sleep(0.05)
        assert len(snapshots) == 3

        sub.cancel()
        sub.cancel()
        assert sub.closed
        await local_backend.create_task(principal, "after cancel")
        await asyncio.sleep(0.05)
        assert len(snapshots) == 3

    assert errors == []


@pytest.mark.asyncio
async def test_feed_error_goes_to_on_error(local_backend: LocalTaskBackend) -> None:
    errors: list[Exception] = []

    async with local_backend:
        sub = local_backend.subscribe_tasks("", lambda _tasks: None, errors.append)
        await _wait_for(lambda: len(errors) == 1)

    assert isinstance(errors[0], RemoteOperationError)
    assert sub.closed


@pytest.mark.asyncio
async def test_close_cancels_live_subscriptions(local_backend: LocalTaskBackend) -> None:
    local_backend.open()
    principal = await local_backend.authenticate()
    sub = local_backend.subscribe_tasks(principal, lambda _tasks: None, lambda _exc: None)

    local_backend.close()
    assert sub.closed
    assert not local_backend.is_open
    await asyncio.sleep(0.02)


@pytest.mark.asyncio
async def test_controller_over_local_backend(local_backend: LocalTaskBackend) -> None:
    async with local_backend:
        async with SyncController(local_backend) as controller:
            await _wait_for(lambda: controller.loaded)

            older = await controller.add_task("Write spec")
            await _wait_for(lambda: len(controller.tasks) == 1)
            newer = await controller.add_task("Review spec")
            await _wait_for(lambda: len(controller.tasks) == 2)

            # Newest first.
            assert [t.id for t in controller.tasks] == [newer, older]

            for status in (TaskStatus.IN_PROGRESS, TaskStatus.IN_TEST, TaskStatus.IN_PROGRESS):
                assert await controller.change_status(older, status)

            await _wait_for(lambda: len(_history_of(controller, older)) == 4)
            assert controller.total_regressions == 1

            await controller.rename_task(older, "Write the spec")
            await _wait_for(lambda: controller.get_task(older).name == "Write the spec")
            assert len(controller.get_task(older).status_history) == 4


def _history_of(controller: SyncController, task_id: str) -> list[StatusHistoryEntry]:
    task = controller.get_task(task_id)
    return task.status_history if task else []
