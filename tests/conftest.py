# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasklite.config import BackendConfig
from tasklite.tasks.task_feed import LocalTaskBackend
from tasklite.tasks.task_store import TaskStore

from .fakes import FakeTaskBackend


@pytest.fixture()
def backend_config() -> BackendConfig:
    return BackendConfig(api_key="test-key", app_id="test-app", project_id="test-project", endpoint="local")


@pytest.fixture()
def fake_backend() -> FakeTaskBackend:
    return FakeTaskBackend()


@pytest.fixture()
def task_store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def local_backend(tmp_path: Path, backend_config: BackendConfig) -> LocalTaskBackend:
    """
    Real SQLite-backed backend with a fast feed.

    NOTE: not opened here; tests open it (or use `async with`) on their own loop.
    """
    return LocalTaskBackend(
        backend_config,
        db_path=tmp_path / "tasks.sqlite3",
        principal_path=tmp_path / "principal",
        poll_seconds=0.01,
    )
