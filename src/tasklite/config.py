# src/tasklite/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time; the backend config is checked only
  when the controller is about to start (require_backend_config).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "TASKLITE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class BackendConfig:
    """
    The injected configuration object for the document backend.

    Mirrors what the hosting environment provides (endpoint, keys, app id).
    """

    api_key: str
    app_id: str
    project_id: str
    endpoint: str

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        for name in ("api_key", "app_id", "project_id"):
            if not getattr(self, name).strip():
                missing.append(name)
        return missing


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    principal_path: Path

    # ---- Live feed ----
    feed_poll_seconds: float

    # ---- Backend (injected by the hosting environment) ----
    backend: BackendConfig | None

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="Task Regression Dashboard") or "tasklite"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklite"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        principal_path = _env_path(_k("PRINCIPAL_PATH"), data_dir / "principal")

        feed_poll_seconds = max(0.01, _env_float(_k("FEED_POLL_SECONDS"), 0.5))

        api_key = (_first_env(_k("API_KEY"), default="") or "").strip()
        app_id = (_first_env(_k("APP_ID"), default="") or "").strip()
        project_id = (_first_env(_k("PROJECT_ID"), default="") or "").strip()
        endpoint = (_first_env(_k("ENDPOINT"), default="") or "").strip()

        backend: BackendConfig | None = None
        if api_key or app_id or project_id or endpoint:
            backend = BackendConfig(
                api_key=api_key,
                app_id=app_id,
                project_id=project_id,
                endpoint=endpoint or f"sqlite:///{tasks_db_path}",
            )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            principal_path=principal_path,
            feed_poll_seconds=feed_poll_seconds,
            backend=backend,
        )


def require_backend_config(settings: Settings) -> BackendConfig:
    """Return the backend config or raise ConfigurationError (fatal at startup)."""
    cfg = settings.backend
    if cfg is None:
        raise ConfigurationError(
            f"Backend config is missing. Set {_k('API_KEY')}, {_k('APP_ID')} and {_k('PROJECT_ID')}."
        )
    missing = cfg.missing_fields()
    if missing:
        raise ConfigurationError(f"Backend config is incomplete; missing: {', '.join(missing)}")
    return cfg


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
