# src/tasklite/core/auth.py

from __future__ import annotations

import contextlib
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalAuth:
    """
    Anonymous, device-scoped sign-in.

    The principal id is created on first use and persisted in a small file,
    so the same device keeps the same principal across restarts until
    sign_out() is called.
    """

    def __init__(self, principal_path: str | Path) -> None:
        self._path = Path(principal_path)
        self._principal: str | None = None

    def authenticate(self) -> str:
        if self._principal:
            return self._principal

        principal = self._read()
        if principal is None:
            principal = uuid.uuid4().hex
            self._write(principal)
            logger.info("Signed in anonymously principal=%s...", principal[:8])
        else:
            logger.info("Restored principal=%s...", principal[:8])

        self._principal = principal
        return principal

    def sign_out(self) -> None:
        self._principal = None
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()
        logger.info("Signed out.")

    def _read(self) -> str | None:
        try:
            raw = self._path.read_text("utf-8").strip()
        except FileNotFoundError:
            return None
        return raw or None

    def _write(self, principal: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(principal, "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            os.chmod(self._path, 0o600)
