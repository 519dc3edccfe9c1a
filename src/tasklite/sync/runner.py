# src/tasklite/sync/runner.py

from __future__ import annotations

"""
Run the sync controller on its own event loop in a background thread.

Why a thread:
- the console REPL is blocking (input()),
- the controller and its live feed are async and want a running loop.

The console thread talks to the controller only through run()/read(), so the
controller's state is still touched by a single thread.
"""

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..tasks.task_feed import LocalTaskBackend
from .controller import SyncController

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ControllerRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    controller: SyncController

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        """Run a coroutine on the controller loop and wait for its result."""
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def read(self, fn: Callable[[SyncController], T], timeout: float | None = 10.0) -> T:
        """Evaluate fn(controller) on the controller loop."""

        async def _read() -> T:
            return fn(self.controller)

        return self.run(_read(), timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal controller stop (loop closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _serve(
        backend: LocalTaskBackend,
        controller: SyncController,
        stop_event: asyncio.Event,
        started: concurrent.futures.Future[str],
) -> None:
    try:
        backend.open()
        principal = await controller.start()
    except Exception as e:
        backend.close()
        started.set_exception(e)
        return

    started.set_result(principal)
    try:
        await stop_event.wait()
    finally:
        await controller.stop()
        backend.close()
        logger.info("Controller loop stopped.")


def start_controller_in_background(
        backend: LocalTaskBackend,
        *,
        start_timeout: float = 15.0,
) -> ControllerRunner:
    """
    Open the backend, sign in and subscribe, all on a fresh loop in a daemon thread.

    Raises whatever controller.start() raised (e.g. RemoteOperationError).
    """
    controller = SyncController(backend)
    started: concurrent.futures.Future[str] = concurrent.futures.Future()
    holder: dict[str, object] = {}
    ready = threading.Event()

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_serve(backend, controller, stop_event, started))
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="tasklite-sync", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")
    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        raise RuntimeError("Controller thread did not initialize properly.")

    principal = started.result(timeout=start_timeout)
    logger.info("Controller started principal=%s...", principal[:8])
    return ControllerRunner(thread=t, loop=loop, stop_event=stop_event, controller=controller)
