"""
Supervisor for detached units of work.

Dispatch acknowledges its caller before the expensive work runs. That work
is scheduled here as an ``asyncio.Task`` the supervisor owns:

- a strong reference is held until the task finishes, so it is never
  garbage-collected mid-flight
- the task is not tied to the triggering request, so a client disconnect
  or cancelled request handler does not cancel it
- a crash is logged in the done callback and never propagates
- ``drain`` waits for in-flight work on shutdown
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from signal_digest.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


class TaskSupervisor:
    """
    Owns fire-and-continue tasks for the lifetime of the process.

    Usage:
        supervisor = TaskSupervisor()
        supervisor.spawn(orchestrator.run(request, subscriber), name="dispatch:a@b.c")
        ...
        await supervisor.drain(timeout=30)
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """
        Schedule ``coro`` as a supervised task.

        Raises:
            RuntimeError: The supervisor is draining or closed
        """
        if self._closed:
            coro.close()
            raise RuntimeError("TaskSupervisor is closed")

        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        get_metrics().units_in_flight.set(len(self._tasks))
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        get_metrics().units_in_flight.set(len(self._tasks))

        if task.cancelled():
            logger.warning("Detached task cancelled", task=task.get_name())
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                "Detached task crashed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float | None = None) -> int:
        """
        Stop accepting work and wait for in-flight tasks.

        Tasks still running after ``timeout`` are cancelled.

        Returns:
            Number of tasks that had to be cancelled
        """
        self._closed = True
        pending = set(self._tasks)
        if not pending:
            return 0

        logger.info("Draining detached tasks", in_flight=len(pending), timeout=timeout)
        _, still_running = await asyncio.wait(pending, timeout=timeout)

        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Cancelled detached tasks on shutdown", count=len(still_running))

        return len(still_running)

    async def join(self) -> None:
        """Wait until every currently scheduled task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_supervisor: TaskSupervisor | None = None


def get_supervisor() -> TaskSupervisor:
    """Get the process-wide task supervisor."""
    global _supervisor
    if _supervisor is None:
        _supervisor = TaskSupervisor()
    return _supervisor


def reset_supervisor() -> None:
    """Forget the process-wide supervisor (after drain, or between tests)."""
    global _supervisor
    _supervisor = None
