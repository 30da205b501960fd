"""Helpers for fire-and-forget asyncio tasks.

Relay tasks are never awaited by their creator.  The event loop keeps
only weak references to tasks, so each one is parked in a set until it
finishes, and its outcome is logged from a done-callback instead of being
lost.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any


def log_task_exception(
    task: asyncio.Task[Any],
    logger: Any,
    event: str,
    *,
    level: str = "error",
) -> BaseException | None:
    """Log the exception of a finished task, if any.

    Args:
        task: The completed task.
        logger: A structlog-style logger.
        event: Event name to log under (e.g. ``"relay.accept_loop_died"``).
        level: Logger method to use.

    Returns:
        The exception, or None if the task succeeded or was cancelled.
    """
    if task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        log_fn = getattr(logger, level, logger.error)
        log_fn(event, error=str(exc), error_type=type(exc).__name__, task_name=task.get_name())
    return exc


def spawn_detached(
    coro: Coroutine[Any, Any, Any],
    registry: set[asyncio.Task[Any]],
    logger: Any,
    event: str,
    *,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Start ``coro`` as a task that nobody joins.

    The task stays in ``registry`` until done; an unexpected exception is
    logged under ``event``.
    """
    task = asyncio.create_task(coro, name=name)
    registry.add(task)

    def _on_done(t: asyncio.Task[Any]) -> None:
        registry.discard(t)
        log_task_exception(t, logger, event)

    task.add_done_callback(_on_done)
    return task


__all__ = ["log_task_exception", "spawn_detached"]
