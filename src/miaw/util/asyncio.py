from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from pyaileys.util.asyncio import cancel_suppress
from pyaileys.util.asyncio import ensure_task as _create_task

__all__ = ["cancel_suppress", "ensure_task"]

T = TypeVar("T")


def ensure_task(
    coro: Coroutine[Any, Any, T],
    *,
    name: str | None = None,
    logger: logging.Logger | None = None,
) -> asyncio.Task[T]:
    """
    Start `coro` as a background task.

    With `logger` given, an exception that ends the task is logged instead of
    surfacing as "Task exception was never retrieved".
    """

    t = _create_task(coro, name=name)
    if logger is not None:
        t.add_done_callback(lambda done: _log_task_failure(done, logger))
    return t


def _log_task_failure(task: asyncio.Task[Any], logger: logging.Logger) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("background task %s failed: %s", task.get_name(), exc, exc_info=exc)
