"""Fire-and-forget background tasks whose failures are logged, not raised."""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)

# Strong references so running tasks are not garbage collected
_background_tasks: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        logger.debug("Background task cancelled: name=%s", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Background task failed: name=%s, error=%s",
            task.get_name(),
            exc,
            exc_info=exc,
        )


def spawn_supervised(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    """Start ``coro`` as an independent task and return immediately.

    Must be called from a running event loop. Exceptions raised by the
    task are caught in its done-callback and logged.
    """
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_done)
    return task
