"""
Best-effort background work.

Persistence writes are attempted, logged on failure and otherwise ignored.
The returned task may be awaited (tests do) or dropped.
"""

import asyncio
from typing import Awaitable, Optional, Set

from .error_handling import ErrorHandler, ComponentError, ErrorSeverity
from .logging_config import get_logger

logger = get_logger("background")

# Strong references so pending tasks are not garbage collected mid-flight
_pending: Set[asyncio.Task] = set()


def fire_and_forget(coro: Awaitable,
                    component: str,
                    description: str,
                    error_handler: Optional[ErrorHandler] = None) -> asyncio.Task:
    """
    Schedule `coro` on the running loop without waiting for it.

    Failures are reported as WARNING (to `error_handler` when given, else
    logged) and never propagate to the caller.
    """
    async def _runner():
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if error_handler is not None:
                await error_handler.handle_error(ComponentError(
                    component=component,
                    severity=ErrorSeverity.WARNING,
                    message=f"{description} failed",
                    exception=e,
                ))
            else:
                logger.warning(f"{component}: {description} failed ({e})")
            return None

    task = asyncio.get_running_loop().create_task(_runner())
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain_pending(timeout: Optional[float] = None) -> None:
    """Wait for every outstanding background task (used at shutdown)."""
    tasks = [t for t in _pending if not t.done()]
    if not tasks:
        return
    await asyncio.wait(tasks, timeout=timeout)
