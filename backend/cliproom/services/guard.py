import asyncio
import logging
from typing import Awaitable, TypeVar
from ..core.errors import OperationTimeoutError

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def bounded(aw: Awaitable[T], seconds: float | None, what: str = "request") -> T:
    """Await ``aw`` but give up after ``seconds``; None disables the bound."""
    if seconds is None:
        return await aw
    try:
        return await asyncio.wait_for(aw, seconds)
    except asyncio.TimeoutError as exc:
        raise OperationTimeoutError(f"{what} timed out after {seconds:g}s") from exc


def watch(task: asyncio.Task, what: str) -> asyncio.Task:
    """Log the exception of a background task nobody awaits."""

    def _done(t: asyncio.Task):
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.error("task.failed what=%s error=%s", what, exc, exc_info=exc)

    task.add_done_callback(_done)
    return task
