import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_EMPTY = object()


class Debouncer(Generic[T]):
    """Pending edit buffer with a resettable quiet-period timer.

    Every ``push`` replaces the buffered value and restarts the timer; the
    value is flushed once ``delay`` seconds pass with no further push. The
    clock is injectable so tests can advance time and call ``poll``; ``run``
    drives the same logic on the event loop. Flushes never overlap.
    """

    def __init__(self, delay: float, flush: Callable[[T], Awaitable[None]], clock: Callable[[], float] = time.monotonic):
        self.delay = delay
        self.flush = flush
        self.clock = clock
        self._value = _EMPTY
        self._deadline: float | None = None
        self._wake = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> bool:
        return self._value is not _EMPTY

    @property
    def flushing(self) -> bool:
        return not self._idle.is_set()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def push(self, value: T):
        self._value = value
        self._deadline = self.clock() + self.delay
        self._wake.set()

    def cancel(self):
        self._value = _EMPTY
        self._deadline = None
        self._wake.set()

    def _take(self):
        value = self._value
        self._value = _EMPTY
        self._deadline = None
        return value

    async def _flush_pending(self) -> bool:
        while not self._idle.is_set():
            await self._idle.wait()
        if not self.pending:
            return False
        self._idle.clear()
        try:
            await self.flush(self._take())
        finally:
            self._idle.set()
        return True

    async def poll(self) -> bool:
        """Flush if the quiet period has elapsed. Returns True when a flush happened."""
        if not self.pending or self.clock() < self._deadline:
            return False
        return await self._flush_pending()

    async def flush_now(self) -> bool:
        return await self._flush_pending()

    async def drain(self):
        """Wait out an in-flight flush, then flush until nothing is buffered."""
        while await self._flush_pending():
            pass

    async def run(self):
        while True:
            self._wake.clear()
            if not self.pending:
                await self._wake.wait()
                continue
            remaining = self._deadline - self.clock()
            if remaining > 0:
                try:
                    await asyncio.wait_for(self._wake.wait(), remaining)
                except asyncio.TimeoutError:
                    pass
                continue
            try:
                await self.poll()
            except Exception:
                logger.exception("debounce.flush_failed")
