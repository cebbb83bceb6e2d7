"""
Keyed work queue for reconcile requests.

Guarantees that a key is handed to at most one worker at a time: adding a
key that is already being processed marks it dirty, and it is queued again
only when the current worker calls done(). Adding a key that is already
waiting is a no-op. Failed keys are re-added with exponential backoff.
"""

import asyncio
import logging
from collections.abc import Hashable

logger = logging.getLogger(__name__)


class WorkQueue:
    """Deduplicating FIFO of keys with per-key exclusivity and backoff."""

    def __init__(self, base_delay: float = 0.1, max_delay: float = 60.0):
        """
        Initialize the work queue.

        Args:
            base_delay: Backoff after the first failure of a key (seconds)
            max_delay: Upper bound on the backoff (seconds)
        """
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._ready: asyncio.Queue = asyncio.Queue()
        self._dirty: set[Hashable] = set()  # Waiting to be processed
        self._processing: set[Hashable] = set()
        self._failures: dict[Hashable, int] = {}
        self._timers: dict[Hashable, asyncio.TimerHandle] = {}
        self._shut_down = False

    def __len__(self) -> int:
        return self._ready.qsize()

    def add(self, key: Hashable) -> None:
        """Queue ``key`` unless it is already waiting."""
        if self._shut_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            # Re-queued by done()
            return
        self._ready.put_nowait(key)

    def add_after(self, key: Hashable, delay: float) -> None:
        """Queue ``key`` after ``delay`` seconds (the earliest pending delay wins)."""
        if self._shut_down:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        when = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing.when() <= when:
                return
            existing.cancel()
        self._timers[key] = loop.call_at(when, self._fire, key)

    def _fire(self, key: Hashable) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def add_rate_limited(self, key: Hashable) -> float:
        """
        Queue ``key`` after a backoff that doubles with each failure.

        Returns:
            The delay applied, in seconds
        """
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        delay = min(self.base_delay * (2**failures), self.max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: Hashable) -> None:
        """Reset the failure count of ``key``."""
        self._failures.pop(key, None)

    def num_requeues(self, key: Hashable) -> int:
        return self._failures.get(key, 0)

    def _take(self, key: Hashable) -> Hashable:
        self._dirty.discard(key)
        self._processing.add(key)
        return key

    async def get(self) -> Hashable:
        """Wait for the next key and mark it as processing."""
        return self._take(await self._ready.get())

    def get_nowait(self) -> Hashable | None:
        """Next key if one is ready, None otherwise."""
        try:
            return self._take(self._ready.get_nowait())
        except asyncio.QueueEmpty:
            return None

    def done(self, key: Hashable) -> None:
        """Release ``key``; queue it again if it was added while processing."""
        self._processing.discard(key)
        if key in self._dirty and not self._shut_down:
            self._ready.put_nowait(key)

    def is_processing(self, key: Hashable) -> bool:
        return key in self._processing

    def shut_down(self) -> None:
        """Stop accepting keys and cancel pending delayed adds."""
        self._shut_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        logger.debug("Work queue shut down")
