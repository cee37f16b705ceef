"""
Work queue for one controller.

Guarantees:
- a key is handed to at most one worker at a time
- adding a key that is already queued is a no-op
- adding a key while it is being processed marks it dirty; it is queued
  again once the current reconcile calls ``done``
- delayed adds are timers; failed keys back off exponentially per key
"""
import asyncio
from collections import deque
from typing import Deque, Dict, Optional, Set

from dbaas_operator.config.logging import get_logger
from dbaas_operator.models.resources import ResourceKey
from dbaas_operator.services import metrics
from dbaas_operator.utils.retry import backoff_delay

logger = get_logger(__name__)


class WorkQueue:
    """
    Coalescing, rate-limited queue of record keys.

    Args:
        name: Queue name used in logs and metrics (the record kind)
        base_delay: Backoff after the first failure of a key
        max_delay: Upper bound for the backoff
    """

    def __init__(self, name: str, base_delay: float = 0.5, max_delay: float = 300.0):
        self.name = name
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._queue: Deque[ResourceKey] = deque()
        self._dirty: Set[ResourceKey] = set()
        self._processing: Set[ResourceKey] = set()
        self._failures: Dict[ResourceKey, int] = {}
        self._timers: Dict[ResourceKey, asyncio.TimerHandle] = {}
        self._ready = asyncio.Event()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def _update_depth(self) -> None:
        metrics.workqueue_depth.labels(kind=self.name).set(len(self._queue))

    def add(self, key: ResourceKey) -> None:
        """Queue ``key`` unless it is already waiting."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._update_depth()
        self._ready.set()

    def add_after(self, key: ResourceKey, delay: float) -> None:
        """Queue ``key`` after ``delay`` seconds, keeping the earliest pending timer."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        when = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None and not existing.cancelled():
            if existing.when() <= when:
                return
            existing.cancel()
        self._timers[key] = loop.call_at(when, self._fire, key)

    def _fire(self, key: ResourceKey) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def add_rate_limited(self, key: ResourceKey) -> float:
        """Queue ``key`` after its backoff delay. Returns the delay used."""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        delay = backoff_delay(failures, self.base_delay, self.max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: ResourceKey) -> None:
        """Reset the backoff of ``key`` after a successful reconcile."""
        self._failures.pop(key, None)

    def num_requeues(self, key: ResourceKey) -> int:
        return self._failures.get(key, 0)

    async def get(self) -> Optional[ResourceKey]:
        """
        Wait for the next key and mark it as processing.

        Returns:
            The key, or None once the queue is shut down
        """
        while not self._queue:
            if self._shutting_down:
                return None
            self._ready.clear()
            await self._ready.wait()
        if self._shutting_down:
            return None

        key = self._queue.popleft()
        self._processing.add(key)
        self._dirty.discard(key)
        self._update_depth()
        return key

    def done(self, key: ResourceKey) -> None:
        """Mark ``key`` as processed; re-queue it if it changed meanwhile."""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._update_depth()
            self._ready.set()

    def shutdown(self) -> None:
        """Stop handing out keys and cancel pending timers."""
        self._shutting_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._ready.set()
        logger.debug("work_queue_shut_down", kind=self.name, pending=len(self._queue))
