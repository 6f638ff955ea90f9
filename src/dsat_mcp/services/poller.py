"""Fixed-interval polling for stops under observation.

Each observed key (typically a station code) owns exactly one asyncio task
that fetches, hands the result to a callback, then sleeps. Stopping an
observation cancels its task immediately, so no polling loop outlives its
consumer.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

Callback = Callable[[T], Awaitable[None] | None]

logger = logging.getLogger(__name__)


class ArrivalPoller(Generic[T]):
    """Poll a fetch function for every observed key.

    Usage:
        async with ArrivalPoller(get_stop_arrivals, interval=8.0) as poller:
            poller.expand("M228", on_update)
            ...
            poller.stop("M228")
    """

    def __init__(self, fetch: Callable[[str], Awaitable[T]], interval: float):
        """Initialize the poller.

        Args:
            fetch: Coroutine function producing a fresh result for a key.
            interval: Seconds between the end of one poll and the next.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch
        self._interval = interval
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def observing(self) -> list[str]:
        """Keys with a live polling task."""
        return [key for key, task in self._tasks.items() if not task.done()]

    def is_observing(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def observe(self, key: str, callback: Callback[T]) -> None:
        """Start polling a key (no-op if it is already observed).

        The first fetch happens immediately.
        """
        if self.is_observing(key):
            return
        self._tasks[key] = asyncio.create_task(self._run(key, callback), name=f"poll:{key}")
        logger.debug(f"Observing {key} every {self._interval}s")

    def expand(self, key: str, callback: Callback[T]) -> None:
        """Observe a single key, stopping every other observation."""
        for other in list(self._tasks):
            if other != key:
                self.stop(other)
        self.observe(key, callback)

    def stop(self, key: str) -> bool:
        """Cancel polling for a key.

        Returns:
            True if a running observation was cancelled.
        """
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Stopped observing {key}")
        return True

    async def stop_all(self) -> None:
        """Cancel every observation and wait for the tasks to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, key: str, callback: Callback[T]) -> None:
        while True:
            try:
                result = await self._fetch(key)
            except Exception as e:
                # the next cycle tries again
                logger.warning(f"Poll for {key} failed: {e!r}")
            else:
                try:
                    outcome: Any = callback(result)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception as e:
                    logger.warning(f"Callback for {key} failed: {e!r}")
            await asyncio.sleep(self._interval)

    async def __aenter__(self) -> "ArrivalPoller[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop_all()
