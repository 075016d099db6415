"""
Idle connection sweeper.

Clients send a heartbeat every ws_heartbeat_interval seconds; the relay
refreshes last_seen_at on each one. Nothing is evicted by default. When
ws_idle_timeout is set, this background task periodically closes
connections that have gone silent for longer than the timeout.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from shared.config.logging import get_logger

logger = get_logger(__name__)


class IdleSweeper:
    """
    Runs an eviction callback on a fixed interval.

    Usage:
        sweeper = IdleSweeper(manager.evict_idle, interval=15)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        evict: Callable[[], Awaitable[int]],
        interval: float,
    ) -> None:
        """
        Args:
            evict: Coroutine function that evicts idle connections and returns the count.
            interval: Seconds between sweeps.
        """
        self._evict = evict
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="idle_sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def sweep_once(self) -> int:
        self.sweeps += 1
        return await self._evict()

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in idle sweep", error=str(e), exc_info=True)
