"""Fixed-interval capture timer with a single in-flight cycle guard."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import config

logger = logging.getLogger(__name__)


class CaptureScheduler:
    """Invokes ``cycle`` every ``interval`` seconds while active.

    A tick that lands while the previous cycle is still running is skipped.
    The guard is the in-flight task reference, assigned before the first
    suspension point, so two cycles can never overlap on the event loop.
    Stopping cancels the timer only; a running cycle is left to finish.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[None]],
        interval: float | None = None,
        on_stop: Callable[[], None] | None = None,
    ):
        self.cycle = cycle
        self.interval = interval if interval is not None else config.DETECTION_INTERVAL_SECONDS
        self.on_stop = on_stop
        self._timer: asyncio.Task | None = None
        self._in_flight: asyncio.Task | None = None
        self.skipped_ticks = 0

    @property
    def is_active(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def is_processing(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def start(self):
        if self.is_active:
            return
        logger.info("Detection started (every %.1fs)", self.interval)
        self._timer = asyncio.get_running_loop().create_task(self._run())

    def stop(self):
        if self._timer is None:
            return
        timer, self._timer = self._timer, None
        if timer is not asyncio.current_task():
            timer.cancel()
        logger.info("Detection stopped")
        if self.on_stop:
            self.on_stop()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> asyncio.Task | None:
        """Start one cycle unless one is already in flight."""
        if self.is_processing:
            self.skipped_ticks += 1
            logger.debug("Previous cycle still running, skipping tick")
            return None
        self._in_flight = asyncio.get_running_loop().create_task(self._guarded_cycle())
        return self._in_flight

    async def _guarded_cycle(self):
        try:
            await self.cycle()
        except Exception:
            logger.exception("Detection cycle crashed")

    async def wait_idle(self):
        if self._in_flight is not None:
            await asyncio.gather(self._in_flight, return_exceptions=True)
