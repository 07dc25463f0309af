"""Long-running reconciliation loop.

A ControlLoop calls a synchronous sync function in a worker thread whenever it
is triggered by a cache event, and at least every resync interval. A failed
sync marks the controller degraded and is retried with exponential backoff.
A sync that is only waiting for its caches is retried the same way without
touching the status.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ebs_operator.errors import ConfigurationError, TransientLookupError
from ebs_operator.status import OperatorStatus

logger = logging.getLogger(__name__)


class ControlLoop:
    """Event plus resync driven loop around one controller.

    Attributes:
        name: Controller name, used for logs and status conditions
        precondition: Checked before every sync; False skips the tick
        ticks: Number of sync attempts so far
        last_error: Exception raised by the latest sync, None after a success
    """

    def __init__(
        self,
        name: str,
        sync: Callable[[], Any],
        *,
        resync_interval: float = 60.0,
        initial_backoff: float = 1.0,
        max_backoff: float = 300.0,
        status: OperatorStatus | None = None,
        precondition: Callable[[], bool] | None = None,
    ) -> None:
        self.name = name
        self.sync = sync
        self.resync_interval = resync_interval
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.status = status if status is not None else OperatorStatus()
        self.precondition = precondition

        self.ticks = 0
        self.last_error: BaseException | None = None

        self._event_loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._pending = False

    def trigger(self) -> None:
        """Request a sync as soon as possible. Safe to call from any thread."""
        if self._event_loop is None or self._wakeup is None:
            self._pending = True
            return
        self._event_loop.call_soon_threadsafe(self._wakeup.set)

    def next_backoff(self, backoff: float) -> float:
        return min(backoff * 2, self.max_backoff)

    def tick(self) -> bool:
        """Run one sync, unless the precondition says otherwise.

        Returns:
            False if the sync was skipped
        """
        if self.precondition is not None and not self.precondition():
            return False
        self.sync()
        return True

    async def run(self) -> None:
        """Run until cancelled."""
        self._event_loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        if self._pending:
            self._wakeup.set()

        logger.debug("Starting control loop %s", self.name)
        backoff = self.initial_backoff
        while True:
            self._wakeup.clear()
            self.ticks += 1
            try:
                ran = await asyncio.to_thread(self.tick)
            except TransientLookupError as e:
                logger.info("%s waiting: %s", self.name, e, extra={"event": "sync_waiting"})
                # A cache sync event ends the wait early
                await self._wait(backoff)
                backoff = self.next_backoff(backoff)
                continue
            except ConfigurationError as e:
                logger.error("%s sync failed: %s", self.name, e, extra={"event": "sync_failed"})
                delay, backoff = self._failed(e, backoff)
                await asyncio.sleep(delay)
                continue
            except Exception as e:
                logger.exception("%s sync failed", self.name, extra={"event": "sync_failed"})
                delay, backoff = self._failed(e, backoff)
                await asyncio.sleep(delay)
                continue

            backoff = self.initial_backoff
            if ran:
                self.last_error = None
                self.status.set_available(self.name)
            else:
                logger.debug("%s skipped: operator is not managed", self.name)
            await self._wait(self.resync_interval)

    def _failed(self, error: Exception, backoff: float) -> tuple[float, float]:
        self.last_error = error
        self.status.set_degraded(self.name, error)
        logger.debug("%s retrying in %.1fs", self.name, backoff)
        return backoff, self.next_backoff(backoff)

    async def _wait(self, timeout: float) -> None:
        assert self._wakeup is not None
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
