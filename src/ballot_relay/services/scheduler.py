"""Background scheduling of delivery sweeps.

This module provides the Scheduler class, which decides *when* the delivery
engine sweeps: on a fixed period, immediately when connectivity is restored,
and on demand.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ballot_relay.services.delivery import DeliveryEngine
from ballot_relay.services.store import StorageUnavailable

# Configure logger for this module
logger = logging.getLogger(__name__)


class Scheduler:
    """Periodically runs ``DeliveryEngine.sweep`` in the background.

    The loop is an explicit task handle started and stopped by the owner. The
    online/offline toggle lives here; while offline the loop keeps sweeping so
    orphan recovery and backoff bookkeeping continue, and the engine defers
    every transport call.
    """

    def __init__(self, engine: DeliveryEngine, interval: float = 5.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.engine = engine
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._wake = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def online(self) -> bool:
        return self.engine.connectivity.online

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the loop, letting an in-flight sweep drain rather than truncating it."""
        if self._task is None:
            return

        self._stopping.set()
        self._wake.set()
        self.engine.cancel_sweep()
        await self._task
        self._task = None

    def set_online(self, online: bool) -> None:
        """Manual online/offline toggle; reconnecting triggers an immediate sweep."""
        if self.engine.connectivity.set_online(online):
            self.trigger()

    def trigger(self) -> None:
        """Request an out-of-band sweep without waiting for the next period."""
        self._wake.set()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.engine.sweep()
            except StorageUnavailable as e:
                logger.warning("Sweep aborted, record store unavailable: %s", e)
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("Sweep failed with network error: %s", e)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("Sweep failed with data processing error: %s", e, exc_info=True)

            if self._stopping.is_set():
                break

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            self._wake.clear()
