"""
Expiry sweep service - promotes unconfirmed reports past their deadline.

Background worker that polls on a fixed interval and runs the explicit
sweep operation. The same sweep also runs synchronously before every state
snapshot read, so the worker only bounds how long an expired report can sit
unpromoted when nobody is reading.
"""

import asyncio
import logging
import os
from typing import Callable, Optional

from ladder.services.confirmation_service import sweep_expired_reports
from ladder.storage.base import Storage

logger = logging.getLogger(__name__)

# How often the worker sweeps (seconds)
POLL_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "300"))


class ExpirySweepService:
    """Background service that promotes expired pending matches."""

    def __init__(
        self,
        storage_provider: Callable[[], Storage],
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self._storage_provider = storage_provider
        self._poll_interval = poll_interval
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Start the background sweep worker."""
        if not self.is_running:
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Expiry sweep worker started")

    def stop(self) -> None:
        """Stop the background sweep worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Expiry sweep worker stopped")

    async def run_once(self):
        """Run a single sweep. Returns the ids of promoted reports."""
        return await sweep_expired_reports(self._storage_provider())

    async def _poll_loop(self) -> None:
        """Main loop: sweep, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in expiry sweep worker: {e}", exc_info=True)

            # Wait for poll interval or until stop is signalled
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
                break
            except asyncio.TimeoutError:
                pass


_sweep_service: Optional[ExpirySweepService] = None


def get_expiry_sweep_service(storage_provider: Callable[[], Storage]) -> ExpirySweepService:
    """Get the global expiry sweep service instance, creating it on first use."""
    global _sweep_service
    if _sweep_service is None:
        _sweep_service = ExpirySweepService(storage_provider)
    return _sweep_service
