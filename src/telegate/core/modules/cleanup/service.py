"""Periodic removal of idle sessions."""

import asyncio

import structlog

from telegate.core.core import Service
from telegate.errors import StoreError

logger = structlog.get_logger(__name__)


class CleanupService(Service):
    """Runs SessionStore.delete_expired on a fixed interval.

    Lazy expiry on reads already hides idle sessions; the sweep reclaims
    the ones nobody reads again.
    """

    _task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self.core.config.cleanup_interval_seconds

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def on_start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="session-cleanup")
        logger.debug("cleanup_service_started", interval=self.interval)

    async def on_stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def sweep(self) -> int:
        """Run one sweep and return the number of removed sessions."""
        removed = await self.store.delete_expired()
        if removed:
            logger.info("expired_sessions_removed", count=removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except StoreError:
                # Already logged by the store; the next tick retries
                continue
            except Exception:
                logger.exception("session_cleanup_failed")
