"""Expiry reaper - periodically deletes expired sessions and blacklist entries."""

import asyncio
import contextlib

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from splitauth.core.logging import get_logger
from splitauth.services.auth import CleanupResult
from splitauth.services.session_store import SessionStore

logger = get_logger("expiry_reaper")

# How often to run cleanup (in seconds)
DEFAULT_INTERVAL_SECONDS = 3600  # 1 hour

# How long stop() waits for an in-flight sweep before cancelling it
STOP_TIMEOUT_SECONDS = 30


class ExpiryReaper:
    """Background task that sweeps expired auth records.

    Runs once right away, then every ``interval_seconds``. Shutdown is
    signalled through an event that is only checked between sweeps, so a
    sweep that has started always completes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ):
        self._session_factory = session_factory
        self._interval_seconds = max(1, interval_seconds)
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep task."""
        if self.running:
            logger.warning("Expiry reaper is already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop(), name="expiry-reaper")
        logger.info(f"Expiry reaper started (interval: {self._interval_seconds}s)")

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        self._stop_event.set()
        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=STOP_TIMEOUT_SECONDS)
            except TimeoutError:
                logger.warning("Expiry reaper did not stop in time, cancelling")
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None
        logger.info("Expiry reaper stopped")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                # Retried on the next tick
                logger.exception("Error during auth cleanup")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_seconds)
            except TimeoutError:
                continue

    async def run_once(self) -> CleanupResult:
        """Execute a single sweep.

        Returns:
            Number of sessions and blacklist entries deleted.
        """
        logger.debug("Running auth cleanup: removing expired sessions and blacklisted tokens")
        async with self._session_factory() as db:
            store = SessionStore(db)
            # A failed session sweep skips the blacklist sweep until the next tick
            result = CleanupResult(
                sessions_removed=await store.delete_expired_sessions(),
                blacklist_removed=await store.delete_expired_blacklist_entries(),
            )

        if result.sessions_removed or result.blacklist_removed:
            logger.info(
                f"Auth cleanup removed {result.sessions_removed} expired sessions "
                f"and {result.blacklist_removed} expired blacklist entries"
            )
        return result
