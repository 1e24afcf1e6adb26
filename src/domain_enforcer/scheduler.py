"""
Scheduler module for the domain enforcer system.

Drives the orchestrator on a fixed tick. Whether a tick applies anything
(changed domain set, due periodic refresh, backoff) is the orchestrator's
decision; the scheduler only keeps the loop alive.
"""

import asyncio
from typing import Optional

from .audit_logger import AuditLogger
from .enums import LogLevel
from .models import SyncResult
from .orchestrator import SyncOrchestrator


class RefreshScheduler:
    """Periodic tick loop around a SyncOrchestrator."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        tick_seconds: float = 60.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            orchestrator: Orchestrator ticked on every iteration
            tick_seconds: Wait between ticks
            logger: Optional audit logger for logging
        """
        if tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be positive, got {tick_seconds}")
        self._orchestrator = orchestrator
        self._tick_seconds = tick_seconds
        self._logger = logger
        self._running = False
        self._ticks = 0
        self._last_result: Optional[SyncResult] = None

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._last_result

    async def run(
        self,
        stop_event: Optional[asyncio.Event] = None,
        max_ticks: Optional[int] = None,
    ) -> None:
        """
        Run the tick loop.

        Runs until stop() is called, the stop event is set, or max_ticks
        ticks have run. An exception raised by a tick is logged and the
        loop continues.

        Args:
            stop_event: Optional event to signal the scheduler to stop
            max_ticks: Optional upper bound on the number of ticks
        """
        self._running = True

        while self._running:
            self._ticks += 1
            try:
                self._last_result = await self._orchestrator.tick()
            except Exception as e:
                if self._logger:
                    self._logger.log_error("Scheduler", "Refresh tick failed", e)

            if stop_event is not None and stop_event.is_set():
                break
            if max_ticks is not None and self._ticks >= max_ticks:
                break

            if stop_event is None:
                await asyncio.sleep(self._tick_seconds)
                continue

            # Wake early when stop is requested during the wait
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._tick_seconds)
            except asyncio.TimeoutError:
                continue
            break

        self._running = False

    def stop(self) -> None:
        """Signal the scheduler to stop."""
        self._running = False

    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._running
