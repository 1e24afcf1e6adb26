"""
Sync Orchestrator for the domain enforcer system.

The apply transaction is a single stateless attempt. This module owns the
caller-side policy around it:
- at most one cycle in flight
- skip cycles whose domain set matches the last applied one
- hold automatic attempts back after a failure (exponential backoff)
- force a full re-apply periodically while domains are active, so addresses
  that rotated since the last cycle are picked up and the anchor is reloaded
  after a reboot
- turn failures into user-facing messages that tell a dismissed
  authorization prompt apart from everything else
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

from . import i18n
from .apply_transaction import ApplyTransaction
from .audit_logger import AuditLogger
from .config import SystemConfig
from .domain_sources import DomainSource
from .enums import FailureReason, LogLevel, SyncOutcome
from .exceptions import DomainSourceError
from .models import SyncResult
from .retry_manager import RetryManager


# Periodic refresh never runs more often than this
MIN_REFRESH_INTERVAL_SECONDS = 60.0


class SyncOrchestrator:
    """
    Coordinates domain sources, the apply transaction and retry policy.

    The first cycle after construction always reloads the anchor: after a
    restart the firewall has no rules loaded even when the anchor file on
    disk is current.
    """

    def __init__(
        self,
        config: SystemConfig,
        transaction: ApplyTransaction,
        source: DomainSource,
        retry_manager: Optional[RetryManager] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: System configuration
            transaction: Apply transaction used for every cycle
            source: Where the active domain set comes from
            retry_manager: Optional retry manager (built from config when omitted)
            logger: Optional audit logger for logging
            clock: Returns the current time in seconds since the epoch
        """
        self._config = config
        self._transaction = transaction
        self._source = source
        self._retry_manager = retry_manager or RetryManager(config.retry)
        self._logger = logger
        self._clock = clock

        self._in_progress = False
        self._last_applied_domains: Optional[list[str]] = None
        self._last_success_at: Optional[float] = None
        self._last_refresh_attempt_at: Optional[float] = None

    async def __aenter__(self) -> "SyncOrchestrator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self._transaction.close()

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def last_applied_domains(self) -> Optional[list[str]]:
        if self._last_applied_domains is None:
            return None
        return list(self._last_applied_domains)

    @property
    def refresh_interval(self) -> float:
        return max(MIN_REFRESH_INTERVAL_SECONDS, self._config.refresh.min_refresh_interval_seconds)

    async def sync(self, force: bool = False, user_initiated: bool = False) -> SyncResult:
        """
        Run one synchronization cycle against the current domain set.

        Args:
            force: Apply and reload the anchor even when nothing changed
            user_initiated: Explicit user action; ignores the retry backoff

        Returns:
            SyncResult describing what happened
        """
        if self._in_progress:
            return self._skipped([], "in_progress")

        try:
            domains = self._source.load()
        except DomainSourceError as e:
            return self._source_failure(e)

        return await self._sync_domains(domains, force, user_initiated)

    async def tick(self) -> SyncResult:
        """
        Scheduler entry point.

        Runs a forced refresh when one is due, otherwise a regular cycle that
        only applies when the domain set changed.
        """
        if self._in_progress:
            return self._skipped([], "in_progress")

        try:
            domains = self._source.load()
        except DomainSourceError as e:
            return self._source_failure(e)

        now = self._clock()
        if self.should_refresh(domains, now):
            self._last_refresh_attempt_at = now
            self._log_info("Periodic refresh due", {"domains": len(domains)})
            return await self._sync_domains(domains, force=True, user_initiated=False)
        return await self._sync_domains(domains, force=False, user_initiated=False)

    def should_refresh(self, domains: list[str], now: float) -> bool:
        """
        Whether a forced periodic refresh is due.

        Only while domains are active, and only once a cycle has succeeded;
        measured from the last refresh attempt so a failing refresh is not
        retried faster than the refresh interval.
        """
        if not domains:
            self._last_refresh_attempt_at = None
            return False

        reference = self._last_refresh_attempt_at or self._last_success_at
        if reference is None:
            return False
        return now - reference >= self.refresh_interval

    async def _sync_domains(
        self,
        domains: list[str],
        force: bool,
        user_initiated: bool,
    ) -> SyncResult:
        first_cycle = self._last_applied_domains is None
        if not force and not first_cycle and domains == self._last_applied_domains:
            return self._skipped(domains, "unchanged")

        now = self._clock()
        if not (force or user_initiated) and not self._retry_manager.can_retry(now):
            wait = self._retry_manager.seconds_until_retry(now)
            self._log_info("Automatic sync held back after failure", {"retry_in_seconds": round(wait, 1)})
            return self._skipped(domains, "backoff")

        self._in_progress = True
        try:
            self._log_info(
                "Starting sync",
                {
                    "domains": len(domains),
                    "force": force,
                    "first_cycle": first_cycle,
                    "source": self._source.describe(),
                },
            )
            result = await self._transaction.apply(domains, force_anchor_reload=force or first_cycle)
        finally:
            self._in_progress = False

        finished_at = self._clock()
        if result.success:
            self._last_applied_domains = list(domains)
            self._last_success_at = finished_at
            if force or first_cycle:
                self._last_refresh_attempt_at = finished_at
            self._retry_manager.record_success()
            return SyncResult(
                outcome=SyncOutcome.APPLIED,
                domains=list(domains),
                apply_result=result,
                message=result.message,
                timestamp=self._timestamp(),
            )

        delay = self._retry_manager.record_failure(finished_at)
        self._log_error(
            "Sync failed",
            {
                "failure_reason": result.failure_reason.value if result.failure_reason else None,
                "error_message": result.message,
                "retry_in_seconds": delay,
            },
        )
        return SyncResult(
            outcome=SyncOutcome.FAILED,
            domains=list(domains),
            apply_result=result,
            message=result.message,
            timestamp=self._timestamp(),
        )

    def _source_failure(self, error: DomainSourceError) -> SyncResult:
        self._log_error(f"Domain source failed: {error.message}", {"source": self._source.describe()})
        return SyncResult(
            outcome=SyncOutcome.FAILED,
            domains=[],
            message=error.message,
            timestamp=self._timestamp(),
        )

    def _skipped(self, domains: list[str], reason: str) -> SyncResult:
        return SyncResult(
            outcome=SyncOutcome.SKIPPED,
            domains=list(domains),
            skip_reason=reason,
            timestamp=self._timestamp(),
        )

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _log_info(self, message: str, data: dict) -> None:
        """Log an info message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.INFO, "Orchestrator", message, data)

    def _log_error(self, message: str, data: dict) -> None:
        """Log an error message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.ERROR, "Orchestrator", message, data)


def user_message(result: SyncResult, language: Optional[str] = None) -> str:
    """
    Render a sync result as a localized status line.

    A dismissed authorization prompt gets its own message; every other
    failure uses the generic message with the underlying error appended.
    """
    if result.outcome == SyncOutcome.APPLIED:
        if result.apply_result is not None and result.apply_result.simulated:
            return i18n.get_message("sync.simulated", language, count=len(result.domains))
        if not result.domains:
            return i18n.get_message("sync.ok_no_domains", language)
        return i18n.get_message("sync.ok_domains", language, count=len(result.domains))

    if result.outcome == SyncOutcome.SKIPPED:
        return i18n.get_message(f"sync.skipped_{result.skip_reason or 'unchanged'}", language)

    apply_result = result.apply_result
    if apply_result is not None and apply_result.failure_reason == FailureReason.AUTHORIZATION_CANCELED:
        return i18n.get_message("sync.authorization_canceled", language)
    if apply_result is None:
        return i18n.get_message("sync.source_failed", language, error=result.message)
    return i18n.get_message("sync.failed", language, error=result.message)
