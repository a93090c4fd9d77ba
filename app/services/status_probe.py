"""
Cached, non-blocking availability check of the report-generation dependency.

The cached value is the only state shared across sessions. Concurrent refreshes
collapse into one in-flight check; callers arriving while it runs get the last
known value instead of waiting.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol

from ..core.config import settings
from ..models.status import ConnectionCheck, DependencyStatus

logger = logging.getLogger(__name__)

EXPIRED_MARKERS = ("expired", "expiredtoken")


class ConnectionTester(Protocol):
    async def test_connection(self) -> ConnectionCheck: ...


def _is_expired_credentials(detail: Optional[str]) -> bool:
    text = (detail or "").lower()
    return any(marker in text for marker in EXPIRED_MARKERS)


class ExternalStatusProbe:
    """Dependency status with a fixed cache window and a per-check timeout."""

    def __init__(
        self,
        client: ConnectionTester,
        cache_seconds: Optional[float] = None,
        check_timeout_seconds: Optional[float] = None,
    ):
        self.client = client
        self.cache_seconds = settings.STATUS_PROBE_CACHE_SECONDS if cache_seconds is None else cache_seconds
        self.check_timeout_seconds = (
            settings.STATUS_PROBE_TIMEOUT_SECONDS if check_timeout_seconds is None else check_timeout_seconds
        )
        self._cached: Optional[DependencyStatus] = None
        self._cached_at: float = 0.0
        self._in_flight: Optional[asyncio.Task] = None

    def _is_fresh(self) -> bool:
        return self._cached is not None and (time.monotonic() - self._cached_at) < self.cache_seconds

    async def get_status(self, force_refresh: bool = False) -> DependencyStatus:
        """Return the cached status, refreshing it when stale. Never raises."""
        if not force_refresh and self._is_fresh():
            return self._cached.model_copy(update={"from_cache": True})

        if self._in_flight is not None and not self._in_flight.done():
            if self._cached is not None:
                return self._cached.model_copy(update={"from_cache": True})
            return DependencyStatus(
                available=False,
                state="checking",
                message="Checking AI service availability",
                from_cache=True,
            )

        self._in_flight = asyncio.ensure_future(self._refresh())
        try:
            return await asyncio.shield(self._in_flight)
        finally:
            if self._in_flight is not None and self._in_flight.done():
                self._in_flight = None

    def get_cached_status(self) -> Optional[DependencyStatus]:
        """Last known status without triggering a check."""
        if self._cached is None:
            return None
        return self._cached.model_copy(update={"from_cache": True})

    def clear_cache(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    async def _refresh(self) -> DependencyStatus:
        try:
            check = await asyncio.wait_for(self.client.test_connection(), timeout=self.check_timeout_seconds)
            status = self._from_check(check)
        except asyncio.TimeoutError:
            logger.warning(f"Dependency status check timed out after {self.check_timeout_seconds}s")
            status = self._unavailable(f"Status check timed out after {self.check_timeout_seconds}s")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Dependency status check failed: {e}")
            status = self._from_check(ConnectionCheck(ok=False, error_detail=str(e)))

        self._cached = status
        self._cached_at = time.monotonic()
        logger.info(f"Dependency status refreshed: {status.state}")
        return status

    def _from_check(self, check: ConnectionCheck) -> DependencyStatus:
        if check.ok:
            return DependencyStatus(
                available=True,
                state="healthy",
                message="AI services are available",
                can_proceed_with_reports=True,
                fallback_to_basic_creation=False,
            )
        if _is_expired_credentials(check.error_detail):
            return DependencyStatus(
                available=False,
                state="expired_credentials",
                message="AI service credentials have expired; projects are created without AI features",
                error_detail=check.error_detail,
            )
        return self._unavailable(check.error_detail)

    @staticmethod
    def _unavailable(detail: Optional[str]) -> DependencyStatus:
        return DependencyStatus(
            available=False,
            state="unavailable",
            message="AI services are unavailable; projects are created without AI features",
            error_detail=detail,
        )
