"""
Bounded retry with exponential backoff.

A single helper used by every call site that retries an awaitable. The operation
receives the 1-based attempt number and whether the policy has escalated to its
lenient mode, so callers can relax their request on later attempts.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EscalationMode(str, Enum):
    """How later attempts differ from the first one."""
    NONE = "none"
    LENIENT = "lenient"


class RetryPolicy(BaseModel):
    """Retry bound and backoff shape."""
    max_retries: int = Field(default=2, ge=0)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=10.0, ge=0)
    escalation: EscalationMode = EscalationMode.NONE

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt."""
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)


class RetryOutcome(BaseModel):
    """Result of a retried operation."""
    succeeded: bool
    value: Any = None
    attempts: int = 0
    error: Optional[str] = None
    escalated: bool = False


async def retry_with_backoff(
    operation: Callable[[int, bool], Awaitable[Any]],
    policy: RetryPolicy,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryOutcome:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Exceptions from the operation are recorded, never raised. Cancellation of the
    enclosing task propagates out of the backoff sleep.
    """
    last_error: Optional[str] = None
    escalated = False
    for attempt in range(1, policy.max_attempts + 1):
        escalated = attempt > 1 and policy.escalation == EscalationMode.LENIENT
        try:
            value = await operation(attempt, escalated)
            if attempt > 1:
                logger.info(f"{operation_name} succeeded on attempt {attempt}/{policy.max_attempts}")
            return RetryOutcome(succeeded=True, value=value, attempts=attempt, escalated=escalated)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = str(e) or e.__class__.__name__
            logger.warning(f"{operation_name} attempt {attempt}/{policy.max_attempts} failed: {last_error}")
            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                if delay > 0:
                    await sleep(delay)

    logger.error(f"{operation_name} failed after {policy.max_attempts} attempts: {last_error}")
    return RetryOutcome(
        succeeded=False,
        attempts=policy.max_attempts,
        error=last_error,
        escalated=escalated,
    )
