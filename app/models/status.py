"""
External dependency status models.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


class ConnectionCheck(BaseModel):
    """Raw answer of a dependency connection test."""
    ok: bool
    error_detail: Optional[str] = None


class DependencyStatus(BaseModel):
    """Availability of the report-generation dependency as seen by the probe."""
    available: bool
    state: Literal["healthy", "unavailable", "expired_credentials", "checking"]
    message: str
    error_detail: Optional[str] = None
    can_proceed_with_reports: bool = False
    fallback_to_basic_creation: bool = True
    checked_at: datetime = Field(default_factory=datetime.utcnow)
    from_cache: bool = False
