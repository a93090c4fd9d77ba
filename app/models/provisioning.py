"""
Report configuration and provisioning result models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from app.core.errors import SoftProvisioningFailure


class InitialReportConfig(BaseModel):
    """Options sent with the first report request of a new project."""
    enabled: bool = True
    priority: str = "high"
    template: str = "comprehensive"
    fallback_to_partial_data: bool = False
    force_generation: bool = False
    require_fresh_snapshots: bool = False
    timeout_seconds: float = 180.0
    retry_enabled: bool = True
    max_retries: int = 2

    def escalated(self) -> "InitialReportConfig":
        """Lenient variant used on retries."""
        return self.model_copy(update={"fallback_to_partial_data": True, "force_generation": True})


class ScheduleInfo(BaseModel):
    """Recurring report registration returned by the report collaborator."""
    schedule_id: str
    cadence: str
    next_run_time: datetime


class ReportOutcome(BaseModel):
    """Initial report stage result."""
    generated: bool = False
    report_id: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    skipped: bool = False


class ScheduleOutcome(BaseModel):
    """Recurring schedule stage result."""
    scheduled: bool = False
    schedule_id: Optional[str] = None
    next_run_time: Optional[datetime] = None
    error: Optional[str] = None
    skipped: bool = False


class ProvisioningEvent(BaseModel):
    """Business event emitted for one significant pipeline outcome."""
    name: str
    correlation_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)


class ProvisioningResult(BaseModel):
    """Aggregated outcome of a committed provisioning run."""
    correlation_id: str
    project_id: str
    project_name: str
    owner_id: str
    project_created: bool = True
    competitor_count: int = 0
    competitor_data_complete: bool = True
    product_created: bool = False
    product_id: Optional[str] = None
    product_error: Optional[str] = None
    initial_report: ReportOutcome = Field(default_factory=ReportOutcome)
    schedule: ScheduleOutcome = Field(default_factory=ScheduleOutcome)
    dependency_status: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    events: List[ProvisioningEvent] = Field(default_factory=list)
    failures: List[SoftProvisioningFailure] = Field(default_factory=list, exclude=True)
    duration_ms: int = 0

    class Config:
        arbitrary_types_allowed = True

    @property
    def report_generated(self) -> bool:
        return self.initial_report.generated

    @property
    def soft_failures(self) -> List[str]:
        """Stages that failed after the project was committed."""
        return [f.stage for f in self.failures]
