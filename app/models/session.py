"""
Conversation session model and its persisted snapshot shape.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from typing_extensions import Annotated

from app.models.requirements import RequirementsRecord


class ConversationStep(str, Enum):
    """Named conversation states."""
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    COMPLETE = "complete"
    # Step-by-step flow kept for older sessions
    LEGACY_PRODUCT_INFO = "legacy_product_info"
    LEGACY_PRODUCT_CONFIRM = "legacy_product_confirm"
    LEGACY_CUSTOMER_DESCRIPTION = "legacy_customer_description"
    LEGACY_ANALYSIS_CONFIRM = "legacy_analysis_confirm"
    LEGACY_REPORT_GENERATION = "legacy_report_generation"
    LEGACY_DELIVERY_CHOICE = "legacy_delivery_choice"
    # Prompts awaiting a choice
    MIGRATION_OFFER = "migration_offer"
    SESSION_RECOVERY = "session_recovery"


LEGACY_STEPS = frozenset({
    ConversationStep.LEGACY_PRODUCT_INFO,
    ConversationStep.LEGACY_PRODUCT_CONFIRM,
    ConversationStep.LEGACY_CUSTOMER_DESCRIPTION,
    ConversationStep.LEGACY_ANALYSIS_CONFIRM,
    ConversationStep.LEGACY_REPORT_GENERATION,
    ConversationStep.LEGACY_DELIVERY_CHOICE,
})

# Numeric step ids written by older clients
NUMERIC_STEP_ALIASES = {
    "0": ConversationStep.COLLECTING,
    "1": ConversationStep.LEGACY_PRODUCT_INFO,
    "1.5": ConversationStep.LEGACY_PRODUCT_CONFIRM,
    "2": ConversationStep.LEGACY_CUSTOMER_DESCRIPTION,
    "3": ConversationStep.LEGACY_ANALYSIS_CONFIRM,
    "4": ConversationStep.LEGACY_REPORT_GENERATION,
    "5": ConversationStep.LEGACY_REPORT_GENERATION,
    "6": ConversationStep.LEGACY_DELIVERY_CHOICE,
}
LEGACY_NUMERIC_STEPS = frozenset({"1", "1.5", "2", "3", "4", "5", "6"})

ExpectedInputKind = Literal["text", "comprehensive_form", "confirmation", "selection", "none"]


class ComprehensiveFlow(BaseModel):
    """Single-form collection of all required fields."""
    kind: Literal["comprehensive"] = "comprehensive"


class LegacyFlow(BaseModel):
    """Step-by-step collection, one field per turn."""
    kind: Literal["legacy"] = "legacy"
    # Step to return to when the user declines migration
    resume_step: Optional[ConversationStep] = None
    migration_offered: bool = False
    # Field the user is asked to fix before the project can be created
    pending_field: Optional[str] = None


FlowMode = Annotated[Union[ComprehensiveFlow, LegacyFlow], Field(discriminator="kind")]


class SessionMessage(BaseModel):
    """One entry of the conversation log."""
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    step: Optional[str] = None


class ConversationSession(BaseModel):
    """Per-conversation state, rebuilt from its snapshot on every turn."""
    session_id: str = Field(..., alias="sessionId")
    step: Optional[ConversationStep] = None
    flow_mode: FlowMode = Field(default_factory=ComprehensiveFlow, alias="flowMode")
    collected_data: RequirementsRecord = Field(default_factory=RequirementsRecord, alias="collectedData")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    messages: List[SessionMessage] = Field(default_factory=list)
    # Raw step value that did not map to a known state
    unrecognized_step: Optional[str] = Field(default=None, alias="unrecognizedStep")
    last_correlation_id: Optional[str] = Field(default=None, alias="lastCorrelationId")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.utcnow, alias="updatedAt")

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def normalize_snapshot(cls, data: Any) -> Any:
        """Map numeric and unknown steps, and classify snapshots without a flow mode."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw_step = data.get("step")
        if raw_step is not None and not isinstance(raw_step, ConversationStep):
            key = str(raw_step).strip()
            if key.endswith(".0"):
                key = key[:-2]
            if key in NUMERIC_STEP_ALIASES:
                data["step"] = NUMERIC_STEP_ALIASES[key]
            elif key in {s.value for s in ConversationStep}:
                data["step"] = ConversationStep(key)
            else:
                data["step"] = None
                data["unrecognizedStep"] = key
                data.pop("unrecognized_step", None)

        flow = data.get("flowMode", data.get("flow_mode"))
        if isinstance(flow, str):
            flow = {"kind": flow}
        if flow is None:
            flow = {"kind": "legacy" if _looks_legacy(data, raw_step) else "comprehensive"}
        data.pop("flow_mode", None)
        data["flowMode"] = flow
        return data

    @field_validator("messages")
    def cap_messages(cls, v):
        """Keep the persisted log bounded."""
        return v[-200:]

    @property
    def is_legacy(self) -> bool:
        return isinstance(self.flow_mode, LegacyFlow) or self.step in LEGACY_STEPS

    def add_message(self, role: str, content: str) -> None:
        self.messages.append(SessionMessage(
            role=role,
            content=content,
            step=self.step.value if self.step else None,
        ))
        self.updated_at = datetime.utcnow()

    def to_snapshot(self) -> Dict[str, Any]:
        """Serialized shape persisted between turns."""
        return {
            "sessionId": self.session_id,
            "step": self.step.value if self.step else None,
            "flowMode": self.flow_mode.model_dump(mode="json"),
            "collectedData": self.collected_data.model_dump(mode="json", by_alias=True, exclude_none=True),
            "projectId": self.project_id,
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "unrecognizedStep": self.unrecognized_step,
            "lastCorrelationId": self.last_correlation_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> "ConversationSession":
        return cls.model_validate(snapshot)


def _looks_legacy(data: Dict[str, Any], raw_step: Any) -> bool:
    """Older snapshots carry no flow mode; infer it from their shape."""
    if data.get("legacy") is True or data.get("useComprehensiveFlow") is False:
        return True
    if raw_step is not None and str(raw_step).strip() in LEGACY_NUMERIC_STEPS:
        return True
    if isinstance(raw_step, ConversationStep) and raw_step in LEGACY_STEPS:
        return True
    if isinstance(raw_step, str) and raw_step.startswith("legacy_"):
        return True
    collected = data.get("collectedData") or data.get("collected_data") or {}
    if isinstance(collected, RequirementsRecord):
        collected = collected.model_dump(by_alias=True)
    if not isinstance(collected, dict):
        return False
    if collected.get("customerDescription") or collected.get("productWebsite"):
        return True
    basic = all(collected.get(k) for k in ("userEmail", "reportFrequency"))
    comprehensive = any(collected.get(k) for k in ("positioning", "customerData", "userProblem"))
    return basic and not comprehensive and bool(collected.get("reportName") or collected.get("productName"))


class SideEffect(BaseModel):
    """Work requested by a turn and run by the conversation service after it."""
    kind: Literal["provision_project", "retry_initial_report", "schedule_reports"]
    payload: Dict[str, Any] = Field(default_factory=dict)


class TurnResult(BaseModel):
    """Return value of one processed turn."""
    session: ConversationSession
    assistant_text: str
    side_effects: List[SideEffect] = Field(default_factory=list)
    expected_input_kind: ExpectedInputKind = "text"
    timed_out: bool = False

    @property
    def next_step(self) -> Optional[str]:
        return self.session.step.value if self.session.step else None
