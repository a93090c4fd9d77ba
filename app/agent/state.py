from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from app.models.session import ConversationSession, ExpectedInputKind, SideEffect


class TurnState(BaseModel):
    """State passed through the LangGraph run of one conversation turn.

    The graph is compiled without a checkpointer: the session is rebuilt from its
    persisted snapshot before every turn and written back afterwards.
    """

    session: ConversationSession
    user_text: str = ""

    # Flags copied from settings by the runtime
    comprehensive_enabled: bool = True
    strict_business_rules: bool = False
    support_contact: str = "support"

    # Handler chosen by route_entry; handlers may re-route within the same turn
    route: Optional[str] = None

    # Outputs
    reply: str = ""
    expected_input: ExpectedInputKind = "text"
    side_effects: List[SideEffect] = Field(default_factory=list)
    telemetry: Dict[str, Any] = Field(default_factory=dict)
