"""
Pydantic schemas for conversation API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from app.core.config import settings


class MessageRequest(BaseModel):
    """Schema for submitting a user message to a conversation."""

    text: str = Field("", max_length=settings.MAX_INPUT_CHARS, description="User message text")

    class Config:
        json_schema_extra = {
            "example": {
                "text": "My email is jane.doe@acme.io, I'd like weekly reports on Acme Analytics."
            }
        }


class TurnResponse(BaseModel):
    """Schema for the assistant reply to one user message."""

    session_id: str
    assistant_text: str
    next_step: Optional[str] = None
    expected_input_kind: str = "text"
    project_id: Optional[str] = None


class SessionMessageResponse(BaseModel):
    role: str
    content: str
    timestamp: datetime


class SessionResponse(BaseModel):
    """Schema for a stored conversation session."""

    session_id: str
    step: Optional[str] = None
    flow_mode: str
    collected_data: Dict[str, Any] = Field(default_factory=dict)
    project_id: Optional[str] = None
    last_correlation_id: Optional[str] = None
    messages: List[SessionMessageResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
