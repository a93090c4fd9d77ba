"""Schemas package."""

from .base import BaseResponse
from .conversation import (
    MessageRequest,
    TurnResponse,
    SessionMessageResponse,
    SessionResponse
)

__all__ = [
    "BaseResponse",
    # Conversation schemas
    "MessageRequest",
    "TurnResponse",
    "SessionMessageResponse",
    "SessionResponse"
]
