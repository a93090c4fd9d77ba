"""API package."""

from .conversation import router as conversation_router
from .status import router as status_router

__all__ = [
    "conversation_router",
    "status_router",
]
