"""
Conversation API endpoints: the chat turns that collect project requirements.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from app.core.errors import CollaboratorRejectedError, CollaboratorUnavailableError
from app.schemas.base import BaseResponse
from app.schemas.conversation import MessageRequest, SessionMessageResponse, SessionResponse, TurnResponse
from app.services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["Conversations"])


def get_conversation_service() -> ConversationService:
    """Dependency to get conversation service instance."""
    from app.dependencies import get_conversation_service as _get_conversation_service
    return _get_conversation_service()


@router.post(
    "/{session_id}/messages",
    summary="Submit a chat message",
    description="Process one user message and return the assistant reply and next step"
)
async def submit_message(
    session_id: str,
    request: MessageRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    """Submit a message to a project-creation conversation."""
    try:
        result = await service.submit_message(session_id, request.text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except CollaboratorUnavailableError as e:
        logger.error(f"Session store unavailable for {session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Conversation storage is temporarily unavailable"
        )
    except CollaboratorRejectedError as e:
        logger.error(f"Session store rejected turn for {session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not save the conversation"
        )
    return BaseResponse.success(TurnResponse(**result).model_dump(), "Message processed")


@router.get(
    "/{session_id}",
    summary="Get a conversation session"
)
async def get_session(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service)
):
    session = await service.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")

    response = SessionResponse(
        session_id=session.session_id,
        step=session.step.value if session.step else None,
        flow_mode=session.flow_mode.kind,
        collected_data=session.collected_data.model_dump(exclude_none=True),
        project_id=session.project_id,
        last_correlation_id=session.last_correlation_id,
        messages=[
            SessionMessageResponse(role=m.role, content=m.content, timestamp=m.timestamp)
            for m in session.messages
        ],
        created_at=session.created_at,
        updated_at=session.updated_at,
    )
    return BaseResponse.success(response.model_dump(mode="json"))


@router.delete(
    "/{session_id}",
    summary="Delete a conversation session"
)
async def delete_session(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service)
):
    deleted = await service.delete_session(session_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return BaseResponse.success({"session_id": session_id}, "Conversation deleted")
