from __future__ import annotations

import asyncio
import logging
from typing import Optional

from app.agent import messages
from app.agent.state import TurnState
from app.agent.graph import compile_graph
from app.core.config import settings
from app.models.session import ConversationSession, TurnResult

logger = logging.getLogger(__name__)


async def process_turn(
    session: ConversationSession,
    text: Optional[str],
    timeout: Optional[float] = None,
    comprehensive_enabled: Optional[bool] = None,
    strict_business_rules: Optional[bool] = None,
) -> TurnResult:
    """Run one conversation turn against a copy of the session.

    The caller's session is never mutated. When the turn exceeds its time bound the
    previous state is returned unchanged with a simplified prompt.
    """
    working = session.model_copy(deep=True)
    state = TurnState(
        session=working,
        user_text=text or "",
        comprehensive_enabled=settings.ENABLE_COMPREHENSIVE_FLOW if comprehensive_enabled is None else comprehensive_enabled,
        strict_business_rules=settings.STRICT_BUSINESS_RULES if strict_business_rules is None else strict_business_rules,
        support_contact=settings.SUPPORT_CONTACT,
    )
    bound = settings.TURN_TIMEOUT_SECONDS if timeout is None else timeout
    graph = compile_graph()
    try:
        out = await asyncio.wait_for(graph.ainvoke(state), timeout=bound)
    except asyncio.TimeoutError:
        logger.warning(f"Turn for session {session.session_id} exceeded {bound}s; returning simplified prompt")
        return TurnResult(
            session=session.model_copy(deep=True),
            assistant_text=messages.simplified_prompt(),
            expected_input_kind="text",
            timed_out=True,
        )

    result = out if isinstance(out, TurnState) else TurnState.model_validate(out)
    return TurnResult(
        session=result.session,
        assistant_text=result.reply,
        side_effects=result.side_effects,
        expected_input_kind=result.expected_input,
    )
