"""
Conversation service: the inbound ``submit_message`` operation.

Loads the session snapshot, runs one engine turn, performs the side effects the
turn requested (provisioning, report retry, schedule registration) and saves the
snapshot. Turns of one session are serialized with a per-session lock.
"""

import asyncio
import logging
import weakref
from typing import Any, Dict, Optional, Tuple

from ..agent import messages
from ..agent.runtime import process_turn
from ..core.config import settings
from ..core.correlation import generate_correlation_id, generate_error_reference
from ..core.errors import ProvisioningError
from ..models.session import ConversationSession, ConversationStep, ExpectedInputKind, SideEffect
from ..repositories.session import SessionRepository
from .provisioning_service import ProjectProvisioner

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for processing chat turns of project-creation conversations."""

    def __init__(self, sessions: SessionRepository, provisioner: ProjectProvisioner):
        self.sessions = sessions
        self.provisioner = provisioner
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def submit_message(self, session_id: str, text: Optional[str]) -> Dict[str, Any]:
        """Process one user message and return the assistant reply."""
        if not session_id or not session_id.strip():
            raise ValueError("session_id is required")
        if text and len(text) > settings.MAX_INPUT_CHARS:
            raise ValueError(f"Message is too long (maximum {settings.MAX_INPUT_CHARS} characters)")

        lock = self._lock_for(session_id)
        async with lock:
            session = await self.sessions.load_or_create(session_id)
            result = await process_turn(session, text)
            session = result.session
            assistant_text = result.assistant_text
            expected: ExpectedInputKind = result.expected_input_kind

            for effect in result.side_effects:
                assistant_text, expected = await self._run_side_effect(session, effect)
                _replace_last_assistant_message(session, assistant_text)

            # A timed-out turn leaves the stored snapshot untouched
            if not result.timed_out:
                await self.sessions.save(session)

        return {
            "assistant_text": assistant_text,
            "next_step": session.step.value if session.step else None,
            "expected_input_kind": expected,
            "session_id": session.session_id,
            "project_id": session.project_id,
        }

    async def _run_side_effect(
        self,
        session: ConversationSession,
        effect: SideEffect,
    ) -> Tuple[str, ExpectedInputKind]:
        if effect.kind == "provision_project":
            return await self._provision(session, effect)
        if effect.kind == "retry_initial_report":
            outcome = await self.provisioner.generate_initial_report(effect.payload["project_id"])
            if outcome.generated:
                return f"The initial report is being generated (report ID: {outcome.report_id}).", "text"
            return (
                f"The report still could not be generated after {outcome.attempts} attempts. "
                + messages.support_prompt(settings.SUPPORT_CONTACT, session.last_correlation_id),
                "text",
            )
        if effect.kind == "schedule_reports":
            outcome = await self.provisioner.schedule_reports(effect.payload["project_id"], effect.payload.get("cadence"))
            if outcome.scheduled and outcome.next_run_time:
                return (
                    f"Recurring reports are scheduled. Next run: {outcome.next_run_time:%Y-%m-%d %H:%M} UTC. "
                    + messages.completed_prompt(),
                    "text",
                )
            return (
                "Recurring reports could not be scheduled right now; they can be set up from the project page. "
                + messages.completed_prompt(),
                "text",
            )
        raise ValueError(f"Unknown side effect: {effect.kind}")

    async def _provision(self, session: ConversationSession, effect: SideEffect) -> Tuple[str, ExpectedInputKind]:
        record = session.collected_data.with_legacy_fields_promoted()
        correlation_id = generate_correlation_id()
        failure_step = ConversationStep(effect.payload.get("on_failure_step", ConversationStep.CONFIRMING.value))
        try:
            result = await self.provisioner.provision(record, session_id=session.session_id, correlation_id=correlation_id)
        except ProvisioningError as e:
            session.step = failure_step
            session.last_correlation_id = e.correlation_id or correlation_id
            return (
                messages.provisioning_failure(str(e), session.last_correlation_id, settings.SUPPORT_CONTACT),
                "confirmation",
            )
        except Exception as e:
            reference = generate_error_reference()
            logger.exception(f"Unexpected provisioning failure for session {session.session_id} ({reference}): {e}")
            session.step = failure_step
            session.last_correlation_id = reference
            return (
                messages.provisioning_failure(
                    "An unexpected error interrupted project creation.", reference, settings.SUPPORT_CONTACT
                ),
                "confirmation",
            )

        session.project_id = result.project_id
        session.last_correlation_id = result.correlation_id
        text = messages.provisioning_success(result, record)
        if session.is_legacy and session.step == ConversationStep.LEGACY_REPORT_GENERATION:
            text += "\n\n" + messages.legacy_report_status()
        return text, "text"

    async def get_session(self, session_id: str) -> Optional[ConversationSession]:
        return await self.sessions.load(session_id)

    async def delete_session(self, session_id: str) -> bool:
        async with self._lock_for(session_id):
            return await self.sessions.delete(session_id)


def _replace_last_assistant_message(session: ConversationSession, text: str) -> None:
    for message in reversed(session.messages):
        if message.role == "assistant":
            message.content = text
            return
    session.add_message("assistant", text)
