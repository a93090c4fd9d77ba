from __future__ import annotations

import logging
from typing import List, Optional

from app.agent import messages
from app.agent.commands import (
    detect_confirmation_choice,
    detect_delivery_choice,
    detect_migration_choice,
    detect_recovery_choice,
    is_confirmation,
    is_edit_request,
    is_migration_request,
    is_new_project_request,
    is_retry_request,
    is_support_request,
)
from app.agent.extractor import (
    extract_field_answer,
    extract_legacy_setup,
    extract_requirements,
    normalize_cadence,
)
from app.agent.recovery import CollectionContext, run_collection_strategies
from app.agent.state import TurnState
from app.agent.validator import assess_data_quality, validate_requirements
from app.core.websites import clean_url
from app.models.requirements import REQUIRED_FIELDS, RequirementsRecord, ValidationOutcome, merge_requirements
from app.models.session import (
    ComprehensiveFlow,
    ConversationSession,
    ConversationStep,
    LEGACY_STEPS,
    LegacyFlow,
    SideEffect,
)

logger = logging.getLogger(__name__)

LEGACY_PRODUCT_FIELDS = ("product_name", "product_url", "industry", "positioning")
SETUP_FIELDS = ("user_email", "report_frequency", "project_name")


async def route_entry(state: TurnState) -> TurnState:
    """Record the user's message and pick the handler for the session's current step."""
    session = state.session
    text = (state.user_text or "").strip()
    if text:
        session.add_message("user", text)

    step = session.step
    if session.unrecognized_step is not None:
        route = "session_recovery"
    elif step is None:
        route = "start"
    elif step == ConversationStep.MIGRATION_OFFER:
        route = "migration"
    elif step == ConversationStep.SESSION_RECOVERY:
        route = "session_recovery"
    elif step in LEGACY_STEPS or (step == ConversationStep.COLLECTING and session.is_legacy):
        route = "legacy"
    elif step == ConversationStep.COLLECTING:
        route = "collect"
    elif step == ConversationStep.CONFIRMING:
        route = "confirm"
    else:
        route = "complete"
    state.route = route
    state.telemetry["entry_step"] = step.value if step else None
    state.telemetry["route"] = route
    return state


def _reset_session(state: TurnState) -> None:
    session = state.session
    session.step = None
    session.collected_data = RequirementsRecord()
    session.project_id = None
    session.unrecognized_step = None
    session.flow_mode = ComprehensiveFlow() if state.comprehensive_enabled else LegacyFlow()


def _welcome(state: TurnState) -> str:
    return messages.welcome_prompt() if state.comprehensive_enabled else messages.legacy_welcome_prompt()


async def start(state: TurnState) -> TurnState:
    """Uninitialized session: an empty message re-issues the welcome prompt."""
    text = (state.user_text or "").strip()
    session = state.session
    if not text:
        state.reply = _welcome(state)
        state.expected_input = "comprehensive_form" if state.comprehensive_enabled else "text"
        state.route = "done"
        return state

    session.step = ConversationStep.COLLECTING
    if state.comprehensive_enabled and not isinstance(session.flow_mode, LegacyFlow):
        session.flow_mode = ComprehensiveFlow()
        state.route = "collect"
    else:
        session.flow_mode = LegacyFlow()
        state.route = "legacy"
    return state


def _show_confirmation(state: TurnState, record: RequirementsRecord) -> None:
    outcome = validate_requirements(record, strict=state.strict_business_rules)
    state.session.collected_data = record
    state.session.step = ConversationStep.CONFIRMING
    state.reply = messages.confirmation_summary(record, outcome, assess_data_quality(record))
    state.expected_input = "confirmation"
    state.telemetry["completeness"] = outcome.completeness


async def collect(state: TurnState) -> TurnState:
    """Comprehensive collection: parse, merge, validate and decide the next prompt."""
    session = state.session
    text = (state.user_text or "").strip()
    record = session.collected_data

    if not text:
        if record.is_empty():
            state.reply = _welcome(state)
        else:
            outcome = validate_requirements(record, strict=state.strict_business_rules)
            state.reply = messages.progressive_prompt(record, outcome)
        state.expected_input = "comprehensive_form"
        return state

    ctx = CollectionContext(
        text=text,
        existing=record,
        strict=state.strict_business_rules,
        allow_legacy_fallback=session.project_id is None,
    )
    outcome = run_collection_strategies(ctx)
    state.telemetry["strategy"] = outcome.strategy
    state.telemetry["strategy_status"] = outcome.status
    if outcome.validation is not None:
        state.telemetry["completeness"] = outcome.validation.completeness
    if outcome.error is not None:
        state.telemetry["error"] = type(outcome.error).__name__
        state.telemetry["error_fields"] = outcome.error.fields

    if outcome.status == "success" and outcome.record is not None:
        _show_confirmation(state, outcome.record)
        return state

    if outcome.record is not None:
        session.collected_data = outcome.record
    if outcome.switch_to_legacy:
        logger.info(f"Session {session.session_id} switched to the step-by-step flow")
        session.flow_mode = LegacyFlow()
        session.step = ConversationStep.LEGACY_PRODUCT_INFO
        state.expected_input = "text"
    else:
        state.expected_input = "comprehensive_form"
    state.reply = outcome.message or messages.guided_prompt()
    return state


async def confirm(state: TurnState) -> TurnState:
    session = state.session
    text = (state.user_text or "").strip()
    record = session.collected_data
    choice = detect_confirmation_choice(text)

    if choice == "confirm":
        outcome = validate_requirements(record, strict=state.strict_business_rules)
        if not outcome.is_valid:
            session.step = ConversationStep.COLLECTING
            state.reply = messages.validation_issue_prompt(outcome)
            state.expected_input = "comprehensive_form"
            return state
        session.step = ConversationStep.COMPLETE
        state.side_effects.append(SideEffect(
            kind="provision_project",
            payload={"on_failure_step": ConversationStep.CONFIRMING.value},
        ))
        state.reply = "Creating your project..."
        state.expected_input = "none"
        return state

    if choice == "edit":
        session.step = ConversationStep.COLLECTING
        state.reply = messages.edit_prompt(record)
        state.expected_input = "comprehensive_form"
        return state

    if choice == "cancel":
        _reset_session(state)
        state.reply = messages.cancelled_prompt()
        state.expected_input = "comprehensive_form"
        return state

    # Corrections typed straight into the confirmation screen
    extraction = extract_requirements(text)
    if extraction.success:
        merged = merge_requirements(record, extraction.record)
        outcome = validate_requirements(merged, strict=state.strict_business_rules)
        if outcome.is_valid:
            _show_confirmation(state, merged)
        else:
            session.collected_data = merged
            session.step = ConversationStep.COLLECTING
            state.reply = messages.progressive_prompt(merged, outcome)
            state.expected_input = "comprehensive_form"
        return state

    state.reply = messages.confirmation_reprompt()
    state.expected_input = "confirmation"
    return state


async def complete(state: TurnState) -> TurnState:
    session = state.session
    text = (state.user_text or "").strip()
    if is_new_project_request(text):
        _reset_session(state)
        state.reply = _welcome(state)
        state.expected_input = "comprehensive_form" if state.comprehensive_enabled else "text"
        return state
    if session.project_id and is_retry_request(text):
        state.side_effects.append(SideEffect(kind="retry_initial_report", payload={"project_id": session.project_id}))
        state.reply = "Retrying the initial report..."
        state.expected_input = "none"
        return state
    state.reply = messages.completed_prompt()
    state.expected_input = "text"
    return state


def _next_legacy_product_field(record: RequirementsRecord) -> Optional[str]:
    for field in LEGACY_PRODUCT_FIELDS:
        if not record.value_of(field):
            return field
    return None


def _has_customers(record: RequirementsRecord) -> bool:
    return bool(record.value_of("customer_description") or record.value_of("customer_data"))


def legacy_resume_step(record: RequirementsRecord) -> ConversationStep:
    """Earliest step-by-step state whose data is still missing."""
    if any(not record.value_of(f) for f in SETUP_FIELDS):
        return ConversationStep.COLLECTING
    if _next_legacy_product_field(record):
        return ConversationStep.LEGACY_PRODUCT_INFO
    if not _has_customers(record) or not record.value_of("user_problem"):
        return ConversationStep.LEGACY_CUSTOMER_DESCRIPTION
    return ConversationStep.LEGACY_ANALYSIS_CONFIRM


def legacy_prompt_for(step: ConversationStep, session: ConversationSession) -> str:
    record = session.collected_data
    flow = session.flow_mode
    if isinstance(flow, LegacyFlow) and flow.pending_field:
        return messages.legacy_question(flow.pending_field)
    if step == ConversationStep.COLLECTING:
        return messages.legacy_welcome_prompt()
    if step == ConversationStep.LEGACY_PRODUCT_INFO:
        return messages.legacy_question(_next_legacy_product_field(record) or "product_name")
    if step == ConversationStep.LEGACY_PRODUCT_CONFIRM:
        return messages.legacy_product_confirm(record)
    if step == ConversationStep.LEGACY_CUSTOMER_DESCRIPTION:
        if _has_customers(record):
            return messages.legacy_question("user_problem")
        return messages.legacy_customer_question()
    if step == ConversationStep.LEGACY_ANALYSIS_CONFIRM:
        return messages.legacy_analysis_confirm(record)
    if step == ConversationStep.LEGACY_REPORT_GENERATION:
        return messages.legacy_report_status()
    return messages.legacy_delivery_prompt()


def _offer_migration(state: TurnState) -> None:
    session = state.session
    flow = session.flow_mode if isinstance(session.flow_mode, LegacyFlow) else LegacyFlow()
    session.flow_mode = flow.model_copy(update={"resume_step": session.step, "migration_offered": True})
    session.step = ConversationStep.MIGRATION_OFFER
    state.reply = messages.migration_offer(session.collected_data)
    state.expected_input = "selection"


def _fields_to_fix(outcome: ValidationOutcome) -> List[str]:
    bad = set(outcome.invalid_fields) | set(outcome.missing_fields)
    return [f for f in REQUIRED_FIELDS if f in bad]


def _ask_legacy_fix(state: TurnState, outcome: ValidationOutcome) -> None:
    """Blocks project creation and asks for the first field that fails validation."""
    session = state.session
    fields = _fields_to_fix(outcome)
    flow = session.flow_mode if isinstance(session.flow_mode, LegacyFlow) else LegacyFlow()
    session.flow_mode = flow.model_copy(update={"pending_field": fields[0]})
    session.step = ConversationStep.LEGACY_ANALYSIS_CONFIRM
    logger.info(f"Session {session.session_id} needs corrections before provisioning: {fields}")
    state.reply = messages.legacy_fix_prompt(outcome, fields[0])
    state.expected_input = "text"


def _answer_pending_field(state: TurnState, field: str, text: str) -> None:
    session = state.session
    record = session.collected_data
    value = extract_field_answer(text, field).record.value_of(field) if text else ""
    if field == "product_url":
        value = clean_url(value) or ""
    if value:
        record = record.model_copy(update={field: value})
        session.collected_data = record

    outcome = validate_requirements(record.with_legacy_fields_promoted(), strict=state.strict_business_rules)
    if not outcome.is_valid:
        _ask_legacy_fix(state, outcome)
        return
    session.flow_mode = session.flow_mode.model_copy(update={"pending_field": None})
    state.reply = messages.legacy_analysis_confirm(record)
    state.expected_input = "confirmation"


async def legacy(state: TurnState) -> TurnState:
    """Step-by-step flow kept for sessions started before the single-form flow."""
    session = state.session
    text = (state.user_text or "").strip()
    step = session.step
    record = session.collected_data
    state.expected_input = "text"

    if text and is_migration_request(text) and step != ConversationStep.LEGACY_DELIVERY_CHOICE:
        _offer_migration(state)
        return state

    flow = session.flow_mode
    if isinstance(flow, LegacyFlow) and flow.pending_field:
        _answer_pending_field(state, flow.pending_field, text)
        return state

    if step == ConversationStep.COLLECTING:
        setup = extract_legacy_setup(text)
        if not setup.success:
            state.reply = messages.legacy_welcome_prompt()
            return state
        session.collected_data = merge_requirements(record, setup.record)
        session.step = ConversationStep.LEGACY_PRODUCT_INFO
        state.reply = messages.legacy_setup_ack(session.collected_data)
        return state

    if step == ConversationStep.LEGACY_PRODUCT_INFO:
        field = _next_legacy_product_field(record)
        if field and text:
            answer = extract_field_answer(text, field)
            value = answer.record.value_of(field)
            if field == "product_url":
                value = clean_url(value) or ""
            if value:
                record = record.model_copy(update={field: value})
                session.collected_data = record
                field = _next_legacy_product_field(record)
            else:
                state.reply = (
                    f"I couldn't read that answer. {messages.legacy_question(field)} "
                    f"(e.g., {messages.example_for(field)})"
                )
                return state
        if field:
            state.reply = messages.legacy_question(field)
            return state
        session.step = ConversationStep.LEGACY_PRODUCT_CONFIRM
        state.reply = messages.legacy_product_confirm(record)
        state.expected_input = "confirmation"
        return state

    if step == ConversationStep.LEGACY_PRODUCT_CONFIRM:
        if is_confirmation(text):
            session.step = ConversationStep.LEGACY_CUSTOMER_DESCRIPTION
            state.reply = messages.legacy_customer_question()
        elif is_edit_request(text):
            session.collected_data = record.model_copy(update={f: None for f in LEGACY_PRODUCT_FIELDS})
            session.step = ConversationStep.LEGACY_PRODUCT_INFO
            state.reply = messages.legacy_question("product_name")
        else:
            state.reply = messages.legacy_product_confirm(record)
            state.expected_input = "confirmation"
        return state

    if step == ConversationStep.LEGACY_CUSTOMER_DESCRIPTION:
        if len(text) < 3:
            state.reply = legacy_prompt_for(step, session)
            return state
        if _has_customers(record):
            updates = {"user_problem": text}
        else:
            updates = {"customer_description": text}
            problem = extract_requirements(text).record.value_of("user_problem")
            if problem and not record.value_of("user_problem"):
                updates["user_problem"] = problem
        record = record.model_copy(update=updates)
        session.collected_data = record
        if not record.value_of("user_problem"):
            state.reply = messages.legacy_question("user_problem")
            return state
        session.step = ConversationStep.LEGACY_ANALYSIS_CONFIRM
        state.reply = messages.legacy_analysis_confirm(record)
        state.expected_input = "confirmation"
        return state

    if step == ConversationStep.LEGACY_ANALYSIS_CONFIRM:
        if is_confirmation(text):
            outcome = validate_requirements(record.with_legacy_fields_promoted(), strict=state.strict_business_rules)
            if not outcome.is_valid:
                _ask_legacy_fix(state, outcome)
                return state
            session.step = ConversationStep.LEGACY_REPORT_GENERATION
            state.side_effects.append(SideEffect(
                kind="provision_project",
                payload={"on_failure_step": ConversationStep.LEGACY_ANALYSIS_CONFIRM.value},
            ))
            state.reply = "Starting the analysis..."
            state.expected_input = "none"
        else:
            state.reply = messages.legacy_analysis_confirm(record)
            state.expected_input = "confirmation"
        return state

    if step == ConversationStep.LEGACY_REPORT_GENERATION:
        if is_retry_request(text) and session.project_id:
            state.side_effects.append(SideEffect(kind="retry_initial_report", payload={"project_id": session.project_id}))
            state.reply = "Retrying the report..."
            state.expected_input = "none"
        elif is_support_request(text):
            state.reply = messages.support_prompt(state.support_contact, session.last_correlation_id)
        elif is_confirmation(text):
            session.step = ConversationStep.LEGACY_DELIVERY_CHOICE
            state.reply = messages.legacy_delivery_prompt()
            state.expected_input = "selection"
        else:
            state.reply = messages.legacy_report_status()
        return state

    # LEGACY_DELIVERY_CHOICE
    choice = detect_delivery_choice(text)
    if choice == "email":
        session.step = ConversationStep.COMPLETE
        state.reply = f"The report will be emailed to {record.value_of('user_email')}. " + messages.completed_prompt()
    elif choice == "migrate":
        _offer_migration(state)
    elif choice == "schedule" and session.project_id:
        session.step = ConversationStep.COMPLETE
        state.side_effects.append(SideEffect(
            kind="schedule_reports",
            payload={"project_id": session.project_id, "cadence": normalize_cadence(record.report_frequency)},
        ))
        state.reply = "Setting up recurring reports..."
        state.expected_input = "none"
    else:
        state.reply = messages.legacy_delivery_prompt()
        state.expected_input = "selection"
    return state


async def migration(state: TurnState) -> TurnState:
    """Answer to the migration offer. Collected data is always kept."""
    session = state.session
    text = (state.user_text or "").strip()
    flow = session.flow_mode if isinstance(session.flow_mode, LegacyFlow) else LegacyFlow()
    choice = detect_migration_choice(text)

    if choice == "migrate_now":
        record = session.collected_data.with_legacy_fields_promoted()
        session.flow_mode = ComprehensiveFlow()
        session.collected_data = record
        logger.info(f"Session {session.session_id} migrated to the single-form flow")
        if session.project_id:
            session.step = ConversationStep.COMPLETE
            state.reply = "You're now on the new flow and your project is already set up. " + messages.completed_prompt()
            return state
        outcome = validate_requirements(record, strict=state.strict_business_rules)
        if outcome.is_valid:
            _show_confirmation(state, record)
        else:
            session.step = ConversationStep.COLLECTING
            state.reply = messages.progressive_prompt(record, outcome)
            state.expected_input = "comprehensive_form"
        return state

    if choice == "finish_legacy":
        resume = flow.resume_step or legacy_resume_step(session.collected_data)
        session.step = resume
        session.flow_mode = flow.model_copy(update={"resume_step": None})
        state.reply = "No problem, let's continue. " + legacy_prompt_for(resume, session)
        state.expected_input = "text"
        return state

    if choice == "tell_me_more":
        state.reply = messages.migration_details()
    else:
        state.reply = messages.migration_offer(session.collected_data)
    state.expected_input = "selection"
    return state


async def session_recovery(state: TurnState) -> TurnState:
    """Drifted or interrupted session: never restart silently."""
    session = state.session
    text = (state.user_text or "").strip()
    record = session.collected_data

    if session.step != ConversationStep.SESSION_RECOVERY:
        logger.warning(f"Session {session.session_id} has unrecognized step {session.unrecognized_step!r}")
        session.unrecognized_step = None
        if session.project_id or not record.is_empty():
            session.step = ConversationStep.SESSION_RECOVERY
            state.reply = messages.recovery_prompt(record, session.project_id)
            state.expected_input = "selection"
        else:
            _reset_session(state)
            state.reply = messages.welcome_back_prompt()
            state.expected_input = "comprehensive_form"
        return state

    choice = detect_recovery_choice(text)
    if choice == "restart":
        _reset_session(state)
        state.reply = _welcome(state)
        state.expected_input = "comprehensive_form"
        return state

    if choice == "continue":
        if session.project_id:
            session.step = ConversationStep.COMPLETE
            state.reply = messages.completed_prompt()
            state.expected_input = "text"
            return state
        if session.is_legacy:
            resume = legacy_resume_step(record)
            session.step = resume
            state.reply = legacy_prompt_for(resume, session)
            state.expected_input = "text"
            return state
        outcome = validate_requirements(record, strict=state.strict_business_rules)
        if outcome.is_valid:
            _show_confirmation(state, record)
        else:
            session.step = ConversationStep.COLLECTING
            state.reply = messages.progressive_prompt(record, outcome)
            state.expected_input = "comprehensive_form"
        return state

    if choice == "review":
        if session.project_id:
            session.step = ConversationStep.COMPLETE
            state.reply = messages.collected_summary(record) + "\n\n" + messages.completed_prompt()
            state.expected_input = "text"
            return state
        session.flow_mode = ComprehensiveFlow()
        session.collected_data = record.with_legacy_fields_promoted()
        session.step = ConversationStep.COLLECTING
        state.reply = messages.edit_prompt(session.collected_data)
        state.expected_input = "comprehensive_form"
        return state

    state.reply = messages.recovery_reprompt()
    state.expected_input = "selection"
    return state


async def finalize_turn(state: TurnState) -> TurnState:
    session = state.session
    if state.reply:
        session.add_message("assistant", state.reply)
    state.telemetry["next_step"] = session.step.value if session.step else None
    state.telemetry["side_effects"] = [e.kind for e in state.side_effects]
    logger.debug(f"Turn finished for session {session.session_id}: {state.telemetry}")
    return state
