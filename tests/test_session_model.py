from datetime import datetime

import pytest

from app.models.requirements import RequirementsRecord, merge_requirements
from app.models.session import ConversationSession, ConversationStep, LegacyFlow
from app.repositories.report import next_run_time


def test_snapshot_round_trip():
    session = ConversationSession(session_id="s-1", step=ConversationStep.CONFIRMING)
    session.collected_data = RequirementsRecord(user_email="jane.doe@acme.io", competitor_hints=["Looker"])
    session.add_message("user", "hello")

    restored = ConversationSession.from_snapshot(session.to_snapshot())

    assert restored.step == ConversationStep.CONFIRMING
    assert restored.collected_data.user_email == "jane.doe@acme.io"
    assert restored.collected_data.competitor_hints == ["Looker"]
    assert restored.messages[0].content == "hello"
    assert not restored.is_legacy


@pytest.mark.parametrize("raw, expected", [
    (0, ConversationStep.COLLECTING),
    ("1.5", ConversationStep.LEGACY_PRODUCT_CONFIRM),
    (3.0, ConversationStep.LEGACY_ANALYSIS_CONFIRM),
    ("6", ConversationStep.LEGACY_DELIVERY_CHOICE),
])
def test_numeric_steps_from_older_clients(raw, expected):
    session = ConversationSession.from_snapshot({"sessionId": "s", "step": raw})

    assert session.step == expected
    assert session.unrecognized_step is None


def test_legacy_snapshot_without_flow_mode_is_detected():
    session = ConversationSession.from_snapshot({
        "sessionId": "s",
        "step": "collecting",
        "collectedData": {"userEmail": "jane.doe@acme.io", "reportFrequency": "Weekly", "reportName": "Acme Watch"},
    })

    assert isinstance(session.flow_mode, LegacyFlow)
    assert session.collected_data.project_name == "Acme Watch"


def test_unknown_step_is_kept_for_recovery():
    session = ConversationSession.from_snapshot({"sessionId": "s", "step": "wizard_7"})

    assert session.step is None
    assert session.unrecognized_step == "wizard_7"


def test_merge_never_clears_existing_values():
    base = RequirementsRecord(user_email="jane.doe@acme.io", industry="Software")
    update = RequirementsRecord(industry="  ", product_name="Acme Analytics")

    merged = merge_requirements(base, update)

    assert merged.user_email == "jane.doe@acme.io"
    assert merged.industry == "Software"
    assert merged.product_name == "Acme Analytics"
    assert merge_requirements(merged, update) == merged


def test_legacy_fields_are_promoted():
    record = RequirementsRecord(customer_description="Busy parents", product_website="https://acme.io")

    promoted = record.with_legacy_fields_promoted()

    assert promoted.customer_data == "Busy parents"
    assert promoted.product_url == "https://acme.io"
    assert record.customer_data is None


def test_next_run_time_for_cadences():
    now = datetime(2026, 1, 31, 14, 30)

    assert next_run_time("Daily", now) == datetime(2026, 2, 1, 9, 0)
    assert next_run_time("weekly", now) == datetime(2026, 2, 7, 9, 0)
    assert next_run_time("Monthly", now) == datetime(2026, 2, 28, 9, 0)
    assert next_run_time("annually", now) == datetime(2027, 1, 31, 9, 0)
    with pytest.raises(ValueError):
        next_run_time("hourly", now)
