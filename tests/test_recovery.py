from app.agent.recovery import (
    CollectionContext,
    ProgressiveRecoveryHandler,
    RecoveryCategory,
    StrategyOutcome,
    comprehensive_strategy,
    guided_strategy,
    legacy_setup_strategy,
    run_collection_strategies,
)
from app.core.errors import FormatError, IncompleteDataError, RequirementsValidationError
from app.models.requirements import RequirementsRecord


def test_salvage_keeps_high_confidence_fields_only():
    handler = ProgressiveRecoveryHandler()
    salvage = handler.salvage("reach me at jane.doe@acme.io, monthly is fine, site https://acmeanalytics.com")

    assert salvage.record.user_email == "jane.doe@acme.io"
    assert salvage.record.report_frequency == "Monthly"
    assert salvage.record.product_url == "https://acmeanalytics.com"
    assert salvage.confidence == 60


def test_salvage_confidence_is_capped():
    text = "\n".join([
        "jane.doe@acme.io weekly https://acmeanalytics.com",
        "Project: Acme Watch",
        "Company: Acme Analytics",
    ])
    salvage = ProgressiveRecoveryHandler().salvage(text)

    assert len(salvage.recovered_fields) == 5
    assert salvage.confidence == 80


def test_categorize():
    handler = ProgressiveRecoveryHandler()

    assert handler.categorize(FormatError("bad"), "x") == RecoveryCategory.FORMAT_ERROR
    assert handler.categorize(None, "x" * 2500) == RecoveryCategory.FORMAT_ERROR
    assert handler.categorize(IncompleteDataError("none"), "x") == RecoveryCategory.MISSING_DATA
    assert handler.categorize(None, "weekly please") == RecoveryCategory.PARTIAL_SUCCESS
    assert handler.categorize(None, "hmm") == RecoveryCategory.GENERAL_ERROR


def test_recovery_message_lists_recovered_and_missing_fields():
    existing = RequirementsRecord(project_name="Acme Watch")
    outcome = ProgressiveRecoveryHandler().recover("jane.doe@acme.io", IncompleteDataError("missing"), existing)

    assert outcome.category == RecoveryCategory.MISSING_DATA
    assert "Good news!" in outcome.message
    assert "Report Frequency" in outcome.message
    assert "Project Name" not in outcome.message.split("**Still need:**")[1]


def test_comprehensive_strategy_partial_keeps_existing_data():
    ctx = CollectionContext(
        text="Our industry is healthcare. Website: https://carely.health",
        existing=RequirementsRecord(user_email="jane.doe@acme.io"),
    )
    outcome = comprehensive_strategy(ctx)

    assert outcome.status == "partial"
    assert outcome.record.user_email == "jane.doe@acme.io"
    assert outcome.record.product_url == "https://carely.health"
    assert "Still need" in outcome.message


def test_comprehensive_strategy_fails_when_nothing_is_extracted():
    outcome = comprehensive_strategy(CollectionContext(text="hmm"))

    assert outcome.status == "failure"
    assert isinstance(outcome.error, IncompleteDataError)


def test_three_line_setup_is_read_as_partial_record():
    outcome = run_collection_strategies(CollectionContext(text="jane.doe@acme.io\nWeekly\nAcme Watch"))

    assert outcome.status == "partial"
    assert outcome.strategy == "comprehensive"
    assert outcome.record.project_name == "Acme Watch"
    assert not outcome.switch_to_legacy


def test_legacy_setup_strategy_switches_flow_for_fresh_sessions():
    outcome = legacy_setup_strategy(CollectionContext(text="jane.doe@acme.io\nWeekly\nAcme Watch"))

    assert outcome.status == "partial"
    assert outcome.switch_to_legacy
    assert outcome.record.report_frequency == "Weekly"

    existing = RequirementsRecord(user_email="jane.doe@acme.io")
    skipped = legacy_setup_strategy(CollectionContext(text="jane.doe@acme.io\nWeekly\nAcme Watch", existing=existing))
    assert skipped.status == "failure"


def test_unreadable_input_falls_through_to_guided_prompt():
    outcome = run_collection_strategies(CollectionContext(text="hmm"))

    assert outcome.status == "partial"
    assert outcome.strategy == "guided"


def test_strategy_exception_becomes_recoverable_failure():
    def broken(ctx):
        raise RuntimeError("parser exploded")

    seen = []

    def recorder(ctx):
        seen.append(ctx.last_error)
        return guided_strategy(ctx)

    outcome = run_collection_strategies(CollectionContext(text="anything"), [broken, recorder])

    assert outcome.strategy == "guided"
    assert "parser exploded" in str(seen[0])


def test_all_strategies_failing_gives_error_reference():
    def failing(ctx):
        return StrategyOutcome(status="failure", strategy="failing")

    existing = RequirementsRecord(user_email="jane.doe@acme.io")
    outcome = run_collection_strategies(CollectionContext(text="x", existing=existing), [failing])

    assert outcome.strategy == "complete_failure"
    assert "Reference: ERR-" in outcome.message
    assert outcome.record.user_email == "jane.doe@acme.io"


def test_invalid_values_carry_a_validation_error():
    text = "\n".join([
        "1. jane.doe@gmial.com",
        "2. Weekly",
        "3. Acme Competitive Watch",
        "4. Acme Analytics",
        "5. https://acmeanalytics.com",
        "6. Software",
        "7. The fastest self-serve analytics platform for lean product teams",
        "8. B2B SaaS startups with 10 to 200 employees and small data teams",
        "9. Product teams wait weeks for analysts to answer simple questions",
    ])

    outcome = comprehensive_strategy(CollectionContext(text=text))

    assert outcome.status == "partial"
    assert isinstance(outcome.error, RequirementsValidationError)
    assert outcome.error.fields == ["user_email"]
    assert "gmail.com" in outcome.message


def test_three_line_setup_is_used_when_the_comprehensive_parse_breaks():
    def broken(ctx):
        raise RuntimeError("parser exploded")

    outcome = run_collection_strategies(
        CollectionContext(text="jane.doe@acme.io\nWeekly\nAcme Watch"),
        [broken, legacy_setup_strategy, guided_strategy],
    )

    assert outcome.strategy == "legacy_setup"
    assert outcome.switch_to_legacy
    assert outcome.record.project_name == "Acme Watch"
