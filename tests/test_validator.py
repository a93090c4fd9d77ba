from app.agent.validator import (
    assess_data_quality,
    validate_email,
    validate_requirements,
    validate_url,
)
from app.models.requirements import RequirementsRecord


def _complete_record(**overrides) -> RequirementsRecord:
    data = dict(
        user_email="jane.doe@acme.io",
        report_frequency="Weekly",
        project_name="Acme Competitive Watch",
        product_name="Acme Analytics",
        product_url="https://acmeanalytics.com",
        industry="Software",
        positioning="The fastest self-serve analytics platform for lean product teams",
        customer_data="B2B SaaS startups with 10 to 200 employees and small data teams",
        user_problem="Product teams wait weeks for analysts to answer simple questions",
    )
    data.update(overrides)
    return RequirementsRecord(**data)


def test_complete_record_is_valid():
    outcome = validate_requirements(_complete_record())

    assert outcome.is_valid
    assert outcome.errors == []
    assert outcome.completeness == 100


def test_email_format():
    assert validate_email("user@company.com") == []
    assert validate_email("user@@bad..com")[0].type == "format"
    assert validate_email("plainaddress")


def test_email_typo_domain_is_an_error_with_suggestion():
    errors = validate_email("user@gmial.com")

    assert len(errors) == 1
    assert errors[0].suggestion == "Did you mean user@gmail.com?"


def test_partial_record_reports_missing_fields_and_completeness():
    outcome = validate_requirements(RequirementsRecord(user_email="jane.doe@acme.io", report_frequency="Weekly"))

    assert not outcome.is_valid
    assert len(outcome.missing_fields) == 7
    assert outcome.completeness == 22


def test_short_values_are_length_errors():
    outcome = validate_requirements(_complete_record(industry="IT"))

    assert "industry" in outcome.invalid_fields
    assert "industry" not in outcome.missing_fields


def test_loopback_url_is_rejected():
    errors, _ = validate_url("http://localhost:3000")
    assert errors and errors[0].field == "product_url"

    errors, _ = validate_url("https://127.0.0.1")
    assert errors


def test_plain_http_url_is_only_a_warning():
    errors, warnings = validate_url("http://acmeanalytics.com")

    assert errors == []
    assert warnings[0].type == "security"


def test_unknown_cadence_is_an_error():
    outcome = validate_requirements(_complete_record(report_frequency="Hourly"))

    assert not outcome.is_valid
    assert any(e.field == "report_frequency" and e.type == "business_logic" for e in outcome.errors)


def test_brief_customer_data_is_a_warning_unless_strict():
    record = _complete_record(customer_data="Startups")

    lenient = validate_requirements(record)
    assert lenient.is_valid
    assert any(w.field == "customer_data" for w in lenient.warnings)

    strict = validate_requirements(record, strict=True)
    assert not strict.is_valid
    assert any(e.field == "customer_data" for e in strict.errors)


def test_product_name_and_url_mismatch_warns():
    outcome = validate_requirements(_complete_record(product_url="https://example.org"))

    assert outcome.is_valid
    assert any(w.type == "consistency" for w in outcome.warnings)


def test_validation_does_not_modify_record():
    record = _complete_record(user_email="  jane.doe@acme.io  ")
    before = record.model_dump()

    validate_requirements(record)

    assert record.model_dump() == before


def test_data_quality_assessment():
    quality = assess_data_quality(_complete_record())

    assert quality.completeness == 100
    assert quality.completeness_label == "Excellent"

    sparse = assess_data_quality(RequirementsRecord(user_email="jane.doe@acme.io"))
    assert sparse.completeness_label == "Needs Improvement"
    assert sparse.detail_level == "Basic"
