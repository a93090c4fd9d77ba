from app.agent.extractor import (
    extract_field_answer,
    extract_legacy_setup,
    extract_requirements,
    normalize_cadence,
)


NARRATIVE = "\n".join([
    "Hi! My email is jane.doe@acme.io and I'd like weekly reports.",
    "The project should be called \"Acme Competitive Watch\".",
    "Our product is Acme Analytics, website https://acmeanalytics.com.",
    "We operate in the software industry.",
    "Our positioning is the fastest self-serve analytics platform for lean product teams.",
    "Our customers are B2B SaaS startups with 10 to 200 employees and small data teams.",
    "The main problem we solve is that product teams wait weeks for analysts to answer simple questions.",
])

NUMBERED = "\n".join([
    "1. jane.doe@acme.io",
    "2. Weekly",
    "3. Acme Competitive Watch",
    "4. Acme Analytics",
    "5. https://acmeanalytics.com",
    "6. Software",
    "7. The fastest self-serve analytics platform for lean product teams",
    "8. B2B SaaS startups with 10 to 200 employees and small data teams",
    "9. Product teams wait weeks for analysts to answer simple questions",
])


def test_narrative_message_yields_every_required_field():
    result = extract_requirements(NARRATIVE)
    record = result.record

    assert result.success
    assert result.tier == "unstructured"
    assert record.user_email == "jane.doe@acme.io"
    assert record.report_frequency == "Weekly"
    assert record.project_name == "Acme Competitive Watch"
    assert record.product_name == "Acme Analytics"
    assert record.product_url == "https://acmeanalytics.com"
    assert record.industry == "software"
    assert record.positioning.startswith("the fastest self-serve analytics platform")
    assert record.customer_data.startswith("B2B SaaS startups")
    assert "wait weeks" in record.user_problem
    assert record.missing_required() == []


def test_numbered_list_is_read_positionally():
    result = extract_requirements(NUMBERED)
    record = result.record

    assert result.tier == "structured"
    assert record.project_name == "Acme Competitive Watch"
    assert record.product_name == "Acme Analytics"
    assert record.industry == "Software"
    assert record.customer_data == "B2B SaaS startups with 10 to 200 employees and small data teams"
    assert result.confidence["user_email"] == 95
    assert result.confidence["product_name"] == 75


def test_labeled_lines_are_read_in_any_order():
    text = "Industry: Fintech\nEmail: ops@ledgerly.com\nFrequency: monthly\nWebsite: ledgerly.com/"
    record = extract_requirements(text).record

    assert record.industry == "Fintech"
    assert record.user_email == "ops@ledgerly.com"
    assert record.report_frequency == "Monthly"
    assert record.product_url == "https://ledgerly.com"


def test_email_domain_is_not_taken_as_website():
    record = extract_requirements("Contact me at sam@northwind.io please").record

    assert record.user_email == "sam@northwind.io"
    assert record.product_url is None


def test_loopback_urls_are_ignored():
    record = extract_requirements("Our site is http://localhost:3000 for now").record

    assert record.product_url is None


def test_empty_and_unreadable_text_never_raise():
    assert not extract_requirements("").success
    assert not extract_requirements(None).success
    assert extract_requirements("hello there").record.is_empty()


def test_normalize_cadence():
    assert normalize_cadence("bi-weekly please") == "Biweekly"
    assert normalize_cadence("QUARTERLY") == "Quarterly"
    assert normalize_cadence("every now and then") is None
    assert normalize_cadence(None) is None


def test_legacy_setup_requires_three_lines():
    result = extract_legacy_setup("jane.doe@acme.io\nWeekly\nAcme Watch")

    assert result.success
    assert result.record.project_name == "Acme Watch"
    assert not extract_legacy_setup("jane.doe@acme.io\nWeekly").success
    assert not extract_legacy_setup("not an email\nWeekly\nAcme Watch").success


def test_field_answer_falls_back_to_whole_reply():
    result = extract_field_answer("Acme Analytics", "product_name")

    assert result.success
    assert result.record.product_name == "Acme Analytics"
    assert result.confidence["product_name"] == 60


def test_field_answer_cleans_website():
    result = extract_field_answer("acmeanalytics.com.", "product_url")

    assert result.record.product_url == "https://acmeanalytics.com"


INLINE = (
    "Email: jane.doe@acme.io. Frequency: weekly. Project name: Acme Watch. Product: Acme Analytics. "
    "Website: https://acmeanalytics.com. Industry: Software. "
    "Positioning: The fastest self-serve analytics platform for lean product teams. "
    "Customers: B2B SaaS startups with 10 to 200 employees and small data teams. "
    "Problem: Product teams wait weeks for analysts to answer simple questions."
)


def test_labels_inside_one_paragraph_are_all_read():
    result = extract_requirements(INLINE)
    record = result.record

    assert record.user_email == "jane.doe@acme.io"
    assert record.report_frequency == "Weekly"
    assert record.project_name == "Acme Watch"
    assert record.product_name == "Acme Analytics"
    assert record.product_url == "https://acmeanalytics.com"
    assert record.industry == "Software"
    assert record.customer_data == "B2B SaaS startups with 10 to 200 employees and small data teams"
    assert record.user_problem == "Product teams wait weeks for analysts to answer simple questions"
    assert record.missing_required() == []


def test_inline_label_value_stops_at_sentence_end():
    record = extract_requirements("Thanks for the help. Industry: Fintech. We sell to banks.").record

    assert record.industry == "Fintech"


def test_explicit_scheme_scores_higher_than_bare_domain():
    explicit = extract_requirements("Our site is https://acme.io")
    bare = extract_requirements("Our site is acme.io")

    assert explicit.record.product_url == bare.record.product_url == "https://acme.io"
    assert explicit.confidence["product_url"] >= bare.confidence["product_url"]
    assert explicit.confidence["product_url"] == 95
    assert bare.confidence["product_url"] == 70


def test_technology_names_are_not_websites():
    result = extract_requirements("Our backend runs on Node.js and Vue.js")

    assert result.record.product_url is None
