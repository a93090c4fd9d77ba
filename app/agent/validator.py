"""
Validation of collected requirements.

Four independent axes: format, URL syntax, completeness and business rules.
Errors block confirmation; warnings and suggestions are only surfaced to the user.
"""

from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import urlsplit

from app.agent.extractor import CADENCES
from app.core.websites import is_loopback_host
from app.models.requirements import (
    DataQualityAssessment,
    REQUIRED_FIELDS,
    RequirementsRecord,
    ValidationIssue,
    ValidationOutcome,
    display_name,
)

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

TYPO_DOMAINS = {
    "gmial.com": "gmail.com",
    "gmai.com": "gmail.com",
    "gmal.com": "gmail.com",
    "yahooo.com": "yahoo.com",
    "hotmial.com": "hotmail.com",
    "outlok.com": "outlook.com",
}

COMMON_INDUSTRIES = (
    "saas", "software", "technology", "healthcare", "finance", "fintech", "e-commerce",
    "retail", "food", "education", "media", "marketing", "consulting", "manufacturing",
    "automotive", "real estate",
)

COMPETITIVE_KEYWORDS = ("better", "faster", "cheaper", "best", "leading", "innovative", "only", "unlike", "fastest")
TARGET_MARKET_KEYWORDS = ("b2b", "b2c", "enterprise", "small business", "startup", "freelancer", "smb", "consumer")

MIN_FIELD_LENGTH = 3
MIN_CUSTOMER_DATA_LENGTH = 20
MAX_PROJECT_NAME_LENGTH = 100
RICH_CONTENT_LENGTH = 500


def _issue(field: str, type_: str, message: str, suggestion: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(field=field, type=type_, message=message, suggestion=suggestion)


def validate_email(email: str) -> List[ValidationIssue]:
    errors: List[ValidationIssue] = []
    value = (email or "").strip()
    if not EMAIL_PATTERN.match(value):
        errors.append(_issue(
            "user_email", "format",
            "Email address format is invalid",
            "Use a full address such as name@company.com",
        ))
        return errors
    domain = value.rsplit("@", 1)[1].lower()
    if len(domain) > 253:
        errors.append(_issue("user_email", "format", "Email domain is too long", "Check the part after @"))
    elif domain in TYPO_DOMAINS:
        errors.append(_issue(
            "user_email", "format",
            f"Email domain '{domain}' looks like a typo",
            f"Did you mean {value.rsplit('@', 1)[0]}@{TYPO_DOMAINS[domain]}?",
        ))
    return errors


def validate_url(url: str) -> tuple[List[ValidationIssue], List[ValidationIssue]]:
    """Syntactic check only; the site is never contacted."""
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    value = (url or "").strip()
    if re.search(r"[\s<>\"]", value):
        errors.append(_issue("product_url", "format", "Website URL contains invalid characters",
                             "Provide a single address such as https://yourproduct.com"))
        return errors, warnings
    candidate = value if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", value) else f"https://{value}"
    try:
        parts = urlsplit(candidate)
        hostname = (parts.hostname or "").lower()
        parts.port
    except ValueError:
        errors.append(_issue("product_url", "format", "Website URL is not a valid address",
                             "Provide an address such as https://yourproduct.com"))
        return errors, warnings

    if parts.scheme.lower() not in ("http", "https") or len(hostname) < 3:
        errors.append(_issue("product_url", "format", "Website URL is not a valid address",
                             "Provide an address such as https://yourproduct.com"))
    elif is_loopback_host(hostname):
        errors.append(_issue("product_url", "format", "Local addresses cannot be analyzed",
                             "Provide your product's public website"))
    elif "." not in hostname:
        errors.append(_issue("product_url", "format", "Website URL needs a full domain name",
                             "Include the domain ending, for example .com"))
    elif parts.scheme.lower() == "http":
        warnings.append(_issue("product_url", "security", "Website does not use HTTPS",
                               "Use the https:// address if your site supports it"))
    return errors, warnings


def check_completeness(record: RequirementsRecord) -> List[ValidationIssue]:
    errors: List[ValidationIssue] = []
    for field in REQUIRED_FIELDS:
        value = record.value_of(field)
        name = display_name(field)
        if not value:
            errors.append(_issue(field, "required", f"{name} is required", f"Please provide {name.lower()}"))
        elif len(value) < MIN_FIELD_LENGTH:
            errors.append(_issue(field, "length", f"{name} is too short", f"Please provide more detailed {name.lower()}"))
    return errors


def check_business_rules(record: RequirementsRecord, strict: bool = False) -> tuple[List[ValidationIssue], List[ValidationIssue]]:
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    cadence = record.value_of("report_frequency").lower().replace("-", "")
    if cadence and cadence not in CADENCES:
        errors.append(_issue(
            "report_frequency", "business_logic", "Invalid report frequency",
            "Please choose from: " + ", ".join(c.capitalize() for c in CADENCES),
        ))

    project_name = record.value_of("project_name")
    if len(project_name) > MAX_PROJECT_NAME_LENGTH:
        warnings.append(_issue("project_name", "length", "Project name is quite long",
                               "Consider shortening the project name for better readability"))

    industry = record.value_of("industry")
    if industry and not any(i in industry.lower() for i in COMMON_INDUSTRIES) and len(industry) < 5:
        (errors if strict else warnings).append(_issue(
            "industry", "business_logic", "Industry may be too generic",
            "Consider providing more specific industry details for better analysis",
        ))

    product_name = re.sub(r"\s+", "", record.value_of("product_name").lower())
    url = record.value_of("product_url").lower()
    if product_name and url and len(product_name) > 3 and product_name not in url:
        warnings.append(_issue("product_url", "consistency", "Product name and URL may not match",
                               "Verify that the URL corresponds to the correct product"))

    customer_data = record.value_of("customer_data")
    if customer_data and len(customer_data) < MIN_CUSTOMER_DATA_LENGTH:
        (errors if strict else warnings).append(_issue(
            "customer_data", "detail", "Customer information seems brief",
            "More detailed customer information helps improve analysis quality",
        ))

    problem_words = _significant_words(record.value_of("user_problem"))
    positioning_words = set(_significant_words(record.value_of("positioning")))
    if len(problem_words) > 2 and positioning_words and not positioning_words.intersection(problem_words):
        warnings.append(_issue("positioning", "alignment", "Positioning may not clearly address stated user problems",
                               "Consider aligning your positioning more closely with the problems you solve"))
    return errors, warnings


def _significant_words(text: str) -> List[str]:
    return [w for w in re.findall(r"[a-z0-9'-]+", (text or "").lower()) if len(w) > 4]


def _suggestions(record: RequirementsRecord) -> List[str]:
    suggestions: List[str] = []
    positioning = record.value_of("positioning").lower()
    if positioning and not any(k in positioning for k in COMPETITIVE_KEYWORDS):
        suggestions.append("Consider highlighting competitive advantages in your positioning")
    customer_data = record.value_of("customer_data").lower()
    if customer_data and not any(k in customer_data for k in TARGET_MARKET_KEYWORDS):
        suggestions.append("Specify your target market (B2B, B2C, enterprise, etc.) for better competitor identification")
    total = sum(len(record.value_of(f)) for f in REQUIRED_FIELDS)
    if total < RICH_CONTENT_LENGTH:
        suggestions.append("More detailed information will result in higher quality competitive analysis")
    return suggestions


def completeness_of(record: RequirementsRecord) -> int:
    return round(len(record.filled_required()) / len(REQUIRED_FIELDS) * 100)


def validate_requirements(record: RequirementsRecord, strict: bool = False) -> ValidationOutcome:
    """Validate a candidate record. Pure: the record is not modified."""
    errors = check_completeness(record)
    warnings: List[ValidationIssue] = []

    if record.value_of("user_email"):
        errors.extend(validate_email(record.value_of("user_email")))
    if record.value_of("product_url"):
        url_errors, url_warnings = validate_url(record.value_of("product_url"))
        errors.extend(url_errors)
        warnings.extend(url_warnings)
    rule_errors, rule_warnings = check_business_rules(record, strict=strict)
    errors.extend(rule_errors)
    warnings.extend(rule_warnings)

    return ValidationOutcome(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=_suggestions(record),
        completeness=completeness_of(record),
    )


def assess_data_quality(record: RequirementsRecord) -> DataQualityAssessment:
    filled = [f for f in REQUIRED_FIELDS if len(record.value_of(f)) >= MIN_FIELD_LENGTH]
    completeness = round(len(filled) / len(REQUIRED_FIELDS) * 100)
    if completeness >= 100:
        label = "Excellent"
    elif completeness >= 90:
        label = "Very Good"
    elif completeness >= 75:
        label = "Good"
    else:
        label = "Needs Improvement"

    business_length = sum(len(record.value_of(f)) for f in ("positioning", "customer_data", "user_problem"))
    if business_length > 400:
        detail, description = "Comprehensive", "Rich detail for high-quality analysis"
    elif business_length > 200:
        detail, description = "Good", "Adequate detail for solid analysis"
    else:
        detail, description = "Basic", "Consider adding more detail for better insights"

    if completeness >= 95 and business_length > 300:
        potential = "High - Excellent foundation for deep competitive insights"
    elif completeness >= 85 and business_length > 200:
        potential = "Good - Solid foundation for competitive analysis"
    else:
        potential = "Moderate - Consider adding more detail for better results"

    return DataQualityAssessment(
        completeness=completeness,
        completeness_label=label,
        detail_level=detail,
        detail_description=description,
        analysis_potential=potential,
    )
