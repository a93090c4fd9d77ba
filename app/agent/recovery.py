"""
Failure recovery for requirement collection.

Collection runs an ordered list of strategies. Each returns a typed outcome
(success, partial or failure) and the first non-failure wins:

1. comprehensive parse, merge and validate
2. original three-line setup (switches the session to the step-by-step flow)
3. progressive recovery: categorize the failure and salvage high-confidence fields
4. guided prompt with a complete example

Unexpected exceptions inside a strategy are converted into a failure outcome so
the conversation always receives a next prompt.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.agent import messages
from app.agent.extractor import EMAIL_PATTERN, extract_legacy_setup, extract_requirements, normalize_cadence
from app.agent.validator import validate_requirements
from app.core.correlation import generate_error_reference
from app.core.errors import (
    ConversationError,
    FormatError,
    IncompleteDataError,
    RecoverableParseFailure,
    RequirementsValidationError,
)
from app.core.websites import clean_url
from app.models.requirements import (
    REQUIRED_FIELDS,
    RequirementsRecord,
    ValidationOutcome,
    display_name,
    merge_requirements,
)

logger = logging.getLogger(__name__)

LONG_INPUT_CHARS = 2000


class RecoveryCategory(str, Enum):
    FORMAT_ERROR = "format_error"
    MISSING_DATA = "missing_data"
    VALIDATION_ERROR = "validation_error"
    PARTIAL_SUCCESS = "partial_success"
    GENERAL_ERROR = "general_error"


_CATEGORY_TITLES = {
    RecoveryCategory.FORMAT_ERROR: "Let's fix the input format",
    RecoveryCategory.MISSING_DATA: "Almost there! Just need a few more details",
    RecoveryCategory.VALIDATION_ERROR: "Some details need a correction",
    RecoveryCategory.PARTIAL_SUCCESS: "I understood part of your message",
    RecoveryCategory.GENERAL_ERROR: "I had trouble reading that message",
}

_SALVAGE_CADENCE = re.compile(r"\b(weekly|monthly|daily|quarterly|bi-?weekly|annually)\b", re.I)
_SALVAGE_URL = re.compile(r"https?://[^\s<>\"]+", re.I)
_SALVAGE_PROJECT = re.compile(r"(?:project|report|analysis)[^:\n-]*[:\-]\s*(.+?)\s*(?:\n|$)", re.I)
_SALVAGE_COMPANY = re.compile(r"(?:company|product|brand)[^:\n-]*[:\-]\s*(.+?)\s*(?:\n|$)", re.I)


class SalvageResult(BaseModel):
    """Fields recovered by the reduced extraction pass."""
    record: RequirementsRecord = Field(default_factory=RequirementsRecord)
    confidence: int = 0

    @property
    def recovered_fields(self) -> List[str]:
        return self.record.present_fields()

    @property
    def has_data(self) -> bool:
        return bool(self.recovered_fields)


class RecoveryOutcome(BaseModel):
    category: RecoveryCategory
    salvage: SalvageResult
    message: str


class ProgressiveRecoveryHandler:
    """Turns a failed parse into salvaged fields and an actionable message."""

    def salvage(self, text: str) -> SalvageResult:
        """High-confidence-only pass: simple patterns that rarely misfire."""
        content = text or ""
        found: Dict[str, str] = {}

        email = EMAIL_PATTERN.search(content)
        if email:
            found["user_email"] = email.group(0)
        cadence = _SALVAGE_CADENCE.search(content)
        if cadence:
            found["report_frequency"] = normalize_cadence(cadence.group(1))
        url = _SALVAGE_URL.search(content)
        if url:
            cleaned = clean_url(url.group(0))
            if cleaned:
                found["product_url"] = cleaned
        project = _SALVAGE_PROJECT.search(content)
        if project and len(project.group(1).strip()) > 3:
            found["project_name"] = project.group(1).strip().strip("\"'")
        company = _SALVAGE_COMPANY.search(content)
        if company and len(company.group(1).strip()) > 2:
            found["product_name"] = company.group(1).strip().strip("\"'")

        confidence = min(len(found) * 20, 80) if found else 0
        return SalvageResult(record=RequirementsRecord(**found), confidence=confidence)

    def categorize(self, error: Optional[BaseException], text: str, salvage: Optional[SalvageResult] = None) -> RecoveryCategory:
        detail = str(error or "").lower()
        if isinstance(error, FormatError) or "format" in detail or len(text or "") > LONG_INPUT_CHARS:
            return RecoveryCategory.FORMAT_ERROR
        if isinstance(error, IncompleteDataError) or "email" in detail or "required" in detail:
            return RecoveryCategory.MISSING_DATA
        if isinstance(error, RequirementsValidationError) or "invalid" in detail or "validation" in detail:
            return RecoveryCategory.VALIDATION_ERROR
        salvage = salvage if salvage is not None else self.salvage(text)
        if salvage.has_data:
            return RecoveryCategory.PARTIAL_SUCCESS
        return RecoveryCategory.GENERAL_ERROR

    def recover(
        self,
        text: str,
        error: Optional[BaseException],
        existing: Optional[RequirementsRecord] = None,
    ) -> RecoveryOutcome:
        salvage = self.salvage(text)
        category = self.categorize(error, text, salvage)
        merged = merge_requirements(existing or RequirementsRecord(), salvage.record)
        logger.info(
            f"Recovery category={category.value} salvaged={salvage.recovered_fields} "
            f"confidence={salvage.confidence}"
        )
        return RecoveryOutcome(
            category=category,
            salvage=salvage,
            message=self.compose_message(category, text, salvage, merged, error),
        )

    def compose_message(
        self,
        category: RecoveryCategory,
        text: str,
        salvage: SalvageResult,
        merged: RequirementsRecord,
        error: Optional[BaseException] = None,
    ) -> str:
        parts = [f"**{_CATEGORY_TITLES[category]}** ({category.value.replace('_', ' ')})"]

        if category == RecoveryCategory.FORMAT_ERROR:
            if len(text or "") > LONG_INPUT_CHARS:
                parts.append(
                    f"Your message is quite long ({len(text)} characters). "
                    "Try a numbered list with one piece of information per line."
                )
            else:
                parts.append("Try plain text with one piece of information per line, starting with your email address.")

        if salvage.has_data:
            recovered = [f"- {display_name(f)}: {salvage.record.value_of(f)}" for f in salvage.recovered_fields]
            parts.append("**Good news!** I recovered this information:\n" + "\n".join(recovered))

        error_fields = list(getattr(error, "fields", []) or [])
        needed = [f for f in error_fields if f in REQUIRED_FIELDS]
        needed += [f for f in merged.missing_required() if f not in needed]
        if needed:
            lines = [
                f"{i}. **{display_name(f)}** - e.g., \"{messages.example_for(f)}\""
                for i, f in enumerate(needed, start=1)
            ]
            parts.append("**Still need:**\n" + "\n".join(lines))

        parts.append(
            "Everything you've shared before is preserved and will be merged with your next message, "
            "so you only need to send what's missing."
        )
        return "\n\n".join(parts)


class CollectionContext(BaseModel):
    """Input shared by every collection strategy."""
    text: str
    existing: RequirementsRecord = Field(default_factory=RequirementsRecord)
    strict: bool = False
    allow_legacy_fallback: bool = True
    last_error: Optional[ConversationError] = None

    class Config:
        arbitrary_types_allowed = True


class StrategyOutcome(BaseModel):
    status: Literal["success", "partial", "failure"]
    strategy: str
    record: Optional[RequirementsRecord] = None
    validation: Optional[ValidationOutcome] = None
    message: Optional[str] = None
    switch_to_legacy: bool = False
    error: Optional[ConversationError] = None

    class Config:
        arbitrary_types_allowed = True


CollectionStrategy = Callable[[CollectionContext], StrategyOutcome]


def comprehensive_strategy(ctx: CollectionContext) -> StrategyOutcome:
    extraction = extract_requirements(ctx.text)
    merged = merge_requirements(ctx.existing, extraction.record).with_legacy_fields_promoted()
    outcome = validate_requirements(merged, strict=ctx.strict)
    if outcome.is_valid:
        return StrategyOutcome(status="success", strategy="comprehensive", record=merged, validation=outcome)
    if not extraction.success:
        if len(ctx.text) > LONG_INPUT_CHARS:
            error: ConversationError = FormatError("Invalid format: message too long to read", outcome.missing_fields)
        else:
            error = IncompleteDataError("No required fields found in the message", outcome.missing_fields)
        return StrategyOutcome(status="failure", strategy="comprehensive", validation=outcome, error=error)
    if outcome.missing_fields:
        return StrategyOutcome(
            status="partial",
            strategy="comprehensive",
            record=merged,
            validation=outcome,
            message=messages.progressive_prompt(merged, outcome),
        )
    return StrategyOutcome(
        status="partial",
        strategy="comprehensive",
        record=merged,
        validation=outcome,
        message=messages.validation_issue_prompt(outcome),
        error=RequirementsValidationError("Provided values failed validation", outcome.invalid_fields),
    )


def legacy_setup_strategy(ctx: CollectionContext) -> StrategyOutcome:
    """Three-line setup of the step-by-step flow.

    Runs only after the comprehensive strategy failed. Any recognisable field makes the
    comprehensive strategy answer with a partial outcome, so in practice this is reached
    when the message held nothing it could read or when its parsing raised.
    """
    if not ctx.allow_legacy_fallback or not ctx.existing.is_empty():
        return StrategyOutcome(status="failure", strategy="legacy_setup", error=ctx.last_error)
    extraction = extract_legacy_setup(ctx.text)
    if not extraction.success:
        return StrategyOutcome(
            status="failure",
            strategy="legacy_setup",
            error=ctx.last_error or FormatError("Input does not match the three-line setup format"),
        )
    return StrategyOutcome(
        status="partial",
        strategy="legacy_setup",
        record=merge_requirements(ctx.existing, extraction.record),
        message=messages.legacy_setup_ack(extraction.record),
        switch_to_legacy=True,
    )


_handler = ProgressiveRecoveryHandler()


def progressive_recovery_strategy(ctx: CollectionContext) -> StrategyOutcome:
    outcome = _handler.recover(ctx.text, ctx.last_error, ctx.existing)
    if not outcome.salvage.has_data:
        return StrategyOutcome(status="failure", strategy="progressive_recovery", error=ctx.last_error)
    return StrategyOutcome(
        status="partial",
        strategy="progressive_recovery",
        record=merge_requirements(ctx.existing, outcome.salvage.record),
        message=outcome.message,
    )


def guided_strategy(ctx: CollectionContext) -> StrategyOutcome:
    return StrategyOutcome(status="partial", strategy="guided", record=ctx.existing, message=messages.guided_prompt())


DEFAULT_STRATEGIES: List[CollectionStrategy] = [
    comprehensive_strategy,
    legacy_setup_strategy,
    progressive_recovery_strategy,
    guided_strategy,
]


def run_collection_strategies(
    ctx: CollectionContext,
    strategies: Optional[List[CollectionStrategy]] = None,
) -> StrategyOutcome:
    """Run strategies in order and return the first success or partial outcome.

    When every strategy fails, the result is a failure carrying the complete-failure
    prompt and an error reference; the existing record is left untouched.
    """
    for strategy in strategies if strategies is not None else DEFAULT_STRATEGIES:
        try:
            outcome = strategy(ctx)
        except Exception as e:
            logger.exception(f"Collection strategy {getattr(strategy, '__name__', strategy)} failed: {e}")
            outcome = StrategyOutcome(
                status="failure",
                strategy=getattr(strategy, "__name__", "unknown"),
                error=RecoverableParseFailure(str(e) or type(e).__name__),
            )
        if outcome.status != "failure":
            return outcome
        if outcome.error is not None:
            ctx = ctx.model_copy(update={"last_error": outcome.error})

    reference = generate_error_reference()
    logger.error(f"All collection strategies failed (reference {reference})")
    return StrategyOutcome(
        status="failure",
        strategy="complete_failure",
        record=ctx.existing,
        message=messages.complete_failure_prompt(reference),
        error=ctx.last_error,
    )
