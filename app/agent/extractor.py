from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from app.core.websites import clean_url
from app.models.requirements import ExtractionResult, RequirementsRecord

logger = logging.getLogger(__name__)


CADENCES = ("daily", "weekly", "biweekly", "monthly", "quarterly", "annually")

SECTOR_VOCABULARY = (
    "fintech", "healthcare", "education", "retail", "finance", "automotive", "aerospace",
    "gaming", "entertainment", "media", "consulting", "manufacturing", "energy",
    "telecommunications", "telecom", "biotech", "agtech", "proptech", "edtech", "regtech",
    "insurtech", "legaltech", "martech", "adtech", "foodtech", "cleantech", "saas",
    "e-commerce", "ecommerce", "logistics", "real estate", "hospitality", "food delivery",
)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
CADENCE_PATTERN = re.compile(r"\b(daily|weekly|bi-?weekly|monthly|quarterly|annually)\b", re.I)

_LIST_MARKER = re.compile(r"^\s*(?:\(?\d{1,2}\s*[.):]|[-*•>])\s*")
_LABEL_LINE = re.compile(r"^\s*([A-Za-z][A-Za-z /&'()-]{0,40}?)\s*:\s*(.+?)\s*$")
_QUOTES = "\"'“”‘’`"

# Bare domains need a common TLD so names like "Node.js" are not read as websites
_BARE_DOMAIN_TLDS = (
    "com", "io", "co", "ai", "app", "net", "org", "dev", "tech", "biz", "info", "cloud", "xyz",
    "us", "uk", "ca", "au", "de", "fr", "nl", "es", "it", "eu", "in", "me", "so", "ly", "gg", "tv",
)

# URL patterns of decreasing strictness
_URL_PATTERNS: List[Tuple[re.Pattern, int]] = [
    (re.compile(r"https?://(?:www\.)?(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}(?::\d{1,5})?(?:[/?#][^\s]*)?", re.I), 95),
    (re.compile(r"(?:https?://)?www\.(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}(?::\d{1,5})?(?:[/?#][^\s]*)?", re.I), 85),
    (re.compile(r"\b(?:[a-zA-Z0-9-]+\.)+(?:" + "|".join(_BARE_DOMAIN_TLDS) + r")\b(?![\w-]|\.\w)(?:/[^\s]*)?", re.I), 70),
]

_PROJECT_PATTERNS: List[Tuple[re.Pattern, int]] = [
    (re.compile(r"(?:project|report|analysis)[^\n.]{0,30}?\b(?:should\s+be|be|is)\s+(?:called|named|titled)\s*[\"'“]([^\"'”\n]{2,100})[\"'”]", re.I), 90),
    (re.compile(r"(?:project|report|analysis)\s+(?:name\s+)?(?:should\s+be\s+|is\s+)?(?:called|named|titled)\s+[\"'“]?([^\"'”,.\n]{2,100})", re.I), 85),
    (re.compile(r"\b(?:call|name)\s+(?:the|this|my|our)\s+(?:project|report|analysis)\s+[\"'“]?([^\"'”,.\n]{2,100})", re.I), 80),
]

_PRODUCT_PATTERNS: List[Tuple[re.Pattern, int]] = [
    (re.compile(r"\b(?:product|company|brand)\s+name\s*(?:is|:)\s*[\"'“]?([^\"'”,.\n]{2,50})", re.I), 95),
    (re.compile(r"(?:analy[sz]ing|analy[sz]e|review)\s+(?:the\s+)?[\"'“]?([^\"'”,\n]{2,50}?)[\"'”]?\s+(?:product|company|app|website|platform)\b", re.I), 90),
    (re.compile(r"\b(?:our|my)\s+(?:product|company|startup|business|app)\s+(?:is\s+)?(?:called\s+|named\s+)?[\"'“]?([^\"'”,.\n]{2,50})", re.I), 85),
    (re.compile(r"\b(?:working\s+(?:on|at)|developing)\s+[\"'“]?([^\"'”,.\n]{2,50})", re.I), 80),
    (re.compile(r"\b(?:product|company|app)\s+(?:is\s+)?(?:called|named)\s+[\"'“]?([^\"'”,.\n]{2,50})", re.I), 75),
]

_INDUSTRY_PATTERNS: List[Tuple[re.Pattern, int]] = [
    (re.compile(r"\b(?:in|within)\s+the\s+([A-Za-z][A-Za-z&/ -]{1,40}?)\s+(?:industry|sector|space|market)\b", re.I), 80),
    (re.compile(r"\b(?:we(?:'re|\s+are)|work|operate|compete)\s+in\s+(?:the\s+)?([A-Za-z][A-Za-z&/ -]{1,40}?)\s+(?:industry|sector|space|market)\b", re.I), 75),
    (re.compile(r"\b(" + "|".join(re.escape(s) for s in SECTOR_VOCABULARY) + r"|[a-z]+tech)\b", re.I), 70),
]

_POSITIONING_PATTERN = re.compile(
    r"\b(?:positioning|value\s+prop(?:osition)?|we\s+position\s+(?:ourselves|it|the\s+product)\s+as)\b\s*(?:statement\s*)?(?:is\s+|:\s*)?(.{3,})",
    re.I,
)
_CUSTOMER_PATTERN = re.compile(
    r"\b(?:target\s+)?(?:customers?|clients?|users?|audience)\s+(?:are|is|include|includes)\s+(.{3,})",
    re.I,
)
_PROBLEM_PATTERN = re.compile(
    r"\b(?:problems?|challenges?|pain\s+points?)\s+(?:we\s+solve\s+|we\s+address\s+)?(?:is|are|:)\s+(.{3,})",
    re.I,
)

_LABELS: Dict[str, Tuple[str, ...]] = {
    "user_email": ("email", "e-mail", "email address", "contact email", "contact", "user email"),
    "report_frequency": ("frequency", "report frequency", "cadence", "report cadence", "how often", "schedule"),
    "project_name": ("project", "project name", "report name", "report", "analysis name", "report title", "title", "name"),
    "product_name": ("product", "product name", "company", "company name", "brand"),
    "product_url": ("website", "url", "product url", "website url", "product website", "site", "homepage"),
    "industry": ("industry", "market", "sector", "vertical"),
    "positioning": ("positioning", "product positioning", "positioning statement", "value proposition", "value prop", "position"),
    "customer_data": (
        "customers", "customer", "customer data", "customer information", "customer info",
        "target customers", "target audience", "audience", "customer segment", "customer base",
        "target market", "users",
    ),
    "user_problem": (
        "problem", "problems", "user problem", "user problems", "problem statement",
        "pain points", "pain point", "challenge", "challenges", "problems solved",
    ),
    "competitor_hints": ("competitors", "competitor", "known competitors", "competitor hints"),
    "focus_areas": ("focus", "focus area", "focus areas"),
    "report_template": ("template", "report template"),
}
_LABEL_INDEX = {alias: field for field, aliases in _LABELS.items() for alias in aliases}

# "label:" anywhere in a line, longest alias first so "project name" wins over "name"
_INLINE_LABEL = re.compile(
    r"(?<![\w@/.-])(?:(?:your|the|my|our)\s+)?("
    + "|".join(re.escape(alias).replace(" ", r"\s+") for alias in sorted(_LABEL_INDEX, key=len, reverse=True))
    + r")\s*:(?!//)\s*",
    re.I,
)
_SENTENCE_END = re.compile(r"[.!?](?=\s+[A-Z\"“])")

# Fields filled positionally after the three setup lines of an ordered list
_POSITIONAL_FIELDS = ("product_name", "product_url", "industry", "positioning", "customer_data", "user_problem")
_POSITIONAL_CONFIDENCE = {
    "product_name": 75,
    "product_url": 80,
    "industry": 70,
    "positioning": 70,
    "customer_data": 70,
    "user_problem": 70,
}
_LIST_FIELDS = ("competitor_hints", "focus_areas")

Found = Dict[str, Tuple[object, int]]


def _strip_marker(line: str) -> str:
    return _LIST_MARKER.sub("", line, count=1).strip()


def _unquote(value: str) -> str:
    return value.strip().strip(_QUOTES).strip()


def _clean_sentence(value: str) -> str:
    return _unquote(value).rstrip(" .;").strip()


def _normalize_label(label: str) -> str:
    value = re.sub(r"\s+", " ", label.strip().lower())
    value = re.sub(r"^(?:your|the|my|our)\s+", "", value)
    return value.rstrip("?").strip()


def normalize_cadence(value: Optional[str]) -> Optional[str]:
    """Canonical cadence word (``Weekly``) or None when no cadence keyword is present."""
    if not value:
        return None
    match = CADENCE_PATTERN.search(value)
    if not match:
        return None
    return match.group(1).lower().replace("-", "").capitalize()


def _split_list(value: str) -> List[str]:
    parts = re.split(r"\s*(?:,|;|\band\b)\s*", value)
    return [_unquote(p) for p in parts if _unquote(p)]


def _label_of(line: str) -> Optional[Tuple[str, str]]:
    match = _LABEL_LINE.match(line)
    if not match:
        return None
    field = _LABEL_INDEX.get(_normalize_label(match.group(1)))
    if not field:
        return None
    value = match.group(2).strip()
    return (field, value) if value else None


def _value_for_field(field: str, raw: str, confidence: int) -> Optional[Tuple[object, int]]:
    """Coerce a raw value to the field's shape, lowering confidence when it does not fit."""
    if field in _LIST_FIELDS:
        items = _split_list(raw)
        return (items, confidence) if items else None
    if field == "user_email":
        match = EMAIL_PATTERN.search(raw)
        return (match.group(0), max(confidence, 95)) if match else (_unquote(raw), 30)
    if field == "report_frequency":
        cadence = normalize_cadence(raw)
        return (cadence, max(confidence, 90)) if cadence else (_unquote(raw), 40)
    if field == "product_url":
        cleaned = clean_url(_unquote(raw))
        return (cleaned, confidence) if cleaned else (_unquote(raw), 30)
    value = _clean_sentence(raw) if field in ("positioning", "customer_data", "user_problem") else _unquote(raw)
    return (value, confidence) if value else None


def _put(found: Found, field: str, item: Optional[Tuple[object, int]]) -> None:
    if item is not None and field not in found:
        found[field] = item


def _labeled_segments(line: str) -> List[Tuple[str, str]]:
    """Split a line into ``(field, value)`` pairs at every known ``label:``.

    A value runs up to the next label. A line holding a single leading label keeps
    the whole remainder; otherwise the last value stops at the end of its sentence.
    """
    matches = list(_INLINE_LABEL.finditer(line))
    pairs: List[Tuple[str, str]] = []
    for index, match in enumerate(matches):
        field = _LABEL_INDEX.get(_normalize_label(match.group(1)))
        if not field:
            continue
        last = index + 1 == len(matches)
        value = line[match.end():len(line) if last else matches[index + 1].start()]
        if last and not (len(matches) == 1 and match.start() == 0):
            sentence = _SENTENCE_END.search(value)
            if sentence:
                value = value[:sentence.start()]
        value = value.strip().rstrip(" ,;.").strip()
        if value:
            pairs.append((field, value))
    return pairs


def _scan_labeled_lines(lines: List[str], found: Found) -> None:
    for line in lines:
        for field, value in _labeled_segments(_strip_marker(line)):
            _put(found, field, _value_for_field(field, value, 90))


def _structured_tier(lines: List[str], found: Found) -> bool:
    """Positional reading of an ordered list: email, cadence, project name, then the rest."""
    if len(lines) < 3:
        return False
    first, second, third = (_strip_marker(line) for line in lines[:3])

    def _value(line: str) -> str:
        labeled = _label_of(line)
        return labeled[1] if labeled else line

    email_line, cadence_line, project_line = _value(first), _value(second), _value(third)
    email = EMAIL_PATTERN.fullmatch(_unquote(email_line))
    cadence = normalize_cadence(cadence_line)
    if not email or not cadence or len(cadence_line.split()) > 3:
        return False
    project = _unquote(project_line)
    if not project:
        return False

    _put(found, "user_email", (email.group(0), 95))
    _put(found, "report_frequency", (cadence, 90))
    _put(found, "project_name", (project, 85))

    for index, line in enumerate(lines[3:3 + len(_POSITIONAL_FIELDS)]):
        stripped = _strip_marker(line)
        if _label_of(stripped):
            continue
        field = _POSITIONAL_FIELDS[index]
        _put(found, field, _value_for_field(field, stripped, _POSITIONAL_CONFIDENCE[field]))
    return True


def _adjust_product_confidence(name: str, confidence: int) -> int:
    score = float(confidence)
    if len(name) < 3:
        score *= 0.5
    if "..." in name or re.search(r"\betc\b", name, re.I) or name == name.lower():
        score *= 0.7
    words = name.split()
    if len(words) > 1 and all(w[:1].isupper() for w in words):
        score *= 1.1
    return min(100, int(round(score)))


def _extract_url(text: str) -> Optional[Tuple[str, int]]:
    scrubbed = EMAIL_PATTERN.sub(" ", text)
    for pattern, confidence in _URL_PATTERNS:
        for match in pattern.finditer(scrubbed):
            cleaned = clean_url(match.group(0))
            if cleaned:
                return cleaned, confidence
    return None


def _extract_first(patterns: List[Tuple[re.Pattern, int]], text: str) -> Optional[Tuple[str, int]]:
    for pattern, confidence in patterns:
        match = pattern.search(text)
        if match:
            value = _unquote(match.group(1))
            if value and "@" not in value and not value.lower().startswith("http"):
                return value, confidence
    return None


def _search_lines(pattern: re.Pattern, lines: List[str]) -> Optional[str]:
    for line in lines:
        match = pattern.search(line)
        if match:
            value = _clean_sentence(match.group(1))
            if len(value) >= 3 and "@" not in value:
                return value
    return None


def _unstructured_tier(text: str, lines: List[str], found: Found) -> None:
    if "user_email" not in found:
        match = EMAIL_PATTERN.search(text)
        if match:
            found["user_email"] = (match.group(0), 95)
    if "report_frequency" not in found:
        cadence = normalize_cadence(text)
        if cadence:
            found["report_frequency"] = (cadence, 90)
    if "product_url" not in found:
        url = _extract_url(text)
        if url:
            found["product_url"] = url
    if "project_name" not in found:
        _put(found, "project_name", _extract_first(_PROJECT_PATTERNS, text))
    if "product_name" not in found:
        product = _extract_first(_PRODUCT_PATTERNS, text)
        if product:
            name = product[0].rstrip(" .")
            found["product_name"] = (name, _adjust_product_confidence(name, product[1]))
    if "industry" not in found:
        industry = _extract_first(_INDUSTRY_PATTERNS, text)
        if industry:
            found["industry"] = (industry[0].strip(), industry[1])
    plain = [_strip_marker(line) for line in lines]
    for field, pattern, confidence in (
        ("positioning", _POSITIONING_PATTERN, 70),
        ("customer_data", _CUSTOMER_PATTERN, 65),
        ("user_problem", _PROBLEM_PATTERN, 65),
    ):
        if field not in found:
            value = _search_lines(pattern, plain)
            if value:
                found[field] = (value, confidence)


def extract_requirements(text: Optional[str]) -> ExtractionResult:
    """Parse free text into a partial requirements record with per-field confidence.

    Never raises: text that yields nothing returns an empty, unsuccessful result.
    """
    content = (text or "").strip()
    if not content:
        return ExtractionResult()

    lines = [line.strip() for line in content.splitlines() if line.strip()]
    found: Found = {}
    _scan_labeled_lines(lines, found)
    structured = _structured_tier(lines, found)
    _unstructured_tier(content, lines, found)

    record = RequirementsRecord(**{field: value for field, (value, _) in found.items()})
    confidence = {field: int(score) for field, (_, score) in found.items()}
    tier = "structured" if structured else ("unstructured" if found else "none")
    logger.debug(f"Extracted fields {sorted(found)} via {tier} tier")
    return ExtractionResult(record=record, confidence=confidence, success=bool(found), tier=tier)


def extract_legacy_setup(text: Optional[str]) -> ExtractionResult:
    """Original three-line setup: email, cadence, report name, one per line."""
    lines = [_strip_marker(line) for line in (text or "").splitlines() if line.strip()]
    if len(lines) < 3:
        return ExtractionResult()
    email = EMAIL_PATTERN.search(lines[0])
    cadence = normalize_cadence(lines[1])
    name = _unquote(lines[2])
    if not email or not cadence or not name:
        return ExtractionResult()
    record = RequirementsRecord(user_email=email.group(0), report_frequency=cadence, project_name=name)
    return ExtractionResult(
        record=record,
        confidence={"user_email": 95, "report_frequency": 90, "project_name": 85},
        success=True,
        tier="structured",
    )


def extract_field_answer(text: Optional[str], field: str) -> ExtractionResult:
    """Read a reply to a single-field question.

    Pattern extraction runs first; when it does not find the asked field, the whole
    reply is taken as the answer.
    """
    result = extract_requirements(text)
    if result.record.value_of(field):
        return result
    content = (text or "").strip()
    item = _value_for_field(field, content, 60) if content else None
    if item is None:
        return result
    value, confidence = item
    record = result.record.model_copy(update={field: value})
    scores = dict(result.confidence)
    scores[field] = confidence
    return ExtractionResult(record=record, confidence=scores, success=True, tier=result.tier if result.success else "unstructured")
