from __future__ import annotations

import re
from typing import Optional


_CONFIRM_PATTERNS = [
    re.compile(r"^\s*(?:yes|y|yep|yeah|yup|sure|ok|okay|correct|confirm(?:ed)?|proceed|go\s+ahead|looks\s+good|lgtm)\b", re.I),
    re.compile(r"^\s*(?:create|start)\s+(?:the\s+|my\s+)?(?:project|analysis)\b", re.I),
    re.compile(r"^\s*(?:that'?s|this\s+is|all)\s+(?:right|correct|good)\b", re.I),
]

_EDIT_PATTERNS = [
    re.compile(r"^\s*(?:edit|change|modify|update|fix|correct\s+it|no,?\s+(?:edit|change))\b", re.I),
    re.compile(r"^\s*(?:i\s+(?:want|need)\s+to\s+)?(?:make\s+)?(?:changes?|edits?)\b", re.I),
    re.compile(r"^\s*(?:review|go\s+back)\b", re.I),
]

_CANCEL_PATTERNS = [
    re.compile(r"^\s*(?:cancel|abort|stop|quit|discard|never\s*mind|nevermind|forget\s+it)\b", re.I),
    re.compile(r"^\s*no\s*(?:thanks|thank\s+you)?\s*[.!]*\s*$", re.I),
]

# Command phrasing only; answers that merely mention migrating are not requests
_MIGRATE_PATTERNS = [
    re.compile(
        r"^\s*(?:(?:please|let'?s|can\s+(?:i|we)|i(?:'d|\s+would)\s+like\s+to|i\s+want\s+to)\s+)?"
        r"(?:migrate|switch\s+to\s+(?:the\s+)?(?:new|comprehensive|single))\b",
        re.I,
    ),
]

_MIGRATE_NOW_PATTERNS = [
    re.compile(r"^\s*(?:1|one)\s*[.)]?\s*$", re.I),
    re.compile(r"^\s*(?:migrate|switch)(?:\s+now)?\b", re.I),
    re.compile(r"^\s*(?:yes|y|sure|ok|okay)\b", re.I),
]

_FINISH_LEGACY_PATTERNS = [
    re.compile(r"^\s*(?:2|two)\s*[.)]?\s*$", re.I),
    re.compile(r"\b(?:finish|continue|stay|keep)\b.*\b(?:legacy|current|old|step)", re.I),
    re.compile(r"^\s*(?:no|nope|not\s+now|later)\b", re.I),
]

_TELL_ME_MORE_PATTERNS = [
    re.compile(r"^\s*(?:3|three)\s*[.)]?\s*$", re.I),
    re.compile(r"\b(?:tell\s+me\s+more|more\s+info(?:rmation)?|what'?s\s+(?:the\s+)?difference|explain)\b", re.I),
]

_CONTINUE_PATTERNS = [
    re.compile(r"^\s*(?:1|one)\s*[.)]?\s*$", re.I),
    re.compile(r"^\s*(?:continue|resume|keep\s+going|pick\s+up)\b", re.I),
]

_REVIEW_PATTERNS = [
    re.compile(r"^\s*(?:2|two)\s*[.)]?\s*$", re.I),
    re.compile(r"^\s*(?:review|edit|show|see)\b", re.I),
]

_RESTART_PATTERNS = [
    re.compile(r"^\s*(?:3|three)\s*[.)]?\s*$", re.I),
    re.compile(r"^\s*(?:restart|start\s+over|start\s+fresh|reset|begin\s+again)\b", re.I),
]

_NEW_PROJECT_PATTERNS = [
    re.compile(r"\b(?:start|create|begin|make)\s+(?:a\s+)?(?:new|another)\s+(?:project|analysis)\b", re.I),
    re.compile(r"^\s*(?:new\s+project|start\s+over|restart)\b", re.I),
]

_RETRY_PATTERNS = [
    re.compile(r"^\s*(?:retry|try\s+again|again|regenerate)\b", re.I),
]

_SUPPORT_PATTERNS = [
    re.compile(
        r"^\s*(?:(?:please\s+)?(?:contact|talk\s+to|speak\s+(?:to|with)|get|need)\s+)?"
        r"(?:support|help\s+desk|(?:a\s+)?human)\b",
        re.I,
    ),
    re.compile(r"^\s*contact(?:\s+us)?\s*[.!?]*\s*$", re.I),
]

_DELIVERY_CHOICES = {
    "email": re.compile(r"^\s*(?:1|one)\s*[.)]?\s*$|\bemail\b|\bsend\b", re.I),
    "migrate": re.compile(r"^\s*(?:2|two)\s*[.)]?\s*$|\bmigrate\b", re.I),
    "schedule": re.compile(r"^\s*(?:3|three)\s*[.)]?\s*$|\bschedule\b|\brecurring\b", re.I),
}


def _matches(patterns, text: str) -> bool:
    if not text:
        return False
    t = text.strip()
    return any(p.search(t) for p in patterns)


def is_confirmation(text: str) -> bool:
    return _matches(_CONFIRM_PATTERNS, text)


def is_edit_request(text: str) -> bool:
    return _matches(_EDIT_PATTERNS, text)


def is_cancellation(text: str) -> bool:
    return _matches(_CANCEL_PATTERNS, text)


def is_migration_request(text: str) -> bool:
    return _matches(_MIGRATE_PATTERNS, text)


def is_new_project_request(text: str) -> bool:
    return _matches(_NEW_PROJECT_PATTERNS, text)


def is_retry_request(text: str) -> bool:
    return _matches(_RETRY_PATTERNS, text)


def is_support_request(text: str) -> bool:
    return _matches(_SUPPORT_PATTERNS, text)


def detect_confirmation_choice(text: str) -> Optional[str]:
    """Answer to the confirmation screen: ``confirm``, ``edit`` or ``cancel``.

    Cancel and edit are checked first so "no, edit the name" is not read as a yes.
    """
    if is_cancellation(text):
        return "cancel"
    if is_edit_request(text):
        return "edit"
    if is_confirmation(text):
        return "confirm"
    return None


def detect_migration_choice(text: str) -> Optional[str]:
    """Answer to the migration offer: ``migrate_now``, ``finish_legacy`` or ``tell_me_more``."""
    if _matches(_TELL_ME_MORE_PATTERNS, text):
        return "tell_me_more"
    if _matches(_FINISH_LEGACY_PATTERNS, text):
        return "finish_legacy"
    if _matches(_MIGRATE_NOW_PATTERNS, text):
        return "migrate_now"
    return None


def detect_recovery_choice(text: str) -> Optional[str]:
    """Answer to the session recovery prompt: ``continue``, ``review`` or ``restart``."""
    if _matches(_RESTART_PATTERNS, text):
        return "restart"
    if _matches(_REVIEW_PATTERNS, text):
        return "review"
    if _matches(_CONTINUE_PATTERNS, text):
        return "continue"
    return None


def detect_delivery_choice(text: str) -> Optional[str]:
    if not text:
        return None
    for choice, pattern in _DELIVERY_CHOICES.items():
        if pattern.search(text.strip()):
            return choice
    return None
