"""
Correlation identifiers used to tie log lines, events and support references together.
"""

import random
import re
import string
import time
from typing import Optional

_ID_PATTERN = re.compile(r"^(COR|PRJ|ANL|RPT|ERR)-\d+-[a-z0-9]+$")
_ALPHABET = string.ascii_lowercase + string.digits


def _suffix(length: int = 9) -> str:
    return "".join(random.choices(_ALPHABET, k=length))


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_correlation_id() -> str:
    return f"COR-{_now_ms()}-{_suffix()}"


def generate_project_correlation_id(project_id: Optional[str] = None) -> str:
    """Project-scoped id; the project id is folded into the random part when known."""
    tail = re.sub(r"[^a-z0-9]", "", (project_id or "").lower())[-8:]
    return f"PRJ-{_now_ms()}-{tail}{_suffix(5)}"


def generate_report_correlation_id() -> str:
    return f"RPT-{_now_ms()}-{_suffix()}"


def generate_error_reference() -> str:
    return f"ERR-{_now_ms()}-{_suffix()}"


def is_valid_correlation_id(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(_ID_PATTERN.match(value))
