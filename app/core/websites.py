"""
URL cleanup for extracted product websites and normalization for competitor matching.
"""

import ipaddress
import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

_TRAILING_PUNCTUATION = re.compile(r"[.,;!?)\]]+$")
_INVALID_CHARS = re.compile(r"[\s<>\"]")
_DEFAULT_PORTS = {"http": 80, "https": 443}
GENERIC_DOMAINS = {"localhost", "127.0.0.1", "example.com", "test.com", "placeholder.com"}


def is_loopback_host(hostname: str) -> bool:
    host = (hostname or "").lower().strip("[]")
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _is_ip_address(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname.strip("[]"))
        return True
    except ValueError:
        return False


def clean_url(raw: Optional[str]) -> Optional[str]:
    """Return a canonical ``https``-schemed URL, or None when the text is not a usable website."""
    if not raw:
        return None
    candidate = _TRAILING_PUNCTUATION.sub("", raw.strip())
    if not candidate or _INVALID_CHARS.search(candidate):
        return None
    if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", candidate):
        candidate = f"https://{candidate}"
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    hostname = (parts.hostname or "").lower()
    if scheme not in ("http", "https") or len(hostname) < 3:
        return None
    if hostname.startswith(".") or ".." in hostname or hostname.endswith("."):
        return None
    if "." not in hostname and hostname != "localhost":
        return None
    if is_loopback_host(hostname) or _is_ip_address(hostname):
        return None

    netloc = hostname
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{hostname}:{port}"
    path = parts.path
    if path == "/":
        path = ""
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def normalize_website(url: Optional[str]) -> str:
    """Comparable form of a website: no scheme, ``www.``, query, fragment or trailing slash."""
    if not url:
        return ""
    value = url.strip().lower()
    value = re.sub(r"^[a-z][a-z0-9+.-]*://", "", value)
    value = re.sub(r"^www\.", "", value)
    value = value.split("#", 1)[0].split("?", 1)[0]
    return value.rstrip("/")


def websites_equivalent(first: Optional[str], second: Optional[str]) -> bool:
    a, b = normalize_website(first), normalize_website(second)
    return bool(a) and a == b


def is_valid_for_matching(url: Optional[str]) -> bool:
    normalized = normalize_website(url)
    if not normalized or "." not in normalized:
        return False
    host = normalized.split("/", 1)[0].split(":", 1)[0]
    return host not in GENERIC_DOMAINS
