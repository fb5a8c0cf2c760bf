"""Header parsing and redaction helpers."""

from __future__ import annotations

import datetime as _dt
import re
from email.utils import parsedate_to_datetime
from typing import Mapping


SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "proxy-authorization",
    "set-cookie",
    "x-api-key",
}

_LINK_PART = re.compile(r'<([^>]+)>\s*;(.*)')
_REL_PARAM = re.compile(r'rel\s*=\s*"?([^";]+)"?', re.IGNORECASE)


def sanitize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in (headers or {}).items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def lower_keys(headers: Mapping[str, str] | None) -> dict[str, str]:
    return {str(key).lower(): str(value) for key, value in (headers or {}).items()}


def parse_link_header(raw: str | None) -> dict[str, str]:
    """Parse an RFC 8288 ``Link`` header into a ``rel -> url`` mapping.

    A part may declare several space separated relations (``rel="next last"``);
    each of them maps to the same URL. The first URL seen for a relation wins.
    """
    links: dict[str, str] = {}
    if not raw:
        return links
    for part in raw.split(","):
        match = _LINK_PART.search(part.strip())
        if not match:
            continue
        url, params = match.group(1).strip(), match.group(2)
        rel = _REL_PARAM.search(params)
        if not rel:
            continue
        for name in rel.group(1).split():
            links.setdefault(name.lower(), url)
    return links


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a ``Retry-After`` value (delta-seconds or HTTP date).

    Dates in the past give ``0.0``; anything unparseable gives ``None``.
    """
    value = (value or "").strip()
    if not value:
        return None
    if value.lstrip("+-").replace(".", "", 1).isdigit():
        return max(0.0, float(value))
    try:
        when = parsedate_to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=_dt.timezone.utc)
    return max(0.0, (when - _dt.datetime.now(_dt.timezone.utc)).total_seconds())
