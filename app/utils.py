"""Utility helpers shared by the provider adapters."""

from __future__ import annotations

import html
import re
from typing import Any, Mapping


TAG_RE = re.compile(r"<[^>]*>")
YEAR_RE = re.compile(r"^(\d{4})")

# Localized title keys in the order a display title is chosen.
TITLE_PREFERENCE: tuple[str, ...] = ("english", "romaji", "native")


def strip_html(value: str | None) -> str | None:
    """Remove markup tags and decode entities from a description."""

    if value is None:
        return None
    text = TAG_RE.sub("", value)
    text = html.unescape(text).strip()
    return text or None


def preferred_title(titles: Mapping[str, Any] | None) -> str | None:
    """Return the first non-empty localized title following ``TITLE_PREFERENCE``."""

    if not titles:
        return None
    for key in TITLE_PREFERENCE:
        candidate = titles.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    for candidate in titles.values():
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def year_from_date(value: Any) -> int | None:
    """Extract the year from an ISO-ish date string."""

    if not isinstance(value, str):
        return None
    match = YEAR_RE.match(value.strip())
    if not match:
        return None
    year = int(match.group(1))
    if year < 1800:
        return None
    return year


def build_image_url(path: str | None, base_url: str) -> str | None:
    """Join a provider image path with its CDN base."""

    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
