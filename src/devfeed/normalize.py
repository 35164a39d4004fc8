"""Shared normalization helpers: field defaults, text cleanup, timestamps.

Every adapter maps its raw record through ``build_post`` so that a canonical
item is structurally complete even when the provider payload is minimal.
"""

from __future__ import annotations

import html
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable

from .models import Post, utcnow

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(text: str | None) -> str:
    if not text:
        return ""
    return html.unescape(_TAG_RE.sub("", text)).strip()


def collapse_whitespace(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def truncate(text: str | None, length: int, suffix: str = "...") -> str:
    """Cut text to ``length`` characters, appending ``suffix`` when cut."""
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[:length].rstrip() + suffix


def parse_timestamp(value: Any, default: datetime | None = None) -> datetime:
    """Parse ISO-8601 strings, RFC-822 dates, or epoch seconds into aware UTC."""
    if value is None or value == "":
        return default or utcnow()
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                dt = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                return default or utcnow()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def unique_tags(tags: Iterable[Any]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        if tag is None:
            continue
        tag = str(tag).strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result


def build_post(
    *,
    source: str,
    external_id: Any,
    title: str | None,
    url: str | None,
    author: str | None = None,
    summary: str | None = None,
    tags: Iterable[Any] | None = None,
    posted_at: Any = None,
    metrics: dict[str, Any] | None = None,
    default_author: str = "unknown",
) -> Post:
    """Assemble a canonical Post, applying defaults for missing fields."""
    if external_id is None or str(external_id).strip() == "":
        raise ValueError("record has no external id")
    return Post(
        source=source,
        external_id=str(external_id),
        title=title if title and title.strip() else "Untitled",
        url=url or "",
        author=(author or "").strip() or default_author,
        summary=summary or "",
        tags=unique_tags(tags or []),
        posted_at=parse_timestamp(posted_at),
        metrics=dict(metrics or {}),
    )
