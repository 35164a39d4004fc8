"""Data classes shared across adapters, storage, and the runner."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


class PostStatus:
    UNREAD = "unread"
    READ = "read"
    RESPONDED = "responded"
    IGNORED = "ignored"

    ALL = (UNREAD, READ, RESPONDED, IGNORED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_config_blob(blob: Any, source_name: str = "") -> dict[str, Any]:
    """Turn a stored config blob into a dict.

    Accepts a dict, or JSON text with stray formatting (a leading ``Config:``,
    embedded newlines). Anything unparseable becomes ``{}``.
    """
    if blob is None or blob == "":
        return {}
    if isinstance(blob, dict):
        return dict(blob)
    text = str(blob).strip()
    text = re.sub(r"^Config:\s*", "", text)
    text = re.sub(r"\r\n|\r|\n", "", text).strip()
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON config for source %s: %s", source_name, e)
        return {}
    if not isinstance(value, dict):
        logger.warning("Config for source %s is not an object, ignoring", source_name)
        return {}
    return value


@dataclass
class Source:
    """A configured provider endpoint."""

    name: str
    provider: str
    url: str
    config: dict[str, Any] = field(default_factory=dict)
    active: bool = True
    auto_fetch_enabled: bool = True
    status: str = "idle"
    last_fetched_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: dict) -> "Source":
        last = row.get("last_fetched_at")
        return cls(
            id=row["id"],
            name=row["name"],
            provider=row["provider"],
            url=row["url"],
            config=parse_config_blob(row.get("config"), row["name"]),
            active=bool(row["active"]),
            auto_fetch_enabled=bool(row["auto_fetch_enabled"]),
            status=row.get("status") or "idle",
            last_fetched_at=datetime.fromisoformat(last) if last else None,
        )


@dataclass
class Post:
    """Canonical item: one externally sourced content unit."""

    source: str
    external_id: str
    title: str
    url: str
    author: str = "unknown"
    summary: str = ""
    tags: list[str] = field(default_factory=list)
    posted_at: datetime = field(default_factory=utcnow)
    priority_score: float = 0.0
    status: str = PostStatus.UNREAD
    # Provider engagement counters kept for scoring (replies, stars, points, ...)
    metrics: dict[str, Any] = field(default_factory=dict)


@dataclass
class UpsertResult:
    created: bool
    post: dict

    @property
    def skipped(self) -> bool:
        return not self.created


@dataclass
class StatusEvent:
    """One status transition as published on a broadcast channel."""

    channel: str
    source_id: int
    source_name: str
    status: str
    created: Optional[int] = None
    at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "channel": self.channel,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "status": self.status,
            "at": self.at.isoformat(),
        }
        if self.created is not None:
            payload["created"] = self.created
        return payload
