"""Discourse forum adapter: reads the public /latest.json topic listing."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from ..errors import FetchError, PayloadError
from ..models import Post, Source
from ..normalize import build_post, collapse_whitespace, strip_html, truncate
from .base import HTTPAdapter, matches_keywords

logger = logging.getLogger(__name__)

FULL_CONTENT_LIMIT = 1000


class DiscourseConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    max_pages: int = Field(1, ge=1)
    api_key: Optional[str] = None
    api_username: str = "system"
    priority_tags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    include_category_as_tag: bool = False
    fetch_full_content: bool = False


class DiscourseAdapter(HTTPAdapter):
    provider = "discourse"
    config_class = DiscourseConfig

    def _headers(self, config: DiscourseConfig) -> dict[str, str]:
        if not config.api_key:
            return {}
        return {"Api-Key": config.api_key, "Api-Username": config.api_username}

    async def _fetch(
        self, source: Source, config: DiscourseConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        base = source.url.rstrip("/")
        topics: list[dict[str, Any]] = []

        for page in range(config.max_pages):
            data = await self._get_json(session, f"{base}/latest.json", params={"page": page})
            try:
                topic_list = data["topic_list"]
                page_topics = topic_list["topics"]
            except (KeyError, TypeError) as e:
                raise PayloadError(f"unexpected topic listing ({type(e).__name__})") from e
            if not page_topics:
                break
            topics.extend(
                t for t in page_topics
                if isinstance(t, dict)
                and matches_keywords(f"{t.get('title', '')} {t.get('excerpt', '')}", config.keywords)
            )
            if not topic_list.get("more_topics_url"):
                break

        if config.include_category_as_tag and topics:
            categories = await self._category_names(session, base, source)
            for topic in topics:
                name = categories.get(topic.get("category_id"))
                if name:
                    topic["_category"] = name

        if config.fetch_full_content:
            for topic in topics:
                content = await self._first_post_text(session, base, topic.get("id"), source)
                if content:
                    topic["_full_content"] = content

        return topics

    async def _category_names(
        self, session: aiohttp.ClientSession, base: str, source: Source
    ) -> dict[Any, str]:
        """Map category id -> name. An unreachable listing leaves topics untagged."""
        try:
            data = await self._get_json(session, f"{base}/categories.json")
        except (FetchError, asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning("%s: category lookup failed: %s", source.name, e)
            return {}

        names: dict[Any, str] = {}
        if not isinstance(data, dict):
            return names
        category_list = data.get("category_list")
        categories = category_list.get("categories") if isinstance(category_list, dict) else None
        for category in categories or []:
            if not isinstance(category, dict):
                continue
            names[category.get("id")] = category.get("name") or ""
            for sub in category.get("subcategory_list") or []:
                if isinstance(sub, dict):
                    names[sub.get("id")] = sub.get("name") or ""
        return names

    async def _first_post_text(
        self, session: aiohttp.ClientSession, base: str, topic_id: Any, source: Source
    ) -> str:
        if topic_id is None:
            return ""
        try:
            data = await self._get_json(session, f"{base}/t/{topic_id}.json")
        except (FetchError, asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.debug("%s: no detail for topic %s: %s", source.name, topic_id, e)
            return ""
        if not isinstance(data, dict):
            return ""
        stream = data.get("post_stream")
        posts = (stream.get("posts") if isinstance(stream, dict) else None) or []
        if not posts or not isinstance(posts[0], dict):
            return ""
        return collapse_whitespace(strip_html(posts[0].get("cooked")))

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        topic_id = raw["id"]
        slug = raw.get("slug") or f"topic-{topic_id}"
        base = source.url.rstrip("/")

        summary = _clean_excerpt(raw.get("excerpt"))
        full_content = raw.get("_full_content") or ""
        if len(full_content) > len(summary):
            summary = truncate(full_content, FULL_CONTENT_LIMIT)

        tags = _tag_names(raw.get("tags"))
        if raw.get("_category"):
            tags.append(raw["_category"])

        return build_post(
            source=source.name,
            external_id=topic_id,
            title=raw.get("title"),
            url=f"{base}/t/{slug}/{topic_id}",
            author=raw.get("last_poster_username") or _first_poster(raw),
            summary=summary,
            tags=tags,
            posted_at=raw.get("last_posted_at") or raw.get("created_at"),
            metrics={
                "reply_count": raw.get("reply_count") or 0,
                "like_count": raw.get("like_count") or 0,
                "views": raw.get("views") or 0,
                "pinned": bool(raw.get("pinned")),
                "created_at": raw.get("created_at"),
            },
        )


def _first_poster(topic: dict[str, Any]) -> str | None:
    posters = topic.get("posters") or []
    if posters and isinstance(posters[0], dict):
        return (posters[0].get("user") or {}).get("username")
    return None


def _clean_excerpt(excerpt: str | None) -> str:
    summary = collapse_whitespace(excerpt)
    return re.sub(r"\s*View Post\s*$", "", summary)


def _tag_names(tags: list[Any] | None) -> list[str]:
    # Newer Discourse versions send tag objects instead of plain names
    return [t.get("name", "") if isinstance(t, dict) else t for t in tags or []]
