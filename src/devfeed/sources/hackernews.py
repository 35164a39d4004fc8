"""Hacker News source adapter: reads story lists from the Firebase API."""

from __future__ import annotations

from typing import Any, Literal

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from ..errors import PayloadError
from ..models import Post, Source
from ..normalize import build_post, strip_html, truncate
from .base import HTTPAdapter, matches_keywords

HN_API = "https://hacker-news.firebaseio.com/v0"
HN_ITEM_URL = "https://news.ycombinator.com/item?id={id}"
StoryType = Literal["top", "new", "best", "ask", "show", "job"]

LANGUAGE_TAGS = ["javascript", "python", "ruby", "java", "golang", "rust", "php", "swift"]
FRAMEWORK_TAGS = ["react", "vue", "angular", "rails", "django", "express", "spring"]

# Created by the runner when no news-aggregator source is configured
DEFAULT_SOURCE = {
    "name": "Hacker News",
    "url": "https://news.ycombinator.com",
    "config": {"story_types": ["top", "new"], "min_score": 10},
}


class HackerNewsConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    story_types: list[StoryType] = Field(default_factory=lambda: ["top"], min_length=1)
    min_score: int = 10
    max_items: int = Field(30, ge=1)
    keywords: list[str] = Field(default_factory=list)
    api_url: str = HN_API


class HackerNewsAdapter(HTTPAdapter):
    provider = "hackernews"
    config_class = HackerNewsConfig
    default_source = DEFAULT_SOURCE

    async def _fetch(
        self, source: Source, config: HackerNewsConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        api = config.api_url.rstrip("/")
        per_type = max(1, config.max_items // len(config.story_types))
        stories: list[dict[str, Any]] = []
        seen: set[Any] = set()

        for story_type in config.story_types:
            ids = await self._get_json(session, f"{api}/{story_type}stories.json")
            if ids is None:
                continue
            if not isinstance(ids, list):
                raise PayloadError("unexpected story id list")

            accepted = 0
            for story_id in ids[: per_type * 2]:
                if accepted >= per_type:
                    break
                if story_id in seen:
                    continue
                item = await self._get_json(session, f"{api}/item/{story_id}.json")
                # Deleted items come back as null; comments, jobs, polls are skipped
                if not isinstance(item, dict) or item.get("type") != "story":
                    continue
                if item.get("deleted") or item.get("dead"):
                    continue
                if (item.get("score") or 0) < config.min_score:
                    continue
                text = f"{item.get('title') or ''} {item.get('text') or ''}"
                if not matches_keywords(text, config.keywords):
                    continue
                seen.add(story_id)
                stories.append({**item, "_story_type": story_type})
                accepted += 1

        return stories

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        story_id = raw["id"]
        story_type = raw.get("_story_type", "top")
        title = raw.get("title") or ""
        return build_post(
            source=source.name,
            external_id=story_id,
            title=title,
            url=raw.get("url") or HN_ITEM_URL.format(id=story_id),
            author=raw.get("by"),
            summary=_summary(raw),
            tags=_tags(title, story_type),
            posted_at=raw.get("time"),
            metrics={
                "score": raw.get("score") or 0,
                "descendants": raw.get("descendants") or 0,
                "story_type": story_type,
            },
        )


def _summary(story: dict[str, Any]) -> str:
    text = strip_html(story.get("text"))
    if text:
        return truncate(text, 300)
    return (
        f"{story.get('title') or ''} "
        f"({story.get('score') or 0} points, {story.get('descendants') or 0} comments)"
    )


def _tags(title: str, story_type: str) -> list[str]:
    lowered = title.lower()
    tags = [story_type]
    tags.extend(t for t in LANGUAGE_TAGS if t in lowered)
    tags.extend(t for t in FRAMEWORK_TAGS if t in lowered)
    if lowered.startswith("ask hn"):
        tags.append("ask")
    if lowered.startswith("show hn"):
        tags.append("show")
    if "release" in lowered or "version" in lowered:
        tags.append("release")
    if "tutorial" in lowered or "guide" in lowered:
        tags.append("tutorial")
    return tags
