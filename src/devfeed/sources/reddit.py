"""Reddit source adapter: reads a subreddit listing from the public JSON API."""

from __future__ import annotations

import re
from typing import Any, Literal
from urllib.parse import urlsplit

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidSourceURL, PayloadError
from ..models import Post, Source
from ..normalize import build_post, truncate
from .base import HTTPAdapter, matches_keywords

SUBREDDIT_RE = re.compile(r"^https?://(?:[\w-]+\.)?reddit\.com/r/([^/?#]+)")
Sort = Literal["hot", "new", "top", "rising"]
IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


class RedditConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    sort: Sort = "hot"
    limit: int = Field(25, ge=1, le=100)
    keywords: list[str] = Field(default_factory=list)


def extract_subreddit(url: str) -> str | None:
    """Community name from https://www.reddit.com/r/<name>[/...]."""
    match = SUBREDDIT_RE.match((url or "").strip())
    return match.group(1) if match else None


class RedditAdapter(HTTPAdapter):
    provider = "reddit"
    config_class = RedditConfig

    async def _fetch(
        self, source: Source, config: RedditConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        subreddit = extract_subreddit(source.url)
        if not subreddit:
            raise InvalidSourceURL("invalid community URL")

        parts = urlsplit(source.url)
        base = f"{parts.scheme or 'https'}://{parts.netloc}"
        data = await self._get_json(
            session, f"{base}/r/{subreddit}/{config.sort}.json", params={"limit": config.limit}
        )
        try:
            children = data["data"]["children"] or []
        except (KeyError, TypeError) as e:
            raise PayloadError(f"unexpected listing ({type(e).__name__})") from e

        posts: list[dict[str, Any]] = []
        for child in children:
            post = (child or {}).get("data") if isinstance(child, dict) else None
            if not post:
                continue
            if post.get("stickied") or post.get("pinned"):
                continue
            if post.get("is_self") is False and not post.get("url") and not post.get("selftext"):
                continue
            content = post.get("selftext") or post.get("url") or ""
            if not matches_keywords(f"{post.get('title') or ''} {content}", config.keywords):
                continue
            posts.append({**post, "_subreddit": subreddit})
        return posts

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        subreddit = raw.get("_subreddit") or raw.get("subreddit") or ""
        content = raw.get("selftext") or raw.get("url") or ""
        permalink = raw.get("permalink") or ""
        return build_post(
            source=source.name,
            external_id=raw["id"],
            title=raw.get("title"),
            url=f"https://www.reddit.com{permalink}" if permalink else raw.get("url"),
            author=raw.get("author"),
            summary=truncate(content, 1000),
            tags=[f"subreddit:{subreddit}", "reddit", raw.get("link_flair_text"), _post_type(raw)],
            posted_at=raw.get("created_utc"),
            metrics={
                "score": raw.get("score") or 0,
                "ups": raw.get("ups") or 0,
                "num_comments": raw.get("num_comments") or 0,
                "upvote_ratio": raw.get("upvote_ratio"),
            },
        )


def _post_type(post: dict[str, Any]) -> str:
    url = post.get("url") or ""
    if post.get("is_self"):
        return "text-post"
    if "youtube.com" in url or "youtu.be" in url:
        return "video"
    if IMAGE_RE.search(url):
        return "image"
    if "github.com" in url:
        return "github"
    return "link"
