"""GitHub trending adapter.

GitHub has no trending API. By default the adapter approximates the trending
page with several repository searches per ``since`` window (new repositories,
recently pushed ones, and established ones with fresh activity), merges them,
and keeps the best ``max_items`` by :func:`trending_score`. With
``use_scraper`` it reads github.com/trending itself.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Literal, Optional

import aiohttp
from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field

from ..errors import FetchError, PayloadError
from ..models import Post, Source, utcnow
from ..normalize import build_post, parse_timestamp
from .base import HTTPAdapter
from .github_issues import GITHUB_API

logger = logging.getLogger(__name__)

TRENDING_PAGE = "https://github.com/trending"
QUERY_PAGE_SIZE = 15

TRENDING_REASONS = {
    403: "rate limit exceeded or authentication required",
    422: "invalid search query or parameters",
}

# (qualifier, window in days, star floor, sort) per search
SEARCH_STRATEGIES: dict[str, tuple[tuple[str, int, int, str], ...]] = {
    "daily": (
        ("created", 1, 1, "stars"),
        ("pushed", 1, 50, "updated"),
        ("pushed", 7, 200, "stars"),
    ),
    "weekly": (
        ("created", 7, 5, "stars"),
        ("pushed", 7, 100, "updated"),
        ("pushed", 30, 1000, "stars"),
    ),
    "monthly": (
        ("created", 30, 3, "stars"),
        ("pushed", 30, 50, "updated"),
        ("pushed", 90, 500, "stars"),
    ),
}

# since -> (days of age that still earn a bonus, points per remaining day)
RECENCY_BONUS = {"daily": (7, 3.0), "weekly": (30, 1.0), "monthly": (90, 0.5)}
HELPFUL_TOPICS = {"beginner-friendly", "good-first-issues", "hacktoberfest", "awesome", "tutorial"}

STARS_TODAY_RE = re.compile(r"(\d+(?:,\d+)*)\s+stars?\s+today")


class TrendingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    since: Literal["daily", "weekly", "monthly"] = "daily"
    language: Optional[str] = None
    preferred_languages: list[str] = Field(default_factory=list)
    token: Optional[str] = None
    min_stars: int = Field(0, ge=0)
    max_items: int = Field(30, ge=1, le=100)
    use_scraper: bool = False
    api_url: str = GITHUB_API
    trending_url: str = TRENDING_PAGE

    @property
    def effective_language(self) -> str | None:
        if self.language:
            return self.language
        return self.preferred_languages[0] if self.preferred_languages else None


def build_queries(config: TrendingConfig, now: datetime | None = None) -> list[tuple[str, str]]:
    """(search query, sort) pairs for the configured ``since`` window."""
    now = now or utcnow()
    queries = []
    for qualifier, days, floor, sort in SEARCH_STRATEGIES[config.since]:
        cutoff = (now - timedelta(days=days)).strftime("%Y-%m-%d")
        if config.min_stars > floor:
            stars = f"stars:>={config.min_stars}"
        else:
            stars = f"stars:>{floor}"
        query = f"{qualifier}:>{cutoff} {stars}"
        if config.effective_language:
            query += f" language:{config.effective_language}"
        queries.append((query, sort))
    return queries


def trending_score(
    repo: dict[str, Any],
    since: str,
    preferred_languages: list[str] | None = None,
    now: datetime | None = None,
) -> float:
    """Rank a search hit: popularity, youth, fork activity and fit."""
    now = now or utcnow()
    stars = repo.get("stargazers_count") or 0
    forks = repo.get("forks_count") or 0
    score = math.log10(max(stars, 1)) * 10

    horizon, per_day = RECENCY_BONUS[since]
    days_old = (now - parse_timestamp(repo.get("created_at"), default=now)).days
    if days_old <= horizon:
        score += max(horizon - days_old, 0) * per_day

    if stars > 0:
        fork_ratio = forks / stars
        if 0.05 <= fork_ratio <= 0.3:
            score += fork_ratio * 10

    if repo.get("language") and repo["language"] in (preferred_languages or []):
        score += 15
    score += 3 * len(HELPFUL_TOPICS.intersection(repo.get("topics") or []))
    if len(repo.get("description") or "") > 20:
        score += 5

    if repo.get("pushed_at"):
        days_since_push = (now - parse_timestamp(repo["pushed_at"], default=now)).days
        if days_since_push <= 30:
            score += max(30 - days_since_push, 0) * 0.1
    return score


def parse_trending_page(html: str) -> list[dict[str, Any]]:
    """Repository rows from the github.com/trending HTML, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    repos = []
    for position, article in enumerate(soup.select("article.Box-row"), start=1):
        link = article.select_one("h2 a")
        if link is None or not link.get("href"):
            continue
        full_name = link["href"].strip().strip("/")
        author, _, name = full_name.partition("/")
        if not author or not name:
            continue

        description = article.select_one("p.col-9")
        language = article.select_one('span[itemprop="programmingLanguage"]')

        stars = forks = 0
        for counter in article.select("a.Link--muted"):
            icon = counter.select_one("svg")
            classes = (icon.get("class") or []) if icon is not None else []
            if "octicon-star" in classes:
                stars = _parse_number(counter.get_text())
            elif "octicon-repo-forked" in classes:
                forks = _parse_number(counter.get_text())

        stars_today = 0
        today = article.select_one("span.float-sm-right")
        match = STARS_TODAY_RE.search(today.get_text()) if today is not None else None
        if match:
            stars_today = _parse_number(match.group(1))

        repos.append({
            "full_name": full_name,
            "author": author,
            "name": name,
            "html_url": f"https://github.com/{full_name}",
            "description": description.get_text(strip=True) if description is not None else "",
            "language": language.get_text(strip=True) if language is not None else "",
            "stars": stars,
            "forks": forks,
            "stars_today": stars_today,
            "rank": int(article.get("data-position") or position),
            "_scraped": True,
        })
    return repos


def _parse_number(text: str) -> int:
    digits = re.sub(r"[^\d]", "", text or "")
    return int(digits) if digits else 0


class GitHubTrendingAdapter(HTTPAdapter):
    provider = "github_trending"
    config_class = TrendingConfig
    http_reasons = TRENDING_REASONS

    def _headers(self, config: TrendingConfig) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        return headers

    async def _fetch(
        self, source: Source, config: TrendingConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        if config.use_scraper:
            return await self._scrape(config, session)
        return await self._search(source, config, session)

    async def _search(
        self, source: Source, config: TrendingConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        queries = build_queries(config)
        per_page = max(QUERY_PAGE_SIZE, math.ceil(config.max_items / len(queries)))
        endpoint = f"{config.api_url.rstrip('/')}/search/repositories"

        repos: list[dict[str, Any]] = []
        seen: set[Any] = set()
        failures: list[Exception] = []
        for query, sort in queries:
            params = {"q": query, "sort": sort, "order": "desc", "per_page": per_page}
            try:
                data = await self._get_json(session, endpoint, params=params)
                if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
                    raise PayloadError("unexpected search response")
            except (FetchError, asyncio.TimeoutError, aiohttp.ClientError) as e:
                logger.warning("%s: search %r failed: %s", source.name, query, e)
                failures.append(e)
                continue

            for repo in data.get("items", []):
                if not isinstance(repo, dict) or repo.get("id") in seen:
                    continue
                if (repo.get("stargazers_count") or 0) < config.min_stars:
                    continue
                seen.add(repo.get("id"))
                repos.append(repo)

        if len(failures) == len(queries):
            raise failures[0]

        now = utcnow()
        repos.sort(
            key=lambda r: trending_score(r, config.since, config.preferred_languages, now),
            reverse=True,
        )
        return repos[: config.max_items]

    async def _scrape(
        self, config: TrendingConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        params = {"since": config.since}
        if config.effective_language:
            params["language"] = config.effective_language
        html = await self._get_text(
            session, config.trending_url, params=params, headers={"Accept": "text/html"}
        )
        return parse_trending_page(html)[: config.max_items]

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        if raw.get("_scraped"):
            return self._normalize_scraped(raw, source)

        description = raw.get("description") or ""
        stars = raw.get("stargazers_count") or 0
        forks = raw.get("forks_count") or 0
        language = raw.get("language") or ""
        created_at = parse_timestamp(raw.get("created_at"))

        summary_parts = []
        if description:
            summary_parts.append(description)
        if stars > 0:
            summary_parts.append(f"{stars} stars")
        if forks > 0:
            summary_parts.append(f"{forks} forks")
        if language:
            summary_parts.append(language)

        tags: list[Any] = [language] if language else []
        tags.extend(raw.get("topics") or [])
        tags.append("trending")
        if utcnow() - created_at < timedelta(days=7):
            tags.append("new-repo")
        if stars > 100:
            tags.append("popular")
        license_info = raw.get("license") or {}
        if license_info.get("key"):
            tags.append(f"license:{license_info['key']}")

        return build_post(
            source=source.name,
            external_id=raw["id"],
            title=f"{raw.get('full_name', '')} - {description}",
            url=raw.get("html_url"),
            author=(raw.get("owner") or {}).get("login"),
            summary=" | ".join(summary_parts),
            tags=tags,
            posted_at=created_at,
            metrics={
                "stars": stars,
                "forks": forks,
                "watchers": raw.get("watchers_count") or 0,
                "language": language,
                "topics": list(raw.get("topics") or []),
                "description": description,
            },
        )

    def _normalize_scraped(self, raw: dict[str, Any], source: Source) -> Post:
        # The trending page has no creation time; the row is dated when seen
        description = raw.get("description") or ""
        stars = raw.get("stars") or 0
        forks = raw.get("forks") or 0
        stars_today = raw.get("stars_today") or 0
        rank = raw.get("rank") or 0
        language = raw.get("language") or ""

        summary_parts = [description] if description else []
        if stars_today > 0:
            summary_parts.append(f"{stars_today} stars today")
        if stars > 0:
            summary_parts.append(f"{stars} total stars")
        if forks > 0:
            summary_parts.append(f"{forks} forks")
        if language:
            summary_parts.append(language)

        tags = [language] if language else []
        tags.append("trending")
        if stars_today >= 100:
            tags.append("hot")
        elif stars_today >= 20:
            tags.append("rising")
        if stars > 1000:
            tags.append("popular")
        if 1 <= rank <= 10:
            tags.append("top-10")

        return build_post(
            source=source.name,
            external_id=raw["full_name"],
            title=f"{raw['full_name']} - {description}",
            url=raw.get("html_url"),
            author=raw.get("author"),
            summary=" | ".join(summary_parts),
            tags=tags,
            posted_at=utcnow(),
            metrics={
                "stars": stars,
                "forks": forks,
                "stars_today": stars_today,
                "rank": rank,
                "language": language,
                "description": description,
            },
        )
