"""GitHub issues adapter: lists open issues for one repository via REST API."""

from __future__ import annotations

import re
from typing import Any, Literal, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidSourceURL, PayloadError
from ..models import Post, Source
from ..normalize import build_post, truncate
from .base import HTTPAdapter

GITHUB_API = "https://api.github.com"
REPO_URL_RE = re.compile(r"github\.com/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?/?$")

GITHUB_REASONS = {
    403: "rate limit exceeded or authentication required",
    404: "repository not found",
    422: "invalid repository or parameters",
}


class IssuesConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    labels: list[str] = Field(default_factory=list)
    token: Optional[str] = None
    state: Literal["open", "closed", "all"] = "open"
    per_page: int = Field(30, ge=1, le=100)
    max_pages: int = Field(1, ge=1)
    priority_labels: list[str] = Field(default_factory=list)
    api_url: str = GITHUB_API


def parse_repository_url(url: str) -> tuple[str, str] | None:
    """Extract (owner, repo) from https://github.com/owner/repo[.git]."""
    match = REPO_URL_RE.search((url or "").strip())
    if not match:
        return None
    return match.group(1), match.group(2)


class GitHubIssuesAdapter(HTTPAdapter):
    provider = "github_issues"
    config_class = IssuesConfig
    http_reasons = GITHUB_REASONS

    def _headers(self, config: IssuesConfig) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if config.token:
            headers["Authorization"] = f"token {config.token}"
        return headers

    async def _fetch(
        self, source: Source, config: IssuesConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        repo = parse_repository_url(source.url)
        if repo is None:
            raise InvalidSourceURL("invalid repository URL")
        owner, name = repo

        endpoint = f"{config.api_url.rstrip('/')}/repos/{owner}/{name}/issues"
        params: dict[str, Any] = {
            "state": config.state,
            "per_page": config.per_page,
            "sort": "updated",
            "direction": "desc",
        }
        if config.labels:
            params["labels"] = ",".join(config.labels)

        issues: list[dict[str, Any]] = []
        for page in range(1, config.max_pages + 1):
            batch = await self._get_json(session, endpoint, params={**params, "page": page})
            if not isinstance(batch, list):
                raise PayloadError("unexpected issue listing (expected a list)")
            # The issues endpoint also returns pull requests
            issues.extend(i for i in batch if isinstance(i, dict) and "pull_request" not in i)
            if len(batch) < config.per_page:
                break

        return issues

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        labels = [label.get("name", "") for label in raw.get("labels") or [] if isinstance(label, dict)]
        return build_post(
            source=source.name,
            external_id=raw["number"],
            title=raw.get("title"),
            url=raw.get("html_url"),
            author=(raw.get("user") or {}).get("login"),
            summary=truncate(raw.get("body") or "", 300),
            tags=labels,
            posted_at=raw.get("created_at"),
            metrics={
                "comments": raw.get("comments") or 0,
                "reactions": _count_reactions(raw.get("reactions")),
                "created_at": raw.get("created_at"),
                "updated_at": raw.get("updated_at"),
            },
        )


def _count_reactions(reactions: dict[str, Any] | None) -> int:
    if not reactions:
        return 0
    if isinstance(reactions.get("total_count"), int):
        return reactions["total_count"]
    return sum(v for k, v in reactions.items() if k != "url" and isinstance(v, int))
