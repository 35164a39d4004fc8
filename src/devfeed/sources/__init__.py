"""Provider adapter registry: provider tag -> adapter instance."""

from __future__ import annotations

from typing import Any

from .base import FetchResult, HTTPAdapter, ProviderAdapter
from .discourse import DiscourseAdapter
from .github_issues import GitHubIssuesAdapter
from .github_trending import GitHubTrendingAdapter
from .hackernews import HackerNewsAdapter
from .reddit import RedditAdapter
from .rss import RssAdapter

ADAPTER_CLASSES: dict[str, type] = {
    "discourse": DiscourseAdapter,
    "github_issues": GitHubIssuesAdapter,
    "github_trending": GitHubTrendingAdapter,
    "hackernews": HackerNewsAdapter,
    "reddit": RedditAdapter,
    "rss": RssAdapter,
}


class AdapterRegistry:
    """Holds one adapter instance per provider tag."""

    def __init__(self, adapters: dict[str, ProviderAdapter] | None = None):
        self._adapters: dict[str, ProviderAdapter] = dict(adapters or {})

    @classmethod
    def default(cls, http_config: dict[str, Any] | None = None) -> "AdapterRegistry":
        """Registry with every built-in adapter, sharing HTTP settings."""
        cfg = http_config or {}
        kwargs: dict[str, Any] = {}
        if "timeout_seconds" in cfg:
            kwargs["timeout_seconds"] = float(cfg["timeout_seconds"])
        if "user_agent" in cfg:
            kwargs["user_agent"] = str(cfg["user_agent"])
        return cls({tag: adapter_cls(**kwargs) for tag, adapter_cls in ADAPTER_CLASSES.items()})

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.provider] = adapter

    def get(self, provider: str) -> ProviderAdapter:
        try:
            return self._adapters[provider]
        except KeyError:
            raise LookupError(f"No adapter registered for provider: {provider}") from None

    def __contains__(self, provider: str) -> bool:
        return provider in self._adapters

    @property
    def providers(self) -> list[str]:
        return list(self._adapters)


__all__ = [
    "ADAPTER_CLASSES",
    "AdapterRegistry",
    "FetchResult",
    "HTTPAdapter",
    "ProviderAdapter",
]
