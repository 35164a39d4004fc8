"""Base protocol and shared HTTP plumbing for provider adapters."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, NamedTuple, Optional, Protocol, runtime_checkable

import aiohttp
from pydantic import BaseModel

from ..config import parse_provider_config
from ..errors import ConfigError, FetchError, HTTPStatusError, PayloadError
from ..models import Post, Source

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_USER_AGENT = "devfeed/0.1"


class FetchResult(NamedTuple):
    """Raw provider records plus the error detail, if the fetch failed."""

    items: list[dict[str, Any]]
    error: Optional[str] = None


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol for pluggable provider adapters."""

    provider: str

    def parse_config(self, blob: dict[str, Any] | None) -> Any:
        """Validate a source config blob into this provider's typed config."""
        ...

    async def fetch(self, source: Source) -> FetchResult:
        """Fetch raw records for one source.

        Never raises for transport, protocol, parse, or configuration
        failures; those come back as ``FetchResult([], detail)``.
        """
        ...

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        """Map one raw record to a canonical Post."""
        ...


class HTTPAdapter:
    """Shared behavior for adapters that talk HTTP via aiohttp.

    Subclasses set ``provider`` and ``config_class`` and implement
    ``_fetch(source, config, session)`` and ``normalize``.
    """

    provider: str = ""
    config_class: type[BaseModel] = BaseModel
    # Appended to "HTTP <code>" for known status codes
    http_reasons: dict[int, str] = {}

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent

    def parse_config(self, blob: dict[str, Any] | None) -> Any:
        return parse_provider_config(self.config_class, blob)

    def _headers(self, config: Any) -> dict[str, str]:
        return {}

    async def fetch(self, source: Source) -> FetchResult:
        try:
            config = self.parse_config(source.config)
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"User-Agent": self.user_agent, **self._headers(config)},
            ) as session:
                items = await self._fetch(source, config, session)
        except ConfigError as e:
            logger.warning("%s: invalid config: %s", source.name, e)
            return FetchResult([], f"invalid config: {e}")
        except FetchError as e:
            logger.warning("%s: fetch failed: %s", source.name, e.detail)
            return FetchResult([], e.detail)
        except ValueError as e:
            # Undecodable text or a parser that rejects the body
            logger.warning("%s: unreadable payload: %s", source.name, e)
            return FetchResult([], f"invalid payload ({type(e).__name__})")
        except asyncio.TimeoutError as e:
            logger.warning("%s: request timed out", source.name)
            return FetchResult([], f"request timed out ({type(e).__name__})")
        except aiohttp.ClientError as e:
            logger.warning("%s: transport error: %s", source.name, e)
            return FetchResult([], f"{type(e).__name__}: {e}")

        logger.info("%s returned %d items", source.name, len(items))
        return FetchResult(items, None)

    async def _fetch(
        self, source: Source, config: Any, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        raise NotImplementedError

    # ── HTTP helpers ────────────────────────────────────────────────

    async def _get_bytes(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        async with session.get(url, params=params, headers=headers) as resp:
            if resp.status >= 400:
                raise HTTPStatusError(resp.status, self.http_reasons.get(resp.status, ""))
            return await resp.read()

    async def _get_text(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        async with session.get(url, params=params, headers=headers) as resp:
            if resp.status >= 400:
                raise HTTPStatusError(resp.status, self.http_reasons.get(resp.status, ""))
            return await resp.text()

    async def _get_json(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        text = await self._get_text(session, url, params=params, headers=headers)
        try:
            return json.loads(text)
        except ValueError as e:
            raise PayloadError(f"invalid JSON ({type(e).__name__})") from e


def matches_keywords(text: str, keywords: list[str]) -> bool:
    """True when no keywords are configured or any keyword occurs in text."""
    if not keywords:
        return True
    lowered = (text or "").lower()
    return any(k.lower() in lowered for k in keywords)
