"""RSS feed adapter: parses RSS 2.0 items (Atom entries as a fallback)."""

from __future__ import annotations

import hashlib
import xml.etree.ElementTree as ET
from typing import Any

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from ..errors import PayloadError
from ..models import Post, Source
from ..normalize import build_post, strip_html, truncate
from .base import HTTPAdapter, matches_keywords

ATOM_NS = "{http://www.w3.org/2005/Atom}"
DC_CREATOR = "{http://purl.org/dc/elements/1.1/}creator"
CONTENT_ENCODED = "{http://purl.org/rss/1.0/modules/content/}encoded"


class RssConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    max_items: int = Field(20, ge=1)
    keywords: list[str] = Field(default_factory=list)


class RssAdapter(HTTPAdapter):
    provider = "rss"
    config_class = RssConfig

    async def _fetch(
        self, source: Source, config: RssConfig, session: aiohttp.ClientSession
    ) -> list[dict[str, Any]]:
        # Bytes, so the XML declaration decides the encoding
        body = await self._get_bytes(session, source.url)
        entries = parse_feed(body)

        items: list[dict[str, Any]] = []
        seen: set[str] = set()
        for entry in entries[: config.max_items]:
            if entry["id"] in seen:
                continue
            if not matches_keywords(f"{entry['title']} {entry['description']}", config.keywords):
                continue
            seen.add(entry["id"])
            items.append(entry)
        return items

    def normalize(self, raw: dict[str, Any], source: Source) -> Post:
        return build_post(
            source=source.name,
            external_id=raw["id"],
            title=truncate(strip_html(raw.get("title")), 200),
            url=raw.get("link"),
            author=truncate((raw.get("author") or "").strip(), 100),
            summary=truncate(strip_html(raw.get("description")), 500),
            tags=(raw.get("categories") or [])[:10],
            posted_at=raw.get("published"),
            metrics={"has_date": bool(raw.get("published"))},
            default_author="Unknown",
        )


def parse_feed(document: bytes | str) -> list[dict[str, Any]]:
    """Parse feed XML into plain entry dicts, in document order."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise PayloadError(f"invalid XML (ParseError: {e})") from e

    if root.tag == f"{ATOM_NS}feed":
        return [_atom_entry(e) for e in root.findall(f"{ATOM_NS}entry")]

    channel = root.find("channel")
    if root.tag != "rss" or channel is None:
        raise PayloadError("invalid RSS feed format")
    return [_rss_item(item) for item in channel.findall("item")]


def _rss_item(item: ET.Element) -> dict[str, Any]:
    title = _text(item, "title")
    link = _text(item, "link").strip()
    guid = _text(item, "guid").strip()
    return {
        "id": guid or link or _digest(title, link),
        "title": title,
        "link": link,
        "description": _text(item, "description") or _text(item, CONTENT_ENCODED),
        "author": _text(item, "author") or _text(item, DC_CREATOR),
        "published": _text(item, "pubDate") or None,
        "categories": [c.text.strip() for c in item.findall("category") if c.text and c.text.strip()],
    }


def _atom_entry(entry: ET.Element) -> dict[str, Any]:
    title = _text(entry, f"{ATOM_NS}title")
    link = ""
    for el in entry.findall(f"{ATOM_NS}link"):
        if el.get("rel", "alternate") == "alternate":
            link = el.get("href", "")
            break
    entry_id = _text(entry, f"{ATOM_NS}id").strip()
    author = entry.find(f"{ATOM_NS}author")
    return {
        "id": entry_id or link or _digest(title, link),
        "title": title,
        "link": link,
        "description": _text(entry, f"{ATOM_NS}summary") or _text(entry, f"{ATOM_NS}content"),
        "author": _text(author, f"{ATOM_NS}name") if author is not None else "",
        "published": _text(entry, f"{ATOM_NS}published") or _text(entry, f"{ATOM_NS}updated") or None,
        "categories": [c.get("term", "") for c in entry.findall(f"{ATOM_NS}category")],
    }


def _digest(title: str, link: str) -> str:
    return hashlib.md5(f"{title}{link}".encode("utf-8")).hexdigest()


def _text(el: ET.Element, tag: str, default: str = "") -> str:
    child = el.find(tag)
    return child.text if child is not None and child.text else default
