"""Scanner/daemon: runs provider adapters per source, scores, stores, and reports status."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from datetime import datetime, timedelta
from typing import Any

from .broadcast import StatusBroadcaster
from .config import (
    get_daemon_config,
    get_db_path,
    get_http_config,
    get_retention_days,
    get_source_definitions,
    load_config,
)
from .db import FeedDB
from .errors import DevFeedError
from .models import Source, utcnow
from .retention import RetentionCleaner
from .scoring import PriorityScorer
from .sources import AdapterRegistry

logger = logging.getLogger(__name__)

STATUS_REFRESHING = "refreshing"


def ok_status(created: int) -> str:
    return f"ok ({created} new)" if created else "ok"


class Scanner:
    """Orchestrates source runs: fetch, normalize, score, upsert, broadcast."""

    def __init__(
        self,
        db: FeedDB,
        registry: AdapterRegistry,
        scorer: PriorityScorer,
        broadcaster: StatusBroadcaster,
        config: dict[str, Any] | None = None,
    ):
        self.db = db
        self.registry = registry
        self.scorer = scorer
        self.broadcaster = broadcaster
        self.config = config or {}
        self._daemon_cfg = get_daemon_config(self.config)
        self.cleaner = RetentionCleaner(db, get_retention_days(self.config))

    @classmethod
    def from_config(cls, config: dict[str, Any], db: FeedDB) -> "Scanner":
        return cls(
            db,
            AdapterRegistry.default(get_http_config(config)),
            PriorityScorer(),
            StatusBroadcaster(db),
            config,
        )

    # ── Source bookkeeping ──────────────────────────────────────────

    def sync_sources(self) -> list[Source]:
        """Insert or update configured sources by name. Invalid entries are skipped."""
        synced = []
        for entry in get_source_definitions(self.config):
            name = entry.get("name")
            provider = entry.get("provider")
            url = entry.get("url")
            if not name or not provider or not url:
                logger.warning("Skipping source definition missing name/provider/url: %s", entry)
                continue
            if provider not in self.registry:
                logger.warning("Skipping source %s: unknown provider %s", name, provider)
                continue
            config = entry.get("config") or {}
            try:
                self.registry.get(provider).parse_config(config)
            except DevFeedError as e:
                logger.warning("Skipping source %s: invalid config: %s", name, e)
                continue
            synced.append(
                self.db.save_source(
                    Source(
                        name=name,
                        provider=provider,
                        url=url,
                        config=config,
                        active=bool(entry.get("active", True)),
                        auto_fetch_enabled=bool(entry.get("auto_fetch_enabled", True)),
                    )
                )
            )
        logger.info("Synced %d configured sources", len(synced))
        return synced

    def ensure_default_sources(self, provider: str | None = None) -> None:
        """Create a provider's default source when none of that provider exists."""
        for tag in self.registry.providers:
            if provider and tag != provider:
                continue
            default = getattr(self.registry.get(tag), "default_source", None)
            if not default or self.db.list_sources(provider=tag):
                continue
            source = self.db.save_source(
                Source(
                    name=default["name"],
                    provider=tag,
                    url=default["url"],
                    config=dict(default.get("config") or {}),
                )
            )
            logger.info("Created default %s source: %s", tag, source.name)

    # ── Runs ────────────────────────────────────────────────────────

    async def run(self, source_id: int | None = None, provider: str | None = None) -> dict[str, Any]:
        """Run one source by id, or every active auto-fetch source.

        An explicit id runs that source even when it is inactive or has
        auto-fetch disabled. Returns ``{"sources": {name: status}, "created": N}``.
        """
        if source_id is not None:
            source = self.db.get_source(source_id)
            if source is None:
                raise LookupError(f"Source not found: {source_id}")
            sources = [source]
        else:
            self.ensure_default_sources(provider)
            sources = self.db.list_sources(
                provider=provider, active=True, auto_fetch_enabled=True
            )

        if not sources:
            logger.info("No sources to run")
            return {"sources": {}, "created": 0}

        semaphore = asyncio.Semaphore(int(self._daemon_cfg.get("max_concurrency", 4)))

        async def bounded(source: Source) -> tuple[str, int]:
            async with semaphore:
                return await self.run_source(source)

        outcomes = await asyncio.gather(*(bounded(s) for s in sources))
        results: dict[str, Any] = {"sources": {}, "created": 0}
        for source, (status, created) in zip(sources, outcomes):
            results["sources"][source.name] = status
            results["created"] += created
        return results

    async def run_source(self, source: Source) -> tuple[str, int]:
        """Run one source end to end. Never raises; failures become an error status."""
        self.broadcaster.update(source, STATUS_REFRESHING)
        try:
            status, created = await self._ingest(source)
        except Exception as e:
            logger.exception("Unexpected failure running %s", source.name)
            status, created = f"error: {type(e).__name__}: {e}", 0
        self.broadcaster.update(source, status, created if status.startswith("ok") else None)
        return status, created

    async def _ingest(self, source: Source) -> tuple[str, int]:
        adapter = self.registry.get(source.provider)
        result = await adapter.fetch(source)
        if result.error is not None:
            return f"error: {result.error}", 0

        now = utcnow()
        created = 0
        for raw in result.items:
            try:
                post = adapter.normalize(raw, source)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("%s: skipping malformed record: %s", source.name, e)
                continue
            post.priority_score = self.scorer.score(post, source, now=now)
            if self.db.upsert_post(post).created:
                created += 1

        self.db.mark_fetched(source.id, now)
        logger.info("%s: %d fetched, %d new", source.name, len(result.items), created)
        return ok_status(created), created

    # ── Daemon ──────────────────────────────────────────────────────

    def sweep(self, now: datetime | None = None) -> int:
        return self.cleaner.sweep(now)

    async def run_daemon(self, stop_event: asyncio.Event | None = None) -> None:
        """Run all sources every interval and sweep retention periodically."""
        stop = stop_event or asyncio.Event()
        interval = float(self._daemon_cfg.get("interval_minutes", 15)) * 60
        sweep_every = timedelta(hours=float(self._daemon_cfg.get("sweep_interval_hours", 24)))
        last_sweep: datetime | None = None

        logger.info("Daemon started: interval %.0fs", interval)
        while not stop.is_set():
            results = await self.run()
            logger.info("Run complete: %d new posts", results["created"])

            if last_sweep is None or utcnow() - last_sweep >= sweep_every:
                self.sweep()
                last_sweep = utcnow()

            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Daemon stopped")


def _open(config: dict[str, Any]) -> tuple[FeedDB, Scanner]:
    db = FeedDB(get_db_path(config))
    db.connect()
    scanner = Scanner.from_config(config, db)
    scanner.sync_sources()
    return db, scanner


async def run_once(
    config: dict | None = None,
    source_id: int | None = None,
    provider: str | None = None,
) -> dict:
    """Run sources a single time and exit."""
    if config is None:
        config = load_config()

    db, scanner = _open(config)
    logger.info("devfeed scan starting (one-shot)")
    try:
        results = await scanner.run(source_id=source_id, provider=provider)
        logger.info(
            "Scan complete: %d sources, %d new posts",
            len(results["sources"]),
            results["created"],
        )
        return results
    finally:
        db.close()


async def run_daemon(config: dict | None = None) -> None:
    if config is None:
        config = load_config()

    db, scanner = _open(config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)
    try:
        await scanner.run_daemon(stop)
    finally:
        db.close()


def sweep_once(config: dict | None = None) -> int:
    if config is None:
        config = load_config()

    db = FeedDB(get_db_path(config))
    db.connect()
    try:
        return RetentionCleaner(db, get_retention_days(config)).sweep()
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: one-shot scan, daemon loop, or retention sweep."""
    parser = argparse.ArgumentParser(prog="devfeed-scan", description=__doc__)
    parser.add_argument("--config", help="Path to a YAML config overriding the defaults")
    parser.add_argument("--source-id", type=int, help="Run only this source")
    parser.add_argument("--provider", help="Run only sources of this provider")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--daemon", action="store_true", help="Keep running on a timer")
    mode.add_argument("--sweep", action="store_true", help="Run the retention sweep and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    config = load_config(args.config)

    if args.sweep:
        sweep_once(config)
    elif args.daemon:
        asyncio.run(run_daemon(config))
    else:
        asyncio.run(run_once(config, source_id=args.source_id, provider=args.provider))
