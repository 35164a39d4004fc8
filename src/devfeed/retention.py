"""Retention sweep: purge posts older than the most generous retention window."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .db import FeedDB
from .models import utcnow

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
BATCH_SIZE = 100


class RetentionCleaner:
    def __init__(self, db: FeedDB, default_days: int = DEFAULT_RETENTION_DAYS):
        self.db = db
        self.default_days = default_days

    def retention_days(self) -> int:
        """Largest per-user setting, so no user loses posts early."""
        days = self.db.max_retention_days()
        return days if days is not None else self.default_days

    def sweep(self, now: datetime | None = None) -> int:
        days = self.retention_days()
        cutoff = (now or utcnow()) - timedelta(days=days)
        deleted = self.db.delete_posts_before(cutoff, batch_size=BATCH_SIZE)
        logger.info(
            "Retention sweep: deleted %d posts older than %s (%d days)",
            deleted, cutoff.isoformat(), days,
        )
        return deleted
