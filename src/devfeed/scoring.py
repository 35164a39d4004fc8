"""Priority scorer: per-provider rule tables over one shared shape.

    score = recency + engagement + sum(bonus rules)

Recency is a linear ramp that reaches zero after ``recency_window`` units of
age. Engagement is a weighted sum of whatever counters the provider exposes.
Bonuses are provider-specific rules over tags, titles and source config.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from .models import Post, Source, utcnow
from .normalize import parse_timestamp

logger = logging.getLogger(__name__)

DEVELOPER_KEYWORDS = [
    "api", "framework", "library", "tutorial", "guide", "developer", "programming",
    "code", "software", "development", "javascript", "python", "ruby", "rails",
    "react", "vue", "angular", "nodejs", "github", "opensource", "release",
]
HELPFUL_LABELS = {"good first issue", "help wanted", "beginner friendly", "easy", "starter"}
HELPFUL_TOPICS = {
    "beginner-friendly", "good-first-issues", "hacktoberfest", "open-source", "awesome", "tutorial",
}

BonusRule = Callable[[Post, dict[str, Any], datetime], float]


@dataclass(frozen=True)
class RuleTable:
    engagement: dict[str, float]
    recency_window: float
    recency_weight: float
    # Hours per recency unit (1 = hours, 24 = days)
    recency_unit_hours: float = 1.0
    # No recency credit at all past this many units
    recency_cutoff: Optional[float] = None
    # metrics key holding the timestamp to age from; posted_at when absent
    recency_field: Optional[str] = None
    # metrics flag that must be truthy for any recency credit
    recency_requires: Optional[str] = None
    bonuses: tuple[BonusRule, ...] = field(default_factory=tuple)
    floor: float = 0.0


def _hours_since(value: Any, now: datetime) -> float:
    return max(0.0, (now - parse_timestamp(value, default=now)).total_seconds() / 3600.0)


# ── Bonus rules ─────────────────────────────────────────────────────


def _unanswered(post: Post, config: dict, now: datetime) -> float:
    return 2.0 if (post.metrics.get("reply_count") or 0) == 0 else 0.0


def _pinned(post: Post, config: dict, now: datetime) -> float:
    return 2.0 if post.metrics.get("pinned") else 0.0


def _priority_tags(post: Post, config: dict, now: datetime) -> float:
    wanted = set(config.get("priority_tags") or [])
    return 1.0 * len(wanted.intersection(post.tags))


def _issue_labels(post: Post, config: dict, now: datetime) -> float:
    labels = {t.lower() for t in post.tags}
    score = 0.0
    if labels & HELPFUL_LABELS:
        score += 5.0
    if "bug" in labels:
        score += 3.0
    if "enhancement" in labels or "feature" in labels:
        score += 2.0
    priority = {label.lower() for label in config.get("priority_labels") or []}
    score += 2.0 * len(labels & priority)
    return score


def _issue_activity(post: Post, config: dict, now: datetime) -> float:
    updated = post.metrics.get("updated_at")
    if not updated or updated == post.metrics.get("created_at"):
        return 0.0
    return max(5.0 - _hours_since(updated, now), 0.0) * 0.2


def _repo_quality(post: Post, config: dict, now: datetime) -> float:
    score = 0.0
    if len(post.metrics.get("description") or "") > 20:
        score += 3.0
    if post.metrics.get("language") and post.metrics["language"] in (config.get("preferred_languages") or []):
        score += 5.0
    topics = set(post.metrics.get("topics") or [])
    score += 2.0 * len(topics & HELPFUL_TOPICS)
    return score


def _trending_rank(post: Post, config: dict, now: datetime) -> float:
    # Only rows read from the trending page carry a rank
    rank = post.metrics.get("rank") or 0
    return max(26 - rank, 0) * 2.0 if rank > 0 else 0.0


def _story_type(post: Post, config: dict, now: datetime) -> float:
    title = post.title.lower()
    story_type = post.metrics.get("story_type")
    if story_type == "ask" or title.startswith("ask hn"):
        return 3.0
    if story_type == "show" or title.startswith("show hn"):
        return 2.5
    if story_type == "top":
        return 1.0
    return 0.0


def _story_keywords(post: Post, config: dict, now: datetime) -> float:
    title = post.title.lower()
    score = 0.8 * sum(1 for k in DEVELOPER_KEYWORDS if k in title)
    if "tutorial" in title or "guide" in title:
        score += 2.0
    if "release" in title or "version" in title:
        score += 1.5
    if "opensource" in title or "open source" in title:
        score += 1.0
    return score


def _feed_keywords(post: Post, config: dict, now: datetime) -> float:
    text = f"{post.title} {post.summary}".lower()
    score = 0.5 * sum(1 for k in DEVELOPER_KEYWORDS if k in text)
    if len(post.summary) > 100:
        score += 1.0
    if "tutorial" in text or "guide" in text or "how to" in text:
        score += 2.0
    if "release" in text or "version" in text or "update" in text:
        score += 1.5
    return score


# ── Rule tables ─────────────────────────────────────────────────────

RULES: dict[str, RuleTable] = {
    "discourse": RuleTable(
        engagement={"reply_count": 0.1, "like_count": 0.2, "views": 0.001},
        recency_window=10, recency_weight=0.5, recency_field="created_at",
        bonuses=(_unanswered, _pinned, _priority_tags),
    ),
    "github_issues": RuleTable(
        engagement={"comments": 0.5, "reactions": 0.3},
        recency_window=10, recency_weight=0.3, recency_field="created_at",
        bonuses=(_issue_labels, _issue_activity),
    ),
    "github_trending": RuleTable(
        engagement={"stars": 0.1, "forks": 0.2, "watchers": 0.1, "stars_today": 0.5},
        recency_window=10, recency_weight=2.0, recency_unit_hours=24, recency_cutoff=7,
        bonuses=(_repo_quality, _trending_rank),
    ),
    "hackernews": RuleTable(
        engagement={"score": 0.1, "descendants": 0.05},
        recency_window=10, recency_weight=0.3,
        bonuses=(_story_type, _story_keywords),
    ),
    "reddit": RuleTable(
        engagement={"score": 0.1, "num_comments": 0.5},
        recency_window=24, recency_weight=0.25,
        floor=1.0,
    ),
    "rss": RuleTable(
        engagement={},
        recency_window=10, recency_weight=0.5, recency_requires="has_date",
        bonuses=(_feed_keywords,),
    ),
}

GENERIC_RULES = RuleTable(engagement={}, recency_window=10, recency_weight=0.5)


class PriorityScorer:
    """Scores canonical items using the rule table of their source's provider."""

    def __init__(self, rules: dict[str, RuleTable] | None = None):
        self.rules = dict(RULES if rules is None else rules)

    def score(self, post: Post, source: Source, now: datetime | None = None) -> float:
        now = now or utcnow()
        table = self.rules.get(source.provider)
        if table is None:
            logger.debug("No rule table for provider %s, using generic rules", source.provider)
            table = GENERIC_RULES

        total = (
            self.recency(post, table, now)
            + self.engagement(post, table)
            + sum(rule(post, source.config or {}, now) for rule in table.bonuses)
        )
        return round(max(total, table.floor, 0.0), 4)

    def recency(self, post: Post, table: RuleTable, now: datetime) -> float:
        if table.recency_requires and not post.metrics.get(table.recency_requires):
            return 0.0
        reference: Any = post.posted_at
        if table.recency_field:
            reference = post.metrics.get(table.recency_field) or post.posted_at

        age = _hours_since(reference, now) / table.recency_unit_hours
        if table.recency_cutoff is not None and age > table.recency_cutoff:
            return 0.0
        return max(table.recency_window - age, 0.0) * table.recency_weight

    def engagement(self, post: Post, table: RuleTable) -> float:
        total = 0.0
        for metric, weight in table.engagement.items():
            value = post.metrics.get(metric) or 0
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                total += value * weight
        return total
