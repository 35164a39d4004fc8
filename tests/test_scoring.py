"""Tests for the priority scorer: within-provider ordering and bonus rules."""

from datetime import datetime, timedelta, timezone

import pytest

from devfeed.models import Post, Source
from devfeed.scoring import PriorityScorer

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _source(provider, **config):
    return Source(name=f"{provider}-src", provider=provider, url="https://example.com", config=config)


def _post(title="Post", hours_old=1.0, tags=None, summary="", metrics=None):
    return Post(
        source="src",
        external_id="1",
        title=title,
        url="https://example.com",
        summary=summary,
        tags=tags or [],
        posted_at=NOW - timedelta(hours=hours_old),
        metrics=metrics or {},
    )


@pytest.fixture
def scorer():
    return PriorityScorer()


class TestDiscourse:
    def test_unanswered_boost(self, scorer):
        src = _source("discourse")
        unanswered = scorer.score(_post(metrics={"reply_count": 0}), src, NOW)
        answered = scorer.score(_post(metrics={"reply_count": 1}), src, NOW)
        assert unanswered > answered

    def test_engagement_and_recency_ordering(self, scorer):
        src = _source("discourse")
        created = (NOW - timedelta(hours=1)).isoformat()
        stale = (NOW - timedelta(days=3)).isoformat()
        hot = _post(metrics={"reply_count": 5, "like_count": 20, "views": 2000, "created_at": created})
        cold = _post(metrics={"reply_count": 5, "like_count": 0, "views": 10, "created_at": stale})
        assert scorer.score(hot, src, NOW) > scorer.score(cold, src, NOW)

    def test_priority_tags_from_config(self, scorer):
        src = _source("discourse", priority_tags=["help"])
        tagged = scorer.score(_post(tags=["help"], metrics={"reply_count": 1}), src, NOW)
        plain = scorer.score(_post(tags=["misc"], metrics={"reply_count": 1}), src, NOW)
        assert tagged > plain


class TestGitHubIssues:
    def test_helpful_label_adds_five(self, scorer):
        src = _source("github_issues")
        helpful = scorer.score(_post(tags=["good first issue"]), src, NOW)
        plain = scorer.score(_post(tags=[]), src, NOW)
        assert helpful - plain == pytest.approx(5.0)

    def test_engagement_ordering(self, scorer):
        src = _source("github_issues")
        busy = _post(metrics={"comments": 10, "reactions": 5})
        quiet = _post(hours_old=30, metrics={"comments": 0, "reactions": 0})
        assert scorer.score(busy, src, NOW) > scorer.score(quiet, src, NOW)


class TestGitHubTrending:
    def test_preferred_language_adds_five(self, scorer):
        src = _source("github_trending", preferred_languages=["Rust"])
        match = scorer.score(_post(metrics={"language": "Rust"}), src, NOW)
        other = scorer.score(_post(metrics={"language": "Go"}), src, NOW)
        assert match - other == pytest.approx(5.0)

    def test_description_and_topics(self, scorer):
        src = _source("github_trending")
        rich = _post(metrics={"description": "A thorough, well documented parser", "topics": ["awesome", "tutorial"]})
        bare = _post(metrics={"description": "", "topics": []})
        assert scorer.score(rich, src, NOW) - scorer.score(bare, src, NOW) == pytest.approx(3.0 + 2 * 2.0)

    def test_stars_and_recency_ordering(self, scorer):
        src = _source("github_trending")
        new_popular = _post(hours_old=12, metrics={"stars": 500, "forks": 50})
        old_quiet = _post(hours_old=24 * 8, metrics={"stars": 5, "forks": 0})
        assert scorer.score(new_popular, src, NOW) > scorer.score(old_quiet, src, NOW)


class TestHackerNews:
    def test_ask_story_above_three(self, scorer):
        post = _post(title="Ask HN: How do you review code?", hours_old=20, metrics={"score": 1, "story_type": "ask"})
        assert scorer.score(post, _source("hackernews"), NOW) > 3.0

    def test_points_ordering(self, scorer):
        src = _source("hackernews")
        popular = _post(title="Something", metrics={"score": 300, "descendants": 120, "story_type": "new"})
        ignored = _post(title="Something", hours_old=15, metrics={"score": 10, "descendants": 0, "story_type": "new"})
        assert scorer.score(popular, src, NOW) > scorer.score(ignored, src, NOW)


class TestReddit:
    def test_floor(self, scorer):
        post = _post(hours_old=100, metrics={"score": 0, "num_comments": 0})
        assert scorer.score(post, _source("reddit"), NOW) == 1.0

    def test_comments_ordering(self, scorer):
        src = _source("reddit")
        discussed = _post(metrics={"score": 50, "num_comments": 40})
        quiet = _post(hours_old=20, metrics={"score": 2, "num_comments": 0})
        assert scorer.score(discussed, src, NOW) > scorer.score(quiet, src, NOW)


class TestRss:
    def test_tutorial_keyword(self, scorer):
        post = _post(title="A gentle tutorial on decorators", hours_old=100, metrics={"has_date": True})
        assert scorer.score(post, _source("rss"), NOW) > 2.0

    def test_release_keyword(self, scorer):
        post = _post(title="Django 5.1 release notes", hours_old=100, metrics={"has_date": True})
        assert scorer.score(post, _source("rss"), NOW) > 1.5

    def test_no_recency_without_date(self, scorer):
        src = _source("rss")
        dated = scorer.score(_post(title="Notes", metrics={"has_date": True}), src, NOW)
        undated = scorer.score(_post(title="Notes", metrics={"has_date": False}), src, NOW)
        assert dated > undated == 0.0


class TestGeneric:
    def test_unknown_provider_scored(self, scorer):
        assert scorer.score(_post(), _source("mailing_list"), NOW) >= 0.0

    def test_never_negative(self, scorer):
        post = _post(hours_old=10_000)
        for provider in ("discourse", "github_issues", "github_trending", "hackernews", "rss"):
            assert scorer.score(post, _source(provider), NOW) >= 0.0
