"""Tests for the shared normalizer helpers."""

from datetime import datetime, timezone

import pytest

from devfeed.normalize import (
    build_post,
    collapse_whitespace,
    parse_timestamp,
    strip_html,
    truncate,
    unique_tags,
)


class TestText:
    def test_strip_html(self):
        assert strip_html("<p>Hello &amp; <b>world</b></p>") == "Hello & world"
        assert strip_html(None) == ""

    def test_collapse_whitespace(self):
        assert collapse_whitespace("  a\n\n b\t c ") == "a b c"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("abcdefghij", 4) == "abcd..."
        assert truncate("abc defg", 4) == "abc..."
        assert truncate(None, 4) == ""


class TestParseTimestamp:
    def test_iso_with_z(self):
        dt = parse_timestamp("2024-03-01T12:00:00Z")
        assert dt == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

    def test_rfc822(self):
        dt = parse_timestamp("Fri, 01 Mar 2024 12:00:00 GMT")
        assert dt == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

    def test_epoch(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        assert parse_timestamp(datetime(2024, 1, 1)).tzinfo is not None

    def test_garbage_uses_default(self):
        default = datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp("not a date", default=default) == default
        assert parse_timestamp(None, default=default) == default


class TestBuildPost:
    def test_defaults_applied(self):
        post = build_post(source="s", external_id=42, title=None, url=None)
        assert post.external_id == "42"
        assert post.title == "Untitled"
        assert post.author == "unknown"
        assert post.summary == ""
        assert post.tags == []
        assert post.url == ""
        assert post.status == "unread"

    def test_custom_default_author(self):
        post = build_post(source="s", external_id="1", title="t", url="u", author="  ", default_author="Unknown")
        assert post.author == "Unknown"

    def test_missing_external_id(self):
        with pytest.raises(ValueError):
            build_post(source="s", external_id=None, title="t", url="u")

    def test_tags_deduplicated_in_order(self):
        assert unique_tags(["b", "a", "b", None, "", " c "]) == ["b", "a", "c"]
