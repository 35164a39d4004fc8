"""Tests for the Reddit adapter."""

import re

import pytest
from conftest import make_source

from devfeed.sources.reddit import RedditAdapter, extract_subreddit

SUB = "https://www.reddit.com/r/python"
HOT = re.compile(r"^https://www\.reddit\.com/r/python/hot\.json.*$")


def _child(post_id, **overrides):
    data = {
        "id": post_id,
        "title": f"Post {post_id}",
        "author": "erin",
        "selftext": "",
        "url": f"https://example.com/{post_id}",
        "permalink": f"/r/python/comments/{post_id}/post/",
        "is_self": False,
        "score": 42,
        "ups": 42,
        "num_comments": 7,
        "created_utc": 1717200000,
    }
    data.update(overrides)
    return {"kind": "t3", "data": data}


def _listing(*children):
    return {"data": {"children": list(children)}}


@pytest.fixture
def adapter():
    return RedditAdapter()


class TestSubreddit:
    def test_extract(self):
        assert extract_subreddit("https://www.reddit.com/r/python") == "python"
        assert extract_subreddit("https://old.reddit.com/r/rust/new/?x=1") == "rust"
        assert extract_subreddit("https://www.reddit.com/user/someone") is None

    def test_lookalike_hosts_rejected(self):
        assert extract_subreddit("https://notreddit.com/r/python") is None
        assert extract_subreddit("https://example.com/?next=reddit.com/r/python") is None
        assert extract_subreddit("https://reddit.com/r/golang") == "golang"


class TestFetch:
    @pytest.mark.asyncio
    async def test_pinned_and_stickied_dropped(self, adapter, http):
        http.get(HOT, payload=_listing(
            _child("a", stickied=True),
            _child("b", pinned=True),
            _child("c"),
            _child("d", url="", selftext=""),
        ))
        result = await adapter.fetch(make_source("reddit", SUB))
        assert result.error is None
        assert [p["id"] for p in result.items] == ["c"]
        assert result.items[0]["_subreddit"] == "python"

    @pytest.mark.asyncio
    async def test_invalid_community_url_makes_no_request(self, adapter, http):
        result = await adapter.fetch(make_source("reddit", "https://www.reddit.com/user/someone"))
        assert result.items == []
        assert result.error == "invalid community URL"
        assert not http.requests

    @pytest.mark.asyncio
    async def test_lookalike_host_makes_no_request(self, adapter, http):
        result = await adapter.fetch(make_source("reddit", "https://notreddit.com/r/python"))
        assert result.error == "invalid community URL"
        assert not http.requests

    @pytest.mark.asyncio
    async def test_sort_and_limit(self, adapter, http):
        http.get(re.compile(r"^https://www\.reddit\.com/r/python/new\.json.*$"), payload=_listing(_child("x")))
        source = make_source("reddit", SUB, config={"sort": "new", "limit": 5})
        result = await adapter.fetch(source)
        assert [p["id"] for p in result.items] == ["x"]
        [(_, url)] = list(http.requests)
        assert url.query["limit"] == "5"

    @pytest.mark.asyncio
    async def test_keywords(self, adapter, http):
        http.get(HOT, payload=_listing(
            _child("a", title="Async generators explained"),
            _child("b", title="Weekly thread", selftext="talk about asyncio here", is_self=True),
            _child("c", title="Unrelated"),
        ))
        source = make_source("reddit", SUB, config={"keywords": ["async"]})
        result = await adapter.fetch(source)
        assert [p["id"] for p in result.items] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_malformed_listing(self, adapter, http):
        http.get(HOT, payload={"error": 404})
        result = await adapter.fetch(make_source("reddit", SUB))
        assert result.error == "unexpected listing (KeyError)"


class TestNormalize:
    def test_link_post(self, adapter):
        raw = _child("z", url="https://github.com/octo/tool", link_flair_text="Showcase")["data"]
        post = adapter.normalize({**raw, "_subreddit": "python"}, make_source("reddit", SUB))
        assert post.url == "https://www.reddit.com/r/python/comments/z/post/"
        assert post.summary == "https://github.com/octo/tool"
        assert post.tags == ["subreddit:python", "reddit", "Showcase", "github"]
        assert post.metrics["num_comments"] == 7

    def test_text_post(self, adapter):
        raw = _child("t", is_self=True, selftext="x" * 1200)["data"]
        post = adapter.normalize({**raw, "_subreddit": "python"}, make_source("reddit", SUB))
        assert post.tags == ["subreddit:python", "reddit", "text-post"]
        assert len(post.summary) == 1003

    @pytest.mark.parametrize("url,expected", [
        ("https://youtu.be/abc", "video"),
        ("https://i.redd.it/pic.PNG", "image"),
        ("https://example.com/article", "link"),
    ])
    def test_post_type(self, adapter, url, expected):
        raw = {**_child("p", url=url)["data"], "_subreddit": "python"}
        assert adapter.normalize(raw, make_source("reddit", SUB)).tags[-1] == expected
