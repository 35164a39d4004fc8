"""Shared fixtures for devfeed tests."""

import tempfile
from pathlib import Path

import pytest
from aioresponses import aioresponses

from devfeed.db import FeedDB
from devfeed.models import Source


@pytest.fixture
def db():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = FeedDB(Path(tmpdir) / "test.db")
        db.connect()
        yield db
        db.close()


@pytest.fixture
def http():
    """Stubbed aiohttp traffic. Unregistered URLs fail with a connection error."""
    with aioresponses() as m:
        yield m


def make_source(provider: str, url: str, name: str | None = None, **kwargs) -> Source:
    return Source(name=name or f"{provider}-test", provider=provider, url=url, **kwargs)
