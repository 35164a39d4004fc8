"""Tests for the status broadcaster."""

import pytest

from devfeed.broadcast import ALL_CHANNEL, StatusBroadcaster, channel_for
from devfeed.models import Source


@pytest.fixture
def source(db):
    return db.save_source(Source(name="Feed", provider="rss", url="https://feed.example/rss"))


class TestStatusBroadcaster:
    def test_update_persists_status(self, db, source):
        StatusBroadcaster(db).update(source, "refreshing")
        assert db.get_source(source.id).status == "refreshing"
        assert source.status == "refreshing"

    def test_one_event_per_channel(self, db, source):
        broadcaster = StatusBroadcaster(db)
        broadcaster.update(source, "ok (2 new)", created=2)

        [own] = broadcaster.recent(channel_for(source.id))
        [agg] = broadcaster.recent(ALL_CHANNEL)
        assert own.channel == f"source_status:{source.id}"
        assert agg.channel == "source_status:all"
        assert own.status == agg.status == "ok (2 new)"
        assert own.to_dict()["created"] == 2

    @pytest.mark.asyncio
    async def test_queue_subscribers_in_order(self, db, source):
        broadcaster = StatusBroadcaster(db)
        queue = broadcaster.subscribe(channel_for(source.id))
        broadcaster.update(source, "refreshing")
        broadcaster.update(source, "ok")
        assert (await queue.get()).status == "refreshing"
        assert (await queue.get()).status == "ok"
        assert queue.empty()

    def test_unsubscribe(self, db, source):
        broadcaster = StatusBroadcaster(db)
        queue = broadcaster.subscribe(ALL_CHANNEL)
        broadcaster.unsubscribe(ALL_CHANNEL, queue)
        broadcaster.update(source, "ok")
        assert queue.empty()

    def test_failing_listener_isolated(self, db, source):
        broadcaster = StatusBroadcaster(db)
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        broadcaster.add_listener(ALL_CHANNEL, broken)
        broadcaster.add_listener(ALL_CHANNEL, seen.append)
        broadcaster.update(source, "ok")
        assert [e.status for e in seen] == ["ok"]

    def test_history_bounded(self, db, source):
        broadcaster = StatusBroadcaster(db, history_size=3)
        for i in range(5):
            broadcaster.update(source, f"ok ({i} new)")
        assert [e.status for e in broadcaster.recent(ALL_CHANNEL)] == [
            "ok (2 new)", "ok (3 new)", "ok (4 new)",
        ]
        assert len(broadcaster.recent(ALL_CHANNEL, limit=1)) == 1
