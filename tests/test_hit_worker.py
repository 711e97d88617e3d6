"""
Tests for the hit queue and the hit worker.
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import redis
from sqlalchemy.exc import OperationalError

from redirector_app.config import settings
from redirector_app.hit_processor.hit_worker import HitWorker
from redirector_app.models import Hit
from redirector_app.queue.factory import QueueBackend, create_hit_queue
from redirector_app.queue.models import HitEvent
from redirector_app.queue.strategies import InMemoryQueue, RedisStreamQueue
from redirector_app.services.alias_service import AliasService
from redirector_app.services.destination_service import DestinationService
from redirector_app.services.redirect_service import RedirectService
from tests.conftest import TestingSessionLocal


@pytest.fixture
def destination(db_session, manager):
    service = DestinationService(db_session)
    return asyncio.run(service.create_destination(manager, "counted", "https://example.com/"))


class TestInMemoryQueue:

    def test_fifo_batches(self, destination):
        queue = InMemoryQueue()
        for _ in range(3):
            asyncio.run(queue.publish("hits", HitEvent(destination_id=destination.id)))

        first = asyncio.run(queue.consume("hits", batch_size=2, block_time=0))
        second = asyncio.run(queue.consume("hits", batch_size=2, block_time=0))

        assert len(first) == 2
        assert len(second) == 1
        assert asyncio.run(queue.get_queue_length("hits")) == 0

    def test_requeue_keeps_order(self, destination):
        queue = InMemoryQueue()
        events = [HitEvent(destination_id=destination.id, user_agent=str(i)) for i in range(3)]
        for event in events:
            asyncio.run(queue.publish("hits", event))

        batch = asyncio.run(queue.consume("hits", batch_size=2, block_time=0))
        asyncio.run(queue.requeue("hits", batch))

        again = asyncio.run(queue.consume("hits", batch_size=3, block_time=0))
        assert [event.user_agent for event in again] == ["0", "1", "2"]


class TestRedisStreamQueue:
    """Redis client is mocked, only the stream protocol is checked"""

    def test_publish_serializes_event(self, destination):
        redis_client = MagicMock()
        queue = RedisStreamQueue(redis_client, "workers")

        assert asyncio.run(queue.publish("hits", HitEvent(destination_id=destination.id))) is True

        redis_client.xgroup_create.assert_called_once()
        name, fields = redis_client.xadd.call_args.args
        assert name == "hits"
        assert HitEvent.model_validate_json(fields["data"]).destination_id == destination.id

    def test_publish_failure_returns_false(self, destination):
        redis_client = MagicMock()
        redis_client.xadd.side_effect = ConnectionError("down")
        queue = RedisStreamQueue(redis_client)

        assert asyncio.run(queue.publish("hits", HitEvent(destination_id=destination.id))) is False

    def test_consume_sets_message_ids_and_drops_malformed(self, destination):
        event = HitEvent(destination_id=destination.id)
        redis_client = MagicMock()
        redis_client.xreadgroup.return_value = [
            (b"hits", [
                (b"1-0", {b"data": event.model_dump_json().encode()}),
                (b"2-0", {b"data": b"not json"}),
            ])
        ]
        queue = RedisStreamQueue(redis_client, "workers")

        events = asyncio.run(queue.consume("hits", batch_size=10, block_time=0))

        assert [e.message_id for e in events] == ["1-0"]
        redis_client.xack.assert_called_once_with("hits", "workers", "2-0")


class StreamGroupStub:
    """
    Minimal consumer-group bookkeeping: '>' hands out new entries and marks
    them pending, '0' replays pending entries, XACK clears them.
    """

    def __init__(self, events):
        self.new = [
            (f"{i}-0".encode(), {b"data": event.model_dump_json().encode()})
            for i, event in enumerate(events, start=1)
        ]
        self.pending = {}
        self.stale = []

    def xgroup_create(self, **kwargs):
        pass

    def xreadgroup(self, groupname, consumername, streams, count, block):
        (name, stream_id), = streams.items()
        if stream_id == "0":
            entries = list(self.pending.items())[:count]
        else:
            entries, self.new = self.new[:count], self.new[count:]
            self.pending.update(entries)
        return [(name.encode(), entries)]

    def xautoclaim(self, name, groupname, consumername, min_idle_time, start_id="0-0", count=None):
        entries, self.stale = self.stale[:count], self.stale[count:]
        self.pending.update(entries)
        return [b"0-0", entries, []]

    def xack(self, name, groupname, *message_ids):
        for message_id in message_ids:
            self.pending.pop(message_id.encode(), None)
        return len(message_ids)


class TestRedisRedelivery:

    def test_failed_batch_is_delivered_again(self, db_session, destination, monkeypatch):
        stream = StreamGroupStub([HitEvent(destination_id=destination.id) for _ in range(2)])
        queue = RedisStreamQueue(stream, "workers")
        worker = HitWorker(queue, db_session_factory=TestingSessionLocal, batch_size=10)
        store_hits = worker.store_hits
        calls = []

        def store_fails_once(events):
            calls.append([event.message_id for event in events])
            if len(calls) == 1:
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            store_hits(events)

        monkeypatch.setattr(worker, "store_hits", store_fails_once)

        with pytest.raises(OperationalError):
            asyncio.run(worker.run_once())
        assert len(stream.pending) == 2

        assert asyncio.run(worker.run_once()) == 2
        assert calls == [["1-0", "2-0"], ["1-0", "2-0"]]
        assert stream.pending == {}
        assert db_session.query(Hit).count() == 2

    def test_stale_entries_of_other_consumers_are_claimed(self, destination):
        stream = StreamGroupStub([])
        stream.stale = [(b"7-0", {b"data": HitEvent(destination_id=destination.id).model_dump_json().encode()})]
        queue = RedisStreamQueue(stream, "workers")

        events = asyncio.run(queue.consume("hits", batch_size=10, block_time=0))

        assert [event.message_id for event in events] == ["7-0"]

    def test_trimmed_pending_entry_is_dropped(self):
        stream = StreamGroupStub([])
        stream.pending = {b"3-0": None}
        queue = RedisStreamQueue(stream, "workers")

        assert asyncio.run(queue.consume("hits", batch_size=10, block_time=0)) == []
        assert stream.pending == {}


class TestCreateHitQueue:

    def test_memory_backend(self):
        assert isinstance(create_hit_queue(QueueBackend.MEMORY.value), InMemoryQueue)

    def test_unreachable_redis_falls_back_to_memory(self, monkeypatch):
        redis_client = MagicMock()
        redis_client.ping.side_effect = redis.ConnectionError("refused")
        monkeypatch.setattr(redis, "from_url", lambda *args, **kwargs: redis_client)

        assert isinstance(create_hit_queue(QueueBackend.REDIS_STREAMS.value), InMemoryQueue)

    def test_redis_backend(self, monkeypatch):
        monkeypatch.setattr(redis, "from_url", lambda *args, **kwargs: MagicMock())

        assert isinstance(create_hit_queue(QueueBackend.REDIS_STREAMS.value), RedisStreamQueue)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_hit_queue("kafka")


class TestHitWorker:

    def test_stores_hits(self, db_session, manager, destination):
        queue = InMemoryQueue()
        alias = asyncio.run(AliasService(db_session).create_alias(manager, destination.id, "also-counted"))
        resolver = RedirectService(db_session, queue)
        for path in ("/counted", "/also-counted"):
            resolution = asyncio.run(resolver.resolve(path))
            asyncio.run(resolver.record_hit(resolution, client_ip="192.0.2.1", user_agent="pytest"))

        worker = HitWorker(queue, db_session_factory=TestingSessionLocal, batch_size=10)
        stored = asyncio.run(worker.run_once())

        assert stored == 2
        hits = db_session.query(Hit).all()
        assert len(hits) == 2
        assert {hit.alias_id for hit in hits} == {None, alias.id}
        assert all(hit.destination_id == destination.id for hit in hits)

    def test_keeps_visit_time(self, db_session, destination):
        queue = InMemoryQueue()
        visited_at = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        asyncio.run(queue.publish(settings.queue_name, HitEvent(destination_id=destination.id, timestamp=visited_at)))

        asyncio.run(HitWorker(queue, db_session_factory=TestingSessionLocal).run_once())

        hit = db_session.query(Hit).one()
        assert hit.created_at.replace(tzinfo=timezone.utc) == visited_at

    def test_empty_queue(self):
        worker = HitWorker(InMemoryQueue(), db_session_factory=TestingSessionLocal)
        assert asyncio.run(worker.run_once()) == 0

    def test_failed_batch_is_requeued(self, destination, monkeypatch):
        queue = InMemoryQueue()
        asyncio.run(queue.publish(settings.queue_name, HitEvent(destination_id=destination.id)))
        worker = HitWorker(queue, db_session_factory=TestingSessionLocal)

        def broken_store(events):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(worker, "store_hits", broken_store)

        with pytest.raises(OperationalError):
            asyncio.run(worker.run_once())
        assert asyncio.run(queue.get_queue_length(settings.queue_name)) == 1

    def test_stats_count_stored_hits(self, client, manager_headers, db_session, destination, hit_queue):
        for _ in range(3):
            client.get("/counted", follow_redirects=False)

        asyncio.run(HitWorker(hit_queue, db_session_factory=TestingSessionLocal).run_once())

        response = client.get(f"/api/destinations/{destination.id}/stats", headers=manager_headers)
        data = response.json()
        assert data["totalHits"] == 3
        assert data["lastHitAt"] is not None
