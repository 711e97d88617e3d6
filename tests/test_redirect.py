"""
Tests for redirect resolution.
"""
import asyncio
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from redirector_app.config import settings
from redirector_app.errors import NotFound
from redirector_app.queue.strategies import RedisStreamQueue
from redirector_app.services.alias_service import AliasService
from redirector_app.services.destination_service import DestinationService
from redirector_app.services.redirect_service import (
    PERMANENT_REDIRECT,
    TEMPORARY_REDIRECT,
    RedirectService,
    forward_query,
)


@pytest.fixture
def destinations(db_session):
    return DestinationService(db_session)


class TestResolve:

    def test_temporary_and_permanent(self, db_session, manager, destinations):
        asyncio.run(destinations.create_destination(manager, "temp", "https://example.com/t"))
        asyncio.run(destinations.create_destination(
            manager, "perm", "https://example.com/p", is_permanent=True
        ))
        resolver = RedirectService(db_session)

        temporary = asyncio.run(resolver.resolve("/temp"))
        permanent = asyncio.run(resolver.resolve("/perm"))

        assert (temporary.url, temporary.status_code) == ("https://example.com/t", TEMPORARY_REDIRECT)
        assert (permanent.url, permanent.status_code) == ("https://example.com/p", PERMANENT_REDIRECT)

    def test_path_is_normalized(self, db_session, manager, destinations):
        asyncio.run(destinations.create_destination(manager, "docs/intro", "https://example.com/"))

        resolution = asyncio.run(RedirectService(db_session).resolve("/Docs/Intro/"))
        assert resolution.url == "https://example.com/"

    def test_unknown_slug(self, db_session):
        with pytest.raises(NotFound):
            asyncio.run(RedirectService(db_session).resolve("/nothing-here"))

    def test_deleted_slug(self, db_session, manager, destinations):
        destination = asyncio.run(destinations.create_destination(manager, "gone", "https://example.com/"))
        asyncio.run(destinations.delete_destination(manager, destination.id))

        with pytest.raises(NotFound):
            asyncio.run(RedirectService(db_session).resolve("/gone"))

    def test_alias(self, db_session, manager, destinations):
        destination = asyncio.run(destinations.create_destination(manager, "target", "https://example.com/"))
        alias = asyncio.run(AliasService(db_session).create_alias(manager, destination.id, "shortcut"))

        resolution = asyncio.run(RedirectService(db_session).resolve("/shortcut"))

        assert resolution.url == "https://example.com/"
        assert resolution.destination_id == destination.id
        assert resolution.alias_id == alias.id

    def test_alias_of_deleted_destination(self, db_session, manager, destinations):
        destination = asyncio.run(destinations.create_destination(manager, "dead", "https://example.com/"))
        asyncio.run(AliasService(db_session).create_alias(manager, destination.id, "dead-alias"))
        asyncio.run(destinations.delete_destination(manager, destination.id))

        with pytest.raises(NotFound):
            asyncio.run(RedirectService(db_session).resolve("/dead-alias"))

    def test_deleted_alias(self, db_session, manager, destinations):
        destination = asyncio.run(destinations.create_destination(manager, "alive", "https://example.com/"))
        aliases = AliasService(db_session)
        alias = asyncio.run(aliases.create_alias(manager, destination.id, "removed"))
        asyncio.run(aliases.delete_alias(manager, destination.id, alias.id))

        with pytest.raises(NotFound):
            asyncio.run(RedirectService(db_session).resolve("/removed"))

    def test_invalid_path_is_not_found(self, db_session):
        with pytest.raises(NotFound):
            asyncio.run(RedirectService(db_session).resolve("/api/anything"))

    def test_publishes_hit(self, db_session, manager, destinations, hit_queue):
        destination = asyncio.run(destinations.create_destination(manager, "tracked", "https://example.com/"))

        resolver = RedirectService(db_session, hit_queue)
        resolution = asyncio.run(resolver.resolve("/tracked"))
        asyncio.run(resolver.record_hit(resolution, client_ip="198.51.100.4", user_agent="pytest"))

        events = asyncio.run(hit_queue.consume(settings.queue_name, batch_size=10, block_time=0))
        assert len(events) == 1
        assert events[0].destination_id == destination.id
        assert events[0].alias_id is None
        assert events[0].ip_address == "198.51.100.4"
        assert events[0].user_agent == "pytest"
        assert events[0].timestamp == resolution.resolved_at

    def test_queue_failure_does_not_fail_redirect(self, db_session, manager, destinations, hit_queue, monkeypatch):
        asyncio.run(destinations.create_destination(manager, "robust", "https://example.com/"))

        async def broken_publish(queue_name, message):
            raise ConnectionError("queue down")

        monkeypatch.setattr(hit_queue, "publish", broken_publish)

        resolver = RedirectService(db_session, hit_queue)
        resolution = asyncio.run(resolver.resolve("/robust"))
        asyncio.run(resolver.record_hit(resolution))
        assert resolution.url == "https://example.com/"

    def test_slow_queue_does_not_delay_resolve(self, db_session, manager, destinations):
        asyncio.run(destinations.create_destination(manager, "slow", "https://example.com/"))
        redis_client = MagicMock()
        redis_client.xadd.side_effect = lambda *args, **kwargs: time.sleep(1.5)
        resolver = RedirectService(db_session, RedisStreamQueue(redis_client))

        started = time.monotonic()
        resolution = asyncio.run(resolver.resolve("/slow"))
        assert time.monotonic() - started < 0.5
        assert resolution.url == "https://example.com/"

    def test_slow_publish_does_not_block_event_loop(self, db_session, manager, destinations):
        asyncio.run(destinations.create_destination(manager, "slower", "https://example.com/"))
        redis_client = MagicMock()
        redis_client.xadd.side_effect = lambda *args, **kwargs: time.sleep(1.5)
        resolver = RedirectService(db_session, RedisStreamQueue(redis_client))
        resolution = asyncio.run(resolver.resolve("/slower"))

        async def other_work_while_publishing():
            publishing = asyncio.create_task(resolver.record_hit(resolution))
            started = time.monotonic()
            await asyncio.sleep(0.05)
            waited = time.monotonic() - started
            await publishing
            return waited

        assert asyncio.run(other_work_while_publishing()) < 0.5
        redis_client.xadd.assert_called_once()


class TestForwardQuery:

    def test_appends_parameters(self):
        assert forward_query("https://example.com/p", "a=1&b=2") == "https://example.com/p?a=1&b=2"

    def test_target_parameters_win(self):
        assert forward_query("https://example.com/p?a=0", "a=1&b=2") == "https://example.com/p?a=0&b=2"

    def test_no_parameters(self):
        assert forward_query("https://example.com/p", "") == "https://example.com/p"

    def test_keeps_fragment(self):
        assert forward_query("https://example.com/p#top", "a=1") == "https://example.com/p?a=1#top"


class TestRedirectEndpoint:

    def test_redirect(self, client: TestClient, manager_headers, hit_queue):
        client.post(
            "/api/destinations",
            json={"slug": "go", "url": "https://example.com/landing"},
            headers=manager_headers,
        )

        response = client.get("/go", follow_redirects=False, headers={"User-Agent": "pytest"})

        assert response.status_code == 307
        assert response.headers["location"] == "https://example.com/landing"
        assert asyncio.run(hit_queue.get_queue_length(settings.queue_name)) == 1

    def test_root(self, client: TestClient, manager_headers):
        client.post(
            "/api/destinations",
            json={"slug": "", "url": "https://example.com/home"},
            headers=manager_headers,
        )

        response = client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "https://example.com/home"

    def test_forwarded_query(self, client: TestClient, manager_headers):
        client.post(
            "/api/destinations",
            json={
                "slug": "campaign",
                "url": "https://example.com/landing?utm_source=redirect",
                "forwardQueryParameters": True,
            },
            headers=manager_headers,
        )

        response = client.get("/campaign?utm_source=other&ref=mail", follow_redirects=False)
        assert response.headers["location"] == "https://example.com/landing?utm_source=redirect&ref=mail"

    def test_query_ignored_without_forwarding(self, client: TestClient, manager_headers):
        client.post(
            "/api/destinations",
            json={"slug": "plain", "url": "https://example.com/plain"},
            headers=manager_headers,
        )

        response = client.get("/plain?ref=mail", follow_redirects=False)
        assert response.headers["location"] == "https://example.com/plain"

    def test_not_found(self, client: TestClient):
        response = client.get("/missing", follow_redirects=False)
        assert response.status_code == 404

    def test_unknown_api_path_is_not_a_redirect(self, client: TestClient):
        response = client.get("/api/unknown", follow_redirects=False)
        assert response.status_code == 404

    def test_health(self, client: TestClient):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
