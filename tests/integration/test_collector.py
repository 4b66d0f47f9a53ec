"""
Integration tests for the collector jobs.

Jobs run against a real registry, archive files and SQLite store; the search
API and Redis are replaced by fakes.
"""

import json
from datetime import date, timedelta

import httpx
import orjson
import pytest

from apps.collector.client import SearchClient
from apps.collector.job import (
    adopt_unsealed_archives,
    collect_location,
    run_collection_cycle,
    seal_stale_archives,
)
from apps.collector.publisher import publish_sealed_event
from apps.collector.scheduler import CollectorScheduler
from geoarchive.archive_file import ArchiveFile
from geoarchive.errors import NotFoundError
from geoarchive.registry import Registry
from geoarchive.types import ArchiveKey, ArchiveState
from tests.helpers import make_response
from utils.mq import RedisPublisher
from utils.schemas import LocationRecord

TODAY = date(2021, 6, 2)
YESTERDAY = TODAY - timedelta(days=1)


@pytest.fixture
def seeded_store(store, london):
    store.add_location(london)
    store.add_location(LocationRecord(name="Paris", latitude=48.8566, longitude=2.3522))
    store.add_poll_target("geo-app", "London")
    store.add_poll_target("geo-app", "Paris")
    store.add_poll_target("other-app", "London")
    return store


@pytest.fixture
def publisher(fake_redis):
    return RedisPublisher(redis_url="redis://localhost:6379/0", client=fake_redis)


class TestCollectLocation:
    def test_appends_page_and_advances_cursor(self, registry, seeded_store, search_client):
        search_client.queue(
            "London",
            make_response([{"id": 11}, {"id": 12}], max_id=12, count=100),
            make_response([{"id": 13}], max_id=13, count=100),
        )

        collect_location("London", registry=registry, store=seeded_store, client=search_client, today=TODAY)
        metadata = collect_location("London", registry=registry, store=seeded_store, client=search_client, today=TODAY)

        assert metadata.max_id == 13
        assert search_client.calls == [("London", None), ("London", 12)]
        assert seeded_store.find_location("London").since_id == 13

        archive = registry.require(ArchiveKey(day=TODAY, location="London"))
        archive.seal()
        assert archive.path.read_bytes() == b'[{"id":11},{"id":12},{"id":13}]'

    def test_cursor_never_moves_back(self, registry, seeded_store, search_client, london):
        seeded_store.update_location(london.model_copy(update={"since_id": 50}))
        search_client.queue("London", make_response([], max_id=40, count=100))

        collect_location("London", registry=registry, store=seeded_store, client=search_client, today=TODAY)

        assert seeded_store.find_location("London").since_id == 50

    def test_missing_cursor_keeps_stored_value(self, registry, seeded_store, search_client, london):
        seeded_store.update_location(london.model_copy(update={"since_id": 50}))
        search_client.queue("London", '{"statuses":[{"id":51}]}')

        collect_location("London", registry=registry, store=seeded_store, client=search_client, today=TODAY)

        assert seeded_store.find_location("London").since_id == 50

    def test_unknown_location(self, registry, seeded_store, search_client):
        with pytest.raises(NotFoundError):
            collect_location("Atlantis", registry=registry, store=seeded_store, client=search_client)

        assert len(registry) == 0


class TestCollectionCycle:
    def test_collects_each_location_once(self, registry, seeded_store, search_client):
        search_client.queue("London", make_response([{"id": 1}], max_id=1, count=100))
        search_client.queue("Paris", make_response([{"id": 2}], max_id=2, count=100))

        result = run_collection_cycle(
            registry=registry, store=seeded_store, client=search_client, today=TODAY, max_workers=2
        )

        assert sorted(result.collected) == ["London", "Paris"]
        assert result.failed == {}
        assert sorted(name for name, _ in search_client.calls) == ["London", "Paris"]
        assert sorted(p.name for p in registry.all_paths()) == ["2021-06-02_London", "2021-06-02_Paris"]

    def test_failure_does_not_stop_other_locations(self, registry, seeded_store, search_client):
        search_client.errors["Paris"] = httpx.ConnectError("connection refused")
        search_client.queue("London", make_response([{"id": 1}], max_id=1, count=100))

        result = run_collection_cycle(registry=registry, store=seeded_store, client=search_client, today=TODAY)

        assert list(result.collected) == ["London"]
        assert "connection refused" in result.failed["Paris"]
        assert seeded_store.find_location("London").since_id == 1
        assert seeded_store.find_location("Paris").since_id is None

    def test_no_targets(self, registry, store, search_client):
        result = run_collection_cycle(registry=registry, store=store, client=search_client)

        assert result.collected == {}
        assert search_client.calls == []


class TestSealStaleArchives:
    def test_seals_previous_days_only(self, registry, publisher, fake_redis):
        old = registry.get_or_create(ArchiveKey(day=YESTERDAY, location="London"))
        old.append(make_response([{"id": 1}]))
        current = registry.get_or_create(ArchiveKey(day=TODAY, location="London"))
        current.append(make_response([{"id": 2}]))

        sealed = seal_stale_archives(registry=registry, publisher=publisher, today=TODAY)

        assert sealed == [old.path]
        assert json.loads(old.path.read_text(encoding="utf-8")) == [{"id": 1}]
        assert not registry.has(ArchiveKey(day=YESTERDAY, location="London"))
        assert registry.get(ArchiveKey(day=TODAY, location="London")) is current
        assert current.state is ArchiveState.APPENDING

        channel, message = fake_redis.published[0]
        event = orjson.loads(message)
        assert channel == "files.archive_sealed"
        assert event["type"] == "archive_sealed"
        assert event["key"] == "2021-06-01_London"
        assert event["path"] == str(old.path)

    def test_already_sealed_archive_is_released(self, registry):
        old = registry.get_or_create(ArchiveKey(day=YESTERDAY, location="London"))
        old.append(make_response([{"id": 1}]))
        old.seal()

        sealed = seal_stale_archives(registry=registry, today=TODAY)

        assert sealed == [old.path]
        assert old.path.read_bytes() == b'[{"id":1}]'
        assert len(registry) == 0

    def test_archive_without_file_stays_registered(self, registry):
        key = ArchiveKey(day=YESTERDAY, location="London")
        registry.get_or_create(key)

        assert seal_stale_archives(registry=registry, today=TODAY) == []
        assert registry.has(key)

    def test_seals_files_left_by_previous_process(self, archive_dir, publisher, fake_redis):
        path = archive_dir / "2021-06-01_London"
        ArchiveFile(path).append(make_response([{"id": 1}]))
        ArchiveFile(archive_dir / "2021-06-02_London").append(make_response([{"id": 2}]))
        restarted = Registry(archive_dir)

        sealed = seal_stale_archives(registry=restarted, publisher=publisher, today=TODAY)

        assert sealed == [path]
        assert path.read_bytes() == b'[{"id":1}]'
        assert (archive_dir / "2021-06-02_London").read_bytes() == b'{"id":2}'
        assert len(restarted) == 0
        assert orjson.loads(fake_redis.published[0][1])["key"] == "2021-06-01_London"

    def test_files_sealed_on_disk_are_not_republished(self, archive_dir, publisher, fake_redis):
        (archive_dir / "2021-06-01_London").write_bytes(b'[{"id":1}]')
        (archive_dir / "notes.txt").write_text("not an archive", encoding="utf-8")
        restarted = Registry(archive_dir)

        assert adopt_unsealed_archives(restarted, today=TODAY) == []
        assert seal_stale_archives(registry=restarted, publisher=publisher, today=TODAY) == []
        assert fake_redis.published == []
        assert len(restarted) == 0


class TestPublisher:
    def test_disabled_without_publisher(self, tmp_path):
        assert publish_sealed_event(tmp_path / "2021-06-01_London", "2021-06-01_London", None) is None

    def test_publishes_event(self, tmp_path, publisher, fake_redis):
        event = publish_sealed_event(tmp_path / "x", "2021-06-01_London", publisher, channel="custom")

        assert event is not None
        assert fake_redis.published[0][0] == "custom"

    def test_close(self, publisher, fake_redis):
        publisher.close()

        assert fake_redis.closed
        assert publisher.client is None


class TestSearchClient:
    def test_sends_geocoded_query(self, london):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=make_response([{"id": 1}], max_id=1, count=50))

        client = SearchClient(
            base_url="https://search.test/tweets.json",
            page_size=50,
            result_type="recent",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

        body = client.search(london, since_id=7)

        assert json.loads(body)["max_id"] == 1
        params = seen[0].url.params
        assert params["geocode"] == "51.5074,-0.1278,15km"
        assert params["count"] == "50"
        assert params["since_id"] == "7"

    def test_retries_server_errors(self, london):
        statuses = iter([503, 200])

        def handler(request):
            status = next(statuses)
            return httpx.Response(status, text=make_response([], max_id=1, count=100))

        client = SearchClient(
            base_url="https://search.test/tweets.json",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

        assert json.loads(client.search(london))["max_id"] == 1

    def test_client_errors_are_not_retried(self, london):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, text="{}")

        client = SearchClient(
            base_url="https://search.test/tweets.json",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            client.search(london)
        assert len(calls) == 1


class TestCollectorScheduler:
    def test_run_once_seals_then_collects(self, registry, seeded_store, search_client, monkeypatch):
        monkeypatch.setattr(CollectorScheduler, "setup_signal_handlers", lambda self: None)
        stale = registry.get_or_create(ArchiveKey(day=date.today() - timedelta(days=1), location="London"))
        stale.append(make_response([{"id": 1}]))
        search_client.queue("London", make_response([{"id": 2}], max_id=2, count=100))
        search_client.queue("Paris", make_response([], max_id=None, count=100))

        CollectorScheduler(registry, seeded_store, search_client, run_once=True).start()

        assert stale.state is ArchiveState.SEALED
        assert registry.has(ArchiveKey.for_day("London"))
        assert registry.has(ArchiveKey.for_day("Paris"))
