"""Shared pytest fixtures for archive, store and collector tests."""

import pytest

from geoarchive.registry import Registry
from tests.helpers import FakeRedis, FakeSearchClient
from utils.db import LocationStore
from utils.schemas import LocationRecord


@pytest.fixture
def archive_dir(tmp_path):
    path = tmp_path / "archives"
    path.mkdir()
    return path


@pytest.fixture
def registry(archive_dir):
    reg = Registry(archive_dir)
    yield reg
    reg.clear()


@pytest.fixture
def store(tmp_path):
    return LocationStore(str(tmp_path / "db" / "search_geo.db"))


@pytest.fixture
def london():
    return LocationRecord(name="London", latitude=51.5074, longitude=-0.1278, radius_km=15)


@pytest.fixture
def search_client():
    return FakeSearchClient()


@pytest.fixture
def fake_redis():
    return FakeRedis()
