"""
Shared fixtures.

Every test gets its own in-process Redis server, so keys never leak
between tests.
"""

import fakeredis
import pytest
import pytest_asyncio

from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.store import CacheStore
from movie_api.core.config import Config
from movie_api.models.domain import MovieCreate
from movie_api.repositories.memory import InMemoryRepositories


class FakeClock:
    """Manually advanced wall clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def make_redis(fake_server):
    """Factory for clients of the test's Redis server (usable from sync tests)."""
    def _make():
        return fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True)
    return _make


@pytest_asyncio.fixture
async def redis(make_redis):
    client = make_redis()
    yield client
    await client.aclose()


@pytest.fixture
def store(redis):
    return CacheStore(redis)


@pytest.fixture
def coordinator(store):
    return InvalidationCoordinator(store)


@pytest.fixture
def repos():
    return InMemoryRepositories()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_movie(repos):
    async def _make(title: str = "The Matrix", **fields):
        return await repos.movies.create(MovieCreate(title=title, **fields))
    return _make


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML config and return a Config loaded from it."""
    def _write(text: str) -> Config:
        path = tmp_path / "config.yaml"
        path.write_text(text)
        return Config(config_path=str(path), env="test")
    return _write
