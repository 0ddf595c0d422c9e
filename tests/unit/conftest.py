"""Pytest fixtures for unit tests.

Every fixture builds fresh components over a new MemoryStorage, so tests do
not share voters or votes. bcrypt runs at its minimum cost to keep the suite
fast.
"""

from typing import Dict, Generator, List

import pytest
import redis
from fastapi.testclient import TestClient

from evs.shared.errors import StorageFault
from evs.voting_api.config import Settings
from evs.voting_api.main import create_app
from evs.voting_api.memory_storage import MemoryStorage
from evs.voting_api.service import VotingCore, build_core


@pytest.fixture
def test_settings() -> Settings:
    """Settings for in-process tests."""
    return Settings(
        STORAGE_BACKEND="memory",
        BCRYPT_ROUNDS=4,
        RATE_LIMIT_ENABLED=False,
        REDIS_ENABLED=False,
        CANDIDATES=[],
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def core(test_settings: Settings, storage: MemoryStorage) -> VotingCore:
    return build_core(test_settings, storage)


@pytest.fixture
def client(test_settings: Settings, storage: MemoryStorage) -> Generator[TestClient, None, None]:
    """HTTP client over the app, with the lifespan running."""
    app = create_app(test_settings, storage=storage)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api_prefix(test_settings: Settings) -> str:
    return test_settings.api_prefix


@pytest.fixture
def sample_voters() -> List[Dict[str, str]]:
    """Voter credentials for testing. Identities are deliberately not all numeric."""
    return [
        {"nationalId": "19850412-1234", "password": "correct horse"},
        {"nationalId": "007", "password": "license to vote"},
        {"nationalId": "X-99-ABC", "password": "p@ssw0rd!"},
        {"nationalId": "0012345678", "password": "another secret"},
    ]


@pytest.fixture
def sample_voter(sample_voters) -> Dict[str, str]:
    return sample_voters[0]


class FakeRedis:
    """Async stand-in for redis.asyncio.Redis covering the calls VotedCache makes."""

    def __init__(self, fail: bool = False):
        self.sets: Dict[str, set] = {}
        self.fail = fail
        self.closed = False

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("redis unavailable")

    async def ping(self):
        self._check()
        return True

    async def sismember(self, key, value):
        self._check()
        return int(value in self.sets.get(key, set()))

    async def sadd(self, key, *values):
        self._check()
        members = self.sets.setdefault(key, set())
        before = len(members)
        members.update(values)
        return len(members) - before

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def failing_redis() -> FakeRedis:
    return FakeRedis(fail=True)


class FaultyStorage(MemoryStorage):
    """MemoryStorage whose selected operations fail like an unreachable database."""

    def __init__(self, failing: set):
        super().__init__()
        self.failing = set(failing)

    def _maybe_fail(self, operation: str):
        if operation in self.failing:
            raise StorageFault(operation=operation)

    async def voter_exists(self, identity):
        self._maybe_fail("voter_exists")
        return await super().voter_exists(identity)

    async def insert_voter(self, identity, secret_hash):
        self._maybe_fail("insert_voter")
        return await super().insert_voter(identity, secret_hash)

    async def get_secret_hash(self, identity):
        self._maybe_fail("get_secret_hash")
        return await super().get_secret_hash(identity)

    async def insert_vote_if_absent(self, identity, candidate):
        self._maybe_fail("insert_vote")
        return await super().insert_vote_if_absent(identity, candidate)

    async def has_voted(self, identity):
        self._maybe_fail("has_voted")
        return await super().has_voted(identity)

    async def count_votes_by_candidate(self):
        self._maybe_fail("count_votes")
        return await super().count_votes_by_candidate()

    async def check_health(self):
        return "health_check" not in self.failing


@pytest.fixture
def faulty_storage_factory():
    """Returns a function building a FaultyStorage failing on the given operations."""
    def _build(*operations: str) -> FaultyStorage:
        return FaultyStorage(set(operations))

    return _build
