"""Pytest fixtures for integration tests.

These tests need a PostgreSQL server, and the API tests a running voting API.
Connection details come from the same environment variables the service
reads (POSTGRES_*, DATABASE_URL) plus API_BASE_URL. Tests skip when the
server they need is not reachable.
"""

import os
from typing import AsyncGenerator, Dict, List

import httpx
import psycopg2
import pytest
import pytest_asyncio
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from evs.voting_api.config import Settings
from evs.voting_api.database import SCHEMA_SQL, PostgresStorage
from evs.voting_api.service import VotingCore, build_core


@pytest.fixture(scope="session")
def pg_settings() -> Settings:
    """Settings pointing at the test database."""
    return Settings(
        STORAGE_BACKEND="postgres",
        POSTGRES_HOST=os.getenv("POSTGRES_HOST", "localhost"),
        POSTGRES_SSL=os.getenv("POSTGRES_SSL", "disable"),
        POSTGRES_POOL_MAX_SIZE=10,
        BCRYPT_ROUNDS=4,
        CANDIDATES=[],
    )


@pytest.fixture(scope="session")
def postgres_connection(pg_settings: Settings):
    """PostgreSQL connection for direct database operations.

    Yields a psycopg2 connection for test assertions and setup.
    """
    try:
        conn = psycopg2.connect(pg_settings.postgres_dsn, connect_timeout=3)
    except psycopg2.OperationalError:
        pytest.skip("PostgreSQL not available")

    conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
    with conn.cursor() as cursor:
        cursor.execute(SCHEMA_SQL)

    yield conn

    conn.close()


@pytest.fixture
def postgres_client(postgres_connection):
    """PostgreSQL cursor for executing queries.

    Yields a cursor from the session-scoped connection.
    """
    cursor = postgres_connection.cursor()
    yield cursor
    cursor.close()


@pytest.fixture
def clear_databases(postgres_client):
    """Remove all voters and votes so each test starts empty."""
    postgres_client.execute("TRUNCATE TABLE votes, users")
    yield


@pytest_asyncio.fixture
async def pg_storage(pg_settings: Settings, clear_databases) -> AsyncGenerator[PostgresStorage, None]:
    """PostgresStorage with an open pool over an empty database."""
    storage = PostgresStorage(pg_settings)
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.fixture
def pg_core(pg_settings: Settings, pg_storage: PostgresStorage) -> VotingCore:
    return build_core(pg_settings, pg_storage)


@pytest.fixture(scope="session")
def base_url() -> str:
    """Base URL for the voting API."""
    return os.getenv("API_BASE_URL", "http://localhost:3001")


@pytest.fixture(scope="session")
def api_prefix() -> str:
    return f"/api/{os.getenv('API_VERSION', 'v1')}"


@pytest_asyncio.fixture
async def api_client(base_url: str, api_prefix: str) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the running voting API.

    Skips the test when the API does not answer its health check.
    """
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        try:
            await client.get(f"{api_prefix}/health")
        except httpx.TransportError:
            pytest.skip(f"Voting API not reachable at {base_url}")
        yield client


@pytest.fixture
def unique_voters() -> List[Dict[str, str]]:
    """Voters whose identities do not collide across runs against a shared API."""
    run = os.urandom(4).hex()
    return [
        {"nationalId": f"it-{run}-{index:03d}", "password": f"secret-{index}"}
        for index in range(5)
    ]
