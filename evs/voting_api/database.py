"""PostgreSQL storage for voter credentials and votes."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import asyncpg

from ..shared.errors import StorageFault, UnknownVoterError
from ..shared.models import TallyEntry, Vote
from .config import Settings

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        national_id   TEXT PRIMARY KEY,
        password_hash TEXT NOT NULL,
        created_at    TIMESTAMPTZ NOT NULL DEFAULT now()
    );

    CREATE TABLE IF NOT EXISTS votes (
        user_id        TEXT PRIMARY KEY REFERENCES users (national_id),
        candidate_name TEXT NOT NULL,
        cast_at        TIMESTAMPTZ NOT NULL DEFAULT now()
    );
"""

# Driver and transport failures that are reported as StorageFault
STORAGE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class PostgresStorage:
    """Async PostgreSQL storage backed by a bounded asyncpg pool.

    Uniqueness of voters and votes is enforced by primary keys; every write is
    a single statement so it either commits completely or not at all.
    """

    name = "postgresql"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Initialize database connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.settings.postgres_dsn,
                min_size=self.settings.POSTGRES_POOL_MIN_SIZE,
                max_size=self.settings.POSTGRES_POOL_MAX_SIZE,
                command_timeout=self.settings.POSTGRES_COMMAND_TIMEOUT,
                ssl=self.settings.POSTGRES_SSL,
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                logger.info("PostgreSQL connection verified")

                if self.settings.POSTGRES_CREATE_SCHEMA:
                    await conn.execute(SCHEMA_SQL)
                    logger.info("PostgreSQL schema ensured")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            await self.close()
            raise

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a pooled connection for one operation.

        The connection goes back to the pool on success, error, timeout and
        cancellation. Driver failures are logged and raised as StorageFault.
        """
        if self.pool is None:
            logger.error(f"PostgreSQL pool not initialized during {operation}")
            raise StorageFault(operation=operation)

        try:
            async with self.pool.acquire(
                timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT
            ) as conn:
                yield conn
        except STORAGE_ERRORS as e:
            logger.error(f"PostgreSQL error during {operation}: {e!r}")
            raise StorageFault(operation=operation) from e

    async def voter_exists(self, identity: str) -> bool:
        async with self._connection("voter_exists") as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM users WHERE national_id = $1", identity
            )
            return found is not None

    async def insert_voter(self, identity: str, secret_hash: str) -> bool:
        """
        Insert a voter record.

        Args:
            identity: Voter identity (primary key)
            secret_hash: bcrypt hash of the secret

        Returns:
            bool: True if inserted, False if the identity was already taken
        """
        async with self._connection("insert_voter") as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO users (national_id, password_hash)
                VALUES ($1, $2)
                ON CONFLICT (national_id) DO NOTHING
                RETURNING national_id
                """,
                identity, secret_hash
            )
            return row is not None

    async def get_secret_hash(self, identity: str) -> Optional[str]:
        async with self._connection("get_secret_hash") as conn:
            return await conn.fetchval(
                "SELECT password_hash FROM users WHERE national_id = $1", identity
            )

    async def insert_vote_if_absent(self, identity: str, candidate: str) -> Optional[Vote]:
        """
        Atomically admit a vote unless one already exists for the voter.

        Args:
            identity: Voter identity
            candidate: Candidate label

        Returns:
            The admitted Vote, or None if the voter already has one

        Raises:
            UnknownVoterError: No voter is registered under ``identity``
            StorageFault: The statement could not be executed
        """
        async with self._connection("insert_vote") as conn:
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO votes (user_id, candidate_name, cast_at)
                    VALUES ($1, $2, now())
                    ON CONFLICT (user_id) DO NOTHING
                    RETURNING user_id, candidate_name, cast_at
                    """,
                    identity, candidate
                )
            except asyncpg.ForeignKeyViolationError:
                raise UnknownVoterError()

            if row is None:
                return None

            return Vote(
                voter_id=row["user_id"],
                candidate=row["candidate_name"],
                cast_at=row["cast_at"]
            )

    async def has_voted(self, identity: str) -> bool:
        async with self._connection("has_voted") as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM votes WHERE user_id = $1", identity
            )
            return found is not None

    async def count_votes_by_candidate(self) -> List[TallyEntry]:
        """
        Count votes per candidate.

        Returns:
            Entries ordered by votes descending, then label in code point order
        """
        async with self._connection("count_votes") as conn:
            rows = await conn.fetch(
                """
                SELECT candidate_name, COUNT(*) AS votes
                FROM votes
                GROUP BY candidate_name
                ORDER BY votes DESC, candidate_name COLLATE "C" ASC
                """
            )
            return [
                TallyEntry(candidate=row["candidate_name"], votes=row["votes"])
                for row in rows
            ]

    async def check_health(self) -> bool:
        """
        Check PostgreSQL connection health.

        Returns:
            bool: True if healthy, False otherwise
        """
        try:
            async with self._connection("health_check") as conn:
                await conn.fetchval("SELECT 1")
                return True
        except StorageFault:
            return False

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")
        finally:
            self.pool = None
