"""Redis cache of voters known to have voted.

The cache is an optional fast path in front of the vote ledger. A voter is
only added after a committed admission or an observed conflict, and votes are
never deleted, so a cache hit is always correct. Misses and Redis failures
fall through to the ledger.
"""
import logging

import redis.asyncio as redis

from ..shared.models import get_redis_key, mask_identity

logger = logging.getLogger(__name__)


class VotedCache:
    """Set of identities with a committed vote."""

    def __init__(self, client: redis.Redis):
        self.client = client
        self.key = get_redis_key('voted_voters')

    @classmethod
    def from_url(cls, url: str) -> "VotedCache":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    async def initialize(self):
        """Verify the Redis connection."""
        try:
            await self.client.ping()
            logger.info("Redis connection established")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def is_marked(self, identity: str) -> bool:
        """
        Check whether the identity is known to have voted.

        Returns:
            True on a cache hit; False on a miss or when Redis is unavailable
        """
        try:
            return bool(await self.client.sismember(self.key, identity))
        except redis.RedisError as e:
            logger.warning(f"Redis error checking voted cache: {e}")
            return False

    async def mark(self, identity: str) -> None:
        """Record that the identity has a committed vote."""
        try:
            await self.client.sadd(self.key, identity)
            logger.debug(f"Voter {mask_identity(identity)} marked as voted")
        except redis.RedisError as e:
            logger.warning(f"Redis error marking voter as voted: {e}")

    async def check_health(self) -> bool:
        try:
            await self.client.ping()
            return True
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self):
        """Close the Redis connection pool."""
        try:
            await self.client.aclose()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
