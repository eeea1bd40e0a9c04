"""
Redis client for verification codes, the token blacklist and the IP whitelist.
"""
import logging
from typing import Optional, Set

import redis

from .config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Synchronous Redis client wrapper with lazy connection"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis: Optional[redis.Redis] = None
        self._pool: Optional[redis.ConnectionPool] = None

    def connect(self) -> None:
        if self.redis is None:
            # Format: redis://:password@host:port/db
            self._pool = redis.ConnectionPool.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
            self.redis = redis.Redis(connection_pool=self._pool)
            logger.info("[Redis] connection pool created")

    def disconnect(self) -> None:
        if self.redis is not None:
            self.redis.close()
            self.redis = None
        if self._pool is not None:
            self._pool.disconnect()
            self._pool = None

    @property
    def conn(self) -> redis.Redis:
        if self.redis is None:
            self.connect()
        return self.redis

    def get(self, key: str) -> Optional[str]:
        return self.conn.get(key)

    def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """
        Set a value.

        Args:
            key: Key
            value: Value
            expire: Time to live in seconds (optional)
        """
        return bool(self.conn.set(key, value, ex=expire))

    def delete(self, key: str) -> int:
        return self.conn.delete(key)

    def exists(self, key: str) -> bool:
        return self.conn.exists(key) > 0

    def sadd(self, key: str, member: str) -> int:
        return self.conn.sadd(key, member)

    def srem(self, key: str, member: str) -> int:
        return self.conn.srem(key, member)

    def sismember(self, key: str, member: str) -> bool:
        return bool(self.conn.sismember(key, member))

    def smembers(self, key: str) -> Set[str]:
        return set(self.conn.smembers(key))

    def scard(self, key: str) -> int:
        return self.conn.scard(key)

    def ping(self) -> bool:
        try:
            return bool(self.conn.ping())
        except redis.RedisError as e:
            logger.error("[Redis] ping failed: %s", e)
            return False


# Global client instance
redis_client = RedisClient()


def get_redis_client() -> RedisClient:
    """Return the shared Redis client"""
    return redis_client


def close_redis() -> None:
    redis_client.disconnect()
