import logging
from typing import Optional

import redis
from redis.connection import ConnectionPool

from phone_auth.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client backing the rate limiter"""

    _client: Optional[redis.Redis] = None
    _pool: Optional[ConnectionPool] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """Get or create Redis client instance with connection pooling"""
        if cls._client is None:
            try:
                cls._pool = ConnectionPool(
                    host=settings.REDIS_HOST,
                    port=settings.REDIS_PORT,
                    password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                    db=settings.REDIS_DB,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                    retry_on_timeout=True,
                    max_connections=20,
                    health_check_interval=15,
                )

                cls._client = redis.Redis(connection_pool=cls._pool)

                cls._client.ping()
                logger.info("Redis connected (%s:%s)", settings.REDIS_HOST, settings.REDIS_PORT)
            except Exception as e:
                logger.error("Redis connection failed: %s", e)
                cls._client = None
                cls._pool = None
                raise

        return cls._client

    @classmethod
    def close(cls):
        """Close Redis connection"""
        if cls._client:
            cls._client.close()
            cls._client = None
        if cls._pool:
            cls._pool.disconnect()
            cls._pool = None
        logger.info("Redis connection closed")


class CacheKeys:
    """Redis key patterns; phone_hash is never the raw number"""

    @staticmethod
    def otp_cooldown(purpose: str, phone_hash: str) -> str:
        """Resend cooldown key"""
        return f"cooldown:{purpose}:{phone_hash}"

    @staticmethod
    def otp_throttle(purpose: str, phone_hash: str) -> str:
        """Request window key"""
        return f"throttle:{purpose}:{phone_hash}"


class RedisRateLimitStore:
    """
    Fixed-window counters in Redis.

    The window starts on the first hit (SET NX EX) and is never extended by
    later hits; SET and INCR travel in one MULTI pipeline.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = "rate_limit"):
        self.client = client
        self.prefix = prefix

    def _redis(self) -> redis.Redis:
        return self.client if self.client is not None else RedisClient.get_client()

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def attempts(self, key: str) -> int:
        try:
            value = self._redis().get(self._key(key))
        except redis.RedisError as e:
            logger.warning("Rate limit store unavailable for %s: %s", key, e)
            return 0
        return int(value) if value is not None else 0

    def hit(self, key: str, decay_seconds: int) -> int:
        try:
            pipe = self._redis().pipeline()
            pipe.set(self._key(key), 0, ex=decay_seconds, nx=True)
            pipe.incr(self._key(key))
            results = pipe.execute()
            return int(results[1])
        except redis.RedisError as e:
            # Fail open while Redis is unreachable
            logger.warning("Rate limit store unavailable for %s: %s", key, e)
            return 0

    def available_in(self, key: str) -> int:
        try:
            return max(0, self._redis().ttl(self._key(key)))
        except redis.RedisError as e:
            logger.warning("Rate limit TTL unavailable for %s: %s", key, e)
            return 0

    def clear(self, key: str) -> None:
        try:
            self._redis().delete(self._key(key))
        except redis.RedisError as e:
            logger.warning("Rate limit clear failed for %s: %s", key, e)
