"""
Redis connection for leader election, with startup retry.
"""
from typing import Optional

import redis.asyncio as redis

from dbaas_operator.config.logging import get_logger
from dbaas_operator.config.settings import Settings
from dbaas_operator.utils.retry import startup_retry

logger = get_logger(__name__)


class RedisConnection:
    """Redis connection manager with retry logic."""

    client: Optional[redis.Redis] = None

    @classmethod
    @startup_retry(max_attempts=10, initial_delay=2.0, max_delay=30.0, retry_on=(redis.ConnectionError, redis.TimeoutError))
    async def connect(cls, settings: Settings) -> redis.Redis:
        """
        Connect to Redis, retrying with exponential backoff (2s doubling up to 30s).

        Returns:
            Connected Redis client
        """
        logger.info(
            "connecting_to_redis",
            url=str(settings.redis_url).split("@")[-1],  # Log without credentials
        )

        client = redis.Redis.from_url(
            str(settings.redis_url),
            max_connections=settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except (redis.ConnectionError, redis.TimeoutError):
            await client.aclose()
            raise

        cls.client = client
        logger.info("redis_connected")
        return client

    @classmethod
    async def close(cls) -> None:
        """Close Redis connection."""
        if cls.client:
            logger.info("closing_redis_connection")
            await cls.client.aclose()
            cls.client = None
            logger.info("redis_connection_closed")
