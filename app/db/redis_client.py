"""
Centralized Redis client manager with connection pooling.
Shared by the gateway configuration cache and any other key-value consumers.
"""
import logging

import redis
from redis.connection import ConnectionPool

from app.core.config import settings
from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None
_client: redis.Redis | None = None


def get_redis_pool() -> ConnectionPool:
    """Get or create a shared Redis connection pool."""
    global _pool
    if _pool is not None:
        return _pool

    if not settings.REDIS_URL:
        raise ConfigurationError("REDIS_URL")

    _pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=5,
        socket_timeout=5,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
        decode_responses=True,  # Return strings instead of bytes
    )
    logger.info("Redis connection pool created (max_connections=5)")
    return _pool


def get_redis_client() -> redis.Redis:
    """Get or create a Redis client using the shared connection pool."""
    global _client
    if _client is not None:
        return _client

    _client = redis.Redis(connection_pool=get_redis_pool())
    try:
        _client.ping()
        logger.info("Redis client connected successfully")
    except Exception as e:
        logger.error("Redis connection failed: %s", e)
        _client = None
        raise
    return _client


def close_redis_pool():
    """Close the Redis connection pool. Called on app shutdown."""
    global _pool, _client
    if _client is not None:
        _client.close()
        _client = None
    if _pool is not None:
        _pool.disconnect()
        _pool = None
    logger.info("Redis pool closed")
