# backend/core/redis_config.py

"""
Redis connection management for server-backed cart storage.
"""

from typing import Optional
import logging

import redis
from redis import Redis

from core.config import settings

logger = logging.getLogger(__name__)


_redis_client: Optional[Redis] = None
_connection_pool: Optional[redis.ConnectionPool] = None


def get_redis_client(url: Optional[str] = None) -> Optional[Redis]:
    """
    Get or create the Redis client singleton.

    Returns None if Redis is not configured or not reachable.
    """
    global _redis_client, _connection_pool

    if _redis_client is not None:
        try:
            _redis_client.ping()
            return _redis_client
        except redis.RedisError:
            _redis_client = None
            _connection_pool = None

    url = url or settings.redis_url
    if not url:
        return None

    try:
        _connection_pool = redis.ConnectionPool.from_url(
            url,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
        _redis_client = Redis(connection_pool=_connection_pool)
        _redis_client.ping()

        logger.info("Redis connection established")
        return _redis_client

    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}")
        _redis_client = None
        _connection_pool = None
        return None


def close_redis_connection():
    """Close Redis connection and cleanup"""
    global _redis_client, _connection_pool

    if _redis_client:
        try:
            _redis_client.close()
        except redis.RedisError as e:
            logger.error(f"Error closing Redis client: {e}")
        finally:
            _redis_client = None

    if _connection_pool:
        try:
            _connection_pool.disconnect()
        except redis.RedisError as e:
            logger.error(f"Error disconnecting Redis pool: {e}")
        finally:
            _connection_pool = None
