"""Redis configuration for the session store."""
import os
from typing import Optional

import redis

from app.utils.logger import get_logger

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get the shared Redis client, connecting on first use."""
    global _redis_client
    if _redis_client is None:
        client = redis.Redis(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD") or None,
            db=int(os.getenv("REDIS_DB", "0")),
            decode_responses=True,
            socket_connect_timeout=5,
        )
        try:
            client.ping()
            logger.info("Redis connection established", host=client.connection_pool.connection_kwargs.get("host"))
        except redis.ConnectionError as e:
            logger.error("Failed to connect to Redis", error=str(e))
            raise
        _redis_client = client
    return _redis_client


def close_redis_client() -> None:
    """Close the shared client (application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
