from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

import redis

from portal.config import FlowSettings

logger = logging.getLogger(__name__)

RedisFactory = Callable[[], redis.Redis]


def create_redis(url: str) -> redis.Redis:
    # Ledger counts, stream fields and session JSON are all handled as str.
    return redis.Redis.from_url(url, decode_responses=True)


def redis_factory(settings: FlowSettings) -> RedisFactory:
    """Factory for clients owned by something that outlives a request (a session runner)."""

    return partial(create_redis, settings.redis_url)


def close_quietly(client: redis.Redis) -> None:
    try:
        client.close()
    except Exception as e:
        # Some redis client versions don't require explicit close.
        logger.debug("redis close failed: %s", e)
