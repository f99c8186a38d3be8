from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import Depends

from portal.config import FlowSettings
from portal.infra.redis_client import RedisFactory, close_quietly, create_redis, redis_factory
from portal.ledger import RewardLedger
from portal.session_runner import SessionRegistry, sessions


def get_settings() -> FlowSettings:
    return FlowSettings.from_env()


def get_redis(settings: FlowSettings = Depends(get_settings)) -> Generator[redis.Redis, None, None]:
    client = create_redis(settings.redis_url)
    try:
        yield client
    finally:
        close_quietly(client)


def get_redis_factory(settings: FlowSettings = Depends(get_settings)) -> RedisFactory:
    """Clients for session runners; they outlive the request that started them."""

    return redis_factory(settings)


def get_registry() -> SessionRegistry:
    return sessions


def ledger_for(r: redis.Redis) -> RewardLedger:
    return RewardLedger(r=r)
