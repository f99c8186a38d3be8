from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest

from portal.config import FlowSettings
from portal.ledger import RewardLedger


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def ledger(r: fakeredis.FakeRedis) -> RewardLedger:
    return RewardLedger(r=r)


@pytest.fixture()
def fast_settings() -> FlowSettings:
    """Settings that keep API-driven sessions hermetic and quick."""

    return FlowSettings(
        tap_duration_s=30.0,
        tap_target_count=6,
        tap_tick_interval_s=1.0,
        tap_autostart=False,
        duel_complete_on_terminal=False,
        recipient="Tester",
        emblem_path="",
        advance_timeout_s=5.0,
    )


@pytest.fixture()
def client_and_redis(fast_settings: FlowSettings):
    """Shared fixture for tests that need both a FastAPI TestClient and fakeredis."""

    from fastapi.testclient import TestClient

    from portal.api.deps import get_redis, get_redis_factory, get_settings
    from portal.main import app

    # Session runners get their own clients on the same in-memory server.
    server = fakeredis.FakeServer()
    r = fakeredis.FakeRedis(server=server, decode_responses=True)

    def _new_redis() -> fakeredis.FakeRedis:
        return fakeredis.FakeRedis(server=server, decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    app.dependency_overrides[get_settings] = lambda: fast_settings
    app.dependency_overrides[get_redis_factory] = lambda: _new_redis
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
