from __future__ import annotations

import asyncio

import fakeredis
import pytest

from portal.api.models import SessionStatus
from portal.config import FlowSettings
from portal.ledger import RewardLedger
from portal.session_runner import SessionRegistry
from portal.session_store import get_session
from portal.stages import BranchingChoiceStage
from portal.stages.missions import ChoiceOption, ChoicePoint


class _TrackedRedis(fakeredis.FakeRedis):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.closed = False

    def close(self) -> None:
        self.closed = True
        super().close()


class _Clients:
    """Hands out clients on one in-memory server and remembers them."""

    def __init__(self) -> None:
        self.server = fakeredis.FakeServer()
        self.made: list[_TrackedRedis] = []

    def __call__(self) -> _TrackedRedis:
        client = _TrackedRedis(server=self.server, decode_responses=True)
        self.made.append(client)
        return client

    def reader(self) -> fakeredis.FakeRedis:
        return fakeredis.FakeRedis(server=self.server, decode_responses=True)


def _one_question() -> BranchingChoiceStage:
    return BranchingChoiceStage(name="only", points=[ChoicePoint("Only", "pick", (ChoiceOption("ok", 2),))])


@pytest.mark.asyncio
async def test_finished_session_leaves_the_registry(fast_settings: FlowSettings) -> None:
    clients = _Clients()
    registry = SessionRegistry()
    runner = await registry.start(settings=fast_settings, new_redis=clients, stages=[_one_question()])

    assert registry.get(runner.session_id) is runner
    assert runner.current_stage is not None
    runner.current_stage.choose(0)

    state = await asyncio.wait_for(runner.task, 5)
    await asyncio.sleep(0)

    assert state.status == SessionStatus.completed
    assert registry.get(runner.session_id) is None
    assert len(registry) == 0

    stored = get_session(r=clients.reader(), session_id=runner.session_id)
    assert stored is not None
    assert stored.status == SessionStatus.completed
    assert RewardLedger(r=clients.reader()).total() == 2


@pytest.mark.asyncio
async def test_runner_owns_and_closes_its_client(fast_settings: FlowSettings) -> None:
    clients = _Clients()
    registry = SessionRegistry()
    runner = await registry.start(settings=fast_settings, new_redis=clients, stages=[_one_question()])

    assert len(clients.made) == 1
    assert runner.r is clients.made[0]
    assert clients.made[0].closed is False

    runner.current_stage.skip()
    await asyncio.wait_for(runner.task, 5)
    await asyncio.sleep(0)

    assert clients.made[0].closed is True


@pytest.mark.asyncio
async def test_cancel_all_records_aborted_sessions(fast_settings: FlowSettings) -> None:
    clients = _Clients()
    registry = SessionRegistry()
    runner = await registry.start(settings=fast_settings, new_redis=clients, stages=[_one_question()])

    await registry.cancel_all()

    assert len(registry) == 0
    assert runner.state.status == SessionStatus.aborted
    stored = get_session(r=clients.reader(), session_id=runner.session_id)
    assert stored is not None
    assert stored.status == SessionStatus.aborted
    assert stored.error == "Session cancelled on shutdown"
    assert clients.made[0].closed is True
