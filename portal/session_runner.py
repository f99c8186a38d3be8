from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID

import redis

from portal.api.models import SessionState, SessionStatus
from portal.artifacts import CertificateGenerator, CertificateSpec
from portal.config import FlowSettings
from portal.core.errors import SequenceAborted
from portal.core.events import SessionEvent
from portal.infra.redis_client import RedisFactory, close_quietly, redis_factory
from portal.ledger import RewardLedger
from portal.orchestrator import StageOrchestrator
from portal.session_store import save_session
from portal.stages import Stage, build_default_stages
from portal.streams import publish_event
from portal.websocket_hub import hub

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionRunner:
    """A live session: the orchestrator task plus the stage it is waiting on.

    The runner owns its Redis client; it is closed once the task is done.
    """

    r: redis.Redis
    state: SessionState
    stages: list[Stage]
    orchestrator: StageOrchestrator | None = None
    task: asyncio.Task[SessionState] | None = None
    current_stage: Stage | None = None
    on_finished: Callable[["SessionRunner"], None] | None = None
    _changed: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def session_id(self) -> UUID:
        return self.state.session_id

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    async def on_event(self, event: SessionEvent, state: SessionState) -> None:
        if event.type == "STAGE_STARTED":
            self.current_stage = next((s for s in self.stages if s.name == event.stage), None)
        elif event.type in {"SEQUENCE_COMPLETED", "SEQUENCE_ABORTED"}:
            self.current_stage = None

        save_session(r=self.r, state=state)
        publish_event(r=self.r, event=event)
        await hub.publish_update(state, event=event.type)
        self._changed.set()

    async def wait_until_started(self, *, timeout: float) -> None:
        async def _wait() -> None:
            while self.current_stage is None and not self.done:
                self._changed.clear()
                await self._changed.wait()

        await asyncio.wait_for(_wait(), timeout)

    async def wait_until_past(self, stage: Stage, *, timeout: float) -> None:
        """Wait until the orchestrator moved on from `stage` (or the session ended).

        Raises TimeoutError when that takes longer than `timeout` seconds.
        """

        async def _wait() -> None:
            while self.current_stage is stage and not self.done:
                self._changed.clear()
                await self._changed.wait()

        await asyncio.wait_for(_wait(), timeout)

    def _on_done(self, task: asyncio.Task[SessionState]) -> None:
        self.current_stage = None
        self._changed.set()
        try:
            if task.cancelled():
                self._record_cancelled()
                return
            exc = task.exception()
            if isinstance(exc, SequenceAborted):
                # Already recorded on the session state by the orchestrator.
                logger.warning("session %s ended with failure: %s", self.session_id, exc)
            elif exc is not None:
                logger.error("session %s crashed", self.session_id, exc_info=exc)
        finally:
            close_quietly(self.r)
            if self.on_finished is not None:
                self.on_finished(self)

    def _record_cancelled(self) -> None:
        logger.info("session %s cancelled", self.session_id)
        if self.state.status != SessionStatus.running:
            return
        self.state.status = SessionStatus.aborted
        self.state.current_stage = None
        self.state.error = "Session cancelled on shutdown"
        try:
            save_session(r=self.r, state=self.state)
        except redis.RedisError as e:
            logger.warning("session %s: could not persist cancellation: %s", self.session_id, e)


class SessionRegistry:
    """In-process registry of live sessions (one event loop per API process).

    A runner is dropped as soon as its task finishes; the persisted
    `SessionState` stays readable through `portal.session_store`.
    """

    def __init__(self) -> None:
        self._runners: dict[UUID, SessionRunner] = {}

    def __len__(self) -> int:
        return len(self._runners)

    def get(self, session_id: UUID) -> SessionRunner | None:
        return self._runners.get(session_id)

    def _forget(self, runner: SessionRunner) -> None:
        if self._runners.get(runner.session_id) is runner:
            del self._runners[runner.session_id]

    async def start(
        self,
        *,
        settings: FlowSettings,
        new_redis: RedisFactory | None = None,
        recipient: str | None = None,
        stages: list[Stage] | None = None,
    ) -> SessionRunner:
        r = (new_redis or redis_factory(settings))()
        ledger = RewardLedger(r=r)
        start = ledger.total()
        state = SessionState(ledger_start=start, ledger_total=start)

        seed = random.SystemRandom().randint(1, 2**31 - 1)
        runner = SessionRunner(
            r=r,
            state=state,
            stages=stages if stages is not None else build_default_stages(settings=settings, rng=random.Random(seed)),
            on_finished=self._forget,
        )
        artifacts = CertificateGenerator(
            r=r,
            spec=CertificateSpec(
                recipient=recipient or settings.recipient,
                emblem_path=Path(settings.emblem_path) if settings.emblem_path else None,
                seed=seed,
            ),
        )
        runner.orchestrator = StageOrchestrator(ledger=ledger, artifacts=artifacts, listener=runner.on_event)

        save_session(r=r, state=state)
        self._runners[state.session_id] = runner

        runner.task = asyncio.create_task(runner.orchestrator.run_sequence(runner.stages, state=state))
        runner.task.add_done_callback(runner._on_done)
        await runner.wait_until_started(timeout=settings.advance_timeout_s)
        logger.info("session %s started with %d stage(s)", state.session_id, len(runner.stages))
        return runner

    async def cancel_all(self) -> None:
        tasks = [r.task for r in list(self._runners.values()) if r.task is not None and not r.task.done()]
        for t in tasks:
            t.cancel()
        # Each runner records the cancellation and leaves the registry from its done callback.
        await asyncio.gather(*tasks, return_exceptions=True)
        self._runners.clear()


sessions = SessionRegistry()
