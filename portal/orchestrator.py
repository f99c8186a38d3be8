from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import NoReturn, Protocol
from uuid import UUID

from portal.api.models import SessionState, SessionStatus, StageRecord
from portal.core.errors import SequenceAborted
from portal.core.events import EventType, SessionEvent
from portal.ledger import RewardLedger
from portal.stages.base import Stage

logger = logging.getLogger(__name__)

EventListener = Callable[[SessionEvent, SessionState], Awaitable[None]]


class ArtifactGenerator(Protocol):
    async def generate(self, state: SessionState) -> str:  # pragma: no cover
        """Produce the final artifact and return the key it is stored under."""
        ...


class StageOrchestrator:
    """Runs stages one after another and commits each reward as it lands.

    - stage n+1 starts only once stage n has resolved
    - each stage's points go to the ledger immediately (never rolled back)
    - a failing stage aborts the rest; the artifact generator is then not called
    - on success the final state is handed to the artifact generator exactly once
    - any failure, including one raised by the event listener, surfaces as a single SequenceAborted
    """

    def __init__(
        self,
        *,
        ledger: RewardLedger,
        artifacts: ArtifactGenerator | None = None,
        listener: EventListener | None = None,
    ) -> None:
        self._ledger = ledger
        self._artifacts = artifacts
        self._listener = listener
        self.current: Stage | None = None

    async def run_sequence(self, stages: Sequence[Stage], *, state: SessionState | None = None) -> SessionState:
        if state is None:
            start = self._ledger.total()
            state = SessionState(ledger_start=start, ledger_total=start)

        # Where a failure is attributed: the live stage, "artifact", or "sequence".
        where = "sequence"
        try:
            await self._emit(state, "SEQUENCE_STARTED", payload={"stages": ",".join(s.name for s in stages)})

            for stage in stages:
                where = stage.name
                self.current = stage
                state.current_stage = stage.name
                await self._emit(state, "STAGE_STARTED", stage=stage.name, payload={"kind": stage.kind})

                result = await stage.run()

                total = self._ledger.add(result.points)
                state.results.append(
                    StageRecord(
                        name=stage.name,
                        kind=stage.kind,
                        reward=result.reward,
                        skipped=result.skipped,
                        ledger_total=total,
                    )
                )
                state.ledger_total = total
                await self._emit(
                    state,
                    "STAGE_RESOLVED",
                    stage=stage.name,
                    payload={"reward": result.reward, "skipped": result.skipped, "ledger_total": total},
                )

            self.current = None
            state.current_stage = None

            if self._artifacts is not None:
                where = "artifact"
                await self._emit(state, "ARTIFACT_REQUESTED")
                state.artifact_key = await self._artifacts.generate(state)

            where = "sequence"
            state.status = SessionStatus.completed
            await self._emit(state, "SEQUENCE_COMPLETED", payload={"ledger_total": state.ledger_total})
        except asyncio.CancelledError:
            # Make sure the live stage's own timers die with the task.
            if self.current is not None:
                self.current.skip()
            raise
        except Exception as e:
            await self._abort(state, stage_name=where, cause=e)

        logger.info("session %s completed: earned %d coins", state.session_id, state.earned)
        return state

    async def _abort(self, state: SessionState, *, stage_name: str, cause: Exception) -> NoReturn:
        self.current = None
        state.current_stage = None
        state.status = SessionStatus.aborted
        err = SequenceAborted(stage=stage_name, completed=len(state.results), cause=cause)
        state.error = str(err)
        logger.error("session %s aborted: %s", state.session_id, err)
        try:
            await self._emit(state, "SEQUENCE_ABORTED", stage=stage_name, payload={"error": str(cause)})
        except Exception:
            logger.exception("session %s: SEQUENCE_ABORTED listener failed", state.session_id)
        raise err from cause

    async def _emit(
        self,
        state: SessionState,
        type: EventType,
        *,
        stage: str | None = None,
        payload: dict[str, object] | None = None,
    ) -> None:
        state.last_updated_at = datetime.now(tz=UTC)
        if self._listener is None:
            return
        event = SessionEvent.now(type=type, session_id=str(state.session_id), stage=stage, payload=payload)
        await self._listener(event, state)


async def run_sequence(
    stages: Sequence[Stage],
    *,
    ledger: RewardLedger,
    artifacts: ArtifactGenerator | None = None,
    session_id: UUID | None = None,
) -> SessionState:
    """Convenience wrapper for one-off runs (scripts, tests)."""

    start = ledger.total()
    state = SessionState(ledger_start=start, ledger_total=start)
    if session_id is not None:
        state.session_id = session_id
    return await StageOrchestrator(ledger=ledger, artifacts=artifacts).run_sequence(stages, state=state)
