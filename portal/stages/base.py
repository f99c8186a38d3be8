from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from portal.core.errors import StageFailed
from portal.fsm import StageLifecycle, StageStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StageResult:
    """What a stage hands to the orchestrator.

    - `reward`: coins earned, or None for the unit result (no reward).
    - `skipped`: the user left the stage early.
    """

    reward: int | None = None
    skipped: bool = False

    def __post_init__(self) -> None:
        if self.reward is not None and self.reward < 0:
            raise ValueError("reward must be >= 0")

    @property
    def points(self) -> int:
        return self.reward or 0

    @staticmethod
    def unit(*, skipped: bool = False) -> "StageResult":
        return StageResult(reward=None, skipped=skipped)

    @staticmethod
    def of(reward: int, *, skipped: bool = False) -> "StageResult":
        return StageResult(reward=reward, skipped=skipped)


class Stage(ABC):
    """One self-contained interactive unit of the flow.

    Contract for the rendering side:
      - `snapshot()` returns everything needed to draw the stage.
      - stage-specific methods (`tap`, `choose`, `move`, ...) are the input sink.
      - `run()` is the completion channel; it returns the result exactly once.

    Input that arrives after the stage resolved is ignored.
    """

    kind: ClassVar[str]

    def __init__(self, *, name: str | None = None) -> None:
        self.name = name or self.kind
        self.lifecycle = StageLifecycle()
        self._done: asyncio.Future[StageResult] | None = None

    @property
    def status(self) -> StageStatus:
        return self.lifecycle.status

    @property
    def resolved(self) -> bool:
        return self.lifecycle.is_finished

    def _completion(self) -> asyncio.Future[StageResult]:
        if self._done is None:
            self._done = asyncio.get_running_loop().create_future()
        return self._done

    async def run(self) -> StageResult:
        """Start the stage (if needed) and wait for its single result."""

        done = self._completion()
        if self.status == StageStatus.pending:
            self.lifecycle.begin()
            logger.info("stage %s (%s) started", self.name, self.kind)
            try:
                await self._prepare()
            except StageFailed as e:
                self.fail(e)
            except Exception as e:
                self.fail(StageFailed(self.name, str(e) or type(e).__name__))
        return await done

    def skip(self) -> bool:
        """Leave the stage now with its default result."""

        return self._resolve(self._skip_result())

    def fail(self, exc: BaseException) -> bool:
        if self.resolved:
            return False
        self._teardown()
        self.lifecycle.abort()
        if not isinstance(exc, StageFailed):
            exc = StageFailed(self.name, str(exc) or type(exc).__name__)
        done = self._completion()
        if not done.done():
            done.set_exception(exc)
        logger.warning("stage %s failed: %s", self.name, exc)
        return True

    def snapshot(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "kind": self.kind, "status": self.status.value}
        data.update(self._render())
        return data

    def _resolve(self, result: StageResult) -> bool:
        if self.resolved:
            return False
        # Revoke timers/listeners before publishing the result.
        self._teardown()
        self.lifecycle.settle()
        done = self._completion()
        # A cancelled waiter leaves the future cancelled; the stage still settles.
        if not done.done():
            done.set_result(result)
        logger.info("stage %s resolved reward=%s skipped=%s", self.name, result.reward, result.skipped)
        return True

    async def _prepare(self) -> None:
        """Hook: set up the stage when it starts running. Raising fails the stage."""

    def _teardown(self) -> None:
        """Hook: cancel any pending ticks/timers owned by the stage."""

    def _skip_result(self) -> StageResult:
        return StageResult.unit(skipped=True)

    @abstractmethod
    def _render(self) -> dict[str, Any]:
        raise NotImplementedError
