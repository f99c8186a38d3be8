from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

from portal.stages.base import Stage, StageResult

logger = logging.getLogger(__name__)

# Targets respawn this far outside the field.
_SPAWN_MARGIN = 20.0
_EXIT_MARGIN = 30.0


@dataclass(slots=True)
class Target:
    x: float
    y: float
    vy: float  # px per second
    radius: float
    tapped: bool = False

    def contains(self, x: float, y: float) -> bool:
        dx, dy = x - self.x, y - self.y
        return dx * dx + dy * dy <= self.radius * self.radius


class TapChallengeStage(Stage):
    """Timed tap challenge ("Coin Rush").

    Two independent sources drive the stage once `start()` is called:
    - a periodic tick task moving the targets down the field
    - discrete `tap(x, y)` events from the user

    Both stop the moment the stage resolves (deadline, or skip).
    """

    kind = "tap"

    def __init__(
        self,
        *,
        name: str | None = None,
        duration_s: float = 12.0,
        target_count: int = 18,
        width: float = 720.0,
        height: float = 260.0,
        tick_interval_s: float = 1 / 60,
        autostart: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        if duration_s <= 0:
            raise ValueError("duration_s must be > 0")
        if tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be > 0")
        super().__init__(name=name)
        self.duration_s = duration_s
        self.target_count = target_count
        self.width = width
        self.height = height
        self.tick_interval_s = tick_interval_s
        self.autostart = autostart
        self.rng = rng or random.Random()

        self.targets: list[Target] = []
        self.score = 0
        self.active = False
        self._ticker: asyncio.Task[None] | None = None
        self._deadline: asyncio.TimerHandle | None = None
        self._ends_at: float | None = None

    @property
    def remaining_s(self) -> float:
        if self._ends_at is None:
            return 0.0 if self.resolved else self.duration_s
        if not self.active:
            return 0.0
        return max(0.0, self._ends_at - asyncio.get_running_loop().time())

    def start(self) -> bool:
        """Begin the round. Returns False if it is already running or over."""

        if self.active or self.resolved:
            return False
        loop = asyncio.get_running_loop()
        self.score = 0
        self.targets = self._spawn(self.target_count)
        self.active = True
        self._ends_at = loop.time() + self.duration_s
        self._deadline = loop.call_later(self.duration_s, self._expire)
        self._ticker = loop.create_task(self._tick_loop())
        logger.info("tap %s round started (%ss, %d targets)", self.name, self.duration_s, len(self.targets))
        return True

    def tap(self, x: float, y: float) -> bool:
        """Register a tap. Returns True when it hit an untapped target."""

        if not self.active or self.resolved:
            return False
        for t in self.targets:
            if not t.tapped and t.contains(x, y):
                t.tapped = True
                self.score += 1
                return True
        return False

    def advance(self, dt: float) -> None:
        """Move every target by `dt` seconds of motion."""

        if not self.active:
            return
        for t in self.targets:
            t.y += t.vy * dt
            if t.y > self.height + _EXIT_MARGIN:
                # Re-enters at the top as a fresh target.
                t.y = -_SPAWN_MARGIN
                t.x = self.rng.uniform(0, self.width)
                t.tapped = False

    async def _tick_loop(self) -> None:
        while self.active:
            await asyncio.sleep(self.tick_interval_s)
            self.advance(self.tick_interval_s)

    def _expire(self) -> None:
        self._deadline = None
        self._resolve(StageResult.of(self.score))

    def _spawn(self, n: int) -> list[Target]:
        return [
            Target(
                x=self.rng.uniform(0, self.width),
                y=-self.rng.uniform(0, self.height),
                vy=(0.9 + self.rng.uniform(0, 1.6)) * 60,
                radius=12 + self.rng.uniform(0, 8),
            )
            for _ in range(n)
        ]

    async def _prepare(self) -> None:
        if self.autostart:
            self.start()

    def _teardown(self) -> None:
        self.active = False
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _skip_result(self) -> StageResult:
        return StageResult.of(0, skipped=True)

    def _render(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "score": self.score,
            "remaining_s": round(self.remaining_s, 2),
            "field": {"width": self.width, "height": self.height},
            "targets": [
                {"x": round(t.x, 1), "y": round(t.y, 1), "radius": round(t.radius, 1), "tapped": t.tapped}
                for t in self.targets
            ],
        }
