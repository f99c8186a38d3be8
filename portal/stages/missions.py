from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from portal.stages.base import Stage, StageResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChoiceOption:
    label: str
    reward: int

    def __post_init__(self) -> None:
        if self.reward < 0:
            raise ValueError("option reward must be >= 0")


@dataclass(frozen=True, slots=True)
class ChoicePoint:
    title: str
    body: str
    options: tuple[ChoiceOption, ...]

    def __post_init__(self) -> None:
        if not self.options:
            raise ValueError(f"choice point '{self.title}' has no options")


DEFAULT_MISSIONS: tuple[ChoicePoint, ...] = (
    ChoicePoint(
        title="Gym Pact",
        body="You promise to spot each other. Reward: 3 coins",
        options=(ChoiceOption("I promise", 3), ChoiceOption("Maybe", 0)),
    ),
    ChoicePoint(
        title="Bracelet Honor",
        body="The black bead belonged to your mom. You keep it safe? Reward: 5 coins",
        options=(ChoiceOption("Yes, always", 5), ChoiceOption("Respectfully", 3)),
    ),
    ChoicePoint(
        title="Anime Night",
        body="Choose a series for a watch-night. Reward: 2 coins",
        options=(ChoiceOption("Action", 2), ChoiceOption("Slice of life", 1)),
    ),
)


class BranchingChoiceStage(Stage):
    """Ordered choice points ("Missions"); every pick adds its reward to the stage total."""

    kind = "missions"

    def __init__(self, *, name: str | None = None, points: Sequence[ChoicePoint] = DEFAULT_MISSIONS) -> None:
        super().__init__(name=name)
        self.points = tuple(points)
        self.index = 0
        self.total = 0
        self.picks: list[int] = []

    @property
    def current(self) -> ChoicePoint | None:
        if self.index >= len(self.points):
            return None
        return self.points[self.index]

    def choose(self, option_index: int) -> int:
        """Pick an option on the current choice point. Returns the reward accrued."""

        point = self.current
        if self.resolved or point is None:
            return 0
        if not 0 <= option_index < len(point.options):
            raise ValueError(f"option must be between 0 and {len(point.options) - 1} (got {option_index})")

        reward = point.options[option_index].reward
        self.total += reward
        self.picks.append(option_index)
        self.index += 1
        logger.debug("missions %s: %s -> +%d (total %d)", self.name, point.title, reward, self.total)

        if self.current is None:
            self._resolve(StageResult.of(self.total))
        return reward

    async def _prepare(self) -> None:
        if not self.points:
            self._resolve(StageResult.of(0))

    def _skip_result(self) -> StageResult:
        return StageResult.of(self.total, skipped=True)

    def _render(self) -> dict[str, Any]:
        point = self.current
        return {
            "index": self.index,
            "count": len(self.points),
            "total": self.total,
            "current": None
            if point is None
            else {
                "title": point.title,
                "body": point.body,
                "options": [{"label": o.label, "reward": o.reward} for o in point.options],
            },
        }
