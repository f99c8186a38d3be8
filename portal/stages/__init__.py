"""Interactive stages of the flow and the default sequence."""

from __future__ import annotations

import random

from portal.config import FlowSettings
from portal.stages.base import Stage, StageResult
from portal.stages.duel import DuelStage
from portal.stages.missions import DEFAULT_MISSIONS, BranchingChoiceStage, ChoiceOption, ChoicePoint
from portal.stages.tap import TapChallengeStage, Target


def build_default_stages(*, settings: FlowSettings, rng: random.Random | None = None) -> list[Stage]:
    """Coin Rush -> Missions -> Portal Match."""

    return [
        TapChallengeStage(
            name="coin_rush",
            duration_s=settings.tap_duration_s,
            target_count=settings.tap_target_count,
            width=settings.tap_field_width,
            height=settings.tap_field_height,
            tick_interval_s=settings.tap_tick_interval_s,
            autostart=settings.tap_autostart,
            rng=rng,
        ),
        BranchingChoiceStage(name="missions", points=DEFAULT_MISSIONS),
        DuelStage(name="portal_match", complete_on_terminal=settings.duel_complete_on_terminal),
    ]


__all__ = [
    "DEFAULT_MISSIONS",
    "BranchingChoiceStage",
    "ChoiceOption",
    "ChoicePoint",
    "DuelStage",
    "Stage",
    "StageResult",
    "TapChallengeStage",
    "Target",
    "build_default_stages",
]
