from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, get_args

from portal.stages import BranchingChoiceStage, DuelStage, Stage, TapChallengeStage

ActionName = Literal["start", "tap", "choose", "move", "restart", "finish", "skip"]

ACTION_NAMES: frozenset[str] = frozenset(get_args(ActionName))

# Which input each stage kind accepts ("skip" is valid everywhere).
ALLOWED_ACTIONS: dict[str, frozenset[str]] = {
    TapChallengeStage.kind: frozenset({"start", "tap", "skip"}),
    BranchingChoiceStage.kind: frozenset({"choose", "skip"}),
    DuelStage.kind: frozenset({"move", "restart", "finish", "skip"}),
}


@dataclass(frozen=True, slots=True)
class ActionResult:
    # False when the stage ignored the input (occupied cell, stage already resolved, ...).
    accepted: bool
    resolved: bool
    snapshot: dict[str, Any]


def _int_field(payload: dict[str, Any], name: str) -> int:
    raw = payload.get(name)
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"{name} is required")
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be an integer") from e


def _float_field(payload: dict[str, Any], name: str) -> float:
    raw = payload.get(name)
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"{name} is required")
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a number") from e


def validate_action(*, stage: Stage, action: str) -> None:
    if action not in ACTION_NAMES:
        raise ValueError(f"Unknown action: {action}")
    allowed = ALLOWED_ACTIONS.get(stage.kind, frozenset({"skip"}))
    if action not in allowed:
        raise ValueError(
            f"Action '{action}' not allowed for stage '{stage.kind}' (allowed: {','.join(sorted(allowed))})"
        )


def dispatch_stage_action(*, stage: Stage, action: str, payload: dict[str, Any]) -> ActionResult:
    """Entry point for UI input: route an action to the live stage's input sink."""

    validate_action(stage=stage, action=action)

    accepted: bool
    if action == "skip":
        accepted = stage.skip()
    elif isinstance(stage, TapChallengeStage) and action == "start":
        accepted = stage.start()
    elif isinstance(stage, TapChallengeStage) and action == "tap":
        accepted = stage.tap(_float_field(payload, "x"), _float_field(payload, "y"))
    elif isinstance(stage, BranchingChoiceStage) and action == "choose":
        before = stage.index
        stage.choose(_int_field(payload, "option"))
        accepted = stage.index != before
    elif isinstance(stage, DuelStage) and action == "move":
        accepted = stage.move(_int_field(payload, "cell"))
    elif isinstance(stage, DuelStage) and action == "restart":
        accepted = stage.restart()
    elif isinstance(stage, DuelStage) and action == "finish":
        accepted = stage.finish()
    else:
        raise ValueError(f"Unknown action: {action}")

    return ActionResult(accepted=accepted, resolved=stage.resolved, snapshot=stage.snapshot())
