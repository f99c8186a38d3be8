from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine


class StageStatus(StrEnum):
    pending = "pending"
    running = "running"
    resolved = "resolved"
    failed = "failed"


class DuelPhase(StrEnum):
    waiting_for_input = "waiting_for_input"
    evaluating = "evaluating"
    terminal = "terminal"


class StageLifecycle(StateMachine):
    """Lifecycle shared by every stage.

    - pending -> running when the orchestrator starts awaiting the stage
    - resolved / failed are final: a stage produces its result exactly once
    - a stage may be skipped or failed before it ever ran
    """

    pending = State(StageStatus.pending.value, value=StageStatus.pending.value, initial=True)
    running = State(StageStatus.running.value, value=StageStatus.running.value)
    resolved = State(StageStatus.resolved.value, value=StageStatus.resolved.value, final=True)
    failed = State(StageStatus.failed.value, value=StageStatus.failed.value, final=True)

    begin = pending.to(running)
    settle = pending.to(resolved) | running.to(resolved)
    abort = pending.to(failed) | running.to(failed)

    @property
    def status(self) -> StageStatus:
        return StageStatus(str(self.current_state.value))

    @property
    def is_finished(self) -> bool:
        return self.status in {StageStatus.resolved, StageStatus.failed}


class DuelFSM(StateMachine):
    """Turn structure of the two-player game stage.

    The FSM only guards transitions; board mutation and the engine call live in the stage.
    """

    waiting_for_input = State(
        DuelPhase.waiting_for_input.value,
        value=DuelPhase.waiting_for_input.value,
        initial=True,
    )
    evaluating = State(DuelPhase.evaluating.value, value=DuelPhase.evaluating.value)
    terminal = State(DuelPhase.terminal.value, value=DuelPhase.terminal.value)

    human_moved = waiting_for_input.to(evaluating)
    engine_moved = evaluating.to(waiting_for_input)
    game_over = waiting_for_input.to(terminal) | evaluating.to(terminal)
    restart = waiting_for_input.to.itself() | evaluating.to(waiting_for_input) | terminal.to(waiting_for_input)

    @property
    def phase(self) -> DuelPhase:
        return DuelPhase(str(self.current_state.value))
