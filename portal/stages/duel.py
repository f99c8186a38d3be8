from __future__ import annotations

import logging
from typing import Any

from portal.engine import Outcome, Position, Side, best_move, outcome, place, side_to_move
from portal.engine.board import check_cell
from portal.fsm import DuelFSM, DuelPhase
from portal.stages.base import Stage, StageResult

logger = logging.getLogger(__name__)


class DuelStage(Stage):
    """Tic-tac-toe against the exact-play engine ("Portal Match").

    The human plays `human_side`; every accepted human move is answered by the
    engine within the same call, so `evaluating` is only observable to FSM listeners.
    The stage finishes with the unit result: it awards no coins by itself.
    """

    kind = "duel"

    def __init__(
        self,
        *,
        name: str | None = None,
        human_side: Side = Side.A,
        start_position: Position | None = None,
        complete_on_terminal: bool = True,
    ) -> None:
        super().__init__(name=name)
        self.human_side = human_side
        self.engine_side = human_side.opponent
        self.complete_on_terminal = complete_on_terminal
        self.position = start_position or Position.empty()
        self.fsm = DuelFSM()
        self.engine_calls = 0
        if outcome(self.position) != Outcome.in_progress:
            self.fsm.game_over()
        else:
            self._engine_opens()

    @property
    def phase(self) -> DuelPhase:
        return self.fsm.phase

    @property
    def outcome(self) -> Outcome:
        return outcome(self.position)

    def move(self, cell: int) -> bool:
        """Human move. Returns False when the move was ignored."""

        check_cell(cell)
        if self.resolved or self.phase != DuelPhase.waiting_for_input:
            return False
        if self.position[cell] is not None or self.outcome != Outcome.in_progress:
            return False

        self.position = place(self.position, cell, self.human_side)
        if self.outcome != Outcome.in_progress:
            self._conclude()
            return True

        self.fsm.human_moved()
        reply = best_move(self.position, self.engine_side)
        self.engine_calls += 1
        if reply is None:
            self._conclude()
            return True

        self.position = place(self.position, reply, self.engine_side)
        logger.debug("duel %s: human=%s engine=%s position=%s", self.name, cell, reply, self.position)
        if self.outcome != Outcome.in_progress:
            self._conclude()
        else:
            self.fsm.engine_moved()
        return True

    def restart(self) -> bool:
        if self.resolved:
            return False
        self.position = Position.empty()
        self.fsm.restart()
        self._engine_opens()
        return True

    def finish(self) -> bool:
        """The "Done" button: leave the match, whatever its state."""

        return self._resolve(StageResult.unit())

    def _engine_opens(self) -> None:
        # Playing second: the engine takes its turn before the first human input.
        if side_to_move(self.position) == self.engine_side:
            reply = best_move(self.position, self.engine_side)
            self.engine_calls += 1
            if reply is not None:
                self.position = place(self.position, reply, self.engine_side)
            if self.outcome != Outcome.in_progress:
                self.fsm.game_over()

    def _conclude(self) -> None:
        self.fsm.game_over()
        logger.info("duel %s over: %s", self.name, self.outcome.value)
        if self.complete_on_terminal:
            self._resolve(StageResult.unit())

    async def _prepare(self) -> None:
        if self.complete_on_terminal and self.phase == DuelPhase.terminal:
            self._resolve(StageResult.unit())

    def _render(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "board": [c.value if c is not None else None for c in self.position.cells],
            "outcome": self.outcome.value,
            "human_side": self.human_side.value,
            "engine_side": self.engine_side.value,
        }
