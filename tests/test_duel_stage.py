from __future__ import annotations

import asyncio

import pytest

from portal.engine import Outcome, Position, Side
from portal.fsm import DuelPhase, StageStatus
from portal.stages import DuelStage, StageResult


@pytest.mark.asyncio
async def test_winning_move_goes_terminal_without_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(position, side):  # type: ignore[no-untyped-def]
        raise AssertionError("engine must not be consulted")

    monkeypatch.setattr("portal.stages.duel.best_move", _boom)

    stage = DuelStage(start_position=Position.parse("XX.OO...."))
    task = asyncio.create_task(stage.run())
    await asyncio.sleep(0)

    assert stage.move(2) is True
    assert stage.outcome == Outcome.a_wins
    assert stage.phase == DuelPhase.terminal
    assert stage.engine_calls == 0

    result = await asyncio.wait_for(task, 1)
    assert result == StageResult.unit()
    assert result.points == 0


@pytest.mark.asyncio
async def test_engine_replies_after_each_human_move() -> None:
    stage = DuelStage(complete_on_terminal=False)
    assert stage.phase == DuelPhase.waiting_for_input

    assert stage.move(4) is True
    assert stage.position[4] is Side.A
    # The reply to a center opening is the first corner.
    assert stage.position[0] is Side.B
    assert stage.engine_calls == 1
    assert stage.phase == DuelPhase.waiting_for_input


@pytest.mark.asyncio
async def test_occupied_cells_and_moves_after_the_end_are_ignored() -> None:
    stage = DuelStage(complete_on_terminal=False)
    stage.move(4)
    before = stage.position

    assert stage.move(4) is False
    assert stage.move(0) is False
    assert stage.position == before

    # Play the game out; the engine never loses, so it ends in a draw or engine win.
    while stage.phase != DuelPhase.terminal:
        free = next(i for i, c in enumerate(stage.position.cells) if c is None)
        stage.move(free)
    assert stage.outcome in {Outcome.draw, Outcome.b_wins}

    final = stage.position
    free_cells = [i for i, c in enumerate(final.cells) if c is None]
    for cell in free_cells:
        assert stage.move(cell) is False
    assert stage.position == final
    assert not stage.resolved


@pytest.mark.asyncio
async def test_out_of_range_cell_is_a_caller_error() -> None:
    stage = DuelStage()
    with pytest.raises(ValueError):
        stage.move(9)


@pytest.mark.asyncio
async def test_restart_clears_the_board_until_finished() -> None:
    stage = DuelStage(complete_on_terminal=False)
    task = asyncio.create_task(stage.run())
    await asyncio.sleep(0)

    stage.move(4)
    assert stage.restart() is True
    assert stage.position == Position.empty()
    assert stage.phase == DuelPhase.waiting_for_input

    assert stage.finish() is True
    assert await asyncio.wait_for(task, 1) == StageResult.unit()

    assert stage.restart() is False
    assert stage.move(4) is False
    assert stage.status == StageStatus.resolved


@pytest.mark.asyncio
async def test_skip_resolves_with_skipped_unit() -> None:
    stage = DuelStage()
    task = asyncio.create_task(stage.run())
    await asyncio.sleep(0)

    assert stage.skip() is True
    assert stage.skip() is False
    result = await asyncio.wait_for(task, 1)
    assert result.reward is None
    assert result.skipped is True


@pytest.mark.asyncio
async def test_human_playing_second_gets_an_engine_opening() -> None:
    stage = DuelStage(human_side=Side.B)
    assert stage.position.count(Side.A) == 1
    assert stage.engine_side is Side.A
    assert stage.phase == DuelPhase.waiting_for_input


@pytest.mark.asyncio
async def test_decided_start_position_resolves_on_run() -> None:
    stage = DuelStage(start_position=Position.parse("XXXOO...."))
    assert stage.phase == DuelPhase.terminal
    assert await asyncio.wait_for(stage.run(), 1) == StageResult.unit()


@pytest.mark.asyncio
async def test_snapshot_exposes_board_for_rendering() -> None:
    stage = DuelStage(start_position=Position.parse("XX.OO...."))
    snap = stage.snapshot()
    assert snap["kind"] == "duel"
    assert snap["status"] == "pending"
    assert snap["phase"] == "waiting_for_input"
    assert snap["board"][:5] == ["X", "X", None, "O", "O"]
    assert snap["outcome"] == "in_progress"
