from __future__ import annotations

import asyncio

import pytest

from portal.stages import DEFAULT_MISSIONS, BranchingChoiceStage, ChoiceOption, ChoicePoint, StageResult


def _three_points() -> list[ChoicePoint]:
    return [
        ChoicePoint("One", "first", (ChoiceOption("yes", 3), ChoiceOption("no", 0))),
        ChoicePoint("Two", "second", (ChoiceOption("yes", 5), ChoiceOption("meh", 3))),
        ChoicePoint("Three", "third", (ChoiceOption("yes", 2), ChoiceOption("meh", 1))),
    ]


@pytest.mark.asyncio
async def test_pick_then_skip_keeps_only_accrued_reward() -> None:
    stage = BranchingChoiceStage(points=_three_points())
    task = asyncio.create_task(stage.run())
    await asyncio.sleep(0)

    assert stage.choose(0) == 3
    assert stage.skip() is True

    assert await asyncio.wait_for(task, 1) == StageResult.of(3, skipped=True)


@pytest.mark.asyncio
async def test_completing_every_point_sums_rewards() -> None:
    stage = BranchingChoiceStage(points=_three_points())
    task = asyncio.create_task(stage.run())
    await asyncio.sleep(0)

    stage.choose(1)
    stage.choose(1)
    assert not stage.resolved
    stage.choose(0)

    assert await asyncio.wait_for(task, 1) == StageResult.of(0 + 3 + 2)
    assert stage.picks == [1, 1, 0]
    assert stage.current is None


@pytest.mark.asyncio
async def test_input_after_resolution_is_ignored() -> None:
    stage = BranchingChoiceStage(points=_three_points()[:1])
    task = asyncio.create_task(stage.run())
    await asyncio.sleep(0)
    stage.choose(0)
    await task

    assert stage.choose(0) == 0
    assert stage.total == 3
    assert stage.skip() is False


@pytest.mark.asyncio
async def test_bad_option_index_is_rejected() -> None:
    stage = BranchingChoiceStage(points=_three_points())
    with pytest.raises(ValueError):
        stage.choose(2)
    with pytest.raises(ValueError):
        stage.choose(-1)
    assert stage.index == 0


@pytest.mark.asyncio
async def test_empty_sequence_resolves_with_zero() -> None:
    stage = BranchingChoiceStage(points=[])
    assert await asyncio.wait_for(stage.run(), 1) == StageResult.of(0)


def test_options_must_not_have_negative_rewards() -> None:
    with pytest.raises(ValueError):
        ChoiceOption("bad", -1)
    with pytest.raises(ValueError):
        ChoicePoint("empty", "no options", ())


def test_default_missions_match_the_bracelet_story() -> None:
    assert [p.title for p in DEFAULT_MISSIONS] == ["Gym Pact", "Bracelet Honor", "Anime Night"]
    assert sum(max(o.reward for o in p.options) for p in DEFAULT_MISSIONS) == 10


@pytest.mark.asyncio
async def test_snapshot_shows_current_point() -> None:
    stage = BranchingChoiceStage()
    snap = stage.snapshot()
    assert snap["index"] == 0
    assert snap["count"] == 3
    assert snap["current"]["title"] == "Gym Pact"
    assert snap["current"]["options"][0] == {"label": "I promise", "reward": 3}
