from __future__ import annotations

from functools import lru_cache

from portal.engine.board import Cell, Outcome, Position, Side, outcome, winner

WIN_SCORE = 10


def best_move(position: Position, side: Side) -> int | None:
    """Return the optimal cell for `side`, or None if the game is already over.

    Full-depth minimax. Terminal scores are ``10 - depth`` for a win of `side`
    and ``depth - 10`` for a loss, where depth counts plies after the candidate
    move, so faster wins and slower losses rank higher. Among equally scored
    moves the lowest cell index wins.
    """

    if outcome(position) != Outcome.in_progress:
        return None

    cells = position.cells
    best_score: int | None = None
    move: int | None = None
    for i, c in enumerate(cells):
        if c is not None:
            continue
        child = cells[:i] + (side,) + cells[i + 1 :]
        score = _score(child, side.opponent, side, 0)
        if best_score is None or score > best_score:
            best_score, move = score, i
    return move


def move_scores(position: Position, side: Side) -> dict[int, int]:
    """Minimax score of every legal move for `side` (debug/inspection helper)."""

    cells = position.cells
    return {
        i: _score(cells[:i] + (side,) + cells[i + 1 :], side.opponent, side, 0)
        for i, c in enumerate(cells)
        if c is None
    }


@lru_cache(maxsize=None)
def _score(cells: tuple[Cell, ...], to_move: Side, me: Side, depth: int) -> int:
    w = winner(Position(cells))
    if w is me:
        return WIN_SCORE - depth
    if w is not None:
        return depth - WIN_SCORE

    children = [cells[:i] + (to_move,) + cells[i + 1 :] for i, c in enumerate(cells) if c is None]
    if not children:
        return 0

    scores = (_score(child, to_move.opponent, me, depth + 1) for child in children)
    return max(scores) if to_move is me else min(scores)
