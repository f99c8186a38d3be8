"""Tic-tac-toe rules and the exact-play decision engine.

Pure functions only; no asyncio, Redis or FastAPI concerns.
"""

from portal.engine.board import (
    WIN_LINES,
    Outcome,
    Position,
    Side,
    legal_moves,
    outcome,
    place,
    side_to_move,
    winner,
)
from portal.engine.minimax import best_move, move_scores

__all__ = [
    "WIN_LINES",
    "Outcome",
    "Position",
    "Side",
    "best_move",
    "legal_moves",
    "move_scores",
    "outcome",
    "place",
    "side_to_move",
    "winner",
]
