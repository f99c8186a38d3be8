from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Side(StrEnum):
    A = "X"
    B = "O"

    @property
    def opponent(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class Outcome(StrEnum):
    a_wins = "a_wins"
    b_wins = "b_wins"
    draw = "draw"
    in_progress = "in_progress"


Cell = Side | None

WIN_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


@dataclass(frozen=True, slots=True)
class Position:
    """Immutable 3x3 board; cells are indexed 0..8 row-major."""

    cells: tuple[Cell, ...] = (None,) * 9

    def __post_init__(self) -> None:
        if len(self.cells) != 9:
            raise ValueError("A position has exactly 9 cells")

    @staticmethod
    def empty() -> "Position":
        return Position()

    @staticmethod
    def parse(text: str) -> "Position":
        """Build a position from a 9-char string like ``"XX.OO...."``."""

        compact = "".join(text.split())
        if len(compact) != 9:
            raise ValueError("A position has exactly 9 cells")
        cells: list[Cell] = []
        for ch in compact.upper():
            if ch in ".-_":
                cells.append(None)
            elif ch in {"X", "A"}:
                cells.append(Side.A)
            elif ch in {"O", "B"}:
                cells.append(Side.B)
            else:
                raise ValueError(f"Unknown cell marker: {ch!r}")
        return Position(tuple(cells))

    def __str__(self) -> str:
        return "".join(c.value if c is not None else "." for c in self.cells)

    def __getitem__(self, cell: int) -> Cell:
        return self.cells[cell]

    def count(self, side: Side) -> int:
        return sum(1 for c in self.cells if c is side)

    def is_full(self) -> bool:
        return all(c is not None for c in self.cells)


def check_cell(cell: int) -> None:
    if not 0 <= cell <= 8:
        raise ValueError(f"cell must be between 0 and 8 (got {cell})")


def winner(position: Position) -> Side | None:
    b = position.cells
    for a, c, d in WIN_LINES:
        if b[a] is not None and b[a] == b[c] == b[d]:
            return b[a]
    return None


def outcome(position: Position) -> Outcome:
    w = winner(position)
    if w is Side.A:
        return Outcome.a_wins
    if w is Side.B:
        return Outcome.b_wins
    if position.is_full():
        return Outcome.draw
    return Outcome.in_progress


def legal_moves(position: Position) -> list[int]:
    return [i for i, c in enumerate(position.cells) if c is None]


def place(position: Position, cell: int, side: Side) -> Position:
    check_cell(cell)
    if position.cells[cell] is not None:
        raise ValueError(f"cell {cell} is already taken")
    cells = list(position.cells)
    cells[cell] = side
    return Position(tuple(cells))


def side_to_move(position: Position) -> Side:
    # Side A always opens.
    return Side.A if position.count(Side.A) == position.count(Side.B) else Side.B
