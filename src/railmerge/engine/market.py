"""Valuation grid for railmerge.

The grid is the two-dimensional price track enterprises move along. Rows run
from the most valuable (top) to the least valuable (bottom); within a row,
prices rise to the right. Cells are parsed from strings such as "92p":
a price followed by type letters (see ``CELL_TYPES``).

The grid never mutates enterprise state. Every movement returns a new
``CellRef`` and the caller applies it, so all valuation changes pass through
one place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from railmerge.models.state import CellRef


class CellType(str, Enum):
    """Type tags a valuation cell can carry."""

    PAR = "par"
    RESERVED_PAR = "reserved_par"
    MULTIPLE_BUY = "multiple_buy"


CELL_TYPES = {
    "p": CellType.PAR,
    "r": CellType.RESERVED_PAR,
    "m": CellType.MULTIPLE_BUY,
}

_CELL_PATTERN = re.compile(r"^(\d+)([a-z]*)$")


@dataclass(frozen=True)
class ValuationCell:
    """One priced cell of the grid."""

    price: int
    row: int
    column: int
    types: frozenset[CellType] = field(default_factory=frozenset)

    @property
    def ref(self) -> CellRef:
        return CellRef(row=self.row, column=self.column)

    def has_type(self, cell_type: CellType) -> bool:
        return cell_type in self.types


def parse_cell(text: str, row: int, column: int) -> ValuationCell | None:
    """Parse one grid string. Empty strings are holes and return None.

    Raises:
        ValueError: If the cell text or a type letter is not recognised
    """
    text = text.strip()
    if not text:
        return None
    match = _CELL_PATTERN.match(text)
    if match is None:
        raise ValueError(f"Invalid market cell '{text}' at row {row}, column {column}")
    price, letters = match.groups()
    types = set()
    for letter in letters:
        if letter not in CELL_TYPES:
            raise ValueError(f"Unknown cell type '{letter}' in market cell '{text}'")
        types.add(CELL_TYPES[letter])
    return ValuationCell(price=int(price), row=row, column=column, types=frozenset(types))


class ValuationGrid:
    """Discrete price grid with par lookup and movement rules.

    Args:
        rows: Grid rows as cell strings, top row first
        sell_movement: "down_block" or "down_share"
        steps_per_block: Rows moved per sale transaction under down_block
    """

    def __init__(self, rows: list[list[str]], sell_movement: str = "down_block", steps_per_block: int = 1):
        self._rows: list[list[ValuationCell | None]] = [
            [parse_cell(text, r, c) for c, text in enumerate(row)] for r, row in enumerate(rows)
        ]
        if sell_movement not in ("down_block", "down_share"):
            raise ValueError(f"Unknown sell movement: {sell_movement}")
        self.sell_movement = sell_movement
        self.steps_per_block = steps_per_block

    def cell(self, ref: CellRef) -> ValuationCell:
        """Resolve coordinates to a cell.

        Raises:
            KeyError: If the coordinates fall on a hole or outside the grid
        """
        found = self._get(ref.row, ref.column)
        if found is None:
            raise KeyError(f"No market cell at row {ref.row}, column {ref.column}")
        return found

    def price(self, ref: CellRef) -> int:
        return self.cell(ref).price

    def _get(self, row: int, column: int) -> ValuationCell | None:
        if row < 0 or column < 0 or row >= len(self._rows):
            return None
        cells = self._rows[row]
        if column >= len(cells):
            return None
        return cells[column]

    def cells(self) -> list[ValuationCell]:
        """All cells in grid order (row by row, left to right)."""
        return [cell for row in self._rows for cell in row if cell is not None]

    def cells_of_type(self, cell_type: CellType) -> list[ValuationCell]:
        """Cells carrying a type tag, in grid order."""
        return [cell for cell in self.cells() if cell.has_type(cell_type)]

    def par_cells(self) -> list[ValuationCell]:
        return self.cells_of_type(CellType.PAR)

    def par_cell_for(self, price: int) -> ValuationCell:
        """Find the par cell carrying a price.

        Raises:
            ValueError: If no par cell has that price
        """
        for cell in self.par_cells():
            if cell.price == price:
                return cell
        raise ValueError(f"No par cell at price {price}")

    # =========================================================================
    # Movement
    # =========================================================================

    def move_down(self, ref: CellRef) -> CellRef:
        """One row down (lower value); stays put at the bottom edge."""
        below = self._get(ref.row + 1, ref.column)
        return below.ref if below is not None else ref

    def move_up(self, ref: CellRef) -> CellRef:
        """One row up (higher value); stays put at the top edge."""
        above = self._get(ref.row - 1, ref.column)
        return above.ref if above is not None else ref

    def move_right(self, ref: CellRef) -> CellRef:
        """One cell right; at the end of a row, moves up instead."""
        right = self._get(ref.row, ref.column + 1)
        return right.ref if right is not None else self.move_up(ref)

    def move_left(self, ref: CellRef) -> CellRef:
        """One cell left; at the start of a row, moves down instead."""
        left = self._get(ref.row, ref.column - 1)
        return left.ref if left is not None else self.move_down(ref)

    def moved_after_sale(self, ref: CellRef, units: int) -> CellRef:
        """Cell after selling ``units`` certificates in one transaction.

        down_block moves a fixed number of rows per transaction; down_share
        moves one row per unit sold. Selling nothing does not move the cell.
        """
        if units <= 0:
            return ref
        steps = self.steps_per_block if self.sell_movement == "down_block" else units
        for _ in range(steps):
            ref = self.move_down(ref)
        return ref
