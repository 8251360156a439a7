"""
Cell occupancy tracking for normalization.

The normalizer may only move or grow a primitive into cells nobody else
owns. OccupancyGrid records, for every non-blank cell of the current
layout, which primitive owns it. Box interiors are not owned by the box;
only its border is.
"""

from enum import Enum
from typing import Dict, Iterable, Optional, Set, Tuple

from .models import Point, PrimitiveInventory


class CellType(Enum):
    """Kinds of cell owners in the occupancy grid."""

    EMPTY = 0
    BOX = 1
    TEXT = 2
    HORIZONTAL_ARROW = 3
    VERTICAL_ARROW = 4
    CONNECTION = 5
    LABEL = 6
    RESIDUAL = 7


Owner = Tuple[CellType, int]

_KIND_TYPES = {
    "box": CellType.BOX,
    "text": CellType.TEXT,
    "harrow": CellType.HORIZONTAL_ARROW,
    "varrow": CellType.VERTICAL_ARROW,
    "conn": CellType.CONNECTION,
    "label": CellType.LABEL,
}


class OccupancyGrid:
    """
    Tracks which primitive owns each cell.

    Uses a sparse representation: only owned cells are stored.
    """

    def __init__(self):
        self.cells: Dict[Point, Owner] = {}

    @classmethod
    def from_inventory(cls, inventory: PrimitiveInventory) -> "OccupancyGrid":
        """Build the occupancy map of an inventory's current geometry."""
        grid = cls()
        for cell in inventory.residual:
            grid.cells[cell] = (CellType.RESIDUAL, -1)
        for kind, idx, item in inventory.iter_primitives():
            cells = item.border_cells() if kind == "box" else item.cells()
            grid.mark(cells, (_KIND_TYPES[kind], idx))
        return grid

    def mark(self, cells: Iterable[Point], owner: Owner) -> None:
        """Record an owner for cells that are not owned yet."""
        for cell in cells:
            self.cells.setdefault(cell, owner)

    def release(self, owner: Owner) -> None:
        """Forget every cell held by an owner."""
        for cell in [c for c, o in self.cells.items() if o == owner]:
            del self.cells[cell]

    def owner(self, cell: Point) -> Optional[Owner]:
        return self.cells.get(cell)

    def cell_type(self, cell: Point) -> CellType:
        owner = self.cells.get(cell)
        return owner[0] if owner else CellType.EMPTY

    def is_free(self, cell: Point, allowed: Optional[Set[Owner]] = None) -> bool:
        """Check if a cell is blank, or owned by one of the allowed owners."""
        if cell[0] < 0 or cell[1] < 0:
            return False
        owner = self.cells.get(cell)
        return owner is None or (allowed is not None and owner in allowed)

    def region_free(
        self, cells: Iterable[Point], allowed: Optional[Set[Owner]] = None
    ) -> bool:
        """Check if every cell of a region is free."""
        return all(self.is_free(cell, allowed) for cell in cells)

    def blockers(
        self, cells: Iterable[Point], allowed: Optional[Set[Owner]] = None
    ) -> Set[Owner]:
        """Owners standing in the way of a region."""
        found = set()
        for cell in cells:
            if not self.is_free(cell, allowed):
                found.add(self.cells.get(cell, (CellType.EMPTY, -1)))
        return found
