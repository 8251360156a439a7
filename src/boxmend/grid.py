"""
Character grid for diagram repair.

A Grid is a rectangular matrix of single-character cells built from a list
of text lines. Short lines are padded with spaces; the grid remembers how
long every source line was so that rendering an unmodified grid reproduces
the input exactly.
"""

from typing import List, Optional, Sequence


class Grid:
    """
    A 2D character grid addressed by (row, col).

    Attributes:
        width: Number of columns.
        height: Number of rows.
        cells: Row-major list of cell characters.
    """

    def __init__(self, width: int, height: int, fill_char: str = " "):
        self.width = width
        self.height = height
        self.cells: List[List[str]] = [
            [fill_char for _ in range(width)] for _ in range(height)
        ]
        # Length of each source line; None for rows the grid synthesized
        self._line_lengths: List[Optional[int]] = [None] * height

    @classmethod
    def from_lines(cls, lines: Sequence[str]) -> "Grid":
        """Build a grid from text lines, padding short lines with spaces."""
        width = max((len(line) for line in lines), default=0)
        grid = cls(width, len(lines))
        for row, line in enumerate(lines):
            for col, char in enumerate(line):
                grid.cells[row][col] = char
            grid._line_lengths[row] = len(line)
        return grid

    def get(self, row: int, col: int) -> Optional[str]:
        """Get the character at (row, col), or None outside the grid."""
        if 0 <= row < self.height and 0 <= col < self.width:
            return self.cells[row][col]
        return None

    def set(self, row: int, col: int, char: str) -> bool:
        """Set the character at (row, col). Returns False outside the grid."""
        if 0 <= row < self.height and 0 <= col < self.width:
            self.cells[row][col] = char
            return True
        return False

    def draw_text(self, row: int, col: int, text: str) -> None:
        """Draw text starting at (row, col)."""
        for i, char in enumerate(text):
            self.set(row, col + i, char)

    def row_text(self, row: int) -> str:
        """Full padded text of a row."""
        if 0 <= row < self.height:
            return "".join(self.cells[row])
        return ""

    def ensure_size(self, width: int, height: int) -> None:
        """Grow the grid (never shrink) to at least width x height."""
        if width > self.width:
            for cells in self.cells:
                cells.extend(" " * (width - self.width))
            self.width = width
        while self.height < height:
            self.cells.append([" "] * self.width)
            self._line_lengths.append(None)
            self.height += 1

    def copy(self) -> "Grid":
        clone = Grid(0, 0)
        clone.width = self.width
        clone.height = self.height
        clone.cells = [list(cells) for cells in self.cells]
        clone._line_lengths = list(self._line_lengths)
        return clone

    def render(self) -> List[str]:
        """
        Render the grid to lines.

        Trailing spaces are kept up to the source line's length and trimmed
        beyond it, so an unmodified grid renders back to its input.
        """
        lines = []
        for row, cells in enumerate(self.cells):
            text = "".join(cells)
            length = self._line_lengths[row] or 0
            kept, padding = text[:length], text[length:]
            lines.append(kept + padding.rstrip(" "))
        return lines

    def render_trimmed(self) -> List[str]:
        """Render the grid with all trailing whitespace removed from every line."""
        return ["".join(cells).rstrip() for cells in self.cells]

    def __str__(self) -> str:
        return "\n".join(self.render())
