"""
Overlay renderer for diagram repair.

The renderer starts from a copy of the original grid and redraws only the
primitives the normalizer changed. Each changed primitive first has its
original footprint blanked, then is drawn at its new place, in this order:

    boxes (outermost first) -> connection lines -> arrows -> text rows -> labels

Cells belonging to unchanged primitives or to unrecognised content are never
written.
"""

import logging
from collections import defaultdict
from typing import List, Optional, Set, Union

from .debug import TracedGrid
from .glyphs import (
    BOX_CHARS,
    DOWN,
    LEFT,
    LINE_ARMS,
    RIGHT,
    UP,
    corner_glyph,
    opposite,
    straight_glyph,
    tip_pointing,
)
from .grid import Grid
from .models import (
    Box,
    ConnectionLine,
    HorizontalArrow,
    Label,
    Point,
    PrimitiveInventory,
    TextRow,
    VerticalArrow,
)
from .tracer import RepairTrace

logger = logging.getLogger(__name__)

Target = Union[Grid, TracedGrid]


class DiagramRenderer:
    """
    Draws a normalized PrimitiveInventory over the grid it was detected from.

    Usage:
        >>> renderer = DiagramRenderer()
        >>> repaired = renderer.overlay(normalized, grid)
        >>> lines = repaired.render()
    """

    def overlay(
        self,
        inventory: PrimitiveInventory,
        grid: Grid,
        trace: Optional[RepairTrace] = None,
    ) -> Grid:
        """
        Render changed primitives onto a copy of ``grid``.

        Args:
            inventory: Normalized primitives
            grid: The grid the primitives were detected from (not modified)
            trace: Optional RepairTrace recording every write

        Returns:
            The repaired grid, grown if a primitive now reaches past its edge
        """
        canvas = grid.copy()
        height, width = inventory.extent()
        canvas.ensure_size(width, height)
        target: Target = TracedGrid(canvas, trace) if trace is not None else canvas

        protected: Set[Point] = set(inventory.residual)
        dirty = []
        for kind, idx, item in inventory.iter_primitives():
            if item.is_dirty():
                dirty.append((kind, idx, item))
            else:
                protected |= item.border_cells() if kind == "box" else item.cells()

        for kind, idx, item in dirty:
            self._set_primitive(target, kind, idx)
            for cell in item.footprint:
                if cell not in protected:
                    self._put(target, cell, " ", "clear_footprint")

        drawn = set(protected)
        changed = defaultdict(list)
        for kind, idx, item in dirty:
            changed[kind].append((idx, item))

        draw = [
            ("box", lambda box: self._draw_box(target, box, drawn)),
            ("conn", lambda line: self._draw_connection(target, line, drawn)),
            ("harrow", lambda arrow: self._draw_horizontal_arrow(target, arrow, drawn)),
            ("varrow", lambda arrow: self._draw_vertical_arrow(target, arrow, drawn)),
            ("text", lambda text: self._draw_text(target, text, drawn)),
            ("label", lambda label: self._draw_label(target, canvas, label, drawn)),
        ]
        for kind, draw_one in draw:
            for idx, item in changed[kind]:
                self._set_primitive(target, kind, idx)
                draw_one(item)
        return canvas

    @staticmethod
    def _set_primitive(target: Target, kind: str, idx: int) -> None:
        if isinstance(target, TracedGrid):
            target.set_primitive(f"{kind} {idx}")

    @staticmethod
    def _put(target: Target, cell: Point, char: str, reason: str) -> None:
        if isinstance(target, TracedGrid):
            target.set(cell[0], cell[1], char, reason=reason)
        else:
            target.set(cell[0], cell[1], char)

    def _draw_box(self, target: Target, box: Box, drawn: Set[Point]) -> None:
        """Draw a box border in its style, keeping junction glyphs that still fit."""
        chars = BOX_CHARS[box.style]
        corners = {
            (box.top, box.left): chars["top_left"],
            (box.top, box.right): chars["top_right"],
            (box.bottom, box.left): chars["bottom_left"],
            (box.bottom, box.right): chars["bottom_right"],
        }
        for cell in sorted(box.border_cells()):
            if cell in drawn:
                continue
            if cell in corners:
                glyph = corners[cell]
            else:
                horizontal = cell[0] in (box.top, box.bottom)
                glyph = chars["horizontal"] if horizontal else chars["vertical"]
                junction = box.junctions.get(cell)
                needed = {LEFT, RIGHT} if horizontal else {UP, DOWN}
                if junction is not None and needed <= LINE_ARMS.get(junction, frozenset()):
                    glyph = junction
            self._put(target, cell, glyph, "box_border")
            drawn.add(cell)

    def _draw_connection(
        self, target: Target, line: ConnectionLine, drawn: Set[Point]
    ) -> None:
        points = line.points()
        last = len(points) - 1
        for n, cell in enumerate(points):
            if cell in drawn:
                continue
            if n == 0 and line.start_tip:
                glyph = tip_pointing(line.start_tip, line.start_dir)
            elif n == last and line.end_tip:
                glyph = tip_pointing(line.end_tip, line.end_dir)
            else:
                incoming = (
                    opposite(line.start_dir) if n == 0 else _delta(points[n - 1], cell)
                )
                outgoing = line.end_dir if n == last else _delta(cell, points[n + 1])
                glyph = (
                    straight_glyph(incoming)
                    if incoming == outgoing
                    else corner_glyph(incoming, outgoing)
                )
            self._put(target, cell, glyph, "connection_line")
            drawn.add(cell)

    def _draw_run(
        self, target: Target, cells: List[Point], glyphs: List[str], drawn: Set[Point]
    ) -> None:
        """Draw arrow glyphs onto blank cells only."""
        for cell, glyph in zip(cells, glyphs):
            if cell in drawn or target.get(*cell) != " ":
                continue
            self._put(target, cell, glyph, "arrow")
            drawn.add(cell)

    def _arrow_glyphs(self, length: int, shaft: str, start: Optional[str], end: Optional[str]) -> List[str]:
        glyphs = [shaft] * length
        if start:
            glyphs[0] = start
        if end:
            glyphs[-1] = end
        return glyphs

    def _draw_horizontal_arrow(
        self, target: Target, arrow: HorizontalArrow, drawn: Set[Point]
    ) -> None:
        cells = [(arrow.row, col) for col in range(arrow.start_col, arrow.end_col + 1)]
        glyphs = self._arrow_glyphs(
            len(cells), arrow.shaft_char, arrow.start_char, arrow.end_char
        )
        self._draw_run(target, cells, glyphs, drawn)

    def _draw_vertical_arrow(
        self, target: Target, varrow: VerticalArrow, drawn: Set[Point]
    ) -> None:
        cells = [(row, varrow.col) for row in range(varrow.start_row, varrow.end_row + 1)]
        glyphs = self._arrow_glyphs(
            len(cells), varrow.shaft_char, varrow.start_char, varrow.end_char
        )
        self._draw_run(target, cells, glyphs, drawn)

    def _draw_text(self, target: Target, text: TextRow, drawn: Set[Point]) -> None:
        for i, char in enumerate(text.content):
            cell = (text.row, text.start_col + i)
            if cell in drawn:
                continue
            self._put(target, cell, char, "text_row")
            drawn.add(cell)

    def _draw_label(
        self, target: Target, canvas: Grid, label: Label, drawn: Set[Point]
    ) -> None:
        """Draw a label at its new place, else back where it was, else nowhere."""
        for row, col in ((label.row, label.col), label.origin):
            cells = [(row, col + i) for i in range(len(label.content))]
            if all(cell not in drawn and canvas.get(*cell) == " " for cell in cells):
                for cell, char in zip(cells, label.content):
                    self._put(target, cell, char, "label")
                    drawn.add(cell)
                return
        logger.debug("Dropping label %r: no free cells", label.content)


def _delta(a: Point, b: Point):
    return (b[0] - a[0], b[1] - a[1])
