"""
Primitive detection for diagram repair.

The PrimitiveDetector scans a character grid and recovers boxes, their
text, straight arrows, multi-segment connection lines and attached labels.
Detection runs in a fixed order; every later step ignores cells already
claimed by an earlier one:

    boxes -> hierarchy -> text rows -> connections -> arrows -> labels

Whatever non-blank content is left over is recorded as residual and is
never drawn over.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Set, Tuple

from .config import RepairConfig
from .glyphs import (
    ASCII_SHAFTS,
    ASCII_TIPS,
    BOX_CHARS,
    DEFAULT_SHAFTS,
    DOWN,
    HORIZONTAL_SHAFTS,
    JUNCTION_GLYPHS,
    LEFT,
    LINE_ARMS,
    LINE_FAMILY,
    RIGHT,
    STRUCTURE_GLYPHS,
    TIP_DIRECTIONS,
    TOP_LEFT_CORNERS,
    UP,
    VERTICAL_SHAFTS,
    classify_arrow,
    joins,
)
from .grid import Grid
from .hierarchy import BoxHierarchy
from .models import (
    AttachmentKind,
    Box,
    BoxStyle,
    HorizontalArrow,
    Label,
    LabelAttachment,
    Point,
    PrimitiveInventory,
    TextRow,
    VerticalArrow,
)
from .paths import PathTracer

logger = logging.getLogger(__name__)


class PrimitiveDetector:
    """
    Recovers diagram primitives from a Grid.

    Usage:
        >>> detector = PrimitiveDetector()
        >>> inventory = detector.scan(Grid.from_lines(lines))
    """

    def __init__(self, config: Optional[RepairConfig] = None):
        self.config = config or RepairConfig()
        self.hierarchy = BoxHierarchy(self.config.max_nesting_depth)
        self.tracer = PathTracer(self.config.max_segments)

    def scan(self, grid: Grid) -> PrimitiveInventory:
        """
        Detect every primitive on the grid.

        Args:
            grid: The grid to scan. It is not modified.

        Returns:
            PrimitiveInventory with origins and footprints recorded
        """
        boxes = self.hierarchy.build(self.detect_boxes(grid))
        claimed: Set[Point] = set()
        for box in boxes:
            claimed.update(box.footprint)

        text_rows = self.detect_text_rows(grid, boxes)
        for text in text_rows:
            claimed.update(text.footprint)

        connections, rejected = self.tracer.trace(grid, claimed, boxes)
        for line in connections:
            claimed.update(line.footprint)
        claimed.update(rejected)

        horizontal = self.detect_horizontal_arrows(grid, claimed)
        for arrow in horizontal:
            claimed.update(arrow.footprint)
        vertical = self.detect_vertical_arrows(grid, claimed, boxes)
        for varrow in vertical:
            claimed.update(varrow.footprint)

        inventory = PrimitiveInventory(
            boxes=boxes,
            horizontal_arrows=horizontal,
            vertical_arrows=vertical,
            text_rows=text_rows,
            connection_lines=connections,
            width=grid.width,
            height=grid.height,
        )
        inventory.labels = self.detect_labels(grid, inventory, claimed)
        for label in inventory.labels:
            claimed.update(label.footprint)

        inventory.residual = frozenset(
            (row, col)
            for row in range(grid.height)
            for col in range(grid.width)
            if grid.get(row, col) != " " and (row, col) not in claimed
        ) | frozenset(rejected)

        logger.debug("Detected %s", inventory.counts())
        return inventory

    # ------------------------------------------------------------------
    # Boxes
    # ------------------------------------------------------------------

    def detect_boxes(self, grid: Grid) -> List[Box]:
        """Find every closed box, in scan order (row-major by top-left corner)."""
        boxes = []
        for row in range(grid.height):
            for col in range(grid.width):
                style = TOP_LEFT_CORNERS.get(grid.get(row, col))
                if style is None:
                    continue
                box = self._trace_box(grid, row, col, style)
                if box is not None:
                    boxes.append(box)
        return boxes

    def _trace_box(
        self, grid: Grid, top: int, left: int, style: BoxStyle
    ) -> Optional[Box]:
        chars = BOX_CHARS[style]
        line_family = "double" if style == BoxStyle.DOUBLE else "single"

        def horizontal(glyph):
            return (
                LINE_FAMILY.get(glyph) == line_family
                and {LEFT, RIGHT} <= LINE_ARMS[glyph]
            )

        def vertical(glyph):
            return (
                LINE_FAMILY.get(glyph) == line_family
                and {UP, DOWN} <= LINE_ARMS[glyph]
            )

        right = left + 1
        while horizontal(grid.get(top, right)):
            right += 1
        if grid.get(top, right) != chars["top_right"]:
            return None

        bottom = top + 1
        while vertical(grid.get(bottom, left)):
            bottom += 1
        if grid.get(bottom, left) != chars["bottom_left"]:
            return None

        bottom_right = left + 1
        while horizontal(grid.get(bottom, bottom_right)):
            bottom_right += 1
        if grid.get(bottom, bottom_right) != chars["bottom_right"]:
            return None
        if bottom_right != right:
            logger.debug(
                "Skipping box at %s: top and bottom edges differ in width",
                (top, left),
            )
            return None

        ragged: Dict[int, int] = {}
        for row in range(top + 1, bottom):
            if vertical(grid.get(row, right)):
                continue
            col = right + 1
            while col < grid.width and not vertical(grid.get(row, col)):
                col += 1
            if col >= grid.width:
                return None
            ragged[row] = col

        # A displaced border glyph must not belong to some other line
        for row, col in ragged.items():
            glyph = grid.get(row, col)
            for direction, other in ((UP, row - 1), (DOWN, row + 1)):
                if joins(glyph, grid.get(other, col), direction) and ragged.get(
                    other
                ) != col:
                    logger.debug(
                        "Skipping box at %s: displaced border at %s joins another line",
                        (top, left),
                        (row, col),
                    )
                    return None

        footprint: Set[Point] = set()
        for col in range(left, right + 1):
            footprint.add((top, col))
            footprint.add((bottom, col))
        for row in range(top, bottom + 1):
            footprint.add((row, left))
            footprint.add((row, ragged.get(row, right)))

        # Reject boxes whose border reaches into their own interior
        inward = {"top": DOWN, "bottom": UP, "left": RIGHT, "right": LEFT}
        for row, col in footprint:
            glyph = grid.get(row, col)
            if glyph not in JUNCTION_GLYPHS:
                continue
            if row == top:
                direction = inward["top"]
            elif row == bottom:
                direction = inward["bottom"]
            elif col == left:
                direction = inward["left"]
            else:
                direction = inward["right"]
            neighbour = (row + direction[0], col + direction[1])
            if joins(glyph, grid.get(*neighbour), direction):
                logger.debug("Skipping box at %s: divided interior", (top, left))
                return None

        junctions = {
            cell: grid.get(*cell)
            for cell in footprint
            if grid.get(*cell) in JUNCTION_GLYPHS
        }
        box = Box(
            top_left=(top, left),
            bottom_right=(bottom, right),
            style=style,
            ragged_rows=ragged,
            junctions=junctions,
            footprint=frozenset(footprint),
        )
        box.origin = box.geometry()
        return box

    # ------------------------------------------------------------------
    # Text rows
    # ------------------------------------------------------------------

    def detect_text_rows(self, grid: Grid, boxes: List[Box]) -> List[TextRow]:
        """
        Extract the text of every box interior row not crossed by a child box.

        Content is copied verbatim with outer spaces stripped.
        """
        rows: List[TextRow] = []
        for idx, box in enumerate(boxes):
            if box.ambiguous:
                continue
            child_rows = set()
            for child in box.child_indices:
                child_rows.update(range(boxes[child].top, boxes[child].bottom + 1))
            for row in range(box.top + 1, box.bottom):
                if row in child_rows:
                    continue
                limit = box.ragged_rows.get(row, box.right)
                segment = grid.row_text(row)[box.left + 1 : limit]
                content = segment.strip(" ")
                if not content:
                    continue
                start = box.left + 1 + len(segment) - len(segment.lstrip(" "))
                text = TextRow(
                    row=row,
                    start_col=start,
                    end_col=start + len(content) - 1,
                    content=content,
                    box_idx=idx,
                )
                text.footprint = frozenset(text.cells())
                text.origin = text.geometry()
                rows.append(text)
        return rows

    # ------------------------------------------------------------------
    # Arrows
    # ------------------------------------------------------------------

    def _arrow_glyph(self, glyph: Optional[str], shafts, directions) -> bool:
        if glyph is None:
            return False
        if not self.config.ascii_arrows and (
            glyph in ASCII_SHAFTS or glyph in ASCII_TIPS
        ):
            return False
        return glyph in shafts or TIP_DIRECTIONS.get(glyph) in directions

    def _runs(self, cells: List[Tuple[Point, str]], shafts, directions):
        """Split a line of cells into maximal runs of arrow glyphs."""
        run: List[Tuple[Point, str]] = []
        for cell, glyph in cells:
            if glyph is not None and self._arrow_glyph(glyph, shafts, directions):
                run.append((cell, glyph))
                continue
            if run:
                yield run
            run = []
        if run:
            yield run

    def _read_run(self, run, start_dir, end_dir):
        """
        Interpret a run of arrow glyphs.

        Returns (start_tip, end_tip, shaft_glyphs) or None when the run is
        not an arrow.
        """
        glyphs = [glyph for _, glyph in run]
        if len(glyphs) == 1:
            glyph = glyphs[0]
            if glyph not in TIP_DIRECTIONS or glyph in ASCII_TIPS:
                return None
            if TIP_DIRECTIONS[glyph] == start_dir:
                return glyph, None, []
            return None, glyph, []

        start_tip = glyphs[0] if TIP_DIRECTIONS.get(glyphs[0]) == start_dir else None
        end_tip = glyphs[-1] if TIP_DIRECTIONS.get(glyphs[-1]) == end_dir else None
        if start_tip is None and end_tip is None:
            return None
        inner = glyphs[
            (1 if start_tip else 0) : (len(glyphs) - 1 if end_tip else len(glyphs))
        ]
        if any(glyph in TIP_DIRECTIONS for glyph in inner):
            return None
        return start_tip, end_tip, inner

    def _shaft_char(self, inner: List[str], arrow_type, vertical: bool) -> str:
        if inner:
            return Counter(inner).most_common(1)[0][0]
        return DEFAULT_SHAFTS[arrow_type][1 if vertical else 0]

    def detect_horizontal_arrows(
        self, grid: Grid, claimed: Set[Point]
    ) -> List[HorizontalArrow]:
        """Find straight horizontal arrows among unclaimed cells."""
        arrows = []
        for row in range(grid.height):
            cells = [
                ((row, col), None if (row, col) in claimed else grid.get(row, col))
                for col in range(grid.width)
            ]
            for run in self._runs(cells, HORIZONTAL_SHAFTS, (LEFT, RIGHT)):
                parsed = self._read_run(run, LEFT, RIGHT)
                if parsed is None:
                    continue
                start_tip, end_tip, inner = parsed
                arrow_type = classify_arrow(
                    "".join(inner), (start_tip or "") + (end_tip or "")
                )
                arrow = HorizontalArrow(
                    row=row,
                    start_col=run[0][0][1],
                    end_col=run[-1][0][1],
                    arrow_type=arrow_type,
                    rightward=end_tip is not None,
                    both_ends=start_tip is not None and end_tip is not None,
                    shaft_char=self._shaft_char(inner, arrow_type, vertical=False),
                    start_char=start_tip,
                    end_char=end_tip,
                )
                arrow.footprint = frozenset(arrow.cells())
                arrow.origin = arrow.geometry()
                arrows.append(arrow)
        return arrows

    def detect_vertical_arrows(
        self, grid: Grid, claimed: Set[Point], boxes: List[Box]
    ) -> List[VerticalArrow]:
        """
        Find straight vertical arrows among unclaimed cells.

        An arrow touching a junction glyph on a box border is anchored.
        """
        junctions = {cell for box in boxes for cell in box.junctions}
        arrows = []
        for col in range(grid.width):
            cells = [
                ((row, col), None if (row, col) in claimed else grid.get(row, col))
                for row in range(grid.height)
            ]
            for run in self._runs(cells, VERTICAL_SHAFTS, (UP, DOWN)):
                parsed = self._read_run(run, UP, DOWN)
                if parsed is None:
                    continue
                start_tip, end_tip, inner = parsed
                arrow_type = classify_arrow(
                    "".join(inner), (start_tip or "") + (end_tip or "")
                )
                start_row, end_row = run[0][0][0], run[-1][0][0]
                varrow = VerticalArrow(
                    col=col,
                    start_row=start_row,
                    end_row=end_row,
                    arrow_type=arrow_type,
                    downward=end_tip is not None,
                    both_ends=start_tip is not None and end_tip is not None,
                    shaft_char=self._shaft_char(inner, arrow_type, vertical=True),
                    start_char=start_tip,
                    end_char=end_tip,
                    anchored=(start_row - 1, col) in junctions
                    or (end_row + 1, col) in junctions,
                )
                varrow.footprint = frozenset(varrow.cells())
                varrow.origin = varrow.geometry()
                arrows.append(varrow)
        return arrows

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def _text_segments(self, grid: Grid, claimed: Set[Point]):
        """Yield (row, col, content) for free-standing text on the grid."""
        for row in range(grid.height):
            col = 0
            while col < grid.width:
                if not self._is_label_char(grid, claimed, row, col):
                    col += 1
                    continue
                start = col
                end = col
                while True:
                    if self._is_label_char(grid, claimed, row, end + 1):
                        end += 1
                    elif grid.get(row, end + 1) == " " and self._is_label_char(
                        grid, claimed, row, end + 2
                    ):
                        end += 2
                    else:
                        break
                yield row, start, grid.row_text(row)[start : end + 1]
                col = end + 1

    @staticmethod
    def _is_label_char(grid: Grid, claimed: Set[Point], row: int, col: int) -> bool:
        glyph = grid.get(row, col)
        return (
            glyph is not None
            and glyph != " "
            and glyph not in STRUCTURE_GLYPHS
            and (row, col) not in claimed
        )

    def detect_labels(
        self, grid: Grid, inventory: PrimitiveInventory, claimed: Set[Point]
    ) -> List[Label]:
        """
        Attach short free-standing text to the nearest primitive.

        Text longer than the configured limit, text with no primitive within
        reach, and text equally near two primitives stay residual.
        """
        owners: Dict[Point, Tuple[AttachmentKind, int]] = {}
        for idx, box in enumerate(inventory.boxes):
            for cell in box.footprint:
                owners.setdefault(cell, (AttachmentKind.BOX, idx))
        for idx, arrow in enumerate(inventory.horizontal_arrows):
            for cell in arrow.footprint:
                owners[cell] = (AttachmentKind.HORIZONTAL_ARROW, idx)
        for idx, varrow in enumerate(inventory.vertical_arrows):
            for cell in varrow.footprint:
                owners[cell] = (AttachmentKind.VERTICAL_ARROW, idx)
        for idx, line in enumerate(inventory.connection_lines):
            for cell in line.footprint:
                owners[cell] = (AttachmentKind.CONNECTION_LINE, idx)

        reach = self.config.label_distance
        labels = []
        for row, col, content in self._text_segments(grid, claimed):
            if len(content) > self.config.max_label_length:
                logger.debug("Text at %s is too long for a label", (row, col))
                continue
            best: Dict[Tuple[AttachmentKind, int], Tuple[int, int, Point, int]] = {}
            for i, char in enumerate(content):
                if char == " ":
                    continue
                for dr in range(-reach, reach + 1):
                    for dc in range(-reach, reach + 1):
                        owner = owners.get((row + dr, col + i + dc))
                        if owner is None:
                            continue
                        rank = (max(abs(dr), abs(dc)), abs(dr) + abs(dc))
                        candidate = (*rank, (row + dr, col + i + dc), i)
                        if owner not in best or candidate < best[owner]:
                            best[owner] = candidate
            if not best:
                continue
            nearest = min(entry[0] for entry in best.values())
            winners = [owner for owner, entry in best.items() if entry[0] == nearest]
            if len(winners) > 1:
                logger.debug("Label %r at %s is equally near %s", content, (row, col), winners)
                continue
            owner = winners[0]
            _, _, anchor_cell, near_index = best[owner]
            near = (row, col + near_index)
            attachment = self._attachment(inventory, owner, anchor_cell, near)
            anchor = inventory.anchor_of(attachment)
            label = Label(
                row=row,
                col=col,
                content=content,
                attachment=attachment,
                offset=(near[0] - anchor[0], near[1] - anchor[1]),
                near_index=near_index,
            )
            label.footprint = frozenset(label.cells())
            label.origin = label.geometry()
            labels.append(label)
        return labels

    @staticmethod
    def _attachment(
        inventory: PrimitiveInventory,
        owner: Tuple[AttachmentKind, int],
        anchor_cell: Point,
        near: Point,
    ) -> LabelAttachment:
        kind, idx = owner
        if kind == AttachmentKind.BOX:
            box = inventory.boxes[idx]
            row, col = near
            if col > box.right:
                return LabelAttachment(kind, idx, "right", row - box.top)
            if col < box.left:
                return LabelAttachment(kind, idx, "left", row - box.top)
            edge = "top" if row < box.top else "bottom"
            return LabelAttachment(kind, idx, edge, col - box.left)
        if kind == AttachmentKind.HORIZONTAL_ARROW:
            arrow = inventory.horizontal_arrows[idx]
            return LabelAttachment(kind, idx, "run", anchor_cell[1] - arrow.start_col)
        if kind == AttachmentKind.VERTICAL_ARROW:
            varrow = inventory.vertical_arrows[idx]
            return LabelAttachment(kind, idx, "run", anchor_cell[0] - varrow.start_row)
        points = inventory.connection_lines[idx].points()
        return LabelAttachment(kind, idx, "path", points.index(anchor_cell))
