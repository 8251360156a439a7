"""
Data models for diagram repair.

This module contains the dataclasses for every primitive the detector
recovers from a character grid, and the PrimitiveInventory that carries
them between pipeline stages. Coordinates are always (row, col), zero-based,
in grid cells.

Primitives reference each other by integer index into the inventory's
collections, never by object reference. Each primitive remembers where it
was detected (``origin`` and ``footprint``) so that the renderer can tell
which primitives the normalizer actually changed.

Classes:
    BoxStyle: Border glyph family of a box.
    ArrowType: Shaft/tip family of an arrow.
    AttachmentKind: What a label is attached to.
    Box: A closed rectangle of border glyphs.
    HorizontalArrow / VerticalArrow: Straight arrows with a tip.
    TextRow: Verbatim text inside a box.
    Segment / ConnectionLine: Multi-segment orthogonal connector paths.
    LabelAttachment / Label: Short text attached to a nearby primitive.
    PrimitiveInventory: The aggregate passed between stages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

Point = Tuple[int, int]


class BoxStyle(Enum):
    """Border glyph family of a box."""

    SINGLE = "single"
    DOUBLE = "double"
    ROUNDED = "rounded"


class ArrowType(Enum):
    """Classification of an arrow by its shaft and tip glyphs."""

    STANDARD = "standard"
    DOUBLE = "double"
    LONG = "long"
    DASHED = "dashed"


class AttachmentKind(Enum):
    """Kind of primitive a label is attached to."""

    BOX = "box"
    HORIZONTAL_ARROW = "horizontal_arrow"
    VERTICAL_ARROW = "vertical_arrow"
    CONNECTION_LINE = "connection_line"


@dataclass
class Box:
    """
    A rectangular box recovered from a closed border.

    Attributes:
        top_left: (row, col) of the top-left corner glyph.
        bottom_right: (row, col) of the bottom-right corner glyph.
        style: Border glyph family.
        parent_idx: Index of the immediately enclosing box, if any.
        child_indices: Sorted indices of directly enclosed boxes.
        depth: Nesting depth (0 for a root box).
        ragged_rows: Interior rows whose right border glyph sits to the
            right of the corner column, mapped to that glyph's column.
        junctions: Tee/cross glyphs found on the border, by cell.
        ambiguous: Overlaps another box without containment.
        frozen: Part of a hierarchy deeper than the recognised limit.
        footprint: Border cells as detected.
        origin: (top_left, bottom_right) as detected.
    """

    top_left: Point
    bottom_right: Point
    style: BoxStyle = BoxStyle.SINGLE
    parent_idx: Optional[int] = None
    child_indices: List[int] = field(default_factory=list)
    depth: int = 0
    ragged_rows: Dict[int, int] = field(default_factory=dict)
    junctions: Dict[Point, str] = field(default_factory=dict)
    ambiguous: bool = False
    frozen: bool = False
    footprint: FrozenSet[Point] = frozenset()
    origin: Optional[Tuple[Point, Point]] = None

    @property
    def top(self) -> int:
        return self.top_left[0]

    @property
    def left(self) -> int:
        return self.top_left[1]

    @property
    def bottom(self) -> int:
        return self.bottom_right[0]

    @property
    def right(self) -> int:
        return self.bottom_right[1]

    @property
    def width(self) -> int:
        """Number of columns, borders included."""
        return self.right - self.left + 1

    @property
    def height(self) -> int:
        """Number of rows, borders included."""
        return self.bottom - self.top + 1

    @property
    def center_col(self) -> int:
        return (self.left + self.right) // 2

    @property
    def origin_top(self) -> int:
        return self._origin()[0][0]

    @property
    def origin_left(self) -> int:
        return self._origin()[0][1]

    @property
    def origin_bottom(self) -> int:
        return self._origin()[1][0]

    @property
    def origin_right(self) -> int:
        return self._origin()[1][1]

    def origin_right_at(self, row: int) -> int:
        """Detected right border column on a row, honouring displaced borders."""
        return self.ragged_rows.get(row, self.origin_right)

    def _origin(self) -> Tuple[Point, Point]:
        return self.origin if self.origin is not None else self.geometry()

    def geometry(self) -> Tuple[Point, Point]:
        return (self.top_left, self.bottom_right)

    def is_dirty(self) -> bool:
        """True when the normalizer moved or resized this box."""
        return self.origin is not None and self.geometry() != self.origin

    def contains_interior(self, row: int, col: int) -> bool:
        """Check if a position is strictly inside the borders."""
        return self.top < row < self.bottom and self.left < col < self.right

    def contains(self, row: int, col: int) -> bool:
        """Check if a position is inside the rectangle, borders included."""
        return self.top <= row <= self.bottom and self.left <= col <= self.right

    def contains_box(self, other: "Box") -> bool:
        """Check if another box lies strictly inside this box's interior."""
        return (
            self.top < other.top
            and other.bottom < self.bottom
            and self.left < other.left
            and other.right < self.right
        )

    def overlaps(self, other: "Box") -> bool:
        """Check if the two rectangles share any cell."""
        return not (
            other.right < self.left
            or other.left > self.right
            or other.bottom < self.top
            or other.top > self.bottom
        )

    def border_cells(self) -> Set[Point]:
        """
        Cells occupied by the border at the current geometry.

        An unchanged box reports its detected footprint, which includes
        displaced (ragged) right border glyphs.
        """
        if not self.is_dirty() and self.footprint:
            return set(self.footprint)
        cells: Set[Point] = set()
        for col in range(self.left, self.right + 1):
            cells.add((self.top, col))
            cells.add((self.bottom, col))
        for row in range(self.top, self.bottom + 1):
            cells.add((row, self.left))
            cells.add((row, self.right))
        return cells

    def area_cells(self) -> Set[Point]:
        """Every cell of the rectangle, borders included."""
        return {
            (row, col)
            for row in range(self.top, self.bottom + 1)
            for col in range(self.left, self.right + 1)
        }

    def edge_of(self, cell: Point) -> Optional[str]:
        """Name the border edge a cell lies on ('top', 'bottom', 'left', 'right')."""
        row, col = cell
        if row == self.top and self.left <= col <= self.right:
            return "top"
        if row == self.bottom and self.left <= col <= self.right:
            return "bottom"
        if col == self.left and self.top <= row <= self.bottom:
            return "left"
        if col == self.right and self.top <= row <= self.bottom:
            return "right"
        if not self.is_dirty() and self.ragged_rows.get(row) == col:
            return "right"
        return None

    def has_junctions_on(self, edge: str) -> bool:
        """Check if any junction glyph sits on the named edge (corners excluded)."""
        for cell in self.junctions:
            if self.edge_of(cell) == edge and cell not in self.corner_cells():
                return True
        return False

    def corner_cells(self) -> Set[Point]:
        return {
            (self.top, self.left),
            (self.top, self.right),
            (self.bottom, self.left),
            (self.bottom, self.right),
        }

    def translate(self, drow: int, dcol: int) -> None:
        """Move the box and its junctions by (drow, dcol)."""
        self.top_left = (self.top + drow, self.left + dcol)
        self.bottom_right = (self.bottom + drow, self.right + dcol)
        self.junctions = {
            (row + drow, col + dcol): glyph
            for (row, col), glyph in self.junctions.items()
        }


@dataclass
class HorizontalArrow:
    """
    A straight horizontal arrow.

    Attributes:
        row: Row of the arrow.
        start_col: Leftmost column (inclusive).
        end_col: Rightmost column (inclusive).
        arrow_type: Shaft/tip classification.
        rightward: True when the tip is at the right end.
        both_ends: True for double-headed arrows.
        shaft_char: Glyph used for the shaft on redraw.
        start_char: Tip glyph at start_col, if any.
        end_char: Tip glyph at end_col, if any.
    """

    row: int
    start_col: int
    end_col: int
    arrow_type: ArrowType = ArrowType.STANDARD
    rightward: bool = True
    both_ends: bool = False
    shaft_char: str = "─"
    start_char: Optional[str] = None
    end_char: Optional[str] = None
    footprint: FrozenSet[Point] = frozenset()
    origin: Optional[Tuple[int, int, int]] = None

    @property
    def length(self) -> int:
        return self.end_col - self.start_col + 1

    @property
    def origin_start(self) -> int:
        return self.origin[1] if self.origin else self.start_col

    @property
    def origin_end(self) -> int:
        return self.origin[2] if self.origin else self.end_col

    @property
    def arrow_char(self) -> Optional[str]:
        """The primary tip glyph."""
        return self.end_char if self.rightward else self.start_char

    def geometry(self) -> Tuple[int, int, int]:
        return (self.row, self.start_col, self.end_col)

    def is_dirty(self) -> bool:
        return self.origin is not None and self.geometry() != self.origin

    def cells(self) -> Set[Point]:
        return {(self.row, col) for col in range(self.start_col, self.end_col + 1)}


@dataclass
class VerticalArrow:
    """
    A straight vertical arrow.

    Attributes:
        col: Column of the arrow.
        start_row: Topmost row (inclusive).
        end_row: Bottom row (inclusive).
        arrow_type: Shaft/tip classification.
        downward: True when the tip is at the bottom end.
        both_ends: True for double-headed arrows.
        shaft_char: Glyph used for the shaft on redraw.
        start_char: Tip glyph at start_row, if any.
        end_char: Tip glyph at end_row, if any.
        anchored: An end touches a junction glyph on a box border.
    """

    col: int
    start_row: int
    end_row: int
    arrow_type: ArrowType = ArrowType.STANDARD
    downward: bool = True
    both_ends: bool = False
    shaft_char: str = "│"
    start_char: Optional[str] = None
    end_char: Optional[str] = None
    anchored: bool = False
    footprint: FrozenSet[Point] = frozenset()
    origin: Optional[Tuple[int, int, int]] = None

    @property
    def length(self) -> int:
        return self.end_row - self.start_row + 1

    @property
    def origin_start(self) -> int:
        return self.origin[1] if self.origin else self.start_row

    @property
    def origin_end(self) -> int:
        return self.origin[2] if self.origin else self.end_row

    @property
    def origin_col(self) -> int:
        return self.origin[0] if self.origin else self.col

    @property
    def arrow_char(self) -> Optional[str]:
        """The primary tip glyph."""
        return self.end_char if self.downward else self.start_char

    def geometry(self) -> Tuple[int, int, int]:
        return (self.col, self.start_row, self.end_row)

    def is_dirty(self) -> bool:
        return self.origin is not None and self.geometry() != self.origin

    def cells(self) -> Set[Point]:
        return {(row, self.col) for row in range(self.start_row, self.end_row + 1)}


@dataclass
class TextRow:
    """
    A row of text inside a box, copied verbatim from the grid.

    The content never changes after detection; normalization may only move
    the anchor (row, start_col).
    """

    row: int
    start_col: int
    end_col: int  # Inclusive
    content: str
    box_idx: Optional[int] = None
    footprint: FrozenSet[Point] = frozenset()
    origin: Optional[Point] = None

    def geometry(self) -> Point:
        return (self.row, self.start_col)

    def is_dirty(self) -> bool:
        return self.origin is not None and self.geometry() != self.origin

    def cells(self) -> Set[Point]:
        return {(self.row, self.start_col + i) for i in range(len(self.content))}

    def move_to(self, row: int, start_col: int) -> None:
        self.row = row
        self.start_col = start_col
        self.end_col = start_col + len(self.content) - 1


@dataclass
class Segment:
    """An axis-aligned run of path cells, both ends inclusive."""

    start: Point
    end: Point

    @property
    def is_horizontal(self) -> bool:
        return self.start[0] == self.end[0]

    @property
    def length(self) -> int:
        return abs(self.end[0] - self.start[0]) + abs(self.end[1] - self.start[1]) + 1

    def points(self) -> List[Point]:
        """Cells of the segment from start to end."""
        (r0, c0), (r1, c1) = self.start, self.end
        dr = (r1 > r0) - (r1 < r0)
        dc = (c1 > c0) - (c1 < c0)
        cells = [(r0, c0)]
        while cells[-1] != (r1, c1):
            r, c = cells[-1]
            cells.append((r + dr, c + dc))
        return cells


@dataclass
class ConnectionLine:
    """
    An orthogonal connector path between (usually) two boxes.

    Consecutive segments share their turn cell. ``start_tip``/``end_tip``
    hold the arrowhead glyph at either end of the path, if present.
    ``start_dir``/``end_dir`` give the direction in which the path leaves
    through each end cell; an end cell drawn as a corner turns toward the
    box it attaches to.
    """

    segments: List[Segment] = field(default_factory=list)
    from_box: Optional[int] = None
    to_box: Optional[int] = None
    start_tip: Optional[str] = None
    end_tip: Optional[str] = None
    start_dir: Tuple[int, int] = (0, -1)
    end_dir: Tuple[int, int] = (0, 1)
    footprint: FrozenSet[Point] = frozenset()
    origin: Optional[Tuple[Tuple[Point, Point], ...]] = None

    def geometry(self) -> Tuple[Tuple[Point, Point], ...]:
        return tuple((seg.start, seg.end) for seg in self.segments)

    def is_dirty(self) -> bool:
        return self.origin is not None and self.geometry() != self.origin

    def points(self) -> List[Point]:
        """Ordered path cells from the start endpoint to the end endpoint."""
        cells: List[Point] = []
        for seg in self.segments:
            seg_points = seg.points()
            if cells and seg_points[0] == cells[-1]:
                seg_points = seg_points[1:]
            cells.extend(seg_points)
        return cells

    def cells(self) -> Set[Point]:
        return set(self.points())

    @property
    def start_point(self) -> Point:
        return self.segments[0].start

    @property
    def end_point(self) -> Point:
        return self.segments[-1].end


@dataclass(frozen=True)
class LabelAttachment:
    """
    Reference from a label to the primitive it annotates.

    Attributes:
        kind: Which collection ``index`` points into.
        index: Index into that collection.
        edge: Where on the primitive the anchor sits ('top', 'bottom',
            'left', 'right' for boxes; 'run' for arrows; 'path' for lines).
        along: Anchor distance along that edge from its first cell.
    """

    kind: AttachmentKind
    index: int
    edge: str = "run"
    along: int = 0


@dataclass
class Label:
    """
    Short free-standing text attached to a nearby primitive.

    ``offset`` is measured from the attachment's anchor cell to the label
    cell nearest that anchor, whose index in the content is ``near_index``.
    """

    row: int
    col: int
    content: str
    attachment: LabelAttachment
    offset: Point = (0, 0)
    near_index: int = 0
    footprint: FrozenSet[Point] = frozenset()
    origin: Optional[Point] = None

    def geometry(self) -> Point:
        return (self.row, self.col)

    def is_dirty(self) -> bool:
        return self.origin is not None and self.geometry() != self.origin

    def cells(self) -> Set[Point]:
        return {(self.row, self.col + i) for i in range(len(self.content))}


@dataclass
class PrimitiveInventory:
    """
    Everything the detector recovered from one diagram block.

    Attributes:
        boxes: Boxes sorted by depth, then top-left, then scan order.
        horizontal_arrows: Horizontal arrows in scan order.
        vertical_arrows: Vertical arrows in scan order.
        text_rows: Text rows inside boxes.
        connection_lines: Multi-segment connectors.
        labels: Attached labels.
        residual: Non-blank cells that belong to no primitive. Nothing may
            be drawn over them.
        width: Width of the source grid.
        height: Height of the source grid.
    """

    boxes: List[Box] = field(default_factory=list)
    horizontal_arrows: List[HorizontalArrow] = field(default_factory=list)
    vertical_arrows: List[VerticalArrow] = field(default_factory=list)
    text_rows: List[TextRow] = field(default_factory=list)
    connection_lines: List[ConnectionLine] = field(default_factory=list)
    labels: List[Label] = field(default_factory=list)
    residual: FrozenSet[Point] = frozenset()
    width: int = 0
    height: int = 0

    def is_empty(self) -> bool:
        """True when no primitive of any kind was recovered."""
        return not (
            self.boxes
            or self.horizontal_arrows
            or self.vertical_arrows
            or self.text_rows
            or self.connection_lines
            or self.labels
        )

    def counts(self) -> Dict[str, int]:
        """Number of primitives per collection, for tracing."""
        return {
            "boxes": len(self.boxes),
            "horizontal_arrows": len(self.horizontal_arrows),
            "vertical_arrows": len(self.vertical_arrows),
            "text_rows": len(self.text_rows),
            "connection_lines": len(self.connection_lines),
            "labels": len(self.labels),
            "residual_cells": len(self.residual),
        }

    def text_rows_of(self, box_idx: int) -> List[TextRow]:
        return [t for t in self.text_rows if t.box_idx == box_idx]

    def descendants(self, box_idx: int) -> List[int]:
        """Indices of every box nested (at any depth) inside a box."""
        found: List[int] = []
        stack = list(self.boxes[box_idx].child_indices)
        while stack:
            idx = stack.pop()
            found.append(idx)
            stack.extend(self.boxes[idx].child_indices)
        return sorted(found)

    def ancestors(self, box_idx: int) -> List[int]:
        """Indices of enclosing boxes, innermost first."""
        chain: List[int] = []
        parent = self.boxes[box_idx].parent_idx
        while parent is not None:
            chain.append(parent)
            parent = self.boxes[parent].parent_idx
        return chain

    def iter_primitives(self) -> Iterator[Tuple[str, int, object]]:
        """Yield (kind, index, primitive) for every primitive."""
        for idx, item in enumerate(self.boxes):
            yield "box", idx, item
        for idx, item in enumerate(self.text_rows):
            yield "text", idx, item
        for idx, item in enumerate(self.horizontal_arrows):
            yield "harrow", idx, item
        for idx, item in enumerate(self.vertical_arrows):
            yield "varrow", idx, item
        for idx, item in enumerate(self.connection_lines):
            yield "conn", idx, item
        for idx, item in enumerate(self.labels):
            yield "label", idx, item

    def extent(self) -> Tuple[int, int]:
        """(height, width) needed to draw every primitive at its current place."""
        height, width = self.height, self.width
        for kind, _, item in self.iter_primitives():
            cells = item.border_cells() if kind == "box" else item.cells()
            for row, col in cells:
                height = max(height, row + 1)
                width = max(width, col + 1)
        return height, width

    def anchor_of(self, attachment: LabelAttachment) -> Optional[Point]:
        """
        Current anchor cell of a label attachment.

        Returns None when the attachment no longer resolves.
        """
        kind, idx, along = attachment.kind, attachment.index, attachment.along
        if kind == AttachmentKind.BOX:
            if not 0 <= idx < len(self.boxes):
                return None
            box = self.boxes[idx]
            if attachment.edge in ("top", "bottom"):
                row = box.top if attachment.edge == "top" else box.bottom
                return (row, box.left + min(max(along, 0), box.width - 1))
            row = box.top + min(max(along, 0), box.height - 1)
            if attachment.edge == "left":
                return (row, box.left)
            if box.is_dirty():
                return (row, box.right)
            return (row, box.ragged_rows.get(row, box.right))
        if kind == AttachmentKind.HORIZONTAL_ARROW:
            if not 0 <= idx < len(self.horizontal_arrows):
                return None
            arrow = self.horizontal_arrows[idx]
            return (arrow.row, arrow.start_col + min(max(along, 0), arrow.length - 1))
        if kind == AttachmentKind.VERTICAL_ARROW:
            if not 0 <= idx < len(self.vertical_arrows):
                return None
            varrow = self.vertical_arrows[idx]
            return (varrow.start_row + min(max(along, 0), varrow.length - 1), varrow.col)
        if not 0 <= idx < len(self.connection_lines):
            return None
        points = self.connection_lines[idx].points()
        return points[min(max(along, 0), len(points) - 1)]

    def label_position(self, label: Label) -> Optional[Point]:
        """Where a label belongs given its attachment's current geometry."""
        anchor = self.anchor_of(label.attachment)
        if anchor is None:
            return None
        return (
            anchor[0] + label.offset[0],
            anchor[1] + label.offset[1] - label.near_index,
        )
