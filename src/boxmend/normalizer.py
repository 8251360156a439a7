"""
Geometry normalization for diagram repair.

The Normalizer takes a PrimitiveInventory and returns a repaired copy by
running a fixed sequence of passes:

1. Box width expansion
2. Side-by-side balancing
3. Nested-box expansion
4. Horizontal arrow alignment
5. Vertical arrow alignment
6. Connection-line normalization
7. Label repositioning
8. Interior padding

Boxes only ever grow, and only to the right or downward. Before anything
moves, the cells it would take over are checked against an OccupancyGrid;
a change that would collide with another primitive or with unrecognised
content is skipped, never forced.
"""

import copy
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import networkx as nx

from .config import RepairConfig
from .glyphs import step
from .models import AttachmentKind, Box, Point, PrimitiveInventory
from .occupancy import CellType, OccupancyGrid, Owner
from .paths import segments_from_points
from .tracer import diff_geometry, snapshot_geometry

logger = logging.getLogger(__name__)

# Planned (right, bottom) per box index
GrowthPlan = Dict[int, Tuple[int, int]]


def _rect(top: int, left: int, bottom: int, right: int) -> Set[Point]:
    return {
        (row, col) for row in range(top, bottom + 1) for col in range(left, right + 1)
    }


def _line(a: Point, b: Point) -> List[Point]:
    """Cells of an axis-aligned line from a to b, both inclusive."""
    dr = (b[0] > a[0]) - (b[0] < a[0])
    dc = (b[1] > a[1]) - (b[1] < a[1])
    cells = [a]
    while cells[-1] != b:
        cells.append((cells[-1][0] + dr, cells[-1][1] + dc))
    return cells


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


class Normalizer:
    """
    Repairs the geometry of a PrimitiveInventory.

    Each pass is idempotent on its own; ``run`` applies them in order to a
    deep copy of the input, which is left untouched.

    Usage:
        >>> normalizer = Normalizer()
        >>> repaired = normalizer.run(inventory)
    """

    def __init__(self, config: Optional[RepairConfig] = None):
        self.config = config or RepairConfig()

    def passes(self) -> List[Tuple[str, Callable[[PrimitiveInventory], None]]]:
        """The ordered (name, pass) list."""
        return [
            ("box_widths", self.expand_box_widths),
            ("side_by_side", self.balance_side_by_side),
            ("nested_boxes", self.expand_nested_boxes),
            ("horizontal_arrows", self.align_horizontal_arrows),
            ("vertical_arrows", self.align_vertical_arrows),
            ("connection_lines", self.normalize_connections),
            ("labels", self.reposition_labels),
            ("padding", self.normalize_padding),
        ]

    def run(self, inventory: PrimitiveInventory, trace=None) -> PrimitiveInventory:
        """
        Apply every pass, in order, to a copy of the inventory.

        Args:
            inventory: Detected primitives
            trace: Optional RepairTrace receiving one stage per pass, listing
                the primitives that pass changed

        Returns:
            The normalized inventory
        """
        result = copy.deepcopy(inventory)
        for name, apply_pass in self.passes():
            before = snapshot_geometry(result) if trace is not None else None
            apply_pass(result)
            if trace is not None:
                trace.add_stage(name, result.counts(), changes=diff_geometry(before, result))
        return result

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _locked(self, box: Box) -> bool:
        return box.frozen or box.ambiguous

    @staticmethod
    def _ragged_columns(box: Box) -> List[int]:
        """Displaced right border columns, following the box if it was moved."""
        dcol = box.left - box.origin_left
        return [col + dcol for col in box.ragged_rows.values()]

    def _text_owners(self, inv: PrimitiveInventory, idx: int) -> Set[Owner]:
        return {
            (CellType.TEXT, t)
            for t, text in enumerate(inv.text_rows)
            if text.box_idx == idx
        }

    def _plan_growth(
        self,
        inv: PrimitiveInventory,
        occ: OccupancyGrid,
        idx: int,
        new_right: int,
        new_bottom: int,
        plan: Optional[GrowthPlan] = None,
    ) -> Optional[GrowthPlan]:
        """
        Plan growing a box to (new_right, new_bottom), growing ancestors as needed.

        Returns the combined plan, or None when any box involved cannot
        grow without collision.
        """
        plan = dict(plan or {})
        box = inv.boxes[idx]
        cur_right, cur_bottom = plan.get(idx, (box.right, box.bottom))
        new_right = max(new_right, cur_right)
        new_bottom = max(new_bottom, cur_bottom)
        if (new_right, new_bottom) == (cur_right, cur_bottom):
            return plan
        new_right = max([new_right, *self._ragged_columns(box)])
        if self._locked(box):
            return None
        if new_right > box.right and box.has_junctions_on("right"):
            logger.debug("Box %d has junctions on its right edge; not widening", idx)
            return None
        if new_bottom > box.bottom and box.has_junctions_on("bottom"):
            logger.debug("Box %d has junctions on its bottom edge; not heightening", idx)
            return None

        allowed = {(CellType.BOX, idx)} | self._text_owners(inv, idx)
        allowed |= {(CellType.BOX, a) for a in inv.ancestors(idx)}
        new_area = _rect(box.top, box.left, new_bottom, new_right) - _rect(
            box.top, box.left, cur_bottom, cur_right
        )
        followers = self._edge_followers(inv, idx, new_right)
        if followers is None:
            logger.debug("Box %d cannot grow: an attached arrow cannot follow", idx)
            return None
        for owner, cells in followers.items():
            allowed.add(owner)
            new_area |= cells
        blockers = occ.blockers(new_area, allowed)
        if blockers:
            logger.debug("Box %d cannot grow: blocked by %s", idx, sorted(blockers, key=str))
            return None
        plan[idx] = (new_right, new_bottom)

        if box.parent_idx is not None:
            parent = inv.boxes[box.parent_idx]
            p_right, p_bottom = plan.get(box.parent_idx, (parent.right, parent.bottom))
            need_right = new_right + 2 if new_right > cur_right else p_right
            need_bottom = new_bottom + 2 if new_bottom > cur_bottom else p_bottom
            if need_right > p_right or need_bottom > p_bottom:
                return self._plan_growth(
                    inv, occ, box.parent_idx, need_right, need_bottom, plan
                )
        return plan

    def _apply_growth(self, inv: PrimitiveInventory, plan: GrowthPlan) -> None:
        for idx, (right, bottom) in plan.items():
            box = inv.boxes[idx]
            self._move_followers(inv, self._edge_followers(inv, idx, right) or {})
            box.bottom_right = (bottom, right)

    def _edge_followers(
        self, inv: PrimitiveInventory, idx: int, new_right: int
    ) -> Optional[Dict[Owner, Set[Point]]]:
        """
        Arrows and labels beside a box's right edge that move when it widens.

        Maps each follower to the cells it moves to. Returns None when
        an arrow stretched between two boxes would become too short.
        """
        box = inv.boxes[idx]
        followers: Dict[Owner, Set[Point]] = {}
        if new_right <= box.right:
            return followers
        for i, arrow in enumerate(inv.horizontal_arrows):
            left, _ = self._arrow_attachments(inv, i)
            if left is None or left[0] != idx:
                continue
            start, end = self.arrow_span(inv, i, {idx: new_right})
            if (start, end) == (arrow.start_col, arrow.end_col):
                continue
            if end - start + 1 < min(arrow.length, 2):
                return None
            owner = (CellType.HORIZONTAL_ARROW, i)
            followers[owner] = {(arrow.row, col) for col in range(start, end + 1)}
        for i, label in enumerate(inv.labels):
            attachment = label.attachment
            if (
                attachment.kind != AttachmentKind.BOX
                or attachment.index != idx
                or attachment.edge != "right"
            ):
                continue
            anchor = inv.anchor_of(attachment)
            if anchor is None:
                continue
            row = anchor[0] + label.offset[0]
            col = new_right + label.offset[1] - label.near_index
            if (row, col) == label.geometry():
                continue
            owner = (CellType.LABEL, i)
            followers[owner] = {(row, col + k) for k in range(len(label.content))}
        return followers

    @staticmethod
    def _move_followers(
        inv: PrimitiveInventory, followers: Dict[Owner, Set[Point]]
    ) -> None:
        for (kind, i), cells in followers.items():
            row = min(cells)[0]
            col = min(col for _, col in cells)
            if kind == CellType.HORIZONTAL_ARROW:
                arrow = inv.horizontal_arrows[i]
                arrow.start_col, arrow.end_col = col, max(c for _, c in cells)
            else:
                label = inv.labels[i]
                label.row, label.col = row, col

    def _subtree(self, inv: PrimitiveInventory, idx: int) -> Dict[str, List[int]]:
        """Every primitive that moves together with a box."""
        box = inv.boxes[idx]
        boxes = [idx] + inv.descendants(idx)

        def inside(cells):
            return all(box.contains_interior(*cell) for cell in cells)

        return {
            "box": boxes,
            "text": [t for t, text in enumerate(inv.text_rows) if text.box_idx in boxes],
            "harrow": [
                i for i, arrow in enumerate(inv.horizontal_arrows) if inside(arrow.cells())
            ],
            "varrow": [
                i for i, varrow in enumerate(inv.vertical_arrows) if inside(varrow.cells())
            ],
            "conn": [
                i for i, line in enumerate(inv.connection_lines) if inside(line.cells())
            ],
            "label": [i for i, label in enumerate(inv.labels) if inside(label.cells())],
        }

    @staticmethod
    def _owners(subtree: Dict[str, List[int]]) -> Set[Owner]:
        kinds = {
            "box": CellType.BOX,
            "text": CellType.TEXT,
            "harrow": CellType.HORIZONTAL_ARROW,
            "varrow": CellType.VERTICAL_ARROW,
            "conn": CellType.CONNECTION,
            "label": CellType.LABEL,
        }
        return {(kinds[kind], i) for kind, items in subtree.items() for i in items}

    def _can_move(
        self,
        inv: PrimitiveInventory,
        idx: int,
        subtree: Dict[str, List[int]],
        drow: int,
    ) -> bool:
        """Check that a box can be translated without detaching anything."""
        box = inv.boxes[idx]
        if self._locked(box) or any(self._locked(inv.boxes[b]) for b in subtree["box"]):
            return False
        if box.junctions:
            logger.debug("Box %d has junctions; not moving it", idx)
            return False
        if any(
            col > inv.boxes[b].right
            for b in subtree["box"]
            for col in self._ragged_columns(inv.boxes[b])
        ):
            logger.debug("Box %d has text past its right border; not moving it", idx)
            return False
        if any(box.contains(*cell) for cell in inv.residual):
            logger.debug("Box %d holds unrecognised content; not moving it", idx)
            return False
        members = set(subtree["box"])
        for i, line in enumerate(inv.connection_lines):
            if i in subtree["conn"]:
                continue
            if line.from_box in members or line.to_box in members:
                logger.debug("Box %d has an attached connection; not moving it", idx)
                return False
        tolerance = self.config.snap_tolerance
        for i, varrow in enumerate(inv.vertical_arrows):
            if i in subtree["varrow"] or not box.left <= varrow.col <= box.right:
                continue
            if 0 <= varrow.start_row - box.bottom - 1 <= tolerance or (
                0 <= box.top - varrow.end_row - 1 <= tolerance
            ):
                logger.debug("Box %d has an attached vertical arrow; not moving it", idx)
                return False
        if drow:
            for i, arrow in enumerate(inv.horizontal_arrows):
                if i in subtree["harrow"] or not box.top < arrow.row < box.bottom:
                    continue
                if 0 <= arrow.start_col - box.right - 1 <= tolerance or (
                    0 <= box.left - arrow.end_col - 1 <= tolerance
                ):
                    logger.debug("Box %d has an attached arrow; not moving it", idx)
                    return False
        return True

    @staticmethod
    def _shifted_cells(
        inv: PrimitiveInventory,
        idx: int,
        subtree: Dict[str, List[int]],
        drow: int,
        dcol: int,
    ) -> Set[Point]:
        """Cells a subtree would cover after translation, root interior included."""
        box = inv.boxes[idx]
        cells = _rect(box.top + drow, box.left + dcol, box.bottom + drow, box.right + dcol)
        for kind, items in subtree.items():
            for i in items:
                if kind == "text":
                    moved = inv.text_rows[i].cells()
                elif kind == "harrow":
                    moved = inv.horizontal_arrows[i].cells()
                elif kind == "varrow":
                    moved = inv.vertical_arrows[i].cells()
                elif kind == "conn":
                    moved = inv.connection_lines[i].cells()
                elif kind == "label":
                    moved = inv.labels[i].cells()
                else:
                    continue
                cells.update((row + drow, col + dcol) for row, col in moved)
        return cells

    @staticmethod
    def _translate(
        inv: PrimitiveInventory, subtree: Dict[str, List[int]], drow: int, dcol: int
    ) -> None:
        for b in subtree["box"]:
            inv.boxes[b].translate(drow, dcol)
        for t in subtree["text"]:
            text = inv.text_rows[t]
            text.move_to(text.row + drow, text.start_col + dcol)
        for i in subtree["harrow"]:
            arrow = inv.horizontal_arrows[i]
            arrow.row += drow
            arrow.start_col += dcol
            arrow.end_col += dcol
        for i in subtree["varrow"]:
            varrow = inv.vertical_arrows[i]
            varrow.col += dcol
            varrow.start_row += drow
            varrow.end_row += drow
        for i in subtree["conn"]:
            line = inv.connection_lines[i]
            line.segments = segments_from_points(
                [(row + drow, col + dcol) for row, col in line.points()]
            )
        for i in subtree["label"]:
            label = inv.labels[i]
            label.row += drow
            label.col += dcol

    # ------------------------------------------------------------------
    # Pass 1: box width expansion
    # ------------------------------------------------------------------

    def required_right(self, inv: PrimitiveInventory, idx: int) -> int:
        """
        Rightmost border column a box needs for its text.

        A box is padded when any of its rows has a leading space; padded
        boxes keep ``padding`` blank columns on both sides of their text.
        Displaced right borders count until the box has grown past them.
        """
        box = inv.boxes[idx]
        rows = inv.text_rows_of(idx)
        ragged = self._ragged_columns(box)
        if not rows:
            return max([box.right, *ragged])
        leads = [text.start_col - box.left - 1 for text in rows]
        padded = any(lead >= 1 for lead in leads)
        pad = self.config.padding if padded else 0
        interior = max(
            (max(lead, pad) if padded else lead) + len(text.content)
            for lead, text in zip(leads, rows)
        ) + pad
        return max([box.left + interior + 1, *ragged])

    def expand_box_widths(self, inv: PrimitiveInventory) -> None:
        """Widen every box whose text does not fit, moving only its right edge."""
        for idx, box in enumerate(inv.boxes):
            if self._locked(box):
                continue
            required = self.required_right(inv, idx)
            if required <= box.right:
                continue
            occ = OccupancyGrid.from_inventory(inv)
            plan = self._plan_growth(inv, occ, idx, required, box.bottom)
            if plan is None:
                logger.debug("Skipping width expansion of box %d", idx)
                continue
            self._apply_growth(inv, plan)

    # ------------------------------------------------------------------
    # Pass 2: side-by-side balancing
    # ------------------------------------------------------------------

    def side_by_side_groups(self, inv: PrimitiveInventory) -> List[List[int]]:
        """
        Groups of sibling boxes sharing rows with at most ``group_gap`` columns between them.

        Each group is sorted left to right.
        """
        graph = nx.Graph()
        candidates = [i for i, box in enumerate(inv.boxes) if not self._locked(box)]
        graph.add_nodes_from(candidates)
        for n, i in enumerate(candidates):
            for j in candidates[n + 1 :]:
                a, b = inv.boxes[i], inv.boxes[j]
                if a.parent_idx != b.parent_idx:
                    continue
                if a.bottom < b.top or b.bottom < a.top:
                    continue
                first, second = (a, b) if a.left <= b.left else (b, a)
                gap = second.left - first.right - 1
                if 0 <= gap <= self.config.group_gap:
                    graph.add_edge(i, j)
        groups = []
        for component in nx.connected_components(graph):
            if len(component) > 1:
                groups.append(
                    sorted(component, key=lambda i: (inv.boxes[i].left, inv.boxes[i].top, i))
                )
        return sorted(groups, key=min)

    def balance_side_by_side(self, inv: PrimitiveInventory) -> None:
        """Widen every box of a side-by-side group to the group's widest member."""
        for group in self.side_by_side_groups(inv):
            self._balance_group(inv, group)

    def _balance_group(self, inv: PrimitiveInventory, group: List[int]) -> None:
        boxes = [inv.boxes[i] for i in group]
        if len({box.style for box in boxes}) > 1:
            logger.debug("Side-by-side group %s mixes box styles; skipping", group)
            return
        needed = {
            i: max(inv.boxes[i].width, self.required_right(inv, i) - inv.boxes[i].left + 1)
            for i in group
        }
        target = max(needed.values())
        if target > self.config.max_group_width:
            logger.debug("Side-by-side group %s is too wide; skipping", group)
            return
        if all(box.width == target for box in boxes):
            return

        growth = {i: target - inv.boxes[i].width for i in group}
        shift: Dict[int, int] = {}
        for i in group:
            box = inv.boxes[i]
            shift[i] = max(
                [
                    shift[j] + growth[j]
                    for j in shift
                    if inv.boxes[j].right < box.left
                    and not (inv.boxes[j].bottom < box.top or box.bottom < inv.boxes[j].top)
                ]
                or [0]
            )

        occ = OccupancyGrid.from_inventory(inv)
        subtrees = {i: self._subtree(inv, i) for i in group}
        allowed: Set[Owner] = set()
        for i in group:
            allowed |= self._owners(subtrees[i])
        region: Set[Point] = set()
        followers: Dict[Owner, Set[Point]] = {}
        for i in group:
            box = inv.boxes[i]
            if growth[i] and box.has_junctions_on("right"):
                logger.debug("Box %d has junctions on its right edge; skipping group", i)
                return
            if shift[i] and not self._can_move(inv, i, subtrees[i], 0):
                return
            if any(
                line.from_box == i or line.to_box == i for line in inv.connection_lines
            ) and (shift[i] or growth[i]):
                logger.debug("Box %d has an attached connection; skipping group", i)
                return
            moved = self._edge_followers(inv, i, box.right + shift[i] + growth[i])
            if moved is None:
                logger.debug("Box %d has an arrow that cannot follow; skipping group", i)
                return
            followers.update(moved)
            region |= self._shifted_cells(inv, i, subtrees[i], 0, shift[i])
            region |= _rect(
                box.top,
                box.right + shift[i],
                box.bottom,
                box.right + shift[i] + growth[i],
            )
        for owner, cells in followers.items():
            allowed.add(owner)
            region |= cells

        plan: Optional[GrowthPlan] = {}
        parent_idx = boxes[0].parent_idx
        if parent_idx is not None:
            parent = inv.boxes[parent_idx]
            new_right = max(inv.boxes[i].right + shift[i] + growth[i] for i in group)
            old_right = max(box.right for box in boxes)
            if new_right > old_right and new_right + 2 > parent.right:
                plan = self._plan_growth(inv, occ, parent_idx, new_right + 2, parent.bottom)
                if plan is None:
                    logger.debug("Parent of group %s cannot grow; skipping", group)
                    return
                allowed |= {(CellType.BOX, p) for p in plan}

        blockers = occ.blockers(region, allowed)
        if blockers:
            logger.debug("Side-by-side group %s blocked by %s", group, sorted(blockers, key=str))
            return

        self._apply_growth(inv, plan)
        self._move_followers(inv, followers)
        for i in group:
            box = inv.boxes[i]
            centred = self._centred_rows(inv, i)
            if shift[i]:
                self._translate(inv, subtrees[i], 0, shift[i])
            box.bottom_right = (box.bottom, box.right + growth[i])
            self._recentre(inv, i, centred)

    def _centred_rows(self, inv: PrimitiveInventory, idx: int) -> List[int]:
        """Text rows of a box whose leading and trailing blanks differ by at most one."""
        box = inv.boxes[idx]
        return [
            t
            for t, text in enumerate(inv.text_rows)
            if text.box_idx == idx
            and abs((text.start_col - box.left - 1) - (box.right - 1 - text.end_col)) <= 1
        ]

    def _recentre(self, inv: PrimitiveInventory, idx: int, centred: List[int]) -> None:
        """
        Centre the given rows in a widened box.

        A flush box is only centred when every one of its rows was centred
        and would get at least ``padding`` blank columns on each side;
        otherwise it keeps its text against the left border.
        """
        box = inv.boxes[idx]
        rows = [(t, inv.text_rows[t]) for t, text in enumerate(inv.text_rows) if text.box_idx == idx]
        interior = box.width - 2
        leads = {t: (interior - len(inv.text_rows[t].content)) // 2 for t in centred}
        padded = any(text.start_col - box.left - 1 >= 1 for _, text in rows)
        if not padded and (
            len(centred) < len(rows) or any(lead < self.config.padding for lead in leads.values())
        ):
            return
        for t, lead in leads.items():
            text = inv.text_rows[t]
            text.move_to(text.row, box.left + 1 + lead)

    # ------------------------------------------------------------------
    # Pass 3: nested-box expansion
    # ------------------------------------------------------------------

    def expand_nested_boxes(self, inv: PrimitiveInventory) -> None:
        """
        Give every child box at least one blank cell of margin inside its parent.

        Parents are processed deepest first. Right and bottom margins come
        from growing the parent; left and top margins from moving the child.
        """
        parents = sorted(
            (i for i, box in enumerate(inv.boxes) if box.child_indices),
            key=lambda i: (-inv.boxes[i].depth, i),
        )
        for p in parents:
            parent = inv.boxes[p]
            if self._locked(parent):
                continue
            for c in parent.child_indices:
                self._shift_child_into_margin(inv, p, c)
            children = [inv.boxes[c] for c in parent.child_indices]
            need_right = max(child.right for child in children) + 2
            need_bottom = max(child.bottom for child in children) + 2
            if need_right <= parent.right and need_bottom <= parent.bottom:
                continue
            occ = OccupancyGrid.from_inventory(inv)
            plan = self._plan_growth(inv, occ, p, need_right, need_bottom)
            if plan is None:
                logger.debug("Skipping nested expansion of box %d", p)
                continue
            self._apply_growth(inv, plan)

    def _shift_child_into_margin(self, inv: PrimitiveInventory, p: int, c: int) -> None:
        parent, child = inv.boxes[p], inv.boxes[c]
        dcol = max(0, parent.left + 2 - child.left)
        drow = max(0, parent.top + 2 - child.top)
        if not (dcol or drow):
            return
        subtree = self._subtree(inv, c)
        if not self._can_move(inv, c, subtree, drow):
            return
        occ = OccupancyGrid.from_inventory(inv)
        allowed = self._owners(subtree) | {(CellType.BOX, a) for a in inv.ancestors(c)}
        if not occ.region_free(self._shifted_cells(inv, c, subtree, drow, dcol), allowed):
            logger.debug("No room to move box %d inside box %d", c, p)
            return
        need_right = max(parent.right, child.right + dcol + 2)
        need_bottom = max(parent.bottom, child.bottom + drow + 2)
        plan = self._plan_growth(inv, occ, p, need_right, need_bottom)
        if plan is None:
            logger.debug("Box %d cannot grow to make room for box %d", p, c)
            return
        self._apply_growth(inv, plan)
        self._translate(inv, subtree, drow, dcol)

    # ------------------------------------------------------------------
    # Pass 4: horizontal arrows
    # ------------------------------------------------------------------

    def _adjacent_box(
        self, inv: PrimitiveInventory, origin_gap: Callable[[Box], int], on_line: Callable[[Box], bool]
    ) -> Optional[Tuple[int, int]]:
        """Nearest box whose detected edge lies within snapping distance, as (idx, gap)."""
        best = None
        for idx, box in enumerate(inv.boxes):
            if box.ambiguous or not on_line(box):
                continue
            gap = origin_gap(box)
            if 0 <= gap <= self.config.snap_tolerance and (best is None or gap < best[1]):
                best = (idx, gap)
        return best

    def _arrow_attachments(
        self, inv: PrimitiveInventory, i: int
    ) -> Tuple[Optional[Tuple[int, int]], Optional[Tuple[int, int]]]:
        """Boxes an arrow's tail and head were detected beside, as (idx, gap) each."""
        arrow = inv.horizontal_arrows[i]
        row = arrow.origin[0] if arrow.origin else arrow.row
        left = self._adjacent_box(
            inv,
            lambda box: arrow.origin_start - box.origin_right_at(row) - 1,
            lambda box: box.origin_top < row < box.origin_bottom,
        )
        right = self._adjacent_box(
            inv,
            lambda box: box.origin_left - arrow.origin_end - 1,
            lambda box: box.origin_top < row < box.origin_bottom,
        )
        return left, right

    def arrow_span(
        self, inv: PrimitiveInventory, i: int, rights: Optional[Dict[int, int]] = None
    ) -> Tuple[int, int]:
        """
        Columns a horizontal arrow should cover given the current box edges.

        An arrow attached at one end moves with that box and keeps its
        length; one attached at both ends stretches between them.
        ``rights`` overrides the right column of the given boxes.
        """
        rights = rights or {}
        arrow = inv.horizontal_arrows[i]
        left, right = self._arrow_attachments(inv, i)
        start, end = arrow.start_col, arrow.end_col
        new_start = new_end = None
        if left is not None and inv.boxes[left[0]].top < arrow.row < inv.boxes[left[0]].bottom:
            new_start = rights.get(left[0], inv.boxes[left[0]].right) + 1 + left[1]
        if right is not None and inv.boxes[right[0]].top < arrow.row < inv.boxes[right[0]].bottom:
            new_end = inv.boxes[right[0]].left - 1 - right[1]
        if new_start is None and new_end is None:
            return start, end
        if new_start is None:
            new_start = start + new_end - end
        if new_end is None:
            new_end = end + new_start - start
        return new_start, new_end

    def align_horizontal_arrows(self, inv: PrimitiveInventory) -> None:
        """Keep each horizontal arrow at its original distance from the boxes it touches."""
        arrows = inv.horizontal_arrows
        for i in sorted(range(len(arrows)), key=lambda i: (arrows[i].row, arrows[i].start_col, i)):
            arrow = arrows[i]
            start, end = self.arrow_span(inv, i)
            if (start, end) == (arrow.start_col, arrow.end_col):
                continue
            if end - start + 1 < min(arrow.length, 2):
                logger.debug("Arrow %d would become too short; leaving it", i)
                continue
            occ = OccupancyGrid.from_inventory(inv)
            cells = {(arrow.row, col) for col in range(start, end + 1)}
            if not occ.region_free(cells, {(CellType.HORIZONTAL_ARROW, i)}):
                logger.debug("Arrow %d cannot follow its boxes; leaving it", i)
                continue
            arrow.start_col, arrow.end_col = start, end

    # ------------------------------------------------------------------
    # Pass 5: vertical arrows
    # ------------------------------------------------------------------

    def snap_column(self, box: Box, col: int) -> Optional[int]:
        """
        Column among {left, centre, right} of a box nearest to ``col``.

        Ties go to the centre. Returns None when the arrow is already on one
        of them or too far from all of them.
        """
        best = None
        for candidate in (box.center_col, box.left, box.right):
            distance = abs(candidate - col)
            if best is None or distance < best[0]:
                best = (distance, candidate)
        distance, candidate = best
        if distance == 0 or distance > self.config.snap_tolerance:
            return None
        return candidate

    def align_vertical_arrows(self, inv: PrimitiveInventory) -> None:
        """Keep vertical arrows attached to the boxes above and below them, on a snapped column."""
        arrows = inv.vertical_arrows
        for i in sorted(range(len(arrows)), key=lambda i: (arrows[i].col, arrows[i].start_row, i)):
            varrow = arrows[i]
            col = varrow.origin_col
            above = self._adjacent_box(
                inv,
                lambda box: varrow.origin_start - box.origin_bottom - 1,
                lambda box: box.origin_left <= col <= box.origin_right,
            )
            below = self._adjacent_box(
                inv,
                lambda box: box.origin_top - varrow.origin_end - 1,
                lambda box: box.origin_left <= col <= box.origin_right,
            )
            start, end, new_col = varrow.start_row, varrow.end_row, varrow.col
            if above is not None:
                start = inv.boxes[above[0]].bottom + 1 + above[1]
            if below is not None:
                end = inv.boxes[below[0]].top - 1 - below[1]
            if not varrow.anchored:
                target = below if varrow.downward and below is not None else above or below
                if target is not None:
                    snapped = self.snap_column(inv.boxes[target[0]], varrow.col)
                    if snapped is not None and all(
                        inv.boxes[other[0]].left <= snapped <= inv.boxes[other[0]].right
                        for other in (above, below)
                        if other is not None
                    ):
                        new_col = snapped
            elif (start, end) != (varrow.start_row, varrow.end_row):
                # The junction end stays put
                if (varrow.start_row - 1, varrow.col) in _junction_cells(inv):
                    start = varrow.start_row
                if (varrow.end_row + 1, varrow.col) in _junction_cells(inv):
                    end = varrow.end_row
            if (new_col, start, end) == varrow.geometry():
                continue
            if end - start + 1 < min(varrow.length, 2):
                logger.debug("Vertical arrow %d would become too short; leaving it", i)
                continue
            occ = OccupancyGrid.from_inventory(inv)
            cells = {(row, new_col) for row in range(start, end + 1)}
            if not occ.region_free(cells, {(CellType.VERTICAL_ARROW, i)}):
                logger.debug("Vertical arrow %d cannot move; leaving it", i)
                continue
            varrow.col, varrow.start_row, varrow.end_row = new_col, start, end

    # ------------------------------------------------------------------
    # Pass 6: connection lines
    # ------------------------------------------------------------------

    def normalize_connections(self, inv: PrimitiveInventory) -> None:
        """Snap loose connection ends onto nearby boxes and straighten long paths."""
        lines = inv.connection_lines
        for i in sorted(range(len(lines)), key=lambda i: (lines[i].start_point, i)):
            line = lines[i]
            points = line.points()
            if len(points) < 2:
                continue
            own = {(CellType.CONNECTION, i)}
            occ = OccupancyGrid.from_inventory(inv)
            new_points = list(points)
            from_box, to_box = line.from_box, line.to_box

            if to_box is None:
                extension, to_box = self._snap_extension(
                    inv, occ, new_points[-1], line.end_dir
                )
                new_points = new_points + extension
            if from_box is None:
                extension, from_box = self._snap_extension(
                    inv, occ, new_points[0], line.start_dir
                )
                new_points = list(reversed(extension)) + new_points

            segments = segments_from_points(new_points)
            if len(segments) > self.config.max_straightened_segments:
                route = self._straighten(new_points)
                if route is not None and self._route_clear(inv, occ, route, own):
                    new_points = route
                else:
                    logger.debug("Connection %d cannot be straightened", i)

            if new_points == points:
                continue
            if not self._route_clear(inv, occ, new_points, own):
                logger.debug("Connection %d cannot be snapped; leaving it", i)
                continue
            line.segments = segments_from_points(new_points)
            line.from_box, line.to_box = from_box, to_box

    def _snap_extension(
        self,
        inv: PrimitiveInventory,
        occ: OccupancyGrid,
        cell: Point,
        direction: Tuple[int, int],
    ) -> Tuple[List[Point], Optional[int]]:
        """
        Blank cells between a free path end and a box edge it points at.

        Returns ([], None) when no box edge lies within the snapping distance.
        """
        gap: List[Point] = []
        for _ in range(self.config.snap_tolerance + 1):
            cell = step(cell, direction)
            owner = occ.owner(cell)
            if owner is None:
                gap.append(cell)
                continue
            if owner[0] == CellType.BOX:
                box = inv.boxes[owner[1]]
                if cell not in box.corner_cells() and not box.ambiguous:
                    return gap, owner[1]
            return [], None
        return [], None

    def _straighten(self, points: Sequence[Point]) -> Optional[List[Point]]:
        """
        Reroute a path as a straight line, an L, or a Z between the same ends.

        The first and last moves keep their original direction. Returns
        None when no such shape fits.
        """
        s, t = points[0], points[-1]
        d0 = (points[1][0] - s[0], points[1][1] - s[1])
        d1 = (t[0] - points[-2][0], t[1] - points[-2][1])
        to_target = (_sign(t[0] - s[0]), _sign(t[1] - s[1]))

        if d0 == d1:
            if d0[0] == 0:
                if s[0] == t[0] and to_target[1] == d0[1]:
                    return _line(s, t)
                if to_target[1] != d0[1] or abs(t[1] - s[1]) < 2:
                    return None
                mids = [c for r, c in points if min(s[1], t[1]) < c < max(s[1], t[1])]
                mid = mids[len(mids) // 2] if mids else (s[1] + t[1]) // 2
                return _line(s, (s[0], mid)) + _line((s[0], mid), (t[0], mid))[1:] + _line(
                    (t[0], mid), t
                )[1:]
            if s[1] == t[1] and to_target[0] == d0[0]:
                return _line(s, t)
            if to_target[0] != d0[0] or abs(t[0] - s[0]) < 2:
                return None
            mids = [r for r, c in points if min(s[0], t[0]) < r < max(s[0], t[0])]
            mid = mids[len(mids) // 2] if mids else (s[0] + t[0]) // 2
            return _line(s, (mid, s[1])) + _line((mid, s[1]), (mid, t[1]))[1:] + _line(
                (mid, t[1]), t
            )[1:]

        if d0[0] == -d1[0] and d0[1] == -d1[1]:
            return None
        corner = (s[0], t[1]) if d0[0] == 0 else (t[0], s[1])
        if corner in (s, t):
            return None
        first = (_sign(corner[0] - s[0]), _sign(corner[1] - s[1]))
        second = (_sign(t[0] - corner[0]), _sign(t[1] - corner[1]))
        if first != d0 or second != d1:
            return None
        return _line(s, corner) + _line(corner, t)[1:]

    def _route_clear(
        self,
        inv: PrimitiveInventory,
        occ: OccupancyGrid,
        route: Sequence[Point],
        own: Set[Owner],
    ) -> bool:
        if not occ.region_free(route, own):
            return False
        for box in inv.boxes:
            if any(box.contains_interior(*cell) for cell in route) and not (
                box.contains_interior(*route[0]) and box.contains_interior(*route[-1])
            ):
                return False
        return True

    # ------------------------------------------------------------------
    # Pass 7: labels
    # ------------------------------------------------------------------

    def reposition_labels(self, inv: PrimitiveInventory) -> None:
        """Move each label to follow its attachment, keeping it where it was on collision."""
        labels = inv.labels
        for i in sorted(range(len(labels)), key=lambda i: (labels[i].row, labels[i].col, i)):
            label = labels[i]
            position = inv.label_position(label)
            if position is None or position == label.geometry():
                continue
            cells = {(position[0], position[1] + k) for k in range(len(label.content))}
            occ = OccupancyGrid.from_inventory(inv)
            enclosing = [box for box in inv.boxes if box.contains_interior(label.row, label.col)]
            if not occ.region_free(cells, {(CellType.LABEL, i)}) or any(
                box.contains_interior(*cell)
                for box in inv.boxes
                if box not in enclosing
                for cell in cells
            ):
                logger.debug("Label %r would collide; keeping its position", label.content)
                continue
            label.row, label.col = position

    # ------------------------------------------------------------------
    # Pass 8: interior padding
    # ------------------------------------------------------------------

    def normalize_padding(self, inv: PrimitiveInventory) -> None:
        """
        In padded boxes, move text rows off the left border by the padding width.

        Padding is horizontal only; no blank rows are inserted above or below
        the text. A side-by-side group with a member widened here is
        balanced again.
        """
        pad = self.config.padding
        grown: Set[int] = set()
        for idx, box in enumerate(inv.boxes):
            if self._locked(box):
                continue
            rows = [(t, text) for t, text in enumerate(inv.text_rows) if text.box_idx == idx]
            if not any(text.start_col - box.left - 1 >= 1 for _, text in rows):
                continue
            for t, text in rows:
                lead = text.start_col - box.left - 1
                if lead >= pad:
                    continue
                shift = pad - lead
                occ = OccupancyGrid.from_inventory(inv)
                need_right = text.end_col + shift + pad + 1
                plan = self._plan_growth(inv, occ, idx, need_right, box.bottom)
                if plan is None:
                    logger.debug("No room to pad text row %d", t)
                    continue
                cells = {(text.row, col + shift) for _, col in text.cells()}
                if not occ.region_free(cells, {(CellType.TEXT, t), (CellType.BOX, idx)}):
                    logger.debug("No room to pad text row %d", t)
                    continue
                grown |= {b for b, (right, _) in plan.items() if right > inv.boxes[b].right}
                self._apply_growth(inv, plan)
                text.move_to(text.row, text.start_col + shift)
        for group in self.side_by_side_groups(inv):
            if grown & set(group):
                self._balance_group(inv, group)


def _junction_cells(inv: PrimitiveInventory) -> Set[Point]:
    return {cell for box in inv.boxes for cell in box.junctions}