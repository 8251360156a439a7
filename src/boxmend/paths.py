"""
Connection path tracing using networkx.

A connection is a chain of single-line glyphs with at least one turn,
running between boxes outside their borders. Candidate cells are joined
into an undirected graph wherever neighbouring glyphs reach toward each
other; each connected component is then validated as a simple path.

Uses networkx for:
- Cell adjacency graph
- Connected components
- Degree checks and endpoint-to-endpoint ordering
"""

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

import networkx as nx

from .glyphs import (
    DOWN,
    JUNCTION_GLYPHS,
    PATH_TIPS,
    RIGHT,
    TIP_DIRECTIONS,
    arms,
    family,
    joins,
    opposite,
    step,
)
from .grid import Grid
from .models import Box, ConnectionLine, Point, Segment

logger = logging.getLogger(__name__)

TURN_GLYPHS = frozenset("┌┐└┘╭╮╰╯")


def segments_from_points(points: Sequence[Point]) -> List[Segment]:
    """Compress an ordered list of adjacent cells into straight segments."""
    if len(points) == 1:
        return [Segment(points[0], points[0])]
    segments: List[Segment] = []
    start = points[0]
    direction = None
    for prev, cur in zip(points, points[1:]):
        delta = (cur[0] - prev[0], cur[1] - prev[1])
        if direction is not None and delta != direction:
            segments.append(Segment(start, prev))
            start = prev
        direction = delta
    segments.append(Segment(start, points[-1]))
    return segments


def exit_direction(glyph: Optional[str], cell: Point, neighbour: Point) -> Tuple[int, int]:
    """
    Direction in which a path leaves through an end cell.

    Tips point the way they face; a corner leaves through the arm that does
    not reach its neighbour on the path; a straight glyph continues on.
    """
    if glyph in TIP_DIRECTIONS:
        return TIP_DIRECTIONS[glyph]
    toward = (neighbour[0] - cell[0], neighbour[1] - cell[1])
    free = arms(glyph) - {toward}
    if len(free) == 1:
        return next(iter(free))
    return opposite(toward)


class PathTracer:
    """
    Finds multi-segment connection lines on a grid.

    Args:
        max_segments: Paths with more segments are rejected.
    """

    def __init__(self, max_segments: int = 4):
        self.max_segments = max_segments

    def trace(
        self, grid: Grid, claimed: Set[Point], boxes: List[Box]
    ) -> Tuple[List[ConnectionLine], Set[Point]]:
        """
        Trace connection lines.

        Args:
            grid: The source grid
            claimed: Cells already owned by box borders and text rows
            boxes: Detected boxes, in inventory order

        Returns:
            Tuple of (accepted connection lines, cells of rejected
            components). Rejected cells must not be reused by any other
            primitive.
        """
        graph = self._build_graph(grid, claimed)
        border_owner: Dict[Point, int] = {}
        for idx, box in enumerate(boxes):
            for cell in box.footprint:
                border_owner.setdefault(cell, idx)

        lines: List[ConnectionLine] = []
        rejected: Set[Point] = set()
        for component in sorted(nx.connected_components(graph), key=min):
            if len(component) < 2:
                continue
            glyphs = [grid.get(*cell) for cell in component]
            if not any(g in TURN_GLYPHS or g in JUNCTION_GLYPHS for g in glyphs):
                continue
            line = self._validate(grid, graph.subgraph(component), boxes, border_owner)
            if line is None:
                rejected.update(component)
            else:
                lines.append(line)
        return lines, rejected

    def _build_graph(self, grid: Grid, claimed: Set[Point]) -> nx.Graph:
        graph = nx.Graph()
        candidates: Dict[Point, str] = {}
        for row in range(grid.height):
            for col in range(grid.width):
                glyph = grid.get(row, col)
                if (row, col) in claimed:
                    continue
                if family(glyph) == "single" or glyph in PATH_TIPS:
                    candidates[(row, col)] = glyph
        graph.add_nodes_from(candidates)
        for cell, glyph in candidates.items():
            for direction in (RIGHT, DOWN):
                neighbour = step(cell, direction)
                if neighbour in candidates and joins(
                    glyph, candidates[neighbour], direction
                ):
                    graph.add_edge(cell, neighbour)
        return graph

    def _validate(
        self,
        grid: Grid,
        sub: nx.Graph,
        boxes: List[Box],
        border_owner: Dict[Point, int],
    ) -> Optional[ConnectionLine]:
        """Turn a component into a ConnectionLine, or None if it is not a simple path."""
        if any(grid.get(*cell) in JUNCTION_GLYPHS for cell in sub.nodes):
            logger.debug("Skipping branching path at %s", min(sub.nodes))
            return None
        if any(degree > 2 for _, degree in sub.degree):
            logger.debug("Skipping branching path at %s", min(sub.nodes))
            return None
        ends = sorted(node for node, degree in sub.degree if degree == 1)
        if len(ends) != 2:
            logger.debug("Skipping closed path at %s", min(sub.nodes))
            return None
        points = nx.shortest_path(sub, ends[0], ends[1])
        start_dir = exit_direction(grid.get(*points[0]), points[0], points[1])
        end_dir = exit_direction(grid.get(*points[-1]), points[-1], points[-2])
        for cell, direction in ((points[0], start_dir), (points[-1], end_dir)):
            if grid.get(*cell) in TURN_GLYPHS and step(cell, direction) not in border_owner:
                logger.debug("Skipping path with a dangling corner at %s", cell)
                return None

        start_tip = grid.get(*points[0]) if grid.get(*points[0]) in PATH_TIPS else None
        end_tip = grid.get(*points[-1]) if grid.get(*points[-1]) in PATH_TIPS else None
        if start_tip and not end_tip:
            points.reverse()
            start_tip, end_tip = None, start_tip
            start_dir, end_dir = end_dir, start_dir

        segments = segments_from_points(points)
        if len(segments) > self.max_segments:
            logger.debug(
                "Skipping path at %s with %d segments", points[0], len(segments)
            )
            return None

        for box in boxes:
            inside = [cell for cell in points if box.contains_interior(*cell)]
            if inside and not (
                box.contains_interior(*points[0])
                and box.contains_interior(*points[-1])
            ):
                logger.debug("Skipping path at %s crossing into a box", points[0])
                return None

        from_box = border_owner.get(step(points[0], start_dir))
        to_box = border_owner.get(step(points[-1], end_dir))
        line = ConnectionLine(
            segments=segments,
            from_box=from_box,
            to_box=to_box,
            start_tip=start_tip,
            end_tip=end_tip,
            start_dir=start_dir,
            end_dir=end_dir,
            footprint=frozenset(points),
        )
        line.origin = line.geometry()
        return line
