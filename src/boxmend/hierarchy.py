"""
Box containment hierarchy using networkx.

Uses networkx for:
- Containment graph representation (edge parent -> child)
- Transitive reduction to keep only immediate parents
- Ancestor counting for nesting depth
"""

import logging
from typing import List

import networkx as nx

from .models import Box

logger = logging.getLogger(__name__)


class BoxHierarchy:
    """
    Resolves parent/child relationships between detected boxes.

    A box is a child of another when it lies strictly inside the other's
    interior. Boxes that partially overlap another box, or end up with more
    than one immediate parent, are marked ambiguous and left unparented.
    Every box of a tree that reaches ``max_depth`` is frozen.
    """

    def __init__(self, max_depth: int = 3):
        self.max_depth = max_depth
        self.graph: nx.DiGraph = None

    def build(self, boxes: List[Box]) -> List[Box]:
        """
        Link boxes into a hierarchy and return them in canonical order.

        The returned list is sorted by (depth, top, left, detection order);
        parent and child indices refer to positions in that list.

        Args:
            boxes: Boxes in detection order

        Returns:
            The same Box objects, re-ordered and linked
        """
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(range(len(boxes)))

        ambiguous = set()
        for i, outer in enumerate(boxes):
            for j, inner in enumerate(boxes):
                if i == j or not outer.overlaps(inner):
                    continue
                if outer.contains_box(inner):
                    self.graph.add_edge(i, j)
                elif not inner.contains_box(outer):
                    ambiguous.update((i, j))

        tree = nx.transitive_reduction(self.graph)
        for node in tree.nodes:
            if tree.in_degree(node) > 1:
                ambiguous.add(node)

        stranded = set()
        if ambiguous:
            logger.debug("Boxes %s overlap without containment", sorted(ambiguous))
            stranded = {n for a in ambiguous for n in nx.descendants(tree, a)}
            tree.remove_nodes_from(stranded | ambiguous)

        depths = {}
        parents = {}
        for node in range(len(boxes)):
            if node in tree:
                depths[node] = len(nx.ancestors(tree, node))
                preds = list(tree.predecessors(node))
                parents[node] = preds[0] if preds else None
            else:
                depths[node] = 0
                parents[node] = None

        frozen = set(stranded)
        for root in (n for n in tree.nodes if tree.in_degree(n) == 0):
            members = nx.descendants(tree, root) | {root}
            if any(depths[m] >= self.max_depth for m in members):
                logger.debug(
                    "Box tree rooted at %s nests beyond depth %d; leaving it as is",
                    root,
                    self.max_depth,
                )
                frozen.update(members)

        order = sorted(
            range(len(boxes)),
            key=lambda n: (depths[n], boxes[n].top, boxes[n].left, n),
        )
        new_index = {old: new for new, old in enumerate(order)}

        result = []
        for old in order:
            box = boxes[old]
            box.depth = depths[old]
            box.ambiguous = old in ambiguous
            box.frozen = old in frozen
            parent = parents[old]
            box.parent_idx = new_index[parent] if parent is not None else None
            box.child_indices = sorted(
                new_index[child]
                for child in (tree.successors(old) if old in tree else ())
            )
            result.append(box)
        return result
