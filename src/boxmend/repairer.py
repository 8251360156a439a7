"""
Diagram repair pipeline.

    lines -> Grid.from_lines -> PrimitiveDetector.scan -> Normalizer.run
          -> DiagramRenderer.overlay -> Grid.render -> lines

Every stage is a pure function of its input. Text whose characters cannot
be trusted to occupy one cell each (tabs, East-Asian wide characters) is
returned unchanged, as is any block in which nothing was recognised.
"""

import logging
from typing import List, Optional, Sequence

from .config import RepairConfig
from .detector import PrimitiveDetector
from .glyphs import is_wide
from .grid import Grid
from .normalizer import Normalizer
from .renderer import DiagramRenderer
from .tracer import RepairTrace

logger = logging.getLogger(__name__)


def is_cell_aligned(lines: Sequence[str]) -> bool:
    """Check that every character of the block occupies exactly one cell."""
    for line in lines:
        for char in line:
            if char == "\t" or is_wide(char):
                return False
    return True


class DiagramRepairer:
    """
    Repair box-and-arrow diagrams drawn with text.

    Example:
        >>> repairer = DiagramRepairer()
        >>> repairer.repair(["┌──┐", "│Hello│", "└──┘"])
        ['┌─────┐', '│Hello│', '└─────┘']

    Debug Mode Example:
        >>> repairer = DiagramRepairer(debug=True)
        >>> repairer.repair(lines)
        >>> print(repairer.get_trace().summary())
    """

    def __init__(self, config: Optional[RepairConfig] = None, debug: bool = False):
        """
        Initialize the repairer.

        Args:
            config: Detection and normalization limits (defaults if omitted)
            debug: Record a RepairTrace for every call to repair()
        """
        self.config = config or RepairConfig()
        self.debug = debug
        self.detector = PrimitiveDetector(self.config)
        self.normalizer = Normalizer(self.config)
        self.renderer = DiagramRenderer()
        self._trace: Optional[RepairTrace] = None

    def repair(self, lines: Sequence[str]) -> List[str]:
        """
        Repair one diagram block.

        Args:
            lines: The block's lines, without line terminators

        Returns:
            The repaired lines; the input unchanged when nothing could be
            repaired
        """
        lines = list(lines)
        trace = RepairTrace(input_text="\n".join(lines)) if self.debug else None
        self._trace = trace

        if not lines:
            return lines
        if not is_cell_aligned(lines):
            logger.debug("Block contains tabs or wide characters; leaving it")
            return lines

        grid = Grid.from_lines(lines)
        if trace is not None:
            trace.add_stage("input", {"width": grid.width, "height": grid.height}, grid)

        inventory = self.detector.scan(grid)
        if trace is not None:
            trace.add_stage("detected", inventory.counts())
        if inventory.is_empty():
            return lines

        normalized = self.normalizer.run(inventory, trace=trace)
        repaired = self.renderer.overlay(normalized, grid, trace=trace)
        if trace is not None:
            trace.add_stage("rendered", {"width": repaired.width, "height": repaired.height}, repaired)
        return repaired.render()

    def repair_text(self, text: str) -> str:
        """Repair a block given as one string, keeping a trailing newline."""
        trailing = text.endswith("\n")
        body = text[:-1] if trailing else text
        result = "\n".join(self.repair(body.split("\n")))
        return result + "\n" if trailing else result

    def get_trace(self) -> Optional[RepairTrace]:
        """The trace of the most recent repair, when debug mode is on."""
        return self._trace


def repair(lines: Sequence[str], config: Optional[RepairConfig] = None) -> List[str]:
    """
    Repair one diagram block with a fresh repairer.

    Safe on arbitrary text: returns the input unchanged when no diagram
    primitive is recognised.
    """
    return DiagramRepairer(config).repair(lines)
