"""
boxmend - Repair ASCII box-and-arrow diagrams

Widens boxes to fit their text, keeps arrows and connectors attached to the
boxes they point at, and leaves anything it cannot confidently recognise
exactly as it was.

Example:
    >>> from boxmend import repair
    >>> repair(["┌──┐", "│Hello│", "└──┘"])
    ['┌─────┐', '│Hello│', '└─────┘']

Markdown Example:
    >>> from boxmend import repair_markdown
    >>> fixed = repair_markdown(document_text)

Debug Mode Example:
    >>> repairer = DiagramRepairer(debug=True)
    >>> repairer.repair(lines)
    >>> print(repairer.get_trace().summary())
"""

from .config import ConfigError, RepairConfig
from .debug import GridInspector, TracedGrid, visual_diff
from .detector import PrimitiveDetector
from .grid import Grid
from .markdown import extract_blocks, repair_markdown
from .models import (
    ArrowType,
    AttachmentKind,
    Box,
    BoxStyle,
    ConnectionLine,
    HorizontalArrow,
    Label,
    LabelAttachment,
    PrimitiveInventory,
    Segment,
    TextRow,
    VerticalArrow,
)
from .normalizer import Normalizer
from .renderer import DiagramRenderer
from .repairer import DiagramRepairer, repair
from .tracer import CellWrite, PipelineStage, PrimitiveChange, RepairTrace

__version__ = "0.1.0"

__all__ = [
    # Main API
    "repair",
    "repair_markdown",
    "DiagramRepairer",
    "RepairConfig",
    "ConfigError",
    # Pipeline stages
    "Grid",
    "PrimitiveDetector",
    "Normalizer",
    "DiagramRenderer",
    "extract_blocks",
    # Primitives
    "ArrowType",
    "AttachmentKind",
    "Box",
    "BoxStyle",
    "ConnectionLine",
    "HorizontalArrow",
    "Label",
    "LabelAttachment",
    "PrimitiveInventory",
    "Segment",
    "TextRow",
    "VerticalArrow",
    # Debug
    "RepairTrace",
    "PipelineStage",
    "PrimitiveChange",
    "CellWrite",
    "TracedGrid",
    "GridInspector",
    "visual_diff",
]
