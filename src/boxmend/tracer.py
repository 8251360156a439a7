"""
Repair tracing for boxmend.

When debug mode is on, DiagramRepairer records a RepairTrace for each block:
the stages of the pipeline, which primitives each normalizer pass moved or
resized, and every cell the renderer cleared or drew on behalf of which
primitive.

Usage:
    >>> repairer = DiagramRepairer(debug=True)
    >>> repaired = repairer.repair(lines)
    >>> trace = repairer.get_trace()
    >>> print(trace.summary())
    >>> trace.history("box", 0)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import PrimitiveInventory

# (kind, index) as yielded by PrimitiveInventory.iter_primitives
PrimitiveKey = Tuple[str, int]


def snapshot_geometry(inventory: PrimitiveInventory) -> Dict[PrimitiveKey, Any]:
    """Current geometry of every primitive, keyed by (kind, index)."""
    return {(kind, idx): item.geometry() for kind, idx, item in inventory.iter_primitives()}


@dataclass
class PrimitiveChange:
    """
    A primitive whose geometry a normalizer pass changed.

    Attributes:
        kind: Primitive kind ("box", "text", "harrow", "varrow", "conn", "label")
        index: Index of the primitive within its kind
        before: Geometry before the pass
        after: Geometry after the pass
    """

    kind: str
    index: int
    before: Any
    after: Any

    def __str__(self) -> str:
        return f"{self.kind} {self.index}: {self.before} -> {self.after}"


def diff_geometry(
    before: Dict[PrimitiveKey, Any], inventory: PrimitiveInventory
) -> List[PrimitiveChange]:
    """Changes between a snapshot and the inventory's current geometry."""
    changes = []
    for (kind, idx), after in snapshot_geometry(inventory).items():
        old = before.get((kind, idx))
        if old != after:
            changes.append(PrimitiveChange(kind, idx, old, after))
    return changes


@dataclass
class CellWrite:
    """
    One cell written by the renderer.

    Attributes:
        row: Grid row
        col: Grid column
        char: The character written
        previous_char: The character that was there before
        reason: What the write is for ("clear_footprint", "box_border", ...)
        primitive: The primitive it was written for, such as "box 0"
    """

    row: int
    col: int
    char: str
    previous_char: str
    reason: str
    primitive: str

    def __str__(self) -> str:
        if self.previous_char == " ":
            return f"({self.row},{self.col}): '{self.char}' [{self.reason}] for {self.primitive}"
        return (
            f"({self.row},{self.col}): '{self.previous_char}' -> '{self.char}' "
            f"[{self.reason}] for {self.primitive}"
        )


@dataclass
class PipelineStage:
    """
    Snapshot of state at one pipeline stage.

    The stages are ``input``, ``detected``, one per normalizer pass
    (``box_widths`` ... ``padding``) and ``rendered``.

    Attributes:
        name: Stage name
        data: Primitive counts or grid size at this stage
        changes: Primitives a normalizer pass changed
        grid_snapshot: Grid lines, for the input and rendered stages
    """

    name: str
    data: Dict[str, Any]
    changes: List[PrimitiveChange] = field(default_factory=list)
    grid_snapshot: Optional[List[str]] = None

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            lines.append(f"  {key}: {value}")
        for change in self.changes:
            lines.append(f"  changed {change}")
        if self.grid_snapshot:
            lines.append("  Grid:")
            for row in self.grid_snapshot:
                lines.append(f"    |{row}|")
        return "\n".join(lines)


@dataclass
class RepairTrace:
    """
    Complete trace of one repair.

    Attributes:
        stages: Pipeline stages in order
        writes: Every cell the renderer wrote
        input_text: The original block text
    """

    stages: List[PipelineStage] = field(default_factory=list)
    writes: List[CellWrite] = field(default_factory=list)
    input_text: str = ""

    def add_stage(
        self,
        name: str,
        data: Dict[str, Any],
        grid: Optional[Any] = None,
        changes: Optional[List[PrimitiveChange]] = None,
    ) -> None:
        """Record a stage, snapshotting ``grid`` when one is given."""
        snapshot = grid.render() if grid is not None else None
        self.stages.append(PipelineStage(name, dict(data), list(changes or []), snapshot))

    def add_write(
        self, row: int, col: int, char: str, previous_char: str, reason: str, primitive: str
    ) -> None:
        self.writes.append(CellWrite(row, col, char, previous_char, reason, primitive))

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def history(self, kind: str, index: int) -> List[Tuple[str, PrimitiveChange]]:
        """(stage name, change) for every pass that changed one primitive."""
        return [
            (stage.name, change)
            for stage in self.stages
            for change in stage.changes
            if change.kind == kind and change.index == index
        ]

    def writes_at(self, row: int, col: int) -> List[CellWrite]:
        return [w for w in self.writes if w.row == row and w.col == col]

    def writes_for(self, primitive: str) -> List[CellWrite]:
        """Writes made on behalf of one primitive, such as ``"box 0"``."""
        return [w for w in self.writes if w.primitive == primitive]

    def overwrites(self) -> List[CellWrite]:
        """Writes that replaced a non-blank character."""
        return [w for w in self.writes if w.previous_char != " "]

    def summary(self) -> str:
        """Human-readable summary of the trace."""
        lines = [
            "=" * 60,
            "REPAIR TRACE SUMMARY",
            "=" * 60,
            "",
            f"Input: {repr(self.input_text[:100])}"
            f"{'...' if len(self.input_text) > 100 else ''}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]
        for stage in self.stages:
            suffix = f" ({len(stage.changes)} changed)" if stage.changes else ""
            lines.append(f"  {stage.name}{suffix}")

        lines.extend(
            [
                "",
                f"Cells written: {len(self.writes)}",
                f"Overwrites: {len(self.overwrites())}",
                "",
            ]
        )

        per_primitive: Dict[str, int] = {}
        for w in self.writes:
            per_primitive[w.primitive] = per_primitive.get(w.primitive, 0) + 1
        lines.append("Writes by primitive:")
        for primitive, count in sorted(per_primitive.items(), key=lambda x: -x[1]):
            lines.append(f"  {primitive}: {count}")

        return "\n".join(lines)

    def dump(self) -> str:
        """Complete dump of all stages and writes."""
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]
        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("CELL WRITES:")
        lines.append("-" * 40)
        for w in self.writes:
            lines.append(str(w))
        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())
