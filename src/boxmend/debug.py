"""
Debug utilities for boxmend.

Key Components:
- TracedGrid: Grid wrapper that records every cell write in a RepairTrace
- visual_diff: Compare two diagrams character-by-character
- GridInspector: Utilities for inspecting grid state

Usage:
    # TracedGrid is used internally by DiagramRepairer when debug=True
    >>> repairer = DiagramRepairer(debug=True)
    >>> repairer.repair(lines)
    >>> trace = repairer.get_trace()

    # For comparing expected vs actual output:
    >>> from boxmend.debug import visual_diff
    >>> print(visual_diff(expected_output, actual_output))
"""

from typing import Dict, List, Optional, Protocol, Tuple

from .tracer import RepairTrace


class GridProtocol(Protocol):
    """Protocol for Grid-like objects."""

    width: int
    height: int

    def set(self, row: int, col: int, char: str) -> bool:
        ...

    def get(self, row: int, col: int) -> Optional[str]:
        ...

    def render(self) -> List[str]:
        ...


class TracedGrid:
    """
    Grid wrapper that records every write in a RepairTrace.

    Use set_primitive() before a group of writes to name the primitive they
    are drawn for.

    Example:
        >>> grid = Grid.from_lines(["┌──┐"])
        >>> trace = RepairTrace()
        >>> traced = TracedGrid(grid, trace)
        >>> traced.set_primitive("box 0")
        >>> traced.set(0, 3, "┐", reason="box_border")
    """

    def __init__(self, grid: GridProtocol, trace: RepairTrace):
        self._grid = grid
        self._trace = trace
        self._primitive = "unknown"

    @property
    def width(self) -> int:
        return self._grid.width

    @property
    def height(self) -> int:
        return self._grid.height

    def set_primitive(self, primitive: str) -> None:
        """Set the primitive recorded with subsequent writes."""
        self._primitive = primitive

    def set(self, row: int, col: int, char: str, reason: str = "") -> bool:
        """
        Set a character and record the write.

        Args:
            row: Grid row
            col: Grid column
            char: Character to place
            reason: Why this character is being placed. If empty, a reason
                    is inferred from the character.
        """
        prev = self._grid.get(row, col)
        placed = self._grid.set(row, col, char)
        if placed:
            self._trace.add_write(
                row=row,
                col=col,
                char=char,
                previous_char=prev if prev is not None else " ",
                reason=reason or self._infer_reason(char),
                primitive=self._primitive,
            )
        return placed

    def get(self, row: int, col: int) -> Optional[str]:
        return self._grid.get(row, col)

    def render(self) -> List[str]:
        return self._grid.render()

    @staticmethod
    def _infer_reason(char: str) -> str:
        if char == " ":
            return "clear"
        if char in "─│═║":
            return "line"
        if char in "┌┐└┘╔╗╚╝╭╮╰╯":
            return "corner"
        if char in "├┤┬┴┼╠╣╦╩╬":
            return "junction"
        if char in "→←↓↑►◄▶◀▼▲⇒⇐⇓⇑⟶⟵⟹⟸":
            return "arrow"
        return "char"


def visual_diff(expected: str, actual: str, context_lines: int = 2) -> str:
    """
    Character-by-character diff between two diagrams.

    Args:
        expected: The expected output
        actual: The actual output
        context_lines: Number of matching lines to show around differences

    Returns:
        A formatted report of the differing lines and columns

    Example:
        >>> print(visual_diff("┌──┐\\n│A│", "┌──┐\\n│B│"))
    """
    exp_lines = expected.split("\n")
    act_lines = actual.split("\n")

    output: List[str] = ["=" * 60, "VISUAL DIFF", "=" * 60]

    max_lines = max(len(exp_lines), len(act_lines))
    diff_line_indices = [
        i
        for i in range(max_lines)
        if (exp_lines[i] if i < len(exp_lines) else "")
        != (act_lines[i] if i < len(act_lines) else "")
    ]
    if not diff_line_indices:
        output.append("No differences found.")
        return "\n".join(output)

    output.append(f"Found {len(diff_line_indices)} differing line(s)")
    output.append("")

    shown_lines = set()
    for diff_idx in diff_line_indices:
        low = max(0, diff_idx - context_lines)
        high = min(max_lines, diff_idx + context_lines + 1)
        shown_lines.update(range(low, high))

    prev_shown = -2
    for i in sorted(shown_lines):
        if i > prev_shown + 1:
            output.append("...")
        exp_line = exp_lines[i] if i < len(exp_lines) else ""
        act_line = act_lines[i] if i < len(act_lines) else ""

        if exp_line == act_line:
            output.append(f"{i:3d}:   {act_line}")
        else:
            output.append(f"{i:3d}: E |{exp_line}|")
            output.append(f"     A |{act_line}|")
            max_len = max(len(exp_line), len(act_line))
            diff_positions = [
                j
                for j in range(max_len)
                if (exp_line[j] if j < len(exp_line) else "")
                != (act_line[j] if j < len(act_line) else "")
            ]
            marker = [" "] * (max_len + 8)
            for pos in diff_positions:
                marker[pos + 8] = "^"
            output.append("".join(marker).rstrip())
            output.append(
                f"     Diff at col(s): {diff_positions[:5]}"
                f"{'...' if len(diff_positions) > 5 else ''}"
            )
        prev_shown = i

    return "\n".join(output)


class GridInspector:
    """Utilities for finding characters and regions on a grid."""

    def __init__(self, grid: GridProtocol):
        self._grid = grid

    def find_char(self, char: str) -> List[Tuple[int, int]]:
        """All (row, col) positions holding a character."""
        return [
            (row, col)
            for row in range(self._grid.height)
            for col in range(self._grid.width)
            if self._grid.get(row, col) == char
        ]

    def find_chars(self, chars: str) -> List[Tuple[int, int, str]]:
        """All (row, col, char) positions holding any of the given characters."""
        wanted = set(chars)
        found = []
        for row in range(self._grid.height):
            for col in range(self._grid.width):
                char = self._grid.get(row, col)
                if char in wanted:
                    found.append((row, col, char))
        return found

    def get_row(self, row: int) -> str:
        if 0 <= row < self._grid.height:
            return "".join(self._grid.get(row, col) for col in range(self._grid.width))
        return ""

    def get_column(self, col: int) -> str:
        if 0 <= col < self._grid.width:
            return "".join(self._grid.get(row, col) for row in range(self._grid.height))
        return ""

    def get_region(self, row: int, col: int, height: int, width: int) -> str:
        """A rectangular region as multi-line text; cells outside the grid read as spaces."""
        lines = []
        for r in range(row, row + height):
            lines.append(
                "".join(self._grid.get(r, c) or " " for c in range(col, col + width))
            )
        return "\n".join(lines)

    def count_char(self, char: str) -> int:
        return len(self.find_char(char))

    def get_line_chars_count(self) -> Dict[str, int]:
        """Count every box-drawing and arrow character on the grid."""
        counts: Dict[str, int] = {}
        for _, _, char in self.find_chars("│─┌┐└┘├┤┬┴┼═║╔╗╚╝╭╮╰╯▼▲◄►→←↓↑"):
            counts[char] = counts.get(char, 0) + 1
        return counts
