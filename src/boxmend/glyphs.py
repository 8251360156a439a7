"""
Glyph tables for diagram repair.

Every box-drawing, line and arrow character the detector understands is
described here, together with its "arms": the directions in which the glyph
reaches the edge of its cell. Two neighbouring cells are joined when each
has an arm pointing at the other and both belong to the same line family.
"""

import unicodedata
from typing import Dict, FrozenSet, Optional, Tuple

from .models import ArrowType, BoxStyle

Direction = Tuple[int, int]

UP: Direction = (-1, 0)
DOWN: Direction = (1, 0)
LEFT: Direction = (0, -1)
RIGHT: Direction = (0, 1)

DIRECTIONS = (UP, DOWN, LEFT, RIGHT)


def opposite(direction: Direction) -> Direction:
    """Reverse a direction."""
    return (-direction[0], -direction[1])


def step(cell: Tuple[int, int], direction: Direction) -> Tuple[int, int]:
    """Move one cell in a direction."""
    return (cell[0] + direction[0], cell[1] + direction[1])


# Box border glyphs per style
BOX_CHARS: Dict[BoxStyle, Dict[str, str]] = {
    BoxStyle.SINGLE: {
        "top_left": "┌",
        "top_right": "┐",
        "bottom_left": "└",
        "bottom_right": "┘",
        "horizontal": "─",
        "vertical": "│",
    },
    BoxStyle.DOUBLE: {
        "top_left": "╔",
        "top_right": "╗",
        "bottom_left": "╚",
        "bottom_right": "╝",
        "horizontal": "═",
        "vertical": "║",
    },
    BoxStyle.ROUNDED: {
        "top_left": "╭",
        "top_right": "╮",
        "bottom_left": "╰",
        "bottom_right": "╯",
        "horizontal": "─",
        "vertical": "│",
    },
}

TOP_LEFT_CORNERS: Dict[str, BoxStyle] = {
    chars["top_left"]: style for style, chars in BOX_CHARS.items()
}

_F = frozenset

# Arms of every line glyph, keyed by family. Rounded corners join the
# single family since they share its straight glyphs.
_SINGLE_ARMS: Dict[str, FrozenSet[Direction]] = {
    "─": _F({LEFT, RIGHT}),
    "│": _F({UP, DOWN}),
    "┌": _F({RIGHT, DOWN}),
    "┐": _F({LEFT, DOWN}),
    "└": _F({UP, RIGHT}),
    "┘": _F({UP, LEFT}),
    "╭": _F({RIGHT, DOWN}),
    "╮": _F({LEFT, DOWN}),
    "╰": _F({UP, RIGHT}),
    "╯": _F({UP, LEFT}),
    "├": _F({UP, DOWN, RIGHT}),
    "┤": _F({UP, DOWN, LEFT}),
    "┬": _F({LEFT, RIGHT, DOWN}),
    "┴": _F({LEFT, RIGHT, UP}),
    "┼": _F({UP, DOWN, LEFT, RIGHT}),
}

_DOUBLE_ARMS: Dict[str, FrozenSet[Direction]] = {
    "═": _F({LEFT, RIGHT}),
    "║": _F({UP, DOWN}),
    "╔": _F({RIGHT, DOWN}),
    "╗": _F({LEFT, DOWN}),
    "╚": _F({UP, RIGHT}),
    "╝": _F({UP, LEFT}),
    "╠": _F({UP, DOWN, RIGHT}),
    "╣": _F({UP, DOWN, LEFT}),
    "╦": _F({LEFT, RIGHT, DOWN}),
    "╩": _F({LEFT, RIGHT, UP}),
    "╬": _F({UP, DOWN, LEFT, RIGHT}),
}

LINE_ARMS: Dict[str, FrozenSet[Direction]] = {**_SINGLE_ARMS, **_DOUBLE_ARMS}

LINE_FAMILY: Dict[str, str] = {
    **{glyph: "single" for glyph in _SINGLE_ARMS},
    **{glyph: "double" for glyph in _DOUBLE_ARMS},
}

JUNCTION_GLYPHS = frozenset("├┤┬┴┼╠╣╦╩╬")

# Corner glyph by arm set, used when drawing connection paths
CORNER_BY_ARMS: Dict[FrozenSet[Direction], str] = {
    _F({RIGHT, DOWN}): "┌",
    _F({LEFT, DOWN}): "┐",
    _F({UP, RIGHT}): "└",
    _F({UP, LEFT}): "┘",
}

# Arrow tips: glyph -> direction it points
TIP_DIRECTIONS: Dict[str, Direction] = {
    "→": RIGHT,
    "►": RIGHT,
    "▶": RIGHT,
    ">": RIGHT,
    "⇒": RIGHT,
    "⟶": RIGHT,
    "⟹": RIGHT,
    "←": LEFT,
    "◄": LEFT,
    "◀": LEFT,
    "<": LEFT,
    "⇐": LEFT,
    "⟵": LEFT,
    "⟸": LEFT,
    "↓": DOWN,
    "▼": DOWN,
    "v": DOWN,
    "⇓": DOWN,
    "↑": UP,
    "▲": UP,
    "^": UP,
    "⇑": UP,
}

ASCII_TIPS = frozenset("<>v^")
LONG_TIPS = frozenset("⟶⟵⟹⟸")
DOUBLE_TIPS = frozenset("⇒⇐⇓⇑")

# Tips that may terminate a connection path, grouped so a tip can be
# re-pointed without changing its look.
TIP_SETS: Tuple[Dict[Direction, str], ...] = (
    {UP: "↑", DOWN: "↓", LEFT: "←", RIGHT: "→"},
    {UP: "▲", DOWN: "▼", LEFT: "◄", RIGHT: "►"},
    {UP: "▲", DOWN: "▼", LEFT: "◀", RIGHT: "▶"},
)
PATH_TIPS = frozenset(glyph for tips in TIP_SETS for glyph in tips.values())

HORIZONTAL_SHAFTS: Dict[str, ArrowType] = {
    "─": ArrowType.STANDARD,
    "-": ArrowType.STANDARD,
    "═": ArrowType.DOUBLE,
    "=": ArrowType.DOUBLE,
    "┄": ArrowType.DASHED,
    "┈": ArrowType.DASHED,
    "╌": ArrowType.DASHED,
}

VERTICAL_SHAFTS: Dict[str, ArrowType] = {
    "│": ArrowType.STANDARD,
    "|": ArrowType.STANDARD,
    "║": ArrowType.DOUBLE,
    "┆": ArrowType.DASHED,
    "┊": ArrowType.DASHED,
    "╎": ArrowType.DASHED,
}

ASCII_SHAFTS = frozenset("-=|")

DEFAULT_SHAFTS: Dict[ArrowType, Tuple[str, str]] = {
    ArrowType.STANDARD: ("─", "│"),
    ArrowType.DOUBLE: ("═", "║"),
    ArrowType.LONG: ("─", "│"),
    ArrowType.DASHED: ("┄", "┆"),
}

# Glyphs that are drawing structure rather than text
STRUCTURE_GLYPHS = frozenset(
    set(LINE_ARMS)
    | (set(TIP_DIRECTIONS) - ASCII_TIPS)
    | (set(HORIZONTAL_SHAFTS) - ASCII_SHAFTS)
    | (set(VERTICAL_SHAFTS) - ASCII_SHAFTS)
)


def arms(glyph: Optional[str]) -> FrozenSet[Direction]:
    """
    Directions in which a glyph reaches its cell edge.

    Path tips reach back toward their shaft, opposite to where they point.
    """
    if glyph is None:
        return frozenset()
    if glyph in LINE_ARMS:
        return LINE_ARMS[glyph]
    if glyph in PATH_TIPS:
        return frozenset({opposite(TIP_DIRECTIONS[glyph])})
    return frozenset()


def family(glyph: Optional[str]) -> Optional[str]:
    """Line family of a glyph ('single', 'double', 'tip'), or None."""
    if glyph in LINE_FAMILY:
        return LINE_FAMILY[glyph]
    if glyph in PATH_TIPS:
        return "tip"
    return None


def joins(a: Optional[str], b: Optional[str], direction: Direction) -> bool:
    """
    Check if glyph ``a`` connects to glyph ``b`` lying in ``direction``.

    Both glyphs must reach toward each other. Tips connect to single-line
    glyphs only; other glyphs must share a family.
    """
    if direction not in arms(a) or opposite(direction) not in arms(b):
        return False
    fa, fb = family(a), family(b)
    if "tip" in (fa, fb):
        return {fa, fb} <= {"tip", "single"} and fa != fb
    return fa == fb


def tip_pointing(glyph: str, direction: Direction) -> str:
    """Return the glyph from the same tip set as ``glyph`` pointing in ``direction``."""
    for tips in TIP_SETS:
        if glyph in tips.values():
            return tips[direction]
    return glyph


def straight_glyph(direction: Direction) -> str:
    """Single-line glyph for travel in a direction."""
    return "─" if direction in (LEFT, RIGHT) else "│"


def corner_glyph(incoming: Direction, outgoing: Direction) -> str:
    """Corner glyph for a path arriving along ``incoming`` and leaving along ``outgoing``."""
    return CORNER_BY_ARMS[frozenset({opposite(incoming), outgoing})]


def classify_arrow(shafts: str, tips: str) -> ArrowType:
    """Classify an arrow by the glyphs of its shaft and tips."""
    if any(tip in LONG_TIPS for tip in tips):
        return ArrowType.LONG
    shaft_types = [
        HORIZONTAL_SHAFTS.get(ch) or VERTICAL_SHAFTS.get(ch) for ch in shafts
    ]
    if any(tip in DOUBLE_TIPS for tip in tips) or ArrowType.DOUBLE in shaft_types:
        return ArrowType.DOUBLE
    if ArrowType.DASHED in shaft_types:
        return ArrowType.DASHED
    return ArrowType.STANDARD


def is_wide(char: str) -> bool:
    """Check if a character occupies two terminal cells."""
    return unicodedata.east_asian_width(char) in ("W", "F")
