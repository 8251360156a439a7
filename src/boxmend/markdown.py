"""
Markdown block scanning for diagram repair.

Finds the diagram-shaped blocks of a Markdown document and repairs each
one in place. Fenced code (``` or ~~~) and regions between
``<!-- boxmend:ignore -->`` and ``<!-- /boxmend:ignore -->`` are never
touched. Blank lines separate blocks. Inline code spans are blanked out
while a block is repaired and put back afterwards; a block whose inline
code would have been disturbed is left as it was.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .glyphs import LINE_ARMS
from .repairer import DiagramRepairer

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})")
IGNORE_START = "<!-- boxmend:ignore -->"
IGNORE_END = "<!-- /boxmend:ignore -->"
INLINE_CODE_PATTERN = re.compile(r"(`+)(.+?)\1")


@dataclass
class InlineCodeSpan:
    """An inline code span, columns inclusive of its backticks."""

    start_col: int
    end_col: int
    text: str


@dataclass
class DiagramBlock:
    """
    A run of non-blank lines outside code fences and ignore regions.

    Attributes:
        start_line: Index of the block's first line in the document.
        lines: The block's lines without line terminators.
        inline_code: Inline code spans per block line.
    """

    start_line: int
    lines: List[str]
    inline_code: List[List[InlineCodeSpan]] = field(default_factory=list)

    def looks_like_diagram(self) -> bool:
        """Check if any line holds a box-drawing glyph."""
        return any(char in LINE_ARMS for line in self.lines for char in line)


def find_inline_code(line: str) -> List[InlineCodeSpan]:
    """Locate inline code spans in a line."""
    return [
        InlineCodeSpan(match.start(), match.end() - 1, match.group(0))
        for match in INLINE_CODE_PATTERN.finditer(line)
    ]


def mask_inline_code(line: str, spans: List[InlineCodeSpan]) -> str:
    """Replace every inline code span with spaces."""
    chars = list(line)
    for span in spans:
        for col in range(span.start_col, span.end_col + 1):
            chars[col] = " "
    return "".join(chars)


def restore_inline_code(line: str, spans: List[InlineCodeSpan]) -> Optional[str]:
    """Put inline code back into a repaired line; None if its cells were written."""
    if not spans:
        return line
    width = max(span.end_col for span in spans) + 1
    chars = list(line.ljust(width))
    for span in spans:
        if any(chars[col] != " " for col in range(span.start_col, span.end_col + 1)):
            return None
        chars[span.start_col : span.end_col + 1] = list(span.text)
    return "".join(chars)


def extract_blocks(lines: List[str]) -> List[DiagramBlock]:
    """
    Split a document into candidate blocks.

    Fence lines, fenced content and ignore regions end the current block
    and are never part of one.
    """
    blocks: List[DiagramBlock] = []
    current: List[Tuple[int, str]] = []
    fence: Optional[str] = None
    ignoring = False

    def flush():
        if current:
            block = DiagramBlock(current[0][0], [line for _, line in current])
            block.inline_code = [find_inline_code(line) for line in block.lines]
            blocks.append(block)
            current.clear()

    for index, line in enumerate(lines):
        stripped = line.strip()
        if fence is not None:
            match = FENCE_PATTERN.match(line)
            if (
                match
                and match.group(1)[0] == fence[0]
                and len(match.group(1)) >= len(fence)
                and not line[match.end() :].strip()
            ):
                fence = None
            continue
        if ignoring:
            if stripped == IGNORE_END:
                ignoring = False
            continue
        match = FENCE_PATTERN.match(line)
        if match:
            flush()
            fence = match.group(1)
            continue
        if stripped == IGNORE_START:
            flush()
            ignoring = True
            continue
        if not stripped:
            flush()
            continue
        current.append((index, line))
    flush()
    return blocks


def repair_block(block: DiagramBlock, repairer: DiagramRepairer) -> List[str]:
    """Repair one block, protecting its inline code. Returns the block's new lines."""
    masked = [
        mask_inline_code(line, spans) for line, spans in zip(block.lines, block.inline_code)
    ]
    repaired = repairer.repair(masked)
    if repaired == masked:
        return block.lines
    restored = list(repaired)
    for i, spans in enumerate(block.inline_code):
        line = restore_inline_code(repaired[i], spans)
        if line is None:
            logger.debug("Block at line %d would disturb inline code; leaving it", block.start_line)
            return block.lines
        restored[i] = line
    return restored


def repair_markdown(text: str, repairer: Optional[DiagramRepairer] = None) -> str:
    """
    Repair every diagram block of a Markdown document.

    Line endings (``\\n`` or ``\\r\\n``) and the presence of a trailing
    newline are preserved.
    """
    repairer = repairer or DiagramRepairer()
    newline = "\r\n" if "\r\n" in text else "\n"
    lines = text.split(newline)

    replacements = []
    for block in extract_blocks(lines):
        if not block.looks_like_diagram():
            continue
        new_lines = repair_block(block, repairer)
        if new_lines != block.lines:
            replacements.append((block.start_line, len(block.lines), new_lines))

    for start, count, new_lines in reversed(replacements):
        lines[start : start + count] = new_lines
    return newline.join(lines)
