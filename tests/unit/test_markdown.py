"""Tests for Markdown block scanning."""

from boxmend.markdown import (
    IGNORE_END,
    IGNORE_START,
    DiagramBlock,
    extract_blocks,
    find_inline_code,
    mask_inline_code,
    repair_markdown,
    restore_inline_code,
)


class TestInlineCode:
    """Tests for inline code masking."""

    def test_find_inline_code(self):
        spans = find_inline_code("run `make` then ``x`y``")
        assert [(s.start_col, s.end_col, s.text) for s in spans] == [
            (4, 9, "`make`"),
            (16, 22, "``x`y``"),
        ]

    def test_no_inline_code(self):
        assert find_inline_code("plain │ text") == []

    def test_mask(self):
        line = "a `b` c"
        assert mask_inline_code(line, find_inline_code(line)) == "a     c"

    def test_restore(self):
        line = "a `b` c"
        spans = find_inline_code(line)
        assert restore_inline_code("a     c", spans) == line

    def test_restore_pads_short_line(self):
        spans = find_inline_code("ab `c`")
        assert restore_inline_code("ab", spans) == "ab `c`"

    def test_restore_refuses_written_cells(self):
        spans = find_inline_code("a `b` c")
        assert restore_inline_code("a  ─  c", spans) is None


class TestExtractBlocks:
    """Tests for splitting a document into blocks."""

    def test_blank_lines_split_blocks(self):
        blocks = extract_blocks(["one", "two", "", "three"])
        assert [(b.start_line, b.lines) for b in blocks] == [
            (0, ["one", "two"]),
            (3, ["three"]),
        ]

    def test_backtick_fence_excluded(self):
        lines = ["before", "```", "┌──┐", "│Hello│", "└──┘", "```", "after"]
        blocks = extract_blocks(lines)
        assert [b.lines for b in blocks] == [["before"], ["after"]]

    def test_tilde_fence_excluded(self):
        lines = ["~~~~text", "┌──┐", "```", "└──┘", "~~~~", "x"]
        blocks = extract_blocks(lines)
        assert [b.lines for b in blocks] == [["x"]]

    def test_shorter_fence_does_not_close(self):
        lines = ["````", "```", "inside", "````", "out"]
        assert [b.lines for b in extract_blocks(lines)] == [["out"]]

    def test_ignore_region(self):
        lines = ["a", IGNORE_START, "┌──┐", "│Hello│", "└──┘", IGNORE_END, "b"]
        assert [b.lines for b in extract_blocks(lines)] == [["a"], ["b"]]

    def test_inline_code_recorded(self):
        block = extract_blocks(["x `y`"])[0]
        assert len(block.inline_code) == 1
        assert block.inline_code[0][0].text == "`y`"

    def test_looks_like_diagram(self):
        assert DiagramBlock(0, ["┌─┐"]).looks_like_diagram()
        assert not DiagramBlock(0, ["just prose"]).looks_like_diagram()


class TestRepairMarkdown:
    """Tests for repair_markdown."""

    def test_repairs_diagram_block(self):
        text = "Intro\n\n┌──┐\n│Hello│\n└──┘\n\nOutro\n"
        expected = "Intro\n\n┌─────┐\n│Hello│\n└─────┘\n\nOutro\n"
        assert repair_markdown(text) == expected

    def test_fenced_diagram_untouched(self):
        text = "```\n┌──┐\n│Hello│\n└──┘\n```\n"
        assert repair_markdown(text) == text

    def test_prose_untouched(self):
        text = "A paragraph with -- dashes and | pipes.\n\nAnother one."
        assert repair_markdown(text) == text

    def test_crlf_preserved(self):
        text = "┌──┐\r\n│Hello│\r\n└──┘\r\n"
        assert repair_markdown(text) == "┌─────┐\r\n│Hello│\r\n└─────┘\r\n"

    def test_no_trailing_newline_kept(self):
        assert repair_markdown("┌──┐\n│Hello│\n└──┘") == "┌─────┐\n│Hello│\n└─────┘"

    def test_inline_code_restored(self):
        text = "┌──┐\n│Hello│\n└──┘\nrun `make`\n"
        expected = "┌─────┐\n│Hello│\n└─────┘\nrun `make`\n"
        assert repair_markdown(text) == expected

    def test_block_left_when_inline_code_disturbed(self):
        text = "┌──┐ `x`\n│Hello│\n└──┘\n"
        assert repair_markdown(text) == text
