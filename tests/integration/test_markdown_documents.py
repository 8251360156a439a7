"""Tests for repairing whole Markdown documents."""

from boxmend import DiagramRepairer, RepairConfig, repair_markdown

DOCUMENT = """# Architecture

The request path is shown below.

┌──┐ ┌──────┐
│A │ │ Bbbb │
└──┘ └──────┘

```text
┌──┐
│Hello│
└──┘
```

<!-- boxmend:ignore -->
┌──┐
│Kept│
└──┘
<!-- /boxmend:ignore -->

┌──┐
│Hello│
└──┘
"""

EXPECTED = """# Architecture

The request path is shown below.

┌──────┐ ┌──────┐
│  A   │ │ Bbbb │
└──────┘ └──────┘

```text
┌──┐
│Hello│
└──┘
```

<!-- boxmend:ignore -->
┌──┐
│Kept│
└──┘
<!-- /boxmend:ignore -->

┌─────┐
│Hello│
└─────┘
"""


class TestMarkdownDocuments:
    """Tests for repair_markdown on realistic documents."""

    def test_document(self):
        assert repair_markdown(DOCUMENT) == EXPECTED

    def test_repaired_document_is_stable(self):
        assert repair_markdown(EXPECTED) == EXPECTED

    def test_custom_repairer(self):
        repairer = DiagramRepairer(RepairConfig(max_group_width=5))
        result = repair_markdown(DOCUMENT, repairer)
        assert "┌──┐ ┌──────┐\n│A │ │ Bbbb │" in result
        assert "┌─────┐\n│Hello│\n└─────┘\n" in result

    def test_document_without_diagrams(self):
        text = "# Notes\n\n- one\n- two\n\n    indented code\n"
        assert repair_markdown(text) == text
