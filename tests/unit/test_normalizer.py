"""Tests for geometry normalization."""

from boxmend.config import RepairConfig
from boxmend.models import Box
from boxmend.normalizer import Normalizer
from boxmend.tracer import RepairTrace

# Path of four segments from A's junction down onto B
STAIR_PATH = [
    "┌───┐",
    "│ A ├─┐",
    "└───┘ └┐",
    "       │",
    "       ▼",
    "    ┌─────┐",
    "    │  B  │",
    "    └─────┘",
]


# Right box has text running through its right border
RAGGED_PAIR = [
    "┌──────┐ ┌─────┐",
    "│ Yb   │ │ZcaZXZca│",
    "└──────┘ │X    │ ──►",
    "         └─────┘",
]


class TestRun:
    """Tests for Normalizer.run."""

    def test_input_untouched(self, scan, overflowing_box):
        inv = scan(overflowing_box)
        result = Normalizer().run(inv)
        assert inv.boxes[0].right == 3
        assert result.boxes[0].right == 6

    def test_pass_order(self):
        names = [name for name, _ in Normalizer().passes()]
        assert names == [
            "box_widths",
            "side_by_side",
            "nested_boxes",
            "horizontal_arrows",
            "vertical_arrows",
            "connection_lines",
            "labels",
            "padding",
        ]

    def test_trace_gets_one_stage_per_pass(self, scan, overflowing_box):
        trace = RepairTrace()
        Normalizer().run(scan(overflowing_box), trace=trace)
        assert [stage.name for stage in trace.stages][0] == "box_widths"
        assert len(trace.stages) == 8
        changes = trace.get_stage("box_widths").changes
        assert [(c.kind, c.index) for c in changes] == [("box", 0)]
        assert changes[0].after == ((0, 0), (2, 6))
        assert trace.get_stage("labels").changes == []

    def test_normalized_diagram_unchanged(self, scan, normalized_box):
        result = Normalizer().run(scan(normalized_box))
        assert not any(item.is_dirty() for _, _, item in result.iter_primitives())


class TestBoxWidths:
    """Tests for box width expansion."""

    def test_flush_text(self, scan, overflowing_box):
        result = Normalizer().run(scan(overflowing_box))
        assert result.boxes[0].bottom_right == (2, 6)
        assert result.boxes[0].top_left == (0, 0)

    def test_padded_text(self, scan):
        result = Normalizer().run(scan(["┌──┐", "│ Hi│", "└──┘"]))
        assert result.boxes[0].right == 5

    def test_never_shrinks(self, scan):
        result = Normalizer().run(scan(["┌──────┐", "│Hi    │", "└──────┘"]))
        assert result.boxes[0].right == 7

    def test_junction_on_right_edge_blocks_growth(self, scan):
        inv = scan(["┌──┐", "│Hello│", "│  ├─", "└──┘"])
        assert inv.boxes[0].junctions == {(2, 3): "├"}
        result = Normalizer().run(inv)
        assert result.boxes[0].right == 3

    def test_required_right(self, scan, overflowing_box):
        inv = scan(overflowing_box)
        assert Normalizer().required_right(inv, 0) == 6

    def test_arrow_beside_edge_moves_with_it(self, scan):
        result = Normalizer().run(scan(["┌──┐", "│Hi│ ──►", "│Hello│", "└──┘"]))
        arrow = result.horizontal_arrows[0]
        assert result.boxes[0].right == 6
        assert (arrow.start_col, arrow.end_col) == (8, 10)

    def test_label_beside_edge_moves_with_it(self, scan):
        result = Normalizer().run(scan(["┌──┐", "│Hi│ yes", "│Hello│", "└──┘"]))
        assert result.boxes[0].right == 6
        assert result.labels[0].geometry() == (1, 8)


class TestSideBySide:
    """Tests for side-by-side balancing."""

    def test_groups(self, scan, side_by_side):
        assert Normalizer().side_by_side_groups(scan(side_by_side)) == [[0, 1]]

    def test_wide_gap_is_not_a_group(self, scan):
        inv = scan(["┌──┐   ┌────┐", "│A │   │ Bb │", "└──┘   └────┘"])
        assert Normalizer().side_by_side_groups(inv) == []

    def test_balance(self, scan, side_by_side):
        result = Normalizer().run(scan(side_by_side))
        a, b = result.boxes
        assert a.geometry() == ((0, 0), (2, 7))
        assert b.geometry() == ((0, 9), (2, 16))
        assert result.text_rows[0].start_col == 3
        assert result.text_rows[1].start_col == 11

    def test_mixed_styles_skipped(self, scan):
        inv = scan(["┌──┐ ╔══════╗", "│A │ ║ Bbbb ║", "└──┘ ╚══════╝"])
        result = Normalizer().run(inv)
        assert result.boxes[0].width == 4
        assert result.boxes[1].width == 8

    def test_group_width_limit(self, scan, side_by_side):
        result = Normalizer(RepairConfig(max_group_width=5)).run(scan(side_by_side))
        assert result.boxes[0].width == 4

    def test_flush_box_kept_flush_when_rows_cannot_be_padded(self, scan):
        inv = scan(["┌───┐┌──┐", "│bab││b │", "└───┘│ca│", "     └──┘"])
        result = Normalizer().run(inv)
        assert result.boxes[1].geometry() == ((0, 5), (3, 9))
        assert [t.start_col for t in result.text_rows_of(1)] == [6, 6]

    def test_displaced_border_member_keeps_its_text(self, scan):
        inv = scan(RAGGED_PAIR)
        assert inv.boxes[1].ragged_rows == {1: 18}
        result = Normalizer().run(inv)
        a, b = result.boxes
        assert a.geometry() == ((0, 0), (2, 9))
        assert b.geometry() == ((0, 11), (3, 20))
        assert result.horizontal_arrows[0].geometry() == (2, 22, 24)


class TestNestedBoxes:
    """Tests for nested-box expansion."""

    def test_child_gets_margin(self, scan, nested_flush):
        result = Normalizer().run(scan(nested_flush))
        outer, inner = result.boxes
        assert outer.geometry() == ((0, 0), (6, 7))
        assert inner.geometry() == ((2, 2), (4, 5))
        assert result.text_rows[0].geometry() == (3, 3)

    def test_margin_already_present(self, scan):
        inv = scan(
            [
                "┌────────┐",
                "│        │",
                "│ ┌────┐ │",
                "│ │ In │ │",
                "│ └────┘ │",
                "│        │",
                "└────────┘",
            ]
        )
        result = Normalizer().run(inv)
        assert not any(item.is_dirty() for _, _, item in result.iter_primitives())


class TestArrows:
    """Tests for arrow alignment."""

    def test_horizontal_arrow_keeps_gap(self, scan):
        result = Normalizer().run(scan(["┌──┐", "│ Hi│  ──→", "└──┘"]))
        arrow = result.horizontal_arrows[0]
        assert result.boxes[0].right == 5
        assert (arrow.start_col, arrow.end_col) == (8, 10)

    def test_vertical_arrow_snaps_to_centre(self, scan):
        inv = scan(
            [
                "┌─────┐",
                "│ Top │",
                "└─────┘",
                "  │",
                "  ▼",
                "┌─────┐",
                "│ Bot │",
                "└─────┘",
            ]
        )
        result = Normalizer().run(inv)
        varrow = result.vertical_arrows[0]
        assert varrow.geometry() == (3, 3, 4)

    def test_snap_column(self):
        normalizer = Normalizer()
        box = Box((5, 0), (7, 4))
        assert normalizer.snap_column(box, 1) == 2
        assert normalizer.snap_column(box, 5) == 4
        assert normalizer.snap_column(box, 2) is None
        assert normalizer.snap_column(box, 10) is None


class TestConnections:
    """Tests for connection normalization."""

    def test_loose_end_snaps_onto_box(self, scan):
        inv = scan(
            [
                "┌───┐",
                "│ A ├─┐",
                "└───┘ │",
                "      ▼",
                "",
                "    ┌───┐",
                "    │ B │",
                "    └───┘",
            ]
        )
        assert inv.connection_lines[0].to_box is None
        line = Normalizer().run(inv).connection_lines[0]
        assert line.to_box == 1
        assert line.end_point == (4, 6)

    def test_long_path_straightened(self, scan):
        inv = scan(STAIR_PATH)
        assert len(inv.connection_lines[0].segments) == 4
        line = Normalizer().run(inv).connection_lines[0]
        assert len(line.segments) == 2
        assert line.points() == [(1, 5), (1, 6), (1, 7), (2, 7), (3, 7), (4, 7)]


class TestLabels:
    """Tests for label repositioning."""

    def test_label_follows_box_edge(self, scan):
        result = Normalizer().run(scan(["┌──┐", "│ Hi│ note", "└──┘"]))
        assert result.boxes[0].right == 5
        assert result.labels[0].geometry() == (1, 7)

    def test_label_stays_beside_ragged_border(self, scan):
        result = Normalizer().run(scan(["┌──┐", "│Hello│ no", "└──┘"]))
        assert result.boxes[0].right == 6
        assert result.labels[0].geometry() == (1, 8)


class TestPadding:
    """Tests for interior padding."""

    def test_unpadded_row_in_padded_box(self, scan):
        inv = scan(["┌─────┐", "│ ab  │", "│cd   │", "└─────┘"])
        result = Normalizer().run(inv)
        assert [t.start_col for t in result.text_rows] == [2, 2]
        assert result.boxes[0].right == 6

    def test_flush_box_left_alone(self, scan, normalized_box):
        result = Normalizer().run(scan(normalized_box))
        assert result.text_rows[0].start_col == 1

