"""
Tests for the tracer module.

These tests verify the repair trace: per-pass primitive changes and the
cell writes the renderer makes for each primitive.
"""

from boxmend.grid import Grid
from boxmend.models import Box, BoxStyle, PrimitiveInventory
from boxmend.tracer import (
    CellWrite,
    PipelineStage,
    PrimitiveChange,
    RepairTrace,
    diff_geometry,
    snapshot_geometry,
)


def one_box_inventory():
    box = Box(top_left=(0, 0), bottom_right=(2, 3), style=BoxStyle.SINGLE)
    return PrimitiveInventory(boxes=[box], width=4, height=3)


class TestCellWrite:
    """Tests for CellWrite dataclass."""

    def test_creation(self):
        """Test basic creation of CellWrite."""
        write = CellWrite(
            row=5, col=10, char="│", previous_char=" ", reason="box_border", primitive="box 0"
        )
        assert (write.row, write.col) == (5, 10)
        assert write.char == "│"
        assert write.reason == "box_border"
        assert write.primitive == "box 0"

    def test_str_new_write(self):
        """Test string representation for a write onto a blank cell."""
        result = str(CellWrite(5, 10, "│", " ", "box_border", "box 0"))
        assert "(5,10)" in result
        assert "'│'" in result
        assert "box_border" in result
        assert "for box 0" in result

    def test_str_overwrite(self):
        """Test string representation for an overwrite."""
        write = CellWrite(5, 10, " ", "│", "clear_footprint", "box 1")
        assert "'│' -> ' '" in str(write)


class TestGeometryDiff:
    """Tests for snapshot_geometry and diff_geometry."""

    def test_snapshot_keys(self):
        snapshot = snapshot_geometry(one_box_inventory())
        assert snapshot == {("box", 0): ((0, 0), (2, 3))}

    def test_no_change(self):
        inv = one_box_inventory()
        assert diff_geometry(snapshot_geometry(inv), inv) == []

    def test_grown_box(self):
        inv = one_box_inventory()
        before = snapshot_geometry(inv)
        inv.boxes[0].bottom_right = (2, 6)

        changes = diff_geometry(before, inv)

        assert len(changes) == 1
        assert (changes[0].kind, changes[0].index) == ("box", 0)
        assert changes[0].before == ((0, 0), (2, 3))
        assert changes[0].after == ((0, 0), (2, 6))

    def test_change_str(self):
        change = PrimitiveChange("harrow", 0, (1, 5, 7), (1, 8, 10))
        assert str(change) == "harrow 0: (1, 5, 7) -> (1, 8, 10)"


class TestPipelineStage:
    """Tests for PipelineStage dataclass."""

    def test_creation_basic(self):
        """Test basic creation without changes or grid."""
        stage = PipelineStage(name="detected", data={"boxes": 2})
        assert stage.name == "detected"
        assert stage.data["boxes"] == 2
        assert stage.changes == []
        assert stage.grid_snapshot is None

    def test_str_lists_changes_and_grid(self):
        stage = PipelineStage(
            name="box_widths",
            data={"boxes": 1},
            changes=[PrimitiveChange("box", 0, ((0, 0), (2, 3)), ((0, 0), (2, 6)))],
            grid_snapshot=["┌───┐", "└───┘"],
        )
        result = str(stage)
        assert "=== Stage: box_widths ===" in result
        assert "changed box 0:" in result
        assert "|┌───┐|" in result


class TestRepairTrace:
    """Tests for RepairTrace class."""

    def test_creation(self):
        trace = RepairTrace()
        assert trace.stages == []
        assert trace.writes == []
        assert trace.input_text == ""

    def test_add_stage_with_grid(self):
        trace = RepairTrace()
        trace.add_stage("input", {"width": 2}, Grid.from_lines(["ab"]))
        assert trace.get_stage("input").grid_snapshot == ["ab"]

    def test_stage_data_is_copied(self):
        data = {"boxes": 1}
        trace = RepairTrace()
        trace.add_stage("detected", data)
        data["boxes"] = 5
        assert trace.get_stage("detected").data["boxes"] == 1

    def test_get_stage_missing(self):
        assert RepairTrace().get_stage("nonexistent") is None

    def test_history(self):
        """A primitive's history lists the passes that changed it."""
        trace = RepairTrace()
        grow = PrimitiveChange("box", 0, ((0, 0), (2, 3)), ((0, 0), (2, 6)))
        move = PrimitiveChange("harrow", 0, (1, 5, 7), (1, 8, 10))
        trace.add_stage("box_widths", {}, changes=[grow, move])
        trace.add_stage("side_by_side", {})

        assert trace.history("box", 0) == [("box_widths", grow)]
        assert trace.history("harrow", 0) == [("box_widths", move)]
        assert trace.history("box", 1) == []

    def test_writes_at_and_for(self):
        trace = RepairTrace()
        trace.add_write(5, 10, " ", "│", "clear_footprint", "box 0")
        trace.add_write(5, 10, "│", " ", "box_border", "box 0")
        trace.add_write(6, 10, "a", " ", "text_row", "text 0")

        assert len(trace.writes_at(5, 10)) == 2
        assert trace.writes_at(0, 0) == []
        assert len(trace.writes_for("box 0")) == 2
        assert [w.char for w in trace.writes_for("text 0")] == ["a"]

    def test_overwrites(self):
        trace = RepairTrace()
        trace.add_write(0, 0, " ", "│", "clear_footprint", "box 0")
        trace.add_write(0, 0, "│", " ", "box_border", "box 0")
        trace.add_write(0, 1, "┐", "─", "box_border", "box 0")

        overwrites = trace.overwrites()
        assert len(overwrites) == 2
        assert all(w.previous_char != " " for w in overwrites)

    def test_summary(self):
        trace = RepairTrace(input_text="┌──┐")
        trace.add_stage("input", {})
        trace.add_stage(
            "box_widths", {}, changes=[PrimitiveChange("box", 0, None, ((0, 0), (2, 6)))]
        )
        trace.add_write(0, 0, "│", " ", "box_border", "box 0")
        trace.add_write(0, 1, " ", "x", "clear_footprint", "box 0")

        summary = trace.summary()

        assert "REPAIR TRACE SUMMARY" in summary
        assert "┌──┐" in summary
        assert "Pipeline stages: 2" in summary
        assert "box_widths (1 changed)" in summary
        assert "Cells written: 2" in summary
        assert "Overwrites: 1" in summary
        assert "box 0: 2" in summary

    def test_dump(self):
        trace = RepairTrace(input_text="ab")
        trace.add_stage("detected", {"x": 1})
        trace.add_write(0, 0, "X", " ", "text_row", "text 0")

        dump = trace.dump()

        assert "DETAILED TRACE" in dump
        assert "PIPELINE STAGES" in dump
        assert "CELL WRITES" in dump
        assert "for text 0" in dump

    def test_dump_to_file(self, tmp_path):
        trace = RepairTrace(input_text="ab")
        trace.add_stage("detected", {"data": 1})

        filepath = tmp_path / "trace.txt"
        trace.dump_to_file(str(filepath))

        assert "REPAIR TRACE SUMMARY" in filepath.read_text(encoding="utf-8")


class TestRepairTraceIntegration:
    """Integration tests for RepairTrace with actual repairs."""

    def test_debug_mode_captures_trace(self, overflowing_box):
        from boxmend import DiagramRepairer

        repairer = DiagramRepairer(debug=True)
        repairer.repair(overflowing_box)

        trace = repairer.get_trace()
        assert trace is not None
        assert len(trace.writes) > 0

    def test_debug_mode_captures_all_stages(self, overflowing_box):
        """Test that all expected pipeline stages are captured."""
        from boxmend import DiagramRepairer

        repairer = DiagramRepairer(debug=True)
        repairer.repair(overflowing_box)

        stage_names = [s.name for s in repairer.get_trace().stages]
        assert stage_names == [
            "input",
            "detected",
            "box_widths",
            "side_by_side",
            "nested_boxes",
            "horizontal_arrows",
            "vertical_arrows",
            "connection_lines",
            "labels",
            "padding",
            "rendered",
        ]

    def test_follower_history(self):
        """The arrow beside a widened box is moved in the same pass."""
        from boxmend import DiagramRepairer

        repairer = DiagramRepairer(debug=True)
        repairer.repair(["┌──┐", "│Hi│ ──►", "│Hello│", "└──┘"])
        trace = repairer.get_trace()

        assert [name for name, _ in trace.history("box", 0)] == ["box_widths"]
        assert [name for name, _ in trace.history("harrow", 0)] == ["box_widths"]
        assert trace.writes_for("harrow 0")

    def test_rendered_snapshot_matches_output(self, overflowing_box):
        from boxmend import DiagramRepairer

        repairer = DiagramRepairer(debug=True)
        result = repairer.repair(overflowing_box)
        assert repairer.get_trace().get_stage("rendered").grid_snapshot == result

    def test_debug_mode_off_no_trace(self, overflowing_box):
        from boxmend import DiagramRepairer

        repairer = DiagramRepairer()
        repairer.repair(overflowing_box)
        assert repairer.get_trace() is None
