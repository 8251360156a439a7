"""Tests for the character grid."""

from boxmend.grid import Grid


class TestGridConstruction:
    """Tests for building grids."""

    def test_from_lines_pads_short_lines(self):
        """Short lines are padded with spaces to the widest line."""
        grid = Grid.from_lines(["ab", "c"])
        assert grid.width == 2
        assert grid.height == 2
        assert grid.get(1, 0) == "c"
        assert grid.get(1, 1) == " "

    def test_from_no_lines(self):
        """An empty block gives an empty grid."""
        grid = Grid.from_lines([])
        assert grid.width == 0
        assert grid.height == 0
        assert grid.render() == []

    def test_fill_char(self):
        """A fresh grid is filled with the fill character."""
        grid = Grid(3, 2, fill_char=".")
        assert grid.row_text(1) == "..."


class TestGridAccess:
    """Tests for reading and writing cells."""

    def test_get_outside_returns_none(self):
        """Reads outside the grid return None."""
        grid = Grid.from_lines(["ab"])
        assert grid.get(-1, 0) is None
        assert grid.get(0, 5) is None
        assert grid.get(5, 0) is None

    def test_set_inside_and_outside(self):
        """Writes report whether they landed."""
        grid = Grid(2, 2)
        assert grid.set(1, 1, "x") is True
        assert grid.get(1, 1) == "x"
        assert grid.set(2, 0, "x") is False

    def test_draw_text(self):
        """Text is drawn left to right and clipped at the edge."""
        grid = Grid(4, 1)
        grid.draw_text(0, 1, "abcd")
        assert grid.row_text(0) == " abc"

    def test_row_text_outside(self):
        """Rows outside the grid read as empty."""
        assert Grid(2, 2).row_text(3) == ""

    def test_copy_is_independent(self):
        """Changing a copy leaves the original alone."""
        grid = Grid.from_lines(["ab"])
        clone = grid.copy()
        clone.set(0, 0, "x")
        assert grid.get(0, 0) == "a"
        assert clone.render() == ["xb"]


class TestGridRender:
    """Tests for rendering grids back to lines."""

    def test_unmodified_grid_round_trips(self):
        """Trailing spaces of the source survive, padding does not."""
        lines = ["┌──┐", "│Hi│  ", "x"]
        assert Grid.from_lines(lines).render() == lines

    def test_render_trimmed(self):
        """render_trimmed drops every trailing space."""
        grid = Grid.from_lines(["ab  "])
        assert grid.render() == ["ab  "]
        assert grid.render_trimmed() == ["ab"]

    def test_ensure_size_grows(self):
        """ensure_size adds columns and blank rows."""
        grid = Grid.from_lines(["ab"])
        grid.ensure_size(6, 4)
        assert grid.width == 6
        assert grid.height == 4
        assert grid.render() == ["ab", "", "", ""]

    def test_ensure_size_never_shrinks(self):
        """A smaller size is ignored."""
        grid = Grid.from_lines(["abc", "d"])
        grid.ensure_size(1, 1)
        assert grid.width == 3
        assert grid.height == 2

    def test_write_past_source_line(self):
        """Cells written beyond a source line's end are kept."""
        grid = Grid.from_lines(["ab"])
        grid.ensure_size(4, 1)
        grid.set(0, 3, "x")
        assert grid.render() == ["ab x"]

    def test_str(self):
        """str() joins rendered lines."""
        assert str(Grid.from_lines(["a", "b"])) == "a\nb"
