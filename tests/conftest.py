"""Pytest configuration and shared fixtures for boxmend tests."""

import pytest

from boxmend import DiagramRepairer, Grid, PrimitiveDetector, RepairConfig


@pytest.fixture
def normalized_box():
    """A box whose text already fits."""
    return ["┌──┐", "│Hi│", "└──┘"]


@pytest.fixture
def overflowing_box():
    """A box whose text runs past its right corner column."""
    return ["┌──┐", "│Hello│", "└──┘"]


@pytest.fixture
def nested_flush():
    """A parent box with a child touching its top-left border."""
    return [
        "┌──────┐",
        "│┌──┐  │",
        "││A │  │",
        "│└──┘  │",
        "└──────┘",
    ]


@pytest.fixture
def side_by_side():
    """Two boxes of different width one column apart."""
    return [
        "┌──┐ ┌──────┐",
        "│A │ │ Bbbb │",
        "└──┘ └──────┘",
    ]


@pytest.fixture
def connected_boxes():
    """Two boxes joined by an L-shaped connection line."""
    return [
        "┌───┐",
        "│ A ├──┐",
        "└───┘  │",
        "       ▼",
        "     ┌───┐",
        "     │ B │",
        "     └───┘",
    ]


@pytest.fixture
def config():
    """Default RepairConfig instance."""
    return RepairConfig()


@pytest.fixture
def detector():
    """Default PrimitiveDetector instance."""
    return PrimitiveDetector()


@pytest.fixture
def repairer():
    """Default DiagramRepairer instance."""
    return DiagramRepairer()


@pytest.fixture
def scan(detector):
    """Detect primitives in a list of lines."""

    def _scan(lines):
        return detector.scan(Grid.from_lines(lines))

    return _scan
