"""Shared test fixtures for the tracktracer test suite."""

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from tracktracer import TrackEditor, TrackGraph

# =============================================================================
# Hypothesis Configuration
# =============================================================================
# - "ci": Fast profile for CI pipelines (fewer examples, no deadline)
# - "dev": Standard development profile (moderate examples)
# - "thorough": Full property testing (many examples, for pre-release)

settings.register_profile(
    "ci",
    max_examples=10,
    deadline=None,  # Disable deadline in CI (variable performance)
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "dev",
    max_examples=25,
    deadline=5000,
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "thorough",
    max_examples=100,
    deadline=None,
    verbosity=Verbosity.verbose,
)

# Set HYPOTHESIS_PROFILE=ci in CI environments for faster tests
_profile = os.environ.get("HYPOTHESIS_PROFILE", "dev")
settings.load_profile(_profile)


# =============================================================================
# --- Fixtures ---
# =============================================================================
@pytest.fixture
def three_point_graph() -> TrackGraph:
    """Graph with three points along the x-axis, no edges."""
    graph = TrackGraph()
    graph.add_point(0.0, 0.0)
    graph.add_point(10.0, 0.0)
    graph.add_point(20.0, 0.0)
    return graph


@pytest.fixture
def notices() -> list[str]:
    """Collects notices sent by an editor."""
    return []


@pytest.fixture
def editor(notices: list[str]) -> TrackEditor:
    """Editor with no view transform that records its notices."""
    return TrackEditor(notify=notices.append)


@pytest.fixture
def populated_editor(editor: TrackEditor) -> TrackEditor:
    """Editor with three attributed points and one auxiliary edge."""
    a = editor.on_canvas_click(0.0, 0.0)
    b = editor.on_canvas_click(50.0, 0.0)
    c = editor.on_canvas_click(50.0, 50.0)
    editor.graph.assign_attribute([a.id], "surface", "Asphalt")
    editor.graph.assign_attribute([b.id], "corner", "Low speed")
    editor.graph.assign_attribute([c.id], "incline", 4.5)
    editor.graph.add_edge(a.id, c.id)
    editor.interaction.clear_selection()
    editor.image = "data:image/png;base64,iVBORw0KGgo="
    return editor
