"""napari layers and event bindings for the track tracer.

This module renders a TrackEditor into napari layers and forwards napari
mouse/keyboard events to it. It holds no state of its own: every handler
mutates the editor and then re-renders from it.

Notes
-----
This module requires napari to be installed. All napari-dependent code
is imported lazily to allow the rest of the package to work without napari.
`build_point_features` only needs pandas and is usable without a viewer.
Reference images are decoded with imageio, which ships with napari.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from tracktracer._types import CORNERS, SURFACES
from tracktracer.transforms import ViewportTransform

if TYPE_CHECKING:
    import napari
    from napari.layers import Image, Points, Shapes

    from tracktracer._track_state import TrackGraph
    from tracktracer.editor import TrackEditor

logger = logging.getLogger(__name__)


# =============================================================================
# Colour Palette
# =============================================================================
# Based on Tab10 colormap

POINT_COLOR: str = "#d62728"
"""Red - Default colour for track point markers."""

SELECTED_COLOR: str = "#ffd92f"
"""Yellow - Highlight for selected points."""

PATH_COLOR: str = "#1f77b4"
"""Blue - Primary track path through points in sequence order."""

CLOSING_COLOR: str = "#aec7e8"
"""Light blue - Closing segment from last to first point (circuits)."""

EDGE_COLOR: str = "#2ca02c"
"""Green - Auxiliary edges created in connect mode."""

# Size constants for markers
POINT_SIZE: float = 10.0
"""Default marker size in pixels."""

PENDING_POINT_SIZE: float = 16.0
"""Larger marker for the pending connect-mode endpoint."""

REFERENCE_IMAGE_LAYER: str = "Reference Image"
"""Name of the layer showing the editor's reference image."""


def _hex_to_rgba(hex_color: str) -> np.ndarray:
    """Convert hex color string ("#rrggbb" or "#rrggbbaa") to an RGBA array."""
    hex_color = hex_color.lstrip("#")
    if len(hex_color) not in (6, 8):
        raise ValueError(f"Invalid hex color: {hex_color}")
    channels = [int(hex_color[i : i + 2], 16) / 255.0 for i in range(0, len(hex_color), 2)]
    if len(channels) == 3:
        channels.append(1.0)
    return np.array(channels, dtype=np.float64)


# =============================================================================
# Layer Setup
# =============================================================================


def setup_track_layers(viewer: napari.Viewer) -> tuple[Shapes, Shapes, Points]:
    """Create napari layers for track tracing.

    Layers are added bottom to top: primary path, auxiliary edges, point
    markers. Markers are on top so they stay clickable.

    Returns
    -------
    path_layer : napari.layers.Shapes
        Polyline through the points in sequence order.
    edges_layer : napari.layers.Shapes
        Auxiliary connect-mode edges.
    points_layer : napari.layers.Points
        Point markers, labelled with their 1-based sequence number.

    """
    path_layer = viewer.add_shapes(
        name="Track Path",
        shape_type="path",
        edge_color=PATH_COLOR,
        edge_width=2,
    )
    edges_layer = viewer.add_shapes(
        name="Track Edges",
        shape_type="line",
        edge_color=EDGE_COLOR,
        edge_width=2,
    )
    points_layer = viewer.add_points(
        name="Track Points",
        size=POINT_SIZE,
        face_color=POINT_COLOR,
        border_color="black",
        border_width=1,
        border_width_is_relative=False,
        features=build_point_features(None),
        text={"string": "{label}", "anchor": "upper_left", "size": 10, "color": "black"},
    )
    # Clicks are interpreted by our own mouse callbacks, not napari's add mode
    points_layer.mode = "pan_zoom"
    return path_layer, edges_layer, points_layer


# =============================================================================
# Features and Synchronization
# =============================================================================


def build_point_features(graph: TrackGraph | None) -> pd.DataFrame:
    """Build the per-point features table shown on the points layer.

    Parameters
    ----------
    graph : TrackGraph or None
        Source graph. None gives an empty table with the right columns.

    Returns
    -------
    pd.DataFrame
        Columns ``id``, ``label`` (1-based sequence number), categorical
        ``surface`` and ``corner``, and float ``incline``. Values outside the
        known categories show as missing.

    """
    points = list(graph) if graph is not None else []
    return pd.DataFrame(
        {
            "id": pd.Series([p.id for p in points], dtype=str),
            "label": pd.Series([str(i + 1) for i in range(len(points))], dtype=str),
            "surface": pd.Categorical([p.surface for p in points], categories=SURFACES),
            "corner": pd.Categorical([p.corner for p in points], categories=CORNERS),
            "incline": pd.Series([p.incline for p in points], dtype=np.float64),
        }
    )


def _to_napari(x: float, y: float) -> list[float]:
    # napari uses (row, col) = (y, x)
    return [y, x]


def sync_layers_from_editor(
    editor: TrackEditor,
    path_layer: Shapes,
    edges_layer: Shapes,
    points_layer: Points,
) -> None:
    """Re-render all track layers from the editor state.

    Dangling edges are skipped. The closing segment is drawn only for
    circuit races with more than one point.
    """
    graph = editor.graph
    points = graph.points
    selected = set(editor.selection)

    if points:
        points_layer.data = np.array([_to_napari(p.x, p.y) for p in points], dtype=np.float64)
        points_layer.features = build_point_features(graph)
        face_colors = np.tile(_hex_to_rgba(POINT_COLOR), (len(points), 1))
        sizes = np.full(len(points), POINT_SIZE, dtype=np.float64)
        for i, point in enumerate(points):
            if point.id in selected:
                face_colors[i] = _hex_to_rgba(SELECTED_COLOR)
            if point.id == editor.pending_id:
                sizes[i] = PENDING_POINT_SIZE
        points_layer.face_color = face_colors
        points_layer.size = sizes
    else:
        points_layer.data = np.empty((0, 2), dtype=np.float64)
        points_layer.features = build_point_features(None)

    path_layer.data = []
    if len(points) > 1:
        path = np.array([_to_napari(p.x, p.y) for p in points], dtype=np.float64)
        path_layer.add_paths([path], edge_color=PATH_COLOR)
        if editor.metadata.is_circuit:
            first, last = points[0], points[-1]
            closing = np.array([_to_napari(last.x, last.y), _to_napari(first.x, first.y)])
            path_layer.add_lines([closing], edge_color=CLOSING_COLOR)

    edges_layer.data = []
    lines = [
        np.array([_to_napari(pa.x, pa.y), _to_napari(pb.x, pb.y)], dtype=np.float64)
        for _edge, pa, pb in graph.resolved_edges()
    ]
    if lines:
        edges_layer.add_lines(lines, edge_color=EDGE_COLOR)


def decode_image_payload(payload: str) -> np.ndarray:
    """Decode a base64 ``data:`` URL into an image array.

    Parameters
    ----------
    payload : str
        Reference image as stored on the editor, e.g.
        ``"data:image/png;base64,iVBOR..."``.

    Returns
    -------
    np.ndarray
        Image pixels, (rows, cols) or (rows, cols, channels).

    Raises
    ------
    ValueError
        If the payload is not a base64 data URL or holds no readable image.

    """
    import imageio.v3 as iio

    header, sep, encoded = payload.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Reference image is not a base64 data: URL")
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Reference image has invalid base64 data: {e}") from e
    try:
        return np.asarray(iio.imread(raw))
    except (OSError, ValueError) as e:
        raise ValueError(f"Reference image could not be read: {e}") from e


def sync_reference_image(viewer: napari.Viewer, payload: str | None) -> Image | None:
    """Show ``payload`` as the single reference image layer.

    The layer is replaced (not updated in place) because a new image may
    differ in shape or channel count. It is kept at the bottom of the layer
    stack and the previously active layer stays active. Without a payload, or
    when it cannot be decoded, any existing reference layer is removed.

    Returns
    -------
    napari.layers.Image or None
        The reference image layer, if one is shown.

    """
    for layer in [lyr for lyr in viewer.layers if lyr.name == REFERENCE_IMAGE_LAYER]:
        viewer.layers.remove(layer)
    if payload is None:
        return None

    try:
        data = decode_image_payload(payload)
    except ValueError as e:
        logger.warning("Cannot display reference image: %s", e)
        return None

    active = viewer.layers.selection.active
    layer = viewer.add_image(data, name=REFERENCE_IMAGE_LAYER)
    viewer.layers.move(viewer.layers.index(layer), 0)
    if active is not None:
        viewer.layers.selection.active = active
    return layer


# =============================================================================
# Event Handlers
# =============================================================================


def viewport_from_layer(layer: Any) -> ViewportTransform:
    """Viewport transform for a 2D napari layer (data → world).

    Combines the layer's scale and translate with its extra affine. Rotation
    and shear are not used by the tracer layers.
    """
    data_to_physical = np.eye(3)
    data_to_physical[:2, :2] = np.diag(np.asarray(layer.scale, dtype=np.float64)[-2:])
    data_to_physical[:2, 2] = np.asarray(layer.translate, dtype=np.float64)[-2:]
    matrix = np.asarray(layer.affine.affine_matrix, dtype=np.float64)[-3:, -3:]
    return ViewportTransform.from_napari_affine(matrix @ data_to_physical)


def _device_xy(position: Iterable[float]) -> tuple[float, float]:
    row, col = list(position)[-2:]
    return float(col), float(row)


def _modifier_names(modifiers: Iterable[Any]) -> set[str]:
    return {str(getattr(m, "name", m)) for m in modifiers}


def attach_mouse_handlers(
    editor: TrackEditor,
    points_layer: Points,
    refresh: Callable[[], None],
) -> None:
    """Forward napari mouse events on ``points_layer`` to the editor.

    A press on a marker starts a drag; a press and release without movement
    is a click, on the marker or on empty canvas. Dragging empty canvas pans
    the camera as usual and adds nothing.
    """

    @points_layer.mouse_drag_callbacks.append
    def on_mouse(layer, event):
        if getattr(event, "button", 1) != 1:
            return
        editor.viewport = viewport_from_layer(layer)
        device_x, device_y = _device_xy(event.position)
        modifiers = _modifier_names(getattr(event, "modifiers", ()))
        hit = editor.hit_test(device_x, device_y)

        if hit is not None:
            editor.on_marker_press(hit.id)
        # Keep the camera still while a marker is dragged
        pan_enabled = layer.mouse_pan
        if editor.interaction.is_dragging:
            layer.mouse_pan = False
        yield

        moved = False
        try:
            while event.type == "mouse_move":
                moved = True
                editor.on_pointer_move(*_device_xy(event.position))
                refresh()
                yield
        finally:
            editor.on_pointer_release()
            layer.mouse_pan = pan_enabled

        if not moved:
            if hit is not None:
                editor.on_marker_click(hit.id, modifiers)
            else:
                editor.on_canvas_click(device_x, device_y)
        refresh()


def bind_editor_keys(
    viewer: napari.Viewer,
    editor: TrackEditor,
    refresh: Callable[[], None],
) -> None:
    """Bind the undo key and Escape (cancel pending edge) on the viewer.

    napari does not deliver viewer key bindings while a Qt text input has
    focus, so typing a value in a control never triggers undo.
    """
    undo_key = editor.config.undo_key.lower()

    def _handler(key: str) -> Callable[[Any], None]:
        def handle(viewer: Any) -> None:
            action = editor.on_key(key)
            if action == "undo":
                viewer.status = "Removed last point"
            elif action == "cancel":
                viewer.status = "Edge creation cancelled"
            refresh()

        return handle

    viewer.bind_key(undo_key, _handler(undo_key), overwrite=True)
    viewer.bind_key("Escape", _handler("Escape"), overwrite=True)
