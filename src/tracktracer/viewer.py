"""Interactive track tracing entry point.

Opens a napari viewer with an optional reference image so the user can trace
a track, then returns the editor holding the result.

Examples
--------
>>> from tracktracer import trace_track
>>> editor = trace_track("circuit.png")  # doctest: +SKIP
>>> editor.export_to("track.json")  # doctest: +SKIP

"""

from __future__ import annotations

import logging
from pathlib import Path

from tracktracer._napari_widget import create_tracer_widget
from tracktracer._track_widget import (
    attach_mouse_handlers,
    bind_editor_keys,
    setup_track_layers,
    sync_layers_from_editor,
    sync_reference_image,
)
from tracktracer._types import TracerConfig
from tracktracer.editor import TrackEditor

logger = logging.getLogger(__name__)

__all__ = ["trace_track"]


def trace_track(
    image_path: str | Path | None = None,
    *,
    document_path: str | Path | None = None,
    config: TracerConfig | None = None,
) -> TrackEditor:
    """Launch the napari track tracer.

    Parameters
    ----------
    image_path : str or Path, optional
        Reference image shown under the track and embedded on export.
    document_path : str or Path, optional
        Previously exported track document to continue editing. Its embedded
        image is used when ``image_path`` is not given.
    config : TracerConfig, optional
        Editor configuration.

    Returns
    -------
    TrackEditor
        The editor after the viewer was closed.

    Raises
    ------
    ImportError
        If napari is not installed.
    FileNotFoundError
        If ``image_path`` or ``document_path`` does not exist.

    Notes
    -----
    This function blocks until the napari viewer is closed.

    """
    try:
        import napari
        from napari.utils.notifications import show_info
    except ImportError as e:
        raise ImportError(
            "napari is required for interactive tracing. "
            "Install with: pip install tracktracer[napari]",
        ) from e

    for path in (image_path, document_path):
        if path is not None and not Path(path).exists():
            raise FileNotFoundError(f"File not found: {path}")

    logger.debug("Opening track tracer (image=%s, document=%s)", image_path, document_path)
    editor = TrackEditor(config=config or TracerConfig(), notify=show_info)
    if document_path is not None:
        editor.import_file(document_path)

    if image_path is not None:
        editor.load_image(image_path)

    viewer = napari.Viewer(title="Track Tracer")
    path_layer, edges_layer, points_layer = setup_track_layers(viewer)
    shown_image = None

    def refresh() -> None:
        nonlocal shown_image
        # Image layers are only rebuilt when the payload changes
        if editor.image != shown_image:
            shown_image = editor.image
            sync_reference_image(viewer, editor.image)
        sync_layers_from_editor(editor, path_layer, edges_layer, points_layer)
        widget.sync_from_editor()

    def set_status(message: str) -> None:
        viewer.status = message

    widget = create_tracer_widget(editor, refresh, status=set_status)
    viewer.window.add_dock_widget(widget.container, name="Track Tracer", area="right")

    attach_mouse_handlers(editor, points_layer, refresh)
    bind_editor_keys(viewer, editor, refresh)
    viewer.layers.selection.active = points_layer

    refresh()
    viewer.status = "Click to place points (Z removes the last one)"

    napari.run()
    return editor
