"""Magicgui control panel for the track tracer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from magicgui.widgets import (
    CheckBox,
    ComboBox,
    Container,
    FileEdit,
    FloatSpinBox,
    Label,
    PushButton,
)

from tracktracer._types import CORNERS, RACE_TYPES, SURFACES

if TYPE_CHECKING:
    from tracktracer.editor import TrackEditor

logger = logging.getLogger(__name__)

# Display value for "unset" in the surface/corner selectors
UNSET_CHOICE = "--"

HELP_TEXT = (
    "─── TRACING ───\n"
    "• Click canvas to add a point\n"
    "• Drag a point to adjust it\n"
    "• Shift/Ctrl+Click to multi-select\n"
    "• Z = remove last point\n"
    "\n"
    "─── CONNECT MODE ───\n"
    "• Click two points to join them\n"
    "• Click the first point again (or Escape) to cancel\n"
)


class TracerWidget:
    """Control panel bound to a TrackEditor.

    Parameters
    ----------
    editor : TrackEditor
        Editor the controls read from and write to.
    refresh : callable
        Re-renders the viewer layers after an edit.
    status : callable, optional
        Receives short status messages.

    Attributes
    ----------
    container : magicgui.widgets.Container
        The widget to dock in the napari window.

    """

    def __init__(
        self,
        editor: TrackEditor,
        refresh: Callable[[], None],
        status: Callable[[str], None] | None = None,
    ) -> None:
        self.editor = editor
        self._refresh = refresh
        self._status = status or (lambda message: None)
        self._syncing = False

        self.track_length = FloatSpinBox(
            value=editor.metadata.track_length_km,
            min=0.0,
            max=1e6,
            step=0.1,
            label="Track Length (km)",
        )
        self.race_type = ComboBox(choices=list(RACE_TYPES), label="Race Type")
        self.connect_mode = CheckBox(value=editor.connect_mode, text="Connect Mode")
        self.surface = ComboBox(choices=[UNSET_CHOICE, *SURFACES], label="Surface")
        self.corner = ComboBox(choices=[UNSET_CHOICE, *CORNERS], label="Corner Type")
        self.incline = FloatSpinBox(
            value=0.0,
            min=-1e6,
            max=1e6,
            step=0.1,
            label="Incline (deg)",
        )
        self.image_file = FileEdit(
            mode="r",
            label="Reference Image",
            filter="*.png *.jpg *.jpeg *.gif *.bmp",
        )
        self.import_file = FileEdit(mode="r", label="Import Track", filter="*.json")
        self.export_file = FileEdit(
            mode="w",
            label="Export To",
            value=editor.config.export_filename,
            filter="*.json",
        )

        self.clear_btn = PushButton(text="Clear")
        self.undo_btn = PushButton(text="Undo Last (Z)")
        self.clear_edges_btn = PushButton(text="Clear Edges")
        self.export_btn = PushButton(text="Export (JSON+Image)", enabled=editor.can_export)

        self.container = Container(
            widgets=[
                Label(value=HELP_TEXT),
                self.image_file,
                self.import_file,
                self.track_length,
                self.race_type,
                self.connect_mode,
                Label(value="Attributes (multi-select)"),
                self.surface,
                self.corner,
                self.incline,
                self.clear_btn,
                self.undo_btn,
                self.clear_edges_btn,
                self.export_file,
                self.export_btn,
            ],
        )
        self._connect()
        self.sync_from_editor()

    # ------------------------------------------------------------------
    def _after_edit(self, message: str | None = None) -> None:
        self._refresh()
        self.sync_from_editor()
        if message:
            self._status(message)

    def _connect(self) -> None:
        editor = self.editor

        @self.track_length.changed.connect
        def on_track_length(value: float) -> None:
            if not self._syncing:
                editor.set_track_length(value)

        @self.race_type.changed.connect
        def on_race_type(value: str) -> None:
            if not self._syncing and value:
                editor.set_race_type(value)
                self._after_edit()

        @self.connect_mode.changed.connect
        def on_connect_mode(value: bool) -> None:
            if not self._syncing:
                editor.set_connect_mode(value)
                self._after_edit("Connect mode on" if value else "Connect mode off")

        def _attribute_handler(key: str) -> Callable[[Any], None]:
            def handle(value: Any) -> None:
                if self._syncing:
                    return
                if value == UNSET_CHOICE:
                    value = None
                n_updated = editor.set_attribute(key, value)
                self._after_edit(f"Set {key} on {n_updated} point(s)")

            return handle

        self.surface.changed.connect(_attribute_handler("surface"))
        self.corner.changed.connect(_attribute_handler("corner"))
        self.incline.changed.connect(_attribute_handler("incline"))

        @self.image_file.changed.connect
        def on_image(path: Path) -> None:
            if path and Path(path).is_file() and editor.load_image(path):
                self._after_edit(f"Loaded reference image {Path(path).name}")

        @self.import_file.changed.connect
        def on_import(path: Path) -> None:
            if path and Path(path).is_file():
                editor.import_file(path)
                self._after_edit()

        @self.clear_btn.clicked.connect
        def on_clear() -> None:
            editor.clear()
            self._after_edit("Cleared points")

        @self.undo_btn.clicked.connect
        def on_undo() -> None:
            editor.undo_last()
            self._after_edit("Removed last point")

        @self.clear_edges_btn.clicked.connect
        def on_clear_edges() -> None:
            editor.clear_edges()
            self._after_edit("Cleared edges")

        self.export_btn.clicked.connect(self.export)

    def export(self) -> Path | None:
        """Write the track to the chosen export path.

        Returns
        -------
        Path or None
            The written file, or None if writing failed (a notice is sent).

        """
        try:
            written = self.editor.export_to(self.export_file.value)
        except OSError as e:
            logger.warning("Export failed: %s", e)
            self.editor.notify(f"Failed to export track: {e}")
            return None
        self._status(f"Exported to {written}")
        return written

    def sync_from_editor(self) -> None:
        """Update every control from the editor without writing back."""
        editor = self.editor
        self._syncing = True
        try:
            self.track_length.value = editor.metadata.track_length_km
            if editor.metadata.race_type in RACE_TYPES:
                self.race_type.value = editor.metadata.race_type
            self.connect_mode.value = editor.connect_mode

            surface = editor.displayed_attribute("surface")
            self.surface.value = surface if surface in SURFACES else UNSET_CHOICE
            corner = editor.displayed_attribute("corner")
            self.corner.value = corner if corner in CORNERS else UNSET_CHOICE
            self.incline.value = float(editor.displayed_attribute("incline") or 0.0)

            has_selection = bool(editor.selection)
            self.surface.enabled = has_selection
            self.corner.enabled = has_selection
            self.incline.enabled = has_selection
            self.export_btn.enabled = editor.can_export
        finally:
            self._syncing = False


def create_tracer_widget(
    editor: TrackEditor,
    refresh: Callable[[], None],
    status: Callable[[str], None] | None = None,
) -> TracerWidget:
    """Create the track tracer control panel.

    Returns
    -------
    TracerWidget
        Wrapper exposing ``container`` (dock this) and ``sync_from_editor``.

    """
    return TracerWidget(editor, refresh, status)
