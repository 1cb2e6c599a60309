"""Track tracer editor: the object a frontend talks to.

TrackEditor wires the viewport transform, interaction state, track graph,
metadata and reference image together. Frontends forward raw events in
device coordinates and read the model back to render it. Imports are decoded
completely before anything is replaced, so a failed import leaves the editor
exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tracktracer._interaction import InteractionState
from tracktracer._track_state import Point, TrackGraph, TrackMetadata
from tracktracer._types import RACE_TYPES, AttributeKey, InteractionPhase, TracerConfig
from tracktracer.attributes import assign_to_selection, displayed_attribute
from tracktracer.io import (
    DecodedTrack,
    DecodeError,
    decode,
    encode,
    loads,
    read_image_data_url,
    save_track,
)
from tracktracer.transforms import ViewportTransform

logger = logging.getLogger(__name__)

IMPORT_SUCCESS_MESSAGE = "Track imported successfully"


def _log_notice(message: str) -> None:
    logger.info(message)


@dataclass
class TrackEditor:
    """Editing session for one traced track.

    Parameters
    ----------
    config : TracerConfig, optional
        Editor configuration. Defaults to ``TracerConfig()``.
    notify : callable, optional
        Receives user-visible notices (import success/failure). Defaults to
        logging them at INFO level.

    Attributes
    ----------
    graph : TrackGraph
        Points and auxiliary edges.
    interaction : InteractionState
        Selection, drag and connect-mode state over ``graph``.
    viewport : ViewportTransform
        Device → model coordinate mapping, updated by the frontend.
    metadata : TrackMetadata
        Track length and race type.
    image : str or None
        Opaque reference image payload.

    Examples
    --------
    >>> editor = TrackEditor()
    >>> editor.on_canvas_click(10.0, 20.0).x
    10.0
    >>> editor.can_export
    True

    """

    config: TracerConfig = field(default_factory=TracerConfig)
    notify: Callable[[str], None] = _log_notice
    graph: TrackGraph = field(default_factory=TrackGraph)
    viewport: ViewportTransform = field(default_factory=ViewportTransform)
    metadata: TrackMetadata = field(init=False)
    interaction: InteractionState = field(init=False)
    image: str | None = None

    def __post_init__(self) -> None:
        self.metadata = TrackMetadata(
            track_length_km=self.config.default_track_length_km,
            race_type=self.config.default_race_type,
        )
        self.interaction = InteractionState(self.graph, undo_key=self.config.undo_key)

    # ------------------------------------------------------------------
    # State views
    # ------------------------------------------------------------------
    @property
    def selection(self) -> list[str]:
        return list(self.interaction.selection)

    @property
    def phase(self) -> InteractionPhase:
        return self.interaction.phase

    @property
    def connect_mode(self) -> bool:
        return self.interaction.connect_mode

    @property
    def pending_id(self) -> str | None:
        return self.interaction.pending_id

    # ------------------------------------------------------------------
    # Pointer input (device coordinates)
    # ------------------------------------------------------------------
    def hit_test(self, device_x: float, device_y: float) -> Point | None:
        """Marker under the pointer, if any."""
        x, y = self.viewport.to_model_space(device_x, device_y)
        return self.graph.find_nearest_point(x, y, self.config.click_threshold)

    def on_canvas_click(self, device_x: float, device_y: float) -> Point | None:
        x, y = self.viewport.to_model_space(device_x, device_y)
        return self.interaction.canvas_click(x, y)

    def on_marker_press(self, point_id: str) -> None:
        self.interaction.marker_press(point_id)

    def on_pointer_move(self, device_x: float, device_y: float) -> None:
        if not self.interaction.is_dragging:
            return
        x, y = self.viewport.to_model_space(device_x, device_y)
        self.interaction.pointer_move(x, y)

    def on_pointer_release(self) -> None:
        self.interaction.pointer_release()

    def on_pointer_leave(self) -> None:
        self.interaction.pointer_leave()

    def on_marker_click(self, point_id: str, modifiers: Collection[str] = ()) -> None:
        self.interaction.marker_click(point_id, modifiers)

    def on_key(
        self,
        key: str,
        modifiers: Collection[str] = (),
        text_focus: bool = False,
    ) -> str | None:
        return self.interaction.handle_key(key, modifiers, text_focus=text_focus)

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------
    def set_connect_mode(self, enabled: bool) -> None:
        self.interaction.set_connect_mode(enabled)

    def set_track_length(self, km: float) -> None:
        km = float(km)
        if km < 0:
            raise ValueError(f"Track length must be non-negative, got {km}")
        self.metadata.track_length_km = km

    def set_race_type(self, race_type: str) -> None:
        if race_type not in RACE_TYPES:
            raise ValueError(f"Race type must be one of {RACE_TYPES}, got {race_type!r}")
        self.metadata.race_type = race_type

    def displayed_attribute(self, key: AttributeKey) -> Any:
        return displayed_attribute(self.graph, self.interaction.selection, key)

    def set_attribute(self, key: AttributeKey, value: Any) -> int:
        """Commit an attribute editor value to all selected points."""
        return assign_to_selection(self.graph, self.interaction.selection, key, value)

    def undo_last(self) -> Point | None:
        return self.interaction.undo_last()

    def clear(self) -> None:
        self.interaction.clear()

    def clear_edges(self) -> None:
        self.graph.clear_edges()

    def set_image(self, payload: str | None) -> None:
        self.image = payload or None

    def load_image(
        self,
        path: str | Path,
        loader: Callable[[Path], str] = read_image_data_url,
    ) -> bool:
        """Read a reference image and store the loader's payload.

        Returns
        -------
        bool
            True on success. On failure a notice is sent and the current
            image is kept.

        """
        try:
            payload = loader(Path(path))
        except OSError as e:
            logger.warning("Failed to read image %s: %s", path, e)
            self.notify(f"Failed to load image: {e}")
            return False
        self.set_image(payload)
        return True

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    @property
    def can_export(self) -> bool:
        return len(self.graph) > 0

    def export_document(self) -> dict[str, Any]:
        """Encode the current track.

        Raises
        ------
        ValueError
            If there are no points to export.

        """
        if not self.can_export:
            raise ValueError("Nothing to export: add at least one point first")
        return encode(self.graph, self.metadata, self.image)

    def export_to(self, destination: str | Path) -> Path:
        """Write the exported document.

        Parameters
        ----------
        destination : str or Path
            File path, or a directory in which ``config.export_filename`` is
            created.

        Returns
        -------
        Path
            The written file.

        """
        if not self.can_export:
            raise ValueError("Nothing to export: add at least one point first")
        path = Path(destination)
        if path.is_dir():
            path = path / self.config.export_filename
        return save_track(path, self.graph, self.metadata, self.image)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------
    def _apply(self, track: DecodedTrack) -> None:
        self.graph.replace(track.points, track.edges)
        self.image = track.image
        if "track_length_km" in track.meta:
            self.metadata.track_length_km = track.meta["track_length_km"]
        if "race_type" in track.meta:
            self.metadata.race_type = track.meta["race_type"]
        self.interaction.reset()
        logger.info(
            "Imported %d point(s) and %d edge(s)",
            len(track.points),
            len(track.edges),
        )
        self.notify(IMPORT_SUCCESS_MESSAGE)

    def _fail(self, error: Exception) -> bool:
        logger.warning("Import error: %s", error)
        self.notify(f"Failed to import track: {error}")
        return False

    def import_document(self, raw: Any) -> bool:
        """Replace the track with a parsed document.

        Returns
        -------
        bool
            True on success. On failure a notice is sent and nothing changes.

        """
        try:
            track = decode(raw, strict_enums=self.config.strict_enums)
        except DecodeError as e:
            return self._fail(e)
        self._apply(track)
        return True

    def import_text(self, text: str | bytes) -> bool:
        try:
            track = loads(text, strict_enums=self.config.strict_enums)
        except DecodeError as e:
            return self._fail(e)
        self._apply(track)
        return True

    def import_file(self, path: str | Path) -> bool:
        try:
            text = Path(path).read_bytes()
        except OSError as e:
            return self._fail(e)
        return self.import_text(text)
