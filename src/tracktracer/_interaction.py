"""Selection and pointer interaction state for the track tracer.

InteractionState consolidates the ephemeral UI state (selection, drag target,
connect mode and its pending endpoint) into one object that is only changed
through the transition methods below. Like TrackGraph it is GUI-independent;
frontends translate their raw events into these calls.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field

from tracktracer._track_state import Point, TrackGraph
from tracktracer._types import (
    MULTI_SELECT_MODIFIERS,
    UNDO_BLOCKING_MODIFIERS,
    InteractionPhase,
)

logger = logging.getLogger(__name__)


@dataclass
class InteractionState:
    """Interaction state machine over a TrackGraph.

    Attributes
    ----------
    graph : TrackGraph
        The model that transitions mutate.
    connect_mode : bool
        When True, marker clicks build auxiliary edges.
    selection : list of str
        Selected point ids in insertion order. The first id is the
        representative point for attribute display.
    dragging_id : str or None
        Point currently being dragged.
    pending_id : str or None
        First endpoint of an edge under construction (connect mode only).
    undo_key : str
        Key that removes the last point.

    Examples
    --------
    >>> state = InteractionState(TrackGraph())
    >>> a = state.canvas_click(0.0, 0.0)
    >>> b = state.canvas_click(10.0, 0.0)
    >>> state.set_connect_mode(True)
    >>> state.marker_click(a.id)
    >>> state.phase
    'connect_pending'
    >>> state.marker_click(b.id)
    >>> len(state.graph.edges), state.selection == [b.id]
    (1, True)

    """

    graph: TrackGraph = field(default_factory=TrackGraph)
    connect_mode: bool = False
    selection: list[str] = field(default_factory=list)
    dragging_id: str | None = None
    pending_id: str | None = None
    undo_key: str = "z"

    @property
    def phase(self) -> InteractionPhase:
        if self.connect_mode:
            return "connect_pending" if self.pending_id is not None else "connect_idle"
        return "dragging" if self.dragging_id is not None else "idle"

    @property
    def is_dragging(self) -> bool:
        return self.dragging_id is not None

    # ------------------------------------------------------------------
    # Selection helpers
    # ------------------------------------------------------------------
    def select(self, ids: Iterable[str]) -> None:
        """Replace the selection, dropping duplicates but keeping order."""
        self.selection = list(dict.fromkeys(ids))

    def clear_selection(self) -> None:
        self.selection = []

    def toggle_selected(self, point_id: str) -> None:
        if point_id in self.selection:
            self.selection = [pid for pid in self.selection if pid != point_id]
        else:
            self.selection = [*self.selection, point_id]

    def prune_selection(self) -> None:
        """Drop selected ids that no longer exist in the graph."""
        self.selection = [pid for pid in self.selection if pid in self.graph]

    @property
    def representative(self) -> Point | None:
        """First selected point that still exists."""
        for pid in self.selection:
            point = self.graph.get(pid)
            if point is not None:
                return point
        return None

    # ------------------------------------------------------------------
    # Pointer transitions (coordinates already in model space)
    # ------------------------------------------------------------------
    def canvas_click(self, x: float, y: float) -> Point | None:
        """Click on empty canvas: add a point and select it exclusively.

        Suppressed while a drag is in progress, so releasing a drag over
        empty canvas does not also spawn a point.
        """
        if self.is_dragging:
            logger.debug("Canvas click suppressed during drag of %s", self.dragging_id)
            return None
        point = self.graph.add_point(x, y)
        self.selection = [point.id]
        return point

    def marker_press(self, point_id: str) -> None:
        # Dragging only exists outside connect mode
        if self.connect_mode or point_id not in self.graph:
            return
        self.dragging_id = point_id

    def pointer_move(self, x: float, y: float) -> None:
        if self.dragging_id is not None:
            self.graph.move_point(self.dragging_id, x, y)

    def pointer_release(self) -> None:
        self.dragging_id = None

    def pointer_leave(self) -> None:
        self.dragging_id = None

    def marker_click(self, point_id: str, modifiers: Collection[str] = ()) -> None:
        """Click on a marker.

        In normal mode a plain click selects exactly ``point_id`` and a click
        with Shift/Control/Meta toggles it in the selection. In connect mode
        the first click sets the pending endpoint, a second click on the same
        point cancels it, and a click on another point adds the edge.
        """
        if point_id not in self.graph:
            return

        if not self.connect_mode:
            if MULTI_SELECT_MODIFIERS.intersection(modifiers):
                self.toggle_selected(point_id)
            else:
                self.selection = [point_id]
            return

        if self.pending_id is None:
            self.pending_id = point_id
            self.selection = [point_id]
        elif self.pending_id == point_id:
            self.pending_id = None
        else:
            edge = self.graph.add_edge(self.pending_id, point_id)
            if edge is not None:
                logger.debug("Connected %s", edge.key)
            self.pending_id = None
            self.selection = [point_id]

    # ------------------------------------------------------------------
    # Mode and keyboard
    # ------------------------------------------------------------------
    def set_connect_mode(self, enabled: bool) -> None:
        """Switch connect mode, discarding any pending endpoint."""
        self.connect_mode = bool(enabled)
        self.pending_id = None
        self.dragging_id = None

    def cancel_pending(self) -> None:
        self.pending_id = None

    def handle_key(
        self,
        key: str,
        modifiers: Collection[str] = (),
        text_focus: bool = False,
    ) -> str | None:
        """Handle keyboard shortcut.

        Parameters
        ----------
        key : str
            The key pressed (e.g., "z", "Z", "Escape").
        modifiers : collection of str, optional
            Modifier keys held (e.g., ["Control"]).
        text_focus : bool, default=False
            True if a text/number input currently has focus; shortcuts are
            ignored so typing does not edit the track.

        Returns
        -------
        str or None
            Action taken: "undo", "cancel", or None.

        """
        if text_focus:
            return None

        if key.lower() == self.undo_key.lower() and not UNDO_BLOCKING_MODIFIERS.intersection(
            modifiers
        ):
            self.undo_last()
            return "undo"

        if key == "Escape" and self.pending_id is not None:
            self.cancel_pending()
            return "cancel"

        return None

    # ------------------------------------------------------------------
    # Bulk actions
    # ------------------------------------------------------------------
    def undo_last(self) -> Point | None:
        """Remove the last point and clear the selection."""
        removed = self.graph.remove_last()
        self.clear_selection()
        if removed is not None:
            if self.dragging_id == removed.id:
                self.dragging_id = None
            if self.pending_id == removed.id:
                self.pending_id = None
        return removed

    def clear(self) -> None:
        """Remove all points and clear the selection."""
        self.graph.clear_points()
        self.clear_selection()
        self.dragging_id = None
        self.pending_id = None

    def reset(self) -> None:
        """Drop all ephemeral state (selection, drag, pending endpoint)."""
        self.clear_selection()
        self.dragging_id = None
        self.pending_id = None
