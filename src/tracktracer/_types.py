"""Type definitions and configuration for the track tracer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, get_args

# Surface the car drives on at a waypoint
SurfaceType = Literal["Asphalt", "Dirt", "Gravel", "Sand", "Snow", "Ice"]

# Corner classification at a waypoint
CornerType = Literal["High speed", "Medium speed", "Low speed"]

# Race format
# - "Point to point": the path is open, first and last points are not joined
# - "Circuit": the path is implicitly closed from the last point to the first
RaceType = Literal["Point to point", "Circuit"]

# Per-point attributes editable from the attribute controls
AttributeKey = Literal["surface", "corner", "incline"]

# Derived phase of the interaction state machine
# - "idle": normal mode, no drag in progress
# - "dragging": a marker is being dragged
# - "connect_idle": connect mode, no pending endpoint
# - "connect_pending": connect mode, first endpoint chosen
InteractionPhase = Literal["idle", "dragging", "connect_idle", "connect_pending"]

# Derived from the type aliases for a single source of truth
SURFACES: tuple[SurfaceType, ...] = get_args(SurfaceType)
CORNERS: tuple[CornerType, ...] = get_args(CornerType)
RACE_TYPES: tuple[RaceType, ...] = get_args(RaceType)
ATTRIBUTE_KEYS: tuple[AttributeKey, ...] = get_args(AttributeKey)

# Modifier names that turn a marker click into a selection toggle
MULTI_SELECT_MODIFIERS: frozenset[str] = frozenset({"Shift", "Control", "Meta"})

# Modifiers that disable the single-key undo shortcut
UNDO_BLOCKING_MODIFIERS: frozenset[str] = frozenset({"Control", "Meta"})


@dataclass(frozen=True)
class TracerConfig:
    """
    Configuration for the track tracer editor.

    All fields have sensible defaults, so the simplest usage is
    ``TracerConfig()``.

    Parameters
    ----------
    default_track_length_km : float
        Track length shown for a fresh editor. Default is 5.0.
    default_race_type : {"Point to point", "Circuit"}
        Race type for a fresh editor. Default is "Circuit".
    export_filename : str
        File name used when exporting into a directory. Default is
        "track.json".
    undo_key : str
        Key that removes the last point (case-insensitive). Default is "z".
    click_threshold : float
        Maximum distance in model units between a click and a marker for the
        click to hit that marker. Default is 10.0.
    strict_enums : bool
        If True, imported ``surface``/``corner`` values outside the known
        enumerations are dropped to None. If False (default), they are kept
        verbatim.

    Examples
    --------
    >>> config = TracerConfig(default_race_type="Point to point")
    >>> config.export_filename
    'track.json'

    """

    default_track_length_km: float = 5.0
    default_race_type: RaceType = "Circuit"
    export_filename: str = "track.json"
    undo_key: str = "z"
    click_threshold: float = 10.0
    strict_enums: bool = False

    def __post_init__(self) -> None:
        if self.default_track_length_km < 0:
            raise ValueError(
                f"default_track_length_km must be non-negative, "
                f"got {self.default_track_length_km}",
            )
        if self.default_race_type not in RACE_TYPES:
            raise ValueError(
                f"default_race_type must be one of {RACE_TYPES}, "
                f"got {self.default_race_type!r}",
            )
        if self.click_threshold <= 0:
            raise ValueError(
                f"click_threshold must be positive, got {self.click_threshold}",
            )
        if len(self.undo_key) != 1:
            raise ValueError(f"undo_key must be a single key, got {self.undo_key!r}")
