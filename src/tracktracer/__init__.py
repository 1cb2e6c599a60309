"""Trace race-track layouts over a reference image."""

from tracktracer._interaction import InteractionState
from tracktracer._track_state import Edge, Point, TrackGraph, TrackMetadata, edge_key
from tracktracer._types import (
    CORNERS,
    RACE_TYPES,
    SURFACES,
    CornerType,
    RaceType,
    SurfaceType,
    TracerConfig,
)
from tracktracer.editor import TrackEditor
from tracktracer.io import (
    DecodedTrack,
    DecodeError,
    MalformedDocumentError,
    TrackTracerError,
    decode,
    encode,
    load_track,
    save_track,
)
from tracktracer.transforms import Affine2D, ViewportTransform


def trace_track(*args, **kwargs):
    """Launch the napari track tracer (see `tracktracer.viewer.trace_track`)."""
    from tracktracer.viewer import trace_track as _trace_track

    return _trace_track(*args, **kwargs)


__all__ = [
    "CORNERS",
    "RACE_TYPES",
    "SURFACES",
    "Affine2D",
    "CornerType",
    "DecodeError",
    "DecodedTrack",
    "Edge",
    "InteractionState",
    "MalformedDocumentError",
    "Point",
    "RaceType",
    "SurfaceType",
    "TracerConfig",
    "TrackEditor",
    "TrackGraph",
    "TrackMetadata",
    "TrackTracerError",
    "ViewportTransform",
    "decode",
    "edge_key",
    "encode",
    "load_track",
    "save_track",
    "trace_track",
]
