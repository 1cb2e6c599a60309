"""Export and import of track documents.

A track document is a JSON object holding the track metadata, the ordered
points, the auxiliary edges and the embedded reference image::

    {
      "meta": {"trackLengthKm": 5.0, "raceType": "Circuit", "createdAt": "..."},
      "points": [{"id": "...", "x": 1.0, "y": 2.0, "surface": null,
                  "corner": null, "incline": 0.0}],
      "edges": [{"key": "a|b", "a": "a", "b": "b"}],
      "image": "data:image/png;base64,..."
    }

`decode` treats its input as untrusted: it rejects anything that is not an
object, but coerces bad fields to defaults instead of failing. It only builds
new objects, so a failed decode never touches the caller's state.
"""

from __future__ import annotations

import base64
import json
import logging
import math
import mimetypes
import warnings
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NamedTuple

from tracktracer._track_state import Edge, Point, TrackGraph, TrackMetadata, new_point_id
from tracktracer._types import CORNERS, SURFACES

__all__ = [
    "DecodeError",
    "DecodedTrack",
    "MalformedDocumentError",
    "TrackTracerError",
    "decode",
    "dumps",
    "encode",
    "load_track",
    "loads",
    "read_image_data_url",
    "save_track",
]

logger = logging.getLogger(__name__)


class TrackTracerError(Exception):
    """Base class for track tracer errors."""


class DecodeError(TrackTracerError, ValueError):
    """Raised when a track document cannot be decoded."""


class MalformedDocumentError(DecodeError):
    """Raised when a document is not a JSON object (or not JSON at all).

    Examples
    --------
    >>> decode(42)
    Traceback (most recent call last):
        ...
    tracktracer.io.MalformedDocumentError: Track document must be a JSON object, got int

    """


class DecodedTrack(NamedTuple):
    """Result of decoding a track document.

    Attributes
    ----------
    points : list of Point
        Points in document order, each with a unique id.
    edges : list of Edge
        Edge records as found in the document (not validated).
    image : str or None
        Embedded reference image payload.
    meta : dict
        Metadata fields present in the document, keyed by
        ``track_length_km`` and ``race_type``. Absent fields are omitted so
        callers can apply a partial update.

    """

    points: list[Point]
    edges: list[Edge]
    image: str | None
    meta: dict[str, Any]


# ---------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------
def _timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode(
    graph: TrackGraph,
    metadata: TrackMetadata,
    image: str | None = None,
    created_at: datetime | None = None,
) -> dict[str, Any]:
    """Build a track document from the current model.

    Parameters
    ----------
    graph : TrackGraph
        Points and edges to export. Dangling edges are left out.
    metadata : TrackMetadata
        Track length and race type.
    image : str, optional
        Reference image payload, written verbatim.
    created_at : datetime, optional
        Generation time. Defaults to now (UTC).

    Returns
    -------
    dict
        JSON-serializable document.

    """
    edges = [edge.to_dict() for edge, _pa, _pb in graph.resolved_edges()]
    n_dangling = len(graph.edges) - len(edges)
    if n_dangling:
        logger.debug("Skipping %d dangling edge(s) on export", n_dangling)

    return {
        "meta": {
            "trackLengthKm": metadata.track_length_km,
            "raceType": metadata.race_type,
            "createdAt": _timestamp(created_at),
        },
        "points": [point.to_dict() for point in graph],
        "edges": edges,
        "image": image if image else None,
    }


def dumps(document: Mapping[str, Any]) -> str:
    """Serialize a document to pretty-printed JSON text."""
    return json.dumps(document, indent=2)


def save_track(
    path: str | Path,
    graph: TrackGraph,
    metadata: TrackMetadata,
    image: str | None = None,
) -> Path:
    """Encode the model and write it to ``path`` as JSON.

    Returns
    -------
    Path
        The written file.

    """
    path = Path(path)
    path.write_text(dumps(encode(graph, metadata, image)), encoding="utf-8")
    logger.info("Exported %d point(s) to %s", len(graph), path)
    return path


# ---------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------
def _coerce_float(value: Any, field_name: str) -> float:
    """Coerce a loosely typed field to a finite float, falling back to 0.0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            number = math.nan
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            number = math.nan
    else:
        number = math.nan

    if not math.isfinite(number):
        logger.debug("Invalid %s %r, using 0", field_name, value)
        return 0.0
    return number


def _coerce_enum(
    value: Any,
    field_name: str,
    choices: tuple[str, ...],
    strict: bool,
) -> Any:
    if value is None:
        return None
    if strict and value not in choices:
        warnings.warn(
            f"Dropping unknown {field_name} {value!r}; expected one of {choices}",
            UserWarning,
            stacklevel=4,
        )
        return None
    return value


def _decode_point(item: Any, seen_ids: set[str], strict_enums: bool) -> Point:
    record = item if isinstance(item, Mapping) else {}

    raw_id = record.get("id")
    point_id = str(raw_id) if raw_id else ""
    if not point_id or point_id in seen_ids:
        if point_id:
            logger.debug("Duplicate point id %r, assigning a fresh id", point_id)
        point_id = new_point_id()
        while point_id in seen_ids:
            point_id = new_point_id()
    seen_ids.add(point_id)

    return Point(
        id=point_id,
        x=_coerce_float(record.get("x"), "x"),
        y=_coerce_float(record.get("y"), "y"),
        surface=_coerce_enum(record.get("surface"), "surface", SURFACES, strict_enums),
        corner=_coerce_enum(record.get("corner"), "corner", CORNERS, strict_enums),
        incline=_coerce_float(record.get("incline"), "incline"),
    )


def _decode_edge(item: Mapping[str, Any]) -> Edge:
    record = dict(item)
    return Edge(
        key=record.pop("key", None),
        a=record.pop("a", None),
        b=record.pop("b", None),
        extra=record,
    )


def _decode_meta(raw_meta: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {}
    if not isinstance(raw_meta, Mapping):
        return meta
    if raw_meta.get("trackLengthKm") is not None:
        length = _coerce_float(raw_meta["trackLengthKm"], "trackLengthKm")
        if length < 0:
            logger.debug("Negative trackLengthKm %r, using 0", length)
            length = 0.0
        meta["track_length_km"] = length
    if raw_meta.get("raceType"):
        meta["race_type"] = raw_meta["raceType"]
    return meta


def decode(raw: Any, strict_enums: bool = False) -> DecodedTrack:
    """Reconstruct points, edges, image and metadata from a document.

    Parameters
    ----------
    raw : Any
        Parsed JSON value (usually the result of `loads`).
    strict_enums : bool, default=False
        Drop ``surface``/``corner`` values outside the known enumerations
        instead of keeping them verbatim.

    Returns
    -------
    DecodedTrack

    Raises
    ------
    MalformedDocumentError
        If ``raw`` is not an object.
    DecodeError
        If anything else goes wrong while decoding.

    Examples
    --------
    >>> track = decode({"points": [{"x": "abc", "incline": "oops"}]})
    >>> track.points[0].x, track.points[0].incline, bool(track.points[0].id)
    (0.0, 0.0, True)

    """
    if not isinstance(raw, Mapping):
        raise MalformedDocumentError(
            f"Track document must be a JSON object, got {type(raw).__name__}",
        )

    try:
        raw_points = raw.get("points")
        raw_edges = raw.get("edges")

        seen_ids: set[str] = set()
        points = [
            _decode_point(item, seen_ids, strict_enums)
            for item in (raw_points if isinstance(raw_points, list) else [])
        ]

        edges = []
        for item in raw_edges if isinstance(raw_edges, list) else []:
            if isinstance(item, Mapping):
                edges.append(_decode_edge(item))
            else:
                logger.debug("Skipping non-object edge record %r", item)

        image = raw.get("image") or None
        meta = _decode_meta(raw.get("meta"))
    except TrackTracerError:
        raise
    except Exception as e:
        raise DecodeError(f"Could not decode track document: {e}") from e

    return DecodedTrack(points=points, edges=edges, image=image, meta=meta)


def loads(text: str | bytes, strict_enums: bool = False) -> DecodedTrack:
    """Parse JSON text and decode it.

    Raises
    ------
    MalformedDocumentError
        If the text is not valid JSON or not an object.

    """
    try:
        raw = json.loads(text)
    except (ValueError, RecursionError) as e:
        # Bad syntax or encoding, over-long integers, and deep nesting
        raise MalformedDocumentError(f"Track document is not valid JSON: {e}") from e
    return decode(raw, strict_enums=strict_enums)


def load_track(path: str | Path, strict_enums: bool = False) -> DecodedTrack:
    """Read and decode a track document from disk.

    Raises
    ------
    OSError
        If the file cannot be read.
    MalformedDocumentError
        If the file is not a JSON object.

    """
    path = Path(path)
    logger.debug("Loading track document from %s", path)
    return loads(path.read_bytes(), strict_enums=strict_enums)


def read_image_data_url(path: str | Path) -> str:
    """Read an image file into an opaque ``data:`` URL payload.

    The bytes are not decoded; the payload is only stored and embedded in
    exported documents.
    """
    path = Path(path)
    mime, _encoding = mimetypes.guess_type(path.name)
    payload = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime or 'application/octet-stream'};base64,{payload}"
