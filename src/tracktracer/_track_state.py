"""Track graph model for the track tracer.

This module provides TrackGraph, a pure state object holding the ordered
sequence of track points and the set of auxiliary edges between them.
The model is GUI-independent and fully testable.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from tracktracer._types import ATTRIBUTE_KEYS, CornerType, RaceType, SurfaceType


def new_point_id() -> str:
    """Return a fresh, never-reused point identifier."""
    return uuid.uuid4().hex


def edge_key(a: str, b: str) -> str:
    """Canonical, order-independent key for the unordered pair ``{a, b}``.

    Examples
    --------
    >>> edge_key("b", "a") == edge_key("a", "b") == "a|b"
    True

    """
    return f"{a}|{b}" if a < b else f"{b}|{a}"


@dataclass
class Point:
    """A waypoint on the track.

    Attributes
    ----------
    id : str
        Opaque identifier, stable for the point's lifetime.
    x, y : float
        Position in model space.
    surface : str or None
        Surface type (see ``SURFACES``), None if unset.
    corner : str or None
        Corner type (see ``CORNERS``), None if unset.
    incline : float
        Incline in degrees.

    """

    id: str
    x: float
    y: float
    surface: SurfaceType | str | None = None
    corner: CornerType | str | None = None
    incline: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "surface": self.surface,
            "corner": self.corner,
            "incline": self.incline,
        }


@dataclass
class Edge:
    """Auxiliary undirected connection between two point ids.

    ``key`` is normally ``edge_key(a, b)``, but edges read from a document are
    kept exactly as written, so it is not re-derived here. Any other fields
    of an imported record are carried in ``extra``.
    """

    key: Any
    a: Any
    b: Any
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def between(cls, a: str, b: str) -> Edge:
        return cls(key=edge_key(a, b), a=a, b=b)

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, "key": self.key, "a": self.a, "b": self.b}


@dataclass
class TrackMetadata:
    """Track-level properties exported alongside the points.

    Attributes
    ----------
    track_length_km : float
        Non-negative track length in kilometres.
    race_type : str
        "Point to point" or "Circuit". Imported documents may carry other
        strings, which are kept verbatim.

    """

    track_length_km: float = 5.0
    race_type: RaceType | str = "Circuit"

    @property
    def is_circuit(self) -> bool:
        return self.race_type == "Circuit"


@dataclass
class TrackGraph:
    """Ordered track points plus auxiliary edges.

    Points live in an id → Point mapping, with sequence order kept separately
    in ``order``. Sequence order is creation order and encodes the primary
    track path; it is never re-sorted by position.

    Edges are never cascade-deleted when a point is removed. Such edges
    become dangling and are skipped by `resolve_edge_endpoints` and everything
    built on it.

    Every operation that names an unknown point id is a no-op.

    Examples
    --------
    >>> graph = TrackGraph()
    >>> a = graph.add_point(0.0, 0.0)
    >>> b = graph.add_point(10.0, 0.0)
    >>> graph.add_edge(b.id, a.id) is not None
    True
    >>> graph.add_edge(a.id, b.id) is None  # same unordered pair
    True
    >>> len(graph.edges)
    1

    """

    _points: dict[str, Point] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.order)

    def __contains__(self, point_id: object) -> bool:
        return point_id in self._points

    def __iter__(self) -> Iterator[Point]:
        return (self._points[pid] for pid in self.order)

    @property
    def points(self) -> list[Point]:
        """Points in sequence order."""
        return list(self)

    @property
    def ids(self) -> list[str]:
        return list(self.order)

    def get(self, point_id: str | None) -> Point | None:
        if point_id is None:
            return None
        return self._points.get(point_id)

    def index_of(self, point_id: str) -> int | None:
        """Position of a point in the sequence, or None if unknown."""
        if point_id not in self._points:
            return None
        return self.order.index(point_id)

    def find_nearest_point(self, x: float, y: float, threshold: float) -> Point | None:
        """Find the nearest point within threshold distance.

        Parameters
        ----------
        x, y : float
            Query position in model space.
        threshold : float
            Maximum distance to consider a point "hit".

        Returns
        -------
        Point or None
            Nearest point within threshold. Ties keep the earliest point.

        """
        nearest = None
        min_dist = float("inf")
        for point in self:
            dist = math.hypot(x - point.x, y - point.y)
            if dist <= threshold and dist < min_dist:
                min_dist = dist
                nearest = point
        return nearest

    # ------------------------------------------------------------------
    # Point operations
    # ------------------------------------------------------------------
    def add_point(self, x: float, y: float) -> Point:
        """Append a new point with a fresh id and unset attributes."""
        point = Point(id=new_point_id(), x=float(x), y=float(y))
        self._points[point.id] = point
        self.order.append(point.id)
        return point

    def move_point(self, point_id: str, x: float, y: float) -> None:
        point = self._points.get(point_id)
        if point is None:
            return
        point.x = float(x)
        point.y = float(y)

    def remove_last(self) -> Point | None:
        """Drop the last point in sequence order.

        Returns
        -------
        Point or None
            The removed point, or None if the sequence was empty.

        """
        if not self.order:
            return None
        return self._points.pop(self.order.pop())

    def clear_points(self) -> None:
        self._points.clear()
        self.order.clear()

    def clear_edges(self) -> None:
        self.edges.clear()

    def assign_attribute(self, ids: Iterable[str], key: str, value: Any) -> int:
        """Set one attribute on every point whose id is in ``ids``.

        Other attributes are left untouched and unknown ids are ignored.

        Parameters
        ----------
        ids : iterable of str
            Ids of the points to update.
        key : {"surface", "corner", "incline"}
            Attribute to set.
        value : Any
            New value, written as given.

        Returns
        -------
        int
            Number of points updated.

        Raises
        ------
        ValueError
            If ``key`` is not an editable attribute.

        """
        if key not in ATTRIBUTE_KEYS:
            raise ValueError(f"Unknown attribute {key!r}; expected one of {ATTRIBUTE_KEYS}")
        n_updated = 0
        for point_id in set(ids):
            point = self._points.get(point_id)
            if point is not None:
                setattr(point, key, value)
                n_updated += 1
        return n_updated

    def replace(self, points: Iterable[Point], edges: Iterable[Edge]) -> None:
        """Replace all points and edges (used by import).

        Later points with an id already seen overwrite the earlier record but
        keep its sequence position.
        """
        new_points: dict[str, Point] = {}
        new_order: list[str] = []
        for point in points:
            if point.id not in new_points:
                new_order.append(point.id)
            new_points[point.id] = point
        self._points = new_points
        self.order = new_order
        self.edges = list(edges)

    # ------------------------------------------------------------------
    # Edge operations
    # ------------------------------------------------------------------
    def has_edge(self, a: str, b: str) -> bool:
        key = edge_key(a, b)
        return any(edge.key == key for edge in self.edges)

    def add_edge(self, a: str, b: str) -> Edge | None:
        """Add an undirected edge between two point ids.

        Idempotent on the unordered pair. Endpoint existence and self-edges
        are the caller's responsibility.

        Returns
        -------
        Edge or None
            The new edge, or None if an edge with the same key exists.

        """
        if self.has_edge(a, b):
            return None
        edge = Edge.between(a, b)
        self.edges.append(edge)
        return edge

    def resolve_edge_endpoints(self, edge: Edge) -> tuple[Point, Point] | None:
        """Look up both endpoints of an edge.

        Returns None, rather than raising, when either endpoint is missing
        (the edge is dangling).
        """
        # Point ids are always str; imported edges may hold numbers
        pa = self.get(None if edge.a is None else str(edge.a))
        pb = self.get(None if edge.b is None else str(edge.b))
        if pa is None or pb is None:
            return None
        return pa, pb

    def resolved_edges(self) -> list[tuple[Edge, Point, Point]]:
        """Edges whose endpoints both exist, with the endpoints."""
        resolved = []
        for edge in self.edges:
            endpoints = self.resolve_edge_endpoints(edge)
            if endpoints is not None:
                resolved.append((edge, *endpoints))
        return resolved

    def dangling_edges(self) -> list[Edge]:
        return [edge for edge in self.edges if self.resolve_edge_endpoints(edge) is None]

    # ------------------------------------------------------------------
    # Render/analysis views
    # ------------------------------------------------------------------
    def path_segments(self, closed: bool = False) -> list[tuple[Point, Point]]:
        """Consecutive point pairs along the primary path.

        Parameters
        ----------
        closed : bool, default=False
            Append the closing segment from the last point back to the first
            (circuit races). Only added when there are at least two points.

        """
        points = self.points
        segments = list(zip(points[:-1], points[1:], strict=True))
        if closed and len(points) > 1:
            segments.append((points[-1], points[0]))
        return segments

    def to_networkx(self, closed: bool = False) -> nx.Graph:
        """Build a NetworkX graph from the current state.

        Nodes are point ids with ``pos``, ``index`` and the track attributes.
        Edges carry ``distance`` and ``kind`` ("path" for sequence segments,
        "auxiliary" for connect-mode edges). Dangling edges are skipped.
        Where a sequence segment and an auxiliary edge join the same pair,
        the path edge is kept.

        Returns
        -------
        nx.Graph

        """
        graph = nx.Graph()
        for index, point in enumerate(self):
            graph.add_node(
                point.id,
                pos=(point.x, point.y),
                index=index,
                surface=point.surface,
                corner=point.corner,
                incline=point.incline,
            )

        for edge, pa, pb in self.resolved_edges():
            if pa.id == pb.id:
                continue
            distance = math.hypot(pb.x - pa.x, pb.y - pa.y)
            graph.add_edge(pa.id, pb.id, distance=distance, kind="auxiliary", key=edge.key)

        for pa, pb in self.path_segments(closed=closed):
            if pa.id == pb.id:
                continue
            distance = math.hypot(pb.x - pa.x, pb.y - pa.y)
            graph.add_edge(pa.id, pb.id, distance=distance, kind="path", key=edge_key(pa.id, pb.id))

        return graph
