"""Attribute assignment for selected track points.

The attribute editors show the value of the first selected point and write a
committed value to every selected point. The write is a broadcast, not a
merge: differing values across a multi-selection are overwritten.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from tracktracer._track_state import TrackGraph
from tracktracer._types import ATTRIBUTE_KEYS, CORNERS, SURFACES, AttributeKey

__all__ = [
    "assign_to_selection",
    "displayed_attribute",
    "normalize_attribute_value",
]

_ENUM_CHOICES: dict[str, tuple[str, ...]] = {
    "surface": SURFACES,
    "corner": CORNERS,
}


def _check_key(key: str) -> None:
    if key not in ATTRIBUTE_KEYS:
        raise ValueError(f"Unknown attribute {key!r}; expected one of {ATTRIBUTE_KEYS}")


def normalize_attribute_value(key: AttributeKey, value: Any) -> Any:
    """Validate a value coming from an attribute editor.

    Parameters
    ----------
    key : {"surface", "corner", "incline"}
        Attribute being edited.
    value : Any
        Raw editor value. For ``surface``/``corner`` an empty string or None
        means "unset". For ``incline`` any finite number or numeric string.

    Returns
    -------
    str, float or None
        Value to store on the points.

    Raises
    ------
    ValueError
        If the key is unknown, an enum value is not a known choice, or the
        incline is not a finite number.

    Examples
    --------
    >>> normalize_attribute_value("surface", "")
    >>> normalize_attribute_value("incline", "2.5")
    2.5

    """
    _check_key(key)

    if key == "incline":
        try:
            incline = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Incline must be a number, got {value!r}") from e
        if not math.isfinite(incline):
            raise ValueError(f"Incline must be finite, got {value!r}")
        return incline

    if value is None or value == "":
        return None
    choices = _ENUM_CHOICES[key]
    if value not in choices:
        raise ValueError(f"Invalid {key} {value!r}; expected one of {choices}")
    return value


def displayed_attribute(
    graph: TrackGraph,
    selection: Sequence[str],
    key: AttributeKey,
) -> Any:
    """Value to show in an attribute editor.

    Reads the first selected point that still exists. With nothing selected
    returns None for ``surface``/``corner`` and 0.0 for ``incline``.
    """
    _check_key(key)
    for point_id in selection:
        point = graph.get(point_id)
        if point is not None:
            return getattr(point, key)
    return 0.0 if key == "incline" else None


def assign_to_selection(
    graph: TrackGraph,
    selection: Sequence[str],
    key: AttributeKey,
    value: Any,
) -> int:
    """Write one attribute value to every selected point.

    Returns
    -------
    int
        Number of points updated.

    Raises
    ------
    ValueError
        If the value is invalid for ``key`` (see `normalize_attribute_value`).

    """
    normalized = normalize_attribute_value(key, value)
    return graph.assign_attribute(selection, key, normalized)
