"""Coordinate transforms between the input device and model space.
=================================================================

The rendering surface draws the model under some affine view transform
(pan, zoom, viewport scaling). Pointer events arrive in device coordinates, so
every pointer position is mapped back through the inverse of that transform
before it touches the model.

Two pieces
----------
1.  `Affine2D`: a composable 3 × 3 homogeneous transform with factory helpers
    (`identity`, `scale_2d`, `translate`).
2.  `ViewportTransform`: holds the surface's current model → device transform
    (or None when the surface is not mounted) and converts device coordinates
    to model coordinates.
"""

# ruff: noqa: N806  - uppercase matrix names follow mathematical convention
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import ArrayLike, NDArray

__all__ = [
    "Affine2D",
    "SpatialTransform",
    "ViewportTransform",
    "identity",
    "scale_2d",
    "translate",
]

logger = logging.getLogger(__name__)


@runtime_checkable
class SpatialTransform(Protocol):
    """Callable that maps an (N, 2) array of points → (N, 2) array."""

    def __call__(self, pts: NDArray[np.float64]) -> NDArray[np.float64]: ...


@dataclass(frozen=True, slots=True)
class Affine2D(SpatialTransform):
    """2-D affine transform expressed as a 3 × 3 homogeneous matrix *A* such that

        [x', y', 1]^T  =  A @ [x, y, 1]^T

    Attributes
    ----------
    A : NDArray[np.float64], shape (3, 3)
        Homogeneous transformation matrix. The bottom row is [0, 0, 1] for
        every transform built by the factories in this module.

    Examples
    --------
    >>> import numpy as np
    >>> transform = translate(10, 20) @ scale_2d(2.0)
    >>> transform(np.array([[0, 0], [1, 1]]))
    array([[10., 20.],
           [12., 22.]])

    """

    A: NDArray[np.float64]  # shape (3, 3)

    def __call__(self, pts: ArrayLike) -> NDArray[np.float64]:
        """Apply transformation to points.

        Parameters
        ----------
        pts : array-like, shape (..., 2)
            2D points to transform.

        Returns
        -------
        NDArray[np.float64], shape (..., 2)
            Transformed points.

        """
        pts = np.asanyarray(pts, dtype=float)
        pts_h = np.c_[pts.reshape(-1, 2), np.ones((pts.size // 2, 1))]
        out = pts_h @ self.A.T
        out = out[:, :2] / out[:, 2:3]
        return np.asarray(out.reshape(pts.shape), dtype=np.float64)

    def inverse(self) -> Affine2D:
        """Compute the inverse transformation.

        Raises
        ------
        np.linalg.LinAlgError
            If the matrix is singular (e.g. zoom of zero).

        """
        return Affine2D(np.asarray(np.linalg.inv(self.A), dtype=np.float64))

    def compose(self, other: Affine2D) -> Affine2D:
        """Return ``self ∘ other`` (``other`` is applied first)."""
        return Affine2D(self.A @ other.A)

    def __matmul__(self, other: Affine2D) -> Affine2D:
        return self.compose(other)


def identity() -> Affine2D:
    """Return the identity transform."""
    return Affine2D(np.eye(3))


def scale_2d(sx: float = 1.0, sy: float | None = None) -> Affine2D:
    """Create uniform or anisotropic scaling transformation.

    Parameters
    ----------
    sx : float, default=1.0
        Scale factor for x-axis.
    sy : float or None, default=None
        Scale factor for y-axis. If None, uses `sx` for uniform scaling.

    Examples
    --------
    >>> scale_2d(sx=2.0, sy=0.5)(np.array([[1, 2]]))
    array([[2., 1.]])

    """
    sy = sx if sy is None else sy
    return Affine2D(np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]]))


def translate(tx: float = 0.0, ty: float = 0.0) -> Affine2D:
    """Create translation transformation."""
    return Affine2D(np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]]))


# napari orders 2D coordinates as (row, col) = (y, x)
_SWAP_XY = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])


@dataclass
class ViewportTransform:
    """Map device (pointer) coordinates into model space.

    Parameters
    ----------
    screen : Affine2D or None
        Model → device transform the rendering surface currently applies.
        None means the surface is not mounted yet, in which case device
        coordinates pass through unchanged.

    Examples
    --------
    >>> viewport = ViewportTransform.from_view(pan=(100.0, 50.0), zoom=2.0)
    >>> viewport.to_model_space(120.0, 70.0)
    (10.0, 10.0)
    >>> ViewportTransform().to_model_space(3.0, 4.0)
    (3.0, 4.0)

    """

    screen: Affine2D | None = None

    @classmethod
    def from_view(
        cls,
        pan: tuple[float, float] = (0.0, 0.0),
        zoom: float = 1.0,
    ) -> ViewportTransform:
        """Build from a pan offset (device units) and a uniform zoom factor."""
        return cls(translate(pan[0], pan[1]) @ scale_2d(zoom))

    @classmethod
    def from_napari_affine(cls, matrix: ArrayLike) -> ViewportTransform:
        """Build from a napari layer's 3 × 3 data → world matrix.

        napari matrices act on (row, col) coordinates; the axes are swapped
        so the result acts on (x, y).
        """
        A = np.asarray(matrix, dtype=np.float64)
        if A.shape != (3, 3):
            raise ValueError(f"Expected a 3x3 affine matrix, got shape {A.shape}")
        return cls(Affine2D(_SWAP_XY @ A @ _SWAP_XY))

    def to_model_space(self, device_x: float, device_y: float) -> tuple[float, float]:
        """Convert device coordinates to model coordinates.

        Falls back to returning the device coordinates when no screen
        transform is available or it cannot be inverted.
        """
        if self.screen is None:
            return float(device_x), float(device_y)
        try:
            inverse = self.screen.inverse()
        except np.linalg.LinAlgError:
            logger.debug("Viewport transform is singular; passing coordinates through")
            return float(device_x), float(device_y)
        x, y = inverse(np.array([device_x, device_y], dtype=np.float64))
        return float(x), float(y)

    def to_device_space(self, x: float, y: float) -> tuple[float, float]:
        """Convert model coordinates to device coordinates."""
        if self.screen is None:
            return float(x), float(y)
        dx, dy = self.screen(np.array([x, y], dtype=np.float64))
        return float(dx), float(dy)
