"""Geometric primitives for 1-D and 2-D domain definition.

Classes
-------
Geometry
    Abstract base class for all geometric objects.
Interval
    1-D segment ``[x0, x1]``.
Rectangle
    Axis-aligned 2-D box.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import ArrayLike


class Geometry(ABC):
    """Abstract base class for all geometric primitives.

    Attributes:
        dim: Spatial dimension (1 or 2).
    """

    dim: int

    def __init__(self, dim: int) -> None:
        self.dim = dim

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    def contains(self, points: ArrayLike) -> np.ndarray:
        """Test whether each point lies inside the geometry.

        Args:
            points: Array of shape ``(N, dim)``.

        Returns:
            Boolean array of shape ``(N,)``.
        """

    @abstractmethod
    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounding box.

        Returns:
            Tuple ``(min_corner, max_corner)`` each of shape ``(dim,)``.
        """

    @abstractmethod
    def measure(self) -> float:
        """Length (1-D) or area (2-D) of the geometry."""

    # ------------------------------------------------------------------
    # Meshing convenience
    # ------------------------------------------------------------------

    def generate_mesh(self, resolution: float = 1.0) -> "Mesh":
        """Generate a structured simplex mesh for this geometry.

        Args:
            resolution: Target element size.

        Returns:
            A :class:`~pyvarsolve.geometry.mesh.Mesh` instance.
        """
        from pyvarsolve.geometry.mesh import Mesh

        return Mesh.from_geometry(self, resolution=resolution)


# ======================================================================
# 1-D Primitives
# ======================================================================


class Interval(Geometry):
    """Closed segment ``[x0, x1]``.

    Args:
        x0: Left end.
        x1: Right end.
    """

    def __init__(self, x0: float = 0.0, x1: float = 1.0) -> None:
        super().__init__(dim=1)
        if x1 <= x0:
            raise ValueError(f"Interval requires x0 < x1, got [{x0}, {x1}].")
        self.x0 = float(x0)
        self.x1 = float(x1)

    @property
    def length(self) -> float:
        return self.x1 - self.x0

    def contains(self, points: ArrayLike) -> np.ndarray:
        pts = np.asarray(points, dtype=float).reshape(-1, 1)
        x = pts[:, 0]
        return (x >= self.x0) & (x <= self.x1)

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        return np.array([self.x0]), np.array([self.x1])

    def measure(self) -> float:
        return self.length

    def __repr__(self) -> str:
        return f"Interval(x0={self.x0}, x1={self.x1})"


# ======================================================================
# 2-D Primitives
# ======================================================================


class Rectangle(Geometry):
    """Axis-aligned rectangle.

    Args:
        Lx: Width (x-extent).
        Ly: Height (y-extent).
        origin: Bottom-left corner ``(x0, y0)``.  Defaults to ``(0, 0)``.
        x0: Alternative: left x coordinate.
        y0: Alternative: bottom y coordinate.
        width: Alternative name for *Lx* (used together with *x0*/*y0*).
        height: Alternative name for *Ly*.
    """

    def __init__(
        self,
        Lx: float | None = None,
        Ly: float | None = None,
        origin: tuple[float, float] = (0.0, 0.0),
        *,
        x0: float | None = None,
        y0: float | None = None,
        width: float | None = None,
        height: float | None = None,
    ) -> None:
        super().__init__(dim=2)

        if x0 is not None and y0 is not None:
            origin = (x0, y0)
        _w = width if width is not None else Lx
        _h = height if height is not None else Ly
        if _w is None or _h is None:
            raise ValueError("Must provide (Lx, Ly) or (width, height).")

        self.origin = np.asarray(origin, dtype=float)
        self.Lx = float(_w)
        self.Ly = float(_h)

    @property
    def x_min(self) -> float:
        return float(self.origin[0])

    @property
    def x_max(self) -> float:
        return float(self.origin[0] + self.Lx)

    @property
    def y_min(self) -> float:
        return float(self.origin[1])

    @property
    def y_max(self) -> float:
        return float(self.origin[1] + self.Ly)

    def contains(self, points: ArrayLike) -> np.ndarray:
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        x, y = pts[:, 0], pts[:, 1]
        return (
            (x >= self.x_min) & (x <= self.x_max)
            & (y >= self.y_min) & (y <= self.y_max)
        )

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        return self.origin.copy(), self.origin + np.array([self.Lx, self.Ly])

    def measure(self) -> float:
        return self.Lx * self.Ly

    def __repr__(self) -> str:
        return (
            f"Rectangle(Lx={self.Lx}, Ly={self.Ly}, "
            f"origin=({self.origin[0]}, {self.origin[1]}))"
        )
