"""Sub-domain markers for Dirichlet conditions.

A :class:`BoundaryLocator` maps an ``(N, dim)`` array of dof coordinates
to a boolean mask of length ``N``.  Markers combine with ``&``, ``|``
and ``~``::

    where = left() | (bottom() & x_less_than(0.5))
    bc = DirichletBC(V, 0.0, where=where)

The face markers compare against the extreme coordinate of the points
they receive.  A topological :class:`~pyvarsolve.boundaries.base.DirichletBC`
passes only its boundary dofs, so ``top()`` is the top edge of whatever
domain the space was built on.  On an interval ``top``/``bottom`` fall
back to the only axis.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
from numpy.typing import ArrayLike

_TOL = 1e-10


class BoundaryLocator:
    """Boolean marker over dof coordinates.

    Args:
        func: Callable taking an ``(N, dim)`` float array and returning a
            boolean array of length ``N``.  One-dimensional input is
            reshaped to a single column before the call.
    """

    def __init__(self, func: Callable[[np.ndarray], np.ndarray]) -> None:
        self._func = func

    def __call__(self, coords: ArrayLike) -> np.ndarray:
        points = np.asarray(coords, dtype=float)
        if points.ndim == 1:
            points = points.reshape(-1, 1)
        return np.asarray(self._func(points), dtype=bool)

    def __and__(self, other: "BoundaryLocator") -> "BoundaryLocator":
        return BoundaryLocator(lambda c: self(c) & other(c))

    def __or__(self, other: "BoundaryLocator") -> "BoundaryLocator":
        return BoundaryLocator(lambda c: self(c) | other(c))

    def __invert__(self) -> "BoundaryLocator":
        return BoundaryLocator(lambda c: ~self(c))


def everywhere() -> BoundaryLocator:
    """Accept every candidate dof.  Default marker of ``DirichletBC``."""
    return BoundaryLocator(lambda c: np.ones(c.shape[0], dtype=bool))


# ------------------------------------------------------------------
# Faces of the candidate set
# ------------------------------------------------------------------

def _face(axis: int, extreme: Callable[[np.ndarray], float], tol: float) -> BoundaryLocator:
    def select(coords: np.ndarray) -> np.ndarray:
        column = coords[:, axis]
        return np.abs(column - extreme(column)) < tol
    return BoundaryLocator(select)


def left(tol: float = _TOL) -> BoundaryLocator:
    """Dofs at the smallest x."""
    return _face(0, np.min, tol)


def right(tol: float = _TOL) -> BoundaryLocator:
    """Dofs at the largest x."""
    return _face(0, np.max, tol)


def bottom(tol: float = _TOL) -> BoundaryLocator:
    """Dofs at the smallest y, or the smallest x on an interval."""
    return _face(-1, np.min, tol)


def top(tol: float = _TOL) -> BoundaryLocator:
    """Dofs at the largest y, or the largest x on an interval."""
    return _face(-1, np.max, tol)


# ------------------------------------------------------------------
# Absolute coordinates
# ------------------------------------------------------------------

def x_equals(value: float, tol: float = _TOL) -> BoundaryLocator:
    """Dofs on the line ``x = value``."""
    return BoundaryLocator(lambda c: np.abs(c[:, 0] - value) < tol)


def y_equals(value: float, tol: float = _TOL) -> BoundaryLocator:
    """Dofs on the line ``y = value``."""
    return BoundaryLocator(lambda c: np.abs(c[:, 1] - value) < tol)


def x_less_than(value: float) -> BoundaryLocator:
    """Dofs strictly left of ``x = value``; negate for the other side."""
    return BoundaryLocator(lambda c: c[:, 0] < value)


def near(point: ArrayLike, tol: float = 1e-8) -> BoundaryLocator:
    """Dofs within *tol* of *point*.

    Pair it with ``DirichletBC(..., method="pointwise")`` to pin a single
    interior dof.
    """
    p = np.atleast_1d(np.asarray(point, dtype=float))
    return BoundaryLocator(lambda c: np.linalg.norm(c - p, axis=1) < tol)
