"""Continuous piecewise-linear function spaces."""

from __future__ import annotations

from typing import Any

import numpy as np

_P1_FAMILIES = ("P", "Lagrange", "CG")


class FunctionSpace:
    """Continuous Lagrange space of degree 1 on a simplex mesh.

    Degrees of freedom coincide with mesh nodes, so dof ``i`` lives at
    ``mesh.nodes[i]``.

    Args:
        mesh: A :class:`~pyvarsolve.geometry.mesh.Mesh`.
        family: Element family name (``"P"``, ``"Lagrange"`` or ``"CG"``).
        degree: Polynomial degree; only ``1`` is supported.
    """

    def __init__(self, mesh: Any, family: str = "P", degree: int = 1) -> None:
        if family not in _P1_FAMILIES or degree != 1:
            raise NotImplementedError(
                f"Only continuous P1 spaces are supported, got "
                f"family={family!r}, degree={degree}."
            )
        self.mesh = mesh
        self.family = "P"
        self.degree = degree

    @property
    def dim(self) -> int:
        """Number of degrees of freedom."""
        return self.mesh.n_nodes

    def tabulate_dof_coordinates(self) -> np.ndarray:
        """Coordinates of every dof, shape ``(dim, gdim)``."""
        return self.mesh.nodes.copy()

    def boundary_dofs(self) -> np.ndarray:
        """Sorted indices of dofs on the mesh boundary."""
        return self.mesh.boundary_nodes()

    def cell_dofs(self, cell: int) -> np.ndarray:
        """Dofs of cell number *cell*."""
        return self.mesh.cells[cell]

    def is_compatible(self, other: Any) -> bool:
        """Whether *other* describes the same discrete space."""
        if other is self:
            return True
        return (
            isinstance(other, FunctionSpace)
            and other.mesh is self.mesh
            and other.family == self.family
            and other.degree == self.degree
        )

    def __repr__(self) -> str:
        return f"FunctionSpace({self.family}{self.degree}, dim={self.dim})"
