"""Boundary condition base classes.

Classes
-------
BoundaryCondition
    Abstract base for all BC types.
DirichletBC
    Fixed-value (essential) boundary condition.
BoundaryConditions
    Ordered collection of boundary conditions applied to a problem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator

import numpy as np
from scipy import sparse

from pyvarsolve.boundaries.locators import everywhere
from pyvarsolve.errors import InvalidArgument
from pyvarsolve.fem.function import Coefficient, Constant, Function, nodal_values
from pyvarsolve.fem.functionspace import FunctionSpace

_METHODS = ("topological", "pointwise")


class BoundaryCondition(ABC):
    """Abstract boundary condition.

    Every concrete BC stores the *function_space* it constrains, the
    prescribed value, and a *where* locator that identifies the
    sub-domain on which the condition is active.
    """

    function_space: FunctionSpace
    where: Any  # BoundaryLocator or callable

    @abstractmethod
    def apply_mask(self, coords: np.ndarray) -> np.ndarray:
        """Return a boolean mask of the candidate dofs where this BC is active.

        Args:
            coords: Candidate dof coordinates, shape ``(N, dim)``.

        Returns:
            Boolean array of shape ``(N,)``.
        """

    @abstractmethod
    def dof_values(self) -> tuple[np.ndarray, np.ndarray]:
        """Constrained dofs and their prescribed values.

        Returns:
            Tuple ``(dofs, values)`` of equal length.
        """


class DirichletBC(BoundaryCondition):
    """Fixed-value (Dirichlet / essential) boundary condition.

    Args:
        V: Constrained function space.
        value: Prescribed value: scalar, :class:`Constant`,
            :class:`Function` on *V*, or callable ``f(coords)``.
        where: Boundary locator (from :mod:`pyvarsolve.boundaries.locators`).
            ``None`` selects every candidate dof (:func:`everywhere`).
        method: ``"topological"`` tests only boundary dofs;
            ``"pointwise"`` tests every dof of *V*.
    """

    def __init__(
        self,
        V: FunctionSpace,
        value: Coefficient = 0.0,
        where: Any = None,
        method: str = "topological",
    ) -> None:
        if not isinstance(V, FunctionSpace):
            raise InvalidArgument(f"DirichletBC requires a FunctionSpace, got {V!r}.")
        if method not in _METHODS:
            raise InvalidArgument(
                f"Unknown DirichletBC method {method!r}; expected one of {_METHODS}."
            )
        if isinstance(value, Function) and not value.function_space.is_compatible(V):
            raise InvalidArgument(
                "Boundary value function lives on a different function space."
            )
        self.function_space = V
        self.value = value
        self.where = everywhere() if where is None else where
        self.method = method

    def apply_mask(self, coords: np.ndarray) -> np.ndarray:
        return np.asarray(self.where(coords), dtype=bool)

    def dof_values(self) -> tuple[np.ndarray, np.ndarray]:
        V = self.function_space
        if self.method == "topological":
            candidates = V.boundary_dofs()
        else:
            candidates = np.arange(V.dim)
        coords = V.tabulate_dof_coordinates()[candidates]
        dofs = candidates[self.apply_mask(coords)]

        if isinstance(self.value, (int, float, Constant)):
            values = np.full(len(dofs), float(self.value))
        else:
            values = nodal_values(self.value, V)[dofs]
        return dofs, values

    def apply(
        self,
        A: sparse.spmatrix,
        b: np.ndarray | None = None,
    ) -> tuple[sparse.csr_matrix, np.ndarray | None]:
        """Eliminate this condition from an assembled system by rows.

        Args:
            A: Assembled matrix.
            b: Assembled vector, or ``None`` to modify the matrix only.

        Returns:
            Tuple ``(A, b)`` of new objects; the inputs are not modified.
        """
        from pyvarsolve.boundaries.elimination import apply_dirichlet

        dofs, values = self.dof_values()
        return apply_dirichlet(A, b, dofs, values, symmetric=False)

    def __repr__(self) -> str:
        return f"DirichletBC(value={self.value!r}, method={self.method!r})"


# ======================================================================
# Collection
# ======================================================================


class BoundaryConditions:
    """Ordered collection of boundary conditions.

    Order matters: where conditions overlap, the one added last wins.

    Example::

        bc = BoundaryConditions()
        bc.add(DirichletBC(V, 10.0, where=left()))
        bc.add(DirichletBC(V, 0.0, where=right()))
    """

    def __init__(self, conditions: Iterable[BoundaryCondition] | None = None) -> None:
        self._conditions: list[BoundaryCondition] = []
        for condition in conditions or ():
            self.add(condition)

    def add(self, condition: BoundaryCondition) -> None:
        """Append a boundary condition."""
        if not isinstance(condition, BoundaryCondition):
            raise InvalidArgument(f"Not a boundary condition: {condition!r}.")
        self._conditions.append(condition)

    def __iter__(self) -> Iterator[BoundaryCondition]:
        return iter(self._conditions)

    def __len__(self) -> int:
        return len(self._conditions)

    def of_type(self, cls: type) -> list[BoundaryCondition]:
        """Return all conditions of a given type."""
        return [c for c in self._conditions if isinstance(c, cls)]

    def __repr__(self) -> str:
        return f"BoundaryConditions({self._conditions})"
