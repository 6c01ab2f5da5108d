"""Discrete functions and coefficients.

Classes
-------
Function
    Owns a coefficient vector over a function space.
Constant
    Mutable scalar coefficient.

Functions
---------
nodal_values
    Evaluate any supported coefficient at the dofs of a space.
"""

from __future__ import annotations

import numbers
from typing import Any, Callable, Union

import numpy as np
from numpy.typing import ArrayLike

from pyvarsolve.errors import InvalidArgument
from pyvarsolve.fem.functionspace import FunctionSpace


class Constant:
    """Scalar coefficient whose value can change between solves.

    Args:
        value: Initial value.
    """

    def __init__(self, value: float) -> None:
        self.value = float(value)

    def assign(self, value: float) -> None:
        """Replace the stored value."""
        self.value = float(value)

    def __float__(self) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"Constant({self.value!r})"


class Function:
    """Finite-element function ``u = sum_i u_i phi_i``.

    Args:
        function_space: The space the function lives in.
        name: Label used in log messages.
        vector: Optional initial coefficients of length
            ``function_space.dim``; copied.

    Attributes:
        vector: Coefficient array, mutated in place by solvers.
    """

    def __init__(
        self,
        function_space: FunctionSpace,
        name: str = "u",
        vector: ArrayLike | None = None,
    ) -> None:
        if not isinstance(function_space, FunctionSpace):
            raise InvalidArgument(
                f"Function requires a FunctionSpace, got {function_space!r}."
            )
        self.function_space = function_space
        self.name = name
        if vector is None:
            self.vector = np.zeros(function_space.dim)
        else:
            self.vector = self._checked_vector(vector)

    def interpolate(self, value: "Coefficient") -> None:
        """Set coefficients to the nodal values of *value*."""
        self.vector[:] = nodal_values(value, self.function_space)

    def assign(self, other: "Function | ArrayLike") -> None:
        """Copy coefficients from another function or an array."""
        if isinstance(other, Function):
            if not other.function_space.is_compatible(self.function_space):
                raise InvalidArgument(
                    "Cannot assign a function from a different function space."
                )
            other = other.vector
        self.vector[:] = self._checked_vector(other)

    def copy(self) -> "Function":
        """Independent copy sharing only the function space."""
        return Function(self.function_space, name=self.name, vector=self.vector)

    def _checked_vector(self, values: ArrayLike) -> np.ndarray:
        arr = np.array(values, dtype=float)
        if arr.shape != (self.function_space.dim,):
            raise InvalidArgument(
                f"Expected {self.function_space.dim} coefficients, "
                f"got shape {arr.shape}."
            )
        return arr

    def __repr__(self) -> str:
        return f"Function(name={self.name!r}, space={self.function_space!r})"


Coefficient = Union[float, Constant, Function, Callable[[np.ndarray], ArrayLike]]


def nodal_values(value: Coefficient, space: FunctionSpace) -> np.ndarray:
    """Evaluate a scalar coefficient at every dof of *space*.

    Args:
        value: Number, :class:`Constant`, :class:`Function` on *space*,
            or callable ``f(coords) -> values`` with ``coords`` of shape
            ``(N, gdim)``.
        space: Target function space.

    Returns:
        Float array of shape ``(space.dim,)``.
    """
    if isinstance(value, Function):
        if not value.function_space.is_compatible(space):
            raise InvalidArgument(
                f"Coefficient {value.name!r} lives on a different function space."
            )
        return value.vector.copy()
    if isinstance(value, Constant):
        return np.full(space.dim, value.value)
    if isinstance(value, numbers.Real):
        return np.full(space.dim, float(value))
    if callable(value):
        coords = space.tabulate_dof_coordinates()
        out = np.asarray(value(coords), dtype=float)
        return np.broadcast_to(out, (space.dim,)).copy()
    raise InvalidArgument(f"Unsupported coefficient type: {type(value).__name__}.")
