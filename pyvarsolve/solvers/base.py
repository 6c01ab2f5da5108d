"""Abstract linear solver interface.

All backends implement :class:`LinearSolver`, which provides a uniform
``solve(A, b)`` method regardless of whether the system is factorized or
iterated on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, TypeVar

import numpy as np
from numpy.typing import ArrayLike
from scipy import sparse

from pyvarsolve.errors import ConfigurationError, InvalidArgument
from pyvarsolve.parameters import Parameters

P = TypeVar("P", bound=Parameters)


def as_parameters(parameters: Parameters | Mapping[str, Any] | None, cls: type[P]) -> P:
    """Coerce *parameters* into an instance of *cls*.

    ``None`` gives the defaults and a mapping is overlaid onto them.  A
    parameter tree of another type is rejected, so a backend never
    receives keys that belong to a different backend.
    """
    if parameters is None:
        return cls()
    if isinstance(parameters, cls):
        return parameters
    if isinstance(parameters, Parameters):
        raise ConfigurationError(
            f"Expected {cls.__name__}, got {type(parameters).__name__}."
        )
    return cls.from_dict(parameters)


class LinearSolver(ABC):
    """Abstract linear solver backend.

    A backend caches whatever it derives from the operator (a
    factorization, a preconditioner).  The cache survives a new call to
    :meth:`solve` only when ``reuse=True`` and the new operator equals the
    previous one entry for entry; :meth:`reset` drops it unconditionally.

    Attributes:
        parameters: The backend's own parameter tree.
        num_iterations: Iterations used by the last solve (1 for direct
            solvers).
    """

    name: str = "linear"

    def __init__(self, parameters: Parameters) -> None:
        self.parameters = parameters
        self.num_iterations = 0
        self._operator: sparse.csr_matrix | None = None

    @property
    def operator(self) -> sparse.csr_matrix | None:
        """The operator of the last solve."""
        return self._operator

    def set_operator(self, A: sparse.spmatrix | np.ndarray, reuse: bool = False) -> None:
        """Register the system matrix.

        Args:
            A: Square matrix.
            reuse: Keep cached data derived from the previous operator
                when *A* is unchanged.  A changed operator always
                invalidates the cache.
        """
        A = sparse.csr_matrix(A, dtype=float)
        if A.shape[0] != A.shape[1]:
            raise InvalidArgument(f"System matrix must be square, got shape {A.shape}.")
        if not (reuse and self._same_operator(A)):
            self.reset()
        self._operator = A

    def _same_operator(self, A: sparse.csr_matrix) -> bool:
        previous = self._operator
        if previous is None or previous.shape != A.shape:
            return False
        return (A != previous).nnz == 0

    def solve(
        self,
        A: sparse.spmatrix | np.ndarray,
        b: ArrayLike,
        x0: ArrayLike | None = None,
        reuse: bool = False,
    ) -> np.ndarray:
        """Solve ``A x = b``.

        Args:
            A: Square system matrix.
            b: Right-hand side.
            x0: Initial guess; only iterative solvers use it.
            reuse: See :meth:`set_operator`.

        Returns:
            Solution vector.
        """
        self.set_operator(A, reuse=reuse)
        n = self._operator.shape[0]
        b = np.asarray(b, dtype=float)
        if b.shape != (n,):
            raise InvalidArgument(f"Right-hand side must have shape ({n},), got {b.shape}.")
        if x0 is not None:
            x0 = np.asarray(x0, dtype=float)
        return self._solve(b, x0)

    @abstractmethod
    def _solve(self, b: np.ndarray, x0: np.ndarray | None) -> np.ndarray:
        """Solve with the registered operator."""

    @abstractmethod
    def reset(self) -> None:
        """Discard data cached from the operator."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
