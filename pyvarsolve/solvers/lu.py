"""Direct solver backend using SciPy's SuperLU.

The operator is factorized once with :func:`scipy.sparse.linalg.splu`
and the factors are reused for every right-hand side until the operator
changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np
from scipy.sparse.linalg import splu

from pyvarsolve.errors import ConfigurationError, SingularSystem
from pyvarsolve.parameters import Parameters
from pyvarsolve.solvers.base import LinearSolver, as_parameters

logger = logging.getLogger(__name__)

_PERMC_SPECS = ("COLAMD", "NATURAL", "MMD_ATA", "MMD_AT_PLUS_A")

# Largest accepted relative residual ||b - A x|| / ||b|| of a backsolve.
_RESIDUAL_TOLERANCE = 1e-6


@dataclass
class LUSolverParameters(Parameters):
    """Parameters of :class:`LUSolver`.

    Attributes:
        report: Log one line per solve.
        verbose: Log factorization details.
        symmetric_operator: The operator is symmetric; enables SuperLU's
            symmetric mode with a symmetric column ordering.
        reuse_factorization: Keep the factorization when the same
            operator is set again.
        permc_spec: SuperLU column permutation for non-symmetric operators.
    """

    name = "lu_solver"

    report: bool = True
    verbose: bool = False
    symmetric_operator: bool = False
    reuse_factorization: bool = False
    permc_spec: str = "COLAMD"


def lu_solver_methods() -> dict[str, str]:
    """Available LU methods and their descriptions."""
    return {
        "default": "default LU solver",
        "superlu": "SuperLU (scipy.sparse.linalg.splu)",
    }


class LUSolver(LinearSolver):
    """Factorize-then-backsolve direct solver.

    Args:
        parameters: :class:`LUSolverParameters` or a mapping of overrides.

    Attributes:
        num_factorizations: Number of factorizations computed so far.
    """

    name = "lu"

    def __init__(
        self,
        parameters: LUSolverParameters | Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(as_parameters(parameters, LUSolverParameters))
        self._factor = None
        self.num_factorizations = 0

    @staticmethod
    def default_parameters() -> LUSolverParameters:
        return LUSolverParameters()

    def set_operator(self, A: Any, reuse: bool = False) -> None:
        super().set_operator(A, reuse=reuse or self.parameters.reuse_factorization)

    def reset(self) -> None:
        self._factor = None

    def factorize(self) -> None:
        """Compute the LU factors of the registered operator.

        Raises:
            SingularSystem: If a pivot of ``U`` is zero or negligible
                against the largest one.
        """
        p = self.parameters
        A = self.operator
        if p.symmetric_operator:
            permc_spec, options = "MMD_AT_PLUS_A", {"SymmetricMode": True}
        else:
            permc_spec, options = p.permc_spec, {}
        if permc_spec not in _PERMC_SPECS:
            raise ConfigurationError(
                f"Unknown permc_spec {permc_spec!r}; expected one of {_PERMC_SPECS}."
            )

        if p.verbose:
            logger.info(
                "LU factorization of %d x %d matrix with %d nonzeros (ordering %s).",
                A.shape[0], A.shape[1], A.nnz, permc_spec,
            )
        try:
            self._factor = splu(A.tocsc(), permc_spec=permc_spec, options=options)
        except RuntimeError as exc:
            raise SingularSystem(f"LU factorization failed: {exc}") from exc

        pivots = np.abs(self._factor.U.diagonal())
        n = A.shape[0]
        if n and pivots.min() <= n * np.finfo(float).eps * pivots.max():
            self._factor = None
            raise SingularSystem(
                f"LU factorization of {n} x {n} matrix found a negligible pivot "
                f"({pivots.min():.3e} against {pivots.max():.3e}); the system is "
                "singular or numerically rank deficient."
            )
        self.num_factorizations += 1

    def _solve(self, b: np.ndarray, x0: np.ndarray | None) -> np.ndarray:
        n = b.shape[0]
        if self.parameters.report:
            logger.info("Solving linear system of size %d x %d (LU solver).", n, n)

        if self._factor is None:
            self.factorize()
        x = self._factor.solve(b)
        if not np.all(np.isfinite(x)):
            raise SingularSystem(
                "LU solve produced non-finite values; the system is singular "
                "or numerically rank deficient."
            )
        residual = np.linalg.norm(b - self.operator @ x)
        scale = np.linalg.norm(b)
        if residual > _RESIDUAL_TOLERANCE * scale:
            raise SingularSystem(
                f"LU solve left a relative residual of {residual / scale:.3e}; "
                "the system is singular or numerically rank deficient."
            )
        self.num_iterations = 1
        return x

    def __repr__(self) -> str:
        return f"LUSolver(factorizations={self.num_factorizations})"
