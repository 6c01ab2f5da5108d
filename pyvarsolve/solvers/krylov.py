"""Preconditioned Krylov solver backend.

Wraps :func:`scipy.sparse.linalg.cg`, :func:`~scipy.sparse.linalg.gmres`
and :func:`~scipy.sparse.linalg.bicgstab` with a common parameter tree,
Jacobi or incomplete-LU preconditioning, residual monitoring and a
divergence check.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import LinearOperator, bicgstab, cg, gmres, spilu

from pyvarsolve.errors import ConfigurationError, ConvergenceFailure, SingularSystem
from pyvarsolve.parameters import Parameters
from pyvarsolve.solvers.base import LinearSolver, as_parameters

logger = logging.getLogger(__name__)

_METHODS = {
    "cg": "Conjugate gradient method",
    "gmres": "Generalized minimal residual method",
    "bicgstab": "Biconjugate gradient stabilized method",
}

_PRECONDITIONERS = {
    "none": "No preconditioner",
    "jacobi": "Jacobi iteration",
    "ilu": "Incomplete LU factorization",
}


def krylov_solver_methods() -> dict[str, str]:
    """Available Krylov methods and their descriptions."""
    return {"default": "default Krylov method", **_METHODS}


def krylov_solver_preconditioners() -> dict[str, str]:
    """Available preconditioners and their descriptions."""
    return {"default": "default preconditioner", **_PRECONDITIONERS}


# ======================================================================
# Parameters
# ======================================================================


@dataclass
class GMRESParameters(Parameters):
    """GMRES specific parameters."""

    name = "gmres"

    restart: int = 30


@dataclass
class ILUParameters(Parameters):
    """Incomplete LU parameters, passed to :func:`scipy.sparse.linalg.spilu`."""

    name = "ilu"

    fill_factor: float = 10.0
    drop_tolerance: float = 1e-4


@dataclass
class PreconditionerParameters(Parameters):
    """Preconditioner parameters.

    Attributes:
        reuse: Keep the preconditioner when a new operator of the same
            shape is set.
        ilu: Incomplete LU settings.
    """

    name = "preconditioner"

    reuse: bool = False
    ilu: ILUParameters = field(default_factory=ILUParameters)


@dataclass
class KrylovSolverParameters(Parameters):
    """Parameters of :class:`KrylovSolver`.

    Attributes:
        relative_tolerance: Stop when ``||r|| <= rtol * ||b||``.
        absolute_tolerance: Stop when ``||r|| <= atol``.
        divergence_limit: Abort when the residual grows by this factor
            over the initial residual.
        maximum_iterations: Iteration cap.  For GMRES this counts inner
            iterations and is rounded up to whole restart cycles.
        report: Log one line per solve.
        monitor_convergence: Log the residual at every iteration.
        error_on_nonconvergence: Raise :class:`ConvergenceFailure` when the
            iteration cap is hit; otherwise log a warning and return the
            last iterate.
        nonzero_initial_guess: Start from the supplied ``x0`` instead of
            zero.
    """

    name = "krylov_solver"

    relative_tolerance: float = 1e-6
    absolute_tolerance: float = 1e-15
    divergence_limit: float = 1e4
    maximum_iterations: int = 10000
    report: bool = True
    monitor_convergence: bool = False
    error_on_nonconvergence: bool = True
    nonzero_initial_guess: bool = False
    gmres: GMRESParameters = field(default_factory=GMRESParameters)
    preconditioner: PreconditionerParameters = field(default_factory=PreconditionerParameters)


# ======================================================================
# Monitor
# ======================================================================


class _IterationMonitor:
    """Callback counting iterations and checking for divergence.

    GMRES reports the preconditioned residual norm relative to the
    right-hand side; the other methods report the iterate, from which
    the true residual is computed.
    """

    def __init__(
        self,
        A: sparse.csr_matrix,
        b: np.ndarray,
        r0: float,
        parameters: KrylovSolverParameters,
        method: str,
    ) -> None:
        self.A = A
        self.b = b
        self.r0 = r0
        self.parameters = parameters
        self.method = method
        self.iterations = 0
        self.residual_norm = r0

    def __call__(self, arg: Any) -> None:
        self.iterations += 1
        if self.method == "gmres":
            self.residual_norm = float(arg)
            growth = self.residual_norm
        else:
            self.residual_norm = float(np.linalg.norm(self.b - self.A @ arg))
            growth = self.residual_norm / self.r0 if self.r0 > 0.0 else 0.0

        if self.parameters.monitor_convergence:
            logger.info(
                "Krylov iteration %d: residual norm = %.6e",
                self.iterations, self.residual_norm,
            )
        if growth > self.parameters.divergence_limit:
            raise ConvergenceFailure(
                f"Krylov solver ({self.method}) diverged after {self.iterations} "
                f"iterations (residual norm {self.residual_norm:.3e}).",
                iterations=self.iterations,
                residual_norm=self.residual_norm,
            )


# ======================================================================
# Solver
# ======================================================================


class KrylovSolver(LinearSolver):
    """Preconditioned Krylov subspace solver.

    Args:
        method: ``"cg"``, ``"gmres"``, ``"bicgstab"`` or ``"default"``
            (GMRES).
        preconditioner: ``"none"``, ``"jacobi"``, ``"ilu"`` or
            ``"default"`` (Jacobi for CG, ILU otherwise).
        parameters: :class:`KrylovSolverParameters` or a mapping of
            overrides.

    Attributes:
        residual_norm: True residual ``||b - A x||`` after the last solve.
        num_preconditioner_setups: Number of preconditioners built so far.
    """

    name = "krylov"

    def __init__(
        self,
        method: str = "default",
        preconditioner: str = "default",
        parameters: KrylovSolverParameters | Mapping[str, Any] | None = None,
    ) -> None:
        if method == "default":
            method = "gmres"
        if method not in _METHODS:
            raise ConfigurationError(
                f"Unknown Krylov method {method!r}; expected one of "
                f"{sorted(krylov_solver_methods())}."
            )
        if preconditioner == "default":
            preconditioner = "jacobi" if method == "cg" else "ilu"
        if preconditioner not in _PRECONDITIONERS:
            raise ConfigurationError(
                f"Unknown preconditioner {preconditioner!r}; expected one of "
                f"{sorted(krylov_solver_preconditioners())}."
            )

        super().__init__(as_parameters(parameters, KrylovSolverParameters))
        self.method = method
        self.preconditioner = preconditioner
        self.residual_norm = math.nan
        self.num_preconditioner_setups = 0
        self._M: sparse.spmatrix | LinearOperator | None = None
        self._has_preconditioner = False

    @staticmethod
    def default_parameters() -> KrylovSolverParameters:
        return KrylovSolverParameters()

    def set_operator(self, A: Any, reuse: bool = False) -> None:
        super().set_operator(A, reuse=reuse or self.parameters.preconditioner.reuse)

    def reset(self) -> None:
        self._M = None
        self._has_preconditioner = False

    def _build_preconditioner(self) -> sparse.spmatrix | LinearOperator | None:
        A = self.operator
        n = A.shape[0]
        if self.preconditioner == "none":
            return None
        if self.preconditioner == "jacobi":
            diag = A.diagonal()
            safe = np.where(np.abs(diag) > 0.0, diag, 1.0)
            return sparse.diags(1.0 / safe).tocsr()

        ilu_params = self.parameters.preconditioner.ilu
        try:
            ilu = spilu(
                A.tocsc(),
                drop_tol=ilu_params.drop_tolerance,
                fill_factor=ilu_params.fill_factor,
            )
        except RuntimeError as exc:
            raise SingularSystem(f"Incomplete LU factorization failed: {exc}") from exc
        return LinearOperator((n, n), matvec=ilu.solve, dtype=float)

    def _solve(self, b: np.ndarray, x0: np.ndarray | None) -> np.ndarray:
        p = self.parameters
        A = self.operator
        n = A.shape[0]

        if not self._has_preconditioner:
            self._M = self._build_preconditioner()
            self._has_preconditioner = True
            self.num_preconditioner_setups += 1

        if p.report:
            logger.info(
                "Solving linear system of size %d x %d (Krylov solver: %s, "
                "preconditioner: %s).",
                n, n, self.method, self.preconditioner,
            )

        if p.nonzero_initial_guess and x0 is not None:
            x_init = x0.copy()
        else:
            x_init = np.zeros(n)
        r0 = float(np.linalg.norm(b - A @ x_init))
        monitor = _IterationMonitor(A, b, r0, p, self.method)

        kwargs = dict(
            x0=x_init,
            rtol=p.relative_tolerance,
            atol=p.absolute_tolerance,
            M=self._M,
            callback=monitor,
        )
        if self.method == "gmres":
            restart = p.gmres.restart
            x, info = gmres(
                A, b,
                restart=restart,
                maxiter=max(1, math.ceil(p.maximum_iterations / restart)),
                callback_type="pr_norm",
                **kwargs,
            )
        elif self.method == "cg":
            x, info = cg(A, b, maxiter=p.maximum_iterations, **kwargs)
        else:
            x, info = bicgstab(A, b, maxiter=p.maximum_iterations, **kwargs)

        self.num_iterations = monitor.iterations
        self.residual_norm = float(np.linalg.norm(b - A @ x))

        if info < 0 or not np.all(np.isfinite(x)):
            raise ConvergenceFailure(
                f"Krylov solver ({self.method}) broke down after "
                f"{self.num_iterations} iterations.",
                iterations=self.num_iterations,
                residual_norm=self.residual_norm,
            )
        if info > 0:
            message = (
                f"Krylov solver ({self.method}) did not converge in "
                f"{self.num_iterations} iterations (residual norm "
                f"{self.residual_norm:.3e})."
            )
            if p.error_on_nonconvergence:
                raise ConvergenceFailure(
                    message,
                    iterations=self.num_iterations,
                    residual_norm=self.residual_norm,
                )
            logger.warning(message)
        elif p.report:
            logger.info(
                "Krylov solver (%s, %s) converged in %d iterations.",
                self.method, self.preconditioner, self.num_iterations,
            )
        return x

    def __repr__(self) -> str:
        return f"KrylovSolver(method={self.method!r}, preconditioner={self.preconditioner!r})"
