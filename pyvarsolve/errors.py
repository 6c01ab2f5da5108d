"""Exception hierarchy.

Classes
-------
PyVarSolveError
    Base class for all errors raised by the package.
InvalidArgument
    Incompatible forms, function spaces or constructor arguments.
ConfigurationError
    Unknown or ill-typed solver configuration.
SingularSystem
    A direct factorization found a non-invertible operator.
ConvergenceFailure
    An iterative solver diverged or ran out of iterations.
"""

from __future__ import annotations

import numpy as np


class PyVarSolveError(Exception):
    """Base class for package errors."""


class InvalidArgument(PyVarSolveError, ValueError):
    """Raised when forms, spaces or arguments are incompatible."""


class ConfigurationError(PyVarSolveError, ValueError):
    """Raised for unknown parameter keys, values or backend names."""


class SingularSystem(PyVarSolveError, np.linalg.LinAlgError):
    """Raised when the assembled operator cannot be factorized."""


class ConvergenceFailure(PyVarSolveError, RuntimeError):
    """Raised when a Krylov solver fails to converge.

    Args:
        message: Human-readable description.
        iterations: Iterations performed before giving up.
        residual_norm: Last residual norm observed (``nan`` if unknown).
    """

    def __init__(
        self,
        message: str,
        iterations: int = 0,
        residual_norm: float = float("nan"),
    ) -> None:
        super().__init__(message)
        self.iterations = iterations
        self.residual_norm = residual_norm
