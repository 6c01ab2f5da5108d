"""Solvers: linear solver backends and the linear variational solver."""

from pyvarsolve.solvers.base import LinearSolver
from pyvarsolve.solvers.lu import LUSolver, LUSolverParameters, lu_solver_methods
from pyvarsolve.solvers.krylov import (
    KrylovSolver,
    KrylovSolverParameters,
    krylov_solver_methods,
    krylov_solver_preconditioners,
)
from pyvarsolve.solvers.variational import (
    LinearVariationalSolver,
    LinearVariationalSolverParameters,
    SolverState,
    select_backend,
    solve,
)

__all__ = [
    "LinearSolver",
    "LUSolver",
    "LUSolverParameters",
    "lu_solver_methods",
    "KrylovSolver",
    "KrylovSolverParameters",
    "krylov_solver_methods",
    "krylov_solver_preconditioners",
    "LinearVariationalSolver",
    "LinearVariationalSolverParameters",
    "SolverState",
    "select_backend",
    "solve",
]
