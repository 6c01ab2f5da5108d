"""
pyvarsolve: Assembly and solution of linear variational problems
with direct or Krylov linear solvers.

Subpackages
-----------
geometry
    Interval and rectangle domains, simplex meshes.
fem
    P1 function spaces, functions, weak forms and assembly.
boundaries
    Dirichlet conditions, locators and their elimination.
solvers
    LU and Krylov backends, the linear variational solver.
"""

from pyvarsolve import (
    geometry,
    fem,
    boundaries,
    solvers,
)
from pyvarsolve.errors import (
    PyVarSolveError,
    InvalidArgument,
    ConfigurationError,
    SingularSystem,
    ConvergenceFailure,
)
from pyvarsolve.solvers.variational import LinearVariationalSolver, solve

__version__ = "0.1.0"

__all__ = [
    "geometry",
    "fem",
    "boundaries",
    "solvers",
    "PyVarSolveError",
    "InvalidArgument",
    "ConfigurationError",
    "SingularSystem",
    "ConvergenceFailure",
    "LinearVariationalSolver",
    "solve",
]
