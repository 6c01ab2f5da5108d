"""Linear variational solver.

Solves ``a(u, v) = L(v)`` for all test functions ``v``: assembles the
system with the boundary conditions eliminated, hands it to a direct or
Krylov backend selected from the parameter tree, and writes the result
into ``u``.

Example::

    V = FunctionSpace(Mesh.rectangle(16, 16))
    u = Function(V)
    solver = LinearVariationalSolver(
        DiffusionForm(V), SourceForm(V, 1.0), u, DirichletBC(V, 0.0)
    )
    solver.parameters["linear_solver"] = "iterative"
    solver.solve()
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import numpy as np
from scipy import sparse

from pyvarsolve.boundaries.base import BoundaryCondition
from pyvarsolve.errors import ConfigurationError, InvalidArgument
from pyvarsolve.fem.forms import Form
from pyvarsolve.fem.function import Function
from pyvarsolve.fem.problem import FormPair
from pyvarsolve.parameters import Parameters
from pyvarsolve.solvers.base import LinearSolver
from pyvarsolve.solvers.krylov import KrylovSolver, KrylovSolverParameters
from pyvarsolve.solvers.lu import LUSolver, LUSolverParameters

logger = logging.getLogger(__name__)

_DIRECT = ("lu", "direct")
_ITERATIVE = ("iterative", "krylov")
_KRYLOV_METHODS = ("cg", "gmres", "bicgstab")

# Systems up to this size are dumped densely by print_matrix / print_rhs.
_DENSE_PRINT_LIMIT = 100


@dataclass
class LinearVariationalSolverParameters(Parameters):
    """Parameters of :class:`LinearVariationalSolver`.

    Attributes:
        linear_solver: ``"lu"``/``"direct"``, ``"iterative"``/``"krylov"``
            or an explicit Krylov method (``"cg"``, ``"gmres"``,
            ``"bicgstab"``).
        preconditioner: Preconditioner of the iterative path.
        symmetric: Eliminate boundary conditions symmetrically and treat
            the operator as symmetric.
        reset_jacobian: Refactorize (or rebuild the preconditioner) on
            every solve.
        print_rhs: Log the assembled right-hand side.
        print_matrix: Log the assembled matrix.
        lu_solver: Direct backend sub-tree.
        krylov_solver: Iterative backend sub-tree.
    """

    name = "linear_variational_solver"

    linear_solver: str = "lu"
    preconditioner: str = "default"
    symmetric: bool = False
    reset_jacobian: bool = True
    print_rhs: bool = False
    print_matrix: bool = False
    lu_solver: LUSolverParameters = field(default_factory=LUSolver.default_parameters)
    krylov_solver: KrylovSolverParameters = field(
        default_factory=KrylovSolver.default_parameters
    )


class SolverState(enum.Enum):
    """Lifecycle of a :class:`LinearVariationalSolver`."""

    CONSTRUCTED = "constructed"
    ASSEMBLING = "assembling"
    SOLVING = "solving"
    CONVERGED = "converged"
    FAILED = "failed"


def select_backend(linear_solver: str, symmetric: bool = False) -> tuple[str, str | None]:
    """Resolve a ``linear_solver`` name.

    Args:
        linear_solver: Backend selector from the parameter tree.
        symmetric: Whether the operator is symmetric; picks CG over
            GMRES for the generic iterative selectors.

    Returns:
        Tuple ``(kind, method)`` where *kind* is ``"lu"`` or
        ``"krylov"`` and *method* the Krylov method (``None`` for LU).

    Raises:
        ConfigurationError: If the name is not recognised.
    """
    if linear_solver in _DIRECT:
        return "lu", None
    if linear_solver in _ITERATIVE:
        return "krylov", "cg" if symmetric else "gmres"
    if linear_solver in _KRYLOV_METHODS:
        return "krylov", linear_solver
    raise ConfigurationError(
        f"Unknown linear solver {linear_solver!r}; expected one of "
        f"{_DIRECT + _ITERATIVE + _KRYLOV_METHODS}."
    )


def _as_condition_tuple(bcs: Any) -> tuple[BoundaryCondition, ...]:
    if bcs is None:
        return ()
    if isinstance(bcs, BoundaryCondition):
        return (bcs,)
    try:
        conditions = tuple(bcs)
    except TypeError:
        raise InvalidArgument(f"Expected boundary conditions, got {bcs!r}.") from None
    for bc in conditions:
        if not isinstance(bc, BoundaryCondition):
            raise InvalidArgument(f"Not a boundary condition: {bc!r}.")
    return conditions


def _format_matrix(A: sparse.csr_matrix) -> str:
    if A.shape[0] <= _DENSE_PRINT_LIMIT:
        return np.array2string(A.toarray(), precision=6, max_line_width=120)
    return f"<{A.shape[0]} x {A.shape[1]} sparse matrix, {A.nnz} nonzeros>\n{A}"


def _format_vector(b: np.ndarray) -> str:
    if b.shape[0] <= _DENSE_PRINT_LIMIT:
        return np.array2string(b, precision=6, max_line_width=120)
    return (
        f"<vector of size {b.shape[0]}, min {b.min():.6e}, max {b.max():.6e}, "
        f"norm {np.linalg.norm(b):.6e}>"
    )


class LinearVariationalSolver:
    """Solver for linear variational problems ``a(u, v) = L(v)``.

    Args:
        a: Bilinear form.
        L: Linear form.
        u: Unknown; receives the solution.
        bcs: ``None``, one boundary condition, a sequence of conditions
            or a :class:`~pyvarsolve.boundaries.BoundaryConditions`.

    Attributes:
        parameters: :class:`LinearVariationalSolverParameters`, seeded
            from :meth:`default_parameters`.
        state: Current :class:`SolverState`.

    Raises:
        InvalidArgument: If the forms, the unknown or the boundary
            conditions are incompatible.
    """

    def __init__(
        self,
        a: Form,
        L: Form,
        u: Function,
        bcs: BoundaryCondition | Iterable[BoundaryCondition] | None = None,
    ) -> None:
        self._setup(FormPair(a, L), u, bcs)

    @classmethod
    def from_forms(
        cls,
        forms: FormPair,
        u: Function,
        bcs: BoundaryCondition | Iterable[BoundaryCondition] | None = None,
    ) -> "LinearVariationalSolver":
        """Build a solver on a :class:`FormPair` shared with other solvers."""
        if not isinstance(forms, FormPair):
            raise InvalidArgument(f"Expected a FormPair, got {forms!r}.")
        solver = cls.__new__(cls)
        solver._setup(forms, u, bcs)
        return solver

    def _setup(self, forms: FormPair, u: Function, bcs: Any) -> None:
        self.forms = forms
        self.u = u
        self.bcs = _as_condition_tuple(bcs)
        self.parameters = self.default_parameters()
        self.state = SolverState.CONSTRUCTED
        self._backend: LinearSolver | None = None
        self._backend_key: tuple | None = None
        self.check_forms()

    @staticmethod
    def default_parameters() -> LinearVariationalSolverParameters:
        """Fresh default parameter tree."""
        return LinearVariationalSolverParameters()

    @property
    def a(self) -> Form:
        return self.forms.a

    @property
    def L(self) -> Form:
        return self.forms.L

    @property
    def backend(self) -> LinearSolver | None:
        """Backend used by the last solve, ``None`` before the first."""
        return self._backend

    def check_forms(self) -> None:
        """Validate forms, unknown and boundary conditions.

        Raises:
            InvalidArgument: On a rank or function space mismatch.
        """
        self.forms.check_forms(self.u)
        test_space = self.forms.a.test_space
        for bc in self.bcs:
            if not bc.function_space.is_compatible(test_space):
                raise InvalidArgument(
                    f"{bc!r} constrains a function space other than the "
                    "test space of the bilinear form."
                )

    def solve(self) -> Function:
        """Assemble and solve the system, storing the solution in ``u``.

        Returns:
            The unknown ``u``.

        Raises:
            InvalidArgument: If the forms became incompatible.
            ConfigurationError: On an unknown backend, method or
                preconditioner.
            SingularSystem: If the direct backend cannot factorize.
            ConvergenceFailure: If the Krylov backend fails.
        """
        p = self.parameters
        self.state = SolverState.CONSTRUCTED
        try:
            self.check_forms()
            kind, method = select_backend(p.linear_solver, p.symmetric)

            self.state = SolverState.ASSEMBLING
            A, b = self.forms.assemble_system(self.bcs, symmetric=p.symmetric)
            if p.print_rhs:
                logger.info("Assembled right-hand side:\n%s", _format_vector(b))
            if p.print_matrix:
                logger.info("Assembled matrix:\n%s", _format_matrix(A))

            self.state = SolverState.SOLVING
            backend = self._configure_backend(kind, method)
            if p.reset_jacobian:
                backend.reset()
            x = backend.solve(A, b, x0=self.u.vector, reuse=not p.reset_jacobian)
        except Exception:
            self.state = SolverState.FAILED
            raise

        self.u.vector[:] = x
        self.state = SolverState.CONVERGED
        return self.u

    def _configure_backend(self, kind: str, method: str | None) -> LinearSolver:
        """Return the backend for this solve, reusing the cached one when
        its configuration is unchanged."""
        p = self.parameters
        if kind == "lu":
            sub = p.lu_solver.copy()
            if p.symmetric:
                sub.symmetric_operator = True
            key = (kind, None, None, repr(sub))
        else:
            sub = p.krylov_solver.copy()
            key = (kind, method, p.preconditioner, repr(sub))

        if self._backend is None or key != self._backend_key:
            if kind == "lu":
                self._backend = LUSolver(sub)
            else:
                self._backend = KrylovSolver(method, p.preconditioner, sub)
            self._backend_key = key
        return self._backend

    def __repr__(self) -> str:
        return (
            f"LinearVariationalSolver(u={self.u.name!r}, "
            f"bcs={len(self.bcs)}, state={self.state.value!r})"
        )


def solve(
    a: Form,
    L: Form,
    u: Function,
    bcs: BoundaryCondition | Iterable[BoundaryCondition] | None = None,
    solver_parameters: Mapping[str, Any] | None = None,
) -> Function:
    """Solve ``a(u, v) = L(v)`` in one call.

    Args:
        a: Bilinear form.
        L: Linear form.
        u: Unknown; receives the solution.
        bcs: Boundary conditions.
        solver_parameters: Overrides merged onto the default parameters.

    Returns:
        The unknown ``u``.
    """
    solver = LinearVariationalSolver(a, L, u, bcs)
    if solver_parameters is not None:
        solver.parameters.update(solver_parameters)
    return solver.solve()
