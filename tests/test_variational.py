"""Tests for the linear variational solver."""

import logging

import numpy as np
import pytest

from pyvarsolve.boundaries.base import BoundaryConditions, DirichletBC
from pyvarsolve.boundaries.locators import left, right
from pyvarsolve.errors import (
    ConfigurationError,
    ConvergenceFailure,
    InvalidArgument,
    SingularSystem,
)
from pyvarsolve.fem.forms import AdvectionForm, DiffusionForm, MassForm, SourceForm
from pyvarsolve.fem.function import Constant, Function
from pyvarsolve.fem.functionspace import FunctionSpace
from pyvarsolve.fem.problem import FormPair
from pyvarsolve.geometry.primitives import Interval, Rectangle
from pyvarsolve.solvers.krylov import KrylovSolver
from pyvarsolve.solvers.lu import LUSolver
from pyvarsolve.solvers.variational import (
    LinearVariationalSolver,
    SolverState,
    select_backend,
    solve,
)


def _exact(x: np.ndarray) -> np.ndarray:
    return 1.0 + x[:, 0] ** 2 + 2.0 * x[:, 1] ** 2


def _make_poisson(source=-6.0, resolution=0.125):
    """-Δu = f on the unit square, u = 1 + x² + 2y² on the boundary.

    With f = -6 the P1 solution is exact at the nodes of the structured
    mesh.
    """
    mesh = Rectangle(Lx=1.0, Ly=1.0).generate_mesh(resolution=resolution)
    V = FunctionSpace(mesh)
    u = Function(V)
    a = DiffusionForm(V)
    L = SourceForm(V, source)
    bc = DirichletBC(V, _exact)
    return a, L, u, bc


def _make_1d(n: int = 10):
    """-u'' = 1 on (0, 1), u(0) = u(1) = 0; exact u = x (1 - x) / 2."""
    V = FunctionSpace(Interval(0.0, 1.0).generate_mesh(resolution=1.0 / n))
    return DiffusionForm(V), SourceForm(V, 1.0), Function(V), DirichletBC(V, 0.0)


# ======================================================================
# Construction
# ======================================================================

class TestConstruction:
    def test_well_formed(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        assert solver.state is SolverState.CONSTRUCTED
        assert solver.bcs == (bc,)
        assert solver.a is a and solver.L is L
        assert solver.backend is None

    def test_bcs_variants(self):
        a, L, u, bc = _make_poisson()
        other = DirichletBC(a.test_space, 0.0, where=left())
        assert LinearVariationalSolver(a, L, u).bcs == ()
        assert LinearVariationalSolver(a, L, u, None).bcs == ()
        assert LinearVariationalSolver(a, L, u, [bc, other]).bcs == (bc, other)
        collection = BoundaryConditions([bc, other])
        assert LinearVariationalSolver(a, L, u, collection).bcs == (bc, other)

    def test_from_forms(self):
        a, L, u, bc = _make_poisson()
        pair = FormPair(a, L)
        s1 = LinearVariationalSolver.from_forms(pair, u, bc)
        s2 = LinearVariationalSolver.from_forms(pair, u.copy(), [bc])
        assert s1.forms is s2.forms
        assert s1.bcs == s2.bcs
        assert s1.parameters == s2.parameters

    def test_from_forms_requires_pair(self):
        a, L, u, bc = _make_poisson()
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver.from_forms((a, L), u, bc)

    def test_rank_mismatch(self):
        a, L, u, bc = _make_poisson()
        with pytest.raises(InvalidArgument, match="bilinear"):
            LinearVariationalSolver(L, L, u, bc)
        with pytest.raises(InvalidArgument, match="linear"):
            LinearVariationalSolver(a, a, u, bc)

    def test_space_mismatch(self):
        a, L, u, bc = _make_poisson()
        a2, L2, u2, bc2 = _make_poisson()
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver(a, L2, u, bc)
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver(a, L, u2, bc)
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver(a, L, u, bc2)

    def test_invalid_bcs(self):
        a, L, u, bc = _make_poisson()
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver(a, L, u, 0.0)
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver(a, L, u, [bc, "left"])

    def test_unknown_not_a_function(self):
        a, L, u, bc = _make_poisson()
        with pytest.raises(InvalidArgument):
            LinearVariationalSolver(a, L, u.vector, bc)

    def test_default_parameters_independent(self):
        p1 = LinearVariationalSolver.default_parameters()
        p2 = LinearVariationalSolver.default_parameters()
        assert p1 == p2
        assert p1 is not p2
        p1["krylov_solver.relative_tolerance"] = 1e-3
        assert p2["krylov_solver.relative_tolerance"] == pytest.approx(1e-6)

    def test_solver_parameters_not_shared(self):
        a, L, u, bc = _make_poisson()
        s1 = LinearVariationalSolver(a, L, u, bc)
        s2 = LinearVariationalSolver(a, L, u, bc)
        s1.parameters["linear_solver"] = "iterative"
        assert s2.parameters.linear_solver == "lu"


# ======================================================================
# Backend selection
# ======================================================================

class TestSelectBackend:
    @pytest.mark.parametrize("name", ["lu", "direct"])
    def test_direct(self, name):
        assert select_backend(name) == ("lu", None)
        assert select_backend(name, symmetric=True) == ("lu", None)

    @pytest.mark.parametrize("name", ["iterative", "krylov"])
    def test_iterative(self, name):
        assert select_backend(name, symmetric=False) == ("krylov", "gmres")
        assert select_backend(name, symmetric=True) == ("krylov", "cg")

    @pytest.mark.parametrize("name", ["cg", "gmres", "bicgstab"])
    def test_explicit_method(self, name):
        assert select_backend(name) == ("krylov", name)

    @pytest.mark.parametrize("name", ["bogus", "", "LU", "default"])
    def test_unknown(self, name):
        with pytest.raises(ConfigurationError):
            select_backend(name)


# ======================================================================
# Solving
# ======================================================================

class TestSolve:
    def test_lu_manufactured(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        result = solver.solve()
        assert result is u
        assert solver.state is SolverState.CONVERGED
        coords = u.function_space.tabulate_dof_coordinates()
        np.testing.assert_allclose(u.vector, _exact(coords), atol=1e-10)
        assert isinstance(solver.backend, LUSolver)

    def test_iterative_matches_lu(self):
        a, L, u, bc = _make_poisson()
        LinearVariationalSolver(a, L, u, bc).solve()

        u_it = u.copy()
        u_it.vector[:] = 0.0
        solver = LinearVariationalSolver(a, L, u_it, bc)
        solver.parameters["linear_solver"] = "iterative"
        solver.parameters["krylov_solver.relative_tolerance"] = 1e-12
        solver.solve()

        assert isinstance(solver.backend, KrylovSolver)
        assert solver.backend.method == "gmres"
        np.testing.assert_allclose(u_it.vector, u.vector, atol=1e-8)
        coords = u.function_space.tabulate_dof_coordinates()
        np.testing.assert_allclose(u_it.vector, _exact(coords), atol=1e-8)

    @pytest.mark.parametrize("linear_solver", ["lu", "iterative", "cg", "bicgstab"])
    def test_symmetric_same_solution(self, linear_solver):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters.update(
            linear_solver=linear_solver,
            symmetric=True,
            krylov_solver={"relative_tolerance": 1e-12},
        )
        solver.solve()
        coords = u.function_space.tabulate_dof_coordinates()
        np.testing.assert_allclose(u.vector, _exact(coords), atol=1e-8)

    def test_symmetric_matrix(self):
        a, L, u, bc = _make_poisson()
        A, _ = FormPair(a, L).assemble_system([bc], symmetric=True)
        assert abs(A - A.T).max() == pytest.approx(0.0, abs=1e-12)

    def test_symmetric_selects_cg(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters.update(linear_solver="iterative", symmetric=True)
        solver.solve()
        assert solver.backend.method == "cg"
        assert solver.backend.preconditioner == "jacobi"

    def test_symmetric_sets_lu_mode(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters["symmetric"] = True
        solver.solve()
        assert solver.backend.parameters.symmetric_operator is True
        # the solver's own tree is not modified
        assert solver.parameters.lu_solver.symmetric_operator is False

    def test_one_dimensional(self):
        a, L, u, bc = _make_1d()
        solve(a, L, u, bc)
        x = u.function_space.tabulate_dof_coordinates()[:, 0]
        np.testing.assert_allclose(u.vector, x * (1 - x) / 2, atol=1e-12)

    def test_overlapping_bcs_last_wins(self):
        a, L, u, _ = _make_1d()
        V = a.test_space
        bcs = [DirichletBC(V, 1.0), DirichletBC(V, 3.0, where=right())]
        solve(a, L, u, bcs)
        assert u.vector[0] == pytest.approx(1.0)
        assert u.vector[-1] == pytest.approx(3.0)

    def test_nonsymmetric_advection(self):
        mesh = Rectangle(Lx=1.0, Ly=1.0).generate_mesh(resolution=0.1)
        V = FunctionSpace(mesh)
        a = DiffusionForm(V) + AdvectionForm(V, (2.0, 1.0))
        L = SourceForm(V, 1.0)
        bc = DirichletBC(V, 0.0)

        u_lu = Function(V)
        solve(a, L, u_lu, bc)
        u_gm = Function(V)
        solve(
            a, L, u_gm, bc,
            solver_parameters={
                "linear_solver": "gmres",
                "preconditioner": "ilu",
                "krylov_solver": {"relative_tolerance": 1e-12},
            },
        )
        np.testing.assert_allclose(u_gm.vector, u_lu.vector, atol=1e-9)
        assert u_lu.vector.max() > 0.0

    def test_reaction_diffusion_with_natural_bc(self):
        """-u'' + u = 0, u(0) = 1, u'(1) = 0 approaches cosh(1 - x) / cosh(1)."""
        V = FunctionSpace(Interval(0.0, 1.0).generate_mesh(resolution=0.005))
        u = Function(V)
        solve(
            DiffusionForm(V) + MassForm(V),
            SourceForm(V, 0.0),
            u,
            DirichletBC(V, 1.0, where=left()),
        )
        x = V.tabulate_dof_coordinates()[:, 0]
        np.testing.assert_allclose(u.vector, np.cosh(1 - x) / np.cosh(1.0), atol=1e-4)

    def test_repeated_solve_reassembles(self):
        a, L, u, bc = _make_1d()
        f = Constant(1.0)
        L = SourceForm(a.test_space, f)
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.solve()
        first = u.vector.copy()
        f.assign(2.0)
        solver.solve()
        np.testing.assert_allclose(u.vector, 2.0 * first, atol=1e-12)
        assert solver.backend.num_factorizations == 2

    def test_reset_jacobian_false_reuses_factorization(self):
        a, _, u, bc = _make_poisson()
        f = Constant(-6.0)
        L = SourceForm(a.test_space, f)
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters["reset_jacobian"] = False
        solver.solve()
        backend = solver.backend

        f.assign(-2.0)
        solver.solve()
        assert solver.backend is backend
        assert backend.num_factorizations == 1

        fresh = Function(a.trial_space)
        LinearVariationalSolver(a, SourceForm(a.test_space, -2.0), fresh, bc).solve()
        np.testing.assert_allclose(u.vector, fresh.vector, atol=1e-12)

    def test_reset_jacobian_false_refactorizes_changed_matrix(self):
        V = FunctionSpace(Interval(0.0, 1.0).generate_mesh(resolution=0.1))
        k = Constant(1.0)
        u = Function(V)
        bc = DirichletBC(V, 0.0)
        solver = LinearVariationalSolver(DiffusionForm(V, k), SourceForm(V, 1.0), u, bc)
        solver.parameters["reset_jacobian"] = False
        solver.solve()
        backend = solver.backend

        k.assign(2.0)
        solver.solve()
        assert solver.backend is backend
        assert backend.num_factorizations == 2

        fresh = Function(V)
        LinearVariationalSolver(
            DiffusionForm(V, 2.0), SourceForm(V, 1.0), fresh, bc
        ).solve()
        np.testing.assert_allclose(u.vector, fresh.vector, atol=1e-12)
        x = V.tabulate_dof_coordinates()[:, 0]
        np.testing.assert_allclose(u.vector, x * (1 - x) / 4, atol=1e-12)

    def test_reset_jacobian_false_iterative(self):
        a, _, u, bc = _make_poisson()
        f = Constant(-6.0)
        solver = LinearVariationalSolver(a, SourceForm(a.test_space, f), u, bc)
        solver.parameters.update(
            linear_solver="iterative",
            reset_jacobian=False,
            krylov_solver={"relative_tolerance": 1e-12},
        )
        solver.solve()
        f.assign(-4.0)
        solver.solve()
        assert solver.backend.num_preconditioner_setups == 1

        fresh = Function(a.trial_space)
        LinearVariationalSolver(a, SourceForm(a.test_space, -4.0), fresh, bc).solve()
        np.testing.assert_allclose(u.vector, fresh.vector, atol=1e-8)

    def test_backend_rebuilt_on_configuration_change(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters["reset_jacobian"] = False
        solver.solve()
        lu = solver.backend
        solver.parameters["linear_solver"] = "iterative"
        solver.solve()
        assert isinstance(solver.backend, KrylovSolver)
        assert solver.backend is not lu

    def test_bogus_backend_leaves_u(self):
        a, L, u, bc = _make_poisson()
        u.vector[:] = 7.0
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters["linear_solver"] = "bogus"
        with pytest.raises(ConfigurationError):
            solver.solve()
        np.testing.assert_array_equal(u.vector, 7.0)
        assert solver.state is SolverState.FAILED

    def test_bogus_preconditioner(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters.update(linear_solver="cg", preconditioner="amg")
        with pytest.raises(ConfigurationError):
            solver.solve()
        np.testing.assert_array_equal(u.vector, 0.0)

    def test_singular_system(self):
        V = FunctionSpace(Interval(0.0, 1.0).generate_mesh(resolution=0.25))
        u = Function(V)
        u.vector[:] = 5.0
        solver = LinearVariationalSolver(MassForm(V, 0.0), SourceForm(V, 1.0), u)
        with pytest.raises(SingularSystem):
            solver.solve()
        np.testing.assert_array_equal(u.vector, 5.0)
        assert solver.state is SolverState.FAILED

    @pytest.mark.parametrize(
        "domain, resolution",
        [(Interval(0.0, 1.0), 0.1), (Rectangle(Lx=1.0, Ly=1.0), 0.125)],
    )
    def test_pure_neumann_is_singular(self, domain, resolution):
        """Without Dirichlet conditions the Laplacian has constants in its kernel."""
        V = FunctionSpace(domain.generate_mesh(resolution=resolution))
        u = Function(V)
        u.vector[:] = 5.0
        solver = LinearVariationalSolver(DiffusionForm(V), SourceForm(V, 1.0), u)
        with pytest.raises(SingularSystem):
            solver.solve()
        np.testing.assert_array_equal(u.vector, 5.0)
        assert solver.state is SolverState.FAILED

    def test_convergence_failure(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters.update(
            linear_solver="cg",
            preconditioner="none",
            krylov_solver={"maximum_iterations": 1, "relative_tolerance": 1e-14},
        )
        with pytest.raises(ConvergenceFailure):
            solver.solve()
        np.testing.assert_array_equal(u.vector, 0.0)

    def test_recovers_after_failure(self):
        a, L, u, bc = _make_poisson()
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters["linear_solver"] = "bogus"
        with pytest.raises(ConfigurationError):
            solver.solve()
        solver.parameters["linear_solver"] = "lu"
        solver.solve()
        assert solver.state is SolverState.CONVERGED

    def test_print_matrix_and_rhs(self, caplog):
        a, L, u, bc = _make_1d(4)
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters.update(print_matrix=True, print_rhs=True)
        with caplog.at_level(logging.INFO, logger="pyvarsolve"):
            solver.solve()
        assert "Assembled matrix" in caplog.text
        assert "Assembled right-hand side" in caplog.text

    def test_print_large_matrix_summary(self, caplog):
        a, L, u, bc = _make_poisson(resolution=0.0625)
        solver = LinearVariationalSolver(a, L, u, bc)
        solver.parameters.update(print_matrix=True, print_rhs=True)
        with caplog.at_level(logging.INFO, logger="pyvarsolve"):
            solver.solve()
        assert "sparse matrix" in caplog.text
        assert "vector of size 289" in caplog.text

    def test_solve_convenience_rejects_unknown_parameter(self):
        a, L, u, bc = _make_poisson()
        with pytest.raises(ConfigurationError):
            solve(a, L, u, bc, solver_parameters={"linear_solvr": "lu"})
