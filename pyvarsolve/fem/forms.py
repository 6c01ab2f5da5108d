"""Weak forms on P1 spaces.

Every form knows its rank and the function space of each argument,
ordered ``(test_space, trial_space)`` for bilinear forms.  Forms never
hold assembled data: :meth:`Form.assemble` re-reads the current value of
every coefficient, so changing a :class:`~pyvarsolve.fem.function.Constant`
or a coefficient :class:`~pyvarsolve.fem.function.Function` is seen by
the next assembly.

Classes
-------
Form
    Abstract base.
FormSum
    Sum of forms of equal rank on the same spaces.
DiffusionForm
    ``a(u, v) = ∫ k ∇u·∇v dx``.
MassForm
    ``a(u, v) = ∫ c u v dx``.
AdvectionForm
    ``a(u, v) = ∫ (w·∇u) v dx``.
SourceForm
    ``L(v) = ∫ f v dx``.
BoundarySourceForm
    ``L(v) = ∫_Γ g v ds`` (natural / Neumann data).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from numpy.typing import ArrayLike
from scipy import sparse

from pyvarsolve.errors import InvalidArgument
from pyvarsolve.fem.assembly import (
    assemble_cell_matrices,
    assemble_cell_vectors,
    local_mass,
)
from pyvarsolve.fem.function import Coefficient, nodal_values
from pyvarsolve.fem.functionspace import FunctionSpace


class Form(ABC):
    """Abstract weak form.

    Args:
        *function_spaces: One space per argument; ``(V,)`` for a linear
            form, ``(test_space, trial_space)`` for a bilinear form.
    """

    def __init__(self, *function_spaces: FunctionSpace) -> None:
        for V in function_spaces:
            if not isinstance(V, FunctionSpace):
                raise InvalidArgument(
                    f"{type(self).__name__} expects FunctionSpace arguments, "
                    f"got {V!r}."
                )
        self._function_spaces = tuple(function_spaces)

    @property
    def function_spaces(self) -> tuple[FunctionSpace, ...]:
        """Argument spaces, test space first."""
        return self._function_spaces

    @property
    def rank(self) -> int:
        """Number of arguments: 1 (linear) or 2 (bilinear)."""
        return len(self._function_spaces)

    @property
    def test_space(self) -> FunctionSpace:
        return self._function_spaces[0]

    @property
    def trial_space(self) -> FunctionSpace | None:
        """Trial space of a bilinear form, ``None`` for a linear form."""
        return self._function_spaces[1] if self.rank == 2 else None

    @abstractmethod
    def assemble(self) -> sparse.csr_matrix | np.ndarray:
        """Assemble into a sparse matrix (rank 2) or a vector (rank 1)."""

    def __add__(self, other: "Form") -> "FormSum":
        return FormSum(self, other)

    def __radd__(self, other: Any) -> "Form":
        # supports sum([...])
        if isinstance(other, (int, float)) and other == 0:
            return self
        return NotImplemented

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rank={self.rank})"


class FormSum(Form):
    """Sum of forms of equal rank on compatible spaces."""

    def __init__(self, *terms: Form) -> None:
        if not terms:
            raise InvalidArgument("FormSum needs at least one term.")
        flat: list[Form] = []
        for term in terms:
            if not isinstance(term, Form):
                raise InvalidArgument(f"Cannot add {term!r} to a form.")
            flat.extend(term.terms if isinstance(term, FormSum) else [term])

        first = flat[0]
        for term in flat[1:]:
            if term.rank != first.rank:
                raise InvalidArgument(
                    f"Cannot add forms of rank {first.rank} and {term.rank}."
                )
            for V, W in zip(first.function_spaces, term.function_spaces):
                if not V.is_compatible(W):
                    raise InvalidArgument(
                        "Cannot add forms defined on different function spaces."
                    )

        super().__init__(*first.function_spaces)
        self.terms = tuple(flat)

    def assemble(self) -> sparse.csr_matrix | np.ndarray:
        total = self.terms[0].assemble()
        for term in self.terms[1:]:
            total = total + term.assemble()
        return total

    def __repr__(self) -> str:
        return " + ".join(repr(t) for t in self.terms)


def _cell_values(value: Coefficient, space: FunctionSpace) -> np.ndarray:
    """Cell averages of the P1 interpolant of *value*."""
    return nodal_values(value, space)[space.mesh.cells].mean(axis=1)


# ======================================================================
# Bilinear forms
# ======================================================================


class DiffusionForm(Form):
    """``a(u, v) = ∫ k ∇u·∇v dx``.

    Args:
        V: Function space (test and trial).
        coefficient: Diffusivity *k*, averaged per cell.
    """

    def __init__(self, V: FunctionSpace, coefficient: Coefficient = 1.0) -> None:
        super().__init__(V, V)
        self.coefficient = coefficient

    def assemble(self) -> sparse.csr_matrix:
        k = _cell_values(self.coefficient, self.test_space)
        return assemble_cell_matrices(
            self.test_space,
            lambda ic, measure, grads: k[ic] * measure * (grads @ grads.T),
        )


class MassForm(Form):
    """``a(u, v) = ∫ c u v dx`` with the exact (consistent) P1 mass matrix.

    Args:
        V: Function space (test and trial).
        coefficient: Reaction / capacity coefficient *c*, averaged per cell.
    """

    def __init__(self, V: FunctionSpace, coefficient: Coefficient = 1.0) -> None:
        super().__init__(V, V)
        self.coefficient = coefficient

    def assemble(self) -> sparse.csr_matrix:
        c = _cell_values(self.coefficient, self.test_space)
        n_loc = self.test_space.mesh.cells.shape[1]
        return assemble_cell_matrices(
            self.test_space,
            lambda ic, measure, grads: c[ic] * local_mass(measure, n_loc),
        )


class AdvectionForm(Form):
    """``a(u, v) = ∫ (w·∇u) v dx``; non-symmetric.

    Args:
        V: Function space (test and trial).
        velocity: Constant vector *w* of length ``gdim``, or a callable
            ``w(coords) -> (N, gdim)`` evaluated at cell centres.
    """

    def __init__(self, V: FunctionSpace, velocity: ArrayLike | Any) -> None:
        super().__init__(V, V)
        self.velocity = velocity

    def _cell_velocity(self) -> np.ndarray:
        mesh = self.test_space.mesh
        if callable(self.velocity):
            w = np.asarray(self.velocity(mesh.cell_centers()), dtype=float)
        else:
            w = np.asarray(self.velocity, dtype=float)
        w = np.broadcast_to(w, (mesh.n_cells, mesh.dim))
        return w

    def assemble(self) -> sparse.csr_matrix:
        w = self._cell_velocity()
        n_loc = self.test_space.mesh.cells.shape[1]

        def kernel(ic: int, measure: float, grads: np.ndarray) -> np.ndarray:
            # ∫ N_a dx = measure / n_loc for every vertex a
            return np.outer(np.full(n_loc, measure / n_loc), grads @ w[ic])

        return assemble_cell_matrices(self.test_space, kernel)


# ======================================================================
# Linear forms
# ======================================================================


class SourceForm(Form):
    """``L(v) = ∫ f v dx``, integrating the P1 interpolant of *f* exactly.

    Args:
        V: Test space.
        f: Source term.
    """

    def __init__(self, V: FunctionSpace, f: Coefficient = 1.0) -> None:
        super().__init__(V)
        self.f = f

    def assemble(self) -> np.ndarray:
        V = self.test_space
        f_nodes = nodal_values(self.f, V)
        cells = V.mesh.cells
        n_loc = cells.shape[1]
        return assemble_cell_vectors(
            V,
            lambda ic, measure, grads: local_mass(measure, n_loc) @ f_nodes[cells[ic]],
        )


class BoundarySourceForm(Form):
    """``L(v) = ∫_Γ g v ds`` over boundary facets selected by *where*.

    A facet is included when all of its nodes are selected by the
    locator, which is evaluated on the full set of boundary node
    coordinates.

    Args:
        V: Test space.
        g: Boundary flux density.
        where: Boundary locator, ``None`` for the whole boundary.
    """

    def __init__(
        self,
        V: FunctionSpace,
        g: Coefficient = 1.0,
        where: Any = None,
    ) -> None:
        super().__init__(V)
        self.g = g
        self.where = where

    def assemble(self) -> np.ndarray:
        V = self.test_space
        mesh = V.mesh
        out = np.zeros(V.dim)
        g_nodes = nodal_values(self.g, V)

        boundary_idx = mesh.boundary_nodes()
        if self.where is None:
            selected = np.ones(mesh.n_nodes, dtype=bool)
        else:
            selected = np.zeros(mesh.n_nodes, dtype=bool)
            selected[boundary_idx] = self.where(mesh.nodes[boundary_idx])

        for facet in mesh.boundary_facets():
            if not selected[facet].all():
                continue
            if len(facet) == 1:
                measure = 1.0
            else:
                measure = float(np.linalg.norm(mesh.nodes[facet[1]] - mesh.nodes[facet[0]]))
            np.add.at(out, facet, local_mass(measure, len(facet)) @ g_nodes[facet])

        return out
