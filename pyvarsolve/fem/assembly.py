"""Global assembly of P1 forms.

Element contributions are computed cell by cell and accumulated into
SciPy sparse matrices (duplicates summed by the COO → CSR conversion)
or dense NumPy vectors.

Functions
---------
cell_geometry
    Measure and shape-function gradients of a simplex.
local_mass
    Exact P1 mass matrix of a simplex of given measure.
assemble_cell_matrices, assemble_cell_vectors
    Loop over cells and accumulate local contributions.
assemble
    Assemble a single form.
assemble_system
    Assemble ``(A, b)`` with Dirichlet conditions applied.
"""

from __future__ import annotations

from math import factorial
from typing import Any, Callable, Iterable

import numpy as np
from scipy import sparse

from pyvarsolve.errors import InvalidArgument

_DEGENERATE = 1e-30


def cell_geometry(coords: np.ndarray) -> tuple[float, np.ndarray]:
    """Measure and P1 gradients of one simplex.

    Args:
        coords: Vertex coordinates, shape ``(d + 1, d)``.

    Returns:
        Tuple ``(measure, grads)`` where ``grads[a]`` is the constant
        gradient of the hat function of vertex *a*, shape ``(d + 1, d)``.
        The gradients are zero for a degenerate cell.
    """
    d = coords.shape[1]
    J = (coords[1:] - coords[0]).T
    det = float(np.linalg.det(J))
    measure = abs(det) / factorial(d)
    if measure < _DEGENERATE:
        return 0.0, np.zeros_like(coords)

    ref_grads = np.vstack([-np.ones(d), np.eye(d)])
    grads = ref_grads @ np.linalg.inv(J)
    return measure, grads


def local_mass(measure: float, n_vertices: int) -> np.ndarray:
    """Exact P1 mass matrix of a simplex with *n_vertices* vertices.

    ``M_ab = measure * (1 + delta_ab) / (n (n + 1))`` with ``n`` the
    number of vertices.
    """
    n = n_vertices
    return measure * (np.ones((n, n)) + np.eye(n)) / (n * (n + 1))


def assemble_cell_matrices(
    space: Any,
    kernel: Callable[[int, float, np.ndarray], np.ndarray],
) -> sparse.csr_matrix:
    """Accumulate local matrices ``kernel(ic, measure, grads)`` over cells.

    Args:
        space: Function space providing ``mesh`` and ``dim``.
        kernel: Returns the ``(d + 1, d + 1)`` local matrix of cell *ic*.

    Returns:
        Sparse matrix of shape ``(dim, dim)``.
    """
    mesh = space.mesh
    nodes = mesh.nodes
    n_loc = mesh.cells.shape[1]

    rows, cols, vals = [], [], []

    for ic, cell in enumerate(mesh.cells):
        measure, grads = cell_geometry(nodes[cell])
        if measure == 0.0:
            continue
        local = kernel(ic, measure, grads)
        rows.append(np.repeat(cell, n_loc))
        cols.append(np.tile(cell, n_loc))
        vals.append(np.ravel(local))

    if not vals:
        return sparse.csr_matrix((space.dim, space.dim))

    return sparse.csr_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(space.dim, space.dim),
    )


def assemble_cell_vectors(
    space: Any,
    kernel: Callable[[int, float, np.ndarray], np.ndarray],
) -> np.ndarray:
    """Accumulate local vectors ``kernel(ic, measure, grads)`` over cells."""
    mesh = space.mesh
    nodes = mesh.nodes
    out = np.zeros(space.dim)

    for ic, cell in enumerate(mesh.cells):
        measure, grads = cell_geometry(nodes[cell])
        if measure == 0.0:
            continue
        np.add.at(out, cell, kernel(ic, measure, grads))

    return out


def assemble(form: Any) -> sparse.csr_matrix | np.ndarray:
    """Assemble a rank-2 form into a matrix or a rank-1 form into a vector."""
    if getattr(form, "rank", None) not in (1, 2):
        raise InvalidArgument(f"Cannot assemble {form!r}: not a rank-1 or rank-2 form.")
    return form.assemble()


def assemble_system(
    a: Any,
    L: Any,
    bcs: Iterable[Any] | None = None,
    symmetric: bool = False,
) -> tuple[sparse.csr_matrix, np.ndarray]:
    """Assemble the linear system ``A x = b`` with Dirichlet conditions.

    Conditions are eliminated in sequence order; a dof constrained more
    than once keeps the last value.

    Args:
        a: Bilinear form.
        L: Linear form.
        bcs: Essential boundary conditions.
        symmetric: Lift constrained columns into *b* so that *A* keeps
            the symmetry of the unconstrained operator.

    Returns:
        Tuple ``(A, b)``.
    """
    from pyvarsolve.boundaries.elimination import apply_dirichlet, collect_dirichlet

    A = assemble(a)
    b = np.array(assemble(L), dtype=float)
    if A.shape[0] != b.shape[0]:
        raise InvalidArgument(
            f"Matrix of size {A.shape} does not match vector of size {b.shape}."
        )
    dofs, values = collect_dirichlet(bcs or ())
    return apply_dirichlet(A, b, dofs, values, symmetric=symmetric)
