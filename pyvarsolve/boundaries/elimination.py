"""Elimination of essential boundary conditions from assembled systems.

Functions
---------
collect_dirichlet
    Merge the constraints of several conditions, last one wins.
apply_dirichlet
    Impose prescribed dof values on ``(A, b)``.
"""

from __future__ import annotations

from typing import Any, Iterable

import numpy as np
from scipy import sparse

from pyvarsolve.errors import InvalidArgument


def collect_dirichlet(bcs: Iterable[Any]) -> tuple[np.ndarray, np.ndarray]:
    """Merge ``(dofs, values)`` of *bcs* in sequence order.

    A dof constrained by several conditions takes the value of the last
    condition in the sequence.

    Returns:
        Tuple ``(dofs, values)`` with unique dofs.
    """
    constrained: dict[int, float] = {}
    for bc in bcs:
        dofs, values = bc.dof_values()
        constrained.update(zip(np.asarray(dofs).tolist(), np.asarray(values).tolist()))

    dofs = np.fromiter(constrained.keys(), dtype=int, count=len(constrained))
    values = np.fromiter(constrained.values(), dtype=float, count=len(constrained))
    return dofs, values


def apply_dirichlet(
    A: sparse.spmatrix,
    b: np.ndarray | None,
    dofs: np.ndarray,
    values: np.ndarray,
    symmetric: bool = False,
) -> tuple[sparse.csr_matrix, np.ndarray | None]:
    """Apply Dirichlet values via row (and optionally column) elimination.

    Constrained rows become identity rows and ``b[dof] = value``.  With
    *symmetric*, the constrained columns are also zeroed after their
    contribution ``A[:, dofs] @ values`` has been moved to *b*, so a
    symmetric *A* stays symmetric.

    Args:
        A: Square system matrix.
        b: Right-hand side, or ``None``.
        dofs: Constrained dof indices.  Repeated dofs keep the last value.
        values: Prescribed values, same length as *dofs*.
        symmetric: Use symmetric (row and column) elimination.

    Returns:
        Tuple ``(A_bc, b_bc)``; the inputs are not modified.
    """
    A_bc = sparse.csr_matrix(A, dtype=float, copy=True)
    n = A_bc.shape[0]
    if A_bc.shape != (n, n):
        raise InvalidArgument(f"System matrix must be square, got shape {A_bc.shape}.")

    b_bc = None if b is None else np.array(b, dtype=float)
    if b_bc is not None and b_bc.shape != (n,):
        raise InvalidArgument(f"Right-hand side must have shape ({n},), got {b_bc.shape}.")

    dofs = np.asarray(dofs, dtype=int).ravel()
    values = np.asarray(values, dtype=float).ravel()
    if dofs.shape != values.shape:
        raise InvalidArgument(
            f"Got {dofs.size} constrained dofs but {values.size} values."
        )
    if dofs.size == 0:
        return A_bc, b_bc

    # last occurrence of each dof wins
    _, last = np.unique(dofs[::-1], return_index=True)
    keep = dofs.size - 1 - last
    dofs, values = dofs[keep], values[keep]

    free = np.ones(n)
    free[dofs] = 0.0
    F = sparse.diags(free)
    I_fixed = sparse.diags(1.0 - free)

    if symmetric:
        if b_bc is not None:
            g = np.zeros(n)
            g[dofs] = values
            b_bc -= A_bc @ g
        A_bc = F @ A_bc @ F
    else:
        A_bc = F @ A_bc

    A_bc = (A_bc + I_fixed).tocsr()
    A_bc.eliminate_zeros()
    if b_bc is not None:
        b_bc[dofs] = values
    return A_bc, b_bc
