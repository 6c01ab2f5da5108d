"""Pairing of the bilinear and linear forms of a linear problem."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np
from scipy import sparse

from pyvarsolve.errors import InvalidArgument
from pyvarsolve.fem.assembly import assemble_system
from pyvarsolve.fem.forms import Form
from pyvarsolve.fem.function import Function


@dataclass(frozen=True)
class FormPair:
    """Bilinear form *a* and linear form *L* of ``a(u, v) = L(v)``.

    The pair is immutable and may be shared between solvers.
    """

    a: Form
    L: Form

    def check_forms(self, u: Function | None = None) -> None:
        """Check ranks and function spaces.

        Args:
            u: Optional unknown whose space must match the trial space
                of *a*.

        Raises:
            InvalidArgument: If *a* is not bilinear, *L* is not linear,
                their test spaces differ, or *u* lives on a space other
                than the trial space of *a*.
        """
        if not isinstance(self.a, Form):
            raise InvalidArgument(f"Left-hand side must be a Form, got {self.a!r}.")
        if not isinstance(self.L, Form):
            raise InvalidArgument(f"Right-hand side must be a Form, got {self.L!r}.")

        if self.a.rank != 2:
            raise InvalidArgument(
                f"Expecting the left-hand side to be a bilinear form "
                f"(not rank {self.a.rank})."
            )
        if self.L.rank != 1:
            raise InvalidArgument(
                f"Expecting the right-hand side to be a linear form "
                f"(not rank {self.L.rank})."
            )
        if not self.a.test_space.is_compatible(self.L.test_space):
            raise InvalidArgument(
                "Bilinear and linear forms do not share the same test space."
            )

        if u is None:
            return
        if not isinstance(u, Function):
            raise InvalidArgument(f"Unknown must be a Function, got {u!r}.")
        if not self.a.trial_space.is_compatible(u.function_space):
            raise InvalidArgument(
                f"Function {u.name!r} is not in the trial space of the "
                "bilinear form."
            )

    def assemble_system(
        self,
        bcs: Iterable[Any] | None = None,
        symmetric: bool = False,
    ) -> tuple[sparse.csr_matrix, np.ndarray]:
        """Assemble ``(A, b)`` with *bcs* eliminated; see
        :func:`~pyvarsolve.fem.assembly.assemble_system`."""
        return assemble_system(self.a, self.L, bcs, symmetric=symmetric)
