"""Boundaries: essential conditions, locators and elimination."""

from pyvarsolve.boundaries.base import (
    BoundaryCondition,
    BoundaryConditions,
    DirichletBC,
)
from pyvarsolve.boundaries.elimination import apply_dirichlet, collect_dirichlet

__all__ = [
    "BoundaryCondition",
    "BoundaryConditions",
    "DirichletBC",
    "apply_dirichlet",
    "collect_dirichlet",
]
