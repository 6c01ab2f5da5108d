"""Finite elements: P1 spaces, functions, weak forms and assembly."""

from pyvarsolve.fem.functionspace import FunctionSpace
from pyvarsolve.fem.function import Constant, Function, nodal_values
from pyvarsolve.fem.forms import (
    Form,
    FormSum,
    DiffusionForm,
    MassForm,
    AdvectionForm,
    SourceForm,
    BoundarySourceForm,
)
from pyvarsolve.fem.assembly import assemble, assemble_system
from pyvarsolve.fem.problem import FormPair

__all__ = [
    "FunctionSpace",
    "Constant",
    "Function",
    "nodal_values",
    "Form",
    "FormSum",
    "DiffusionForm",
    "MassForm",
    "AdvectionForm",
    "SourceForm",
    "BoundarySourceForm",
    "assemble",
    "assemble_system",
    "FormPair",
]
