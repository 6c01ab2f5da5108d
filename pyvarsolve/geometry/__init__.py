"""Geometry: domain definition and simplex meshing."""

from pyvarsolve.geometry.primitives import Geometry, Interval, Rectangle
from pyvarsolve.geometry.mesh import Mesh, import_mesh

__all__ = [
    "Geometry",
    "Interval",
    "Rectangle",
    "Mesh",
    "import_mesh",
]
