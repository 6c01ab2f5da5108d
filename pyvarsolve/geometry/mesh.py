"""Simplex meshes.

Classes
-------
Mesh
    Container for node coordinates and simplex connectivity (2-node
    intervals in 1-D, 3-node triangles in 2-D), with structured mesh
    generation and boundary detection.

Functions
---------
import_mesh
    Read a mesh file through *meshio*.
"""

from __future__ import annotations

from itertools import combinations
from typing import Any

import numpy as np

_CELL_TYPES = {1: "line", 2: "triangle"}


class Mesh:
    """Simplex mesh.

    Attributes:
        nodes: Node coordinates, shape ``(n_nodes, dim)``.
        cells: Cell connectivity, shape ``(n_cells, dim + 1)``.
        dim: Spatial dimension.
    """

    def __init__(self, nodes: np.ndarray, cells: np.ndarray) -> None:
        nodes = np.asarray(nodes, dtype=float)
        if nodes.ndim == 1:
            nodes = nodes[:, None]
        self.nodes = nodes
        self.cells = np.asarray(cells, dtype=int)
        self.dim = self.nodes.shape[1]
        if self.cells.ndim != 2 or self.cells.shape[1] != self.dim + 1:
            raise NotImplementedError(
                f"Only simplex cells are supported: a {self.dim}-D mesh "
                f"needs {self.dim + 1} nodes per cell, got shape "
                f"{self.cells.shape}."
            )
        self._boundary_facets: np.ndarray | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def n_nodes(self) -> int:
        """Number of nodes."""
        return len(self.nodes)

    @property
    def n_cells(self) -> int:
        """Number of cells."""
        return len(self.cells)

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    def cell_centers(self) -> np.ndarray:
        """Compute centroids of all cells.

        Returns:
            Array of shape ``(n_cells, dim)``.
        """
        return self.nodes[self.cells].mean(axis=1)

    def cell_measures(self) -> np.ndarray:
        """Length (1-D) or area (2-D) of every cell."""
        verts = self.nodes[self.cells]
        edges = verts[:, 1:, :] - verts[:, :1, :]
        if self.dim == 1:
            return np.abs(edges[:, 0, 0])
        return 0.5 * np.abs(np.linalg.det(edges))

    def boundary_facets(self) -> np.ndarray:
        """Facets that belong to exactly one cell.

        A facet is a point in 1-D and an edge in 2-D.

        Returns:
            Integer array of shape ``(n_facets, dim)``, node indices
            sorted within each facet.
        """
        if self._boundary_facets is None:
            counts: dict[tuple[int, ...], int] = {}
            for cell in self.cells:
                for facet in combinations(sorted(cell), self.dim):
                    counts[facet] = counts.get(facet, 0) + 1
            facets = sorted(f for f, n in counts.items() if n == 1)
            self._boundary_facets = np.array(facets, dtype=int).reshape(-1, self.dim)
        return self._boundary_facets

    def boundary_nodes(self) -> np.ndarray:
        """Return indices of nodes on the boundary.

        Returns:
            Sorted 1-D integer array of boundary node indices.
        """
        return np.unique(self.boundary_facets())

    def boundary_node_coords(self) -> np.ndarray:
        """Coordinates of boundary nodes, shape ``(n_boundary, dim)``."""
        return self.nodes[self.boundary_nodes()]

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    @classmethod
    def from_geometry(cls, geometry: Any, resolution: float = 1.0) -> "Mesh":
        """Build a structured mesh from a geometry primitive.

        Args:
            geometry: :class:`~pyvarsolve.geometry.primitives.Interval`
                or :class:`~pyvarsolve.geometry.primitives.Rectangle`.
            resolution: Target element size.

        Returns:
            Mesh instance.
        """
        from pyvarsolve.geometry.primitives import Interval, Rectangle

        if isinstance(geometry, Interval):
            n = max(1, int(np.ceil(geometry.length / resolution)))
            return cls.interval(n, geometry.x0, geometry.x1)
        if isinstance(geometry, Rectangle):
            nx = max(1, int(np.ceil(geometry.Lx / resolution)))
            ny = max(1, int(np.ceil(geometry.Ly / resolution)))
            return cls.rectangle(
                nx, ny,
                (geometry.x_min, geometry.y_min),
                (geometry.x_max, geometry.y_max),
            )

        raise NotImplementedError(
            f"Auto-meshing not yet supported for {type(geometry).__name__}.  "
            "Use import_mesh() to load a mesh from file."
        )

    @classmethod
    def interval(cls, n: int, x0: float = 0.0, x1: float = 1.0) -> "Mesh":
        """Uniform mesh of *n* cells on ``[x0, x1]``."""
        nodes = np.linspace(x0, x1, n + 1)[:, None]
        cells = np.column_stack([np.arange(n), np.arange(1, n + 1)])
        return cls(nodes=nodes, cells=cells)

    @classmethod
    def rectangle(
        cls,
        nx: int,
        ny: int,
        p0: tuple[float, float] = (0.0, 0.0),
        p1: tuple[float, float] = (1.0, 1.0),
    ) -> "Mesh":
        """Structured triangular mesh of ``nx × ny`` quads, two triangles each."""
        x = np.linspace(p0[0], p1[0], nx + 1)
        y = np.linspace(p0[1], p1[1], ny + 1)
        xx, yy = np.meshgrid(x, y)
        nodes = np.column_stack([xx.ravel(), yy.ravel()])

        cells = []
        for j in range(ny):
            for i in range(nx):
                n0 = j * (nx + 1) + i
                n1 = n0 + 1
                n2 = n0 + nx + 1
                n3 = n2 + 1
                cells.append([n0, n1, n2])
                cells.append([n1, n3, n2])

        return cls(nodes=nodes, cells=np.array(cells, dtype=int))

    # ------------------------------------------------------------------
    # repr
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"Mesh(n_nodes={self.n_nodes}, n_cells={self.n_cells}, "
            f"dim={self.dim})"
        )


def import_mesh(filename: str) -> Mesh:
    """Import a simplex mesh from an external file using *meshio*.

    Supported formats include ``.msh`` (gmsh), ``.vtk``, ``.xdmf``, etc.
    The spatial dimension is taken from the highest-dimensional simplex
    block in the file; unused coordinate columns are dropped.

    Args:
        filename: Path to the mesh file.

    Returns:
        Mesh instance.

    Raises:
        ImportError: If *meshio* is not installed.
    """
    try:
        import meshio
    except ImportError as exc:
        raise ImportError(
            "meshio is required for mesh import.  "
            "Install it with: pip install meshio"
        ) from exc

    m = meshio.read(filename)
    for dim in (2, 1):
        blocks = [c.data for c in m.cells if c.type == _CELL_TYPES[dim]]
        if blocks:
            return Mesh(nodes=m.points[:, :dim], cells=np.vstack(blocks))

    raise NotImplementedError(
        f"{filename}: no line or triangle cells found."
    )
