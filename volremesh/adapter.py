"""Polygon stream of a mesh, seen in a voxel grid's index space.

The volume kernel does not read meshes directly.  It consumes any object
implementing :class:`PolygonSource` and asks it for polygon corners one at a
time (or all at once via ``index_space_polygons``), already mapped from world
space to index space.  :class:`MeshGridAdapter` is the implementation for
:class:`~volremesh.mesh.Mesh`; it copies nothing and caches nothing.
"""

from __future__ import annotations

from typing import Optional, Protocol

import numpy as np
import numpy.typing as npt

from .errors import PreconditionError
from .mesh import Mesh
from .transform import LinearTransform

_Array = npt.NDArray[np.floating]


class PolygonSource(Protocol):
    """What the volume kernel needs to know about a polygon mesh."""

    def polygon_count(self) -> int: ...

    def point_count(self) -> int: ...

    def vertex_count(self, n: int) -> int: ...

    def index_space_point(self, n: int, v: int) -> _Array: ...


class MeshGridAdapter:
    """Read-only view of a :class:`Mesh` through a :class:`LinearTransform`.

    Both the mesh and the transform are borrowed: the mesh must outlive the
    conversion that uses the adapter and must not be modified meanwhile.
    Queries may come in any order and from several threads.
    """

    def __init__(
        self,
        mesh: Optional[Mesh] = None,
        transform: Optional[LinearTransform] = None,
    ) -> None:
        self._mesh = mesh
        self._transform = transform

    @property
    def mesh(self) -> Optional[Mesh]:
        return self._mesh

    @property
    def transform(self) -> Optional[LinearTransform]:
        return self._transform

    def bind(self, mesh: Mesh, transform: LinearTransform) -> "MeshGridAdapter":
        """Return an adapter bound to *mesh* and *transform*."""
        return MeshGridAdapter(mesh, transform)

    def _bound(self) -> Mesh:
        if self._mesh is None or self._transform is None:
            raise PreconditionError("MeshGridAdapter queried before a mesh and transform were bound")
        return self._mesh

    def polygon_count(self) -> int:
        return self._bound().n_faces

    def point_count(self) -> int:
        return self._bound().n_vertices

    def vertex_count(self, n: int) -> int:
        self._bound()
        return 3

    def index_space_point(self, n: int, v: int) -> _Array:
        """Corner *v* of polygon *n* in continuous index coordinates."""
        mesh = self._bound()
        return self._transform.world_to_index(mesh.vertices[mesh.faces[n, v]])

    def index_space_polygons(self) -> _Array:
        """All polygons as an ``(F, 3, 3)`` index-space array, built on demand."""
        mesh = self._bound()
        return self._transform.world_to_index(mesh.triangles())
