"""Indexed triangle mesh shared by every stage of the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
import numpy.typing as npt
import trimesh

_Array = npt.NDArray[np.floating]
_IndexArray = npt.NDArray[np.integer]


def _empty_vertices() -> _Array:
    return np.zeros((0, 3), dtype=np.float64)


def _empty_faces() -> _IndexArray:
    return np.zeros((0, 3), dtype=np.int64)


@dataclass
class Mesh:
    """Vertices ``(V, 3)`` and triangular faces ``(F, 3)`` of vertex indices.

    The caller owns a ``Mesh``.  Components that read one during a
    conversion (the grid adapter, the winding-number oracle) borrow it: the
    mesh must outlive the conversion and must not be modified while it runs.
    """

    vertices: _Array = field(default_factory=_empty_vertices)
    faces: _IndexArray = field(default_factory=_empty_faces)

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    def is_empty(self) -> bool:
        return self.n_vertices == 0 or self.n_faces == 0

    def clear(self) -> None:
        """Drop all vertices and faces in place."""
        self.vertices = _empty_vertices()
        self.faces = _empty_faces()

    def copy(self) -> "Mesh":
        return Mesh(self.vertices.copy(), self.faces.copy())

    def triangles(self) -> _Array:
        """Return the ``(F, 3, 3)`` triangle soup of the faces."""
        return self.vertices[self.faces]

    def bounds(self) -> Tuple[_Array, _Array]:
        """``(lo, hi)`` corners of the axis-aligned bounding box."""
        if self.n_vertices == 0:
            return np.zeros(3), np.zeros(3)
        return self.vertices.min(axis=0), self.vertices.max(axis=0)

    def diagonal(self) -> float:
        """Length of the bounding-box diagonal."""
        lo, hi = self.bounds()
        return float(np.linalg.norm(hi - lo))

    def signed_volume(self) -> float:
        """Enclosed volume by the divergence theorem.

        Positive for a closed mesh whose faces are wound counter-clockwise
        seen from outside, negative when every face is flipped.
        """
        if self.n_faces == 0:
            return 0.0
        tri = self.triangles()
        return float(np.einsum("fi,fi->", tri[:, 0], np.cross(tri[:, 1], tri[:, 2])) / 6.0)

    def remove_unreferenced_vertices(self) -> "Mesh":
        """Return a compacted copy without vertices no face refers to."""
        used = np.zeros(self.n_vertices, dtype=bool)
        used[self.faces.ravel()] = True
        remap = np.full(self.n_vertices, -1, dtype=np.int64)
        remap[used] = np.arange(int(used.sum()))
        return Mesh(self.vertices[used], remap[self.faces])

    def to_trimesh(self) -> trimesh.Trimesh:
        """View as a :class:`trimesh.Trimesh` without merging or reordering."""
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False)

    def sample_surface(self, count: int, seed: Optional[int] = None) -> _Array:
        """Draw *count* points uniformly over the surface area."""
        points, _ = trimesh.sample.sample_surface(self.to_trimesh(), count, seed=seed)
        return np.asarray(points, dtype=np.float64)

    @classmethod
    def from_triangles(cls, triangles: _Array, decimals: Optional[int] = None) -> "Mesh":
        """Build an indexed mesh from an ``(F, 3, 3)`` soup by welding equal corners.

        Corners are merged when their coordinates are exactly equal, or equal
        after rounding to *decimals* places when given.
        """
        corners = np.asarray(triangles, dtype=np.float64).reshape(-1, 3)
        if len(corners) == 0:
            return cls()
        keys = corners if decimals is None else np.round(corners, decimals)
        _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
        return cls(corners[first], inverse.reshape(-1, 3))
