"""Polygon soup → triangle mesh.

The extraction kernel returns polygons wound clockwise seen from outside.
Every output triangle is therefore emitted in reverse order: ``(a, b, c)``
becomes ``(c, b, a)``, and a quad ``(a, b, c, d)`` becomes ``(c, b, a)`` and
``(d, c, a)``.  This flip is fixed; if the kernel's convention ever changes,
``tests/test_reconstruct.py::TestOrientationCoupling`` fails.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import numpy.typing as npt

from .mesh import Mesh

_Array = npt.NDArray[np.floating]
_IndexArray = npt.NDArray[np.integer]


def reconstruct_mesh(
    vertices: npt.ArrayLike,
    triangles: npt.ArrayLike,
    quads: npt.ArrayLike,
    out: Optional[Mesh] = None,
) -> Mesh:
    """Fill *out* (or a new mesh) from an extracted soup.

    The result has exactly ``len(vertices)`` vertices, in the given order,
    and ``len(triangles) + 2 * len(quads)`` faces: the reversed triangles
    first, then two triangles per quad.  *out* is cleared before anything
    else happens, so it is never left half-populated.
    """
    if out is None:
        out = Mesh()
    out.clear()

    verts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    tris = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    q = np.asarray(quads, dtype=np.int64).reshape(-1, 4)

    quad_tris = np.empty((2 * len(q), 3), dtype=np.int64)
    quad_tris[0::2] = q[:, [2, 1, 0]]
    quad_tris[1::2] = q[:, [3, 2, 0]]
    faces = np.concatenate([tris[:, ::-1], quad_tris])

    out.vertices = verts.copy()
    out.faces = faces
    return out


class MeshReconstructor:
    """Stateless wrapper around :func:`reconstruct_mesh` for pipeline use."""

    def rebuild(self, soup, out: Optional[Mesh] = None) -> Mesh:
        vertices, triangles, quads = soup
        return reconstruct_mesh(vertices, triangles, quads, out)
