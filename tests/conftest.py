"""Shared meshes for the volremesh tests."""
from __future__ import annotations

import numpy as np
import pytest

from volremesh import Mesh, reset_default_num_threads


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_box_mesh(hx: float = 0.5, hy: float = 0.5, hz: float = 0.5) -> Mesh:
    """12-triangle watertight box [-hx,hx]×[-hy,hy]×[-hz,hz], outward winding."""
    verts = np.array([
        [-hx, -hy, -hz], [ hx, -hy, -hz], [ hx,  hy, -hz], [-hx,  hy, -hz],
        [-hx, -hy,  hz], [ hx, -hy,  hz], [ hx,  hy,  hz], [-hx,  hy,  hz],
    ], dtype=np.float64)
    faces = np.array([
        (0, 2, 1), (0, 3, 2),   # -Z
        (4, 5, 6), (4, 6, 7),   # +Z
        (0, 4, 7), (0, 7, 3),   # -X
        (1, 2, 6), (1, 6, 5),   # +X
        (0, 1, 5), (0, 5, 4),   # -Y
        (3, 7, 6), (3, 6, 2),   # +Y
    ], dtype=np.int64)
    return Mesh(verts, faces)


def make_icosphere(subdivisions: int = 2, radius: float = 1.0) -> Mesh:
    """Geodesic sphere around the origin with outward-facing triangles."""
    t = (1.0 + 5.0 ** 0.5) / 2.0
    verts = [
        [-1, t, 0], [1, t, 0], [-1, -t, 0], [1, -t, 0],
        [0, -1, t], [0, 1, t], [0, -1, -t], [0, 1, -t],
        [t, 0, -1], [t, 0, 1], [-t, 0, -1], [-t, 0, 1],
    ]
    faces = [
        [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
        [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
        [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
        [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
    ]
    verts = [list(np.asarray(v, dtype=np.float64) / np.linalg.norm(v)) for v in verts]
    for _ in range(subdivisions):
        midpoint = {}

        def _mid(a, b):
            key = (min(a, b), max(a, b))
            if key not in midpoint:
                m = np.add(verts[a], verts[b]) / 2.0
                verts.append(list(m / np.linalg.norm(m)))
                midpoint[key] = len(verts) - 1
            return midpoint[key]

        refined = []
        for a, b, c in faces:
            ab, bc, ca = _mid(a, b), _mid(b, c), _mid(c, a)
            refined += [[a, ab, ca], [b, bc, ab], [c, ca, bc], [ab, bc, ca]]
        faces = refined

    V = np.array(verts) * radius
    F = np.array(faces, dtype=np.int64)
    tri = V[F]
    normal = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    flip = np.einsum("fi,fi->f", normal, tri.mean(axis=1)) < 0
    F[flip] = F[flip][:, ::-1]
    return Mesh(V, F)


def edge_use_counts(mesh: Mesh) -> np.ndarray:
    """How many faces share each undirected edge."""
    e = np.concatenate([mesh.faces[:, [0, 1]], mesh.faces[:, [1, 2]], mesh.faces[:, [2, 0]]])
    e.sort(axis=1)
    _, counts = np.unique(e, axis=0, return_counts=True)
    return counts


def exact_solid_angles(q: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Van Oosterom & Strackee solid angle of each triangle (F, 3, 3) at each q (N, 3).

    ``tan(Ω/2) = a·(b×c) / (|a||b||c| + (a·b)|c| + (b·c)|a| + (c·a)|b|)``;
    returns an (N, F) array in steradians.
    """
    rel = triangles[None, :, :, :] - q[:, None, None, :]
    a, b, c = rel[..., 0, :], rel[..., 1, :], rel[..., 2, :]
    la = np.linalg.norm(a, axis=-1)
    lb = np.linalg.norm(b, axis=-1)
    lc = np.linalg.norm(c, axis=-1)
    numer = np.einsum("...i,...i->...", a, np.cross(b, c))
    denom = (
        la * lb * lc
        + np.einsum("...i,...i->...", a, b) * lc
        + np.einsum("...i,...i->...", b, c) * la
        + np.einsum("...i,...i->...", c, a) * lb
    )
    return 2.0 * np.arctan2(numer, denom)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def box_mesh() -> Mesh:
    return make_box_mesh()


@pytest.fixture
def holed_box_mesh() -> Mesh:
    """The unit box with its first (-Z) triangle removed."""
    box = make_box_mesh()
    return Mesh(box.vertices, box.faces[1:])


@pytest.fixture
def sphere_mesh() -> Mesh:
    return make_icosphere(2)


@pytest.fixture(autouse=True)
def _fresh_thread_default():
    reset_default_num_threads()
    yield
    reset_default_num_threads()
