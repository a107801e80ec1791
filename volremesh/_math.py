"""Internal geometry kernels for triangle soups.

All symbols here are private (underscore-prefixed) and used by the volume
kernel (:mod:`volremesh.volume`).

Algorithms
----------
Unsigned distance — Christer Ericson's Voronoi-region closest-point method
    (Real-Time Collision Detection §5.1.5).  Six dot products d1–d6 and three
    cross-term determinants va/vb/vc identify one of seven regions.
    ``np.select`` picks the formula; denominators are guarded with
    ``np.maximum(..., 1e-30)`` because np.select evaluates every branch.

Sign by parity — Möller–Trumbore ray casting.
    A ray from each query point in a fixed irrational direction counts
    triangle crossings.  Odd count → inside.  Only meaningful for watertight
    input; the winding-number oracle replaces it on the robust path.
"""

from __future__ import annotations

from math import sqrt

import numpy as np
import numpy.typing as npt

_Array = npt.NDArray[np.floating]

# Fixed ray direction — irrational components avoid axis-aligned degeneracies
_RAY_DIR: np.ndarray = np.array(
    [sqrt(2) - 1.0, sqrt(3) - 1.0, 1.0 / sqrt(3)], dtype=np.float64
)
_RAY_DIR = _RAY_DIR / np.linalg.norm(_RAY_DIR)


# ---------------------------------------------------------------------------
# Unsigned distance — Ericson Voronoi-region method
# ---------------------------------------------------------------------------

def _triangle_sq_dist(P: _Array, tri: _Array) -> _Array:
    """Squared distance from each point in P (N, 3) to triangle tri (3, 3)."""
    A, B, C = tri[0], tri[1], tri[2]
    AB = B - A
    AC = C - A
    BP = P - B
    CP = P - C

    d1 = (P - A) @ AB
    d2 = (P - A) @ AC
    d3 = BP @ AB
    d4 = BP @ AC
    d5 = CP @ AB
    d6 = CP @ AC

    vc = d1 * d4 - d3 * d2
    vb = d5 * d2 - d1 * d6
    va = d3 * d6 - d5 * d4

    in_A  = (d1 <= 0.0) & (d2 <= 0.0)
    in_B  = (d3 >= 0.0) & (d4 <= d3)
    in_C  = (d6 >= 0.0) & (d5 <= d6)
    on_AB = (vc <= 0.0) & (d1 >= 0.0) & (d3 <= 0.0)
    on_AC = (vb <= 0.0) & (d2 >= 0.0) & (d6 <= 0.0)
    on_BC = (va <= 0.0) & ((d4 - d3) >= 0.0) & ((d5 - d6) >= 0.0)

    def _sq(cp):
        diff = P - cp
        return (diff * diff).sum(axis=-1)

    t_AB = np.clip(d1 / np.maximum(d1 - d3, 1e-30), 0.0, 1.0)
    t_AC = np.clip(d2 / np.maximum(d2 - d6, 1e-30), 0.0, 1.0)
    t_BC = np.clip((d4 - d3) / np.maximum((d4 - d3) + (d5 - d6), 1e-30), 0.0, 1.0)

    denom = np.maximum(va + vb + vc, 1e-30)
    w_b = np.clip(vb / denom, 0.0, 1.0)
    w_c = np.clip(vc / denom, 0.0, 1.0)

    return np.select(
        [in_A, in_B, in_C, on_AB, on_AC, on_BC],
        [
            _sq(A), _sq(B), _sq(C),
            _sq(A + t_AB[:, None] * AB),
            _sq(A + t_AC[:, None] * AC),
            _sq(B + t_BC[:, None] * (C - B)),
        ],
        default=_sq(A + w_b[:, None] * AB + w_c[:, None] * AC),
    )


# ---------------------------------------------------------------------------
# Sign — Möller–Trumbore ray casting
# ---------------------------------------------------------------------------

def _ray_triangle_hits(P: _Array, ray_dir: _Array, tri: _Array) -> np.ndarray:
    """Return (N,) int32: 1 where the ray from each point hits tri, 0 otherwise."""
    v0, v1, v2 = tri[0], tri[1], tri[2]
    e1  = v1 - v0
    e2  = v2 - v0
    h   = np.cross(ray_dir, e2)
    det = float(e1 @ h)

    if abs(det) < 1e-12:
        return np.zeros(len(P), dtype=np.int32)

    inv_det = 1.0 / det
    s = P - v0
    u = inv_det * (s @ h)
    q = np.cross(s, e1)
    v = inv_det * (q @ ray_dir)
    t = inv_det * (q @ e2)

    hit = (u >= 0.0) & (v >= 0.0) & ((u + v) <= 1.0) & (t > 1e-12)
    return hit.astype(np.int32)


def _parity_inside(P: _Array, triangles: _Array) -> np.ndarray:
    """(N,) bool, True where the ray-crossing count is odd."""
    hits = np.zeros(len(P), dtype=np.int32)
    for tri in triangles:
        hits += _ray_triangle_hits(P, _RAY_DIR, tri)
    return hits % 2 == 1

