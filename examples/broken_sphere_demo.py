"""broken_sphere_demo.py — remesh a deliberately damaged sphere.

Builds a geodesic sphere, punches holes in it and flips a band of faces,
then converts it with both volume policies:

* ``level_set``      — ray-parity sign; the holes leak, the result is wrong.
* ``winding_number`` — |w| >= 0.5 sign; the holes are closed over.

Usage
-----
python examples/broken_sphere_demo.py
python examples/broken_sphere_demo.py --voxel-perc 0.8 --render sphere.png

Outputs
-------
broken_sphere.obj, remesh_level_set.obj, remesh_winding_number.obj
and, with --render, a PNG comparing all three.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np

from volremesh import Mesh, Policy, RemeshParams, remesh, save_mesh
from volremesh.logging_config import setup_logging

_EXAMPLES_DIR = Path(__file__).parent


# ---------------------------------------------------------------------------
# Damaged input
# ---------------------------------------------------------------------------

def _icosphere(subdivisions: int) -> Mesh:
    t = (1.0 + 5.0 ** 0.5) / 2.0
    verts = [[-1, t, 0], [1, t, 0], [-1, -t, 0], [1, -t, 0],
             [0, -1, t], [0, 1, t], [0, -1, -t], [0, 1, -t],
             [t, 0, -1], [t, 0, 1], [-t, 0, -1], [-t, 0, 1]]
    faces = [[0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
             [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
             [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
             [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1]]
    verts = [np.asarray(v, dtype=np.float64) / np.linalg.norm(v) for v in verts]
    for _ in range(subdivisions):
        cache: dict = {}

        def mid(a, b):
            key = (min(a, b), max(a, b))
            if key not in cache:
                m = verts[a] + verts[b]
                verts.append(m / np.linalg.norm(m))
                cache[key] = len(verts) - 1
            return cache[key]

        faces = [f for a, b, c in faces for f in (
            [a, mid(a, b), mid(c, a)], [b, mid(b, c), mid(a, b)],
            [c, mid(c, a), mid(b, c)], [mid(a, b), mid(b, c), mid(c, a)],
        )]
    return Mesh(np.array(verts), np.array(faces))


def make_broken_sphere(subdivisions: int = 3, seed: int = 0) -> Mesh:
    sphere = _icosphere(subdivisions)
    centroids = sphere.triangles().mean(axis=1)
    rng = np.random.default_rng(seed)

    # two holes around random directions
    keep = np.ones(sphere.n_faces, dtype=bool)
    for direction in rng.normal(size=(2, 3)):
        direction /= np.linalg.norm(direction)
        keep &= centroids @ direction < 0.95
    faces = sphere.faces[keep]

    # flipped band around the equator
    band = np.abs(centroids[keep][:, 2]) < 0.1
    faces[band] = faces[band][:, ::-1]
    return Mesh(sphere.vertices, faces).remove_unreferenced_vertices()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(description="Broken sphere → volume → mesh demo")
    parser.add_argument("--voxel-perc", type=float, default=1.2,
                        help="Voxel size as %% of the bbox diagonal (default 1.2)")
    parser.add_argument("--render", type=Path, default=None,
                        help="Save a comparison PNG (needs matplotlib)")
    args = parser.parse_args()
    setup_logging(logging.INFO)

    broken = make_broken_sphere()
    save_mesh(_EXAMPLES_DIR / "broken_sphere.obj", broken)
    print(f"Broken sphere: {broken.n_vertices} v, {broken.n_faces} f")

    panels = [("broken input", broken)]
    for policy in Policy:
        params = RemeshParams.from_percentage(broken, args.voxel_perc, policy=policy)
        out = remesh(broken, params)
        path = _EXAMPLES_DIR / f"remesh_{policy.value}.obj"
        save_mesh(path, out)
        print(f"{policy.value:>15}: {out.n_vertices} v, {out.n_faces} f, "
              f"volume {out.signed_volume():.4f}  → {path.name}")
        panels.append((policy.value, out))

    print(f"Reference sphere volume {4.0 / 3.0 * np.pi:.4f}")

    if args.render is not None:
        from volremesh.viz import render_meshes
        render_meshes(panels, args.render)
        print(f"Saved: {args.render}")


if __name__ == "__main__":
    main()
