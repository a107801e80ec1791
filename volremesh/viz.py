"""Side-by-side shaded renders of meshes (matplotlib, no GPU required).

Used by the CLI's ``--render`` option to compare the input mesh with the
remeshed output.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np

from .mesh import Mesh

_FACE_COLOR = np.array([1.0, 0.82, 0.2])
_BACKGROUND = "#111111"
_VIEW_ELEV = 20
_VIEW_AZIM = 35


def _face_shades(mesh: Mesh) -> np.ndarray:
    """Per-face RGB from ambient + diagonal diffuse lighting."""
    tris = mesh.triangles()
    norms = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    nlen = np.linalg.norm(norms, axis=1, keepdims=True)
    norms = norms / np.where(nlen > 0, nlen, 1.0)
    light = np.array([0.577, 0.577, 0.577])
    # two-sided: flipped input patches should not render black
    diffuse = np.abs(norms @ light)
    return np.outer(0.3 + 0.7 * diffuse, _FACE_COLOR)


def render_meshes(panels: Sequence[Tuple[str, Mesh]], out_path: Union[str, Path]) -> None:
    """Render each ``(label, mesh)`` in its own 3-D panel and save a PNG."""
    import matplotlib.pyplot as plt
    from mpl_toolkits.mplot3d.art3d import Poly3DCollection

    ncols = len(panels)
    fig = plt.figure(figsize=(ncols * 4.0, 4.0), facecolor=_BACKGROUND)

    for idx, (label, mesh) in enumerate(panels):
        ax = fig.add_subplot(1, ncols, idx + 1, projection="3d")
        ax.set_facecolor(_BACKGROUND)
        ax.set_axis_off()
        ax.set_title(f"{label}\n{mesh.n_vertices} v  {mesh.n_faces} f", color="white", fontsize=8, pad=1)

        if mesh.is_empty():
            ax.text2D(0.5, 0.5, "no surface", ha="center", va="center",
                      color="gray", transform=ax.transAxes, fontsize=8)
            continue

        ax.add_collection3d(Poly3DCollection(
            mesh.triangles(), facecolors=_face_shades(mesh), edgecolors="none", alpha=1.0,
        ))
        lo, hi = mesh.bounds()
        centre, half = (lo + hi) / 2.0, max(float((hi - lo).max()) / 2.0, 1e-9)
        ax.set_xlim(centre[0] - half, centre[0] + half)
        ax.set_ylim(centre[1] - half, centre[1] + half)
        ax.set_zlim(centre[2] - half, centre[2] + half)
        ax.set_box_aspect([1, 1, 1])
        ax.view_init(elev=_VIEW_ELEV, azim=_VIEW_AZIM)

    plt.tight_layout(pad=0.3)
    fig.savefig(out_path, dpi=150, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
