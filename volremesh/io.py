"""Mesh file import/export: OBJ, PLY and STL.

These readers and writers sit outside the conversion core; the CLI uses them
before and after a remesh.  OBJ and PLY go through trimesh with processing
disabled, so vertex order is kept and nothing is merged; polygons are
triangulated by trimesh on import.  Only geometry is kept.

STL detection uses the binary-size invariant (len == 84 + 50*F) rather than
the "solid" keyword, which some CAD tools also write at the start of binary
files.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Optional, Union

import numpy as np
import numpy.typing as npt
import trimesh

from .errors import RemeshError
from .mesh import Mesh

logger = logging.getLogger(__name__)

_PathLike = Union[str, Path]


# ---------------------------------------------------------------------------
# OBJ / PLY (trimesh)
# ---------------------------------------------------------------------------

def _load_with_trimesh(path: _PathLike, file_type: str) -> Mesh:
    """Read one mesh (or point cloud) of *file_type* from *path*.

    Point clouds come back as a :class:`Mesh` without faces.
    """
    with open(path, "rb") as fh:
        try:
            loaded = trimesh.load(fh, file_type=file_type, process=False)
        except (ValueError, KeyError, IndexError, struct.error) as exc:
            raise RemeshError(f"cannot read {file_type.upper()} file {path}: {exc}") from exc
    if isinstance(loaded, trimesh.Scene):
        parts = list(loaded.geometry.values())
        loaded = trimesh.util.concatenate(parts) if parts else trimesh.Trimesh()
    faces = getattr(loaded, "faces", None)
    if faces is None or len(faces) == 0:
        faces = np.zeros((0, 3), dtype=np.int64)
    return Mesh(np.asarray(loaded.vertices, dtype=np.float64), np.asarray(faces, dtype=np.int64))


def _export(path: _PathLike, geometry, file_type: str) -> None:
    with open(path, "wb") as fh:
        geometry.export(fh, file_type=file_type)


def load_obj(path: _PathLike) -> Mesh:
    """Read vertex positions and faces from a Wavefront OBJ file."""
    return _load_with_trimesh(path, "obj")


def save_obj(path: _PathLike, mesh: Mesh) -> None:
    """Write *mesh* as an OBJ file."""
    _export(path, mesh.to_trimesh(), "obj")


def load_ply(path: _PathLike) -> Mesh:
    """Read vertex ``x y z`` and the faces of an ASCII or binary PLY file."""
    return _load_with_trimesh(path, "ply")


def save_ply(path: _PathLike, mesh: Mesh, colors: Optional[npt.NDArray[np.uint8]] = None) -> None:
    """Write *mesh* as binary PLY, optionally with ``(V, 3)`` uchar vertex colours.

    A mesh without faces is written as a point cloud.
    """
    if mesh.n_faces == 0:
        geometry = trimesh.PointCloud(mesh.vertices, colors=colors)
    else:
        geometry = mesh.to_trimesh()
        if colors is not None:
            geometry.visual.vertex_colors = colors
    _export(path, geometry, "ply")


# ---------------------------------------------------------------------------
# STL
# ---------------------------------------------------------------------------

def load_stl(path: _PathLike) -> Mesh:
    """Read a binary or ASCII STL file and weld corners with equal positions."""
    raw = Path(path).read_bytes()
    if len(raw) >= 84:
        count = struct.unpack_from("<I", raw, 80)[0]
        if len(raw) == 84 + 50 * count:
            dtype = np.dtype([("normal", "<f4", (3,)), ("vertices", "<f4", (3, 3)), ("attr", "<u2")])
            records = np.frombuffer(raw, dtype=dtype, count=count, offset=84)
            return Mesh.from_triangles(records["vertices"].astype(np.float64))

    verts: list[list[float]] = []
    for line in raw.decode("ascii", errors="replace").splitlines():
        line = line.strip()
        if line.startswith("vertex"):
            parts = line.split()
            verts.append([float(parts[1]), float(parts[2]), float(parts[3])])
    return Mesh.from_triangles(np.array(verts, dtype=np.float64).reshape(-1, 3, 3))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_LOADERS = {".obj": load_obj, ".ply": load_ply, ".stl": load_stl}
_SAVERS = {".obj": save_obj, ".ply": save_ply}


def load_mesh(path: _PathLike) -> Mesh:
    """Load an OBJ, PLY or STL file, chosen by suffix."""
    suffix = Path(path).suffix.lower()
    if suffix not in _LOADERS:
        raise RemeshError(f"unsupported mesh format {suffix!r} for {path}")
    mesh = _LOADERS[suffix](path)
    logger.debug("Loaded %s: %d vertices, %d faces", path, mesh.n_vertices, mesh.n_faces)
    return mesh


def save_mesh(path: _PathLike, mesh: Mesh) -> None:
    """Save *mesh* as OBJ or PLY, chosen by suffix."""
    suffix = Path(path).suffix.lower()
    if suffix not in _SAVERS:
        raise RemeshError(f"unsupported output format {suffix!r} for {path}")
    _SAVERS[suffix](path, mesh)
    logger.debug("Saved %s: %d vertices, %d faces", path, mesh.n_vertices, mesh.n_faces)
