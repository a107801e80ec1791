"""Narrow-band volume construction and isosurface extraction.

This module is the volume kernel the conversion core orchestrates: it turns
polygons into a signed field on a voxel grid and a field back into a polygon
soup.  Everything above it (:mod:`volremesh.builder`,
:mod:`volremesh.remesher`) treats it as a black box with three entry points:

* :func:`mesh_to_level_set` — signed distance from a watertight triangle list.
* :func:`mesh_to_volume` — signed distance from any polygon stream, with the
  sign supplied by an interior-test callback.
* :func:`volume_to_mesh` — isosurface extraction (scikit-image marching cubes).

Grid layout
-----------
A :class:`Volume` stores the active block of the grid as a dense array
indexed ``values[i, j, k]`` (x-first), plus the index of ``values[0, 0, 0]``.
Index ``(i, j, k)`` is the voxel centre at world ``(i, j, k) * voxel_size``.
Values are world-unit distances, negative inside, clamped to the band;
voxels outside the stored block have the (positive) background value.

Complexity
----------
Distances are computed per triangle on the block of voxels within the band
of that triangle.  Interior tests run once per surface-free tile of
``TILE_SIZE``³ voxels plus once per voxel near the surface; a ray-parity test
is O(F).
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ._math import _parity_inside, _triangle_sq_dist
from .adapter import PolygonSource
from .errors import PreconditionError
from .parallel import parallel_for
from .transform import LinearTransform

logger = logging.getLogger(__name__)

_Array = npt.NDArray[np.floating]
_IndexArray = npt.NDArray[np.integer]
InteriorTest = Callable[[_IndexArray], npt.NDArray[np.bool_]]
Soup = Tuple[_Array, _IndexArray, _IndexArray]

TILE_SIZE = 8
CLASSIFY_CHUNK = 4096
_TILE_CLEARANCE = math.sqrt(3.0) / 2.0


class EvalPolicy(enum.Enum):
    """How often the interior test runs during :func:`mesh_to_volume`."""

    EVERY_VOXEL = "every_voxel"
    """Classify every voxel of the block."""

    EVERY_TILE = "every_tile"
    """Classify once per 8³ tile that no polygon passes through, and per
    voxel in tiles the surface crosses."""


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

@dataclass
class Volume:
    """Dense active block of a narrow-band signed field."""

    values: _Array
    origin: Tuple[int, int, int]
    transform: LinearTransform
    background: float
    grid_class: str = "level_set"

    @property
    def voxel_size(self) -> float:
        return self.transform.voxel_size

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(self.values.shape)  # type: ignore[return-value]

    def index_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Inclusive ``(lo, hi)`` index corners of the stored block."""
        lo = np.asarray(self.origin, dtype=np.int64)
        return lo, lo + np.asarray(self.values.shape) - 1

    def value_at(self, ijk) -> float:
        """Field value at integer index *ijk*; background outside the block."""
        local = np.asarray(ijk, dtype=np.int64) - np.asarray(self.origin, dtype=np.int64)
        if np.any(local < 0) or np.any(local >= self.values.shape):
            return float(self.background)
        return float(self.values[tuple(local)])

    def active_voxel_count(self) -> int:
        """Number of voxels strictly inside the narrow band."""
        return int(np.count_nonzero(np.abs(self.values) < self.background))

    def index_points(self) -> _IndexArray:
        """``(N, 3)`` integer indices of every stored voxel, in ``values`` order."""
        return _block_indices(np.asarray(self.origin), np.asarray(self.values.shape))


# ---------------------------------------------------------------------------
# Grid helpers
# ---------------------------------------------------------------------------

def _block_indices(origin: np.ndarray, shape: np.ndarray) -> _IndexArray:
    axes = [np.arange(o, o + n, dtype=np.int64) for o, n in zip(origin, shape)]
    I, J, K = np.meshgrid(*axes, indexing="ij")
    return np.stack([I, J, K], axis=-1).reshape(-1, 3)


def _grid_box(tris: _Array, pad: int) -> Tuple[np.ndarray, np.ndarray]:
    """Integer ``(origin, shape)`` of the block enclosing *tris* plus *pad* voxels."""
    lo = np.floor(tris.reshape(-1, 3).min(axis=0)).astype(np.int64) - pad
    hi = np.ceil(tris.reshape(-1, 3).max(axis=0)).astype(np.int64) + pad
    return lo, hi - lo + 1


def _band_distance(tris: _Array, origin: np.ndarray, shape: np.ndarray, reach: float) -> _Array:
    """Index-space distance to the nearest triangle, exact within *reach*.

    Voxels farther than *reach* from every triangle are left at ``inf``.
    """
    sq = np.full(tuple(shape), np.inf)
    upper = shape - 1
    for tri in tris:
        lo = np.clip(np.floor(tri.min(axis=0) - reach).astype(np.int64) - origin, 0, upper)
        hi = np.clip(np.ceil(tri.max(axis=0) + reach).astype(np.int64) - origin, 0, upper)
        view = sq[lo[0]:hi[0] + 1, lo[1]:hi[1] + 1, lo[2]:hi[2] + 1]
        P = _block_indices(origin + lo, hi - lo + 1).astype(np.float64)
        np.minimum(view, _triangle_sq_dist(P, tri).reshape(view.shape), out=view)
    return np.sqrt(sq)


def _gather_polygons(polygons: PolygonSource) -> _Array:
    """Index-space triangles of a polygon source, fan-splitting larger polygons."""
    bulk = getattr(polygons, "index_space_polygons", None)
    if bulk is not None:
        return np.asarray(bulk(), dtype=np.float64).reshape(-1, 3, 3)
    tris = []
    for n in range(polygons.polygon_count()):
        corners = [polygons.index_space_point(n, v) for v in range(polygons.vertex_count(n))]
        for v in range(1, len(corners) - 1):
            tris.append([corners[0], corners[v], corners[v + 1]])
    return np.asarray(tris, dtype=np.float64).reshape(-1, 3, 3)


# ---------------------------------------------------------------------------
# Level set from a triangle list
# ---------------------------------------------------------------------------

def mesh_to_level_set(
    transform: LinearTransform,
    vertices: npt.ArrayLike,
    triangles: npt.ArrayLike,
    half_width: float,
    executor: Callable[..., bool] = parallel_for,
) -> Volume:
    """Narrow-band signed distance field of a watertight triangle mesh.

    Parameters
    ----------
    transform:
        World ↔ index map; fixes the voxel size.
    vertices:
        ``(V, 3)`` world-space positions.
    triangles:
        ``(F, 3)`` vertex indices.
    half_width:
        Band half-width in voxels.  Values are clamped to
        ``±half_width * voxel_size``.
    executor:
        ``parallel_for``-compatible loop runner for the parity tests.

    Notes
    -----
    The sign comes from ray-crossing parity and is wrong near gaps; use
    :func:`mesh_to_volume` with a winding-number interior test for broken
    input.

    Parity is cast from the centre of each surface-free tile and from each
    voxel near the surface only.
    """
    verts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    faces = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    if len(verts) == 0 or len(faces) == 0:
        raise PreconditionError("mesh_to_level_set needs at least one vertex and one triangle")
    if not half_width > 0.0:
        raise PreconditionError(f"half_width must be > 0, got {half_width}")

    tris = transform.world_to_index(verts[faces])
    origin, shape = _grid_box(tris, int(math.ceil(half_width)) + 1)
    logger.debug("Level set block %s at %s, half width %.3f voxels", tuple(shape), tuple(origin), half_width)

    dist = _band_distance(tris, origin, shape, max(half_width, 1.0))
    inside = _interior_mask(_parity_test(tris), dist, origin, EvalPolicy.EVERY_TILE, executor)
    dist = np.minimum(dist, half_width)

    values = np.where(inside, -dist, dist) * transform.voxel_size
    return Volume(values, tuple(int(o) for o in origin), transform, half_width * transform.voxel_size)


# ---------------------------------------------------------------------------
# Volume from a polygon stream + interior test
# ---------------------------------------------------------------------------

def _classify(
    interior_test: InteriorTest,
    ijk: _IndexArray,
    executor: Callable[..., bool],
) -> np.ndarray:
    out = np.zeros(len(ijk), dtype=bool)
    n_chunks = -(-len(ijk) // CLASSIFY_CHUNK)

    def _body(c: int) -> None:
        sl = slice(c * CLASSIFY_CHUNK, (c + 1) * CLASSIFY_CHUNK)
        out[sl] = interior_test(ijk[sl])

    executor(n_chunks, _body, 2)
    return out


def _tile_queries(dist: _Array, origin: np.ndarray) -> Tuple[np.ndarray, _IndexArray, np.ndarray]:
    """Split the block into surface-free tiles and per-voxel leftovers.

    Returns ``(voxel_mask, tile_centres, tile_of_voxel)`` where *voxel_mask*
    marks voxels needing their own test, *tile_centres* holds one index per
    surface-free tile, and *tile_of_voxel* maps every other voxel to its row
    in *tile_centres*.
    """
    shape = np.asarray(dist.shape)
    ntiles = -(-shape // TILE_SIZE)
    padded = np.full(tuple(ntiles * TILE_SIZE), np.inf)
    padded[: shape[0], : shape[1], : shape[2]] = dist
    tile_min = padded.reshape(
        ntiles[0], TILE_SIZE, ntiles[1], TILE_SIZE, ntiles[2], TILE_SIZE
    ).min(axis=(1, 3, 5))
    clear = tile_min > _TILE_CLEARANCE

    tile_ids = np.argwhere(clear)
    extent = np.minimum(TILE_SIZE, shape - tile_ids * TILE_SIZE)
    centres = origin + tile_ids * TILE_SIZE + extent // 2

    row = np.full(tuple(ntiles), -1, dtype=np.int64)
    row[clear] = np.arange(len(tile_ids))
    I, J, K = np.meshgrid(*[np.arange(n) // TILE_SIZE for n in shape], indexing="ij")
    tile_of_voxel = row[I, J, K]
    return tile_of_voxel < 0, centres, tile_of_voxel


def _parity_test(tris: _Array) -> InteriorTest:
    """Ray-crossing parity over grid indices."""

    def _test(ijk: _IndexArray) -> np.ndarray:
        return _parity_inside(ijk.astype(np.float64), tris)

    return _test


def _interior_mask(
    interior_test: InteriorTest,
    dist: _Array,
    origin: np.ndarray,
    eval_policy: EvalPolicy,
    executor: Callable[..., bool],
) -> np.ndarray:
    """Inside flags for every voxel of the block *dist* covers."""
    shape = dist.shape
    if eval_policy is EvalPolicy.EVERY_VOXEL:
        return _classify(interior_test, _block_indices(origin, np.asarray(shape)), executor).reshape(shape)

    per_voxel, centres, tile_of_voxel = _tile_queries(dist, origin)
    voxels = _block_indices(origin, np.asarray(shape))[per_voxel.ravel()]
    logger.debug(
        "Interior test: %d tile centres + %d voxels (of %d)",
        len(centres), len(voxels), int(np.prod(shape)),
    )
    flags = _classify(interior_test, np.concatenate([centres, voxels]), executor)
    inside = np.empty(shape, dtype=bool)
    inside[per_voxel] = flags[len(centres):]
    inside[~per_voxel] = flags[:len(centres)][tile_of_voxel[~per_voxel]]
    return inside


def mesh_to_volume(
    polygons: PolygonSource,
    transform: LinearTransform,
    exterior_band: float,
    interior_band: float,
    interior_test: Optional[InteriorTest] = None,
    eval_policy: EvalPolicy = EvalPolicy.EVERY_TILE,
    executor: Callable[..., bool] = parallel_for,
) -> Volume:
    """Narrow-band signed field of an arbitrary polygon stream.

    Parameters
    ----------
    polygons:
        Polygon source in *transform*'s index space (e.g. a
        :class:`~volremesh.adapter.MeshGridAdapter`).
    transform:
        World ↔ index map of the output grid.
    exterior_band, interior_band:
        Band widths in voxels outside and inside the surface.
    interior_test:
        ``interior_test(ijk) -> bool array`` for ``(M, 3)`` integer indices.
        Called concurrently on disjoint chunks through *executor*, so it
        must be read-only.  Defaults to ray-crossing parity.
    eval_policy:
        See :class:`EvalPolicy`.
    executor:
        ``parallel_for``-compatible loop runner.

    Returns
    -------
    Volume
        Values in ``[-interior_band, exterior_band] * voxel_size``;
        background ``exterior_band * voxel_size``.
    """
    if not (exterior_band > 0.0 and interior_band > 0.0):
        raise PreconditionError(
            f"band widths must be > 0, got exterior={exterior_band}, interior={interior_band}"
        )
    tris = _gather_polygons(polygons)
    if len(tris) == 0:
        # nothing to contour: a single background voxel
        background = exterior_band * transform.voxel_size
        return Volume(np.full((1, 1, 1), background), (0, 0, 0), transform, background)

    reach = max(exterior_band, interior_band, 1.0)
    origin, shape = _grid_box(tris, int(math.ceil(reach)) + 1)
    dist = _band_distance(tris, origin, shape, reach)

    if interior_test is None:
        interior_test = _parity_test(tris)
    inside = _interior_mask(interior_test, dist, origin, eval_policy, executor)

    values = np.where(
        inside,
        -np.minimum(dist, interior_band),
        np.minimum(dist, exterior_band),
    ) * transform.voxel_size
    logger.debug("Volume block %s at %s, %d interior voxels", tuple(shape), tuple(origin), int(inside.sum()))
    return Volume(values, tuple(int(o) for o in origin), transform, exterior_band * transform.voxel_size)


# ---------------------------------------------------------------------------
# Isosurface extraction
# ---------------------------------------------------------------------------

def _empty_soup() -> Soup:
    return (
        np.zeros((0, 3), dtype=np.float64),
        np.zeros((0, 3), dtype=np.int64),
        np.zeros((0, 4), dtype=np.int64),
    )


def volume_to_mesh(volume: Volume, isovalue: float = 0.0, adaptivity: float = 0.0) -> Soup:
    """Extract the ``isovalue`` surface of *volume* as a polygon soup.

    Parameters
    ----------
    volume:
        Field to contour.
    isovalue:
        Level to extract, in world units of the field.
    adaptivity:
        ``>= 0``; coarsens the marching lattice to ``1 + floor(2 * adaptivity)``
        voxels per step.

    Returns
    -------
    (vertices, triangles, quads)
        World-space ``(N, 3)`` vertices, ``(T, 3)`` triangles and ``(Q, 4)``
        quads (always empty for this backend).  Polygons are wound clockwise
        seen from the exterior (the side where the field exceeds
        *isovalue*).  Empty arrays when the field never crosses *isovalue*.
    """
    from skimage import measure

    if adaptivity < 0:
        raise PreconditionError(f"adaptivity must be >= 0, got {adaptivity}")

    # one ring of background keeps surfaces touching the block edge closed
    vals = np.pad(volume.values, 1, mode="constant", constant_values=volume.background)
    if not (vals.min() < isovalue < vals.max()):
        logger.debug("Isovalue %g not crossed by field range [%g, %g]", isovalue, vals.min(), vals.max())
        return _empty_soup()

    vs = volume.voxel_size
    step = 1 + int(math.floor(2.0 * adaptivity))
    verts, faces, _, _ = measure.marching_cubes(
        vals, level=isovalue, spacing=(vs, vs, vs), step_size=step, allow_degenerate=False,
    )
    verts = verts.astype(np.float64) + (np.asarray(volume.origin, dtype=np.float64) - 1.0) * vs
    faces = faces.astype(np.int64)

    tri = verts[faces]
    if np.einsum("fi,fi->", tri[:, 0], np.cross(tri[:, 1], tri[:, 2])) > 0.0:
        faces = faces[:, ::-1].copy()
    return verts, faces, np.zeros((0, 4), dtype=np.int64)
