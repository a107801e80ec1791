"""
volremesh — Remeshing through a Volume
======================================

Turns an arbitrary triangle mesh (open, self-intersecting, non-manifold or
inconsistently oriented) into a narrow-band signed field on a voxel grid and
contours it back into a clean, regular triangle mesh.

Implemented features
--------------------
- Generalized winding number: :class:`WindingNumberOracle` (hierarchical
  solid-angle summation through libigl, :class:`SolidAngleService`)
- Grid adapter: :class:`MeshGridAdapter` streams polygons in index space
- Fork-join loops: :func:`parallel_for`
- Volume construction: :class:`VolumeBuilder` with the ``LEVEL_SET`` and
  ``WINDING_NUMBER`` policies
- Extraction and reconstruction: :func:`volume_to_mesh`,
  :func:`reconstruct_mesh`
- Mesh I/O: OBJ and PLY through trimesh, STL
- Comparison renders: :func:`volremesh.viz.render_meshes` (matplotlib, optional)

Quick start
-----------

::

    from volremesh import RemeshParams, Policy, load_mesh, remesh, save_mesh

    mesh   = load_mesh("broken.obj")
    params = RemeshParams.from_percentage(mesh, 1.0, policy=Policy.WINDING_NUMBER)
    save_mesh("clean.obj", remesh(mesh, params))

Watertight requirement
----------------------
``Policy.LEVEL_SET`` signs distances by ray parity and needs a watertight
input.  ``Policy.WINDING_NUMBER`` classifies voxels by ``|w| >= 0.5`` and
degrades gracefully on holes and flipped patches.
"""

from .adapter import MeshGridAdapter, PolygonSource
from .builder import VolumeBuilder, winding_interior_test
from .errors import PreconditionError, RemeshError
from .io import load_mesh, save_mesh
from .mesh import Mesh
from .parallel import (
    default_num_threads,
    parallel_for,
    reset_default_num_threads,
    set_default_num_threads,
)
from .params import Policy, RemeshParams
from .reconstruct import MeshReconstructor, reconstruct_mesh
from .remesher import Remesher, remesh
from .solid_angle import SolidAngleService
from .transform import LinearTransform
from .volume import EvalPolicy, Volume, mesh_to_level_set, mesh_to_volume, volume_to_mesh
from .winding import WindingNumberOracle

__version__ = "0.1.0"

__all__ = [
    # Data model
    "Mesh",
    "LinearTransform",
    "RemeshParams",
    "Policy",

    # Errors
    "RemeshError",
    "PreconditionError",

    # Parallel execution
    "parallel_for",
    "default_num_threads",
    "set_default_num_threads",
    "reset_default_num_threads",

    # Interior classification
    "SolidAngleService",
    "WindingNumberOracle",

    # Volume construction
    "PolygonSource",
    "MeshGridAdapter",
    "EvalPolicy",
    "Volume",
    "mesh_to_level_set",
    "mesh_to_volume",
    "volume_to_mesh",
    "VolumeBuilder",
    "winding_interior_test",

    # Reconstruction
    "MeshReconstructor",
    "reconstruct_mesh",
    "Remesher",
    "remesh",

    # I/O
    "load_mesh",
    "save_mesh",
]
