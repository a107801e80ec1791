"""Surface → volume → surface remeshing.

Typical use::

    from volremesh import Remesher, RemeshParams, Policy, load_mesh

    mesh = load_mesh("bunny.obj")
    params = RemeshParams.from_percentage(mesh, 1.2, policy=Policy.WINDING_NUMBER)

    remesher = Remesher(params)
    remesher.bind_mesh(mesh)
    remesher.build_volume()
    out = Mesh()
    remesher.extract_mesh(out)

or in one call: ``out = remesh(mesh, params)``.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from .builder import VolumeBuilder
from .errors import PreconditionError
from .mesh import Mesh
from .params import RemeshParams
from .reconstruct import MeshReconstructor
from .volume import Volume, volume_to_mesh

logger = logging.getLogger(__name__)


class Remesher:
    """One conversion pipeline bound to one borrowed input mesh.

    The bound mesh must stay alive and unmodified from :meth:`build_volume`
    until :meth:`extract_mesh` returns.  Parameters are fixed per instance;
    create another ``Remesher`` for different settings.
    """

    def __init__(self, params: RemeshParams, builder: Optional[VolumeBuilder] = None) -> None:
        self.params = params.validate()
        self.builder = builder or VolumeBuilder()
        self._mesh: Optional[Mesh] = None
        self._volume: Optional[Volume] = None

    @property
    def volume(self) -> Optional[Volume]:
        """The last successfully built volume, or ``None``."""
        return self._volume

    def bind_mesh(self, mesh: Mesh) -> None:
        """Borrow *mesh* as input; drops any previously built volume."""
        self._mesh = mesh
        self._volume = None

    def build_volume(self) -> Volume:
        if self._mesh is None:
            raise PreconditionError("bind_mesh() must be called before build_volume()")
        self._volume = None
        self._volume = self.builder.build(self._mesh, self.params)
        return self._volume

    def extract_mesh(self, out: Mesh) -> Mesh:
        """Contour the volume into *out*, replacing its contents."""
        if self._volume is None:
            raise PreconditionError("build_volume() must succeed before extract_mesh()")
        out.clear()
        t0 = time.perf_counter()
        soup = volume_to_mesh(self._volume, self.params.isovalue, self.params.adaptivity)
        MeshReconstructor().rebuild(soup, out)
        compact = out.remove_unreferenced_vertices()
        out.vertices, out.faces = compact.vertices, compact.faces
        logger.info(
            "Extracted %d vertices, %d faces in %.2f s",
            out.n_vertices, out.n_faces, time.perf_counter() - t0,
        )
        return out


def remesh(mesh: Mesh, params: RemeshParams) -> Mesh:
    """Convert *mesh* to a volume and back in one call."""
    remesher = Remesher(params)
    remesher.bind_mesh(mesh)
    remesher.build_volume()
    return remesher.extract_mesh(Mesh())
