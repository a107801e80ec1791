"""Generalized winding number of a triangle mesh.

``w(q) = Ω(q) / 4π`` where Ω is the solid angle the mesh subtends at q.
For a closed, outward-oriented surface w is exactly 1 inside and 0 outside;
holes, T-junctions, self-intersections and flipped patches make it vary
smoothly in between instead of breaking the classification, which is why
the interior test thresholds ``|w|`` at 0.5 rather than counting ray
crossings.
"""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt

from .errors import PreconditionError
from .mesh import Mesh
from .solid_angle import SolidAngleService

_Array = npt.NDArray[np.floating]

INSIDE_THRESHOLD = 0.5
DEFAULT_ORDER = 2
DEFAULT_ACCURACY_SCALE = 2.0


class WindingNumberOracle:
    """Inside/outside classification of arbitrary points against a mesh.

    The oracle copies the mesh passed to :meth:`init` into libigl's layout
    once; later edits to the mesh are not seen.  After ``init`` every method is
    read-only and safe to call from several threads on different points.

    Examples
    --------
    >>> oracle = WindingNumberOracle()
    >>> oracle.init(mesh)
    >>> oracle.inside([0.0, 0.0, 0.0])
    True
    """

    def __init__(self) -> None:
        self._solid_angles = SolidAngleService()

    @property
    def initialized(self) -> bool:
        return self._solid_angles.initialized

    def init(self, mesh: Mesh, order: int = DEFAULT_ORDER) -> None:
        """Prepare solid-angle queries against *mesh*.

        *order* is the expansion order of the far-field approximation,
        clamped to ``[0, 2]``.  May be called only once.
        """
        if self.initialized:
            raise PreconditionError("WindingNumberOracle.init() may only be called once")
        self._solid_angles.init(mesh.faces, mesh.vertices, order)

    def _check(self) -> None:
        if not self.initialized:
            raise PreconditionError("WindingNumberOracle.init() must be called before evaluating")

    def evaluate_many(
        self,
        points: npt.ArrayLike,
        accuracy_scale: float = DEFAULT_ACCURACY_SCALE,
    ) -> _Array:
        """Winding numbers at ``(N, 3)`` world-space *points*."""
        self._check()
        return self._solid_angles.solid_angles(points, accuracy_scale) / (4.0 * math.pi)

    def evaluate(
        self,
        point: npt.ArrayLike,
        accuracy_scale: float = DEFAULT_ACCURACY_SCALE,
    ) -> float:
        """Winding number at a single world-space point."""
        return float(self.evaluate_many(np.reshape(point, (1, 3)), accuracy_scale)[0])

    def inside_many(
        self,
        points: npt.ArrayLike,
        accuracy_scale: float = DEFAULT_ACCURACY_SCALE,
    ) -> np.ndarray:
        """``|w| >= 0.5`` at each of ``(N, 3)`` points."""
        return np.abs(self.evaluate_many(points, accuracy_scale)) >= INSIDE_THRESHOLD

    def inside(
        self,
        point: npt.ArrayLike,
        accuracy_scale: float = DEFAULT_ACCURACY_SCALE,
    ) -> bool:
        return abs(self.evaluate(point, accuracy_scale)) >= INSIDE_THRESHOLD
