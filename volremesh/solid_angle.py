"""Solid-angle summation over a triangle mesh, backed by libigl.

The solid angle subtended by a surface S at a query point q is

    Ω(q) = ∫_S (x - q)·n(x) / |x - q|³ dA

libigl evaluates it as a generalized winding number ``w = Ω / 4π``, either
exactly (one Van Oosterom & Strackee term per triangle) or through the
hierarchical far-field expansion of Barill et al. 2018, "Fast Winding
Numbers for Soups and Clouds".  The mesh entry point of the fast variant
builds its own tree with a second-order expansion and ``beta = 2``.

Binding layouts differ between libigl wheels, so the fast entry point is
looked up by name once at import.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import igl
import numpy as np
import numpy.typing as npt

from .errors import PreconditionError

logger = logging.getLogger(__name__)

_Array = npt.NDArray[np.floating]

MAX_ORDER = 2

# 2.5.x wheels export the mesh variant under its own name, later ones overload
_FAST_WINDING_NUMBER = getattr(igl, "fast_winding_number_for_meshes", None) or getattr(
    igl, "fast_winding_number", None
)


def _as_winding_numbers(result, n: int) -> _Array:
    if isinstance(result, tuple):
        result = result[0]
    return np.asarray(result, dtype=np.float64).reshape(n)


class SolidAngleService:
    """Solid-angle evaluator for a fixed triangle mesh.

    Build once with :meth:`init`; afterwards every query method is read-only
    and may be called from several threads at once.
    """

    def __init__(self) -> None:
        self._positions: Optional[np.ndarray] = None
        self._faces: Optional[np.ndarray] = None
        self.order = MAX_ORDER

    @property
    def initialized(self) -> bool:
        return self._positions is not None

    def init(
        self,
        triangle_indices: npt.ArrayLike,
        positions: npt.ArrayLike,
        order: int = MAX_ORDER,
    ) -> None:
        """Take contiguous copies of the mesh in the layout libigl expects.

        *order* is clamped to ``[0, 2]`` and recorded; libigl's mesh entry
        point always expands to second order.
        """
        faces = np.asarray(triangle_indices, dtype=np.int64).reshape(-1, 3)
        V = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        if len(faces) and (faces.min() < 0 or faces.max() >= len(V)):
            raise PreconditionError("triangle index out of range")
        self.order = int(min(max(order, 0), MAX_ORDER))
        self._positions = np.ascontiguousarray(V, dtype=np.float64)
        self._faces = np.ascontiguousarray(faces, dtype=np.int32)
        logger.debug("solid-angle service over %d triangles (order %d)", len(faces), self.order)

    def solid_angles(self, points: npt.ArrayLike, accuracy_scale: float = 2.0) -> _Array:
        """Solid angles at ``(N, 3)`` *points*.

        ``accuracy_scale <= 0`` sums every triangle exactly; any positive
        value uses the fast hierarchical evaluation.
        """
        if not self.initialized:
            raise PreconditionError("SolidAngleService.init() must be called before querying")
        Q = np.ascontiguousarray(np.asarray(points, dtype=np.float64).reshape(-1, 3))
        n = len(Q)
        if n == 0 or len(self._faces) == 0:
            return np.zeros(n)
        if accuracy_scale > 0.0 and _FAST_WINDING_NUMBER is not None:
            w = _as_winding_numbers(_FAST_WINDING_NUMBER(self._positions, self._faces, Q), n)
        else:
            w = _as_winding_numbers(igl.winding_number(self._positions, self._faces, Q), n)
        return 4.0 * math.pi * w

    def solid_angle(self, point: npt.ArrayLike, accuracy_scale: float = 2.0) -> float:
        return float(self.solid_angles(np.reshape(point, (1, 3)), accuracy_scale)[0])
