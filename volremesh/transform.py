"""Uniform linear map between world space and voxel index space."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from .errors import PreconditionError

_Array = npt.NDArray[np.floating]


@dataclass(frozen=True)
class LinearTransform:
    """Axis-aligned scaling by a single voxel size.

    Index ``(i, j, k)`` is the voxel centre at world position
    ``(i, j, k) * voxel_size``.  Instances are immutable and are shared by
    reference between the grid adapter, the interior test and the volume.
    """

    voxel_size: float

    def __post_init__(self) -> None:
        if not self.voxel_size > 0.0:
            raise PreconditionError(f"voxel_size must be > 0, got {self.voxel_size!r}")

    def world_to_index(self, p: _Array) -> _Array:
        """Map ``(..., 3)`` world positions to continuous index coordinates."""
        return np.asarray(p, dtype=np.float64) / self.voxel_size

    def index_to_world(self, ijk: _Array) -> _Array:
        """Map ``(..., 3)`` index coordinates (integer or not) to world space."""
        return np.asarray(ijk, dtype=np.float64) * self.voxel_size
