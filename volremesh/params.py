"""Conversion parameters and the narrow-band policy derived from them."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .errors import PreconditionError
from .mesh import Mesh

DEFAULT_VOXEL_PERCENTAGE = 1.2


class Policy(enum.Enum):
    """Which field the mesh is turned into."""

    LEVEL_SET = "level_set"
    """Signed distance straight from the triangles; needs watertight input."""

    WINDING_NUMBER = "winding_number"
    """Polygon stream signed by the winding-number interior test; tolerates
    holes, self-intersections and inconsistent orientation."""


@dataclass(frozen=True)
class RemeshParams:
    """Caller-owned settings of one conversion.

    Attributes
    ----------
    isovalue:
        Level of the signed field to extract, in world units.  Positive
        values grow the surface outwards, negative values shrink it.
    adaptivity:
        ``0`` extracts at full resolution; larger values simplify more.
    voxel_size:
        Edge length of a voxel; must be ``> 0`` before converting.
    policy:
        See :class:`Policy`.
    """

    isovalue: float = 0.0
    adaptivity: float = 0.0
    voxel_size: float = -1.0
    policy: Policy = Policy.WINDING_NUMBER

    def validate(self) -> "RemeshParams":
        if not self.voxel_size > 0.0:
            raise PreconditionError(f"voxel_size must be > 0, got {self.voxel_size!r}")
        if not self.adaptivity >= 0.0:
            raise PreconditionError(f"adaptivity must be >= 0, got {self.adaptivity!r}")
        return self

    # ------------------------------------------------------------------
    # Band widths, in voxels
    # ------------------------------------------------------------------

    @property
    def outer_band(self) -> float:
        """Exterior band: room for a surface pushed out by a positive isovalue."""
        return max(self.isovalue, 0.0) / self.voxel_size + 0.5

    @property
    def inner_band(self) -> float:
        """Interior band: room for a surface pulled in by a negative isovalue."""
        return max(-self.isovalue, 0.0) / self.voxel_size + 0.5

    @property
    def level_set_half_width(self) -> float:
        """Symmetric half-width of the direct level-set band."""
        return abs(self.isovalue / self.voxel_size) + 1.0

    @classmethod
    def from_percentage(
        cls,
        mesh: Mesh,
        target_len_perc: float = DEFAULT_VOXEL_PERCENTAGE,
        **kwargs,
    ) -> "RemeshParams":
        """Parameters whose voxel size is a percentage of *mesh*'s bounding-box diagonal."""
        return cls(voxel_size=target_len_perc * mesh.diagonal() / 100.0, **kwargs)
