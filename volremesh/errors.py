"""Exception types raised on the public boundary of :mod:`volremesh`."""

from __future__ import annotations


class RemeshError(Exception):
    """Base class for all errors raised by volremesh itself."""


class PreconditionError(RemeshError, ValueError):
    """A caller broke the contract of an operation.

    Raised for non-positive voxel sizes, empty input meshes on the level-set
    path, extracting before a volume was built, querying an unbound grid
    adapter, and similar misuse.  These are programming errors and are never
    retried internally.
    """
