"""Command-line remesher.

Usage
-----
python -m volremesh mesh.obj                     # voxel = 1.2 % of bbox diagonal
python -m volremesh mesh.obj 0.8 0.0 0.5         # voxel %, isovalue, adaptivity
python -m volremesh mesh.stl --level-set -o out.ply
python -m volremesh mesh.obj --probe-winding 10000 --probe-out probe.ply
python -m volremesh mesh.obj --render compare.png  # input vs output, needs matplotlib
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from .errors import RemeshError
from .io import load_mesh, save_mesh, save_ply
from .logging_config import setup_logging
from .mesh import Mesh
from .parallel import set_default_num_threads
from .params import DEFAULT_VOXEL_PERCENTAGE, Policy, RemeshParams
from .remesher import Remesher
from .viz import render_meshes
from .winding import WindingNumberOracle

logger = logging.getLogger("volremesh.cli")

_GREEN = (0, 255, 0)
_RED = (255, 0, 0)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="volremesh",
        description="Remesh a triangle mesh through a narrow-band volume.",
    )
    parser.add_argument("input", type=Path, help="Input mesh (.obj, .ply or .stl)")
    parser.add_argument(
        "voxel_perc", nargs="?", type=float, default=DEFAULT_VOXEL_PERCENTAGE,
        help="Voxel size as a percentage of the bounding-box diagonal (default 1.2)",
    )
    parser.add_argument("isovalue", nargs="?", type=float, default=0.0, help="Isovalue (default 0)")
    parser.add_argument("adaptivity", nargs="?", type=float, default=0.0, help="Adaptivity (default 0)")
    parser.add_argument(
        "--level-set", action="store_true",
        help="Build a signed-distance level set instead of the winding-number volume",
    )
    parser.add_argument("-o", "--output", type=Path, default=Path("remesh.obj"), help="Output mesh path")
    parser.add_argument(
        "--probe-winding", type=int, default=0, metavar="N",
        help="Classify N surface samples offset along +x before remeshing",
    )
    parser.add_argument("--probe-out", type=Path, default=None, help="Save the probe samples as coloured PLY")
    parser.add_argument("--render", type=Path, default=None, help="Save an input/output comparison PNG")
    parser.add_argument("--threads", type=int, default=None, help="Worker threads (default: auto)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also write the log to this file")
    return parser


def probe_winding(mesh: Mesh, count: int, out_path: Optional[Path] = None, seed: int = 0) -> int:
    """Offset surface samples by 1 % of the diagonal along +x and classify them.

    Returns the number of samples found inside.
    """
    oracle = WindingNumberOracle()
    oracle.init(mesh)
    t0 = time.perf_counter()
    points = mesh.sample_surface(count, seed=seed)
    points[:, 0] += 0.01 * mesh.diagonal()
    inside = oracle.inside_many(points)
    logger.info(
        "Evaluated %d samples in %.3f s: %d inside, %d outside",
        count, time.perf_counter() - t0, int(inside.sum()), int((~inside).sum()),
    )
    if out_path is not None:
        colors = np.where(inside[:, None], _GREEN, _RED).astype(np.uint8)
        save_ply(out_path, Mesh(points, np.zeros((0, 3), dtype=np.int64)), colors=colors)
    return int(inside.sum())


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    if args.threads:
        set_default_num_threads(args.threads)

    try:
        original = load_mesh(args.input).remove_unreferenced_vertices()
    except (OSError, RemeshError, ValueError) as exc:
        logger.error("Error reading file %s: %s", args.input, exc)
        return 1
    if original.is_empty():
        logger.error("Input mesh %s has no faces", args.input)
        return 1
    logger.info("Input mesh %8d v %8d f", original.n_vertices, original.n_faces)

    if args.probe_winding > 0:
        probe_winding(original, args.probe_winding, args.probe_out)

    try:
        params = RemeshParams.from_percentage(
            original,
            args.voxel_perc,
            isovalue=args.isovalue,
            adaptivity=args.adaptivity,
            policy=Policy.LEVEL_SET if args.level_set else Policy.WINDING_NUMBER,
        ).validate()
        lo, hi = original.bounds()
        dims = (hi - lo) / params.voxel_size
        logger.info("Voxel size %f", params.voxel_size)
        logger.info(
            "Box size %.3f %.3f %.3f - %d x %d x %d",
            *(hi - lo), *(int(d) for d in dims),
        )
        logger.info(
            "Building %s",
            "LevelSet" if params.policy is Policy.LEVEL_SET else "Volume using winding number",
        )

        remesher = Remesher(params)
        remesher.bind_mesh(original)
        remesher.build_volume()
        result = remesher.extract_mesh(Mesh())
    except RemeshError as exc:
        logger.error("Remeshing %s failed: %s", args.input, exc)
        return 1

    logger.info("Output mesh %8d v %8d f", result.n_vertices, result.n_faces)
    save_mesh(args.output, result)
    logger.info("Saved %s", args.output)
    if args.render is not None:
        render_meshes([("input", original), ("remeshed", result)], args.render)
        logger.info("Saved %s", args.render)
    return 0


if __name__ == "__main__":
    sys.exit(main())
