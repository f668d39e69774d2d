"""
Sample the Mandelbulb distance field on a grid, extract the zero
isosurface and save it as STL.

    python mandelbulb_export.py --power 8 --resolution 128 --output bulb.stl
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

from mandelbulb_params import CENTER, N, SCALE, FractalParameters
from mandelbulb_surface import (
    escape_time_to_color,
    extract_surface,
    save_stl,
    vertex_escape_times,
)

logger = logging.getLogger("mandelbulb_export")


def build_parser():
    parser = argparse.ArgumentParser(description="Export a Mandelbulb isosurface to STL")
    parser.add_argument("--config", type=Path, help="JSON file with fractal parameters")
    parser.add_argument("--power", type=float, help="fractal power (overrides config)")
    parser.add_argument("--iterations", type=int, help="maximum iterations (overrides config)")
    parser.add_argument("--bailout", type=float, help="bailout radius (overrides config)")
    parser.add_argument("--resolution", type=int, default=N, help="voxels per axis")
    parser.add_argument("--scale", type=float, default=SCALE, help="voxel spacing")
    parser.add_argument("--center", type=float, nargs=3, default=list(CENTER),
                        metavar=("X", "Y", "Z"), help="grid center")
    parser.add_argument("--level", type=float, default=0.0, help="isosurface level")
    parser.add_argument("--output", type=Path, default=Path("mandelbulb.stl"),
                        help="output STL path")
    parser.add_argument("--colors", type=Path,
                        help="also save verts/faces/normals/escape-time colors as .npz")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def load_params(args):
    params = FractalParameters.from_json(args.config) if args.config else FractalParameters()
    overrides = {}
    if args.power is not None:
        overrides["power"] = args.power
    if args.iterations is not None:
        overrides["max_iterations"] = args.iterations
    if args.bailout is not None:
        overrides["bailout_radius"] = args.bailout
    if overrides:
        params = FractalParameters.from_dict({**params.to_dict(), **overrides})
    return params


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.scale > 0:
        parser.error(f"--scale must be positive, got {args.scale}")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    params = load_params(args)
    logger.info("Power=%.3f, iterations=%d, bailout=%.3f",
                params.power, params.max_iterations, params.bailout_radius)

    t0 = time.perf_counter()
    field = params.sample_volume(args.center, args.scale, args.resolution)
    t1 = time.perf_counter()
    logger.info("Computed %d^3 volume in %.2fs", args.resolution, t1 - t0)

    verts, faces, normals = extract_surface(
        field, args.center, args.scale, args.resolution, level=args.level)
    if len(faces) == 0:
        logger.error("No surface found, nothing written")
        return 1

    save_stl(verts, faces, args.output)

    if args.colors:
        colors = escape_time_to_color(vertex_escape_times(
            verts, params.power, params.max_iterations, params.bailout_radius))
        args.colors.parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(args.colors, verts=verts, faces=faces,
                            normals=normals, colors=colors)
        logger.info("Saved colored mesh arrays: %s", args.colors)
    logger.info("Done in %.2fs", time.perf_counter() - t0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
