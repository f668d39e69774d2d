"""
Isosurface extraction and coloring for sampled distance fields.

Turns a flat field from `mandelbulb_volume.sample_volume` into a triangle
mesh in world coordinates, colors its vertices by escape time, and writes
STL files.
"""

import logging
import time
from pathlib import Path

import numpy as np
from numba import njit, prange
from skimage.measure import marching_cubes
from stl import mesh as stl_mesh

from mandelbulb_math import BAILOUT, escape_kernel
from mandelbulb_volume import as_grid, grid_axes

logger = logging.getLogger(__name__)


def _empty_mesh():
    return (np.zeros((0, 3), dtype=np.float64),
            np.zeros((0, 3), dtype=np.int64),
            np.zeros((0, 3), dtype=np.float64))


# ----------------------------------------------------
# SURFACE COMPUTATION
# ----------------------------------------------------
def extract_surface(field, center, scale, resolution, level=0.0):
    """
    Marching cubes on a flat distance field.

    Returns (verts, faces, normals) with vertices in world x, y, z order.
    An empty mesh comes back when the grid is too small or never crosses
    `level`.
    """
    if not scale > 0:
        raise ValueError(f"scale must be positive, got {scale}")

    n = int(resolution)
    grid = as_grid(field, n).astype(np.float64)
    if n < 2:
        logger.warning("Grid of %d^3 voxels is too small for marching cubes", n)
        return _empty_mesh()

    # inf from far-away voxels would poison the interpolation
    finite = grid[np.isfinite(grid)]
    if finite.size == 0:
        logger.warning("Field has no finite samples")
        return _empty_mesh()
    grid = np.nan_to_num(grid, nan=finite.max(),
                         posinf=finite.max(), neginf=finite.min())

    if not grid.min() < level < grid.max():
        logger.warning("Level %.4f outside field range [%.4f, %.4f], no surface",
                       level, grid.min(), grid.max())
        return _empty_mesh()

    logger.info("Marching cubes on %d^3 grid at level %.4f", n, level)
    t0 = time.perf_counter()
    verts, faces, normals, values = marching_cubes(
        grid,
        level=level,
        spacing=(scale, scale, scale)
    )
    t1 = time.perf_counter()

    # grid axes are [z, y, x]; swap to x, y, z and keep the triangle winding
    verts = verts[:, ::-1].astype(np.float64)
    normals = normals[:, ::-1].astype(np.float64)
    faces = faces[:, ::-1].copy()

    # shift to world coordinates
    xs, ys, zs = grid_axes(center, scale, n)
    verts[:, 0] += xs[0]
    verts[:, 1] += ys[0]
    verts[:, 2] += zs[0]

    logger.info("Mesh: %d verts / %d faces (%.1fms)",
                len(verts), len(faces), (t1 - t0) * 1000)
    return verts, faces, normals


# ----------------------------------------------------
# COLORING
# ----------------------------------------------------
@njit(parallel=True, error_model="numpy")
def _escape_at(verts, power, max_iter, bailout):
    out = np.empty(verts.shape[0], dtype=np.float64)
    for v in prange(verts.shape[0]):
        out[v] = escape_kernel(verts[v, 0], verts[v, 1], verts[v, 2],
                               power, max_iter, bailout)
    return out


def vertex_escape_times(verts, power, max_iterations, bailout=BAILOUT):
    """Escape time at every vertex of a (V, 3) array."""
    verts = np.ascontiguousarray(verts, dtype=np.float64).reshape(-1, 3)
    return _escape_at(verts, float(power), int(max_iterations), float(bailout))


def escape_time_to_color(escape_times):
    """Convert escape times to RGB colors using an inferno-like colormap.

    Values are normalized to their own range first, so only relative
    variation shows.
    """
    escape_times = np.asarray(escape_times, dtype=np.float64)
    if escape_times.size == 0:
        return np.zeros((0, 3), dtype=np.uint8)

    vmin, vmax = escape_times.min(), escape_times.max()
    if vmax - vmin < 0.001:
        t = np.zeros_like(escape_times)
    else:
        t = (escape_times - vmin) / (vmax - vmin)

    # black -> purple -> red -> orange -> yellow
    r = np.clip(1.5 * t - 0.1, 0, 1)
    g = np.clip(1.5 * t - 0.5, 0, 1)
    b = np.clip(2.5 * (0.4 - np.abs(t - 0.3)), 0, 1)

    colors = np.stack([r, g, b], axis=1)
    return (colors * 255).astype(np.uint8)


# ----------------------------------------------------
# STL OUTPUT
# ----------------------------------------------------
def save_stl(verts, faces, path):
    """Write a binary STL of the mesh, creating the parent directory."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    m = stl_mesh.Mesh(np.zeros(len(faces), dtype=stl_mesh.Mesh.dtype))
    m.vectors = np.asarray(verts)[np.asarray(faces)]
    m.save(str(path))

    logger.info("Saved STL: %s (%d faces)", path, len(faces))
    return path
