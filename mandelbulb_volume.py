"""
Dense grid sampling of the Mandelbulb field.

All volumes are flat arrays of length N**3 laid out as

    index = x + y * N + z * N * N

with voxel (x, y, z) at world position `center + (idx - N // 2) * scale`
on each axis. The z loop is split across threads with prange; every slab
writes its own index range.
"""

import logging
import time

import numpy as np
from numba import njit, prange

from mandelbulb_math import (
    BAILOUT,
    as_point,
    distance_kernel,
    escape_kernel,
    membership_kernel,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------
# NUMBA VOLUME KERNELS
# ----------------------------------------------------
@njit(parallel=True, error_model="numpy")
def _fill_distance(cx, cy, cz, scale, power, max_iter, bailout, n):
    field = np.empty(n * n * n, dtype=np.float64)
    half = n // 2

    for k in prange(n):
        pz = (k - half) * scale + cz
        for j in range(n):
            py = (j - half) * scale + cy
            for i in range(n):
                px = (i - half) * scale + cx
                field[i + j * n + k * n * n] = distance_kernel(
                    px, py, pz, power, max_iter, bailout)

    return field


@njit(parallel=True, error_model="numpy")
def _fill_membership(cx, cy, cz, scale, power, max_iter, bailout, n):
    field = np.zeros(n * n * n, dtype=np.uint8)
    half = n // 2

    for k in prange(n):
        pz = (k - half) * scale + cz
        for j in range(n):
            py = (j - half) * scale + cy
            for i in range(n):
                px = (i - half) * scale + cx
                if membership_kernel(px, py, pz, power, max_iter, bailout):
                    field[i + j * n + k * n * n] = 1

    return field


@njit(parallel=True, error_model="numpy")
def _fill_escape(cx, cy, cz, scale, power, max_iter, bailout, n):
    field = np.empty(n * n * n, dtype=np.float64)
    half = n // 2

    for k in prange(n):
        pz = (k - half) * scale + cz
        for j in range(n):
            py = (j - half) * scale + cy
            for i in range(n):
                px = (i - half) * scale + cx
                field[i + j * n + k * n * n] = escape_kernel(
                    px, py, pz, power, max_iter, bailout)

    return field


def _run(kernel, label, center, scale, power, max_iterations, resolution, bailout):
    cx, cy, cz = as_point(center)
    n = max(int(resolution), 0)

    t0 = time.perf_counter()
    field = kernel(cx, cy, cz, float(scale), float(power),
                   int(max_iterations), float(bailout), n)
    t1 = time.perf_counter()

    logger.debug("%s volume %d^3 (power=%.3f, iter=%d): %.1fms",
                 label, n, power, max_iterations, (t1 - t0) * 1000)
    return field


# ----------------------------------------------------
# PUBLIC API
# ----------------------------------------------------
def sample_volume(center, scale, power, max_iterations, resolution,
                  bailout=BAILOUT):
    """
    Distance estimate at every voxel of an N**3 grid around `center`.

    Returns a float64 array of length N**3 (empty for N <= 0). Each value is
    exactly what `distance_estimate` returns for that voxel's position.
    """
    return _run(_fill_distance, "Distance", center, scale, power,
                max_iterations, resolution, bailout)


def sample_membership(center, scale, power, max_iterations, resolution,
                      bailout=BAILOUT):
    """Set membership per voxel as uint8 (1 = bounded, 0 = escaped)."""
    return _run(_fill_membership, "Membership", center, scale, power,
                max_iterations, resolution, bailout)


def sample_escape_time(center, scale, power, max_iterations, resolution,
                       bailout=BAILOUT):
    """Smooth escape time per voxel, same layout as `sample_volume`."""
    return _run(_fill_escape, "Escape", center, scale, power,
                max_iterations, resolution, bailout)


def grid_axes(center, scale, resolution):
    """World coordinates of the grid lines along x, y and z."""
    n = max(int(resolution), 0)
    offsets = (np.arange(n) - n // 2) * float(scale)
    cx, cy, cz = as_point(center)
    return offsets + cx, offsets + cy, offsets + cz


def as_grid(field, resolution):
    """View a flat field as a 3D array indexed [z, y, x]."""
    n = int(resolution)
    field = np.asarray(field)
    if field.size != n * n * n:
        raise ValueError(
            f"Field has {field.size} values, expected {n}^3 = {n * n * n}")
    return field.reshape(n, n, n)
