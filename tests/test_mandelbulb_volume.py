"""
Tests for grid sampling.

Tests cover:
- Field length and flat index layout
- Batch == pointwise for distance, membership and escape time
- Grid axes and 3D view helpers
"""

import numpy as np
import pytest

from mandelbulb_math import distance_estimate, escape_time, is_in_set
from mandelbulb_volume import (
    as_grid,
    grid_axes,
    sample_escape_time,
    sample_membership,
    sample_volume,
)


# ============== Fixtures ==============

@pytest.fixture
def small_grid():
    """Low-res grid off the origin for fast testing."""
    return {
        "center": (0.1, -0.2, 0.05),
        "scale": 0.3,
        "power": 8.0,
        "max_iterations": 12,
        "resolution": 5,
    }


def voxel_position(grid, x, y, z):
    n = grid["resolution"]
    cx, cy, cz = grid["center"]
    s = grid["scale"]
    return ((x - n // 2) * s + cx, (y - n // 2) * s + cy, (z - n // 2) * s + cz)


# ============== sample_volume ==============

@pytest.mark.parametrize("resolution", [0, 1, 2, 5, 8])
def test_field_length(resolution):
    field = sample_volume((0.0, 0.0, 0.0), 0.25, 8.0, 8, resolution)
    assert field.shape == (resolution ** 3,)
    assert field.dtype == np.float64


def test_negative_resolution_gives_empty_field():
    assert sample_volume((0.0, 0.0, 0.0), 0.25, 8.0, 8, -3).size == 0


def test_batch_matches_pointwise(small_grid):
    field = sample_volume(**small_grid)
    n = small_grid["resolution"]

    for z in range(n):
        for y in range(n):
            for x in range(n):
                expected = distance_estimate(
                    voxel_position(small_grid, x, y, z),
                    small_grid["power"], small_grid["max_iterations"])
                assert field[x + y * n + z * n * n] == pytest.approx(expected, rel=1e-12, abs=1e-15)


def test_center_voxel_at_origin_is_zero():
    n = 7
    field = sample_volume((0.0, 0.0, 0.0), 0.2, 8.0, 16, n)
    half = n // 2
    assert field[half + half * n + half * n * n] == 0.0


def test_x_varies_fastest():
    # grid spans x only beyond the bailout on the high side
    n = 4
    field = sample_volume((0.0, 0.0, 0.0), 1.5, 8.0, 8, n)
    # voxel (3, 2, 2) sits at (1.5, 0, 0); (2, 2, 3) sits at (0, 0, 1.5)
    assert field[3 + 2 * n + 2 * n * n] == pytest.approx(distance_estimate((1.5, 0.0, 0.0), 8.0, 8))
    assert field[2 + 2 * n + 3 * n * n] == pytest.approx(distance_estimate((0.0, 0.0, 1.5), 8.0, 8))


def test_field_is_finite_for_regular_grid():
    field = sample_volume((0.0, 0.0, 0.0), 0.3, 8.0, 16, 10)
    assert np.all(np.isfinite(field))


def test_sign_change_across_surface():
    field = sample_volume((0.0, 0.0, 0.0), 0.25, 8.0, 16, 12)
    assert field.min() < 0.0 < field.max()


def test_custom_bailout_passed_through(small_grid):
    field = sample_volume(**small_grid, bailout=4.0)
    n = small_grid["resolution"]
    expected = distance_estimate(voxel_position(small_grid, 4, 0, 1), small_grid["power"],
                                 small_grid["max_iterations"], bailout=4.0)
    assert field[4 + 0 * n + 1 * n * n] == pytest.approx(expected, rel=1e-12)


# ============== membership / escape volumes ==============

def test_membership_volume_matches_pointwise(small_grid):
    field = sample_membership(**small_grid)
    n = small_grid["resolution"]
    assert field.dtype == np.uint8
    assert field.shape == (n ** 3,)

    for z in range(n):
        for y in range(n):
            for x in range(n):
                inside = is_in_set(voxel_position(small_grid, x, y, z),
                                   small_grid["power"], small_grid["max_iterations"])
                assert field[x + y * n + z * n * n] == int(inside)


def test_escape_volume_matches_pointwise(small_grid):
    field = sample_escape_time(**small_grid)
    n = small_grid["resolution"]

    for z in range(n):
        for y in range(n):
            for x in range(n):
                expected = escape_time(voxel_position(small_grid, x, y, z),
                                       small_grid["power"], small_grid["max_iterations"])
                assert field[x + y * n + z * n * n] == pytest.approx(expected, rel=1e-12, abs=1e-15)


def test_escape_volume_zero_where_bounded(small_grid):
    inside = sample_membership(**small_grid).astype(bool)
    times = sample_escape_time(**small_grid)
    assert np.all(times[inside] == 0.0)
    assert np.all(times[~inside] > 0.0)


# ============== helpers ==============

def test_grid_axes():
    xs, ys, zs = grid_axes((1.0, 2.0, 3.0), 0.5, 4)
    np.testing.assert_allclose(xs, [0.0, 0.5, 1.0, 1.5])
    np.testing.assert_allclose(ys, [1.0, 1.5, 2.0, 2.5])
    np.testing.assert_allclose(zs, [2.0, 2.5, 3.0, 3.5])


def test_as_grid_indexing():
    n = 3
    field = np.arange(n ** 3, dtype=np.float64)
    grid = as_grid(field, n)
    assert grid.shape == (n, n, n)
    # [z, y, x]
    assert grid[2, 1, 0] == field[0 + 1 * n + 2 * n * n]


def test_as_grid_rejects_wrong_length():
    with pytest.raises(ValueError):
        as_grid(np.zeros(10), 3)
