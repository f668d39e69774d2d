"""
Mandelbulb field math.

Power-N spherical iteration of a 3D point:

    z -> z**power + c

where z**power raises the radius to `power` and multiplies both the polar
angle and the azimuth by `power`. Everything here is a pure function of its
arguments. The numba kernels take plain floats; the public wrappers accept any
3-sequence as a point and coerce it.
"""

import math

from numba import njit

# ----------------------------------------------------
# PARAMETERS
# ----------------------------------------------------
EPSILON = 1e-12      # radius treated as the origin
BAILOUT = 2.0        # escape radius
LOG2 = math.log(2.0)


# ----------------------------------------------------
# NUMBA ITERATION ENGINE
# ----------------------------------------------------
@njit(error_model="numpy")
def _bulb_step(zx, zy, zz, cx, cy, cz, power, r, dr, with_derivative):
    """
    One spherical power step. `r` must be |z|.

    Returns (x, y, z, dr). The running derivative is only advanced when
    `with_derivative` is set, otherwise `dr` comes back untouched.
    """
    if r < EPSILON:
        # angles are undefined at the origin, and r**(power-1) vanishes there
        if with_derivative:
            dr = dr + 1.0
        return cx, cy, cz, dr

    theta = math.acos(min(max(zz / r, -1.0), 1.0)) * power
    phi = math.atan2(zy, zx) * power
    zr = r ** power
    if not math.isfinite(zr):
        # overflow: inf * sin(0) would turn the point into NaN
        return math.inf, math.inf, math.inf, math.inf

    sin_theta = math.sin(theta)
    x = zr * sin_theta * math.cos(phi) + cx
    y = zr * sin_theta * math.sin(phi) + cy
    z = zr * math.cos(theta) + cz

    if with_derivative:
        dr = r ** (power - 1.0) * power * dr + 1.0
    return x, y, z, dr


@njit(error_model="numpy")
def iterate_kernel(zx, zy, zz, cx, cy, cz, power):
    r = math.sqrt(zx * zx + zy * zy + zz * zz)
    x, y, z, _ = _bulb_step(zx, zy, zz, cx, cy, cz, power, r, 1.0, False)
    return x, y, z


@njit(error_model="numpy")
def distance_kernel(px, py, pz, power, max_iter, bailout):
    """Distance estimate from (px, py, pz) to the bulb surface."""
    zx, zy, zz = px, py, pz
    dr = 1.0
    r = 0.0

    for _ in range(max_iter):
        r = math.sqrt(zx * zx + zy * zy + zz * zz)
        # escape check, NaN counts as escaped
        if not r <= bailout:
            break
        zx, zy, zz, dr = _bulb_step(zx, zy, zz, px, py, pz, power, r, dr, True)

    if r < EPSILON:
        # r * log(r) -> 0
        return 0.0
    if math.isinf(r):
        # escaped to infinity, dr may be infinite too
        return math.inf
    return 0.5 * math.log(r) * r / dr


@njit(error_model="numpy")
def membership_kernel(cx, cy, cz, power, max_iter, bailout):
    """Return True if bounded, False if escaped."""
    zx = 0.0
    zy = 0.0
    zz = 0.0
    r = 0.0

    for _ in range(max_iter):
        if not r <= bailout:
            return False
        zx, zy, zz, _ = _bulb_step(zx, zy, zz, cx, cy, cz, power, r, 1.0, False)
        r = math.sqrt(zx * zx + zy * zy + zz * zz)

    return True


@njit(error_model="numpy")
def _smooth_fraction(r, power, bailout):
    """
    Fractional part of the smooth iteration count, clamped to [0, 1].

    1 right at the bailout radius, 0 once r is as large as one more step
    could have made it.
    """
    if not math.isfinite(r):
        return 0.0

    log_bailout = math.log(bailout) if bailout > 1.0 else LOG2
    ratio = math.log(r) / log_bailout
    if ratio <= 1.0:
        return 1.0

    log_power = math.log(power) if power > 1.0 else LOG2
    frac = 1.0 - math.log(ratio) / log_power
    return min(max(frac, 0.0), 1.0)


@njit(error_model="numpy")
def escape_kernel(cx, cy, cz, power, max_iter, bailout):
    """Normalized smooth escape time, 0.0 for points that never escape."""
    zx = 0.0
    zy = 0.0
    zz = 0.0

    for i in range(max_iter):
        r = math.sqrt(zx * zx + zy * zy + zz * zz)
        if not r <= bailout:
            return (i + _smooth_fraction(r, power, bailout)) / max_iter
        zx, zy, zz, _ = _bulb_step(zx, zy, zz, cx, cy, cz, power, r, 1.0, False)

    return 0.0


# ----------------------------------------------------
# PUBLIC API
# ----------------------------------------------------
def as_point(p):
    """Coerce any 3-sequence to a tuple of three floats."""
    x, y, z = p
    return float(x), float(y), float(z)


def iterate_point(z, c, power):
    """Single step of the power-N iteration: returns z**power + c."""
    zx, zy, zz = as_point(z)
    cx, cy, cz = as_point(c)
    nx, ny, nz = iterate_kernel(zx, zy, zz, cx, cy, cz, float(power))
    return float(nx), float(ny), float(nz)


def distance_estimate(pos, power, max_iterations, bailout=BAILOUT):
    """
    Estimated signed distance from `pos` to the fractal surface.

    Positive outside the set, negative (or 0) deep inside it. Returns 0.0 at
    the origin and +inf for infinite positions; never raises.
    """
    px, py, pz = as_point(pos)
    return float(distance_kernel(px, py, pz, float(power),
                                 int(max_iterations), float(bailout)))


def is_in_set(c, power, max_iterations, bailout=BAILOUT):
    """True if the orbit of `c` stays within `bailout` for `max_iterations` steps."""
    cx, cy, cz = as_point(c)
    return bool(membership_kernel(cx, cy, cz, float(power),
                                  int(max_iterations), float(bailout)))


def escape_time(c, power, max_iterations, bailout=BAILOUT):
    """Smooth escape time in [0, 1] for coloring; 0.0 inside the set."""
    cx, cy, cz = as_point(c)
    return float(escape_kernel(cx, cy, cz, float(power),
                               int(max_iterations), float(bailout)))
