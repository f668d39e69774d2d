"""
Fractal parameters and defaults.

`FractalParameters` is the immutable value that travels with a render or
export job. It validates itself on construction; the numeric functions it
forwards to never validate anything.
"""

import json
import numbers
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict

import mandelbulb_math
import mandelbulb_volume

# ----------------------------------------------------
# DEFAULTS
# ----------------------------------------------------
POWER = 8.0
MAX_ITER = 32
BAILOUT = mandelbulb_math.BAILOUT

# Grid defaults: 64^3 voxels spanning roughly [-1.5, 1.5)
N = 64
SCALE = 3.0 / N
CENTER = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class FractalParameters:
    """Power, iteration bound and bailout radius of one evaluation."""
    power: float = POWER
    max_iterations: int = MAX_ITER
    bailout_radius: float = BAILOUT

    def __post_init__(self):
        if not self.power >= 1.0:
            raise ValueError(f"power must be >= 1, got {self.power}")
        if (not isinstance(self.max_iterations, numbers.Integral)
                or isinstance(self.max_iterations, bool) or self.max_iterations < 1):
            raise ValueError(
                f"max_iterations must be a positive integer, got {self.max_iterations}")
        if not self.bailout_radius > 0.0:
            raise ValueError(
                f"bailout_radius must be positive, got {self.bailout_radius}")

    def iterate(self, z, c):
        return mandelbulb_math.iterate_point(z, c, self.power)

    def distance(self, pos):
        return mandelbulb_math.distance_estimate(
            pos, self.power, self.max_iterations, self.bailout_radius)

    def contains(self, c):
        return mandelbulb_math.is_in_set(
            c, self.power, self.max_iterations, self.bailout_radius)

    def escape_time(self, c):
        return mandelbulb_math.escape_time(
            c, self.power, self.max_iterations, self.bailout_radius)

    def sample_volume(self, center=CENTER, scale=SCALE, resolution=N):
        return mandelbulb_volume.sample_volume(
            center, scale, self.power, self.max_iterations, resolution,
            self.bailout_radius)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FractalParameters":
        return cls(
            power=float(data.get("power", POWER)),
            max_iterations=data.get("max_iterations", MAX_ITER),
            bailout_radius=float(data.get("bailout_radius", BAILOUT)),
        )

    @classmethod
    def from_json(cls, path: Path) -> "FractalParameters":
        """Load parameters from a JSON file; missing keys take the defaults."""
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def save(self, path: Path) -> None:
        """Save parameters to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default parameters
DEFAULT_PARAMS = FractalParameters()
