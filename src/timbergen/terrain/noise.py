"""Coherent noise sampling for terrain generation.

Provides seeded OpenSimplex fBm and ridged multifractal fields that can be
sampled at single points or evaluated over whole coordinate grids.
"""

from enum import Enum

import numpy as np
from numpy.typing import NDArray
from opensimplex import OpenSimplex

from ..config import NoiseConfig
from ..exceptions import ConfigurationError


class NoiseKind(str, Enum):
    """Fractal variant used to combine octaves."""

    PLAIN = "plain"
    RIDGED = "ridged"


class NoiseField:
    """Seeded multi-octave noise field.

    Each octave samples `noise(coord * frequency)` weighted by `amplitude`;
    amplitude is multiplied by persistence and frequency by lacunarity after
    every octave. The sum is divided by the total amplitude so the output stays
    roughly in [-1, 1] whatever the octave count.

    Ridged octaves use `(1 - |n|)^2` rescaled to [-1, 1], which turns the zero
    crossings of the underlying noise into sharp crests.
    """

    def __init__(
        self,
        seed: int,
        kind: NoiseKind = NoiseKind.PLAIN,
        octaves: int = 1,
        frequency: float = 0.01,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
    ):
        if octaves < 1:
            raise ConfigurationError(f"Noise needs at least one octave, got {octaves}")
        if frequency <= 0 or persistence <= 0 or lacunarity <= 0:
            raise ConfigurationError(
                "Noise frequency, persistence and lacunarity must be positive"
            )

        self.seed = seed
        self.kind = NoiseKind(kind)
        self.octaves = octaves
        self.frequency = frequency
        self.persistence = persistence
        self.lacunarity = lacunarity
        self._generator = OpenSimplex(seed=seed)

    @classmethod
    def from_config(
        cls,
        seed: int,
        config: NoiseConfig,
        kind: NoiseKind = NoiseKind.PLAIN,
    ) -> "NoiseField":
        """Create a field from a NoiseConfig block."""
        return cls(
            seed,
            kind=kind,
            octaves=config.octaves,
            frequency=config.frequency,
            persistence=config.persistence,
            lacunarity=config.lacunarity,
        )

    @property
    def max_amplitude(self) -> float:
        """Sum of all octave amplitudes."""
        return sum(self.persistence**i for i in range(self.octaves))

    def _shape(self, raw):
        if self.kind == NoiseKind.RIDGED:
            ridge = 1.0 - np.abs(raw)
            return 2.0 * ridge * ridge - 1.0
        return raw

    def sample2(self, x: float, z: float) -> float:
        """Sample the field at a 2D point."""
        total = 0.0
        amplitude = 1.0
        frequency = self.frequency
        for _ in range(self.octaves):
            raw = float(self._generator.noise2(x * frequency, z * frequency))
            total += amplitude * self._shape(raw)
            amplitude *= self.persistence
            frequency *= self.lacunarity
        return float(total / self.max_amplitude)

    def sample3(self, x: float, y: float, z: float) -> float:
        """Sample the field at a 3D point."""
        total = 0.0
        amplitude = 1.0
        frequency = self.frequency
        for _ in range(self.octaves):
            raw = float(
                self._generator.noise3(x * frequency, y * frequency, z * frequency)
            )
            total += amplitude * self._shape(raw)
            amplitude *= self.persistence
            frequency *= self.lacunarity
        return float(total / self.max_amplitude)

    def field2(
        self,
        xs: NDArray[np.floating],
        zs: NDArray[np.floating],
    ) -> NDArray[np.float64]:
        """Evaluate the field over a grid of columns.

        Args:
            xs: 1D array of x coordinates.
            zs: 1D array of z coordinates.

        Returns:
            Array of shape (len(zs), len(xs)) indexed [z][x].
        """
        xs = np.asarray(xs, dtype=np.float64)
        zs = np.asarray(zs, dtype=np.float64)
        total = np.zeros((zs.size, xs.size), dtype=np.float64)
        amplitude = 1.0
        frequency = self.frequency
        for _ in range(self.octaves):
            raw = self._generator.noise2array(xs * frequency, zs * frequency)
            total += amplitude * self._shape(raw)
            amplitude *= self.persistence
            frequency *= self.lacunarity
        return total / self.max_amplitude

    def field3(
        self,
        xs: NDArray[np.floating],
        ys: NDArray[np.floating],
        zs: NDArray[np.floating],
    ) -> NDArray[np.float64]:
        """Evaluate the field over a 3D block.

        Args:
            xs: 1D array of x coordinates.
            ys: 1D array of y (height) coordinates.
            zs: 1D array of z coordinates.

        Returns:
            Array of shape (len(ys), len(zs), len(xs)) indexed [y][z][x],
            matching the voxel grid layout.
        """
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        zs = np.asarray(zs, dtype=np.float64)
        total = np.zeros((ys.size, zs.size, xs.size), dtype=np.float64)
        amplitude = 1.0
        frequency = self.frequency
        for _ in range(self.octaves):
            # noise3array returns [z][y][x] for its (x, y, z) arguments
            raw = self._generator.noise3array(
                xs * frequency, ys * frequency, zs * frequency
            )
            total += amplitude * self._shape(np.transpose(raw, (1, 0, 2)))
            amplitude *= self.persistence
            frequency *= self.lacunarity
        return total / self.max_amplitude


def to_unit(values: NDArray[np.floating]) -> NDArray[np.floating]:
    """Map noise from [-1, 1] to [0, 1], clipping stray values."""
    return np.clip((values + 1.0) / 2.0, 0.0, 1.0)


def smoothstep(edge0: float, edge1: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
    """Smooth Hermite interpolation between 0 and 1.

    Args:
        edge0: Lower edge of transition.
        edge1: Upper edge of transition.
        x: Input values.

    Returns:
        Smoothly interpolated values in [0, 1].
    """
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)
