"""Heightmap generation: layered noise, terracing and edge falloff."""

from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from ..config import GeneratorConfig, HeightmapConfig, SeedOffset, derive_seed
from .noise import NoiseField, NoiseKind, smoothstep, to_unit

logger = structlog.get_logger()


@dataclass
class HeightmapStats:
    """Summary of how varied a heightmap is."""

    min_height: float
    max_height: float
    mean_height: float
    unique_heights: int
    mean_variation: float
    interest_score: float


class HeightmapGenerator:
    """Produces the per-column height array that seeds the voxel grid.

    Three noise layers are blended per column: a broad fBm base, an optional
    ridged "peaks" layer and an optional fine detail layer. Each layer owns its
    own noise field seeded from the run seed plus a fixed offset.
    """

    def __init__(
        self,
        map_size: int,
        terrain_top: int,
        seed: int,
        config: HeightmapConfig,
    ):
        self.map_size = map_size
        self.terrain_top = terrain_top
        self.config = config

        self.base_noise = NoiseField.from_config(
            derive_seed(seed, SeedOffset.HEIGHTMAP_BASE), config.base
        )
        self.peak_noise = (
            NoiseField.from_config(
                derive_seed(seed, SeedOffset.HEIGHTMAP_PEAKS),
                config.peaks,
                kind=NoiseKind.RIDGED,
            )
            if config.peaks_enabled
            else None
        )
        self.detail_noise = (
            NoiseField.from_config(
                derive_seed(seed, SeedOffset.HEIGHTMAP_DETAIL), config.detail
            )
            if config.detail_enabled
            else None
        )

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "HeightmapGenerator":
        return cls(config.map_size, config.terrain_top, config.seed, config.heightmap)

    def generate(self) -> NDArray[np.float32]:
        """Generate the heightmap.

        Returns:
            Integer-valued heights indexed [z][x], shape (map_size, map_size),
            each in [min_height, terrain_top].
        """
        blended = self.blend()

        if self.config.terrace_steps > 0 and self.config.terrace_strength > 0:
            blended = apply_terracing(
                blended, self.config.terrace_steps, self.config.terrace_strength
            )

        if self.config.falloff:
            blended = apply_radial_falloff(blended, self.config.falloff_strength)

        heightmap = scale_to_heights(blended, self.config.min_height, self.terrain_top)

        stats = heightmap_stats(heightmap, self.terrain_top)
        logger.info(
            "heightmap_generated",
            size=self.map_size,
            min_height=stats.min_height,
            max_height=stats.max_height,
            unique_heights=stats.unique_heights,
            interest_score=round(stats.interest_score, 1),
        )
        return heightmap

    def blend(self) -> NDArray[np.float64]:
        """Blend the noise layers into a [0, 1] field indexed [z][x].

        Weights of the active layers are normalized to sum to one, so disabling
        a layer keeps the output range intact.
        """
        coords = np.arange(self.map_size, dtype=np.float64)
        config = self.config

        base = to_unit(self.base_noise.field2(coords, coords)) ** config.base_exponent
        combined = config.base_weight * base
        total_weight = config.base_weight

        if self.peak_noise is not None:
            peaks = to_unit(self.peak_noise.field2(coords, coords)) ** config.peaks_exponent
            combined = combined + config.peaks_weight * peaks
            total_weight += config.peaks_weight

        if self.detail_noise is not None:
            detail = to_unit(self.detail_noise.field2(coords, coords))
            combined = combined + config.detail_weight * detail
            total_weight += config.detail_weight

        if total_weight <= 0:
            return np.zeros((self.map_size, self.map_size), dtype=np.float64)
        return np.clip(combined / total_weight, 0.0, 1.0)


def apply_terracing(
    values: NDArray[np.floating],
    steps: int,
    strength: float,
) -> NDArray[np.floating]:
    """Pull values toward discrete plateau levels.

    Args:
        values: Field in [0, 1].
        steps: Number of plateau levels.
        strength: 0 keeps the raw value, 1 snaps fully to the plateau.

    Returns:
        Terraced field in [0, 1].
    """
    terraced = np.floor(values * steps) / steps
    return values * (1.0 - strength) + terraced * strength


def apply_radial_falloff(
    values: NDArray[np.floating],
    strength: float,
) -> NDArray[np.floating]:
    """Lower the field toward the map corners.

    The center keeps its full value; a corner keeps (1 - strength) of it.

    Args:
        values: Field in [0, 1], shape (depth, width).
        strength: Fraction removed at maximum distance.

    Returns:
        Field with falloff applied.
    """
    depth, width = values.shape
    cz, cx = depth / 2, width / 2
    max_dist = np.sqrt(cx**2 + cz**2)

    zz, xx = np.meshgrid(
        np.arange(depth, dtype=np.float64),
        np.arange(width, dtype=np.float64),
        indexing="ij",
    )
    dist = np.sqrt((xx - cx) ** 2 + (zz - cz) ** 2) / max_dist

    falloff = 1.0 - smoothstep(0.0, 1.0, dist) ** 2
    return values * ((1.0 - strength) + falloff * strength)


def scale_to_heights(
    values: NDArray[np.floating],
    min_height: int,
    terrain_top: int,
) -> NDArray[np.float32]:
    """Map a [0, 1] field to whole column heights.

    Args:
        values: Blended field in [0, 1].
        min_height: Lowest allowed height.
        terrain_top: Highest allowed height (top grid layer or below).

    Returns:
        Floored heights clamped to [min_height, terrain_top].
    """
    heights = min_height + values * (terrain_top - min_height)
    return np.clip(np.floor(heights), min_height, terrain_top).astype(np.float32)


def heightmap_stats(heightmap: NDArray[np.floating], terrain_top: int) -> HeightmapStats:
    """Measure height range, distinct levels and local variation.

    The interest score averages three percentages: how much of the available
    height range is used, how many distinct levels appear, and ten times the
    mean absolute difference to the 4-neighbours.
    """
    lo = float(heightmap.min())
    hi = float(heightmap.max())
    unique = int(np.unique(np.floor(heightmap)).size)

    diffs = np.zeros_like(heightmap, dtype=np.float64)
    counts = np.zeros_like(heightmap, dtype=np.float64)
    dz = np.abs(np.diff(heightmap, axis=0))
    dx = np.abs(np.diff(heightmap, axis=1))
    diffs[:-1, :] += dz
    diffs[1:, :] += dz
    diffs[:, :-1] += dx
    diffs[:, 1:] += dx
    counts[:-1, :] += 1
    counts[1:, :] += 1
    counts[:, :-1] += 1
    counts[:, 1:] += 1
    variation = float(np.mean(diffs / np.maximum(counts, 1)))

    levels = max(terrain_top + 1, 1)
    range_score = (hi - lo) / levels * 100
    unique_score = unique / levels * 100
    interest = (range_score + unique_score + variation * 10) / 3

    return HeightmapStats(
        min_height=lo,
        max_height=hi,
        mean_height=float(heightmap.mean()),
        unique_heights=unique,
        mean_variation=variation,
        interest_score=interest,
    )
