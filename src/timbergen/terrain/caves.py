"""Cave carving: worm tunnels, noise caverns and surface entrances."""

import math
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
import structlog

from ..config import CaveConfig, GeneratorConfig, SeedOffset, derive_seed
from ..grid import VoxelGrid
from ..types import Coord, VoxelState
from .noise import NoiseField

logger = structlog.get_logger()

# Random probes per tunnel before giving up on finding rock to start in
WORM_START_ATTEMPTS = 20

# Thickest cave roof that open_cave_entrances() will break through
MAX_ENTRANCE_ROOF = 2

# Per-step direction jitter; vertical is damped so tunnels stay mostly level
HORIZONTAL_JITTER = 0.5
VERTICAL_JITTER = 0.2


@dataclass
class CaveResult:
    """Summary of the cave stage."""

    tunnels_requested: int = 0
    tunnels_carved: int = 0
    tunnel_voxels: int = 0
    cavern_voxels: int = 0
    entrance_voxels: int = 0

    @property
    def removed(self) -> int:
        return self.tunnel_voxels + self.cavern_voxels + self.entrance_voxels


@lru_cache(maxsize=32)
def sphere_offsets(radius: float) -> tuple[Coord, ...]:
    """Integer offsets within `radius` of the origin."""
    r = int(math.ceil(radius))
    r2 = radius * radius
    return tuple(
        (dx, dy, dz)
        for dy in range(-r, r + 1)
        for dz in range(-r, r + 1)
        for dx in range(-r, r + 1)
        if dx * dx + dy * dy + dz * dz <= r2
    )


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def carve_sphere(
    grid: VoxelGrid,
    center: tuple[float, float, float],
    radius: float,
) -> int:
    """Remove every solid voxel within radius of center.

    Args:
        grid: Grid to carve.
        center: Sphere center, rounded to the nearest voxel.
        radius: Sphere radius in voxels.

    Returns:
        Number of voxels removed.
    """
    cx, cy, cz = _round(center[0]), _round(center[1]), _round(center[2])
    removed = 0
    for dx, dy, dz in sphere_offsets(radius):
        pos = (cx + dx, cy + dy, cz + dz)
        if grid.is_solid(pos):
            grid.set(pos, VoxelState.AIR)
            removed += 1
    return removed


def _normalize(vx: float, vy: float, vz: float) -> tuple[float, float, float] | None:
    length = math.sqrt(vx * vx + vy * vy + vz * vz)
    if length == 0:
        return None
    return vx / length, vy / length, vz / length


class CaveCarver:
    """Carves subterranean voids into a filled grid.

    Worm tunnels run first and form the connective passages; 3D noise then
    opens chambers in an underground height band. Tunnel randomness is drawn
    from a per-tunnel generator keyed on (seed, tunnel index).
    """

    def __init__(self, config: CaveConfig, seed: int, grid_height: int):
        self.config = config
        self.seed = seed
        self.grid_height = grid_height
        self.worm_seed = derive_seed(seed, SeedOffset.CAVE_WORMS)
        self.noise = NoiseField(
            derive_seed(seed, SeedOffset.CAVE_NOISE), frequency=config.cavern_frequency
        )

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "CaveCarver":
        return cls(config.caves, config.seed, config.grid_height)

    def generate(self, grid: VoxelGrid) -> CaveResult:
        """Run the cave stage on grid. A disabled stage leaves grid untouched."""
        result = CaveResult(tunnels_requested=self.config.worm_count)
        if not self.config.enabled:
            logger.info("caves_skipped", reason="disabled")
            return result

        for index in range(self.config.worm_count):
            carved = self.carve_worm(grid, index)
            if carved is None:
                continue
            result.tunnels_carved += 1
            result.tunnel_voxels += carved

        result.cavern_voxels = self.carve_caverns(grid)

        if self.config.open_entrances:
            result.entrance_voxels = open_cave_entrances(grid)

        if result.tunnels_carved < result.tunnels_requested:
            logger.warning(
                "caves_fewer_tunnels",
                requested=result.tunnels_requested,
                carved=result.tunnels_carved,
            )
        logger.info(
            "caves_carved",
            tunnels=result.tunnels_carved,
            tunnel_voxels=result.tunnel_voxels,
            cavern_voxels=result.cavern_voxels,
            entrance_voxels=result.entrance_voxels,
        )
        return result

    def _worm_rng(self, index: int) -> np.random.Generator:
        return np.random.default_rng([self.worm_seed, index])

    def find_worm_start(
        self,
        grid: VoxelGrid,
        rng: np.random.Generator,
    ) -> tuple[float, float, float] | None:
        """Pick a starting point inside rock, biased toward the upper underground.

        Returns:
            (x, y, z) start, or None if no probe landed in rock.
        """
        lo = self.config.min_depth
        for _ in range(WORM_START_ATTEMPTS):
            x = int(rng.integers(grid.width))
            z = int(rng.integers(grid.depth))
            u = float(rng.random())
            hi = min(grid.height - 2, grid.surface_height(x, z) - 1)
            if hi < lo:
                continue
            # sqrt pushes the draw toward hi
            y = lo + (hi - lo) * math.sqrt(u)
            if grid.is_solid((x, _round(y), z)):
                return (float(x), y, float(z))
        return None

    def carve_worm(self, grid: VoxelGrid, index: int) -> int | None:
        """Carve one worm tunnel.

        Returns:
            Voxels removed, or None if no start point was found.
        """
        rng = self._worm_rng(index)
        start = self.find_worm_start(grid, rng)
        if start is None:
            logger.warning("worm_start_not_found", tunnel=index)
            return None

        radius = self.config.worm_radius
        step = self.config.worm_step
        x_max = max(1, grid.width - 2)
        z_max = max(1, grid.depth - 2)
        y_min = self.config.min_depth
        y_max = max(y_min, grid.height - 2)

        x, y, z = start
        u = rng.random(3)
        direction = _normalize(u[0] * 2 - 1, (u[1] - 0.5) * 0.5, u[2] * 2 - 1) or (
            1.0,
            0.0,
            0.0,
        )

        removed = 0
        for _ in range(self.config.worm_length):
            removed += carve_sphere(grid, (x, y, z), radius)

            u = rng.random(3)
            perturbed = _normalize(
                direction[0] + (u[0] - 0.5) * HORIZONTAL_JITTER,
                direction[1] + (u[1] - 0.5) * VERTICAL_JITTER,
                direction[2] + (u[2] - 0.5) * HORIZONTAL_JITTER,
            )
            if perturbed is not None:
                direction = perturbed

            x = min(max(x + direction[0] * step, 1.0), float(x_max))
            y = min(max(y + direction[1] * step, float(y_min)), float(y_max))
            z = min(max(z + direction[2] * step, 1.0), float(z_max))

        return removed

    def carve_caverns(self, grid: VoxelGrid) -> int:
        """Remove rock wherever 3D noise exceeds the cavern threshold.

        Only the band [min_depth, cavern_band_top * grid height) is touched.

        Returns:
            Number of voxels removed.
        """
        lo = self.config.min_depth
        hi = min(grid.height, int(grid.height * self.config.cavern_band_top))
        if hi <= lo:
            return 0

        band = grid.to_array()[lo:hi]
        if not band.any():
            return 0

        values = self.noise.field3(
            np.arange(grid.width),
            np.arange(lo, hi),
            np.arange(grid.depth),
        )
        carve = band & (values > self.config.cavern_threshold)

        for y, z, x in np.argwhere(carve):
            grid.set((int(x), int(y) + lo, int(z)), VoxelState.AIR)
        return int(np.count_nonzero(carve))


def open_cave_entrances(grid: VoxelGrid, max_roof: int = MAX_ENTRANCE_ROOF) -> int:
    """Break thin cave roofs so caves open to the surface.

    For each column, find the first solid voxel (scanning down from the top)
    that sits directly above air. If the roof between it and the surface is at
    most max_roof voxels thick, remove the whole roof.

    Returns:
        Number of voxels removed.
    """
    voxels = grid.to_array()
    removed = 0
    for z in range(grid.depth):
        for x in range(grid.width):
            column = voxels[:, z, x]
            surface = grid.surface_height(x, z)
            if not column[surface]:
                continue
            for y in range(surface, 0, -1):
                if column[y] and not column[y - 1]:
                    roof = surface - y + 1
                    if roof <= max_roof:
                        for ry in range(y, surface + 1):
                            grid.set((x, ry, z), VoxelState.AIR)
                            removed += 1
                    break
    return removed
