"""Cliff overhangs: short ledges extended out from steep drops."""

import numpy as np
import structlog

from ..config import GeneratorConfig, OverhangConfig, SeedOffset, derive_seed
from ..grid import VoxelGrid
from ..types import CARDINAL_DIRECTIONS, DIRECTION_DELTAS, Coord, VoxelState

logger = structlog.get_logger()


def find_cliffs(grid: VoxelGrid, min_cliff_height: int) -> list[Coord]:
    """Find surface voxels that stand at least min_cliff_height above a neighbour.

    Border columns are skipped so every cliff has four neighbours.

    Returns:
        Cliff-top coordinates ordered by z, then x.
    """
    if grid.width < 3 or grid.depth < 3:
        return []

    heights = grid.surface_heights()
    center = heights[1:-1, 1:-1]
    drops = np.stack([
        center - heights[:-2, 1:-1],
        center - heights[2:, 1:-1],
        center - heights[1:-1, :-2],
        center - heights[1:-1, 2:],
    ])
    mask = (drops >= min_cliff_height).any(axis=0)

    return [
        (int(x) + 1, int(center[z, x]), int(z) + 1)
        for z, x in np.argwhere(mask)
    ]


def overhang_direction(grid: VoxelGrid, cliff: Coord) -> tuple[int, int]:
    """Horizontal direction (dx, dz) toward the lowest neighbouring column."""
    x, _, z = cliff
    best = DIRECTION_DELTAS[CARDINAL_DIRECTIONS[0]]
    lowest = None
    for direction in CARDINAL_DIRECTIONS:
        dx, dz = DIRECTION_DELTAS[direction]
        height = grid.surface_height(x + dx, z + dz)
        if lowest is None or height < lowest:
            lowest = height
            best = (dx, dz)
    return best


class OverhangGenerator:
    """Extends ledges of up to three voxels out over cliff faces."""

    def __init__(self, config: OverhangConfig, seed: int):
        self.config = config
        self.rng = np.random.default_rng(derive_seed(seed, SeedOffset.OVERHANGS))

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "OverhangGenerator":
        return cls(config.overhangs, config.seed)

    def generate(self, grid: VoxelGrid) -> int:
        """Add overhangs to grid.

        Returns:
            Number of voxels added.
        """
        if not self.config.enabled:
            logger.info("overhangs_skipped", reason="disabled")
            return 0

        cliffs = find_cliffs(grid, self.config.min_cliff_height)
        added = 0
        ledges = 0
        for cliff in cliffs:
            if self.rng.random() < self.config.chance:
                added += self.extend_ledge(grid, cliff)
                ledges += 1

        logger.info("overhangs_generated", cliffs=len(cliffs), ledges=ledges, voxels=added)
        return added

    def extend_ledge(self, grid: VoxelGrid, cliff: Coord) -> int:
        """Extend a ledge from cliff toward its lowest neighbour.

        Inner ledge voxels sometimes get one extra voxel underneath.

        Returns:
            Number of voxels added.
        """
        length = int(self.rng.integers(1, self.config.max_length + 1))
        dx, dz = overhang_direction(grid, cliff)
        x, y, z = cliff

        added = 0
        for dist in range(1, length + 1):
            pos = (x + dx * dist, y, z + dz * dist)
            if not grid.in_bounds(pos):
                break
            if not grid.is_solid(pos):
                grid.set(pos, VoxelState.SOLID)
                added += 1

            if self.rng.random() > 0.5 and dist < length:
                below = (pos[0], y - 1, pos[2])
                if grid.in_bounds(below) and not grid.is_solid(below):
                    grid.set(below, VoxelState.SOLID)
                    added += 1
        return added
