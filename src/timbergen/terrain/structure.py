"""Structural validation: remove voxels with no support chain to the ground.

A voxel is supported if it sits on layer 0, if the voxel directly below is
supported, or if it reaches a supported voxel through at most `max_overhang`
consecutive lateral steps on its own layer. Chains only ever move down or
sideways, so support can be settled layer by layer from the bottom up.
"""

from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import GeneratorConfig, StructureConfig
from ..exceptions import StructuralInvariantError
from ..grid import VoxelGrid
from ..types import CARDINAL_DIRECTIONS, DIRECTION_DELTAS, Coord, VoxelState

logger = structlog.get_logger()

# 4-connected neighbourhood within one (z, x) layer
LATERAL_STRUCTURE = ndimage.generate_binary_structure(2, 1)


@dataclass
class StructureReport:
    """Outcome of a validation run."""

    passes: int = 0
    removed_per_pass: list[int] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return sum(self.removed_per_pass)


def supported_mask(voxels: NDArray[np.bool_], max_overhang: int) -> NDArray[np.bool_]:
    """Compute which solid voxels have a support chain.

    Args:
        voxels: Solid mask indexed [y][z][x].
        max_overhang: Consecutive lateral steps allowed before a chain
            must step down again.

    Returns:
        Boolean array, same shape as voxels, True for supported voxels.
    """
    supported = np.zeros_like(voxels, dtype=bool)
    if voxels.shape[0] == 0:
        return supported

    supported[0] = voxels[0]
    for y in range(1, voxels.shape[0]):
        solid = voxels[y]
        layer = solid & supported[y - 1]
        # iterations=0 would mean "until stable" to scipy
        if max_overhang > 0 and layer.any():
            layer = ndimage.binary_dilation(
                layer,
                structure=LATERAL_STRUCTURE,
                iterations=max_overhang,
                mask=solid,
            )
        supported[y] = layer
    return supported


def has_support(grid: VoxelGrid, pos: Coord, max_overhang: int) -> bool:
    """Search for a support chain from a single voxel.

    Depth-first over (position, lateral run) states with an explicit stack.
    Each position is revisited only when reached with a shorter lateral run
    than before, so the search terminates on any voxel arrangement.
    """
    if not grid.is_solid(pos):
        return False

    best_run: dict[Coord, int] = {}
    stack: list[tuple[Coord, int]] = [(pos, 0)]
    while stack:
        current, run = stack.pop()
        if current in best_run and best_run[current] <= run:
            continue
        best_run[current] = run

        x, y, z = current
        if y == 0:
            return True

        below = (x, y - 1, z)
        if grid.is_solid(below):
            stack.append((below, 0))

        if run < max_overhang:
            for direction in CARDINAL_DIRECTIONS:
                dx, dz = DIRECTION_DELTAS[direction]
                neighbor = (x + dx, y, z + dz)
                if grid.is_solid(neighbor):
                    stack.append((neighbor, run + 1))
    return False


class StructuralValidator:
    """Removes floating and over-extended voxels until the grid is stable."""

    def __init__(self, config: StructureConfig):
        self.config = config

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "StructuralValidator":
        return cls(config.structure)

    def fix(self, grid: VoxelGrid) -> StructureReport:
        """Remove unsupported voxels, repeating until a pass removes nothing.

        Raises:
            StructuralInvariantError: If a pass ever leaves more solid voxels
                than it started with.
        """
        report = StructureReport()
        if not self.config.enabled:
            logger.info("structure_skipped", reason="disabled")
            return report

        while True:
            before = grid.solid_count()
            removed = self.run_pass(grid)
            after = grid.solid_count()
            if after > before:
                raise StructuralInvariantError(
                    f"Solid count rose from {before} to {after} in pass {report.passes + 1}"
                )

            report.passes += 1
            report.removed_per_pass.append(removed)
            logger.debug("structure_pass", number=report.passes, removed=removed)
            if removed == 0:
                break

        logger.info("structure_validated", passes=report.passes, removed=report.removed)
        return report

    def run_pass(self, grid: VoxelGrid) -> int:
        """Single removal pass.

        Returns:
            Number of voxels removed.
        """
        voxels = grid.to_array()
        unsupported = voxels & ~supported_mask(voxels, self.config.max_overhang)
        for y, z, x in np.argwhere(unsupported):
            grid.set((int(x), int(y), int(z)), VoxelState.AIR)
        return int(np.count_nonzero(unsupported))
