"""Post-generation diagnostics."""

import numpy as np
import structlog
from scipy import ndimage

from ..config import GeneratorConfig
from ..grid import VoxelGrid
from ..types import WaterSource
from .heightmap import HeightmapStats, heightmap_stats

logger = structlog.get_logger()

# Face-adjacent (6-connected) neighbourhood
FACE_STRUCTURE = ndimage.generate_binary_structure(3, 1)


class ValidationResult:
    """Result of grid validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True
        self.stats: HeightmapStats | None = None

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def validate_grid(
    grid: VoxelGrid,
    sources: list[WaterSource],
    config: GeneratorConfig,
) -> ValidationResult:
    """Check a finished grid for structural and placement problems.

    Args:
        grid: Generated voxel grid.
        sources: Water source anchors emitted by the waterway stage.
        config: Generation configuration.

    Returns:
        ValidationResult with any errors/warnings and terrain stats.
    """
    result = ValidationResult()

    _check_ground_layer(grid, result)
    _check_floating_components(grid, result)
    _check_water_sources(grid, sources, result)

    result.stats = heightmap_stats(grid.surface_heights(), config.terrain_top)
    logger.info(
        "terrain_stats",
        min_height=result.stats.min_height,
        max_height=result.stats.max_height,
        unique_heights=result.stats.unique_heights,
        mean_variation=round(result.stats.mean_variation, 3),
        interest_score=round(result.stats.interest_score, 1),
    )

    if result.passed:
        logger.info("validation_passed", warnings=len(result.warnings))
    else:
        logger.warning("validation_failed", errors=len(result.errors))
        for error in result.errors:
            logger.error("validation_error", message=error)

    for warning in result.warnings:
        logger.warning("validation_warning", message=warning)

    return result


def _check_ground_layer(grid: VoxelGrid, result: ValidationResult) -> None:
    """Check that layer 0 is solid everywhere."""
    ground = grid.to_array()[0]
    holes = int(ground.size - np.count_nonzero(ground))
    if holes > 0:
        result.add_warning(f"Ground layer has {holes} air voxels")


def _check_floating_components(grid: VoxelGrid, result: ValidationResult) -> None:
    """Check that every solid component touches the ground layer."""
    voxels = grid.to_array()
    labeled, num_features = ndimage.label(voxels, structure=FACE_STRUCTURE)
    if num_features == 0:
        result.add_error("No solid voxels found")
        return

    grounded = np.unique(labeled[0])
    floating = num_features - int(np.count_nonzero(grounded))
    if floating > 0:
        result.add_error(f"{floating} solid components are not connected to the ground")


def _check_water_sources(
    grid: VoxelGrid,
    sources: list[WaterSource],
    result: ValidationResult,
) -> None:
    """Check water sources sit inside the grid on solid ground."""
    out_of_bounds = 0
    unsupported = 0
    for source in sources:
        if not grid.in_bounds(source.coord):
            out_of_bounds += 1
        elif not grid.is_solid((source.x, source.y - 1, source.z)):
            unsupported += 1

    if out_of_bounds > 0:
        result.add_warning(f"{out_of_bounds} water sources outside the grid")
    if unsupported > 0:
        result.add_warning(f"{unsupported} water sources not resting on solid ground")
