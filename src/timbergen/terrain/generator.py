"""Main terrain generation orchestration."""

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ..config import GeneratorConfig
from ..grid import VoxelGrid
from ..persistence import map_entities, save_timber
from ..types import Coord, WaterSource
from .caves import CaveCarver, CaveResult
from .heightmap import HeightmapGenerator
from .overhangs import OverhangGenerator
from .placement import place_starting_location
from .structure import StructuralValidator, StructureReport
from .validation import ValidationResult, validate_grid
from .waterways import WaterwayCarver, WaterwayResult

logger = structlog.get_logger()


@dataclass
class GenerationResult:
    """Result of terrain generation with per-stage summaries."""

    grid: VoxelGrid
    config: GeneratorConfig
    caves: CaveResult
    overhang_voxels: int
    waterways: WaterwayResult
    structure: StructureReport
    starting_location: Coord
    validation: ValidationResult | None = None
    water_sources: list[WaterSource] = field(default_factory=list)


def generate_terrain(config: GeneratorConfig, validate: bool = True) -> GenerationResult:
    """Generate a complete voxel grid from configuration.

    Stages run in a fixed order, each owning the grid until it returns:
    heightmap, fill, caves, overhangs, waterways, structural validation,
    starting location and (optionally) diagnostics. The heightmap is dropped
    once the grid is filled.

    Args:
        config: Generation configuration.
        validate: Run post-generation diagnostics.

    Returns:
        GenerationResult with the grid and water source anchors.

    Raises:
        ConfigurationError: If the configuration is out of range. Raised
            before any grid is built.
    """
    config.validate_for_run()

    size = config.map_size
    logger.info(
        "generation_started",
        size=size,
        height=config.grid_height,
        seed=config.seed,
    )

    logger.info("stage_started", stage="heightmap")
    heightmap = HeightmapGenerator.from_config(config).generate()

    grid = VoxelGrid(size, config.grid_height, size)
    grid.fill_from_heightmap(heightmap)
    logger.info("grid_filled", solid=grid.solid_count())

    logger.info("stage_started", stage="caves")
    caves = CaveCarver.from_config(config).generate(grid)

    logger.info("stage_started", stage="overhangs")
    overhang_voxels = OverhangGenerator.from_config(config).generate(grid)

    logger.info("stage_started", stage="waterways")
    waterways = WaterwayCarver.from_config(config).generate(grid)

    logger.info("stage_started", stage="structure")
    structure = StructuralValidator.from_config(config).fix(grid)

    logger.info("stage_started", stage="starting_location")
    starting_location = place_starting_location(grid)

    result = GenerationResult(
        grid=grid,
        config=config,
        caves=caves,
        overhang_voxels=overhang_voxels,
        waterways=waterways,
        structure=structure,
        starting_location=starting_location,
        water_sources=waterways.sources,
    )

    if validate:
        result.validation = validate_grid(grid, result.water_sources, config)

    logger.info(
        "generation_finished",
        solid=grid.solid_count(),
        water_sources=len(result.water_sources),
    )
    return result


def generate_and_save(
    config: GeneratorConfig,
    save_path: Path,
    validate: bool = True,
) -> GenerationResult:
    """Generate terrain and save it as a .timber archive.

    Args:
        config: Generation configuration.
        save_path: Path to save the generated map.
        validate: Run post-generation diagnostics.

    Returns:
        GenerationResult for the saved map.

    Raises:
        ConfigurationError: If the configuration is out of range or the grid
            is taller than the map format allows.
    """
    config.check_exportable()
    result = generate_terrain(config, validate=validate)
    entities = map_entities(result.starting_location, result.water_sources, config.seed)
    save_timber(save_path, result.grid, entities, config)
    return result
