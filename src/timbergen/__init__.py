"""Procedural voxel terrain generation for Timberborn maps."""

from .config import GAME_HEIGHT, GeneratorConfig, SeedOffset, find_config, load_config
from .exceptions import (
    ArchiveFormatError,
    ConfigurationError,
    StructuralInvariantError,
    TerrainError,
    WaterwaySearchError,
)
from .grid import VoxelGrid
from .persistence import (
    Entity,
    load_timber,
    map_entities,
    save_timber,
    water_source_entities,
)
from .terrain import GenerationResult, generate_and_save, generate_terrain
from .types import Coord, Direction, VoxelState, WaterSource

__all__ = [
    "GAME_HEIGHT",
    "ArchiveFormatError",
    "ConfigurationError",
    "Coord",
    "Direction",
    "Entity",
    "GenerationResult",
    "GeneratorConfig",
    "SeedOffset",
    "StructuralInvariantError",
    "TerrainError",
    "VoxelGrid",
    "VoxelState",
    "WaterSource",
    "WaterwaySearchError",
    "find_config",
    "generate_and_save",
    "generate_terrain",
    "load_config",
    "load_timber",
    "map_entities",
    "save_timber",
    "water_source_entities",
]
