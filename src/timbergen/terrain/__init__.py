"""Procedural terrain generation package.

This package implements the voxel terrain pipeline: a noise heightmap seeds
the grid, then caves, overhangs and waterways are carved and the result is
checked for structural support.
"""

from .caves import CaveCarver, CaveResult, open_cave_entrances
from .generator import GenerationResult, generate_and_save, generate_terrain
from .heightmap import HeightmapGenerator
from .noise import NoiseField, NoiseKind
from .overhangs import OverhangGenerator
from .placement import place_starting_location
from .structure import StructuralValidator, StructureReport, has_support
from .validation import ValidationResult, validate_grid
from .waterways import WaterwayCarver, WaterwayResult

__all__ = [
    "CaveCarver",
    "CaveResult",
    "GenerationResult",
    "HeightmapGenerator",
    "NoiseField",
    "NoiseKind",
    "OverhangGenerator",
    "StructuralValidator",
    "StructureReport",
    "ValidationResult",
    "WaterwayCarver",
    "WaterwayResult",
    "generate_and_save",
    "generate_terrain",
    "has_support",
    "open_cave_entrances",
    "place_starting_location",
    "validate_grid",
]
