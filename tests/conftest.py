"""Shared test fixtures for timbergen tests."""

from pathlib import Path

import numpy as np
import pytest

from timbergen.config import CaveConfig, GeneratorConfig, WaterwayConfig
from timbergen.grid import VoxelGrid

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--update-fixtures",
        action="store_true",
        default=False,
        help="Rewrite recorded fixture files from the current output",
    )


@pytest.fixture
def update_fixtures(request: pytest.FixtureRequest) -> bool:
    return bool(request.config.getoption("--update-fixtures"))


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def slab_grid() -> VoxelGrid:
    """4x23x4 grid with layers 0-2 solid."""
    grid = VoxelGrid(4, 23, 4)
    grid.fill_from_heightmap(np.full((4, 4), 2.0))
    return grid


@pytest.fixture
def flat_grid() -> VoxelGrid:
    """16x23x16 grid filled up to layer 10."""
    grid = VoxelGrid(16, 23, 16)
    grid.fill_from_heightmap(np.full((16, 16), 10.0))
    return grid


@pytest.fixture
def plain_config() -> GeneratorConfig:
    """16x16 map, seed 42, caves and waterways off."""
    return GeneratorConfig(
        seed=42,
        map_size=16,
        max_height=23,
        caves=CaveConfig(enabled=False),
        waterways=WaterwayConfig(enabled=False),
    )
