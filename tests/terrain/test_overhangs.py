"""Tests for cliff overhangs."""

import numpy as np
import pytest

from timbergen.config import OverhangConfig
from timbergen.grid import VoxelGrid
from timbergen.terrain.overhangs import OverhangGenerator, find_cliffs, overhang_direction


@pytest.fixture
def step_grid() -> VoxelGrid:
    """8x23x8 grid: x < 4 at height 10, x >= 4 at height 2."""
    heightmap = np.full((8, 8), 2.0)
    heightmap[:, :4] = 10.0
    grid = VoxelGrid(8, 23, 8)
    grid.fill_from_heightmap(heightmap)
    return grid


class TestFindCliffs:
    """Tests for cliff detection."""

    def test_finds_step_edge(self, step_grid: VoxelGrid) -> None:
        """Cliff tops sit on the high side of the step, borders excluded."""
        cliffs = find_cliffs(step_grid, 5)
        assert cliffs == [(3, 10, z) for z in range(1, 7)]

    def test_threshold(self, step_grid: VoxelGrid) -> None:
        """Drops smaller than the threshold are not cliffs."""
        assert find_cliffs(step_grid, 9) == []

    def test_flat_grid(self, flat_grid: VoxelGrid) -> None:
        """A flat grid has no cliffs."""
        assert find_cliffs(flat_grid, 1) == []

    def test_direction_toward_lowest(self, step_grid: VoxelGrid) -> None:
        """Overhangs point toward the lowest neighbour."""
        assert overhang_direction(step_grid, (3, 10, 3)) == (1, 0)


class TestOverhangGenerator:
    """Tests for OverhangGenerator."""

    def test_disabled_is_noop(self, step_grid: VoxelGrid) -> None:
        """Disabled stage adds nothing."""
        before = step_grid.to_array()
        added = OverhangGenerator(OverhangConfig(enabled=False), 1).generate(step_grid)
        assert added == 0
        np.testing.assert_array_equal(step_grid.to_array(), before)

    def test_ledges_extend_over_drop(self, step_grid: VoxelGrid) -> None:
        """With chance 1 every cliff gets a ledge at its top level."""
        before = step_grid.solid_count()
        config = OverhangConfig(enabled=True, chance=1.0, min_cliff_height=5)
        added = OverhangGenerator(config, 3).generate(step_grid)

        assert added > 0
        assert step_grid.solid_count() == before + added
        for z in range(1, 7):
            assert step_grid.is_solid((4, 10, z))

    def test_ledge_length_bounded(self, step_grid: VoxelGrid) -> None:
        """Ledges never reach past max_length."""
        config = OverhangConfig(enabled=True, chance=1.0, min_cliff_height=5, max_length=2)
        OverhangGenerator(config, 5).generate(step_grid)
        voxels = step_grid.to_array()
        assert not voxels[3:, :, 6:].any()
        assert not voxels[11:].any()

    def test_only_adds(self, step_grid: VoxelGrid) -> None:
        """Overhangs never remove voxels."""
        before = step_grid.to_array()
        config = OverhangConfig(enabled=True, chance=1.0, min_cliff_height=5)
        OverhangGenerator(config, 8).generate(step_grid)
        assert not (before & ~step_grid.to_array()).any()

    def test_deterministic(self) -> None:
        """Same seed adds the same ledges."""
        results = []
        for _ in range(2):
            heightmap = np.full((8, 8), 2.0)
            heightmap[:, :4] = 10.0
            grid = VoxelGrid(8, 23, 8)
            grid.fill_from_heightmap(heightmap)
            config = OverhangConfig(enabled=True, chance=0.5, min_cliff_height=5)
            OverhangGenerator(config, 11).generate(grid)
            results.append(grid.to_array())
        np.testing.assert_array_equal(results[0], results[1])
