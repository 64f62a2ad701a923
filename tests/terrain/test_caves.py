"""Tests for cave carving."""

import numpy as np
import pytest

from timbergen.config import CaveConfig
from timbergen.grid import VoxelGrid
from timbergen.terrain.caves import (
    CaveCarver,
    carve_sphere,
    open_cave_entrances,
    sphere_offsets,
)
from timbergen.types import VoxelState


def make_carver(seed: int = 42, **overrides) -> CaveCarver:
    return CaveCarver(CaveConfig(**overrides), seed, 23)


class TestSphere:
    """Tests for sphere carving."""

    def test_unit_sphere_offsets(self) -> None:
        """Radius 1 covers the center and its six face neighbours."""
        offsets = sphere_offsets(1.0)
        assert len(offsets) == 7
        assert (0, 0, 0) in offsets
        assert (1, 1, 0) not in offsets

    def test_carve_sphere(self, flat_grid: VoxelGrid) -> None:
        """Carving removes exactly the voxels within radius."""
        before = flat_grid.solid_count()
        removed = carve_sphere(flat_grid, (8.0, 5.0, 8.0), 2.0)

        assert removed == len(sphere_offsets(2.0))
        assert flat_grid.solid_count() == before - removed
        assert not flat_grid.is_solid((8, 5, 8))
        assert not flat_grid.is_solid((10, 5, 8))
        assert flat_grid.is_solid((10, 6, 8))

    def test_carve_sphere_at_edge(self, flat_grid: VoxelGrid) -> None:
        """Carving past the grid boundary is safe."""
        removed = carve_sphere(flat_grid, (0.0, 0.0, 0.0), 3.0)
        assert 0 < removed < len(sphere_offsets(3.0))


class TestCaveCarver:
    """Tests for CaveCarver."""

    def test_disabled_is_noop(self, flat_grid: VoxelGrid) -> None:
        """Disabled stage leaves the grid unchanged."""
        before = flat_grid.to_array()
        result = make_carver(enabled=False).generate(flat_grid)
        np.testing.assert_array_equal(flat_grid.to_array(), before)
        assert result.removed == 0

    def test_zero_worms_is_noop(self, flat_grid: VoxelGrid) -> None:
        """No tunnels and an empty cavern band change nothing."""
        before = flat_grid.to_array()
        result = make_carver(worm_count=0, cavern_band_top=0.1).generate(flat_grid)
        np.testing.assert_array_equal(flat_grid.to_array(), before)
        assert result.tunnels_carved == 0

    @pytest.mark.parametrize("seed", [0, 1, 42, 999])
    def test_destructive_only(self, flat_grid: VoxelGrid, seed: int) -> None:
        """Carving never adds solid voxels."""
        before = flat_grid.to_array()
        make_carver(seed, open_entrances=True).generate(flat_grid)
        after = flat_grid.to_array()
        assert not (after & ~before).any()

    def test_tunnels_carved(self, flat_grid: VoxelGrid) -> None:
        """Worm tunnels remove rock."""
        result = make_carver(worm_count=3, cavern_band_top=0.1).generate(flat_grid)
        assert result.tunnels_carved == 3
        assert result.tunnel_voxels > 0
        assert flat_grid.solid_count() == 16 * 16 * 11 - result.removed

    def test_ground_layer_intact(self, flat_grid: VoxelGrid) -> None:
        """Caves never reach layer 0."""
        make_carver(worm_count=8, cavern_threshold=-0.2).generate(flat_grid)
        assert flat_grid.to_array()[0].all()

    def test_caverns_stay_in_band(self, flat_grid: VoxelGrid) -> None:
        """Cavern noise only touches the configured height band."""
        carver = make_carver(worm_count=0, cavern_threshold=-0.3, cavern_band_top=0.4)
        before = flat_grid.to_array()
        removed = carver.carve_caverns(flat_grid)
        after = flat_grid.to_array()

        assert removed > 0
        np.testing.assert_array_equal(after[:3], before[:3])
        np.testing.assert_array_equal(after[9:], before[9:])

    def test_deterministic(self) -> None:
        """Same seed carves the same caves."""
        grids = []
        for _ in range(2):
            grid = VoxelGrid(16, 23, 16)
            grid.fill_from_heightmap(np.full((16, 16), 12.0))
            make_carver(7).generate(grid)
            grids.append(grid.to_array())
        np.testing.assert_array_equal(grids[0], grids[1])

    def test_no_rock_no_tunnels(self) -> None:
        """Without rock to start in, tunnels are skipped rather than failing."""
        grid = VoxelGrid(8, 23, 8)
        result = make_carver(worm_count=2).generate(grid)
        assert result.tunnels_carved == 0
        assert grid.solid_count() == 0


class TestCaveEntrances:
    """Tests for opening caves to the surface."""

    def _column_grid(self, solid_layers: list[int]) -> VoxelGrid:
        grid = VoxelGrid(1, 10, 1)
        for y in solid_layers:
            grid.set((0, y, 0), VoxelState.SOLID)
        return grid

    def test_thin_roof_removed(self) -> None:
        """A roof of two voxels over a cave is broken open."""
        grid = self._column_grid([0, 1, 2, 5, 6])
        removed = open_cave_entrances(grid)
        assert removed == 2
        assert grid.surface_height(0, 0) == 2

    def test_thick_roof_kept(self) -> None:
        """A roof of three voxels stays."""
        grid = self._column_grid([0, 1, 2, 4, 5, 6])
        assert open_cave_entrances(grid) == 0
        assert grid.solid_count() == 6

    def test_solid_column_untouched(self) -> None:
        """Columns without a cave are left alone."""
        grid = self._column_grid([0, 1, 2, 3])
        assert open_cave_entrances(grid) == 0
