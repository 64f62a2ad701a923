"""Tests for post-generation diagnostics."""

from timbergen.config import GeneratorConfig
from timbergen.grid import VoxelGrid
from timbergen.terrain.validation import ValidationResult, validate_grid
from timbergen.types import VoxelState, WaterSource


class TestValidationResult:
    """Tests for ValidationResult bookkeeping."""

    def test_errors_fail(self) -> None:
        """Errors fail validation, warnings don't."""
        result = ValidationResult()
        result.add_warning("minor")
        assert result.passed
        result.add_error("major")
        assert not result.passed
        assert result.errors == ["major"]
        assert result.warnings == ["minor"]


class TestValidateGrid:
    """Tests for validate_grid."""

    def test_flat_grid_passes(self, flat_grid: VoxelGrid) -> None:
        """A plain filled grid passes with no warnings."""
        result = validate_grid(flat_grid, [], GeneratorConfig())
        assert result.passed
        assert result.warnings == []
        assert result.stats is not None
        assert result.stats.max_height == 10

    def test_floating_component(self, flat_grid: VoxelGrid) -> None:
        """Solid voxels not connected to the ground are an error."""
        flat_grid.set((3, 15, 3), VoxelState.SOLID)
        flat_grid.set((3, 16, 3), VoxelState.SOLID)
        flat_grid.set((9, 18, 9), VoxelState.SOLID)
        result = validate_grid(flat_grid, [], GeneratorConfig())
        assert not result.passed
        assert any("2 solid components" in e for e in result.errors)

    def test_empty_grid(self) -> None:
        """A grid with no solid voxels fails."""
        result = validate_grid(VoxelGrid(4, 4, 4), [], GeneratorConfig())
        assert not result.passed

    def test_ground_hole_warns(self, flat_grid: VoxelGrid) -> None:
        """Air in layer 0 is a warning."""
        flat_grid.set((0, 0, 0), VoxelState.AIR)
        result = validate_grid(flat_grid, [], GeneratorConfig())
        assert result.passed
        assert any("Ground layer" in w for w in result.warnings)

    def test_water_sources(self, flat_grid: VoxelGrid) -> None:
        """Sources outside the grid or above air are warnings."""
        sources = [
            WaterSource(x=2, y=11, z=2),
            WaterSource(x=40, y=11, z=2),
            WaterSource(x=2, y=14, z=2),
        ]
        result = validate_grid(flat_grid, sources, GeneratorConfig())
        assert result.passed
        assert any("1 water sources outside" in w for w in result.warnings)
        assert any("1 water sources not resting" in w for w in result.warnings)
