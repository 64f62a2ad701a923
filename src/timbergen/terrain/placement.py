"""Starting location placement on finished terrain."""

from typing import Iterator

import structlog

from ..config import GAME_HEIGHT
from ..grid import VoxelGrid
from ..types import Coord

logger = structlog.get_logger()

# Square area sizes tried in order, largest first
START_AREA_SIZES = (6, 4, 3)

# Highest preferred surface; the entity sits one layer above it
MAX_START_SURFACE = GAME_HEIGHT - 2


def _ring(center_x: int, center_z: int, radius: int) -> Iterator[tuple[int, int]]:
    """Columns at exactly `radius` steps (Chebyshev) from the center."""
    if radius == 0:
        yield center_x, center_z
        return
    for dx in range(-radius, radius + 1):
        for dz in range(-radius, radius + 1):
            if max(abs(dx), abs(dz)) == radius:
                yield center_x + dx, center_z + dz


def is_flat_area(grid: VoxelGrid, x: int, z: int, size: int) -> bool:
    """Check that a size x size block of columns centred on (x, z) is level ground.

    Every column must lie inside the grid, share the centre column's surface
    height and hold a solid voxel at that height.
    """
    height = grid.surface_height(x, z)
    start_x = x - size // 2
    start_z = z - size // 2
    for cx in range(start_x, start_x + size):
        for cz in range(start_z, start_z + size):
            if not grid.in_bounds((cx, height, cz)):
                return False
            if grid.surface_height(cx, cz) != height:
                return False
            if not grid.is_solid((cx, height, cz)):
                return False
    return True


def find_flat_area(
    grid: VoxelGrid,
    size: int,
    max_surface: int | None = None,
) -> Coord | None:
    """Search outward from the map centre for a flat area.

    Args:
        grid: Finished terrain.
        size: Side length of the square area.
        max_surface: Skip areas whose surface lies above this layer.

    Returns:
        Anchor one voxel above the area's centre column, or None.
    """
    center_x = grid.width // 2
    center_z = grid.depth // 2
    for radius in range(max(grid.width, grid.depth)):
        for x, z in _ring(center_x, center_z, radius):
            height = grid.surface_height(x, z)
            if max_surface is not None and height > max_surface:
                continue
            if is_flat_area(grid, x, z, size):
                return (x, min(height + 1, GAME_HEIGHT - 1), z)
    return None


def place_starting_location(grid: VoxelGrid) -> Coord:
    """Pick the anchor for the map's starting location.

    Low areas are tried first at every size, then any height. When the map
    has no flat 3x3 area at all the centre column is used as is. The grid is
    never modified.

    Args:
        grid: Finished terrain.

    Returns:
        Anchor (x, y, z) one voxel above the chosen ground.
    """
    for max_surface in (MAX_START_SURFACE, None):
        for size in START_AREA_SIZES:
            location = find_flat_area(grid, size, max_surface)
            if location is not None:
                x, y, z = location
                logger.info("starting_location_placed", x=x, y=y, z=z, area=size)
                return location

    x = grid.width // 2
    z = grid.depth // 2
    y = min(grid.surface_height(x, z) + 1, GAME_HEIGHT - 1)
    logger.warning("starting_location_fallback", x=x, y=y, z=z)
    return (x, y, z)
