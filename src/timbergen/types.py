"""Core types for voxel terrain generation."""

from enum import IntEnum

from pydantic import BaseModel

# (x, y, z): x and z are horizontal (width, depth), y is vertical
Coord = tuple[int, int, int]


class VoxelState(IntEnum):
    """State of a single voxel."""

    AIR = 0
    SOLID = 1


class Direction(IntEnum):
    """8-direction horizontal movement."""

    NORTH = 1
    NORTHEAST = 2
    EAST = 3
    SOUTHEAST = 4
    SOUTH = 5
    SOUTHWEST = 6
    WEST = 7
    NORTHWEST = 8


# Direction deltas as (dx, dz)
# Coordinate system: +X is East, +Z is South, +Y is up
DIRECTION_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.NORTH: (0, -1),
    Direction.NORTHEAST: (1, -1),
    Direction.EAST: (1, 0),
    Direction.SOUTHEAST: (1, 1),
    Direction.SOUTH: (0, 1),
    Direction.SOUTHWEST: (-1, 1),
    Direction.WEST: (-1, 0),
    Direction.NORTHWEST: (-1, -1),
}

CARDINAL_DIRECTIONS: tuple[Direction, ...] = (
    Direction.NORTH,
    Direction.EAST,
    Direction.SOUTH,
    Direction.WEST,
)


class WaterSource(BaseModel, frozen=True):
    """Anchor point for a water source entity found along a waterway."""

    x: int
    y: int
    z: int
    strength: float = 1.0

    @property
    def coord(self) -> Coord:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"
