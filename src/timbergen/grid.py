"""Voxel grid storage."""

from typing import Iterator

import numpy as np
from numpy.typing import NDArray

from .config import GAME_HEIGHT
from .types import Coord, VoxelState


class VoxelGrid:
    """
    Bounded 3D solid/air storage.

    Voxels live in a flat boolean array indexed (y, z, x), which is also the
    order the map format expects on export. Out-of-bounds reads return air and
    out-of-bounds writes are ignored, so carving code can overshoot the edges.

    A per-column surface index is kept up to date on every write, making
    surface_height() O(1) except when the top voxel of a column is removed.

    The surface index and the solid count are derived from the voxel array and
    only valid while every write goes through set(), fill_from_heightmap() or
    _rebuild_index(). Code that touches _voxels directly must call
    _rebuild_index() afterwards.
    """

    def __init__(self, width: int, height: int, depth: int):
        if width <= 0 or height <= 0 or depth <= 0:
            raise ValueError(
                f"Grid dimensions must be positive, got {width}x{height}x{depth}"
            )
        self.width = width
        self.height = height
        self.depth = depth

        self._voxels: NDArray[np.bool_] = np.zeros((height, depth, width), dtype=bool)
        # Highest solid y per (z, x) column, -1 for an empty column
        self._surface: NDArray[np.int32] = np.full((depth, width), -1, dtype=np.int32)
        self._solid_count = 0

    @property
    def shape(self) -> tuple[int, int, int]:
        """Dimensions as (width, height, depth)."""
        return (self.width, self.height, self.depth)

    def __repr__(self) -> str:
        return (
            f"VoxelGrid(width={self.width}, height={self.height}, "
            f"depth={self.depth}, solid={self._solid_count})"
        )

    # --- Voxel access ---

    def in_bounds(self, pos: Coord) -> bool:
        """Check if position is within grid bounds."""
        x, y, z = pos
        return 0 <= x < self.width and 0 <= y < self.height and 0 <= z < self.depth

    def get(self, pos: Coord) -> VoxelState:
        """Get voxel state, air for anything outside the grid."""
        if not self.in_bounds(pos):
            return VoxelState.AIR
        x, y, z = pos
        return VoxelState.SOLID if self._voxels[y, z, x] else VoxelState.AIR

    def is_solid(self, pos: Coord) -> bool:
        """Check if position holds a solid voxel."""
        return self.get(pos) == VoxelState.SOLID

    def set(self, pos: Coord, state: VoxelState) -> None:
        """Set voxel state; writes outside the grid are ignored."""
        if not self.in_bounds(pos):
            return
        x, y, z = pos
        solid = state == VoxelState.SOLID
        if bool(self._voxels[y, z, x]) == solid:
            return

        self._voxels[y, z, x] = solid
        if solid:
            self._solid_count += 1
            if y > self._surface[z, x]:
                self._surface[z, x] = y
        else:
            self._solid_count -= 1
            if y == self._surface[z, x]:
                self._surface[z, x] = self._column_top(x, z)

    def _column_top(self, x: int, z: int) -> int:
        filled = np.flatnonzero(self._voxels[:, z, x])
        return int(filled[-1]) if filled.size else -1

    def solid_count(self) -> int:
        """Number of solid voxels."""
        return self._solid_count

    def iter_solid(self) -> Iterator[Coord]:
        """Yield coordinates of all solid voxels.

        Each call scans the grid afresh, ordered by height, then depth, then width.
        """
        for y, z, x in np.argwhere(self._voxels):
            yield (int(x), int(y), int(z))

    # --- Columns ---

    def surface_height(self, x: int, z: int) -> int:
        """Highest solid y in a column, or 0 if the column is empty."""
        if not (0 <= x < self.width and 0 <= z < self.depth):
            return 0
        return max(0, int(self._surface[z, x]))

    def surface_heights(self) -> NDArray[np.int32]:
        """Surface height of every column, shape (depth, width)."""
        return np.maximum(self._surface, 0)

    def fill_from_heightmap(self, heightmap: NDArray[np.floating]) -> None:
        """Fill every column from y=0 up to floor(height), inclusive.

        Args:
            heightmap: Column heights indexed [z][x], shape (depth, width).
                Heights above the grid are clamped to the top layer.
        """
        heightmap = np.asarray(heightmap)
        if heightmap.shape != (self.depth, self.width):
            raise ValueError(
                f"Heightmap shape {heightmap.shape} doesn't match "
                f"grid columns ({self.depth}, {self.width})"
            )

        tops = np.clip(np.floor(heightmap), -1, self.height - 1).astype(np.int32)
        layers = np.arange(self.height, dtype=np.int32)[:, None, None]
        self._voxels |= layers <= tops[None, :, :]

        self._surface = np.maximum(self._surface, tops)
        self._solid_count = int(np.count_nonzero(self._voxels))

    # --- Bulk export ---

    def to_array(self) -> NDArray[np.bool_]:
        """Copy of the voxel array, shape (height, depth, width)."""
        return self._voxels.copy()

    def to_voxel_array(self, layers: int = GAME_HEIGHT) -> NDArray[np.bool_]:
        """Flatten voxels in map-format order: height, then depth, then width.

        Always emits exactly `layers` height layers; layers above the grid are air.

        Returns:
            1D boolean array of length layers * depth * width.

        Raises:
            ValueError: If solid voxels lie above the exported layers.
        """
        if self.height > layers and self._voxels[layers:].any():
            lost = int(np.count_nonzero(self._voxels[layers:]))
            raise ValueError(
                f"{lost} solid voxels lie above layer {layers - 1} and would be lost"
            )
        out = np.zeros((layers, self.depth, self.width), dtype=bool)
        n = min(layers, self.height)
        out[:n] = self._voxels[:n]
        return out.ravel()

    @classmethod
    def from_voxel_array(
        cls,
        values: NDArray[np.bool_],
        width: int,
        depth: int,
        layers: int = GAME_HEIGHT,
        height: int | None = None,
    ) -> "VoxelGrid":
        """Rebuild a grid from a flat map-format voxel array.

        Args:
            values: Flat array as produced by to_voxel_array().
            width: Grid width.
            depth: Grid depth.
            layers: Height layers encoded in values.
            height: Grid height (defaults to layers).

        Returns:
            New VoxelGrid.
        """
        values = np.asarray(values, dtype=bool)
        if values.size != layers * depth * width:
            raise ValueError(
                f"Expected {layers * depth * width} voxels, got {values.size}"
            )
        height = layers if height is None else height
        grid = cls(width, height, depth)
        stacked = values.reshape((layers, depth, width))
        n = min(layers, height)
        grid._voxels[:n] = stacked[:n]
        grid._rebuild_index()
        return grid

    def copy(self) -> "VoxelGrid":
        """Independent copy of this grid."""
        clone = VoxelGrid(self.width, self.height, self.depth)
        clone._voxels = self._voxels.copy()
        clone._surface = self._surface.copy()
        clone._solid_count = self._solid_count
        return clone

    def _rebuild_index(self) -> None:
        any_solid = self._voxels.any(axis=0)
        # Index of the last True along y
        top_from_above = np.argmax(self._voxels[::-1], axis=0)
        self._surface = np.where(
            any_solid, self.height - 1 - top_from_above, -1
        ).astype(np.int32)
        self._solid_count = int(np.count_nonzero(self._voxels))
