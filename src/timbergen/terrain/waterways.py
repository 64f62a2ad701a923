"""Waterways: downhill meandering paths carved into river channels.

Each waterway runs from a high inland point toward the lowest reachable map
edge. Tracing scores all eight neighbours on every step and picks randomly
among the best few, which gives curving, natural looking rivers rather than a
strict steepest-descent line. The channel is carved only once the whole path
is known, so later steps see the original terrain.
"""

import math
from dataclasses import dataclass, field

import numpy as np
import structlog

from ..config import (
    MIN_WATER_SOURCE_SPACING,
    GeneratorConfig,
    SeedOffset,
    derive_seed,
    WaterwayConfig,
)
from ..exceptions import WaterwaySearchError
from ..grid import VoxelGrid
from ..types import DIRECTION_DELTAS, Coord, VoxelState, WaterSource

logger = structlog.get_logger()

# Neighbour scoring weights
DOWNHILL_WEIGHT = 3.0
PROGRESS_WEIGHT = 0.5
MEANDER_SCALE = 4.0


@dataclass
class ChannelSegment:
    """Cross-section of the channel carved around one path point."""

    center: Coord  # (x, surface y, z)
    width: int
    depth: int

    def voxels(self) -> list[Coord]:
        """Voxels inside this segment's rounded channel."""
        x, y, z = self.center
        w2 = self.width * self.width
        return [
            (x + dx, y - d, z + dz)
            for d in range(self.depth)
            for dz in range(-self.width, self.width + 1)
            for dx in range(-self.width, self.width + 1)
            if dx * dx + dz * dz <= w2
        ]


@dataclass
class Waterway:
    """A single carved waterway."""

    start: Coord
    end: Coord
    path: list[Coord]
    segments: list[ChannelSegment]
    sources: list[WaterSource]
    removed: int


@dataclass
class WaterwayResult:
    """Summary of the waterway stage."""

    requested: int = 0
    waterways: list[Waterway] = field(default_factory=list)

    @property
    def sources(self) -> list[WaterSource]:
        return [source for waterway in self.waterways for source in waterway.sources]

    @property
    def removed(self) -> int:
        return sum(waterway.removed for waterway in self.waterways)


def horizontal_distance(a: Coord, b: Coord) -> int:
    """Manhattan distance between two columns, ignoring height."""
    return abs(a[0] - b[0]) + abs(a[2] - b[2])


def carve_channel(grid: VoxelGrid, segments: list[ChannelSegment]) -> int:
    """Carve every segment of a channel.

    Returns:
        Number of voxels removed.
    """
    removed = 0
    for segment in segments:
        for pos in segment.voxels():
            if grid.is_solid(pos):
                grid.set(pos, VoxelState.AIR)
                removed += 1
    return removed


class WaterwayCarver:
    """Traces and carves waterways, emitting water source anchors."""

    def __init__(self, config: WaterwayConfig, seed: int, terrain_top: int):
        self.config = config
        self.terrain_top = terrain_top
        self.rng = np.random.default_rng(derive_seed(seed, SeedOffset.WATERWAYS))

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "WaterwayCarver":
        return cls(config.waterways, config.seed, config.terrain_top)

    def generate(self, grid: VoxelGrid) -> WaterwayResult:
        """Run the waterway stage. A disabled stage leaves grid untouched."""
        result = WaterwayResult(requested=self.config.count)
        if not self.config.enabled:
            logger.info("waterways_skipped", reason="disabled")
            return result

        for index in range(self.config.count):
            try:
                waterway = self.carve_waterway(grid)
            except WaterwaySearchError as e:
                logger.warning("waterway_skipped", index=index, reason=str(e))
                continue
            result.waterways.append(waterway)
            logger.debug(
                "waterway_carved",
                index=index,
                start=waterway.start,
                end=waterway.end,
                length=len(waterway.path),
                removed=waterway.removed,
            )

        logger.info(
            "waterways_carved",
            requested=result.requested,
            carved=len(result.waterways),
            sources=len(result.sources),
            removed=result.removed,
        )
        return result

    def carve_waterway(self, grid: VoxelGrid) -> Waterway:
        """Find, trace and carve one waterway.

        Raises:
            WaterwaySearchError: If no start or end point qualifies.
        """
        start = self.find_start(grid)
        end = self.find_end(grid, start)
        path = self.trace_path(grid, start, end)
        segments = self.plan_channel(path)
        removed = carve_channel(grid, segments)
        sources = self.emit_water_sources(grid, path)
        return Waterway(
            start=start,
            end=end,
            path=path,
            segments=segments,
            sources=sources,
            removed=removed,
        )

    def find_start(self, grid: VoxelGrid) -> Coord:
        """Probe random columns for one high enough to start a waterway.

        Raises:
            WaterwaySearchError: If every probe lands too low.
        """
        min_height = self.config.start_height_fraction * self.terrain_top
        for _ in range(self.config.start_attempts):
            x = int(self.rng.integers(grid.width))
            z = int(self.rng.integers(grid.depth))
            height = grid.surface_height(x, z)
            if height >= min_height:
                return (x, height, z)
        raise WaterwaySearchError(
            f"no column at or above height {min_height:.1f} "
            f"after {self.config.start_attempts} attempts"
        )

    def find_end(self, grid: VoxelGrid, start: Coord) -> Coord:
        """Pick the lowest edge point that is far enough from start.

        Candidates are sampled evenly along all four edges and must be more
        than half the map size away (Manhattan) from the start.

        Raises:
            WaterwaySearchError: If no edge point is far enough away.
        """
        map_size = max(grid.width, grid.depth)
        samples = self.config.edge_samples
        candidates: list[Coord] = []

        for i in range(samples):
            t = i / samples
            along_x = int(t * grid.width)
            along_z = int(t * grid.depth)
            for x, z in (
                (0, along_z),
                (grid.width - 1, along_z),
                (along_x, 0),
                (along_x, grid.depth - 1),
            ):
                point = (x, grid.surface_height(x, z), z)
                if horizontal_distance(point, start) > map_size * 0.5:
                    candidates.append(point)

        if not candidates:
            raise WaterwaySearchError(f"no edge point far enough from {start}")

        return min(candidates, key=lambda point: point[1])

    def trace_path(self, grid: VoxelGrid, start: Coord, end: Coord) -> list[Coord]:
        """Walk from start toward end, preferring downhill steps.

        Stops on arrival, when no neighbour is in bounds, or when the step
        budget (max_steps_factor * map size) runs out.

        Returns:
            Path points as (x, surface height, z).
        """
        max_steps = self.config.max_steps_factor * max(grid.width, grid.depth)
        path: list[Coord] = []
        current = start

        for _ in range(max_steps):
            path.append(current)
            if horizontal_distance(current, end) < self.config.arrival_distance:
                break
            step = self.next_step(grid, current, end)
            if step is None:
                break
            current = step

        return path

    def next_step(self, grid: VoxelGrid, current: Coord, end: Coord) -> Coord | None:
        """Score the eight neighbours and pick one of the best.

        Score = 3 * height drop + 0.5 * reduction in distance to end
        + meander noise scaled by the meandering coefficient.
        """
        x, _, z = current
        current_height = grid.surface_height(x, z)
        current_dist = horizontal_distance(current, end)

        scored: list[tuple[float, Coord]] = []
        for dx, dz in DIRECTION_DELTAS.values():
            nx, nz = x + dx, z + dz
            if not (0 <= nx < grid.width and 0 <= nz < grid.depth):
                continue
            height = grid.surface_height(nx, nz)
            candidate = (nx, height, nz)

            downhill = (current_height - height) * DOWNHILL_WEIGHT
            progress = (current_dist - horizontal_distance(candidate, end)) * PROGRESS_WEIGHT
            meander = (self.rng.random() - 0.5) * self.config.meandering * MEANDER_SCALE
            scored.append((downhill + progress + meander, candidate))

        if not scored:
            return None

        scored.sort(key=lambda item: item[0], reverse=True)
        top = scored[: self.config.top_k]
        return top[int(self.rng.integers(len(top)))][1]

    def plan_channel(self, path: list[Coord]) -> list[ChannelSegment]:
        """Choose a width and depth for every path point.

        Width follows a sine wave over the path plus jitter (0.8x to 1.5x),
        depth is jittered between 0.7x and 1.3x.
        """
        segments: list[ChannelSegment] = []
        for i, point in enumerate(path):
            progress = i / len(path)
            variation = math.sin(progress * math.pi * 3) * 0.3
            width_mult = 0.8 + variation + self.rng.random() * 0.4
            depth_mult = 0.7 + self.rng.random() * 0.6
            segments.append(
                ChannelSegment(
                    center=point,
                    width=max(1, int(self.config.width * width_mult)),
                    depth=max(1, int(self.config.depth * depth_mult)),
                )
            )
        return segments

    def emit_water_sources(self, grid: VoxelGrid, path: list[Coord]) -> list[WaterSource]:
        """Place water sources along a carved path.

        Sources sit one voxel above the post-carving surface, every
        `water_source_spacing` path steps (never closer than 30).
        """
        spacing = max(MIN_WATER_SOURCE_SPACING, self.config.water_source_spacing)
        sources: list[WaterSource] = []
        for i in range(0, len(path), spacing):
            x, _, z = path[i]
            y = min(grid.surface_height(x, z) + 1, grid.height - 1)
            sources.append(
                WaterSource(x=x, y=y, z=z, strength=self.config.water_source_strength)
            )
        return sources
