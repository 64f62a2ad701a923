"""Map persistence: save and load .timber archives.

A .timber file is a ZIP holding the game's world.json (terrain voxels,
empty water and soil layers, entities), map_metadata.json, version.txt and a
thumbnail. Only terrain and entities carry generated data; every other layer
is written in its neutral state.
"""

import json
import uuid
import zipfile
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Any, Iterator

import numpy as np
import structlog
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import GAME_HEIGHT, GeneratorConfig, SeedOffset, derive_seed
from .exceptions import ArchiveFormatError, ConfigurationError
from .grid import VoxelGrid
from .types import Coord, WaterSource

logger = structlog.get_logger()

GAME_VERSION = "0.7.10.0"

WORLD_ENTRY = "world.json"
METADATA_ENTRY = "map_metadata.json"
VERSION_ENTRY = "version.txt"
THUMBNAIL_ENTRY = "map_thumbnail.jpg"

STARTING_LOCATION_TEMPLATE = "StartingLocation"
WATER_SOURCE_TEMPLATE = "WaterSource"

# Neutral outflow record for one water column
EMPTY_OUTFLOW = "0|0:0|0:0|0:0|0"

# Thumbnail colors (RGB)
LOW_COLOR = np.array([70, 110, 50], dtype=np.float64)
HIGH_COLOR = np.array([200, 190, 160], dtype=np.float64)
WATER_SOURCE_COLOR = (40, 90, 220)
THUMBNAIL_MAX_SIZE = 256


class Entity(BaseModel):
    """A placed game object as stored in world.json."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="Id")
    template: str = Field(alias="Template")
    components: dict[str, Any] = Field(default_factory=dict, alias="Components")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _entity_ids(seed: int) -> Iterator[str]:
    """Endless stream of uuid4 strings drawn from the run seed."""
    rng = np.random.default_rng(derive_seed(seed, SeedOffset.ENTITY_IDS))
    while True:
        yield str(uuid.UUID(bytes=rng.bytes(16), version=4))


def _block_object(pos: Coord) -> dict[str, Any]:
    # The game's coordinates put height last
    x, y, z = pos
    return {"Coordinates": {"X": x, "Y": z, "Z": y}, "Orientation": "Cw0"}


def starting_location_entity(location: Coord, entity_id: str) -> Entity:
    """Build the StartingLocation entity for an anchor."""
    return Entity(
        id=entity_id,
        template=STARTING_LOCATION_TEMPLATE,
        components={"BlockObject": _block_object(location)},
    )


def _water_source_entity(source: WaterSource, entity_id: str) -> Entity:
    return Entity(
        id=entity_id,
        template=WATER_SOURCE_TEMPLATE,
        components={
            "BlockObject": _block_object((source.x, source.y, source.z)),
            "WaterSource": {
                "SpecifiedStrength": source.strength,
                "CurrentStrength": source.strength,
            },
        },
    )


def water_source_entities(sources: list[WaterSource], seed: int) -> list[Entity]:
    """Convert water source anchors to game entities.

    The game's coordinates put height last, so a source at (x, y, z) is
    stored at X=x, Y=z, Z=y. Entity ids are drawn from a seeded generator,
    so the same run always produces the same ids.

    Args:
        sources: Anchors emitted by the waterway stage.
        seed: Top-level run seed.

    Returns:
        One WaterSource entity per anchor.
    """
    ids = _entity_ids(seed)
    return [_water_source_entity(source, next(ids)) for source in sources]


def map_entities(
    starting_location: Coord,
    sources: list[WaterSource],
    seed: int,
) -> list[Entity]:
    """All entities of a generated map: the starting location, then water sources."""
    ids = _entity_ids(seed)
    entities = [starting_location_entity(starting_location, next(ids))]
    entities.extend(_water_source_entity(source, next(ids)) for source in sources)
    return entities


def starting_location_from_entities(entities: list[Entity]) -> Coord | None:
    """Recover the starting location anchor from loaded entities."""
    for entity in entities:
        if entity.template == STARTING_LOCATION_TEMPLATE:
            coords = entity.components["BlockObject"]["Coordinates"]
            return (coords["X"], coords["Z"], coords["Y"])
    return None


def water_sources_from_entities(entities: list[Entity]) -> list[WaterSource]:
    """Recover water source anchors from loaded entities."""
    sources = []
    for entity in entities:
        if entity.template != WATER_SOURCE_TEMPLATE:
            continue
        coords = entity.components["BlockObject"]["Coordinates"]
        strength = entity.components.get("WaterSource", {}).get("SpecifiedStrength", 1.0)
        sources.append(
            WaterSource(x=coords["X"], y=coords["Z"], z=coords["Y"], strength=strength)
        )
    return sources


def _filled(count: int, value: str) -> str:
    return " ".join([value] * count)


def build_world_data(
    grid: VoxelGrid,
    entities: list[Entity],
    config: GeneratorConfig,
) -> dict[str, Any]:
    """Build the world.json document for a grid.

    Args:
        grid: Terrain to export.
        entities: Entities to place on the map.
        config: Generation configuration used.

    Returns:
        JSON-serializable world document.
    """
    columns = grid.width * grid.depth
    voxels = " ".join("1" if v else "0" for v in grid.to_voxel_array(GAME_HEIGHT))
    zeros = _filled(columns, "0")

    return {
        "GameVersion": GAME_VERSION,
        "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
        "Singletons": {
            "MapSize": {"Size": {"X": grid.width, "Y": grid.depth}},
            "TerrainMap": {"Voxels": {"Array": voxels}},
            "WaterMapNew": {
                "Levels": 1,
                "WaterColumns": {"Array": zeros},
                "ColumnOutflows": {"Array": _filled(columns, EMPTY_OUTFLOW)},
            },
            "WaterEvaporationMap": {
                "Levels": 1,
                "EvaporationModifiers": {"Array": _filled(columns, "1")},
            },
            "SoilMoistureSimulator": {"Size": 1, "MoistureLevels": {"Array": zeros}},
            "SoilContaminationSimulator": {
                "Size": 1,
                "ContaminationCandidates": {"Array": zeros},
                "ContaminationLevels": {"Array": zeros},
            },
            "HazardousWeatherHistory": {"HistoryData": []},
            "MapThumbnailCameraMover": {
                "CurrentConfiguration": {
                    "Position": {
                        "X": grid.width / 2,
                        "Y": grid.depth / 2 + 5,
                        "Z": config.max_height / 2 - 2,
                    },
                    "Rotation": {"X": 0.342020124, "Y": 0.0, "Z": 0.0, "W": 0.9396926},
                    "ShadowDistance": 150.0,
                }
            },
        },
        "Entities": [entity.to_json() for entity in entities],
    }


def render_thumbnail(grid: VoxelGrid, sources: list[WaterSource] | None = None) -> bytes:
    """Render a top-down, height-shaded JPEG of the grid.

    One pixel per column, upscaled with nearest-neighbour sampling so small
    maps stay legible. Water sources are drawn over the terrain.

    Args:
        grid: Terrain to render.
        sources: Optional water source anchors to mark.

    Returns:
        JPEG bytes.
    """
    heights = grid.surface_heights().astype(np.float64)
    t = (heights / max(grid.height - 1, 1))[..., None]
    rgb = (LOW_COLOR * (1.0 - t) + HIGH_COLOR * t).astype(np.uint8)

    img = Image.fromarray(rgb)
    pixels = img.load()
    for source in sources or []:
        if 0 <= source.x < grid.width and 0 <= source.z < grid.depth:
            pixels[source.x, source.z] = WATER_SOURCE_COLOR

    scale = max(1, THUMBNAIL_MAX_SIZE // max(grid.width, grid.depth))
    if scale > 1:
        img = img.resize((grid.width * scale, grid.depth * scale), Image.Resampling.NEAREST)

    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def save_timber(
    path: Path,
    grid: VoxelGrid,
    entities: list[Entity],
    config: GeneratorConfig,
) -> None:
    """Save a generated map as a .timber archive.

    Args:
        path: Output path (should end with .timber).
        grid: Terrain to export.
        entities: Entities to place on the map.
        config: Generation configuration used.

    Raises:
        ConfigurationError: If the grid holds terrain above the format's
            fixed height. Nothing is written in that case.
    """
    try:
        world = build_world_data(grid, entities, config)
    except ValueError as e:
        raise ConfigurationError(f"Grid does not fit a .timber map: {e}") from e
    thumbnail = render_thumbnail(grid, water_sources_from_entities(entities))
    metadata = {
        "Width": grid.width,
        "Height": grid.depth,
        "MapNameLocKey": "",
        "MapDescriptionLocKey": "",
        "MapDescription": (
            f"Generated map: {grid.width}x{grid.depth}, seed {config.seed}"
        ),
        "IsRecommended": False,
        "IsDev": False,
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(WORLD_ENTRY, json.dumps(world))
        archive.writestr(METADATA_ENTRY, json.dumps(metadata))
        archive.writestr(VERSION_ENTRY, GAME_VERSION)
        archive.writestr(THUMBNAIL_ENTRY, thumbnail)

    file_size = path.stat().st_size / (1024 * 1024)
    logger.info("map_saved", path=str(path), size_mb=round(file_size, 2), entities=len(entities))


def load_timber(path: Path) -> tuple[VoxelGrid, list[Entity]]:
    """Load a .timber archive.

    Args:
        path: Path to .timber file.

    Returns:
        Tuple of (grid, list of entities). The grid has the game's fixed
        height of 23 layers.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ArchiveFormatError: If the archive or its world.json is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Map file not found: {path}")

    try:
        with zipfile.ZipFile(path) as archive:
            world = json.loads(archive.read(WORLD_ENTRY))
    except (zipfile.BadZipFile, KeyError, json.JSONDecodeError) as e:
        raise ArchiveFormatError(f"Unreadable map archive {path}: {e}") from e

    try:
        size = world["Singletons"]["MapSize"]["Size"]
        width, depth = int(size["X"]), int(size["Y"])
        tokens = world["Singletons"]["TerrainMap"]["Voxels"]["Array"].split()
        entities = [Entity.model_validate(e) for e in world.get("Entities", [])]
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise ArchiveFormatError(f"Invalid world data in {path}: {e}") from e

    values = np.array([token == "1" for token in tokens], dtype=bool)
    try:
        grid = VoxelGrid.from_voxel_array(values, width, depth, layers=GAME_HEIGHT)
    except ValueError as e:
        raise ArchiveFormatError(f"Invalid terrain in {path}: {e}") from e

    logger.info("map_loaded", path=str(path), width=width, depth=depth, entities=len(entities))
    return grid, entities
