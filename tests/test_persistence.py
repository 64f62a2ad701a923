"""Tests for .timber archive persistence."""

import json
import zipfile
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from timbergen.config import GAME_HEIGHT, GeneratorConfig
from timbergen.exceptions import ArchiveFormatError, ConfigurationError
from timbergen.grid import VoxelGrid
from timbergen.persistence import (
    GAME_VERSION,
    build_world_data,
    render_thumbnail,
    load_timber,
    map_entities,
    save_timber,
    starting_location_entity,
    starting_location_from_entities,
    water_source_entities,
    water_sources_from_entities,
)
from timbergen.types import WaterSource


@pytest.fixture
def sources() -> list[WaterSource]:
    return [WaterSource(x=3, y=7, z=5, strength=1.5), WaterSource(x=10, y=4, z=1)]


class TestEntities:
    """Tests for water source entities."""

    def test_coordinates_swap_axes(self, sources: list[WaterSource]) -> None:
        """Game coordinates store height in Z."""
        entity = water_source_entities(sources, 42)[0]
        assert entity.template == "WaterSource"
        assert entity.components["BlockObject"]["Coordinates"] == {"X": 3, "Y": 5, "Z": 7}
        assert entity.components["WaterSource"]["SpecifiedStrength"] == 1.5
        assert entity.components["WaterSource"]["CurrentStrength"] == 1.5

    def test_ids_deterministic(self, sources: list[WaterSource]) -> None:
        """Entity ids depend only on the seed."""
        a = [e.id for e in water_source_entities(sources, 42)]
        b = [e.id for e in water_source_entities(sources, 42)]
        c = [e.id for e in water_source_entities(sources, 43)]
        assert a == b
        assert a != c
        assert len(set(a)) == len(a)

    def test_json_uses_game_keys(self, sources: list[WaterSource]) -> None:
        """Serialized entities use the game's capitalized keys."""
        data = water_source_entities(sources, 1)[0].to_json()
        assert set(data) == {"Id", "Template", "Components"}

    def test_sources_round_trip(self, sources: list[WaterSource]) -> None:
        """Anchors are recovered from their entities."""
        entities = water_source_entities(sources, 42)
        assert water_sources_from_entities(entities) == sources


class TestStartingLocation:
    """Tests for the starting location entity."""

    def test_coordinates_swap_axes(self) -> None:
        """The anchor is stored with height in Z and default orientation."""
        entity = starting_location_entity((8, 11, 4), "start-id")
        assert entity.template == "StartingLocation"
        assert entity.id == "start-id"
        assert entity.components == {
            "BlockObject": {"Coordinates": {"X": 8, "Y": 4, "Z": 11}, "Orientation": "Cw0"}
        }

    def test_map_entities_order(self, sources: list[WaterSource]) -> None:
        """Map entities start with the starting location, then water sources."""
        entities = map_entities((8, 11, 4), sources, 42)

        templates = [e.template for e in entities]
        assert templates == ["StartingLocation", "WaterSource", "WaterSource"]
        assert len({e.id for e in entities}) == 3
        assert starting_location_from_entities(entities) == (8, 11, 4)
        assert water_sources_from_entities(entities) == sources

    def test_missing_starting_location(self, sources: list[WaterSource]) -> None:
        """Entity lists without a starting location give None."""
        assert starting_location_from_entities(water_source_entities(sources, 42)) is None


class TestWorldData:
    """Tests for the world.json document."""

    def test_layout(self, flat_grid: VoxelGrid) -> None:
        """Terrain is exported with the fixed layer count."""
        world = build_world_data(flat_grid, [], GeneratorConfig())
        singletons = world["Singletons"]
        voxels = singletons["TerrainMap"]["Voxels"]["Array"].split()

        assert world["GameVersion"] == GAME_VERSION
        assert singletons["MapSize"]["Size"] == {"X": 16, "Y": 16}
        assert len(voxels) == GAME_HEIGHT * 16 * 16
        assert voxels.count("1") == flat_grid.solid_count()
        assert len(singletons["WaterMapNew"]["WaterColumns"]["Array"].split()) == 256
        assert world["Entities"] == []


class TestSaveLoad:
    """Tests for save_timber and load_timber."""

    def test_round_trip(
        self, tmp_path: Path, flat_grid: VoxelGrid, sources: list[WaterSource]
    ) -> None:
        """Saved grid and entities load back unchanged."""
        path = tmp_path / "map.timber"
        entities = water_source_entities(sources, 42)
        save_timber(path, flat_grid, entities, GeneratorConfig())

        grid, loaded = load_timber(path)

        np.testing.assert_array_equal(grid.to_array(), flat_grid.to_array())
        assert grid.solid_count() == flat_grid.solid_count()
        assert loaded == entities

    def test_archive_entries(self, tmp_path: Path, flat_grid: VoxelGrid) -> None:
        """Archive has world, metadata, version and thumbnail entries."""
        path = tmp_path / "map.timber"
        save_timber(path, flat_grid, [], GeneratorConfig(seed=9))

        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
            version = archive.read("version.txt").decode()
            metadata = json.loads(archive.read("map_metadata.json"))
            thumbnail = archive.read("map_thumbnail.jpg")

        assert names == {"world.json", "map_metadata.json", "version.txt", "map_thumbnail.jpg"}
        assert version == GAME_VERSION
        assert metadata["Width"] == 16
        assert "seed 9" in metadata["MapDescription"]
        assert thumbnail[:2] == b"\xff\xd8"
        assert thumbnail[-2:] == b"\xff\xd9"

    def test_tall_terrain_not_saved(self, tmp_path: Path) -> None:
        """Terrain above the format's layers raises instead of being dropped."""
        grid = VoxelGrid(4, GAME_HEIGHT + 7, 4)
        grid.fill_from_heightmap(np.full((4, 4), GAME_HEIGHT + 4.0))
        path = tmp_path / "tall.timber"

        with pytest.raises(ConfigurationError):
            save_timber(path, grid, [], GeneratorConfig())
        assert not path.exists()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_timber(tmp_path / "nope.timber")

    def test_not_a_zip(self, tmp_path: Path) -> None:
        """Non-archive input raises ArchiveFormatError."""
        path = tmp_path / "bad.timber"
        path.write_text("not a zip")
        with pytest.raises(ArchiveFormatError):
            load_timber(path)

    def test_missing_world(self, tmp_path: Path) -> None:
        """An archive without world.json raises ArchiveFormatError."""
        path = tmp_path / "empty.timber"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("version.txt", GAME_VERSION)
        with pytest.raises(ArchiveFormatError):
            load_timber(path)

    def test_wrong_voxel_count(self, tmp_path: Path) -> None:
        """Terrain data that doesn't fit the map size raises ArchiveFormatError."""
        path = tmp_path / "short.timber"
        world = {
            "Singletons": {
                "MapSize": {"Size": {"X": 4, "Y": 4}},
                "TerrainMap": {"Voxels": {"Array": "1 0 1"}},
            }
        }
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("world.json", json.dumps(world))
        with pytest.raises(ArchiveFormatError):
            load_timber(path)


class TestThumbnail:
    """Tests for thumbnail rendering."""

    def test_scaled_jpeg(self, flat_grid: VoxelGrid) -> None:
        """Small maps are upscaled to a legible JPEG."""
        data = render_thumbnail(flat_grid)
        with Image.open(BytesIO(data)) as img:
            assert img.format == "JPEG"
            assert img.size == (256, 256)

    def test_large_map_not_scaled(self) -> None:
        """Maps wider than the thumbnail keep one pixel per column."""
        grid = VoxelGrid(300, 4, 200)
        with Image.open(BytesIO(render_thumbnail(grid))) as img:
            assert img.size == (300, 200)

    def test_marks_water_sources(self) -> None:
        """Water sources are drawn in blue over the terrain."""
        grid = VoxelGrid(64, 4, 64)
        sources = [WaterSource(x=10, y=1, z=10)]
        with Image.open(BytesIO(render_thumbnail(grid, sources))) as img:
            r, g, b = img.convert("RGB").getpixel((42, 42))
        assert b > r and b > g
