"""Generator configuration models and TOML loading."""

import tomllib
from enum import IntEnum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigurationError

# Timberborn maps always have exactly 23 vertical layers
GAME_HEIGHT = 23


class SeedOffset(IntEnum):
    """Per-stage offsets added to the top-level seed.

    Keeps stages independent while the whole run stays reproducible
    from a single seed.
    """

    HEIGHTMAP_BASE = 0
    HEIGHTMAP_PEAKS = 1000
    HEIGHTMAP_DETAIL = 2000
    CAVE_NOISE = 3000
    CAVE_WORMS = 4000
    WATERWAYS = 5000
    OVERHANGS = 6000
    ENTITY_IDS = 7000


# Stage seeds are reduced to the unsigned 32-bit range numpy and OpenSimplex accept
SEED_MASK = 0xFFFFFFFF


def derive_seed(seed: int, offset: SeedOffset) -> int:
    """Seed for one pipeline stage.

    Any integer run seed is accepted; negative and oversized sums wrap into
    the non-negative 32-bit range.
    """
    return (seed + int(offset)) & SEED_MASK


class NoiseConfig(BaseModel):
    """Fractal noise parameters for a single layer."""

    frequency: float = Field(default=0.015, gt=0, description="Base sampling frequency")
    octaves: int = Field(default=3, ge=1, description="Number of octaves for fBm")
    persistence: float = Field(default=0.5, gt=0, description="Amplitude multiplier per octave")
    lacunarity: float = Field(default=2.0, gt=0, description="Frequency multiplier per octave")


class HeightmapConfig(BaseModel):
    """Heightmap shaping parameters."""

    base: NoiseConfig = Field(
        default_factory=lambda: NoiseConfig(frequency=0.015, octaves=3)
    )
    base_exponent: float = Field(default=1.2, gt=0, description="Power curve on base layer")
    base_weight: float = Field(default=0.6, ge=0, description="Blend weight of base layer")

    peaks_enabled: bool = Field(default=True, description="Blend in a ridged mountain layer")
    peaks: NoiseConfig = Field(
        default_factory=lambda: NoiseConfig(frequency=0.03, octaves=4)
    )
    peaks_exponent: float = Field(default=2.0, gt=0, description="Power curve on ridged layer")
    peaks_weight: float = Field(default=0.3, ge=0, description="Blend weight of ridged layer")

    detail_enabled: bool = Field(default=True, description="Blend in a fine detail layer")
    detail: NoiseConfig = Field(
        default_factory=lambda: NoiseConfig(frequency=0.08, octaves=1)
    )
    detail_weight: float = Field(default=0.1, ge=0, description="Blend weight of detail layer")

    terrace_steps: int = Field(default=6, ge=0, description="Plateau levels (0 = off)")
    terrace_strength: float = Field(
        default=0.3, ge=0, le=1, description="Blend between raw and terraced height"
    )

    falloff: bool = Field(default=False, description="Lower the terrain toward the map edges")
    falloff_strength: float = Field(
        default=0.5, ge=0, le=1, description="Height fraction removed at the corners"
    )

    min_height: int = Field(default=2, ge=0, description="Lowest column height")


class CaveConfig(BaseModel):
    """Worm tunnel and cavern carving parameters."""

    enabled: bool = Field(default=True, description="Run the cave stage")
    worm_count: int = Field(default=5, ge=0, description="Number of worm tunnels")
    worm_radius: float = Field(default=2.5, gt=0, description="Tunnel sphere radius")
    worm_length: int = Field(default=60, ge=0, description="Segments walked per tunnel")
    worm_step: float = Field(default=1.5, gt=0, description="Distance advanced per segment")
    min_depth: int = Field(default=3, ge=0, description="Lowest layer caves may reach")
    cavern_threshold: float = Field(
        default=0.5, ge=-1, le=1, description="3D noise value above which rock is removed"
    )
    cavern_frequency: float = Field(default=0.08, gt=0, description="3D cavern noise frequency")
    cavern_band_top: float = Field(
        default=0.7, gt=0, le=1, description="Top of the cavern band as a fraction of grid height"
    )
    open_entrances: bool = Field(default=False, description="Break cave ceilings at the surface")


class OverhangConfig(BaseModel):
    """Cliff overhang parameters."""

    enabled: bool = Field(default=False, description="Run the overhang stage")
    chance: float = Field(default=0.3, ge=0, le=1, description="Probability per cliff column")
    min_cliff_height: int = Field(default=5, ge=1, description="Drop that makes a cliff")
    max_length: int = Field(default=3, ge=1, le=3, description="Longest overhang in voxels")


class WaterwayConfig(BaseModel):
    """River channel parameters."""

    enabled: bool = Field(default=True, description="Run the waterway stage")
    count: int = Field(default=2, ge=0, description="Number of waterways requested")
    width: int = Field(default=2, ge=1, description="Nominal channel half-width")
    depth: int = Field(default=2, ge=1, description="Nominal channel depth")
    meandering: float = Field(default=0.5, ge=0, description="Strength of random wandering")
    water_source_spacing: int = Field(
        default=30, ge=1, description="Path steps between water sources (minimum 30)"
    )
    water_source_strength: float = Field(default=1.0, gt=0, description="Emitted source strength")
    start_height_fraction: float = Field(
        default=0.5, ge=0, le=1, description="Start must lie above this fraction of terrain top"
    )
    start_attempts: int = Field(default=100, ge=1, description="Random probes for a start point")
    edge_samples: int = Field(default=20, ge=1, description="Samples per map edge for the end point")
    top_k: int = Field(default=3, ge=1, description="Best neighbours to pick from each step")
    arrival_distance: int = Field(default=3, ge=1, description="Stop this close to the end")
    max_steps_factor: int = Field(default=3, ge=1, description="Step budget as a multiple of map size")


class StructureConfig(BaseModel):
    """Structural support validation parameters."""

    enabled: bool = Field(default=True, description="Remove unsupported voxels")
    max_overhang: int = Field(
        default=3, ge=0, description="Consecutive lateral steps allowed in a support chain"
    )


# Water sources closer than this along a path would flood into each other
MIN_WATER_SOURCE_SPACING = 30


class GeneratorConfig(BaseModel):
    """Complete terrain generation configuration."""

    seed: int = Field(default=42, description="Random seed for reproducibility")
    map_size: int = Field(default=128, ge=1, description="Map width and depth in voxels")
    max_height: int = Field(default=GAME_HEIGHT, ge=2, description="Target terrain height")
    grid_height: int = Field(default=GAME_HEIGHT, ge=2, description="Vertical layers in the grid")

    heightmap: HeightmapConfig = Field(default_factory=HeightmapConfig)
    caves: CaveConfig = Field(default_factory=CaveConfig)
    overhangs: OverhangConfig = Field(default_factory=OverhangConfig)
    waterways: WaterwayConfig = Field(default_factory=WaterwayConfig)
    structure: StructureConfig = Field(default_factory=StructureConfig)

    @model_validator(mode="after")
    def _check_ranges(self) -> "GeneratorConfig":
        top = self.terrain_top
        if self.heightmap.min_height > top:
            raise ValueError(
                f"heightmap.min_height {self.heightmap.min_height} exceeds terrain top {top}"
            )
        if self.caves.min_depth > self.grid_height - 2:
            raise ValueError(
                f"caves.min_depth {self.caves.min_depth} leaves no carvable layers "
                f"in a grid of height {self.grid_height}"
            )
        return self

    @property
    def terrain_top(self) -> int:
        """Highest layer a column may reach."""
        return min(self.max_height, self.grid_height) - 1

    def stage_seed(self, offset: SeedOffset) -> int:
        """Seed for one pipeline stage."""
        return derive_seed(self.seed, offset)

    def check_exportable(self) -> None:
        """Check the grid fits the map format's fixed height.

        Raises:
            ConfigurationError: If grid_height exceeds GAME_HEIGHT.
        """
        if self.grid_height > GAME_HEIGHT:
            raise ConfigurationError(
                f"grid_height {self.grid_height} exceeds the {GAME_HEIGHT} layers "
                "a .timber map can hold"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratorConfig":
        """Build a config from plain data.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    def validate_for_run(self) -> None:
        """Re-check every constraint, including fields assigned after creation.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        type(self).from_mapping(self.model_dump())


def load_config(config_path: Path) -> GeneratorConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed GeneratorConfig.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
        ConfigurationError: If values are out of range.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return GeneratorConfig.from_mapping(data)


def _configs_dir() -> Path:
    return Path(__file__).parent.parent.parent / "configs"


def find_config(name: str) -> Path:
    """Find a config file by name.

    Searches in the following order:
    1. Exact path if name contains path separator or ends in .toml
    2. configs/{name}.toml
    3. configs/{name}

    Args:
        name: Config name or path.

    Returns:
        Path to the config file.

    Raises:
        FileNotFoundError: If config file is not found.
    """
    if "/" in name or name.endswith(".toml"):
        path = Path(name)
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {name}")

    configs_dir = _configs_dir()

    config_path = configs_dir / f"{name}.toml"
    if config_path.exists():
        return config_path

    config_path = configs_dir / name
    if config_path.exists():
        return config_path

    raise FileNotFoundError(
        f"Config '{name}' not found in {configs_dir}. "
        f"Available configs: {list_configs()}"
    )


def list_configs() -> list[str]:
    """List available config names."""
    configs_dir = _configs_dir()
    if not configs_dir.exists():
        return []
    return sorted(p.stem for p in configs_dir.glob("*.toml"))
