"""Command-line interface for terrain generation."""

import argparse
import logging
import sys
import time
import tomllib
from pathlib import Path
from typing import Any

import structlog

from .config import GeneratorConfig, find_config, load_config
from .exceptions import ConfigurationError


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog console output."""
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate procedural voxel terrain as a Timberborn map"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path or name of a TOML config in configs/ (default: built-in defaults)",
    )
    parser.add_argument(
        "--size", type=int, default=None, help="Map width and depth (default: 128)"
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed (default: 42)"
    )
    parser.add_argument(
        "--max-height",
        type=int,
        default=None,
        help="Target terrain height (default: 23)",
    )
    parser.add_argument("--no-caves", action="store_true", help="Skip cave carving")
    parser.add_argument(
        "--no-waterways", action="store_true", help="Skip waterway carving"
    )
    parser.add_argument("--overhangs", action="store_true", help="Add cliff overhangs")
    parser.add_argument(
        "--no-validate", action="store_true", help="Skip post-generation diagnostics"
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="maps/generated.timber",
        help="Output path (default: maps/generated.timber)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> GeneratorConfig:
    """Load the base config and apply command-line overrides.

    Raises:
        FileNotFoundError: If the named config doesn't exist.
        tomllib.TOMLDecodeError: If the config file is malformed.
        ConfigurationError: If the resulting values are out of range.
    """
    config = load_config(find_config(args.config)) if args.config else GeneratorConfig()
    data: dict[str, Any] = config.model_dump()

    if args.size is not None:
        data["map_size"] = args.size
    if args.seed is not None:
        data["seed"] = args.seed
    if args.max_height is not None:
        data["max_height"] = args.max_height
    if args.no_caves:
        data["caves"]["enabled"] = False
    if args.no_waterways:
        data["waterways"]["enabled"] = False
    if args.overhangs:
        data["overhangs"]["enabled"] = True

    return GeneratorConfig.from_mapping(data)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for terrain generation."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    logger = structlog.get_logger()

    # Import here to avoid slow startup for --help
    from .terrain.generator import generate_and_save

    try:
        config = resolve_config(args)
        config.check_exportable()
    except (FileNotFoundError, tomllib.TOMLDecodeError, ConfigurationError) as e:
        logger.error("config_invalid", error=str(e))
        sys.exit(1)

    output_path = Path(args.output)

    print(
        f"Generating {config.map_size}x{config.grid_height}x{config.map_size} "
        f"terrain with seed {config.seed}"
    )
    print(f"Output: {output_path}")
    print()

    start_time = time.time()
    result = generate_and_save(config, output_path, validate=not args.no_validate)
    gen_time = time.time() - start_time

    print()
    print(f"Generation complete in {gen_time:.1f}s")
    print(f"  Solid voxels:  {result.grid.solid_count():,}")
    print(
        f"  Tunnels:       {result.caves.tunnels_carved}/{result.caves.tunnels_requested}"
    )
    print(
        f"  Waterways:     {len(result.waterways.waterways)}/{result.waterways.requested}"
    )
    print(f"  Water sources: {len(result.water_sources)}")
    print(f"  Start:         {result.starting_location}")
    print(f"  Unsupported:   {result.structure.removed} removed")
    if result.validation is not None:
        status = "passed" if result.validation.passed else "FAILED"
        print(
            f"  Validation:    {status} ({len(result.validation.errors)} errors, "
            f"{len(result.validation.warnings)} warnings)"
        )
    print(f"Saved to {output_path}")

    if result.validation is not None and not result.validation.passed:
        sys.exit(2)


if __name__ == "__main__":
    main()
