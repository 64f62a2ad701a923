"""Custom exceptions for terrain generation."""


class TerrainError(Exception):
    """Base exception for terrain generation errors."""

    pass


class ConfigurationError(TerrainError):
    """Raised when a generator configuration is out of range.

    Always raised before the grid is touched.
    """

    pass


class WaterwaySearchError(TerrainError):
    """Raised when no start or end point qualifies for a waterway."""

    pass


class StructuralInvariantError(TerrainError):
    """Raised when a structural validation pass adds solid voxels."""

    pass


class ArchiveFormatError(TerrainError):
    """Raised when a .timber archive cannot be read."""

    pass
