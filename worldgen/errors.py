"""
World Generation Errors
Failures raised while building terrain and classifying tiles.
"""

from typing import Optional


class ConfigError(ValueError):
    """Invalid configuration that makes generation or simulation impossible."""


class UnclassifiedTileError(ValueError):
    """A terrain point fell outside every biome rectangle."""

    def __init__(self, precipitation: float, temperature: float, x: Optional[int] = None, y: Optional[int] = None):
        self.precipitation = precipitation
        self.temperature = temperature
        self.x = x
        self.y = y
        where = f" at tile ({x}, {y})" if x is not None and y is not None else ""
        super().__init__(
            f"No biome covers precipitation={precipitation:.4f}, "
            f"temperature={temperature:.4f}{where}"
        )
