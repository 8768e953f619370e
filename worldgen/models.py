"""
World Generation - World Data Models
Data structures for terrain samples, biomes, tiles and generated worlds.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import numpy as np
from pydantic import BaseModel, Field

from worldgen.config import (
    NOISE_MAX,
    REGION_SIZE,
    BiomeCategory,
    TerrainChannel,
    TileType,
)


# =============================================================================
# BIOMES
# =============================================================================

class Biome(BaseModel):
    """
    A named rectangle in (precipitation, temperature) space.

    Ranges are half-open [min, max) so neighbouring rectangles never share a
    point. A max equal to the upper edge of the noise domain is inclusive,
    otherwise 1.0 itself could never be classified.
    """
    name: str
    precipitation_min: float
    precipitation_max: float
    temperature_min: float
    temperature_max: float
    category: BiomeCategory = BiomeCategory.GRASSLAND

    model_config = {"frozen": True}

    @staticmethod
    def _in_range(value: float, low: float, high: float) -> bool:
        if low <= value < high:
            return True
        return high >= NOISE_MAX and value == high

    def contains(self, precipitation: float, temperature: float) -> bool:
        """Check whether a point falls inside this biome's rectangle"""
        return (
            self._in_range(precipitation, self.precipitation_min, self.precipitation_max)
            and self._in_range(temperature, self.temperature_min, self.temperature_max)
        )


# =============================================================================
# TILES
# =============================================================================

class TerrainSample(BaseModel):
    """The three normalized channel values at one coordinate"""
    elevation: float = Field(..., ge=-1.0, le=1.0)
    precipitation: float = Field(..., ge=-1.0, le=1.0)
    temperature: float = Field(..., ge=-1.0, le=1.0)

    model_config = {"frozen": True}


class Tile(BaseModel):
    """A single classified world tile"""
    x: int
    y: int
    region_x: int
    region_y: int
    sample: TerrainSample
    biome: str
    category: BiomeCategory
    tile_type: TileType

    @classmethod
    def at(
        cls,
        x: int,
        y: int,
        sample: TerrainSample,
        biome: Biome,
        category: BiomeCategory,
    ) -> "Tile":
        """Build a tile, deriving its region and surface type"""
        return cls(
            x=x,
            y=y,
            region_x=x // REGION_SIZE,
            region_y=y // REGION_SIZE,
            sample=sample,
            biome=biome.name,
            category=category,
            tile_type=TileType.OCEAN if sample.elevation < 0 else TileType.LAND,
        )

    def to_row(self, world_id: UUID) -> Dict[str, Any]:
        """Flatten for storage"""
        return {
            "world_id": str(world_id),
            "x": self.x,
            "y": self.y,
            "region_x": self.region_x,
            "region_y": self.region_y,
            "elevation": self.sample.elevation,
            "precipitation": self.sample.precipitation,
            "temperature": self.sample.temperature,
            "biome": self.biome,
            "category": self.category.value,
            "tile_type": self.tile_type.value,
        }


# =============================================================================
# WORLD
# =============================================================================

class WorldMetadata(BaseModel):
    """
    Metadata stored alongside each generated world.
    """
    world_id: UUID = Field(default_factory=uuid4)
    name: str
    seed: str
    width: int
    height: int
    generation_params: Dict[str, Any]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_seconds: Optional[float] = None


class GeneratedWorld:
    """
    Result of a world generation run.
    Channel grids are NumPy arrays of shape (width, height), indexed [x, y].
    """

    def __init__(
        self,
        metadata: WorldMetadata,
        elevation: np.ndarray,
        precipitation: np.ndarray,
        temperature: np.ndarray,
        biome_names: np.ndarray,
        tiles: List[Tile],
    ):
        self.metadata = metadata
        self.elevation = elevation
        self.precipitation = precipitation
        self.temperature = temperature
        self.biome_names = biome_names
        self.tiles = tiles

    @property
    def width(self) -> int:
        return self.metadata.width

    @property
    def height(self) -> int:
        return self.metadata.height

    def tile_at(self, x: int, y: int) -> Tile:
        """Get the tile at a global coordinate"""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) is outside a {self.width}x{self.height} world")
        return self.tiles[x * self.height + y]

    def sample_at(self, x: int, y: int) -> TerrainSample:
        return TerrainSample(
            elevation=float(self.elevation[x, y]),
            precipitation=float(self.precipitation[x, y]),
            temperature=float(self.temperature[x, y]),
        )

    def statistics(self) -> Dict[str, Any]:
        """
        Summarize the generated world.

        Returns:
            Dictionary with land/ocean shares, a biome histogram and
            per-channel min/max/mean
        """
        total = len(self.tiles)
        ocean = sum(1 for tile in self.tiles if tile.tile_type == TileType.OCEAN)
        biome_counts = Counter(tile.biome for tile in self.tiles)
        category_counts = Counter(tile.category.value for tile in self.tiles)

        channels = {}
        for channel, grid in (
            (TerrainChannel.ELEVATION, self.elevation),
            (TerrainChannel.PRECIPITATION, self.precipitation),
            (TerrainChannel.TEMPERATURE, self.temperature),
        ):
            channels[channel.value] = {
                "min": float(grid.min()),
                "max": float(grid.max()),
                "mean": float(grid.mean()),
            }

        return {
            "tiles": total,
            "ocean_percent": (ocean / total) * 100 if total else 0.0,
            "land_percent": ((total - ocean) / total) * 100 if total else 0.0,
            "biomes": dict(biome_counts.most_common()),
            "categories": dict(category_counts.most_common()),
            "channels": channels,
        }
