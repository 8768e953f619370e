"""
World Generation - Configuration and Constants
Contains terrain channels, noise layer settings, and world generation parameters.
"""

from enum import Enum
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field

from worldgen.errors import ConfigError

# =============================================================================
# NOISE DOMAIN
# =============================================================================

# Every terrain channel is normalized to this closed interval
NOISE_MIN = -1.0
NOISE_MAX = 1.0

# Tiles are grouped into square regions of this many tiles per side
REGION_SIZE = 10

# Elevation at or above which a land tile counts as mountainous
MOUNTAIN_ELEVATION = 0.6

# Sea level on the normalized elevation channel
SEA_LEVEL = 0.0

# =============================================================================
# ENUMERATIONS
# =============================================================================

class TerrainChannel(str, Enum):
    """Scalar fields sampled for every tile"""
    ELEVATION = "elevation"
    PRECIPITATION = "precipitation"
    TEMPERATURE = "temperature"


class TileType(str, Enum):
    """Surface type of a tile"""
    LAND = "LAND"
    OCEAN = "OCEAN"


class BiomeCategory(str, Enum):
    """Gameplay biome families used for production efficiency and disaster risk"""
    GRASSLAND = "GRASSLAND"
    FOREST = "FOREST"
    DESERT = "DESERT"
    MOUNTAIN = "MOUNTAIN"
    TUNDRA = "TUNDRA"
    SWAMP = "SWAMP"
    COASTAL = "COASTAL"


# Each channel samples its own noise basis: seed, seed + 1, seed + 2
CHANNEL_SEED_OFFSETS: Dict[TerrainChannel, int] = {
    TerrainChannel.ELEVATION: 0,
    TerrainChannel.PRECIPITATION: 1,
    TerrainChannel.TEMPERATURE: 2,
}

# Physical display ranges for each channel (metres, mm/year, °C)
CHANNEL_DISPLAY_RANGES: Dict[TerrainChannel, Tuple[float, float]] = {
    TerrainChannel.ELEVATION: (-4000.0, 4000.0),
    TerrainChannel.PRECIPITATION: (0.0, 450.0),
    TerrainChannel.TEMPERATURE: (-10.0, 32.0),
}

WorldSeed = Union[int, str]

# =============================================================================
# NOISE LAYER CONFIGURATION
# =============================================================================

class NoiseLayerConfig(BaseModel):
    """
    Fractal noise settings for a single terrain channel.

    Values are not constrained at construction time; call validate_layer()
    (the noise generator always does) to get a ConfigError for bad input.
    """
    amplitude: float = Field(1.0, description="Overall weight of the field")
    frequency: float = Field(0.04, description="Base sampling frequency per tile")
    octaves: int = Field(8, description="Number of layered noise octaves")
    persistence: float = Field(0.5, description="Amplitude falloff per octave, in (0, 1]")

    model_config = {"frozen": True}

    def validate_layer(self) -> "NoiseLayerConfig":
        """Raise ConfigError unless every setting is usable."""
        if not self.amplitude > 0:
            raise ConfigError(f"amplitude must be > 0, got {self.amplitude}")
        if not self.frequency > 0:
            raise ConfigError(f"frequency must be > 0, got {self.frequency}")
        if self.octaves < 1:
            raise ConfigError(f"octaves must be >= 1, got {self.octaves}")
        if not 0 < self.persistence <= 1:
            raise ConfigError(f"persistence must be in (0, 1], got {self.persistence}")
        return self

    @property
    def max_amplitude(self) -> float:
        """Sum of octave weights used to normalize the fractal sum."""
        return sum(self.persistence ** i for i in range(self.octaves))


# =============================================================================
# GENERATION PARAMETERS
# =============================================================================

class WorldGenerationParams(BaseModel):
    """
    Input parameters for world creation.
    One noise layer per terrain channel plus the grid dimensions.
    """
    seed: WorldSeed = Field(..., description="Root seed for every noise channel")
    width: int = Field(100, ge=1, description="Grid width in tiles")
    height: int = Field(100, ge=1, description="Grid height in tiles")
    name: str = Field("New World", description="Display name of the world")

    elevation: NoiseLayerConfig = Field(default_factory=NoiseLayerConfig)
    precipitation: NoiseLayerConfig = Field(default_factory=NoiseLayerConfig)
    temperature: NoiseLayerConfig = Field(default_factory=NoiseLayerConfig)

    default_biome: Optional[str] = Field(
        None,
        description="Biome used when a tile matches no rectangle; None makes that an error",
    )

    def layer_for(self, channel: TerrainChannel) -> NoiseLayerConfig:
        """Get the noise configuration for a channel."""
        return {
            TerrainChannel.ELEVATION: self.elevation,
            TerrainChannel.PRECIPITATION: self.precipitation,
            TerrainChannel.TEMPERATURE: self.temperature,
        }[channel]
