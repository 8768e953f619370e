"""
Settlement World - World Generation Package
Deterministic terrain channels, biome classification and the generation pipeline.
"""

from worldgen.biomes import DEFAULT_BIOMES, BiomeClassifier, classify, resolve_category
from worldgen.config import NoiseLayerConfig, TerrainChannel, WorldGenerationParams
from worldgen.errors import ConfigError, UnclassifiedTileError
from worldgen.models import Biome, GeneratedWorld, TerrainSample, Tile
from worldgen.noise import NoiseFieldGenerator
from worldgen.pipeline import WorldGenerator, generate_world

__version__ = "0.1.0"
__all__ = [
    "DEFAULT_BIOMES",
    "Biome",
    "BiomeClassifier",
    "ConfigError",
    "GeneratedWorld",
    "NoiseFieldGenerator",
    "NoiseLayerConfig",
    "TerrainChannel",
    "TerrainSample",
    "Tile",
    "UnclassifiedTileError",
    "WorldGenerationParams",
    "WorldGenerator",
    "classify",
    "generate_world",
    "resolve_category",
]
