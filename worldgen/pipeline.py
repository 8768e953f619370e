"""
World Generation - Generation Pipeline
Builds a world from a seed: samples the three terrain channels, classifies
every tile and hands the result to an optional tile store.
"""

import logging
import time
from typing import Callable, List, Optional, Protocol, Sequence
from uuid import UUID

import numpy as np

from worldgen.biomes import BiomeClassifier, resolve_category, validate_biome_catalog
from worldgen.config import TerrainChannel, WorldGenerationParams
from worldgen.models import Biome, GeneratedWorld, TerrainSample, Tile, WorldMetadata
from worldgen.noise import NoiseFieldGenerator

logger = logging.getLogger(__name__)

GENERATION_STEPS = ["elevation", "precipitation", "temperature", "classification", "storage"]


class TileStore(Protocol):
    """Persistence collaborator for generated tiles"""

    def save_tiles(self, world_id: UUID, tiles: List[Tile]) -> None:
        ...


class WorldGenerator:
    """
    Runs world generation for one set of parameters.
    """

    def __init__(
        self,
        params: WorldGenerationParams,
        biomes: Optional[Sequence[Biome]] = None,
        tile_store: Optional[TileStore] = None,
        progress_callback: Optional[Callable[[str, float], None]] = None,
        noise: Optional[NoiseFieldGenerator] = None,
    ):
        """
        Initialize the generator.

        Args:
            params: World generation parameters
            biomes: Biome catalog (DEFAULT_BIOMES when omitted)
            tile_store: Optional collaborator that receives the tiles
            progress_callback: Optional callback for progress updates (step_name, percent)
            noise: Noise sampler to use
        """
        self.params = params
        self.classifier = BiomeClassifier(biomes, default_biome=params.default_biome)
        self.tile_store = tile_store
        self.progress_callback = progress_callback
        self.noise = noise or NoiseFieldGenerator()

    def _report(self, step: str):
        if self.progress_callback:
            done = GENERATION_STEPS.index(step) + 1
            self.progress_callback(step, done / len(GENERATION_STEPS) * 100)

    def generate(self) -> GeneratedWorld:
        """
        Execute the complete generation run.

        Returns:
            GeneratedWorld with channel grids, biome names and tiles

        Raises:
            ConfigError: If a noise layer or the biome catalog is invalid
            UnclassifiedTileError: If a tile matches no biome and no default is set
        """
        params = self.params
        start_time = time.time()

        # Fail on a bad configuration before sampling anything
        for channel in TerrainChannel:
            params.layer_for(channel).validate_layer()
        validate_biome_catalog(self.classifier.biomes)

        metadata = WorldMetadata(
            name=params.name,
            seed=str(params.seed),
            width=params.width,
            height=params.height,
            generation_params=params.model_dump(mode="json"),
        )
        logger.info(
            f"Generating world {metadata.world_id} "
            f"(seed={params.seed}, size={params.width}x{params.height})"
        )

        grids = {}
        for channel in TerrainChannel:
            grids[channel] = self.noise.generate_field(
                params.seed, channel, params.width, params.height, params.layer_for(channel)
            )
            self._report(channel.value)

        elevation = grids[TerrainChannel.ELEVATION]
        precipitation = grids[TerrainChannel.PRECIPITATION]
        temperature = grids[TerrainChannel.TEMPERATURE]

        indices = self.classifier.classify_grid(precipitation, temperature)
        biomes = self.classifier.biomes

        tiles = []
        for x in range(params.width):
            for y in range(params.height):
                sample = TerrainSample(
                    elevation=float(elevation[x, y]),
                    precipitation=float(precipitation[x, y]),
                    temperature=float(temperature[x, y]),
                )
                biome = biomes[indices[x, y]]
                tiles.append(Tile.at(x, y, sample, biome, resolve_category(biome, sample.elevation)))

        biome_names = np.array([b.name for b in biomes], dtype=object)[indices]
        self._report("classification")

        if self.tile_store is not None:
            self.tile_store.save_tiles(metadata.world_id, tiles)
        self._report("storage")

        metadata.duration_seconds = time.time() - start_time
        logger.info(
            f"World {metadata.world_id} generated: {len(tiles)} tiles "
            f"in {metadata.duration_seconds:.2f}s"
        )

        return GeneratedWorld(
            metadata=metadata,
            elevation=elevation,
            precipitation=precipitation,
            temperature=temperature,
            biome_names=biome_names,
            tiles=tiles,
        )


def generate_world(
    params: WorldGenerationParams,
    biomes: Optional[Sequence[Biome]] = None,
    tile_store: Optional[TileStore] = None,
) -> GeneratedWorld:
    """
    Factory function that builds and runs a WorldGenerator.

    Args:
        params: World generation parameters
        biomes: Biome catalog (DEFAULT_BIOMES when omitted)
        tile_store: Optional tile persistence collaborator

    Returns:
        The generated world
    """
    return WorldGenerator(params, biomes=biomes, tile_store=tile_store).generate()
