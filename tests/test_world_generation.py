"""
World Generation Pipeline Tests
"""

import pytest

from worldgen.biomes import DEFAULT_BIOMES
from worldgen.config import NoiseLayerConfig, TerrainChannel, TileType, WorldGenerationParams
from worldgen.errors import ConfigError, UnclassifiedTileError
from worldgen.models import Biome
from worldgen.pipeline import GENERATION_STEPS, WorldGenerator, generate_world


class RecordingTileStore:
    """Tile store that keeps every batch it receives"""

    def __init__(self):
        self.saved = []

    def save_tiles(self, world_id, tiles):
        self.saved.append((world_id, list(tiles)))


@pytest.fixture(scope="module")
def world():
    """A default 100x100 world"""
    return generate_world(WorldGenerationParams(seed=12345))


class TestGeneratedWorld:
    """Tests for the shape and contents of a generated world"""

    def test_dimensions(self, world):
        assert world.width == 100
        assert world.height == 100
        assert len(world.tiles) == 10_000
        assert world.elevation.shape == (100, 100)
        assert world.biome_names.shape == (100, 100)

    def test_channels_in_range(self, world):
        for grid in (world.elevation, world.precipitation, world.temperature):
            assert grid.min() >= -1.0
            assert grid.max() <= 1.0

    def test_every_tile_has_a_catalog_biome(self, world):
        names = {b.name for b in DEFAULT_BIOMES}
        assert all(tile.biome in names for tile in world.tiles)

    def test_tile_lookup(self, world):
        tile = world.tile_at(37, 64)
        assert (tile.x, tile.y) == (37, 64)
        assert (tile.region_x, tile.region_y) == (3, 6)
        assert tile.biome == world.biome_names[37, 64]
        assert tile.sample == world.sample_at(37, 64)

    def test_tile_lookup_out_of_range(self, world):
        with pytest.raises(IndexError):
            world.tile_at(100, 0)

    def test_tile_type_follows_elevation(self, world):
        for tile in world.tiles[:500]:
            expected = TileType.OCEAN if tile.sample.elevation < 0 else TileType.LAND
            assert tile.tile_type == expected

    def test_statistics(self, world):
        stats = world.statistics()
        assert stats["tiles"] == 10_000
        assert stats["ocean_percent"] + stats["land_percent"] == pytest.approx(100.0)
        assert sum(stats["biomes"].values()) == 10_000
        assert sum(stats["categories"].values()) == 10_000
        assert set(stats["channels"]) == {c.value for c in TerrainChannel}
        elevation = stats["channels"]["elevation"]
        assert elevation["min"] <= elevation["mean"] <= elevation["max"]

    def test_metadata(self, world):
        assert world.metadata.seed == "12345"
        assert world.metadata.generation_params["width"] == 100
        assert world.metadata.duration_seconds is not None

    def test_tile_row(self, world):
        row = world.tile_at(0, 0).to_row(world.metadata.world_id)
        assert row["world_id"] == str(world.metadata.world_id)
        assert row["tile_type"] in ("LAND", "OCEAN")


class TestDeterminism:
    """Same seed and parameters give the same world"""

    def test_same_seed_same_world(self):
        params = WorldGenerationParams(seed="emberfall", width=30, height=20)
        a = generate_world(params)
        b = generate_world(params)
        assert (a.elevation == b.elevation).all()
        assert (a.biome_names == b.biome_names).all()
        assert [t.biome for t in a.tiles] == [t.biome for t in b.tiles]

    def test_different_seed_different_world(self):
        a = generate_world(WorldGenerationParams(seed=1, width=30, height=20))
        b = generate_world(WorldGenerationParams(seed=2, width=30, height=20))
        assert not (a.elevation == b.elevation).all()


class TestPipeline:
    """Tests for collaborators and failure modes"""

    def test_tiles_handed_to_store(self):
        store = RecordingTileStore()
        world = generate_world(WorldGenerationParams(seed=3, width=12, height=8), tile_store=store)
        assert len(store.saved) == 1
        world_id, tiles = store.saved[0]
        assert world_id == world.metadata.world_id
        assert len(tiles) == 96

    def test_progress_reported_for_every_step(self):
        steps = []
        params = WorldGenerationParams(seed=3, width=8, height=8)
        WorldGenerator(params, progress_callback=lambda step, pct: steps.append((step, pct))).generate()
        assert [s for s, _ in steps] == GENERATION_STEPS
        assert steps[-1][1] == pytest.approx(100.0)

    def test_invalid_layer_fails_before_sampling(self):
        store = RecordingTileStore()
        params = WorldGenerationParams(seed=3, width=8, height=8, temperature=NoiseLayerConfig(octaves=0))
        with pytest.raises(ConfigError):
            generate_world(params, tile_store=store)
        assert store.saved == []

    def test_incomplete_catalog_raises(self):
        catalog = [Biome(
            name="SCORCHED",
            precipitation_min=-1.0,
            precipitation_max=1.0,
            temperature_min=0.9,
            temperature_max=1.0,
        )]
        with pytest.raises(UnclassifiedTileError):
            generate_world(WorldGenerationParams(seed=3, width=20, height=20), biomes=catalog)

    def test_incomplete_catalog_with_default(self):
        catalog = [
            Biome(name="SCORCHED", precipitation_min=-1.0, precipitation_max=1.0,
                  temperature_min=0.9, temperature_max=1.0),
            Biome(name="STEPPE", precipitation_min=-1.0, precipitation_max=1.0,
                  temperature_min=0.95, temperature_max=1.0),
        ]
        params = WorldGenerationParams(seed=3, width=20, height=20, default_biome="STEPPE")
        world = generate_world(params, biomes=catalog)
        assert {t.biome for t in world.tiles} <= {"SCORCHED", "STEPPE"}
