"""
Tile Repository
Stores generated world tiles in Supabase
"""

import logging
from typing import List
from uuid import UUID

from settlements.db.repositories.settlements import wrap_errors
from settlements.db.supabase_client import SupabaseClient
from worldgen.models import Tile

logger = logging.getLogger(__name__)

# Rows per insert request
BATCH_SIZE = 1000


class TileRepository:
    """
    Repository for world tiles.
    Implements the world generator's TileStore interface.
    """

    def __init__(self, client: SupabaseClient, batch_size: int = BATCH_SIZE):
        self.client = client
        self.table_name = "tiles"
        self.batch_size = batch_size

    def save_tiles(self, world_id: UUID, tiles: List[Tile]) -> None:
        """
        Insert all tiles of a world in batches.

        Args:
            world_id: World UUID
            tiles: Generated tiles
        """
        rows = [tile.to_row(world_id) for tile in tiles]
        for start in range(0, len(rows), self.batch_size):
            batch = rows[start:start + self.batch_size]
            with wrap_errors("Save tiles"):
                self.client.table(self.table_name).insert(batch).execute()
        logger.info(f"Saved {len(rows)} tiles for world {world_id}")

    def get_region(self, world_id: UUID, region_x: int, region_y: int) -> List[dict]:
        """
        Get the tile rows of one region.

        Args:
            world_id: World UUID
            region_x: Region X coordinate
            region_y: Region Y coordinate

        Returns:
            List of tile rows
        """
        with wrap_errors("Load region"):
            result = (
                self.client.table(self.table_name)
                .select("*")
                .eq("world_id", str(world_id))
                .eq("region_x", region_x)
                .eq("region_y", region_y)
                .execute()
            )
        return result.data or []
