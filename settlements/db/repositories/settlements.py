"""
Settlement Repository
Supabase-backed SettlementStore
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional

import httpx
from postgrest.exceptions import APIError

from settlements.config import RECENT_DISASTER_TICKS
from settlements.db.supabase_client import SupabaseClient
from settlements.errors import PersistenceError, SettlementNotFoundError
from settlements.models import (
    ResourceLedger,
    SettlementState,
    SettlementUpdate,
    StructureInstance,
)

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


@contextmanager
def wrap_errors(action: str, settlement_id: Optional[str] = None) -> Iterator[None]:
    """Translate client errors into PersistenceError"""
    try:
        yield
    except APIError as e:
        raise PersistenceError(f"{action} failed: {e.message}", transient=False, settlement_id=settlement_id) from e
    except httpx.HTTPError as e:
        raise PersistenceError(f"{action} failed: {e}", transient=True, settlement_id=settlement_id) from e


class SettlementRepository:
    """
    Repository for settlement tick persistence.

    Tables: settlements, settlement_structures, settlement_storage,
    disaster_history, tick_windows. A tick outcome is written through the
    apply_settlement_tick database function so it commits in one transaction.
    """

    def __init__(self, client: SupabaseClient):
        """
        Initialize repository.

        Args:
            client: Supabase client instance
        """
        self.client = client
        self.table_name = "settlements"

    def list_settlement_ids(self, world_id: str) -> List[str]:
        with wrap_errors("List settlements"):
            result = (
                self.client.table(self.table_name)
                .select("settlement_id")
                .eq("world_id", world_id)
                .order("settlement_id")
                .execute()
            )
        return [row["settlement_id"] for row in result.data or []]

    def load_settlement(self, settlement_id: str, as_of: Optional[datetime] = None) -> SettlementState:
        """
        Load a settlement with its structures, stockpile and recent disasters.

        Args:
            settlement_id: Settlement to load
            as_of: Reference time for the disaster history window (now when omitted)

        Raises:
            SettlementNotFoundError: If the settlement row is gone
            PersistenceError: For any other database failure
        """
        with wrap_errors("Load settlement", settlement_id):
            result = (
                self.client.table(self.table_name)
                .select("*")
                .eq("settlement_id", settlement_id)
                .limit(1)
                .execute()
            )
            if not result.data:
                raise SettlementNotFoundError(settlement_id)
            row = result.data[0]

            structures = (
                self.client.table("settlement_structures")
                .select("*")
                .eq("settlement_id", settlement_id)
                .execute()
            )
            storage = (
                self.client.table("settlement_storage")
                .select("*")
                .eq("settlement_id", settlement_id)
                .limit(1)
                .execute()
            )
            as_of = as_of or datetime.now(timezone.utc)
            cutoff = as_of - timedelta(hours=RECENT_DISASTER_TICKS)
            recent = (
                self.client.table("disaster_history")
                .select("event_id", count="exact")
                .eq("settlement_id", settlement_id)
                .gte("occurred_at", cutoff.isoformat())
                .lt("occurred_at", as_of.isoformat())
                .execute()
            )

        return self._to_state(row, structures.data or [], storage.data or [], recent.count or 0)

    @staticmethod
    def _to_state(
        row: Dict[str, Any],
        structure_rows: List[Dict[str, Any]],
        storage_rows: List[Dict[str, Any]],
        recent_disasters: int,
    ) -> SettlementState:
        storage = storage_rows[0] if storage_rows else {}
        return SettlementState(
            settlement_id=row["settlement_id"],
            world_id=row["world_id"],
            name=row.get("name") or "",
            biome_category=row["biome_category"],
            population=row.get("population") or 0,
            resilience=row.get("resilience") or 0,
            tile_x=row.get("tile_x"),
            tile_y=row.get("tile_y"),
            recent_disaster_count=recent_disasters,
            ledger=ResourceLedger(
                food=storage.get("food", 0),
                water=storage.get("water", 0),
                wood=storage.get("wood", 0),
                stone=storage.get("stone", 0),
                ore=storage.get("ore", 0),
            ),
            structures=[
                StructureInstance(
                    structure_id=s["structure_id"],
                    structure_type=s["structure_type"],
                    level=s["level"],
                    health=s["health"],
                )
                for s in structure_rows
            ],
        )

    def save_tick_outcome(self, update: SettlementUpdate) -> None:
        """Persist ledger, structure health, population and disaster in one call"""
        payload = {
            "p_settlement_id": update.settlement_id,
            "p_world_id": update.world_id,
            "p_tick_window": update.tick_window,
            "p_storage": {r.value: v for r, v in update.ledger.as_dict().items()},
            "p_population": update.population,
            "p_resilience": update.resilience,
            "p_structures": [
                {"structure_id": s.structure_id, "health": s.health}
                for s in update.structures
            ],
            "p_disaster": (
                update.disaster.to_database_dict(update.settlement_id, update.world_id)
                if update.disaster is not None else None
            ),
        }
        with wrap_errors("Save tick outcome", update.settlement_id):
            self.client.rpc("apply_settlement_tick", payload).execute()

    def try_acquire_tick_window(self, world_id: str, tick_window: str) -> bool:
        try:
            with wrap_errors("Claim tick window"):
                self.client.table("tick_windows").insert({
                    "world_id": world_id,
                    "tick_window": tick_window,
                    "status": "processing",
                    "started_at": datetime.now(timezone.utc).isoformat(),
                }).execute()
        except PersistenceError as e:
            cause = e.__cause__
            if isinstance(cause, APIError) and cause.code == UNIQUE_VIOLATION:
                logger.warning(f"Tick window {tick_window} for world {world_id} already claimed")
                return False
            raise
        return True

    def complete_tick_window(
        self,
        world_id: str,
        tick_window: str,
        summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        with wrap_errors("Complete tick window"):
            (
                self.client.table("tick_windows")
                .update({
                    "status": "completed",
                    "summary": summary,
                    "completed_at": datetime.now(timezone.utc).isoformat(),
                })
                .eq("world_id", world_id)
                .eq("tick_window", tick_window)
                .execute()
            )

    def release_tick_window(self, world_id: str, tick_window: str) -> None:
        with wrap_errors("Release tick window"):
            (
                self.client.table("tick_windows")
                .delete()
                .eq("world_id", world_id)
                .eq("tick_window", tick_window)
                .execute()
            )
