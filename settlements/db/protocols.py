"""
Persistence Protocols
Interfaces the tick engine expects from its settlement store.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from settlements.models import SettlementState, SettlementUpdate


class SettlementStore(Protocol):
    """
    Settlement persistence collaborator.

    Implementations raise PersistenceError (transient or not) for storage
    failures and SettlementNotFoundError for settlements that no longer exist.
    Writes for the same settlement must be serialized; save_tick_outcome is
    all-or-nothing.
    """

    def list_settlement_ids(self, world_id: str) -> List[str]:
        ...

    def load_settlement(self, settlement_id: str, as_of: Optional[datetime] = None) -> SettlementState:
        """recent_disaster_count covers the RECENT_DISASTER_TICKS hours before as_of (now when omitted)"""
        ...

    def save_tick_outcome(self, update: SettlementUpdate) -> None:
        ...

    def try_acquire_tick_window(self, world_id: str, tick_window: str) -> bool:
        """Claim (world_id, tick_window); False if it was already claimed"""
        ...

    def complete_tick_window(
        self,
        world_id: str,
        tick_window: str,
        summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    def release_tick_window(self, world_id: str, tick_window: str) -> None:
        """Drop a claim so the window can be processed again"""
        ...
