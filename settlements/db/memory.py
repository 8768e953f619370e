"""
In-Memory Settlement Store
Thread-safe SettlementStore used for tests and local simulation runs.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from settlements.config import RECENT_DISASTER_TICKS
from settlements.errors import PersistenceError, SettlementNotFoundError
from settlements.models import DisasterEvent, SettlementState, SettlementUpdate

logger = logging.getLogger(__name__)

TICK_PROCESSING = "processing"
TICK_COMPLETED = "completed"


class InMemorySettlementStore:
    """
    Keeps settlements, disaster history and tick-window claims in memory.

    All mutation happens under one lock, so a settlement update is applied
    atomically and two claims on the same window can never both succeed.
    """

    def __init__(self, settlements: Optional[List[SettlementState]] = None):
        self._lock = threading.RLock()
        self._settlements: Dict[str, SettlementState] = {}
        self._tick_windows: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._failures: Dict[Tuple[str, str], Exception] = {}

        self.disaster_history: List[Tuple[str, DisasterEvent]] = []
        self.updates: List[SettlementUpdate] = []

        for state in settlements or []:
            self.add_settlement(state)

    # ==================== Setup ====================

    def add_settlement(self, state: SettlementState) -> None:
        with self._lock:
            self._settlements[state.settlement_id] = state

    def get_settlement(self, settlement_id: str) -> Optional[SettlementState]:
        with self._lock:
            return self._settlements.get(settlement_id)

    def inject_failure(self, settlement_id: str, error: Exception, operation: str = "load") -> None:
        """
        Make the next load or save of a settlement raise error.

        Args:
            settlement_id: Settlement to fail
            error: Exception to raise
            operation: "load" or "save"
        """
        if operation not in ("load", "save"):
            raise ValueError(f"operation must be 'load' or 'save', got {operation!r}")
        with self._lock:
            self._failures[(settlement_id, operation)] = error

    def _raise_injected(self, settlement_id: str, operation: str) -> None:
        error = self._failures.pop((settlement_id, operation), None)
        if error is not None:
            raise error

    # ==================== SettlementStore ====================

    def list_settlement_ids(self, world_id: str) -> List[str]:
        with self._lock:
            return sorted(
                sid for sid, state in self._settlements.items() if state.world_id == world_id
            )

    def load_settlement(self, settlement_id: str, as_of: Optional[datetime] = None) -> SettlementState:
        with self._lock:
            self._raise_injected(settlement_id, "load")
            state = self._settlements.get(settlement_id)
            if state is None:
                raise SettlementNotFoundError(settlement_id)

            as_of = as_of or datetime.now(timezone.utc)
            cutoff = as_of - timedelta(hours=RECENT_DISASTER_TICKS)
            recent = sum(
                1 for sid, event in self.disaster_history
                if sid == settlement_id and cutoff <= event.timestamp < as_of
            )
            return state.model_copy(update={"recent_disaster_count": recent})

    def save_tick_outcome(self, update: SettlementUpdate) -> None:
        with self._lock:
            self._raise_injected(update.settlement_id, "save")
            state = self._settlements.get(update.settlement_id)
            if state is None:
                raise SettlementNotFoundError(update.settlement_id)

            self._settlements[update.settlement_id] = state.model_copy(update={
                "ledger": update.ledger,
                "population": update.population,
                "resilience": update.resilience,
                "structures": list(update.structures),
            })
            if update.disaster is not None:
                self.disaster_history.append((update.settlement_id, update.disaster))
            self.updates.append(update)

    def try_acquire_tick_window(self, world_id: str, tick_window: str) -> bool:
        with self._lock:
            key = (world_id, tick_window)
            if key in self._tick_windows:
                logger.warning(f"Tick window {tick_window} for world {world_id} already claimed")
                return False
            self._tick_windows[key] = {"status": TICK_PROCESSING, "summary": None}
            return True

    def complete_tick_window(
        self,
        world_id: str,
        tick_window: str,
        summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            key = (world_id, tick_window)
            if key not in self._tick_windows:
                raise PersistenceError(
                    f"Tick window {tick_window} for world {world_id} was never claimed",
                    transient=False,
                )
            self._tick_windows[key] = {"status": TICK_COMPLETED, "summary": summary}

    def release_tick_window(self, world_id: str, tick_window: str) -> None:
        with self._lock:
            self._tick_windows.pop((world_id, tick_window), None)

    def tick_window_status(self, world_id: str, tick_window: str) -> Optional[str]:
        with self._lock:
            entry = self._tick_windows.get((world_id, tick_window))
            return entry["status"] if entry else None
