"""
Tick Orchestrator
Runs the hourly tick over every settlement of a world.

For each settlement, in order:
1. Load its state
2. Aggregate structure modifiers
3. Roll for a disaster with the settlement's own random source
4. Apply disaster losses to the stockpile, population and structures
5. Repair damaged structures when a Workshop stands
6. Apply production and consumption, clamping at zero and at storage capacity
7. Persist the whole outcome in one write

A failure in one settlement is recorded and never stops the pass.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from settlements.catalog import structure_key
from settlements.config import (
    MAX_RESILIENCE,
    MAX_STRUCTURE_HEALTH,
    PASSIVE_REPAIR_MIN_HEALTH,
    PASSIVE_REPAIR_RATE,
    PASSIVE_REPAIR_STRUCTURE,
    ResourceType,
)
from settlements.context import GameContext
from settlements.disasters import SettlementRiskProfile
from settlements.errors import PersistenceError
from settlements.models import (
    DisasterEvent,
    ResourceLedger,
    SettlementFailure,
    SettlementUpdate,
    StructureInstance,
    TickResult,
)
from settlements.modifiers import round_half_up

logger = logging.getLogger(__name__)

TICK_WINDOW_FORMAT = "%Y-%m-%dT%H"


def hour_window(moment: Optional[datetime] = None) -> str:
    """
    Tick-window key for the hour containing moment.

    Example: hour_window(datetime(2025, 3, 1, 14, 59, tzinfo=timezone.utc)) == "2025-03-01T14"
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TICK_WINDOW_FORMAT)


def window_start(tick_window: str) -> datetime:
    """Start of an hourly tick window; now for keys in any other format"""
    try:
        return datetime.strptime(tick_window, TICK_WINDOW_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return datetime.now(timezone.utc)


@dataclass
class SettlementOutcome:
    """Result of one settlement within a pass"""
    settlement_id: str
    update: Optional[SettlementUpdate] = None
    failure: Optional[SettlementFailure] = None


class TickOrchestrator:
    """
    Coordinates one tick pass per (world, tick window).

    The store's tick-window claim makes each window run at most once, even
    when the tick is triggered concurrently (scheduler and manual trigger).
    """

    def __init__(self, context: GameContext):
        """
        Initialize the orchestrator.

        Args:
            context: Game context with store, catalog, engine and settings
        """
        self.context = context

    # ==================== Pass ====================

    def run_tick(self, world_id: str, tick_window: Optional[str] = None) -> TickResult:
        """
        Execute one tick pass.

        Args:
            world_id: World to process
            tick_window: Window key (current hour when omitted)

        Returns:
            TickResult; already_processed is set when the window was claimed before
        """
        tick_window = tick_window or hour_window()
        store = self.context.store
        start_time = time.monotonic()
        result = TickResult(world_id=world_id, tick_window=tick_window)

        if not store.try_acquire_tick_window(world_id, tick_window):
            result.already_processed = True
            logger.info(f"Tick {tick_window} for world {world_id} already processed; skipping")
            return result

        try:
            settlement_ids = store.list_settlement_ids(world_id)
        except Exception:
            store.release_tick_window(world_id, tick_window)
            raise

        logger.info(f"Tick {tick_window} started for world {world_id}: {len(settlement_ids)} settlements")

        settings = self.context.settings
        deadline = None
        if settings.tick_timeout_seconds is not None:
            deadline = start_time + settings.tick_timeout_seconds

        if settings.tick_max_workers > 1 and len(settlement_ids) > 1:
            with ThreadPoolExecutor(max_workers=settings.tick_max_workers) as executor:
                outcomes = list(executor.map(
                    lambda sid: self._run_one(world_id, tick_window, sid, deadline),
                    settlement_ids,
                ))
        else:
            outcomes = [
                self._run_one(world_id, tick_window, sid, deadline) for sid in settlement_ids
            ]

        for outcome in outcomes:
            self._accumulate(result, outcome)
        result.duration_ms = round((time.monotonic() - start_time) * 1000, 2)

        try:
            store.complete_tick_window(world_id, tick_window, result.to_response())
        except PersistenceError:
            logger.exception(f"Could not mark tick {tick_window} for world {world_id} complete")

        logger.info(
            f"Tick {tick_window} finished for world {world_id}: "
            f"{result.settlements_processed} processed, {len(result.failures)} failed, "
            f"{len(result.disasters)} disasters, {result.total_resources_wasted:.2f} wasted "
            f"in {result.duration_ms:.0f}ms"
        )
        return result

    def _run_one(
        self,
        world_id: str,
        tick_window: str,
        settlement_id: str,
        deadline: Optional[float],
    ) -> SettlementOutcome:
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning(f"Tick {tick_window} timed out before settlement {settlement_id}")
            return SettlementOutcome(settlement_id, failure=SettlementFailure(
                settlement_id, "Tick pass timed out before this settlement started", retryable=True,
            ))

        try:
            update = self.process_settlement(world_id, tick_window, settlement_id)
        except PersistenceError as e:
            logger.exception(f"Settlement {settlement_id} failed in tick {tick_window}")
            return SettlementOutcome(settlement_id, failure=SettlementFailure(
                settlement_id, str(e), retryable=e.transient,
            ))
        except Exception as e:
            logger.exception(f"Settlement {settlement_id} failed in tick {tick_window}")
            return SettlementOutcome(settlement_id, failure=SettlementFailure(
                settlement_id, f"{type(e).__name__}: {e}", retryable=False,
            ))
        return SettlementOutcome(settlement_id, update=update)

    @staticmethod
    def _accumulate(result: TickResult, outcome: SettlementOutcome):
        if outcome.failure is not None:
            result.failures.append(outcome.failure)
            return
        update = outcome.update
        result.settlements_processed += 1
        result.total_resources_produced = round_half_up(
            result.total_resources_produced + sum(update.produced.values())
        )
        result.total_resources_wasted = round_half_up(
            result.total_resources_wasted + sum(update.wasted.values())
        )
        result.total_unmet_demand = round_half_up(
            result.total_unmet_demand + sum(update.unmet_demand.values())
        )
        if update.disaster is not None:
            result.disasters.append(update.disaster)

    # ==================== Settlement ====================

    def process_settlement(self, world_id: str, tick_window: str, settlement_id: str) -> SettlementUpdate:
        """
        Run one settlement through the tick and persist the outcome.

        Raises:
            PersistenceError: If loading or saving fails
            ConfigReferenceError: If a structure type is not in the catalog
            InvalidStructureLevelError: If a structure level is out of range
        """
        context = self.context
        settings = context.settings
        store = context.store

        started_at = window_start(tick_window)
        state = store.load_settlement(settlement_id, as_of=started_at)
        modifiers = context.modifier_calculator.aggregate(state.structures)

        profile = SettlementRiskProfile(
            biome_category=state.biome_category,
            structures=tuple(state.structures),
            population=state.population,
            ledger=state.ledger,
            resilience=state.resilience,
            recent_disaster_count=state.recent_disaster_count,
            disaster_resistance=modifiers.disaster_resistance,
            casualty_reduction=modifiers.casualty_reduction,
            shelter_capacity=modifiers.shelter_capacity,
        )
        rng = context.rng_factory(world_id, tick_window, settlement_id)
        disaster = context.disaster_engine.roll_disaster(profile, rng, occurred_at=started_at)

        holdings = state.ledger.as_dict()
        population = state.population
        resilience = state.resilience
        structures = list(state.structures)

        # Disaster losses land before this tick's production
        if disaster is not None:
            for resource, lost in disaster.resources_lost.items():
                holdings[resource] = max(0.0, holdings[resource] - lost)
            population = max(0, population - disaster.casualties)
            resilience = min(MAX_RESILIENCE, resilience + disaster.resilience_gained)
            structures = self._apply_damage(structures, disaster)

        structures, repaired = self._apply_passive_repair(structures)

        produced = modifiers.effective_production(context.biome_efficiency[state.biome_category])
        consumed = {resource: 0.0 for resource in ResourceType}
        consumed[ResourceType.FOOD] = round_half_up(population * settings.food_per_person)
        consumed[ResourceType.WATER] = round_half_up(population * settings.water_per_person)

        capacity = modifiers.storage_capacity(settings.base_storage_capacity)
        wasted: Dict[ResourceType, float] = {}
        unmet: Dict[ResourceType, float] = {}
        final: Dict[ResourceType, float] = {}
        for resource in ResourceType:
            amount = round_half_up(holdings[resource] + produced[resource] - consumed[resource])
            if amount < 0:
                unmet[resource] = -amount
                amount = 0.0
            if amount > capacity:
                wasted[resource] = round_half_up(amount - capacity)
                amount = capacity
            final[resource] = amount

        update = SettlementUpdate(
            settlement_id=settlement_id,
            world_id=world_id,
            tick_window=tick_window,
            ledger=ResourceLedger.from_mapping(final),
            population=population,
            resilience=resilience,
            structures=structures,
            disaster=disaster,
            produced=produced,
            consumed=consumed,
            wasted=wasted,
            unmet_demand=unmet,
            happiness=modifiers.happiness,
            population_capacity=int(modifiers.population_capacity),
            structures_repaired=repaired,
        )
        store.save_tick_outcome(update)

        if unmet:
            logger.debug(
                f"Settlement {settlement_id} short of "
                + ", ".join(f"{r.value}={v:.2f}" for r, v in unmet.items())
            )
        return update

    @staticmethod
    def _apply_damage(structures: List[StructureInstance], disaster: DisasterEvent) -> List[StructureInstance]:
        new_health = {d.structure_id: d.new_health for d in disaster.structure_damage}
        return [
            s.model_copy(update={"health": new_health[s.structure_id]})
            if s.structure_id in new_health else s
            for s in structures
        ]

    @staticmethod
    def _apply_passive_repair(structures: List[StructureInstance]) -> Tuple[List[StructureInstance], int]:
        """
        Restore PASSIVE_REPAIR_RATE health to each damaged structure when a
        standing Workshop is present. Structures below
        PASSIVE_REPAIR_MIN_HEALTH are left for manual repair.

        Returns:
            Structures after repair and the number repaired
        """
        workshop = structure_key(PASSIVE_REPAIR_STRUCTURE)
        if not any(s.is_active and structure_key(s.structure_type) == workshop for s in structures):
            return structures, 0

        repaired = []
        count = 0
        for s in structures:
            if PASSIVE_REPAIR_MIN_HEALTH <= s.health < MAX_STRUCTURE_HEALTH:
                s = s.model_copy(update={"health": min(MAX_STRUCTURE_HEALTH, s.health + PASSIVE_REPAIR_RATE)})
                count += 1
            repaired.append(s)
        return repaired, count
