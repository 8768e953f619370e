"""
Test helpers: scripted random sources and settlement builders
"""

from typing import List, Optional, Sequence

from settlements.models import ResourceLedger, SettlementState, StructureInstance
from worldgen.config import BiomeCategory


class ScriptedRandom:
    """Random source that replays fixed values, repeating the last one"""

    def __init__(self, values: Sequence[float]):
        self.values = list(values)
        self.calls = 0

    def random(self) -> float:
        index = min(self.calls, len(self.values) - 1)
        self.calls += 1
        return self.values[index]


def scripted_factory(values: Sequence[float]):
    """rng_factory that gives every settlement a fresh ScriptedRandom"""
    return lambda world_id, tick_window, settlement_id: ScriptedRandom(values)


# Rolls of 0.99 never trigger a disaster; rolls of 0.0 always do
CALM = scripted_factory([0.99])
STORMY = scripted_factory([0.0])


def make_settlement(
    settlement_id: str,
    world_id: str = "world-1",
    structures: Optional[List[StructureInstance]] = None,
    population: int = 0,
    biome: BiomeCategory = BiomeCategory.GRASSLAND,
    resilience: int = 0,
    **ledger,
) -> SettlementState:
    return SettlementState(
        settlement_id=settlement_id,
        world_id=world_id,
        name=settlement_id.title(),
        biome_category=biome,
        population=population,
        resilience=resilience,
        ledger=ResourceLedger(**ledger),
        structures=structures or [],
    )


def structure(structure_id: str, structure_type: str, level: int = 1, health: int = 100) -> StructureInstance:
    return StructureInstance(
        structure_id=structure_id,
        structure_type=structure_type,
        level=level,
        health=health,
    )
