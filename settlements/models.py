"""
Settlement Data Models
Settlement state, resource ledgers, disaster records and tick results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from settlements.config import (
    MAX_RESILIENCE,
    MAX_STRUCTURE_HEALTH,
    DisasterType,
    ResourceType,
    SeverityLevel,
)
from worldgen.config import BiomeCategory


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# STRUCTURES
# =============================================================================

class StructureInstance(BaseModel):
    """A structure built in a settlement"""
    structure_id: str
    structure_type: str
    level: int = Field(1, ge=0)
    health: int = Field(MAX_STRUCTURE_HEALTH, ge=0, le=MAX_STRUCTURE_HEALTH)

    model_config = {"frozen": True}

    @property
    def is_destroyed(self) -> bool:
        return self.health == 0

    @property
    def is_active(self) -> bool:
        """Built and standing; only active structures provide modifiers"""
        return self.level >= 1 and self.health > 0


# =============================================================================
# RESOURCES
# =============================================================================

class ResourceLedger(BaseModel):
    """Stockpile of every resource; amounts are never negative"""
    food: float = Field(0.0, ge=0)
    water: float = Field(0.0, ge=0)
    wood: float = Field(0.0, ge=0)
    stone: float = Field(0.0, ge=0)
    ore: float = Field(0.0, ge=0)

    model_config = {"frozen": True}

    @classmethod
    def from_mapping(cls, amounts: Dict[Any, float]) -> "ResourceLedger":
        """Build a ledger from a {ResourceType or name: amount} mapping"""
        return cls(**{ResourceType(k).value: v for k, v in amounts.items()})

    def get(self, resource: ResourceType) -> float:
        return getattr(self, ResourceType(resource).value)

    def as_dict(self) -> Dict[ResourceType, float]:
        return {resource: self.get(resource) for resource in ResourceType}

    def total(self) -> float:
        return sum(self.as_dict().values())


# =============================================================================
# DISASTERS
# =============================================================================

class StructureDamage(BaseModel):
    """Health change of one structure caused by a disaster"""
    structure_id: str
    structure_type: str
    old_health: int
    new_health: int

    model_config = {"frozen": True}

    @property
    def destroyed(self) -> bool:
        return self.new_health == 0


class DisasterEvent(BaseModel):
    """
    Outcome of a disaster striking one settlement.
    Counts are bounded by the settlement's structures and population.
    """
    event_id: UUID = Field(default_factory=uuid4)
    disaster_type: DisasterType
    severity: int = Field(..., ge=0, le=100)
    severity_level: SeverityLevel
    casualties: int = Field(0, ge=0)
    structures_damaged: int = Field(0, ge=0)
    structures_destroyed: int = Field(0, ge=0)
    resources_lost: Dict[ResourceType, float] = Field(default_factory=dict)
    resilience_gained: int = Field(0, ge=0)
    structure_damage: List[StructureDamage] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    def to_database_dict(self, settlement_id: str, world_id: str) -> Dict[str, Any]:
        """Row for the disaster_history table"""
        return {
            "event_id": str(self.event_id),
            "settlement_id": settlement_id,
            "world_id": world_id,
            "disaster_type": self.disaster_type.value,
            "severity": self.severity,
            "severity_level": self.severity_level.value,
            "casualties": self.casualties,
            "structures_damaged": self.structures_damaged,
            "structures_destroyed": self.structures_destroyed,
            "resources_lost": {r.value: v for r, v in self.resources_lost.items()},
            "resilience_gained": self.resilience_gained,
            "occurred_at": self.timestamp.isoformat(),
        }


# =============================================================================
# SETTLEMENTS
# =============================================================================

class SettlementState(BaseModel):
    """Everything the tick engine needs to know about one settlement"""
    settlement_id: str
    world_id: str
    name: str = ""
    biome_category: BiomeCategory = BiomeCategory.GRASSLAND
    population: int = Field(0, ge=0)
    resilience: int = Field(0, ge=0, le=MAX_RESILIENCE)
    ledger: ResourceLedger = Field(default_factory=ResourceLedger)
    structures: List[StructureInstance] = Field(default_factory=list)
    recent_disaster_count: int = Field(0, ge=0)
    tile_x: Optional[int] = None
    tile_y: Optional[int] = None


class SettlementUpdate(BaseModel):
    """
    Complete outcome of one settlement's tick.
    Persisted by the store as a single atomic write.
    """
    settlement_id: str
    world_id: str
    tick_window: str
    ledger: ResourceLedger
    population: int
    resilience: int
    structures: List[StructureInstance]
    disaster: Optional[DisasterEvent] = None
    produced: Dict[ResourceType, float] = Field(default_factory=dict)
    consumed: Dict[ResourceType, float] = Field(default_factory=dict)
    wasted: Dict[ResourceType, float] = Field(default_factory=dict)
    unmet_demand: Dict[ResourceType, float] = Field(default_factory=dict)
    happiness: float = 0.0
    population_capacity: int = 0
    structures_repaired: int = 0


# =============================================================================
# TICK RESULTS
# =============================================================================

@dataclass
class SettlementFailure:
    """A settlement whose tick could not be completed"""
    settlement_id: str
    error: str
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settlementId": self.settlement_id,
            "error": self.error,
            "retryable": self.retryable,
        }


@dataclass
class TickResult:
    """Result of one world-wide tick pass"""
    world_id: str
    tick_window: str
    settlements_processed: int = 0
    failures: List[SettlementFailure] = field(default_factory=list)
    total_resources_produced: float = 0.0
    total_resources_wasted: float = 0.0
    total_unmet_demand: float = 0.0
    disasters: List[DisasterEvent] = field(default_factory=list)
    duration_ms: float = 0.0
    already_processed: bool = False

    def to_response(self) -> Dict[str, Any]:
        """Payload returned to a manual tick trigger"""
        return {
            "settlementsProcessed": self.settlements_processed,
            "totalResourcesWasted": self.total_resources_wasted,
            "failures": [f.to_dict() for f in self.failures],
            "durationMs": self.duration_ms,
        }
