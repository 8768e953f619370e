"""
Settlement Configuration and Constants
Contains resource, modifier and disaster enums, game-balance tables, and
environment-driven settings for the tick engine.
"""

from enum import Enum
from functools import lru_cache
from typing import Dict, List, NamedTuple, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from worldgen.config import BiomeCategory

# =============================================================================
# RESOURCES
# =============================================================================

class ResourceType(str, Enum):
    """Stockpiled settlement resources"""
    FOOD = "food"
    WATER = "water"
    WOOD = "wood"
    STONE = "stone"
    ORE = "ore"


# Capacity of every resource before storage structures are counted
BASE_STORAGE_CAPACITY = 1000.0

# Consumption per person per tick (one tick = one game hour)
FOOD_PER_PERSON = 1.8
WATER_PER_PERSON = 3.6

# Decimal places kept for every committed modifier and ledger value
VALUE_PRECISION = 2

# =============================================================================
# MODIFIERS
# =============================================================================

class ScalingKind(str, Enum):
    """How a modifier grows with structure level"""
    LINEAR = "LINEAR"
    DIMINISHING = "DIMINISHING"
    EXPONENTIAL = "EXPONENTIAL"


class EffectKind(str, Enum):
    """Where a modifier's value is applied"""
    PRODUCTION = "production"   # additive, per resource channel
    EFFICIENCY = "efficiency"   # multiplicative percent on all production
    CAPACITY = "capacity"       # population, storage and shelter limits
    DEFENSE = "defense"         # disaster mitigation percentages
    STAT = "stat"               # settlement-level stats with no resource effect


class ModifierType(str, Enum):
    """Closed set of structure modifiers"""
    # Production
    FOOD_PRODUCTION = "food_production"
    WATER_PRODUCTION = "water_production"
    WOOD_PRODUCTION = "wood_production"
    STONE_PRODUCTION = "stone_production"
    ORE_PRODUCTION = "ore_production"
    HERB_PRODUCTION = "herb_production"

    # Efficiency
    PRODUCTION_EFFICIENCY = "production_efficiency"

    # Capacity
    POPULATION_CAPACITY = "population_capacity"
    STORAGE_CAPACITY = "storage_capacity"
    SHELTER_CAPACITY = "shelter_capacity"

    # Defense
    DISASTER_RESISTANCE = "disaster_resistance"
    CASUALTY_REDUCTION = "casualty_reduction"

    # Settlement stats
    HAPPINESS = "happiness"
    UPGRADE_SPEED = "upgrade_speed"
    CONSTRUCTION_SPEED = "construction_speed"
    TRADE_DISCOUNT = "trade_discount"
    DISASTER_WARNING_TIME = "disaster_warning_time"


MODIFIER_EFFECTS: Dict[ModifierType, EffectKind] = {
    ModifierType.FOOD_PRODUCTION: EffectKind.PRODUCTION,
    ModifierType.WATER_PRODUCTION: EffectKind.PRODUCTION,
    ModifierType.WOOD_PRODUCTION: EffectKind.PRODUCTION,
    ModifierType.STONE_PRODUCTION: EffectKind.PRODUCTION,
    ModifierType.ORE_PRODUCTION: EffectKind.PRODUCTION,
    ModifierType.HERB_PRODUCTION: EffectKind.STAT,
    ModifierType.PRODUCTION_EFFICIENCY: EffectKind.EFFICIENCY,
    ModifierType.POPULATION_CAPACITY: EffectKind.CAPACITY,
    ModifierType.STORAGE_CAPACITY: EffectKind.CAPACITY,
    ModifierType.SHELTER_CAPACITY: EffectKind.CAPACITY,
    ModifierType.DISASTER_RESISTANCE: EffectKind.DEFENSE,
    ModifierType.CASUALTY_REDUCTION: EffectKind.DEFENSE,
    ModifierType.HAPPINESS: EffectKind.STAT,
    ModifierType.UPGRADE_SPEED: EffectKind.STAT,
    ModifierType.CONSTRUCTION_SPEED: EffectKind.STAT,
    ModifierType.TRADE_DISCOUNT: EffectKind.STAT,
    ModifierType.DISASTER_WARNING_TIME: EffectKind.STAT,
}

# Production modifiers feed exactly one resource channel
PRODUCTION_CHANNELS: Dict[ModifierType, ResourceType] = {
    ModifierType.FOOD_PRODUCTION: ResourceType.FOOD,
    ModifierType.WATER_PRODUCTION: ResourceType.WATER,
    ModifierType.WOOD_PRODUCTION: ResourceType.WOOD,
    ModifierType.STONE_PRODUCTION: ResourceType.STONE,
    ModifierType.ORE_PRODUCTION: ResourceType.ORE,
}

# Defense percentages never exceed these caps once aggregated
MAX_DISASTER_RESISTANCE = 75.0
MAX_CASUALTY_REDUCTION = 90.0

# Default cap on structure levels
DEFAULT_MAX_LEVEL = 10

# =============================================================================
# BIOME ECONOMY
# =============================================================================

# Production multiplier per resource for each biome category
BIOME_EFFICIENCY: Dict[BiomeCategory, Dict[ResourceType, float]] = {
    BiomeCategory.GRASSLAND: {
        ResourceType.FOOD: 1.0, ResourceType.WATER: 1.0, ResourceType.WOOD: 1.0,
        ResourceType.STONE: 1.0, ResourceType.ORE: 1.0,
    },
    BiomeCategory.FOREST: {
        ResourceType.FOOD: 0.8, ResourceType.WATER: 1.0, ResourceType.WOOD: 2.0,
        ResourceType.STONE: 0.8, ResourceType.ORE: 0.5,
    },
    BiomeCategory.DESERT: {
        ResourceType.FOOD: 0.5, ResourceType.WATER: 0.3, ResourceType.WOOD: 0.3,
        ResourceType.STONE: 2.0, ResourceType.ORE: 1.5,
    },
    BiomeCategory.MOUNTAIN: {
        ResourceType.FOOD: 0.6, ResourceType.WATER: 0.7, ResourceType.WOOD: 0.7,
        ResourceType.STONE: 1.5, ResourceType.ORE: 2.0,
    },
    BiomeCategory.TUNDRA: {
        ResourceType.FOOD: 0.5, ResourceType.WATER: 1.0, ResourceType.WOOD: 0.6,
        ResourceType.STONE: 1.0, ResourceType.ORE: 1.2,
    },
    BiomeCategory.SWAMP: {
        ResourceType.FOOD: 1.2, ResourceType.WATER: 1.5, ResourceType.WOOD: 0.8,
        ResourceType.STONE: 0.5, ResourceType.ORE: 0.4,
    },
    BiomeCategory.COASTAL: {
        ResourceType.FOOD: 1.3, ResourceType.WATER: 1.2, ResourceType.WOOD: 0.9,
        ResourceType.STONE: 0.9, ResourceType.ORE: 0.8,
    },
}

# =============================================================================
# DISASTERS
# =============================================================================

class DisasterType(str, Enum):
    """Natural disasters that can strike a settlement"""
    DROUGHT = "DROUGHT"
    FLOOD = "FLOOD"
    BLIZZARD = "BLIZZARD"
    HURRICANE = "HURRICANE"
    TORNADO = "TORNADO"
    SANDSTORM = "SANDSTORM"
    HEATWAVE = "HEATWAVE"
    EARTHQUAKE = "EARTHQUAKE"
    VOLCANO = "VOLCANO"
    LANDSLIDE = "LANDSLIDE"
    AVALANCHE = "AVALANCHE"
    WILDFIRE = "WILDFIRE"
    INSECT_PLAGUE = "INSECT_PLAGUE"
    BLIGHT = "BLIGHT"
    LOCUST_SWARM = "LOCUST_SWARM"


class SeverityLevel(str, Enum):
    """Severity buckets for a 0-100 severity score"""
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    CATASTROPHIC = "CATASTROPHIC"


class DisasterFrequency(str, Enum):
    """World-wide disaster frequency template"""
    RARE = "RARE"
    NORMAL = "NORMAL"
    FREQUENT = "FREQUENT"
    EXTREME = "EXTREME"


class RiskTier(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class FrequencyTemplate(NamedTuple):
    base_probability: float     # chance per settlement per tick
    severity_multiplier: float


FREQUENCY_TEMPLATES: Dict[DisasterFrequency, FrequencyTemplate] = {
    DisasterFrequency.RARE: FrequencyTemplate(0.005, 0.7),
    DisasterFrequency.NORMAL: FrequencyTemplate(0.015, 1.0),
    DisasterFrequency.FREQUENT: FrequencyTemplate(0.04, 1.2),
    DisasterFrequency.EXTREME: FrequencyTemplate(0.08, 1.5),
}

# Upper bounds (exclusive) of each severity bucket; anything above is CATASTROPHIC
SEVERITY_THRESHOLDS: List[tuple] = [
    (25, SeverityLevel.MINOR),
    (50, SeverityLevel.MODERATE),
    (75, SeverityLevel.MAJOR),
]

# Base severity roll: SEVERITY_BASE + random() * SEVERITY_SPREAD
SEVERITY_BASE = 20.0
SEVERITY_SPREAD = 60.0

RESILIENCE_GAIN: Dict[SeverityLevel, int] = {
    SeverityLevel.MINOR: 2,
    SeverityLevel.MODERATE: 5,
    SeverityLevel.MAJOR: 10,
    SeverityLevel.CATASTROPHIC: 15,
}
MAX_RESILIENCE = 100

# Weights used to pick a disaster tier for a biome
RISK_TIER_WEIGHTS: Dict[RiskTier, float] = {
    RiskTier.HIGH: 0.6,
    RiskTier.MODERATE: 0.3,
    RiskTier.LOW: 0.1,
}

# Severity multiplier for a disaster depending on how exposed the biome is to it
RISK_TIER_VULNERABILITY: Dict[RiskTier, float] = {
    RiskTier.HIGH: 1.2,
    RiskTier.MODERATE: 1.0,
    RiskTier.LOW: 0.8,
}

# How disaster-prone each biome category is overall
BIOME_DISASTER_PROPENSITY: Dict[BiomeCategory, float] = {
    BiomeCategory.GRASSLAND: 0.9,
    BiomeCategory.FOREST: 1.0,
    BiomeCategory.DESERT: 1.1,
    BiomeCategory.MOUNTAIN: 1.3,
    BiomeCategory.TUNDRA: 1.0,
    BiomeCategory.SWAMP: 1.1,
    BiomeCategory.COASTAL: 1.2,
}

BIOME_DISASTER_MAP: Dict[BiomeCategory, Dict[RiskTier, List[DisasterType]]] = {
    BiomeCategory.GRASSLAND: {
        RiskTier.HIGH: [DisasterType.DROUGHT, DisasterType.TORNADO, DisasterType.LOCUST_SWARM],
        RiskTier.MODERATE: [DisasterType.FLOOD, DisasterType.WILDFIRE, DisasterType.HEATWAVE],
        RiskTier.LOW: [DisasterType.EARTHQUAKE],
    },
    BiomeCategory.FOREST: {
        RiskTier.HIGH: [DisasterType.WILDFIRE, DisasterType.INSECT_PLAGUE, DisasterType.BLIGHT],
        RiskTier.MODERATE: [DisasterType.FLOOD, DisasterType.TORNADO, DisasterType.DROUGHT],
        RiskTier.LOW: [DisasterType.EARTHQUAKE, DisasterType.HEATWAVE],
    },
    BiomeCategory.DESERT: {
        RiskTier.HIGH: [DisasterType.DROUGHT, DisasterType.SANDSTORM, DisasterType.HEATWAVE,
                        DisasterType.LOCUST_SWARM],
        RiskTier.MODERATE: [DisasterType.WILDFIRE],
        RiskTier.LOW: [DisasterType.FLOOD, DisasterType.BLIZZARD],
    },
    BiomeCategory.MOUNTAIN: {
        RiskTier.HIGH: [DisasterType.EARTHQUAKE, DisasterType.AVALANCHE, DisasterType.LANDSLIDE,
                        DisasterType.VOLCANO],
        RiskTier.MODERATE: [DisasterType.BLIZZARD, DisasterType.WILDFIRE],
        RiskTier.LOW: [DisasterType.FLOOD, DisasterType.TORNADO, DisasterType.DROUGHT],
    },
    BiomeCategory.TUNDRA: {
        RiskTier.HIGH: [DisasterType.BLIZZARD, DisasterType.AVALANCHE],
        RiskTier.MODERATE: [DisasterType.EARTHQUAKE],
        RiskTier.LOW: [DisasterType.WILDFIRE, DisasterType.DROUGHT, DisasterType.HEATWAVE],
    },
    BiomeCategory.SWAMP: {
        RiskTier.HIGH: [DisasterType.FLOOD, DisasterType.INSECT_PLAGUE, DisasterType.BLIGHT],
        RiskTier.MODERATE: [DisasterType.WILDFIRE, DisasterType.TORNADO],
        RiskTier.LOW: [DisasterType.DROUGHT, DisasterType.EARTHQUAKE],
    },
    BiomeCategory.COASTAL: {
        RiskTier.HIGH: [DisasterType.HURRICANE, DisasterType.FLOOD],
        RiskTier.MODERATE: [DisasterType.EARTHQUAKE, DisasterType.TORNADO, DisasterType.WILDFIRE],
        RiskTier.LOW: [DisasterType.DROUGHT, DisasterType.BLIZZARD],
    },
}

_ALL_RESOURCES = list(ResourceType)

# Stockpiles a disaster eats into
DISASTER_RESOURCE_IMPACT: Dict[DisasterType, List[ResourceType]] = {
    DisasterType.DROUGHT: [ResourceType.WATER, ResourceType.FOOD],
    DisasterType.FLOOD: [ResourceType.FOOD, ResourceType.WOOD],
    DisasterType.BLIZZARD: _ALL_RESOURCES,
    DisasterType.HURRICANE: [ResourceType.FOOD, ResourceType.WATER, ResourceType.WOOD],
    DisasterType.TORNADO: [ResourceType.FOOD, ResourceType.WATER, ResourceType.WOOD, ResourceType.STONE],
    DisasterType.SANDSTORM: [ResourceType.STONE, ResourceType.ORE, ResourceType.FOOD],
    DisasterType.HEATWAVE: [ResourceType.WATER, ResourceType.FOOD],
    DisasterType.EARTHQUAKE: [ResourceType.STONE, ResourceType.ORE, ResourceType.WOOD],
    DisasterType.VOLCANO: _ALL_RESOURCES,
    DisasterType.LANDSLIDE: [ResourceType.STONE, ResourceType.WOOD, ResourceType.FOOD],
    DisasterType.AVALANCHE: [ResourceType.STONE, ResourceType.ORE, ResourceType.WOOD],
    DisasterType.WILDFIRE: [ResourceType.WOOD, ResourceType.FOOD],
    DisasterType.INSECT_PLAGUE: [ResourceType.FOOD],
    DisasterType.BLIGHT: [ResourceType.FOOD],
    DisasterType.LOCUST_SWARM: [ResourceType.FOOD],
}

# Higher = more deadly to population
DISASTER_CASUALTY_MULTIPLIERS: Dict[DisasterType, float] = {
    DisasterType.EARTHQUAKE: 1.0,
    DisasterType.HURRICANE: 1.2,
    DisasterType.TORNADO: 1.3,
    DisasterType.FLOOD: 0.8,
    DisasterType.WILDFIRE: 0.9,
    DisasterType.DROUGHT: 0.6,
    DisasterType.BLIZZARD: 0.7,
    DisasterType.HEATWAVE: 0.8,
    DisasterType.VOLCANO: 1.4,
    DisasterType.LANDSLIDE: 1.1,
    DisasterType.SANDSTORM: 0.5,
    DisasterType.LOCUST_SWARM: 0.3,
    DisasterType.BLIGHT: 0.4,
    DisasterType.AVALANCHE: 1.2,
    DisasterType.INSECT_PLAGUE: 0.4,
}

# Fraction of an affected stockpile lost at severity 100
RESOURCE_LOSS_RATE = 0.5

# Fraction of unsheltered population at risk at severity 100
CASUALTY_RATE = 0.25

# Structure damage varies by ±20% around the net damage
DAMAGE_VARIANCE = 0.2

# Each level above 1 reduces damage taken by 10%
LEVEL_DAMAGE_REDUCTION = 0.1

MAX_STRUCTURE_HEALTH = 100

# Structures counted in the density factor before it stops growing
DENSITY_STRUCTURE_CAP = 50

# Disasters within this many past ticks count toward the history cooldown
RECENT_DISASTER_TICKS = 24

# Resilience at 100 halves disaster probability and cuts severity by a quarter
RESILIENCE_PROBABILITY_REDUCTION = 0.5
RESILIENCE_SEVERITY_REDUCTION = 0.25

# =============================================================================
# STRUCTURE CONDITION
# =============================================================================

# (minimum health, production multiplier), highest band first; health 0 produces nothing
STRUCTURE_EFFECTIVENESS_BANDS: List[tuple] = [
    (95, 1.0),
    (80, 0.95),
    (60, 0.85),
    (40, 0.7),
    (20, 0.5),
    (1, 0.1),
]

# A standing Workshop restores this much health per tick to damaged structures
PASSIVE_REPAIR_STRUCTURE = "Workshop"
PASSIVE_REPAIR_RATE = 1
# Structures below this health need manual repair
PASSIVE_REPAIR_MIN_HEALTH = 21


def structure_effectiveness(health: int) -> float:
    """Production multiplier for a structure at the given health"""
    for minimum, effectiveness in STRUCTURE_EFFECTIVENESS_BANDS:
        if health >= minimum:
            return effectiveness
    return 0.0


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

class Settings(BaseSettings):
    """Tick engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = ""

    # Disasters
    disaster_frequency: DisasterFrequency = DisasterFrequency.NORMAL

    # Tick execution
    tick_max_workers: int = 1
    tick_timeout_seconds: Optional[float] = None

    # Economy
    food_per_person: float = FOOD_PER_PERSON
    water_per_person: float = WATER_PER_PERSON
    base_storage_capacity: float = BASE_STORAGE_CAPACITY

    # Logging
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
