"""
Disaster Engine
Decides whether a disaster strikes a settlement this tick and computes its
consequences: resource loss, casualties and structure damage.

The engine is stateless. All randomness comes from the rng passed to
roll_disaster, which is drawn in a fixed order: occurrence, risk tier,
disaster type, severity, damage variance. The same rng seed therefore
always produces the same event.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from settlements.config import (
    BIOME_DISASTER_MAP,
    BIOME_DISASTER_PROPENSITY,
    CASUALTY_RATE,
    DAMAGE_VARIANCE,
    DENSITY_STRUCTURE_CAP,
    DISASTER_CASUALTY_MULTIPLIERS,
    DISASTER_RESOURCE_IMPACT,
    FREQUENCY_TEMPLATES,
    LEVEL_DAMAGE_REDUCTION,
    MAX_RESILIENCE,
    RESILIENCE_GAIN,
    RESILIENCE_PROBABILITY_REDUCTION,
    RESILIENCE_SEVERITY_REDUCTION,
    RESOURCE_LOSS_RATE,
    RISK_TIER_VULNERABILITY,
    RISK_TIER_WEIGHTS,
    SEVERITY_BASE,
    SEVERITY_SPREAD,
    SEVERITY_THRESHOLDS,
    DisasterFrequency,
    DisasterType,
    ResourceType,
    RiskTier,
    SeverityLevel,
)
from settlements.models import DisasterEvent, ResourceLedger, StructureDamage, StructureInstance
from worldgen.config import BiomeCategory

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    """Anything with random() -> float in [0, 1), e.g. random.Random"""

    def random(self) -> float:
        ...


def _round_to_int(value: float) -> int:
    """Nearest integer, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def severity_level_for(severity: float) -> SeverityLevel:
    """Bucket a 0-100 severity: <25 MINOR, <50 MODERATE, <75 MAJOR, else CATASTROPHIC"""
    for upper, level in SEVERITY_THRESHOLDS:
        if severity < upper:
            return level
    return SeverityLevel.CATASTROPHIC


@dataclass(frozen=True)
class SettlementRiskProfile:
    """What the disaster engine needs to know about a settlement"""
    biome_category: BiomeCategory
    structures: Sequence[StructureInstance] = field(default_factory=tuple)
    population: int = 0
    ledger: ResourceLedger = field(default_factory=ResourceLedger)
    resilience: int = 0
    recent_disaster_count: int = 0
    disaster_resistance: float = 0.0   # percent
    casualty_reduction: float = 0.0    # percent
    shelter_capacity: float = 0.0

    @property
    def standing_structures(self) -> List[StructureInstance]:
        return [s for s in self.structures if s.is_active]


class DisasterEngine:
    """
    Rolls and resolves disasters under one world-wide frequency template.
    """

    def __init__(self, frequency: DisasterFrequency = DisasterFrequency.NORMAL):
        self.frequency = DisasterFrequency(frequency)
        self.template = FREQUENCY_TEMPLATES[self.frequency]

    # ==================== Occurrence ====================

    def probability(self, profile: SettlementRiskProfile) -> float:
        """
        Chance of a disaster this tick.

        base × biome propensity × structure density × history cooldown
        × resilience factor, clamped to [0, 1]
        """
        propensity = BIOME_DISASTER_PROPENSITY[profile.biome_category]
        density = 1 + min(len(profile.standing_structures), DENSITY_STRUCTURE_CAP) / 100
        cooldown = 1 / (1 + profile.recent_disaster_count)
        resilience = min(profile.resilience, MAX_RESILIENCE) / MAX_RESILIENCE
        resilience_factor = 1 - RESILIENCE_PROBABILITY_REDUCTION * resilience

        probability = self.template.base_probability * propensity * density * cooldown * resilience_factor
        return min(1.0, max(0.0, probability))

    def choose_disaster_type(self, biome_category: BiomeCategory, rng: RandomSource) -> Tuple[DisasterType, RiskTier]:
        """
        Weighted pick of a disaster type for a biome.

        A tier is chosen 60/30/10 among high/moderate/low risk, then a type
        uniformly within the tier. Empty tiers are skipped and the remaining
        weights renormalized.
        """
        risks = BIOME_DISASTER_MAP[biome_category]
        tiers = [(tier, weight) for tier, weight in RISK_TIER_WEIGHTS.items() if risks.get(tier)]
        total = sum(weight for _, weight in tiers)

        roll = rng.random() * total
        chosen = tiers[-1][0]
        for tier, weight in tiers:
            if roll < weight:
                chosen = tier
                break
            roll -= weight

        candidates = risks[chosen]
        index = min(int(rng.random() * len(candidates)), len(candidates) - 1)
        return candidates[index], chosen

    def calculate_severity(self, tier: RiskTier, profile: SettlementRiskProfile, rng: RandomSource) -> int:
        """
        Severity score in 0..100.

        (20 + random × 60) × template multiplier × biome vulnerability,
        then reduced by disaster resistance and resilience.
        """
        raw = SEVERITY_BASE + rng.random() * SEVERITY_SPREAD
        raw *= self.template.severity_multiplier * RISK_TIER_VULNERABILITY[tier]
        raw *= 1 - profile.disaster_resistance / 100
        resilience = min(profile.resilience, MAX_RESILIENCE) / MAX_RESILIENCE
        raw *= 1 - RESILIENCE_SEVERITY_REDUCTION * resilience

        return min(100, max(0, _round_to_int(raw)))

    # ==================== Consequences ====================

    @staticmethod
    def calculate_resource_loss(
        disaster_type: DisasterType,
        severity: int,
        ledger: ResourceLedger,
    ) -> Dict[ResourceType, float]:
        """
        Stock lost from each resource the disaster affects.
        floor(holding × severity/100 × RESOURCE_LOSS_RATE), never above the holding.
        """
        losses = {}
        for resource in DISASTER_RESOURCE_IMPACT[disaster_type]:
            holding = ledger.get(resource)
            lost = math.floor(holding * severity / 100 * RESOURCE_LOSS_RATE)
            losses[resource] = float(min(holding, max(0, lost)))
        return losses

    @staticmethod
    def calculate_casualties(disaster_type: DisasterType, severity: int, profile: SettlementRiskProfile) -> int:
        """Casualties among the population not covered by shelters"""
        unsheltered = max(0.0, profile.population - profile.shelter_capacity)
        raw = unsheltered * (severity / 100) * DISASTER_CASUALTY_MULTIPLIERS[disaster_type] * CASUALTY_RATE
        raw *= 1 - profile.casualty_reduction / 100
        return min(profile.population, max(0, math.floor(raw)))

    @staticmethod
    def calculate_structure_damage(
        severity: int,
        structures: Sequence[StructureInstance],
        disaster_resistance: float,
        rng: RandomSource,
    ) -> List[StructureDamage]:
        """
        Health lost by each standing structure.

        Net damage = severity × variance(0.8..1.2) × (1 - resistance); each
        level above 1 reduces the damage a structure takes by 10%.
        """
        variance = 1 + DAMAGE_VARIANCE * (2 * rng.random() - 1)
        net_damage = severity * variance * (1 - disaster_resistance / 100)

        damage = []
        for structure in structures:
            if not structure.is_active:
                continue
            taken = net_damage / (1 + LEVEL_DAMAGE_REDUCTION * (structure.level - 1))
            new_health = max(0, structure.health - _round_to_int(taken))
            if new_health < structure.health:
                damage.append(StructureDamage(
                    structure_id=structure.structure_id,
                    structure_type=structure.structure_type,
                    old_health=structure.health,
                    new_health=new_health,
                ))
        return damage

    # ==================== Roll ====================

    def roll_disaster(
        self,
        profile: SettlementRiskProfile,
        rng: RandomSource,
        occurred_at: Optional[datetime] = None,
    ) -> Optional[DisasterEvent]:
        """
        Decide whether a disaster strikes and resolve it.

        Args:
            profile: Settlement risk profile
            rng: Random source; the only source of randomness
            occurred_at: Event timestamp (now when omitted)

        Returns:
            DisasterEvent, or None when nothing happens this tick
        """
        if rng.random() >= self.probability(profile):
            return None

        disaster_type, tier = self.choose_disaster_type(profile.biome_category, rng)
        severity = self.calculate_severity(tier, profile, rng)
        severity_level = severity_level_for(severity)

        resources_lost = self.calculate_resource_loss(disaster_type, severity, profile.ledger)
        casualties = self.calculate_casualties(disaster_type, severity, profile)
        structure_damage = self.calculate_structure_damage(
            severity, profile.structures, profile.disaster_resistance, rng
        )
        destroyed = sum(1 for d in structure_damage if d.destroyed)

        event = DisasterEvent(
            disaster_type=disaster_type,
            severity=severity,
            severity_level=severity_level,
            casualties=casualties,
            structures_damaged=len(structure_damage) - destroyed,
            structures_destroyed=destroyed,
            resources_lost=resources_lost,
            resilience_gained=RESILIENCE_GAIN[severity_level],
            structure_damage=structure_damage,
            timestamp=occurred_at or datetime.now(timezone.utc),
        )

        logger.info(
            f"{disaster_type.value} ({severity_level.value}, severity {severity}) struck: "
            f"{casualties} casualties, {event.structures_damaged} damaged, {destroyed} destroyed"
        )
        return event
