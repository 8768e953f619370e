"""
Modifier Calculator
Computes structure modifier values at a given level and stacks them into
settlement-wide totals.

Stacking order is fixed:
1. Sum the additive production modifiers of each resource channel, each
   scaled by its structure's health effectiveness
2. Multiply each sum by (1 + total PRODUCTION_EFFICIENCY / 100)
3. Multiply by the settlement biome's efficiency for that resource
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional

from settlements.catalog import ModifierSpec, PrerequisiteEdge, StructureCatalog, structure_key
from settlements.config import (
    MAX_CASUALTY_REDUCTION,
    MAX_DISASTER_RESISTANCE,
    MODIFIER_EFFECTS,
    PRODUCTION_CHANNELS,
    VALUE_PRECISION,
    EffectKind,
    ModifierType,
    ResourceType,
    ScalingKind,
    structure_effectiveness,
)
from settlements.errors import ConfigError, InvalidStructureLevelError
from settlements.models import StructureInstance

logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int = VALUE_PRECISION) -> float:
    """
    Round to a fixed number of decimals, halves away from zero.

    Goes through Decimal(str(value)) so 2.675 rounds to 2.68 rather than
    following its binary representation down to 2.67.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


# =============================================================================
# SCALING FORMULAS
# =============================================================================

def _linear(spec: ModifierSpec, level: int) -> float:
    return spec.base_value + spec.per_level_factor * level


def _diminishing(spec: ModifierSpec, level: int) -> float:
    return spec.base_value * (1 - spec.decay_base ** level)


def _exponential(spec: ModifierSpec, level: int) -> float:
    if level == 0:
        return 0.0
    return spec.base_value * spec.per_level_factor ** (level - 1)


SCALING_FORMULAS: Dict[ScalingKind, Callable[[ModifierSpec, int], float]] = {
    ScalingKind.LINEAR: _linear,
    ScalingKind.DIMINISHING: _diminishing,
    ScalingKind.EXPONENTIAL: _exponential,
}

# Every scaling kind and modifier type must be handled
_missing_formulas = set(ScalingKind) - set(SCALING_FORMULAS)
if _missing_formulas:
    raise ConfigError(f"No scaling formula for {sorted(k.value for k in _missing_formulas)}")
_missing_effects = set(ModifierType) - set(MODIFIER_EFFECTS)
if _missing_effects:
    raise ConfigError(f"No effect kind for {sorted(m.value for m in _missing_effects)}")


def calculate_modifier_value(spec: ModifierSpec, level: int) -> float:
    """
    Value of one modifier at a structure level.

    Args:
        spec: Modifier specification
        level: Structure level (>= 0)

    Returns:
        Value rounded half-up to two decimals

    Example:
        DIMINISHING with base 25 and decay 0.9 at level 10 gives 16.28
    """
    if level < 0:
        raise InvalidStructureLevelError(spec.modifier_type.value, level)
    return round_half_up(SCALING_FORMULAS[spec.scaling](spec, level))


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class ResolvedModifier:
    """A modifier value contributed by one structure"""
    modifier_type: ModifierType
    value: float
    structure_type: str
    level: int
    structure_id: Optional[str] = None

    @property
    def effect(self) -> EffectKind:
        return MODIFIER_EFFECTS[self.modifier_type]


@dataclass
class SettlementModifiers:
    """Stacked modifier totals for one settlement"""
    production: Dict[ResourceType, float] = field(
        default_factory=lambda: {resource: 0.0 for resource in ResourceType}
    )
    production_efficiency: float = 0.0
    population_capacity: float = 0.0
    storage_bonus: float = 0.0
    shelter_capacity: float = 0.0
    disaster_resistance: float = 0.0
    casualty_reduction: float = 0.0
    happiness: float = 0.0
    stats: Dict[ModifierType, float] = field(default_factory=dict)
    contributions: List[ResolvedModifier] = field(default_factory=list)
    active_structures: int = 0

    def efficiency_multiplier(self) -> float:
        return 1 + self.production_efficiency / 100

    def effective_production(self, biome_efficiency: Dict[ResourceType, float]) -> Dict[ResourceType, float]:
        """
        Production per resource after efficiency and biome multipliers.

        Args:
            biome_efficiency: Multiplier per resource for the settlement biome

        Returns:
            Amount produced this tick for every resource
        """
        multiplier = self.efficiency_multiplier()
        return {
            resource: round_half_up(
                self.production[resource] * multiplier * biome_efficiency.get(resource, 1.0)
            )
            for resource in ResourceType
        }

    def storage_capacity(self, base_capacity: float) -> float:
        return base_capacity + self.storage_bonus


# =============================================================================
# PREREQUISITES
# =============================================================================

@dataclass(frozen=True)
class MissingPrerequisite:
    structure_type: str
    required_level: int
    current_level: Optional[int] = None  # None when the structure is absent


@dataclass
class PrerequisiteCheck:
    is_valid: bool
    missing: List[MissingPrerequisite] = field(default_factory=list)


# =============================================================================
# CALCULATOR
# =============================================================================

class ModifierCalculator:
    """
    Resolves and stacks structure modifiers against a validated catalog.
    Stateless apart from the catalog; safe to share between threads.
    """

    def __init__(self, catalog: StructureCatalog):
        self.catalog = catalog

    def calculate_structure_modifiers(self, structure_type: str, level: int) -> List[ResolvedModifier]:
        """
        All modifiers one structure provides at a level.

        Raises:
            ConfigReferenceError: If the structure type is unknown
            InvalidStructureLevelError: If level is outside 0..max_level
        """
        definition = self.catalog.require(structure_type)
        if not 0 <= level <= definition.max_level:
            raise InvalidStructureLevelError(definition.name, level, definition.max_level)
        return [
            ResolvedModifier(
                modifier_type=spec.modifier_type,
                value=calculate_modifier_value(spec, level),
                structure_type=definition.name,
                level=level,
            )
            for spec in definition.modifiers
        ]

    def aggregate(self, structures: Iterable[StructureInstance]) -> SettlementModifiers:
        """
        Stack the modifiers of every active structure in a settlement.

        Destroyed structures (health 0) and unbuilt ones (level 0) contribute
        nothing. A damaged structure's production modifiers are scaled by
        structure_effectiveness(health). Defense percentages are capped once
        summed.
        """
        totals = SettlementModifiers()

        for structure in structures:
            if not structure.is_active:
                continue
            totals.active_structures += 1
            effectiveness = structure_effectiveness(structure.health)

            for modifier in self.calculate_structure_modifiers(structure.structure_type, structure.level):
                value = modifier.value
                if modifier.effect == EffectKind.PRODUCTION and effectiveness < 1:
                    value = round_half_up(value * effectiveness)
                modifier = replace(modifier, value=value, structure_id=structure.structure_id)
                totals.contributions.append(modifier)
                self._apply(totals, modifier)

        for resource in ResourceType:
            totals.production[resource] = round_half_up(totals.production[resource])
        totals.disaster_resistance = min(MAX_DISASTER_RESISTANCE, round_half_up(totals.disaster_resistance))
        totals.casualty_reduction = min(MAX_CASUALTY_REDUCTION, round_half_up(totals.casualty_reduction))
        totals.happiness = round_half_up(totals.happiness)
        return totals

    @staticmethod
    def _apply(totals: SettlementModifiers, modifier: ResolvedModifier):
        kind = modifier.modifier_type
        value = modifier.value

        if modifier.effect == EffectKind.PRODUCTION:
            totals.production[PRODUCTION_CHANNELS[kind]] += value
        elif modifier.effect == EffectKind.EFFICIENCY:
            totals.production_efficiency += value
        elif kind == ModifierType.POPULATION_CAPACITY:
            totals.population_capacity += value
        elif kind == ModifierType.STORAGE_CAPACITY:
            totals.storage_bonus += value
        elif kind == ModifierType.SHELTER_CAPACITY:
            totals.shelter_capacity += value
        elif kind == ModifierType.DISASTER_RESISTANCE:
            totals.disaster_resistance += value
        elif kind == ModifierType.CASUALTY_REDUCTION:
            totals.casualty_reduction += value
        elif kind == ModifierType.HAPPINESS:
            totals.happiness += value
        else:
            totals.stats[kind] = round_half_up(totals.stats.get(kind, 0.0) + value)

    # ==================== Prerequisites ====================

    def get_prerequisites_for_structure(self, structure_type: str) -> List[PrerequisiteEdge]:
        return self.catalog.prerequisites_for(structure_type)

    def structure_has_prerequisites(self, structure_type: str) -> bool:
        return bool(self.catalog.prerequisites_for(structure_type))

    def structure_has_modifiers(self, structure_type: str) -> bool:
        definition = self.catalog.get(structure_type)
        return definition is not None and bool(definition.modifiers)

    def validate_prerequisites(
        self,
        structure_type: str,
        existing_structures: Iterable[StructureInstance],
    ) -> PrerequisiteCheck:
        """
        Check whether a settlement may build a structure.

        Args:
            structure_type: Structure the settlement wants to build
            existing_structures: Structures the settlement already has

        Returns:
            PrerequisiteCheck listing each unmet requirement with the current
            level of the required structure (None when absent)
        """
        levels: Dict[str, int] = {}
        for structure in existing_structures:
            if structure.is_destroyed:
                continue
            key = structure_key(structure.structure_type)
            levels[key] = max(levels.get(key, 0), structure.level)

        missing = []
        for edge in self.get_prerequisites_for_structure(structure_type):
            current = levels.get(structure_key(edge.required_structure_type))
            if current is None or current < edge.required_level:
                missing.append(MissingPrerequisite(
                    structure_type=edge.required_structure_type,
                    required_level=edge.required_level,
                    current_level=current,
                ))

        if missing:
            logger.debug(f"{structure_type} is missing {len(missing)} prerequisite(s)")
        return PrerequisiteCheck(is_valid=not missing, missing=missing)
