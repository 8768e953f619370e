"""
Structure Catalog
Static definitions of buildable structures, their modifiers and the
prerequisite graph between them.

The catalog is validated once when it is loaded; a catalog that passes
validate() never raises a configuration error during a tick.
"""

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from settlements.config import (
    DEFAULT_MAX_LEVEL,
    MODIFIER_EFFECTS,
    ModifierType,
    ScalingKind,
)
from settlements.errors import ConfigCycleError, ConfigError, ConfigReferenceError

logger = logging.getLogger(__name__)


def structure_key(name: str) -> str:
    """Normalize a structure name: 'Town Hall', 'town_hall' and 'TOWN_HALL' match"""
    return name.strip().upper().replace(" ", "_").replace("-", "_")


# =============================================================================
# DEFINITIONS
# =============================================================================

class ModifierSpec(BaseModel):
    """
    One modifier a structure provides, and how it scales with level.

    LINEAR: base_value + per_level_factor * level
    DIMINISHING: base_value * (1 - decay_base ** level), approaching base_value
    EXPONENTIAL: base_value * per_level_factor ** (level - 1), zero at level 0
    """
    modifier_type: ModifierType
    scaling: ScalingKind
    base_value: float = 0.0
    per_level_factor: float = 0.0
    decay_base: float = 0.9
    description: str = ""

    model_config = {"frozen": True}

    @classmethod
    def linear(cls, modifier_type: ModifierType, per_level: float, base: float = 0.0, **kwargs) -> "ModifierSpec":
        return cls(modifier_type=modifier_type, scaling=ScalingKind.LINEAR,
                   base_value=base, per_level_factor=per_level, **kwargs)

    @classmethod
    def diminishing(cls, modifier_type: ModifierType, base: float, decay: float = 0.9, **kwargs) -> "ModifierSpec":
        return cls(modifier_type=modifier_type, scaling=ScalingKind.DIMINISHING,
                   base_value=base, decay_base=decay, **kwargs)

    @classmethod
    def exponential(cls, modifier_type: ModifierType, base: float, growth: float = 1.5, **kwargs) -> "ModifierSpec":
        return cls(modifier_type=modifier_type, scaling=ScalingKind.EXPONENTIAL,
                   base_value=base, per_level_factor=growth, **kwargs)

    def validate_spec(self, owner: str) -> None:
        """Raise ConfigError if the scaling parameters cannot produce sane values"""
        if self.scaling == ScalingKind.DIMINISHING and not 0 < self.decay_base < 1:
            raise ConfigError(
                f"{owner}: {self.modifier_type.value} decay_base must be in (0, 1), got {self.decay_base}"
            )
        if self.scaling == ScalingKind.EXPONENTIAL and not self.per_level_factor > 0:
            raise ConfigError(
                f"{owner}: {self.modifier_type.value} growth factor must be > 0, got {self.per_level_factor}"
            )
        if self.modifier_type not in MODIFIER_EFFECTS:
            raise ConfigError(f"{owner}: {self.modifier_type.value} has no effect kind")


class PrerequisiteEdge(BaseModel):
    """structure_type may only be built once required_structure_type reaches required_level"""
    structure_type: str
    required_structure_type: str
    required_level: int = Field(1, ge=1)

    model_config = {"frozen": True}


class StructureDefinition(BaseModel):
    """A buildable structure type"""
    name: str
    description: str = ""
    max_level: int = Field(DEFAULT_MAX_LEVEL, ge=1)
    modifiers: List[ModifierSpec] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        return structure_key(self.name)


# =============================================================================
# CATALOG
# =============================================================================

class StructureCatalog:
    """
    Lookup of structure definitions and prerequisite edges.
    Read-only after construction and safe to share between threads.
    """

    def __init__(
        self,
        structures: Iterable[StructureDefinition],
        prerequisites: Iterable[PrerequisiteEdge] = (),
    ):
        self._structures: Dict[str, StructureDefinition] = {}
        for definition in structures:
            if definition.key in self._structures:
                raise ConfigError(f"Duplicate structure type: {definition.name}")
            self._structures[definition.key] = definition
        self._prerequisites: List[PrerequisiteEdge] = list(prerequisites)

    def __contains__(self, structure_type: str) -> bool:
        return structure_key(structure_type) in self._structures

    def __len__(self) -> int:
        return len(self._structures)

    @property
    def structure_types(self) -> List[str]:
        return [d.name for d in self._structures.values()]

    def get(self, structure_type: str) -> Optional[StructureDefinition]:
        return self._structures.get(structure_key(structure_type))

    def require(self, structure_type: str) -> StructureDefinition:
        """
        Get a definition, raising when the type is unknown.

        Raises:
            ConfigReferenceError: If the structure type is not in the catalog
        """
        definition = self.get(structure_type)
        if definition is None:
            raise ConfigReferenceError("catalog", structure_type)
        return definition

    def prerequisites_for(self, structure_type: str) -> List[PrerequisiteEdge]:
        key = structure_key(structure_type)
        return [e for e in self._prerequisites if structure_key(e.structure_type) == key]

    def validate(self) -> "StructureCatalog":
        """
        Check the whole catalog once at load time.

        Raises:
            ConfigError: For an invalid modifier specification or required level
            ConfigReferenceError: For an edge naming an unknown structure
            ConfigCycleError: For a cycle in the prerequisite graph
        """
        for definition in self._structures.values():
            for spec in definition.modifiers:
                spec.validate_spec(definition.name)

        graph: Dict[str, List[str]] = {key: [] for key in self._structures}
        for edge in self._prerequisites:
            source = self.get(edge.structure_type)
            if source is None:
                raise ConfigReferenceError(edge.structure_type, edge.structure_type)
            target = self.get(edge.required_structure_type)
            if target is None:
                raise ConfigReferenceError(edge.structure_type, edge.required_structure_type)
            if edge.required_level > target.max_level:
                raise ConfigError(
                    f"{source.name} requires {target.name} level {edge.required_level}, "
                    f"but its max level is {target.max_level}"
                )
            graph[source.key].append(target.key)

        cycle = self._find_cycle(graph)
        if cycle:
            raise ConfigCycleError([self._structures[key].name for key in cycle])

        logger.info(
            f"Structure catalog validated: {len(self._structures)} structures, "
            f"{len(self._prerequisites)} prerequisites"
        )
        return self

    @staticmethod
    def _find_cycle(graph: Dict[str, List[str]]) -> Optional[List[str]]:
        # Iterative DFS with white/grey/black colouring
        WHITE, GREY, BLACK = 0, 1, 2
        colour = {node: WHITE for node in graph}

        for root in graph:
            if colour[root] != WHITE:
                continue
            path = [root]
            stack = [iter(graph[root])]
            colour[root] = GREY
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    colour[path.pop()] = BLACK
                    stack.pop()
                    continue
                if colour[child] == GREY:
                    return path[path.index(child):] + [child]
                if colour[child] == WHITE:
                    colour[child] = GREY
                    path.append(child)
                    stack.append(iter(graph[child]))
        return None

    @classmethod
    def default(cls) -> "StructureCatalog":
        """The standard structure set, validated"""
        return cls(DEFAULT_STRUCTURES, DEFAULT_PREREQUISITES).validate()


# =============================================================================
# DEFAULT STRUCTURE SET
# =============================================================================

DEFAULT_STRUCTURES: List[StructureDefinition] = [
    # Resource production
    StructureDefinition(name="Farm", description="Grows food", modifiers=[
        ModifierSpec.linear(ModifierType.FOOD_PRODUCTION, 10),
        ModifierSpec.diminishing(ModifierType.HAPPINESS, 2),
    ]),
    StructureDefinition(name="Well", description="Draws fresh water", modifiers=[
        ModifierSpec.linear(ModifierType.WATER_PRODUCTION, 10),
    ]),
    StructureDefinition(name="Lumber Mill", description="Cuts timber", modifiers=[
        ModifierSpec.linear(ModifierType.WOOD_PRODUCTION, 8),
    ]),
    StructureDefinition(name="Quarry", description="Extracts stone", modifiers=[
        ModifierSpec.linear(ModifierType.STONE_PRODUCTION, 6),
    ]),
    StructureDefinition(name="Mine", description="Extracts ore", modifiers=[
        ModifierSpec.linear(ModifierType.ORE_PRODUCTION, 4),
    ]),
    StructureDefinition(name="Fishing Dock", description="Catches fish", modifiers=[
        ModifierSpec.linear(ModifierType.FOOD_PRODUCTION, 8),
    ]),
    StructureDefinition(name="Hunting Lodge", description="Hunts game", modifiers=[
        ModifierSpec.linear(ModifierType.FOOD_PRODUCTION, 6),
    ]),
    StructureDefinition(name="Herb Garden", description="Grows medicinal herbs", modifiers=[
        ModifierSpec.linear(ModifierType.HERB_PRODUCTION, 3),
        ModifierSpec.diminishing(ModifierType.HAPPINESS, 1),
    ]),

    # Housing
    StructureDefinition(name="Tent", description="Basic shelter", max_level=3, modifiers=[
        ModifierSpec.linear(ModifierType.POPULATION_CAPACITY, 2),
    ]),
    StructureDefinition(name="House", description="Permanent housing", modifiers=[
        ModifierSpec.linear(ModifierType.POPULATION_CAPACITY, 5),
        ModifierSpec.diminishing(ModifierType.HAPPINESS, 1),
    ]),

    # Storage
    StructureDefinition(name="Storage", description="Expands resource storage", modifiers=[
        ModifierSpec.linear(ModifierType.STORAGE_CAPACITY, 500),
    ]),

    # Civic
    StructureDefinition(name="Town Hall", description="Seat of local government", max_level=5, modifiers=[
        ModifierSpec.diminishing(ModifierType.HAPPINESS, 5),
        ModifierSpec.diminishing(ModifierType.PRODUCTION_EFFICIENCY, 2),
    ]),
    StructureDefinition(name="Workshop", description="Crafting and construction", modifiers=[
        ModifierSpec.exponential(ModifierType.UPGRADE_SPEED, 5),
        ModifierSpec.exponential(ModifierType.CONSTRUCTION_SPEED, 3),
    ]),
    StructureDefinition(name="Marketplace", description="Trade hub", modifiers=[
        ModifierSpec.diminishing(ModifierType.TRADE_DISCOUNT, 5),
        ModifierSpec.diminishing(ModifierType.HAPPINESS, 3),
    ]),

    # Disaster defense
    StructureDefinition(name="Emergency Shelter", description="Protects people during disasters", modifiers=[
        ModifierSpec.linear(ModifierType.SHELTER_CAPACITY, 50),
    ]),
    StructureDefinition(name="Hospital", description="Treats the injured", max_level=5, modifiers=[
        ModifierSpec.diminishing(ModifierType.CASUALTY_REDUCTION, 50, decay=0.5),
        ModifierSpec.diminishing(ModifierType.HAPPINESS, 3),
    ]),
    StructureDefinition(name="Watchtower", description="Early disaster warning", max_level=5, modifiers=[
        ModifierSpec.linear(ModifierType.DISASTER_WARNING_TIME, 3600),
    ]),
    StructureDefinition(name="Fortress", description="Hardened against every disaster", max_level=5, modifiers=[
        ModifierSpec.diminishing(ModifierType.DISASTER_RESISTANCE, 30, decay=0.5),
    ]),
]

DEFAULT_PREREQUISITES: List[PrerequisiteEdge] = [
    PrerequisiteEdge(structure_type="Workshop", required_structure_type="Town Hall", required_level=1),
    PrerequisiteEdge(structure_type="Marketplace", required_structure_type="Town Hall", required_level=1),
]
