"""
Structure Catalog Tests
"""

import pytest

from settlements.catalog import (
    DEFAULT_STRUCTURES,
    ModifierSpec,
    PrerequisiteEdge,
    StructureCatalog,
    StructureDefinition,
    structure_key,
)
from settlements.config import ModifierType
from settlements.errors import ConfigCycleError, ConfigError, ConfigReferenceError


def definition(name, max_level=10, modifiers=None):
    return StructureDefinition(name=name, max_level=max_level, modifiers=modifiers or [])


def edge(structure_type, required, level=1):
    return PrerequisiteEdge(structure_type=structure_type, required_structure_type=required, required_level=level)


class TestDefaultCatalog:
    """Tests for the built-in structure set"""

    def test_loads_and_validates(self, catalog):
        assert len(catalog) == len(DEFAULT_STRUCTURES) == 18

    def test_lookup_by_any_spelling(self, catalog):
        assert "Town Hall" in catalog
        assert "town_hall" in catalog
        assert "TOWN-HALL" in catalog
        assert catalog.get("emergency shelter").name == "Emergency Shelter"

    def test_require_unknown(self, catalog):
        with pytest.raises(ConfigReferenceError) as exc:
            catalog.require("Space Elevator")
        assert exc.value.missing == "Space Elevator"

    def test_every_structure_has_modifiers(self, catalog):
        for name in catalog.structure_types:
            assert catalog.get(name).modifiers

    def test_prerequisites(self, catalog):
        edges = catalog.prerequisites_for("Workshop")
        assert [(e.required_structure_type, e.required_level) for e in edges] == [("Town Hall", 1)]
        assert catalog.prerequisites_for("Farm") == []


class TestStructureKey:

    @pytest.mark.parametrize("name", ["Town Hall", "town_hall", " TOWN-HALL "])
    def test_normalized(self, name):
        assert structure_key(name) == "TOWN_HALL"


class TestCatalogValidation:
    """Invalid catalogs are rejected at load time"""

    def test_duplicate_structure(self):
        with pytest.raises(ConfigError):
            StructureCatalog([definition("Farm"), definition("farm")])

    def test_unknown_required_structure(self):
        catalog = StructureCatalog([definition("A")], [edge("A", "Ghost")])
        with pytest.raises(ConfigReferenceError) as exc:
            catalog.validate()
        assert exc.value.missing == "Ghost"

    def test_unknown_dependent_structure(self):
        catalog = StructureCatalog([definition("A")], [edge("Ghost", "A")])
        with pytest.raises(ConfigReferenceError):
            catalog.validate()

    def test_required_level_above_max(self):
        catalog = StructureCatalog([definition("A"), definition("B", max_level=3)], [edge("A", "B", level=4)])
        with pytest.raises(ConfigError):
            catalog.validate()

    def test_two_node_cycle(self):
        catalog = StructureCatalog([definition("A"), definition("B")], [edge("A", "B"), edge("B", "A")])
        with pytest.raises(ConfigCycleError) as exc:
            catalog.validate()
        assert exc.value.cycle == ["A", "B", "A"]

    def test_longer_cycle(self):
        catalog = StructureCatalog(
            [definition("A"), definition("B"), definition("C"), definition("D")],
            [edge("A", "B"), edge("B", "C"), edge("C", "D"), edge("D", "B")],
        )
        with pytest.raises(ConfigCycleError) as exc:
            catalog.validate()
        assert exc.value.cycle == ["B", "C", "D", "B"]

    def test_self_cycle(self):
        catalog = StructureCatalog([definition("A")], [edge("A", "A")])
        with pytest.raises(ConfigCycleError):
            catalog.validate()

    def test_diamond_is_not_a_cycle(self):
        catalog = StructureCatalog(
            [definition("A"), definition("B"), definition("C"), definition("D")],
            [edge("A", "B"), edge("A", "C"), edge("B", "D"), edge("C", "D")],
        )
        assert catalog.validate() is catalog

    def test_invalid_decay(self):
        spec = ModifierSpec.diminishing(ModifierType.HAPPINESS, 5, decay=1.5)
        catalog = StructureCatalog([definition("A", modifiers=[spec])])
        with pytest.raises(ConfigError):
            catalog.validate()

    def test_invalid_growth(self):
        spec = ModifierSpec.exponential(ModifierType.UPGRADE_SPEED, 5, growth=0)
        catalog = StructureCatalog([definition("A", modifiers=[spec])])
        with pytest.raises(ConfigError):
            catalog.validate()

    def test_max_level_must_be_positive(self):
        with pytest.raises(ValueError):
            definition("A", max_level=0)
