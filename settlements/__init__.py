"""
Settlement World - Simulation Core
Structure modifiers, disasters and the hourly tick engine.
"""

from settlements.catalog import StructureCatalog, StructureDefinition, ModifierSpec, PrerequisiteEdge
from settlements.config import DisasterFrequency, ResourceType, ScalingKind, ModifierType, Settings, get_settings
from settlements.context import GameContext, configure_logging
from settlements.disasters import DisasterEngine, SettlementRiskProfile, severity_level_for
from settlements.models import DisasterEvent, ResourceLedger, SettlementState, StructureInstance, TickResult
from settlements.modifiers import ModifierCalculator, calculate_modifier_value
from settlements.orchestrator import TickOrchestrator, hour_window

__version__ = "0.1.0"
__all__ = [
    "DisasterEngine",
    "DisasterEvent",
    "DisasterFrequency",
    "GameContext",
    "ModifierCalculator",
    "ModifierSpec",
    "ModifierType",
    "PrerequisiteEdge",
    "ResourceLedger",
    "ResourceType",
    "ScalingKind",
    "SettlementRiskProfile",
    "SettlementState",
    "Settings",
    "StructureCatalog",
    "StructureDefinition",
    "StructureInstance",
    "TickOrchestrator",
    "TickResult",
    "calculate_modifier_value",
    "configure_logging",
    "get_settings",
    "hour_window",
    "severity_level_for",
]
