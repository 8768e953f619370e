"""
Settlement Errors
Failures raised by the catalog, the simulation components and persistence.
"""

from typing import List, Optional

from worldgen.errors import ConfigError


class ConfigCycleError(ConfigError):
    """The structure prerequisite graph contains a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Prerequisite cycle: {' -> '.join(self.cycle)}")


class ConfigReferenceError(ConfigError):
    """A catalog entry names a structure type that does not exist."""

    def __init__(self, structure_type: str, missing: str):
        self.structure_type = structure_type
        self.missing = missing
        super().__init__(f"{structure_type} references unknown structure type {missing!r}")


class InvalidStructureLevelError(ValueError):
    """A structure level outside 0..max_level was used in a calculation."""

    def __init__(self, structure_type: str, level: int, max_level: Optional[int] = None):
        self.structure_type = structure_type
        self.level = level
        self.max_level = max_level
        upper = max_level if max_level is not None else "max"
        super().__init__(f"{structure_type} level {level} is outside 0..{upper}")


class PersistenceError(Exception):
    """
    A persistence collaborator failed.

    transient marks failures worth retrying on a later pass
    (timeouts, dropped connections).
    """

    def __init__(self, message: str, transient: bool = True, settlement_id: Optional[str] = None):
        self.transient = transient
        self.settlement_id = settlement_id
        super().__init__(message)


class SettlementNotFoundError(PersistenceError):
    """The settlement no longer exists in the store."""

    def __init__(self, settlement_id: str):
        super().__init__(f"Settlement {settlement_id} not found", transient=False, settlement_id=settlement_id)


class NotInitializedError(RuntimeError):
    """A game context collaborator was used before it was configured."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} has not been configured on this GameContext")


__all__ = [
    "ConfigError",
    "ConfigCycleError",
    "ConfigReferenceError",
    "InvalidStructureLevelError",
    "NotInitializedError",
    "PersistenceError",
    "SettlementNotFoundError",
]
