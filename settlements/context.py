"""
Game Context
Explicitly constructed bundle of the collaborators a tick needs.
"""

import hashlib
import logging
import random
from typing import Callable, Dict, Optional

from settlements.catalog import StructureCatalog
from settlements.config import BIOME_EFFICIENCY, ResourceType, Settings, get_settings
from settlements.db.protocols import SettlementStore
from settlements.disasters import DisasterEngine
from settlements.errors import NotInitializedError
from settlements.modifiers import ModifierCalculator
from worldgen.config import BiomeCategory

logger = logging.getLogger(__name__)

RngFactory = Callable[[str, str, str], random.Random]
BiomeEfficiencyTable = Dict[BiomeCategory, Dict[ResourceType, float]]


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for an entry point (level name from Settings.log_level)"""
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def default_rng_factory(world_id: str, tick_window: str, settlement_id: str) -> random.Random:
    """
    Independent random source per (world, tick window, settlement).
    Re-running the same window reproduces the same rolls.
    """
    digest = hashlib.sha256(f"{world_id}:{tick_window}:{settlement_id}".encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


class GameContext:
    """
    Holds settings, catalog, store, disaster engine, rng factory and the
    biome efficiency table. Accessing a collaborator that was never
    provided raises NotInitializedError.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[StructureCatalog] = None,
        store: Optional[SettlementStore] = None,
        disaster_engine: Optional[DisasterEngine] = None,
        rng_factory: Optional[RngFactory] = None,
        biome_efficiency: Optional[BiomeEfficiencyTable] = None,
    ):
        self._settings = settings
        self._catalog = catalog
        self._store = store
        self._disaster_engine = disaster_engine
        self._rng_factory = rng_factory
        self._biome_efficiency = biome_efficiency
        self._calculator: Optional[ModifierCalculator] = None

    @classmethod
    def create(
        cls,
        store: SettlementStore,
        settings: Optional[Settings] = None,
        catalog: Optional[StructureCatalog] = None,
        rng_factory: Optional[RngFactory] = None,
        biome_efficiency: Optional[BiomeEfficiencyTable] = None,
    ) -> "GameContext":
        """
        Build a fully configured context, filling in defaults.

        Args:
            store: Settlement persistence collaborator
            settings: Settings (environment settings when omitted)
            catalog: Structure catalog (validated default catalog when omitted)
            rng_factory: Per-settlement random source factory
            biome_efficiency: Production multipliers per biome category

        Returns:
            GameContext ready for a TickOrchestrator
        """
        settings = settings or get_settings()
        catalog = catalog.validate() if catalog is not None else StructureCatalog.default()
        return cls(
            settings=settings,
            catalog=catalog,
            store=store,
            disaster_engine=DisasterEngine(settings.disaster_frequency),
            rng_factory=rng_factory or default_rng_factory,
            biome_efficiency=biome_efficiency or BIOME_EFFICIENCY,
        )

    @staticmethod
    def _require(value, name: str):
        if value is None:
            raise NotInitializedError(name)
        return value

    @property
    def settings(self) -> Settings:
        return self._require(self._settings, "settings")

    @property
    def catalog(self) -> StructureCatalog:
        return self._require(self._catalog, "catalog")

    @property
    def store(self) -> SettlementStore:
        return self._require(self._store, "store")

    @property
    def disaster_engine(self) -> DisasterEngine:
        return self._require(self._disaster_engine, "disaster_engine")

    @property
    def rng_factory(self) -> RngFactory:
        return self._require(self._rng_factory, "rng_factory")

    @property
    def biome_efficiency(self) -> BiomeEfficiencyTable:
        return self._require(self._biome_efficiency, "biome_efficiency")

    @property
    def modifier_calculator(self) -> ModifierCalculator:
        if self._calculator is None:
            self._calculator = ModifierCalculator(self.catalog)
        return self._calculator
