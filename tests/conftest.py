"""
Shared test fixtures
"""

import pytest

from helpers import CALM
from settlements.catalog import StructureCatalog
from settlements.config import Settings
from settlements.context import GameContext
from settlements.db.memory import InMemorySettlementStore


@pytest.fixture(scope="session")
def catalog():
    """Validated default structure catalog"""
    return StructureCatalog.default()


@pytest.fixture
def settings():
    """Sequential tick settings with no timeout"""
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test",
        disaster_frequency="NORMAL",
        tick_max_workers=1,
        tick_timeout_seconds=None,
    )


@pytest.fixture
def store():
    """Empty in-memory settlement store"""
    return InMemorySettlementStore()


@pytest.fixture
def make_context(store, settings, catalog):
    """Build a GameContext around the store with a chosen rng factory"""

    def _make(rng_factory=CALM, settings_override=None):
        return GameContext.create(
            store=store,
            settings=settings_override or settings,
            catalog=catalog,
            rng_factory=rng_factory,
        )

    return _make
