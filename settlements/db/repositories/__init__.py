"""
Repository Pattern Implementations
Supabase persistence for settlements and tiles
"""

from settlements.db.repositories.settlements import SettlementRepository
from settlements.db.repositories.tiles import TileRepository

__all__ = ["SettlementRepository", "TileRepository"]
