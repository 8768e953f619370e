"""
Database Module
Settlement store protocol, in-memory store, and the Supabase repositories
"""

from settlements.db.memory import InMemorySettlementStore
from settlements.db.protocols import SettlementStore

__all__ = [
    "InMemorySettlementStore",
    "SettlementStore",
]
