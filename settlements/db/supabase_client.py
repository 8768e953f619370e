"""
Supabase Client
Connection handling for the settlement and tile repositories
"""

import logging
from typing import Optional

from supabase import Client, create_client

from settlements.config import Settings

logger = logging.getLogger(__name__)


class SupabaseClient:
    """
    Thin wrapper around a supabase Client.

    Built explicitly from settings and handed to each repository; there is
    no module-level instance.
    """

    def __init__(self, url: str, key: str, client: Optional[Client] = None):
        """
        Args:
            url: Supabase project URL
            key: Supabase service key
            client: Already constructed client; create_client is skipped when given
        """
        if client is None and (not url or not key):
            raise ValueError(
                "Supabase URL and key are required. "
                "Set SETTLEMENT_SUPABASE_URL and SETTLEMENT_SUPABASE_KEY."
            )

        self.url = url
        self._client: Client = client if client is not None else create_client(url, key)
        logger.info(f"Connected Supabase client for {url}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseClient":
        return cls(settings.supabase_url, settings.supabase_key)

    @property
    def client(self) -> Client:
        return self._client

    def table(self, name: str):
        """Query builder for one table"""
        return self._client.table(name)

    def rpc(self, func_name: str, params: Optional[dict] = None):
        """Query builder for a Postgres function call"""
        return self._client.rpc(func_name, params or {})
