# =============================================================================
# shop_core/data/supabase_client.py
# Supabase Client Configuration for the Boutique sync core
# Handles the database connection and CRUD operations
# =============================================================================

from __future__ import annotations
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from shop_core.config import ShopConfig
from shop_core.data.models import Record
from shop_core.data.remote_store import RemoteStore
from shop_core.errors import ConfigurationError, RemoteStoreError
from shop_core.logging import get_logger

logger = get_logger(__name__)


def create_supabase_client(config: ShopConfig) -> Client:
    """
    Initialize and return a Supabase client from configuration.

    Raises:
        ConfigurationError: if url/key are missing or the client cannot be built
    """
    if not config.has_supabase:
        raise ConfigurationError(
            "Supabase credentials not found. Configure [supabase] url/key "
            "in .streamlit/secrets.toml or SUPABASE_URL/SUPABASE_KEY.",
            config_key="supabase",
        )

    try:
        return create_client(config.supabase_url, config.supabase_key)
    except Exception as e:
        raise ConfigurationError(f"Failed to initialize Supabase client: {e}", config_key="supabase") from e


def close_supabase_client(client: Optional[Client]) -> None:
    """
    Close the HTTP session under the PostgREST client.
    Cleanup errors are logged and ignored.
    """
    if client is None:
        return
    try:
        postgrest = getattr(client, "postgrest", None)
        session = getattr(postgrest, "session", None)
        if session is not None and hasattr(session, "close"):
            session.close()
    except Exception as e:
        logger.debug(f"Ignoring Supabase cleanup error: {e}")


class SupabaseRemoteStore(RemoteStore):
    """
    RemoteStore backed by Supabase tables.

    Reads are paginated (Supabase returns at most 1000 rows per request).
    `increment` goes through a Postgres function when one is configured, e.g.

        create function increment_field(p_table text, p_key_field text,
            p_key_value text, p_field text, p_amount numeric) ...

    otherwise it reads the current value and writes current + amount.
    """

    BATCH_SIZE = 1000

    def __init__(self, client: Client, increment_function: Optional[str] = None):
        self.client = client
        self.increment_function = increment_function

    def _execute(self, table: str, operation: str, query) -> List[Record]:
        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Supabase {operation} on {table} failed: {e}")
            raise RemoteStoreError(str(e), table=table, operation=operation) from e
        return list(response.data or [])

    def _select_paginated(self, table: str, field: Optional[str] = None, value: Any = None) -> List[Record]:
        all_data: List[Record] = []
        offset = 0

        while True:
            query = self.client.table(table).select("*")
            if field is not None:
                query = query.eq(field, value)
            query = query.range(offset, offset + self.BATCH_SIZE - 1)

            batch = self._execute(table, "select", query)
            all_data.extend(batch)

            # Fewer than BATCH_SIZE rows means we've reached the end
            if len(batch) < self.BATCH_SIZE:
                break
            offset += self.BATCH_SIZE

        return all_data

    def select_all(self, table: str) -> List[Record]:
        return self._select_paginated(table)

    def select_where(self, table: str, field: str, value: Any) -> List[Record]:
        return self._select_paginated(table, field, value)

    def insert(self, table: str, records: List[Record]) -> List[Record]:
        return self._execute(table, "insert", self.client.table(table).insert(records))

    def update(self, table: str, record_id: str, partial: Record) -> List[Record]:
        query = self.client.table(table).update(partial).eq("id", record_id)
        return self._execute(table, "update", query)

    def delete(self, table: str, record_id: str) -> None:
        self._execute(table, "delete", self.client.table(table).delete().eq("id", record_id))

    def upsert(self, table: str, records: List[Record], on_conflict: str) -> List[Record]:
        query = self.client.table(table).upsert(records, on_conflict=on_conflict)
        return self._execute(table, "upsert", query)

    def increment(
        self,
        table: str,
        key_field: str,
        key_value: Any,
        field: str,
        amount: float,
    ) -> Record:
        if self.increment_function:
            params: Dict[str, Any] = {
                "p_table": table,
                "p_key_field": key_field,
                "p_key_value": key_value,
                "p_field": field,
                "p_amount": amount,
            }
            rows = self._execute(table, "increment", self.client.rpc(self.increment_function, params))
            return rows[0] if rows else {key_field: key_value}

        # Read-modify-write at the remote: narrower race than writing a value
        # computed from local state, but not atomic.
        rows = self.select_where(table, key_field, key_value)
        if not rows and key_field == "id":
            raise RemoteStoreError(f"No row {key_value} to increment", table=table, operation="increment")
        current = (rows[0].get(field) if rows else 0) or 0
        new_value = current + amount

        if rows:
            updated = self._execute(
                table,
                "increment",
                self.client.table(table).update({field: new_value}).eq(key_field, key_value),
            )
        else:
            updated = self.upsert(table, [{key_field: key_value, field: new_value}], on_conflict=key_field)
        return updated[0] if updated else {key_field: key_value, field: new_value}
