"""Relational store access for the catalog and listing tables.

The resolver and orchestrator only see the ``CatalogStore`` protocol. The
production implementation drives the synchronous Supabase client from a
worker thread so the event loop never blocks on the network.
"""

import asyncio
import threading
import time
from collections.abc import Sequence
from typing import Any, Protocol

from supabase import Client, create_client

from commercialx.config import get_settings
from commercialx.core.exceptions import NotFoundError
from commercialx.core.logging import log_db_query

Row = dict[str, Any]

VEHICLE = "vehicle"
VEHICLE_CONFIG = "vehicle_config"
EQUIPMENT = "equipment"
EQUIPMENT_CONFIG = "equipment_config"
COMPLETE_CONFIGURATION = "complete_configuration"
COMPATIBILITY = "chassis_equipment_compatibility"
VEHICLE_LISTING = "vehicle_listing"
DEALER = "dealer"


class CatalogStore(Protocol):
    async def select(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by: Sequence[str] = (),
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]: ...

    async def insert(self, table: str, row: Row) -> Row: ...

    async def update(self, table: str, row_id: int, changes: Row) -> Row | None: ...


async def fetch_by_id(store: CatalogStore, table: str, row_id: int) -> Row:
    """Load one row by primary key, raising NotFoundError when absent."""
    rows = await store.select(table, {"id": row_id}, limit=1)
    if not rows:
        raise NotFoundError(table, row_id)
    return rows[0]


# Supabase client (lazy loaded, shared across requests)
_supabase: Client | None = None
_client_lock = threading.Lock()


def get_supabase_client() -> Client:
    """Get or create the shared Supabase client (thread-safe)."""
    global _supabase
    if _supabase is None:
        with _client_lock:
            if _supabase is None:
                settings = get_settings()
                _supabase = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase


class SupabaseCatalogStore:
    """CatalogStore backed by Supabase (PostgREST)."""

    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def select(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by: Sequence[str] = (),
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        start = time.time()

        def _do_select():
            query = self.client.table(table).select("*")
            for column, value in (where or {}).items():
                if value is None:
                    query = query.is_(column, "null")
                else:
                    query = query.eq(column, value)
            for column in order_by:
                query = query.order(column, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            return query.execute()

        result = await asyncio.to_thread(_do_select)
        log_db_query("select", table, (time.time() - start) * 1000, len(result.data or []))
        return [row for row in (result.data or []) if isinstance(row, dict)]

    async def insert(self, table: str, row: Row) -> Row:
        start = time.time()

        def _do_insert():
            return self.client.table(table).insert(row).execute()

        result = await asyncio.to_thread(_do_insert)
        log_db_query("insert", table, (time.time() - start) * 1000)
        if not result.data:
            raise RuntimeError(f"Insert into {table} returned no row")
        return result.data[0]

    async def update(self, table: str, row_id: int, changes: Row) -> Row | None:
        start = time.time()

        def _do_update():
            return self.client.table(table).update(changes).eq("id", row_id).execute()

        result = await asyncio.to_thread(_do_update)
        log_db_query("update", table, (time.time() - start) * 1000)
        return result.data[0] if result.data else None
