"""Async Supabase collaborators.

Provides the Supabase implementations of all three collaborator
protocols, sharing one lazily created ``AsyncClient``:

- ``AsyncSupabaseAdapter`` -- ``DatabaseClient`` over PostgREST.
- ``SupabaseBlobStorage`` -- ``BlobStorage`` over a Storage bucket.
- ``SupabaseAccessControl`` -- ``AccessControl`` via the
  ``is_system_admin`` RPC, falling back to the ``profiles`` table.

Usage:
    from tenant_backup.adapters.supabase import (
        AsyncSupabaseAdapter,
        SupabaseAccessControl,
        SupabaseBlobStorage,
    )

    adapter = AsyncSupabaseAdapter(url="https://xyz.supabase.co", key="eyJ...")
    storage = SupabaseBlobStorage(adapter, bucket="system-backups")
    access = SupabaseAccessControl(adapter)
"""

import asyncio
import logging
from typing import Any

from supabase import AsyncClient, acreate_client

from tenant_backup.errors import StorageError

logger = logging.getLogger(__name__)


class AsyncSupabaseAdapter:
    """Async Supabase implementation of the ``DatabaseClient`` protocol.

    The client is initialized lazily on first use with ``acreate_client``
    protected by an ``asyncio.Lock``.  Use a service role key: restores
    and whole-table reads must bypass row-level security.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service role key for backup/restore).
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_client(self) -> AsyncClient:
        """Get or create the async Supabase client.

        Returns:
            Initialized ``AsyncClient``.
        """
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        in_filters: dict[str, list[Any]] | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows using the PostgREST query builder.

        ``offset``/``limit`` map onto an inclusive ``range()``.
        """
        client = await self.get_client()
        query = client.table(table).select(columns)

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if in_filters:
            for key, values in in_filters.items():
                query = query.in_(key, list(values))

        if order_by:
            query = query.order(order_by)

        if limit is not None:
            start = offset or 0
            query = query.range(start, start + limit - 1)

        result = await query.execute()
        return result.data or []

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row and return created row.

        Filters out metadata fields (starting with ``_``) before insertion.
        """
        client = await self.get_client()
        clean_data = {k: v for k, v in data.items() if not k.startswith("_")}
        result = await client.table(table).insert(clean_data).execute()
        return result.data[0]

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update rows and return first updated row."""
        client = await self.get_client()
        query = client.table(table).update(data)

        for key, value in filters.items():
            query = query.eq(key, value)

        result = await query.execute()
        if not result.data:
            raise ValueError(f"No rows matched filters: {filters}")
        return result.data[0]

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching filters."""
        if not filters:
            raise ValueError("delete() requires filters; use delete_all() to wipe a table")

        client = await self.get_client()
        query = client.table(table).delete()

        for key, value in filters.items():
            query = query.eq(key, value)

        await query.execute()

    async def delete_all(self, table: str, pk: str = "id") -> None:
        """Delete every row.

        PostgREST refuses unfiltered deletes, so the filter is
        ``pk IS NOT NULL``, which every row satisfies.
        """
        client = await self.get_client()
        await client.table(table).delete().not_.is_(pk, "null").execute()

    async def upsert_batch(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
        ignore_duplicates: bool = False,
    ) -> int:
        """Upsert rows; returns the number of rows PostgREST reports written.

        With ``ignore_duplicates`` the representation only contains rows
        that were actually inserted.
        """
        if not rows:
            return 0

        client = await self.get_client()
        result = await (
            client.table(table)
            .upsert(rows, on_conflict=on_conflict, ignore_duplicates=ignore_duplicates)
            .execute()
        )
        return len(result.data or [])

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Call a Postgres function through PostgREST and return its data."""
        client = await self.get_client()
        result = await client.rpc(function, params or {}).execute()
        return result.data

    async def close(self) -> None:
        """Close the Supabase async client.

        If the client was never initialized, this is a no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class SupabaseBlobStorage:
    """``BlobStorage`` backed by a Supabase Storage bucket.

    Args:
        adapter: Adapter whose client is reused.
        bucket: Storage bucket name.
    """

    def __init__(self, adapter: AsyncSupabaseAdapter, bucket: str = "system-backups") -> None:
        self._adapter = adapter
        self.bucket = bucket

    async def _bucket(self):
        client = await self._adapter.get_client()
        return client.storage.from_(self.bucket)

    async def put_object(
        self, path: str, data: bytes, content_type: str = "application/json"
    ) -> None:
        bucket = await self._bucket()
        try:
            await bucket.upload(path, data, file_options={"content-type": content_type})
        except Exception as e:
            raise StorageError(f"Upload of '{path}' to '{self.bucket}' failed: {e}") from e

    async def get_object(self, path: str) -> bytes:
        bucket = await self._bucket()
        try:
            return await bucket.download(path)
        except Exception as e:
            raise StorageError(f"Download of '{path}' from '{self.bucket}' failed: {e}") from e

    async def delete_objects(self, paths: list[str]) -> None:
        if not paths:
            return
        bucket = await self._bucket()
        try:
            await bucket.remove(paths)
        except Exception as e:
            raise StorageError(f"Delete from '{self.bucket}' failed: {e}") from e


class SupabaseAccessControl:
    """``AccessControl`` allowing active system administrators only.

    Asks the ``is_system_admin`` RPC first.  When the RPC errors (older
    databases do not define it), falls back to checking for an active
    ``admin`` row in ``profiles``.
    """

    def __init__(self, adapter: AsyncSupabaseAdapter) -> None:
        self._adapter = adapter

    async def is_authorized(
        self, actor_id: str, action: str, tenant_id: str | None = None
    ) -> bool:
        try:
            is_admin = await self._adapter.rpc("is_system_admin", {"_user_id": actor_id})
            return bool(is_admin)
        except Exception as e:
            logger.debug(f"is_system_admin RPC unavailable ({e}), checking profiles")

        profiles = await self._adapter.select(
            "profiles", "role, status", filters={"user_id": actor_id}
        )
        return any(
            p.get("role") == "admin" and p.get("status") == "active" for p in profiles
        )
