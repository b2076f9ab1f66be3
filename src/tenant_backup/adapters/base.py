"""Collaborator protocol definitions.

Defines the three external collaborators the jobs talk to:

- ``DatabaseClient`` -- the relational data store (paged reads, batch
  upserts, deletes).
- ``BlobStorage`` -- object storage holding serialized backup documents.
- ``AccessControl`` -- decides whether an actor may run a job.

All I/O methods are ``async def``.

Usage:
    from tenant_backup.adapters.base import DatabaseClient, BlobStorage

    async def copy_page(client: DatabaseClient, storage: BlobStorage) -> None:
        rows = await client.select("companies", offset=0, limit=100)
        await storage.put_object("dump.json", b"[]", "application/json")
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Data store interface that all adapters must implement.

    Rows are plain dicts with JSON-compatible values.  The engine never
    assumes a schema beyond the columns named in the table catalog.
    """

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
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (``"*"`` for all).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.  When omitted the
                store's default ordering applies.
            in_filters: Optional dict of field -> list of accepted values
                (``field IN (...)``), ANDed with ``filters``.
            offset: Number of rows to skip.
            limit: Maximum number of rows to return.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "key_results",
                in_filters={"objective_id": ["o1", "o2"]},
                offset=0,
                limit=1000,
            )
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert one row and return the created row."""
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update rows matching ``filters`` and return the first updated row."""
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching ``filters`` (all must match via AND).

        ``filters`` must not be empty -- use ``delete_all`` for a wipe.
        """
        ...

    async def delete_all(self, table: str, pk: str = "id") -> None:
        """Delete every row of ``table``.

        Args:
            table: Table name.
            pk: Primary key column, used by stores that refuse unfiltered
                deletes.
        """
        ...

    async def upsert_batch(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
        ignore_duplicates: bool = False,
    ) -> int:
        """Insert a batch of rows, resolving primary key conflicts.

        Args:
            table: Table name.
            rows: Rows to write.
            on_conflict: Conflict target column.
            ignore_duplicates: When ``True``, rows whose key already exists
                are left untouched.  When ``False``, they are overwritten.

        Returns:
            Number of rows actually written (inserted or overwritten).

        Raises:
            Exception: If the store rejects the batch.
        """
        ...

    async def close(self) -> None:
        """Close connections and release resources."""
        ...


class BlobStorage(Protocol):
    """Object storage interface for serialized backup documents."""

    async def put_object(
        self, path: str, data: bytes, content_type: str = "application/json"
    ) -> None:
        """Store ``data`` at ``path``.

        Raises:
            StorageError: If the write is rejected.
        """
        ...

    async def get_object(self, path: str) -> bytes:
        """Return the bytes stored at ``path``.

        Raises:
            StorageError: If the object is missing or cannot be read.
        """
        ...

    async def delete_objects(self, paths: list[str]) -> None:
        """Remove the objects at ``paths``.

        Raises:
            StorageError: If the delete is rejected.
        """
        ...


class AccessControl(Protocol):
    """Authorization check run before any job starts."""

    async def is_authorized(
        self, actor_id: str, action: str, tenant_id: str | None = None
    ) -> bool:
        """Return ``True`` when ``actor_id`` may perform ``action``.

        Args:
            actor_id: Acting user id.
            action: One of ``"backup"``, ``"restore"``, ``"export"``,
                ``"import"``, ``"delete"``.
            tenant_id: Tenant the action targets, when tenant-scoped.
        """
        ...
