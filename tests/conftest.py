"""Shared fixtures: in-memory data store, blob storage and a small catalog."""

from typing import Any

import pytest

from tenant_backup.catalog import ForeignKey, TableCatalog, TableDescriptor
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import StorageError
from tenant_backup.ledger import Ledger


def _matches(row: dict, filters: dict | None, in_filters: dict | None = None) -> bool:
    for key, value in (filters or {}).items():
        if row.get(key) != value:
            return False
    for key, values in (in_filters or {}).items():
        if row.get(key) not in values:
            return False
    return True


class FakeDatabase:
    """``DatabaseClient`` over a dict of table name -> list of rows.

    Failure injection:
        fail_select: tables whose reads raise.
        fail_delete: tables whose deletes raise.
        fail_upsert: tables whose upserts raise.
        fail_upsert_ids: primary keys that make the batch containing them raise.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.fail_select: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_upsert: set[str] = set()
        self.fail_upsert_ids: set[Any] = set()
        self.select_calls: list[dict[str, Any]] = []
        self.closed = False

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

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
        self.select_calls.append(
            {
                "table": table,
                "filters": filters,
                "in_filters": in_filters,
                "offset": offset,
                "limit": limit,
            }
        )
        if table in self.fail_select:
            raise RuntimeError(f"select from {table} failed")

        rows = [r for r in self.rows(table) if _matches(r, filters, in_filters)]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by)))
        start = offset or 0
        end = None if limit is None else start + limit
        return [dict(r) for r in rows[start:end]]

    async def insert(self, table: str, data: dict) -> dict:
        row = {k: v for k, v in data.items() if not k.startswith("_")}
        self.rows(table).append(dict(row))
        return dict(row)

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        matched = [r for r in self.rows(table) if _matches(r, filters)]
        if not matched:
            raise ValueError(f"No rows matched filters: {filters}")
        for row in matched:
            row.update(data)
        return dict(matched[0])

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        if not filters:
            raise ValueError("delete() requires filters")
        if table in self.fail_delete:
            raise RuntimeError(f"delete from {table} failed")
        self.tables[table] = [r for r in self.rows(table) if not _matches(r, filters)]

    async def delete_all(self, table: str, pk: str = "id") -> None:
        if table in self.fail_delete:
            raise RuntimeError(f"delete from {table} failed")
        self.tables[table] = []

    async def upsert_batch(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
        ignore_duplicates: bool = False,
    ) -> int:
        if table in self.fail_upsert:
            raise RuntimeError(f"upsert into {table} failed")
        if any(r.get(on_conflict) in self.fail_upsert_ids for r in rows):
            raise RuntimeError(f"upsert into {table} rejected a row")

        existing = {r.get(on_conflict): r for r in self.rows(table)}
        written = 0
        for row in rows:
            current = existing.get(row.get(on_conflict))
            if current is not None:
                if ignore_duplicates:
                    continue
                current.update(row)
            else:
                new_row = dict(row)
                self.rows(table).append(new_row)
                existing[new_row.get(on_conflict)] = new_row
            written += 1
        return written

    async def close(self) -> None:
        self.closed = True


class FakeStorage:
    """``BlobStorage`` over a dict of path -> bytes."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_get = False

    async def put_object(
        self, path: str, data: bytes, content_type: str = "application/json"
    ) -> None:
        if self.fail_put:
            raise StorageError(f"Upload of '{path}' failed: bucket unavailable")
        self.objects[path] = bytes(data)

    async def get_object(self, path: str) -> bytes:
        if self.fail_get or path not in self.objects:
            raise StorageError(f"Download of '{path}' failed")
        return self.objects[path]

    async def delete_objects(self, paths: list[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)


class AllowList:
    """``AccessControl`` allowing a fixed set of actors."""

    def __init__(self, *actors: str) -> None:
        self.actors = set(actors)
        self.calls: list[tuple[str, str, str | None]] = []

    async def is_authorized(
        self, actor_id: str, action: str, tenant_id: str | None = None
    ) -> bool:
        self.calls.append((actor_id, action, tenant_id))
        return actor_id in self.actors


# ------------------------------------------------------------------
# Sample data
# ------------------------------------------------------------------

ADMIN = "admin-1"
ACME = "c1"


def sample_catalog() -> TableCatalog:
    """Tenant root, a three-level chain, a flat tenant table, a system table."""
    return TableCatalog(
        root="companies",
        tenant_key="company_id",
        user_columns=("created_by",),
        tables=[
            TableDescriptor(name="companies", tenant_column="id", importable=False),
            TableDescriptor(name="plans", tenant_column="company_id"),
            TableDescriptor(
                name="pillars", parent=ForeignKey(table="plans", field="plan_id")
            ),
            TableDescriptor(
                name="objectives", parent=ForeignKey(table="pillars", field="pillar_id")
            ),
            TableDescriptor(
                name="notes",
                tenant_column="company_id",
                optional_refs=(ForeignKey(table="objectives", field="objective_id"),),
            ),
            TableDescriptor(name="settings"),
        ],
    )


def sample_tables() -> dict[str, list[dict]]:
    return {
        "companies": [
            {"id": "c1", "name": "Acme", "mission": "Build", "vision": "Lead", "values": "Care"},
            {"id": "c2", "name": "Globex", "mission": None, "vision": None, "values": None},
            {"id": "c3", "name": "Empty Co", "mission": None, "vision": None, "values": None},
        ],
        "plans": [
            {"id": "p1", "company_id": "c1", "title": "2024"},
            {"id": "p2", "company_id": "c2", "title": "Globex plan"},
        ],
        "pillars": [
            {"id": "pl1", "plan_id": "p1", "title": "Growth"},
            {"id": "pl2", "plan_id": "p2", "title": "Other"},
        ],
        "objectives": [
            {"id": "o1", "pillar_id": "pl1", "title": "Revenue"},
            {"id": "o2", "pillar_id": "pl1", "title": "Margin"},
        ],
        "notes": [
            {"id": "n1", "company_id": "c1", "objective_id": "o1", "created_by": "u1"},
        ],
        "settings": [{"id": "s1", "key": "theme", "value": "dark"}],
    }


@pytest.fixture
def catalog() -> TableCatalog:
    return sample_catalog()


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase(sample_tables())


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def ledger(db) -> Ledger:
    return Ledger(db)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()
