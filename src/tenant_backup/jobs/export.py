"""Per-tenant relational export.

Walks the catalog's dependency levels from the tenant root.  Each level is
fetched concurrently: tenant-column tables filter on the tenant id, child
tables filter on the ids collected from their parent.  A parent that
yielded no rows (or whose read failed) short-circuits its whole subtree.

Usage:
    from tenant_backup.jobs.export import export_tenant

    document = await export_tenant(adapter, ledger, tenant_id, actor_id,
                                   access=access)
    path.write_text(document.model_dump_json(indent=2))
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from tenant_backup.adapters.base import AccessControl, DatabaseClient
from tenant_backup.catalog import DEFAULT_CATALOG, TableCatalog, TableDescriptor
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import BackupEngineError, NotFoundError, UnauthorizedError
from tenant_backup.ledger import ExportLog, Ledger
from tenant_backup.ledger.models import utcnow
from tenant_backup.reader import TableRead, read_all

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"


class ExportDocument(BaseModel):
    """Self-contained snapshot of one tenant's rows.

    ``data`` only holds tables that returned at least one row, and
    ``total_records`` always equals the number of rows in ``data``.
    """

    version: str = EXPORT_FORMAT_VERSION
    source_tenant_id: str
    tenant_name: str | None = None
    exported_at: datetime = Field(default_factory=utcnow)
    total_records: int
    tables_exported: list[str]
    data: dict[str, list[dict[str, Any]]]

    @model_validator(mode="after")
    def _check_totals(self) -> "ExportDocument":
        counted = sum(len(rows) for rows in self.data.values())
        if counted != self.total_records:
            raise ValueError(
                f"total_records is {self.total_records} but data holds {counted} rows"
            )
        non_empty = {name for name, rows in self.data.items() if rows}
        if set(self.tables_exported) != non_empty:
            raise ValueError("tables_exported must list exactly the non-empty tables in data")
        return self


async def export_tenant(
    adapter: DatabaseClient,
    ledger: Ledger,
    tenant_id: str,
    actor_id: str,
    catalog: TableCatalog = DEFAULT_CATALOG,
    access: AccessControl | None = None,
    settings: EngineSettings | None = None,
) -> ExportDocument:
    """Export every row belonging to ``tenant_id``.

    Args:
        adapter: Data store client.
        ledger: Ledger receiving the ``company_export_logs`` row.
        tenant_id: Id of the root row.
        actor_id: Acting user id, recorded on the export log.
        catalog: Table catalog to walk.
        access: Optional authorization check (action ``"export"``).
        settings: Engine tunables; defaults when ``None``.

    Returns:
        ExportDocument with the tenant's non-empty tables.

    Raises:
        UnauthorizedError: If ``access`` denies the export.
        NotFoundError: If no root row has id ``tenant_id``.
        BackupEngineError: If the root row itself cannot be read.
    """
    settings = settings or EngineSettings()

    if access is not None and not await access.is_authorized(actor_id, "export", tenant_id):
        raise UnauthorizedError(actor_id, "export", tenant_id)

    levels = catalog.levels()
    root = levels[0][0]
    root_read = await read_all(
        adapter, root.name, root.pk, tenant_id, page_size=settings.page_size
    )
    if not root_read.ok:
        raise BackupEngineError(
            f"Cannot read {root.name} '{tenant_id}': {root_read.error.message}"
        )
    if not root_read.rows:
        raise NotFoundError(f"Tenant '{tenant_id}' not found in {root.name}")

    tenant_name = root_read.rows[0].get("name")
    logger.info(f"Starting export for tenant {tenant_name} ({tenant_id})")

    collected: dict[str, list[dict]] = {root.name: root_read.rows}
    semaphore = asyncio.Semaphore(settings.export_concurrency)

    async def fetch(table: TableDescriptor) -> TableRead | None:
        if table.parent is not None:
            parent_rows = collected.get(table.parent.table, [])
            ids = [r.get(table.parent.references) for r in parent_rows]
            if not any(i is not None for i in ids):
                return None
            async with semaphore:
                return await read_all(
                    adapter,
                    table.name,
                    table.parent.field,
                    ids,
                    filter_mode="in",
                    page_size=settings.page_size,
                    in_chunk_size=settings.in_chunk_size,
                )
        async with semaphore:
            return await read_all(
                adapter,
                table.name,
                table.tenant_column,
                tenant_id,
                page_size=settings.page_size,
            )

    for level in levels[1:]:
        results = await asyncio.gather(*(fetch(t) for t in level))
        for table, result in zip(level, results):
            if result is None:
                continue
            if not result.ok:
                # Partial rows are dropped so descendants never see a truncated id set
                logger.warning(
                    f"Export of tenant {tenant_id}: skipping {table.name} "
                    f"and its descendants ({result.error.message})"
                )
                continue
            collected[table.name] = result.rows

    data = {
        t.name: collected[t.name]
        for t in catalog.tenant_tables()
        if collected.get(t.name)
    }
    total_records = sum(len(rows) for rows in data.values())
    document = ExportDocument(
        source_tenant_id=tenant_id,
        tenant_name=tenant_name,
        total_records=total_records,
        tables_exported=list(data),
        data=data,
    )

    await ledger.record_export(
        ExportLog(
            company_id=tenant_id,
            admin_user_id=actor_id,
            tables_exported=document.tables_exported,
            total_records=total_records,
        )
    )
    logger.info(
        f"Export complete: {total_records} records across "
        f"{len(document.tables_exported)} tables"
    )
    return document
