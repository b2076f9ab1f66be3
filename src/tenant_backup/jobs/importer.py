"""Import an exported tenant into another tenant.

Rows get fresh primary keys, so the same export can be imported into any
number of tenants.  Foreign keys are remapped through per-table id maps
(old id -> new id); a reference whose target was not imported becomes
``None``.  User references are nulled because users do not move between
tenants, and tables marked ``importable=False`` (the root, user and
mentoring relations) are never written.

Usage:
    from tenant_backup.jobs.importer import import_tenant

    result = await import_tenant(adapter, ledger, target_id, document,
                                 mode="merge", actor_id=actor_id)
    print(result.total_records, result.errors)
"""

import logging
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from tenant_backup.adapters.base import AccessControl, DatabaseClient
from tenant_backup.catalog import DEFAULT_CATALOG, TableCatalog, TableDescriptor
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import NotFoundError, UnauthorizedError
from tenant_backup.jobs.export import ExportDocument
from tenant_backup.ledger import IMPORT_MODES, ImportLog, Ledger

logger = logging.getLogger(__name__)

# Root columns copied onto the target tenant in replace mode
ROOT_IMPORT_FIELDS: tuple[str, ...] = ("mission", "vision", "values")


class TableImportResult(BaseModel):
    """Per-table import counts."""

    inserted: int = 0
    errors: list[str] = Field(default_factory=list)


class ImportResult(BaseModel):
    """Outcome of ``import_tenant``."""

    success: bool
    total_records: int = 0
    tables_imported: list[str] = Field(default_factory=list)
    results: dict[str, TableImportResult] = Field(default_factory=dict)
    errors: list[dict[str, Any]] = Field(default_factory=list)
    log_id: str | None = None


def _remap_row(
    row: dict,
    table: TableDescriptor,
    catalog: TableCatalog,
    target_tenant_id: str,
    id_maps: dict[str, dict],
) -> dict:
    """Copy ``row`` with a new pk, the target tenant, and remapped references."""
    new_row = dict(row)

    new_pk = str(uuid4())
    old_pk = new_row.get(table.pk)
    if old_pk is not None:
        id_maps[table.name][old_pk] = new_pk
    new_row[table.pk] = new_pk

    for column in (table.tenant_column, catalog.tenant_key):
        if column and column in new_row:
            new_row[column] = target_tenant_id

    refs = ([table.parent] if table.parent is not None else []) + list(table.optional_refs)
    for ref in refs:
        old_ref_id = new_row.get(ref.field)
        if old_ref_id is None:
            continue
        new_ref_id = id_maps.get(ref.table, {}).get(old_ref_id)
        if new_ref_id is None:
            logger.warning(
                f"Import {table.name}: {ref.field}={old_ref_id} not found in {ref.table}"
            )
        new_row[ref.field] = new_ref_id

    for column in catalog.user_columns:
        if new_row.get(column):
            new_row[column] = None

    return new_row


async def import_tenant(
    adapter: DatabaseClient,
    ledger: Ledger,
    target_tenant_id: str,
    document: ExportDocument,
    mode: str,
    actor_id: str,
    catalog: TableCatalog = DEFAULT_CATALOG,
    access: AccessControl | None = None,
    settings: EngineSettings | None = None,
) -> ImportResult:
    """Import ``document`` into the tenant ``target_tenant_id``.

    ``merge`` adds the imported rows next to the tenant's existing data.
    ``replace`` first deletes the tenant's rows from every importable
    table that carries a tenant column (children first; deeper rows go
    with them through the store's cascades), and copies the root's
    mission/vision/values onto the target.

    Args:
        adapter: Data store client.
        ledger: Ledger receiving the ``company_import_logs`` row.
        target_tenant_id: Tenant receiving the rows.
        document: Export produced by ``export_tenant``.
        mode: ``"merge"`` or ``"replace"``.
        actor_id: Acting user id.
        catalog: Table catalog.
        access: Optional authorization check (action ``"import"``).
        settings: Engine tunables; defaults when ``None``.

    Returns:
        ImportResult; failed deletes and batches are listed in ``errors``.

    Raises:
        UnauthorizedError: If ``access`` denies the import.
        ValueError: If ``mode`` is unknown.
        NotFoundError: If the target tenant does not exist.
    """
    settings = settings or EngineSettings()

    if access is not None and not await access.is_authorized(actor_id, "import", target_tenant_id):
        raise UnauthorizedError(actor_id, "import", target_tenant_id)
    if mode not in IMPORT_MODES:
        raise ValueError(f"mode must be one of: {', '.join(IMPORT_MODES)}")

    root = catalog.get(catalog.root)
    targets = await adapter.select(root.name, filters={root.pk: target_tenant_id})
    if not targets:
        raise NotFoundError(f"Target tenant '{target_tenant_id}' not found in {root.name}")

    source_rows = document.data.get(root.name) or [{}]
    source_root = source_rows[0]
    source_id = source_root.get(root.pk) or document.source_tenant_id
    source_name = source_root.get("name") or document.tenant_name or "Unknown"
    logger.info(f"Starting import ({mode}) of {source_name} into tenant {target_tenant_id}")

    tables = [t for t in catalog.tenant_tables() if t.importable and t.name != root.name]
    all_errors: list[dict[str, Any]] = []

    if mode == "replace":
        for table in reversed(tables):
            if table.tenant_column is None:
                continue
            try:
                await adapter.delete(table.name, {table.tenant_column: target_tenant_id})
            except Exception as e:
                logger.warning(f"Import: delete from {table.name} failed: {e}")
                all_errors.append({"table": table.name, "error": f"Delete failed: {e}"})

    results: dict[str, TableImportResult] = {}
    id_maps: dict[str, dict] = {t.name: {} for t in tables}
    batch_size = settings.import_batch_size

    for table in tables:
        rows = document.data.get(table.name)
        if not rows:
            continue

        result = TableImportResult()
        for start in range(0, len(rows), batch_size):
            batch = [
                _remap_row(row, table, catalog, target_tenant_id, id_maps)
                for row in rows[start:start + batch_size]
            ]
            try:
                result.inserted += await adapter.upsert_batch(
                    table.name, batch, on_conflict=table.pk
                )
            except Exception as e:
                logger.warning(f"Import: batch {start} of {table.name} failed: {e}")
                result.errors.append(f"Batch {start}: {e}")
                all_errors.append({"table": table.name, "error": f"Batch {start}: {e}"})

        results[table.name] = result
        logger.info(f"Import {table.name}: {result.inserted}/{len(rows)} inserted")

    if mode == "replace":
        update_fields = {f: source_root[f] for f in ROOT_IMPORT_FIELDS if f in source_root}
        if update_fields:
            try:
                await adapter.update(root.name, update_fields, {root.pk: target_tenant_id})
            except Exception as e:
                logger.warning(f"Import: update of {root.name} failed: {e}")
                all_errors.append({"table": root.name, "error": f"Update: {e}"})

    tables_imported = [name for name, r in results.items() if r.inserted > 0]
    total_records = sum(r.inserted for r in results.values())

    log = await ledger.record_import(
        ImportLog(
            company_id=target_tenant_id,
            admin_user_id=actor_id,
            import_mode=mode,
            source_company_id=source_id,
            source_company_name=source_name,
            tables_imported=tables_imported,
            total_records=total_records,
            errors=all_errors,
        )
    )
    logger.info(
        f"Import complete: {total_records} records across {len(tables_imported)} tables, "
        f"{len(all_errors)} errors"
    )
    return ImportResult(
        success=not all_errors,
        total_records=total_records,
        tables_imported=tables_imported,
        results=results,
        errors=all_errors,
        log_id=log.id,
    )
