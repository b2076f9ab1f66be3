"""Restore from a stored backup document.

Conflict strategies, applied per table in batches:

- ``replace``: wipe the table, then write every row.  The wipe is
  whole-table, not tenant-scoped.  Every target table is wiped first,
  children before parents, and rows are then written parents first, so
  non-cascading foreign keys hold throughout.
- ``skip``: insert rows whose primary key is new; existing rows are left
  untouched.
- ``merge``: insert new rows and overwrite existing ones.

A failed batch is logged and skipped; the restore still completes.

Usage:
    from tenant_backup.jobs.restore import run_restore

    log = await run_restore(adapter, storage, ledger, job_id,
                            target_tables=["key_results"],
                            conflict_strategy="merge",
                            create_safety_backup=True)
"""

import logging

from tenant_backup.adapters.base import AccessControl, BlobStorage, DatabaseClient
from tenant_backup.catalog import DEFAULT_CATALOG, TableCatalog, TableDescriptor
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import (
    InvalidBackupError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
)
from tenant_backup.jobs.backup import run_backup
from tenant_backup.jobs.validate import load_backup_document, validate_backup_document
from tenant_backup.ledger import CONFLICT_STRATEGIES, SYSTEM_USER_ID, Ledger, RestoreLog
from tenant_backup.ledger.models import utcnow
from tenant_backup.ledger.store import LEDGER_TABLES
from tenant_backup.reader import TableError

logger = logging.getLogger(__name__)


async def wipe_table(adapter: DatabaseClient, table: TableDescriptor) -> TableError | None:
    """Delete every row of ``table``; return the failure instead of raising."""
    try:
        await adapter.delete_all(table.name, table.pk)
    except Exception as e:
        logger.warning(f"Restore: could not clear {table.name}, skipping it: {e}")
        return TableError(table=table.name, stage="delete", message=str(e))
    return None


async def restore_table(
    adapter: DatabaseClient,
    table: TableDescriptor,
    rows: list[dict],
    conflict_strategy: str,
    batch_size: int = 100,
) -> tuple[int, list[TableError]]:
    """Write ``rows`` into ``table`` using ``conflict_strategy``.

    Returns:
        Tuple of (rows written, recovered failures).
    """
    errors: list[TableError] = []

    if conflict_strategy == "replace":
        error = await wipe_table(adapter, table)
        if error is not None:
            return 0, [error]

    written = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        try:
            written += await adapter.upsert_batch(
                table.name,
                batch,
                on_conflict=table.pk,
                ignore_duplicates=conflict_strategy == "skip",
            )
        except Exception as e:
            logger.warning(
                f"Restore: batch {start}-{start + len(batch) - 1} of {table.name} failed: {e}"
            )
            errors.append(
                TableError(table=table.name, stage="batch", message=str(e), batch_start=start)
            )
    return written, errors


async def run_restore(
    adapter: DatabaseClient,
    storage: BlobStorage,
    ledger: Ledger,
    backup_job_id: str,
    target_tables: list[str] | None = None,
    conflict_strategy: str = "skip",
    create_safety_backup: bool = False,
    notes: str | None = None,
    actor_id: str = SYSTEM_USER_ID,
    catalog: TableCatalog = DEFAULT_CATALOG,
    access: AccessControl | None = None,
    settings: EngineSettings | None = None,
) -> RestoreLog:
    """Restore rows from a completed backup job.

    Every precondition is checked before the restore log is written.
    Once the log exists, failures to load the document end it ``failed``
    and are returned rather than raised.

    Args:
        adapter: Data store client.
        storage: Blob storage holding the document.
        ledger: Ledger for the restore log.
        backup_job_id: Completed backup job to restore from.
        target_tables: Tables to restore.  When empty, every table in the
            document except the ledger tables.
        conflict_strategy: ``replace``, ``skip`` or ``merge``.
        create_safety_backup: Take a full backup first.  Its failure does
            not stop the restore.
        notes: Free text stored on the log.
        actor_id: Acting user id.
        catalog: Table catalog, used for primary keys.
        access: Optional authorization check (action ``"restore"``).
        settings: Engine tunables; defaults when ``None``.

    Returns:
        The final RestoreLog, ``completed`` or ``failed``.

    Raises:
        UnauthorizedError: If ``access`` denies the restore.
        ValueError: If ``conflict_strategy`` is unknown.
        NotFoundError: If the backup job does not exist.
        InvalidStateError: If the job is not completed or has no file.
    """
    settings = settings or EngineSettings()

    if access is not None and not await access.is_authorized(actor_id, "restore"):
        raise UnauthorizedError(actor_id, "restore")
    if conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Unknown conflict strategy '{conflict_strategy}'. "
            f"Expected one of: {', '.join(CONFLICT_STRATEGIES)}"
        )

    job = await ledger.get_backup_job(backup_job_id)
    if job is None:
        raise NotFoundError(f"Backup job '{backup_job_id}' not found")
    if job.status != "completed":
        raise InvalidStateError(
            f"Backup job '{backup_job_id}' is {job.status}; only completed backups can be restored"
        )
    files = await ledger.get_backup_files(backup_job_id)
    if not files:
        raise InvalidStateError(f"Backup job '{backup_job_id}' has no backup file")

    target_tables = list(dict.fromkeys(target_tables or []))
    log = await ledger.create_restore_log(
        RestoreLog(
            backup_job_id=backup_job_id,
            admin_user_id=actor_id,
            restore_type="selective" if target_tables else "full",
            conflict_strategy=conflict_strategy,
            tables_requested=target_tables or None,
            notes=notes,
        )
    )
    log = await ledger.update_restore_log(log.id, status="in_progress", start_time=utcnow())
    logger.info(f"Starting restore {log.id} from backup {backup_job_id} ({conflict_strategy})")

    safety_backup_id = None
    if create_safety_backup:
        try:
            safety = await run_backup(
                adapter,
                storage,
                ledger,
                "full",
                notes=f"Safety backup before restore {log.id}",
                actor_id=actor_id,
                catalog=catalog,
                settings=settings,
            )
            safety_backup_id = safety.id
            if safety.status != "completed":
                logger.warning(
                    f"Safety backup {safety.id} ended {safety.status}: {safety.error_message}"
                )
        except Exception as e:
            logger.warning(f"Safety backup before restore {log.id} failed: {e}")

    try:
        payload = await storage.get_object(files[0].file_path)
        document = load_backup_document(payload)
        report = validate_backup_document(document, catalog)
        if not report.valid:
            raise InvalidBackupError("; ".join(report.errors))
    except (StorageError, InvalidBackupError) as e:
        logger.error(f"Restore {log.id} failed: {e}")
        return await ledger.update_restore_log(
            log.id,
            status="failed",
            end_time=utcnow(),
            error_message=str(e),
            safety_backup_id=safety_backup_id,
        )

    for warning in report.warnings:
        logger.warning(f"Restore {log.id}: {warning}")

    document_tables = document["tables"]
    tables_restored: list[str] = []
    records_restored = 0
    table_errors: list[TableError] = []

    # Full restores leave the ledger alone; it holds this restore's own log
    names = target_tables or [n for n in document_tables if n not in LEDGER_TABLES]
    position = {name: i for i, name in enumerate(catalog.names)}
    names = sorted(names, key=lambda n: position.get(n, len(position)))

    pending: list[tuple[TableDescriptor, list]] = []
    for name in names:
        entry = document_tables.get(name)
        rows = entry.get("data") if isinstance(entry, dict) else None
        if not isinstance(rows, list):
            logger.info(f"Restore {log.id}: no data for {name}, skipping")
            continue
        pending.append((catalog.get(name) or TableDescriptor(name=name), rows))

    write_strategy = conflict_strategy
    if conflict_strategy == "replace":
        wiped = []
        for descriptor, rows in reversed(pending):
            error = await wipe_table(adapter, descriptor)
            if error is not None:
                table_errors.append(error)
                continue
            wiped.append((descriptor, rows))
        pending = wiped[::-1]
        # Tables are empty now; a merge writes every row
        write_strategy = "merge"

    for descriptor, rows in pending:
        name = descriptor.name
        written, errors = await restore_table(
            adapter, descriptor, rows, write_strategy, settings.batch_size
        )
        table_errors.extend(errors)
        records_restored += written
        if written > 0:
            tables_restored.append(name)
        logger.info(f"Restore {log.id}: {name} {written}/{len(rows)} rows written")

    error_message = None
    if table_errors:
        error_message = "; ".join(f"{e.table} ({e.stage}): {e.message}" for e in table_errors)

    log = await ledger.update_restore_log(
        log.id,
        status="completed",
        end_time=utcnow(),
        tables_restored=tables_restored,
        records_restored=records_restored,
        safety_backup_id=safety_backup_id,
        error_message=error_message,
    )
    logger.info(
        f"Restore {log.id} completed: {records_restored} records "
        f"across {len(tables_restored)} tables"
    )
    return log
