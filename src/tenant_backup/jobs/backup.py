"""Whole-system backup jobs.

``run_backup`` snapshots catalog tables into one JSON document in blob
storage and tracks progress in ``backup_jobs``.  Tables are processed
one at a time; a table that cannot be read is recorded in
``metadata.failed_tables`` and the job carries on.

Document location::

    {backup_prefix}/{YYYY}/{M}/backup_{type}_{YYYY-MM-DD}_{job_id}.json

Usage:
    from tenant_backup.jobs.backup import run_backup

    job = await run_backup(adapter, storage, ledger, "selective",
                           tables=["companies", "profiles"], actor_id=actor_id)
    print(job.status, job.total_records)
"""

import json
import logging
from typing import Any

from tenant_backup.adapters.base import AccessControl, BlobStorage, DatabaseClient
from tenant_backup.catalog import DEFAULT_CATALOG, TableCatalog
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import UnauthorizedError
from tenant_backup.jobs.validate import BACKUP_FORMAT_VERSION
from tenant_backup.ledger import BACKUP_TYPES, SYSTEM_USER_ID, BackupFile, BackupJob, Ledger
from tenant_backup.ledger.models import utcnow
from tenant_backup.reader import read_all

logger = logging.getLogger(__name__)


def compression_ratio(size_bytes: int, total_records: int) -> float:
    """Size relative to a nominal 100 bytes per record, rounded to 2 places."""
    return round(size_bytes / max(total_records * 100, 1), 2)


async def run_backup(
    adapter: DatabaseClient,
    storage: BlobStorage,
    ledger: Ledger,
    backup_type: str = "full",
    tables: list[str] | None = None,
    notes: str = "",
    actor_id: str = SYSTEM_USER_ID,
    catalog: TableCatalog = DEFAULT_CATALOG,
    access: AccessControl | None = None,
    settings: EngineSettings | None = None,
    storage_bucket: str | None = None,
) -> BackupJob:
    """Run one backup job to completion.

    ``selective`` with a non-empty ``tables`` list backs up exactly those
    tables; every other combination backs up the whole catalog.
    ``schema_only`` writes a marker per table and reads no rows.
    ``incremental`` currently behaves like ``full``.

    Args:
        adapter: Data store client.
        storage: Blob storage receiving the document.
        ledger: Ledger for the job and file rows.
        backup_type: One of ``full``, ``incremental``, ``selective``,
            ``schema_only``.
        tables: Table names for ``selective`` backups.
        notes: Free text stored on the job.
        actor_id: Acting user id; system user for scheduled runs.
        catalog: Table catalog.
        access: Optional authorization check (action ``"backup"``).
        settings: Engine tunables; defaults when ``None``.
        storage_bucket: Bucket name recorded on the file row
            (default: ``settings.storage_bucket``).

    Returns:
        The final BackupJob, ``completed`` or ``failed``.

    Raises:
        ValueError: If ``backup_type`` is unknown.
        UnauthorizedError: If ``access`` denies the backup.
    """
    settings = settings or EngineSettings()
    if backup_type not in BACKUP_TYPES:
        raise ValueError(
            f"Unknown backup type '{backup_type}'. Expected one of: {', '.join(BACKUP_TYPES)}"
        )
    if access is not None and not await access.is_authorized(actor_id, "backup"):
        raise UnauthorizedError(actor_id, "backup")

    tables = list(tables or [])
    job = await ledger.create_backup_job(
        BackupJob(
            admin_user_id=actor_id,
            backup_type=backup_type,
            tables_included=tables or None,
            notes=notes,
        )
    )

    scope = backup_type if backup_type in ("selective", "schema_only") else "all"
    descriptors = catalog.list_tables(scope, tables)
    job = await ledger.update_backup_job(
        job.id, status="running", start_time=utcnow(), total_tables=len(descriptors)
    )
    logger.info(f"Starting {backup_type} backup job {job.id} ({len(descriptors)} tables)")

    try:
        document_tables: dict[str, dict[str, Any]] = {}
        failed_tables: list[str] = []
        processed = 0
        total_records = 0

        for i, table in enumerate(descriptors, start=1):
            logger.debug(f"Backing up {table.name} ({i}/{len(descriptors)})")
            if backup_type == "schema_only":
                document_tables[table.name] = {
                    "schema_only": True,
                    "record_count": 0,
                    "backed_up_at": utcnow().isoformat(),
                }
            else:
                result = await read_all(adapter, table.name, page_size=settings.page_size)
                if not result.ok:
                    failed_tables.append(table.name)
                    continue
                document_tables[table.name] = {
                    "data": result.rows,
                    "record_count": len(result.rows),
                    "backed_up_at": utcnow().isoformat(),
                }
                total_records += len(result.rows)

            processed += 1
            job = await ledger.update_backup_job(
                job.id,
                processed_tables=processed,
                total_tables=len(descriptors),
                total_records=total_records,
            )

        if failed_tables:
            logger.warning(
                f"Backup job {job.id}: {len(failed_tables)} tables failed: "
                f"{', '.join(failed_tables)}"
            )

        created_at = utcnow()
        document = {
            "metadata": {
                "backup_id": job.id,
                "backup_type": backup_type,
                "version": BACKUP_FORMAT_VERSION,
                "created_at": created_at.isoformat(),
                "created_by": actor_id,
                "tables_count": len(document_tables),
                "failed_tables": failed_tables,
            },
            "tables": document_tables,
        }
        payload = json.dumps(document, indent=2, default=str).encode("utf-8")
        size_bytes = len(payload)

        file_name = f"backup_{backup_type}_{created_at:%Y-%m-%d}_{job.id}.json"
        file_path = (
            f"{settings.backup_prefix}/{created_at.year}/{created_at.month}/{file_name}"
        )
        await storage.put_object(file_path, payload, "application/json")

        await ledger.add_backup_file(
            BackupFile(
                backup_job_id=job.id,
                file_path=file_path,
                file_name=file_name,
                file_size_bytes=size_bytes,
                record_count=total_records,
                storage_bucket=storage_bucket or settings.storage_bucket,
            )
        )

        job = await ledger.update_backup_job(
            job.id,
            status="completed",
            end_time=utcnow(),
            backup_size_bytes=size_bytes,
            compression_ratio=compression_ratio(size_bytes, total_records),
        )
        logger.info(
            f"Backup job {job.id} completed: {total_records} records, "
            f"{size_bytes} bytes at {file_path}"
        )
        return job

    except Exception as e:
        logger.error(f"Backup job {job.id} failed: {e}")
        return await ledger.update_backup_job(
            job.id, status="failed", end_time=utcnow(), error_message=str(e)
        )
