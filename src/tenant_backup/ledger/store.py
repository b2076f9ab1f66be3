"""Persistence of job records and audit logs.

``Ledger`` is the single writer for the ledger tables.  Job and restore
records may change freely until they reach ``completed`` or ``failed``;
after that every update raises ``InvalidStateError``.  Export and import
logs are insert-only.

Usage:
    from tenant_backup.ledger import Ledger, BackupJob

    ledger = Ledger(adapter)
    job = await ledger.create_backup_job(BackupJob(admin_user_id=actor_id))
    job = await ledger.update_backup_job(job.id, status="running")
"""

from datetime import datetime
from typing import Any

from tenant_backup.adapters.base import DatabaseClient
from tenant_backup.errors import InvalidStateError, NotFoundError
from tenant_backup.ledger.models import (
    BackupFile,
    BackupJob,
    BackupSchedule,
    ExportLog,
    ImportLog,
    RestoreLog,
)

BACKUP_JOBS = "backup_jobs"
BACKUP_FILES = "backup_files"
RESTORE_LOGS = "backup_restore_logs"
EXPORT_LOGS = "company_export_logs"
IMPORT_LOGS = "company_import_logs"
SCHEDULES = "backup_schedules"
LEDGER_TABLES: frozenset[str] = frozenset(
    {BACKUP_JOBS, BACKUP_FILES, RESTORE_LOGS, EXPORT_LOGS, IMPORT_LOGS, SCHEDULES}
)


class Ledger:
    """Reads and writes the ledger tables through a ``DatabaseClient``.

    Args:
        adapter: Data store holding the ledger tables.
    """

    def __init__(self, adapter: DatabaseClient) -> None:
        self._adapter = adapter

    # ------------------------------------------------------------------
    # Backup Jobs
    # ------------------------------------------------------------------

    async def create_backup_job(self, job: BackupJob) -> BackupJob:
        row = await self._adapter.insert(BACKUP_JOBS, job.model_dump(mode="json"))
        return BackupJob.model_validate(row)

    async def get_backup_job(self, job_id: str) -> BackupJob | None:
        rows = await self._adapter.select(BACKUP_JOBS, filters={"id": job_id})
        return BackupJob.model_validate(rows[0]) if rows else None

    async def update_backup_job(self, job_id: str, **fields: Any) -> BackupJob:
        """Apply ``fields`` to a non-terminal job.

        Raises:
            NotFoundError: If the job does not exist.
            InvalidStateError: If the job is already completed or failed.
        """
        current = await self.get_backup_job(job_id)
        if current is None:
            raise NotFoundError(f"Backup job '{job_id}' not found")
        if current.is_terminal:
            raise InvalidStateError(
                f"Backup job '{job_id}' is already {current.status}"
            )

        data = current.model_copy(update=fields).model_dump(mode="json", include=set(fields))
        row = await self._adapter.update(BACKUP_JOBS, data, {"id": job_id})
        return BackupJob.model_validate(row)

    async def list_backup_jobs(
        self, status: str | None = None, notes: str | None = None
    ) -> list[BackupJob]:
        """Return jobs matching the filters, newest first."""
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status
        if notes is not None:
            filters["notes"] = notes
        rows = await self._adapter.select(BACKUP_JOBS, filters=filters or None)
        jobs = [BackupJob.model_validate(r) for r in rows]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    async def delete_backup_job(self, job_id: str) -> None:
        await self._adapter.delete(BACKUP_JOBS, {"id": job_id})

    # ------------------------------------------------------------------
    # Backup Files
    # ------------------------------------------------------------------

    async def add_backup_file(self, backup_file: BackupFile) -> BackupFile:
        row = await self._adapter.insert(BACKUP_FILES, backup_file.model_dump(mode="json"))
        return BackupFile.model_validate(row)

    async def get_backup_files(self, job_id: str) -> list[BackupFile]:
        rows = await self._adapter.select(BACKUP_FILES, filters={"backup_job_id": job_id})
        return [BackupFile.model_validate(r) for r in rows]

    async def delete_backup_files(self, job_id: str) -> None:
        await self._adapter.delete(BACKUP_FILES, {"backup_job_id": job_id})

    # ------------------------------------------------------------------
    # Restore Logs
    # ------------------------------------------------------------------

    async def create_restore_log(self, log: RestoreLog) -> RestoreLog:
        row = await self._adapter.insert(RESTORE_LOGS, log.model_dump(mode="json"))
        return RestoreLog.model_validate(row)

    async def get_restore_log(self, log_id: str) -> RestoreLog | None:
        rows = await self._adapter.select(RESTORE_LOGS, filters={"id": log_id})
        return RestoreLog.model_validate(rows[0]) if rows else None

    async def update_restore_log(self, log_id: str, **fields: Any) -> RestoreLog:
        """Apply ``fields`` to a non-terminal restore log.

        Raises:
            NotFoundError: If the log does not exist.
            InvalidStateError: If the log is already completed or failed.
        """
        current = await self.get_restore_log(log_id)
        if current is None:
            raise NotFoundError(f"Restore log '{log_id}' not found")
        if current.is_terminal:
            raise InvalidStateError(f"Restore log '{log_id}' is already {current.status}")

        data = current.model_copy(update=fields).model_dump(mode="json", include=set(fields))
        row = await self._adapter.update(RESTORE_LOGS, data, {"id": log_id})
        return RestoreLog.model_validate(row)

    # ------------------------------------------------------------------
    # Tenant Audit Logs
    # ------------------------------------------------------------------

    async def record_export(self, log: ExportLog) -> ExportLog:
        row = await self._adapter.insert(EXPORT_LOGS, log.model_dump(mode="json"))
        return ExportLog.model_validate(row)

    async def record_import(self, log: ImportLog) -> ImportLog:
        row = await self._adapter.insert(IMPORT_LOGS, log.model_dump(mode="json"))
        return ImportLog.model_validate(row)

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def list_schedules(self, active_only: bool = True) -> list[BackupSchedule]:
        filters = {"is_active": True} if active_only else None
        rows = await self._adapter.select(SCHEDULES, filters=filters)
        return [BackupSchedule.model_validate(r) for r in rows]

    async def list_due_schedules(self, now: datetime) -> list[BackupSchedule]:
        """Active schedules whose ``next_run`` is unset or not after ``now``."""
        return [
            s
            for s in await self.list_schedules()
            if s.next_run is None or s.next_run <= now
        ]

    async def update_schedule(self, schedule_id: str, **fields: Any) -> BackupSchedule:
        rows = await self._adapter.select(SCHEDULES, filters={"id": schedule_id})
        if not rows:
            raise NotFoundError(f"Backup schedule '{schedule_id}' not found")
        current = BackupSchedule.model_validate(rows[0])
        data = current.model_copy(update=fields).model_dump(mode="json", include=set(fields))
        row = await self._adapter.update(SCHEDULES, data, {"id": schedule_id})
        return BackupSchedule.model_validate(row)
