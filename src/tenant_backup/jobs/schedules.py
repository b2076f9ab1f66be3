"""Scheduled backups, rotation and backup deletion.

``run_due_schedules`` is meant to be triggered periodically (cron, a
platform scheduler, or ``tenant-backup run-schedules``).  It runs every
active schedule whose ``next_run`` has passed, rotates old backups for
the schedules that succeeded, and advances their ``next_run`` from the
schedule's cron expression.

Usage:
    from tenant_backup.jobs.schedules import run_due_schedules

    runs = await run_due_schedules(adapter, storage, ledger)
    failed = [r for r in runs if not r.success]
"""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field

from tenant_backup.adapters.base import BlobStorage, DatabaseClient
from tenant_backup.catalog import DEFAULT_CATALOG, TableCatalog
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import NotFoundError
from tenant_backup.jobs.backup import run_backup
from tenant_backup.ledger import SYSTEM_USER_ID, BackupSchedule, Ledger
from tenant_backup.ledger.models import utcnow

logger = logging.getLogger(__name__)


class ScheduleRun(BaseModel):
    """Outcome of one due schedule."""

    schedule_id: str
    schedule_name: str
    success: bool
    backup_job_id: str | None = None
    error: str | None = None
    deleted_backups: list[str] = Field(default_factory=list)
    next_run: datetime | None = None


def schedule_notes(schedule: BackupSchedule) -> str:
    """Notes stamped on a schedule's jobs; rotation finds them by it."""
    return f"Scheduled backup: {schedule.schedule_name}"


def compute_next_run(cron_expression: str, now: datetime | None = None) -> datetime:
    """Next fire time strictly after ``now`` for a five-field cron expression.

    Invalid expressions fall back to ``now`` plus one day.
    """
    now = now or utcnow()
    try:
        trigger = CronTrigger.from_crontab(cron_expression, timezone=timezone.utc)
    except ValueError as e:
        logger.warning(f"Invalid cron expression {cron_expression!r} ({e}), retrying in 1 day")
        return now + timedelta(days=1)

    next_run = trigger.get_next_fire_time(now, now)
    return next_run or now + timedelta(days=1)


async def delete_backup(storage: BlobStorage, ledger: Ledger, backup_job_id: str) -> None:
    """Delete a backup: stored objects first, then file rows, then the job.

    Raises:
        NotFoundError: If the job does not exist.
        StorageError: If the objects cannot be removed (rows are kept).
    """
    job = await ledger.get_backup_job(backup_job_id)
    if job is None:
        raise NotFoundError(f"Backup job '{backup_job_id}' not found")

    files = await ledger.get_backup_files(backup_job_id)
    if files:
        await storage.delete_objects([f.file_path for f in files])
    await ledger.delete_backup_files(backup_job_id)
    await ledger.delete_backup_job(backup_job_id)
    logger.info(f"Deleted backup job {backup_job_id} ({len(files)} files)")


async def rotate_backups(
    storage: BlobStorage, ledger: Ledger, notes: str, keep: int = 5
) -> list[str]:
    """Keep the ``keep`` newest completed jobs stamped with ``notes``.

    Failures deleting one backup are logged and do not stop the rest.

    Returns:
        Ids of the deleted jobs.
    """
    jobs = await ledger.list_backup_jobs(status="completed", notes=notes)
    if len(jobs) <= keep:
        logger.debug(f"No rotation needed for '{notes}': {len(jobs)} backups")
        return []

    deleted: list[str] = []
    for job in jobs[keep:]:
        try:
            await delete_backup(storage, ledger, job.id)
            deleted.append(job.id)
        except Exception as e:
            logger.error(f"Rotation could not delete backup {job.id}: {e}")
    return deleted


async def run_due_schedules(
    adapter: DatabaseClient,
    storage: BlobStorage,
    ledger: Ledger,
    now: datetime | None = None,
    catalog: TableCatalog = DEFAULT_CATALOG,
    settings: EngineSettings | None = None,
) -> list[ScheduleRun]:
    """Run every active schedule that is due.

    A schedule is advanced (``last_run``/``next_run``) only when its backup
    completed, so failed schedules are retried on the next call.  One
    schedule failing never stops the others.

    Args:
        adapter: Data store client.
        storage: Blob storage for the documents.
        ledger: Ledger holding schedules and jobs.
        now: Reference time (default: current UTC time).
        catalog: Table catalog.
        settings: Engine tunables; defaults when ``None``.

    Returns:
        One ScheduleRun per due schedule.
    """
    settings = settings or EngineSettings()
    now = now or utcnow()

    schedules = await ledger.list_due_schedules(now)
    if not schedules:
        logger.info("No schedules due for execution")
        return []

    logger.info(f"Found {len(schedules)} schedules due for execution")
    runs: list[ScheduleRun] = []

    for schedule in schedules:
        run = ScheduleRun(
            schedule_id=schedule.id, schedule_name=schedule.schedule_name, success=False
        )
        try:
            notes = schedule_notes(schedule)
            job = await run_backup(
                adapter,
                storage,
                ledger,
                schedule.backup_type,
                tables=schedule.tables_included,
                notes=notes,
                actor_id=SYSTEM_USER_ID,
                catalog=catalog,
                settings=settings,
            )
            run.backup_job_id = job.id
            if job.status == "completed":
                run.success = True
                keep = schedule.retention_count or settings.retention_count
                run.deleted_backups = await rotate_backups(storage, ledger, notes, keep=keep)
                run.next_run = compute_next_run(schedule.cron_expression, now)
                await ledger.update_schedule(schedule.id, last_run=now, next_run=run.next_run)
            else:
                run.error = job.error_message
        except Exception as e:
            logger.error(f"Schedule {schedule.schedule_name} failed: {e}")
            run.error = str(e)
        runs.append(run)

    succeeded = sum(1 for r in runs if r.success)
    logger.info(f"Executed {succeeded}/{len(runs)} schedules successfully")
    return runs
