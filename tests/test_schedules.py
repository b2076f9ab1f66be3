"""Tests for scheduled backups, rotation and deletion."""

from datetime import datetime, timedelta, timezone

import pytest

from tenant_backup.errors import NotFoundError
from tenant_backup.jobs import schedules
from tenant_backup.jobs.backup import run_backup
from tenant_backup.jobs.schedules import (
    compute_next_run,
    delete_backup,
    rotate_backups,
    run_due_schedules,
)
from tenant_backup.ledger import BackupFile, BackupJob, BackupSchedule

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
NIGHTLY_NOTES = "Scheduled backup: nightly"


async def _add_schedule(db, **fields) -> BackupSchedule:
    fields.setdefault("schedule_name", "nightly")
    fields.setdefault("cron_expression", "0 2 * * *")
    schedule = BackupSchedule(**fields)
    await db.insert("backup_schedules", schedule.model_dump(mode="json"))
    return schedule


async def _add_completed_backup(ledger, storage, notes: str, created_at: datetime) -> BackupJob:
    job = await ledger.create_backup_job(
        BackupJob(admin_user_id="system", status="completed", notes=notes, created_at=created_at)
    )
    path = f"backups/{job.id}.json"
    await storage.put_object(path, b"{}")
    await ledger.add_backup_file(
        BackupFile(
            backup_job_id=job.id,
            file_path=path,
            file_name=f"{job.id}.json",
            file_size_bytes=2,
            record_count=0,
            storage_bucket="system-backups",
        )
    )
    return job


class TestComputeNextRun:
    def test_next_fire_time(self):
        assert compute_next_run("0 2 * * *", NOW) == datetime(2024, 6, 2, 2, 0, tzinfo=timezone.utc)

    def test_strictly_after_now(self):
        at_fire_time = datetime(2024, 6, 1, 2, 0, tzinfo=timezone.utc)
        assert compute_next_run("0 2 * * *", at_fire_time) == datetime(
            2024, 6, 2, 2, 0, tzinfo=timezone.utc
        )

    def test_every_fifteen_minutes(self):
        assert compute_next_run("*/15 * * * *", NOW) == NOW + timedelta(minutes=15)

    def test_invalid_expression_falls_back_to_one_day(self):
        assert compute_next_run("not a cron", NOW) == NOW + timedelta(days=1)


class TestDeleteBackup:
    async def test_removes_objects_files_and_job(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "full", catalog=catalog)
        assert storage.objects

        await delete_backup(storage, ledger, job.id)

        assert storage.objects == {}
        assert await ledger.get_backup_files(job.id) == []
        assert await ledger.get_backup_job(job.id) is None

    async def test_unknown_job(self, storage, ledger):
        with pytest.raises(NotFoundError):
            await delete_backup(storage, ledger, "missing")


class TestRotateBackups:
    async def test_keeps_newest(self, storage, ledger):
        jobs = [
            await _add_completed_backup(ledger, storage, NIGHTLY_NOTES, NOW - timedelta(days=d))
            for d in range(7)
        ]

        deleted = await rotate_backups(storage, ledger, NIGHTLY_NOTES, keep=5)

        assert set(deleted) == {jobs[5].id, jobs[6].id}
        remaining = await ledger.list_backup_jobs(notes=NIGHTLY_NOTES)
        assert [j.id for j in remaining] == [j.id for j in jobs[:5]]
        assert len(storage.objects) == 5

    async def test_other_schedules_untouched(self, storage, ledger):
        for d in range(3):
            await _add_completed_backup(
                ledger, storage, "Scheduled backup: weekly", NOW - timedelta(days=d)
            )
        assert await rotate_backups(storage, ledger, NIGHTLY_NOTES, keep=1) == []

    async def test_nothing_to_rotate(self, storage, ledger):
        await _add_completed_backup(ledger, storage, NIGHTLY_NOTES, NOW)
        assert await rotate_backups(storage, ledger, NIGHTLY_NOTES, keep=5) == []


class TestRunDueSchedules:
    async def test_runs_due_schedule(self, db, storage, ledger, catalog):
        schedule = await _add_schedule(db, backup_type="selective", tables_included=["settings"])

        (run,) = await run_due_schedules(db, storage, ledger, now=NOW, catalog=catalog)

        assert run.success
        assert run.schedule_id == schedule.id
        job = await ledger.get_backup_job(run.backup_job_id)
        assert job.status == "completed"
        assert job.notes == NIGHTLY_NOTES
        assert job.tables_included == ["settings"]
        assert job.admin_user_id == "00000000-0000-0000-0000-000000000000"

    async def test_schedule_advanced(self, db, storage, ledger, catalog):
        schedule = await _add_schedule(db, backup_type="schema_only")

        (run,) = await run_due_schedules(db, storage, ledger, now=NOW, catalog=catalog)

        (row,) = await ledger.list_schedules()
        assert row.id == schedule.id
        assert row.last_run == NOW
        assert row.next_run == datetime(2024, 6, 2, 2, 0, tzinfo=timezone.utc)
        assert run.next_run == row.next_run

    async def test_not_due_schedule_skipped(self, db, storage, ledger, catalog):
        await _add_schedule(db, next_run=NOW + timedelta(hours=1))
        assert await run_due_schedules(db, storage, ledger, now=NOW, catalog=catalog) == []

    async def test_retention_applied(self, db, storage, ledger, catalog):
        for d in range(1, 4):
            await _add_completed_backup(ledger, storage, NIGHTLY_NOTES, NOW - timedelta(days=d))
        await _add_schedule(db, backup_type="schema_only", retention_count=2)

        (run,) = await run_due_schedules(db, storage, ledger, now=NOW, catalog=catalog)

        assert len(run.deleted_backups) == 2
        remaining = await ledger.list_backup_jobs(notes=NIGHTLY_NOTES)
        assert len(remaining) == 2
        assert run.backup_job_id in {j.id for j in remaining}

    async def test_failed_backup_not_advanced(self, db, storage, ledger, catalog):
        await _add_schedule(db, backup_type="schema_only")
        storage.fail_put = True

        (run,) = await run_due_schedules(db, storage, ledger, now=NOW, catalog=catalog)

        assert not run.success
        assert "bucket unavailable" in run.error
        (row,) = await ledger.list_schedules()
        assert row.next_run is None
        assert row.last_run is None

    async def test_one_failure_does_not_stop_others(
        self, db, storage, ledger, catalog, monkeypatch
    ):
        await _add_schedule(db, schedule_name="broken", backup_type="schema_only")
        await _add_schedule(db, schedule_name="healthy", backup_type="schema_only")

        async def flaky_backup(*args, **kwargs):
            if kwargs["notes"] == "Scheduled backup: broken":
                raise RuntimeError("database went away")
            return await run_backup(*args, **kwargs)

        monkeypatch.setattr(schedules, "run_backup", flaky_backup)

        runs = await run_due_schedules(db, storage, ledger, now=NOW, catalog=catalog)

        by_name = {r.schedule_name: r for r in runs}
        assert not by_name["broken"].success
        assert by_name["broken"].error == "database went away"
        assert by_name["healthy"].success
