"""Tests for job records and audit logs."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeDatabase
from tenant_backup.errors import InvalidStateError, NotFoundError
from tenant_backup.ledger import BackupJob, BackupSchedule, ExportLog, Ledger, RestoreLog


@pytest.fixture
def ledger() -> Ledger:
    return Ledger(FakeDatabase())


class TestBackupJobs:
    async def test_create_and_get(self, ledger):
        job = await ledger.create_backup_job(BackupJob(admin_user_id="a1", notes="n"))
        fetched = await ledger.get_backup_job(job.id)
        assert fetched.id == job.id
        assert fetched.status == "pending"
        assert fetched.notes == "n"

    async def test_get_missing_returns_none(self, ledger):
        assert await ledger.get_backup_job("nope") is None

    async def test_update_fields(self, ledger):
        job = await ledger.create_backup_job(BackupJob(admin_user_id="a1"))
        updated = await ledger.update_backup_job(job.id, status="running", total_tables=4)
        assert updated.status == "running"
        assert updated.total_tables == 4

    async def test_update_serializes_datetimes(self, ledger):
        job = await ledger.create_backup_job(BackupJob(admin_user_id="a1"))
        started = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        updated = await ledger.update_backup_job(job.id, start_time=started)
        assert updated.start_time == started
        row = ledger._adapter.tables["backup_jobs"][0]
        assert isinstance(row["start_time"], str)

    async def test_terminal_job_is_frozen(self, ledger):
        job = await ledger.create_backup_job(BackupJob(admin_user_id="a1"))
        await ledger.update_backup_job(job.id, status="completed")
        with pytest.raises(InvalidStateError):
            await ledger.update_backup_job(job.id, notes="late edit")

    async def test_update_missing_raises(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.update_backup_job("nope", status="running")

    async def test_list_newest_first_with_filters(self, ledger):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for day, notes in [(1, "a"), (3, "a"), (2, "b")]:
            await ledger.create_backup_job(
                BackupJob(
                    admin_user_id="a1",
                    status="completed",
                    notes=notes,
                    created_at=base + timedelta(days=day),
                )
            )
        jobs = await ledger.list_backup_jobs(status="completed", notes="a")
        assert [j.created_at.day for j in jobs] == [4, 2]

    async def test_delete(self, ledger):
        job = await ledger.create_backup_job(BackupJob(admin_user_id="a1"))
        await ledger.delete_backup_job(job.id)
        assert await ledger.get_backup_job(job.id) is None


class TestRestoreLogs:
    async def test_lifecycle(self, ledger):
        log = await ledger.create_restore_log(
            RestoreLog(backup_job_id="j1", admin_user_id="a1", conflict_strategy="merge")
        )
        log = await ledger.update_restore_log(log.id, status="in_progress")
        log = await ledger.update_restore_log(
            log.id, status="completed", tables_restored=["t"], records_restored=3
        )
        assert log.is_terminal
        assert log.tables_restored == ["t"]
        with pytest.raises(InvalidStateError):
            await ledger.update_restore_log(log.id, status="failed")

    async def test_update_missing_raises(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.update_restore_log("nope", status="failed")


class TestAuditLogs:
    async def test_record_export(self, ledger):
        log = await ledger.record_export(
            ExportLog(
                company_id="c1", admin_user_id="a1", tables_exported=["companies"], total_records=1
            )
        )
        rows = ledger._adapter.tables["company_export_logs"]
        assert rows[0]["id"] == log.id
        assert rows[0]["export_format"] == "json"


class TestSchedules:
    NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    async def _add(self, ledger, **fields) -> BackupSchedule:
        schedule = BackupSchedule(cron_expression="0 2 * * *", **fields)
        await ledger._adapter.insert("backup_schedules", schedule.model_dump(mode="json"))
        return schedule

    async def test_due_schedules(self, ledger):
        never = await self._add(ledger, schedule_name="never-run")
        past = await self._add(ledger, schedule_name="past", next_run=self.NOW - timedelta(hours=1))
        await self._add(ledger, schedule_name="future", next_run=self.NOW + timedelta(hours=1))
        await self._add(ledger, schedule_name="inactive", is_active=False)

        due = await ledger.list_due_schedules(self.NOW)
        assert {s.id for s in due} == {never.id, past.id}

    async def test_update_schedule(self, ledger):
        schedule = await self._add(ledger, schedule_name="nightly")
        updated = await ledger.update_schedule(schedule.id, last_run=self.NOW)
        assert updated.last_run == self.NOW

    async def test_update_missing_schedule(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.update_schedule("nope", last_run=self.NOW)

    def test_legacy_schema_only_spelling(self):
        schedule = BackupSchedule(
            schedule_name="s", cron_expression="* * * * *", backup_type="schema-only"
        )
        assert schedule.backup_type == "schema_only"
