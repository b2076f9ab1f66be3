"""Tests for whole-system backup jobs."""

import json
import re

import pytest

from conftest import ADMIN, AllowList
from tenant_backup.adapters.local import LocalBlobStorage
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import UnauthorizedError
from tenant_backup.jobs.backup import compression_ratio, run_backup


async def _document(storage, ledger, job) -> dict:
    files = await ledger.get_backup_files(job.id)
    assert len(files) == 1
    return json.loads(await storage.get_object(files[0].file_path))


class TestRunBackup:
    """Job lifecycle and document contents."""

    async def test_full_backup_completes(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "full", actor_id=ADMIN, catalog=catalog)

        assert job.status == "completed"
        assert job.total_tables == 6
        assert job.processed_tables == 6
        assert job.start_time is not None
        assert job.end_time >= job.start_time
        assert job.total_records == 3 + 2 + 2 + 2 + 1 + 1

    async def test_record_counts_sum_to_total(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "full", catalog=catalog)
        document = await _document(storage, ledger, job)

        counts = [t["record_count"] for t in document["tables"].values()]
        assert sum(counts) == job.total_records
        for entry in document["tables"].values():
            assert entry["record_count"] == len(entry["data"])

    async def test_selective_backup(self, db, storage, ledger, catalog):
        job = await run_backup(
            db, storage, ledger, "selective", tables=["companies"], catalog=catalog
        )
        document = await _document(storage, ledger, job)

        assert job.status == "completed"
        assert job.total_tables == 1
        assert job.total_records == 3
        assert job.tables_included == ["companies"]
        assert list(document["tables"]) == ["companies"]

    async def test_selective_unknown_table_is_read_anyway(self, db, storage, ledger, catalog):
        db.tables["audit_trail"] = [{"id": "x"}]
        job = await run_backup(
            db, storage, ledger, "selective", tables=["audit_trail"], catalog=catalog
        )
        assert job.total_records == 1

    async def test_schema_only_reads_no_rows(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "schema_only", catalog=catalog)
        tables_read = {c["table"] for c in db.select_calls}
        document = await _document(storage, ledger, job)

        assert job.total_records == 0
        assert tables_read.isdisjoint(catalog.names)
        for entry in document["tables"].values():
            assert entry["schema_only"] is True
            assert entry["record_count"] == 0
            assert "data" not in entry

    async def test_metadata(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "full", actor_id=ADMIN, catalog=catalog)
        metadata = (await _document(storage, ledger, job))["metadata"]

        assert metadata["backup_id"] == job.id
        assert metadata["backup_type"] == "full"
        assert metadata["version"] == "2.0"
        assert metadata["created_by"] == ADMIN
        assert metadata["tables_count"] == 6
        assert metadata["failed_tables"] == []

    async def test_file_row_and_path(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "full", catalog=catalog)
        (backup_file,) = await ledger.get_backup_files(job.id)

        assert re.fullmatch(
            rf"backups/\d{{4}}/\d{{1,2}}/backup_full_\d{{4}}-\d{{2}}-\d{{2}}_{job.id}\.json",
            backup_file.file_path,
        )
        assert backup_file.file_size_bytes == job.backup_size_bytes
        assert backup_file.file_size_bytes == len(storage.objects[backup_file.file_path])
        assert backup_file.record_count == job.total_records
        assert backup_file.storage_bucket == "system-backups"

    async def test_failed_table_is_recorded_and_skipped(self, db, storage, ledger, catalog):
        db.fail_select.add("pillars")
        job = await run_backup(db, storage, ledger, "full", catalog=catalog)
        document = await _document(storage, ledger, job)

        assert job.status == "completed"
        assert job.processed_tables == job.total_tables - 1
        assert "pillars" not in document["tables"]
        assert document["metadata"]["failed_tables"] == ["pillars"]

    async def test_storage_failure_fails_job(self, db, storage, ledger, catalog):
        storage.fail_put = True
        job = await run_backup(db, storage, ledger, "full", catalog=catalog)

        assert job.status == "failed"
        assert "bucket unavailable" in job.error_message
        assert job.end_time is not None
        assert await ledger.get_backup_files(job.id) == []

    async def test_unauthorized_creates_no_job(self, db, storage, ledger, catalog):
        with pytest.raises(UnauthorizedError):
            await run_backup(
                db, storage, ledger, "full",
                actor_id="intruder", catalog=catalog, access=AllowList(ADMIN),
            )
        assert db.tables.get("backup_jobs", []) == []

    async def test_unknown_type_rejected(self, db, storage, ledger, catalog):
        with pytest.raises(ValueError, match="Unknown backup type"):
            await run_backup(db, storage, ledger, "differential", catalog=catalog)

    async def test_incremental_behaves_like_full(self, db, storage, ledger, catalog):
        job = await run_backup(db, storage, ledger, "incremental", catalog=catalog)
        assert job.total_tables == len(catalog.tables)
        assert job.total_records == 11

    async def test_pages_large_tables(self, db, storage, ledger, catalog):
        db.tables["settings"] = [{"id": f"s{i}"} for i in range(5)]
        job = await run_backup(
            db, storage, ledger, "selective", tables=["settings"],
            catalog=catalog, settings=EngineSettings(page_size=2),
        )
        assert job.total_records == 5

    async def test_local_storage(self, db, ledger, catalog, tmp_path):
        storage = LocalBlobStorage(tmp_path)
        job = await run_backup(db, storage, ledger, "full", catalog=catalog)
        (backup_file,) = await ledger.get_backup_files(job.id)
        assert (tmp_path / backup_file.file_path).exists()


class TestCompressionRatio:
    def test_nominal_hundred_bytes_per_record(self):
        assert compression_ratio(500, 10) == 0.5

    def test_empty_backup(self):
        assert compression_ratio(250, 0) == 250.0
