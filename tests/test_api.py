"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from conftest import (
    ACME,
    ADMIN,
    AllowList,
    FakeDatabase,
    FakeStorage,
    sample_catalog,
    sample_tables,
)
from tenant_backup.api import _http_error, create_app
from tenant_backup.config.models import EngineSettings
from tenant_backup.errors import InvalidStateError, NotFoundError, UnauthorizedError
from tenant_backup.factory import BackupContext
from tenant_backup.ledger import BackupJob, Ledger

HEADERS = {"X-Actor-Id": ADMIN}


@pytest.fixture
def context() -> BackupContext:
    db = FakeDatabase(sample_tables())
    return BackupContext(
        profile_name="test",
        adapter=db,
        storage=FakeStorage(),
        ledger=Ledger(db),
        access=AllowList(ADMIN),
        settings=EngineSettings(),
        catalog=sample_catalog(),
    )


@pytest.fixture
def client(context) -> TestClient:
    return TestClient(create_app(context))


def _backup(client: TestClient) -> dict:
    response = client.post(
        "/api/admin/backup",
        json={"type": "selective", "tables": ["settings"]},
        headers=HEADERS,
    )
    assert response.status_code == 200
    return response.json()


class TestBackupEndpoint:
    def test_backup(self, client: TestClient) -> None:
        response = client.post(
            "/api/admin/backup",
            json={"type": "selective", "tables": ["companies"], "notes": "before migration"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["total_records"] == 3
        assert data["notes"] == "before migration"
        assert data["admin_user_id"] == ADMIN

    def test_missing_actor_header(self, client: TestClient) -> None:
        response = client.post("/api/admin/backup", json={"type": "full"})
        assert response.status_code == 422

    def test_forbidden(self, client: TestClient, context: BackupContext) -> None:
        response = client.post(
            "/api/admin/backup", json={"type": "full"}, headers={"X-Actor-Id": "intruder"}
        )
        assert response.status_code == 403
        assert context.adapter.tables.get("backup_jobs", []) == []

    def test_unknown_type(self, client: TestClient) -> None:
        response = client.post("/api/admin/backup", json={"type": "weekly"}, headers=HEADERS)
        assert response.status_code == 422

    def test_failed_job_is_500(self, client: TestClient, context: BackupContext) -> None:
        context.storage.fail_put = True
        response = client.post("/api/admin/backup", json={"type": "full"}, headers=HEADERS)
        assert response.status_code == 500
        assert response.json()["status"] == "failed"


class TestRestoreEndpoint:
    def test_restore(self, client: TestClient, context: BackupContext) -> None:
        job = _backup(client)
        context.adapter.tables["settings"] = []

        response = client.post(
            "/api/admin/restore",
            json={"backup_job_id": job["id"], "conflict_strategy": "merge"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["records_restored"] == 1
        assert data["tables_restored"] == ["settings"]

    def test_unknown_job(self, client: TestClient) -> None:
        response = client.post(
            "/api/admin/restore", json={"backup_job_id": "missing"}, headers=HEADERS
        )
        assert response.status_code == 404

    def test_job_not_completed(self, client: TestClient, context: BackupContext) -> None:
        job = BackupJob(admin_user_id=ADMIN, status="running")
        context.adapter.tables["backup_jobs"] = [job.model_dump(mode="json")]
        response = client.post(
            "/api/admin/restore", json={"backup_job_id": job.id}, headers=HEADERS
        )
        assert response.status_code == 409

    def test_failed_restore_is_500(self, client: TestClient, context: BackupContext) -> None:
        job = _backup(client)
        context.storage.fail_get = True
        response = client.post(
            "/api/admin/restore", json={"backup_job_id": job["id"]}, headers=HEADERS
        )
        assert response.status_code == 500
        assert response.json()["status"] == "failed"


class TestExportEndpoint:
    def test_export(self, client: TestClient) -> None:
        response = client.post("/api/admin/export", json={"tenant_id": ACME}, headers=HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["source_tenant_id"] == ACME
        assert data["tenant_name"] == "Acme"
        assert data["total_records"] == 6
        assert "companies" in data["tables_exported"]

    def test_unknown_tenant(self, client: TestClient) -> None:
        response = client.post("/api/admin/export", json={"tenant_id": "c404"}, headers=HEADERS)
        assert response.status_code == 404

    def test_forbidden(self, client: TestClient) -> None:
        response = client.post(
            "/api/admin/export", json={"tenant_id": ACME}, headers={"X-Actor-Id": "intruder"}
        )
        assert response.status_code == 403

    def test_empty_tenant_id(self, client: TestClient) -> None:
        response = client.post("/api/admin/export", json={"tenant_id": ""}, headers=HEADERS)
        assert response.status_code == 422


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (UnauthorizedError("a", "backup"), 403),
            (NotFoundError("x"), 404),
            (InvalidStateError("x"), 409),
            (ValueError("x"), 400),
        ],
    )
    def test_status_codes(self, error: Exception, status_code: int) -> None:
        assert _http_error(error).status_code == status_code
