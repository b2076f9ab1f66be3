"""Pydantic models for the job and audit log tables."""

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

BackupType = Literal["full", "incremental", "selective", "schema_only"]
JobStatus = Literal["pending", "running", "completed", "failed"]
RestoreStatus = Literal["pending", "in_progress", "completed", "failed"]
ConflictStrategy = Literal["replace", "skip", "merge"]
ImportMode = Literal["merge", "replace"]

BACKUP_TYPES: tuple[str, ...] = ("full", "incremental", "selective", "schema_only")
CONFLICT_STRATEGIES: tuple[str, ...] = ("replace", "skip", "merge")
IMPORT_MODES: tuple[str, ...] = ("merge", "replace")
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# Actor recorded for jobs started without a user (scheduled and safety backups)
SYSTEM_USER_ID = "00000000-0000-0000-0000-000000000000"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# ============================================================================
# Backup Jobs
# ============================================================================


class BackupJob(BaseModel):
    """Row of ``backup_jobs``; one per backup run."""

    id: str = Field(default_factory=_new_id)
    admin_user_id: str
    backup_type: BackupType = "full"
    status: JobStatus = "pending"
    tables_included: list[str] | None = None
    total_tables: int = 0
    processed_tables: int = 0
    total_records: int = 0
    backup_size_bytes: int | None = None
    compression_ratio: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    error_message: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class BackupFile(BaseModel):
    """Row of ``backup_files``; the stored document of a completed job."""

    id: str = Field(default_factory=_new_id)
    backup_job_id: str
    file_path: str
    file_name: str
    file_size_bytes: int
    record_count: int
    storage_bucket: str
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Restores
# ============================================================================


class RestoreLog(BaseModel):
    """Row of ``backup_restore_logs``; one per restore attempt."""

    id: str = Field(default_factory=_new_id)
    backup_job_id: str
    admin_user_id: str
    restore_type: Literal["full", "selective"] = "full"
    conflict_strategy: ConflictStrategy = "skip"
    status: RestoreStatus = "pending"
    tables_requested: list[str] | None = None
    tables_restored: list[str] = Field(default_factory=list)
    records_restored: int = 0
    safety_backup_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    error_message: str | None = None
    notes: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ============================================================================
# Tenant Audit Logs (write-once)
# ============================================================================


class ExportLog(BaseModel):
    """Row of ``company_export_logs``."""

    id: str = Field(default_factory=_new_id)
    company_id: str
    admin_user_id: str
    export_format: str = "json"
    tables_exported: list[str] = Field(default_factory=list)
    total_records: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class ImportLog(BaseModel):
    """Row of ``company_import_logs``."""

    id: str = Field(default_factory=_new_id)
    company_id: str
    admin_user_id: str
    import_mode: ImportMode
    source_company_id: str | None = None
    source_company_name: str | None = None
    tables_imported: list[str] = Field(default_factory=list)
    total_records: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Schedules
# ============================================================================


class BackupSchedule(BaseModel):
    """Row of ``backup_schedules``."""

    id: str = Field(default_factory=_new_id)
    schedule_name: str
    backup_type: BackupType = "full"
    cron_expression: str
    tables_included: list[str] | None = None
    retention_count: int | None = None   # falls back to engine retention_count
    is_active: bool = True
    last_run: datetime | None = None
    next_run: datetime | None = None

    @field_validator("backup_type", mode="before")
    @classmethod
    def _normalize_backup_type(cls, value):
        # Older schedule rows spell it "schema-only"
        return value.replace("-", "_") if isinstance(value, str) else value
