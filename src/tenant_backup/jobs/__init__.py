"""Backup, export, restore, import and scheduling jobs.

Usage:
    from tenant_backup.jobs import run_backup, run_restore, export_tenant
"""

from tenant_backup.jobs.backup import run_backup
from tenant_backup.jobs.export import ExportDocument, export_tenant
from tenant_backup.jobs.importer import ImportResult, import_tenant
from tenant_backup.jobs.restore import run_restore
from tenant_backup.jobs.schedules import (
    ScheduleRun,
    compute_next_run,
    delete_backup,
    rotate_backups,
    run_due_schedules,
)
from tenant_backup.jobs.validate import (
    ValidationReport,
    load_backup_document,
    validate_backup_document,
)

__all__ = [
    "ExportDocument",
    "ImportResult",
    "ScheduleRun",
    "ValidationReport",
    "compute_next_run",
    "delete_backup",
    "export_tenant",
    "import_tenant",
    "load_backup_document",
    "rotate_backups",
    "run_backup",
    "run_due_schedules",
    "run_restore",
    "validate_backup_document",
]
