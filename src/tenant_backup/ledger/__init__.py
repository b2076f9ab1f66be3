"""Job records and audit logs.

Usage:
    from tenant_backup.ledger import Ledger, BackupJob, RestoreLog
"""

from tenant_backup.ledger.models import (
    BACKUP_TYPES,
    CONFLICT_STRATEGIES,
    IMPORT_MODES,
    SYSTEM_USER_ID,
    BackupFile,
    BackupJob,
    BackupSchedule,
    ExportLog,
    ImportLog,
    RestoreLog,
)
from tenant_backup.ledger.store import Ledger

__all__ = [
    "BACKUP_TYPES",
    "CONFLICT_STRATEGIES",
    "IMPORT_MODES",
    "SYSTEM_USER_ID",
    "BackupFile",
    "BackupJob",
    "BackupSchedule",
    "ExportLog",
    "ImportLog",
    "Ledger",
    "RestoreLog",
]
