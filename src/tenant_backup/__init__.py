"""tenant-backup: Backup, restore and tenant export engine.

Takes whole-system JSON backups into blob storage, restores them with a
per-table conflict strategy, and exports or imports a single tenant's
hierarchical data, all driven by a declarative table catalog.

Usage:
    from tenant_backup import run_backup, run_restore, export_tenant
    from tenant_backup import DEFAULT_CATALOG, TableCatalog, TableDescriptor
    from tenant_backup import build_context, load_backup_config
"""

__version__ = "0.1.0"

# Adapters
from tenant_backup.adapters.base import AccessControl, BlobStorage, DatabaseClient
from tenant_backup.adapters.local import LocalBlobStorage
from tenant_backup.adapters.postgres import AsyncPostgresAdapter
from tenant_backup.adapters.supabase import AsyncSupabaseAdapter

# Catalog
from tenant_backup.catalog import DEFAULT_CATALOG, ForeignKey, TableCatalog, TableDescriptor

# Config
from tenant_backup.config.loader import load_backup_config
from tenant_backup.config.models import BackupConfig, BackupProfile, EngineSettings

# Errors
from tenant_backup.errors import (
    BackupEngineError,
    InvalidBackupError,
    InvalidStateError,
    NotFoundError,
    ProfileNotFoundError,
    StorageError,
    UnauthorizedError,
)

# Factory
from tenant_backup.factory import BackupContext, build_context, get_adapter, resolve_url

# Jobs
from tenant_backup.jobs import (
    ExportDocument,
    export_tenant,
    import_tenant,
    run_backup,
    run_due_schedules,
    run_restore,
    validate_backup_document,
)

# Ledger
from tenant_backup.ledger import BackupJob, Ledger, RestoreLog

__all__ = [
    # Adapters
    "AccessControl",
    "BlobStorage",
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    "LocalBlobStorage",
    # Catalog
    "DEFAULT_CATALOG",
    "ForeignKey",
    "TableCatalog",
    "TableDescriptor",
    # Config
    "load_backup_config",
    "BackupConfig",
    "BackupProfile",
    "EngineSettings",
    # Errors
    "BackupEngineError",
    "InvalidBackupError",
    "InvalidStateError",
    "NotFoundError",
    "ProfileNotFoundError",
    "StorageError",
    "UnauthorizedError",
    # Factory
    "BackupContext",
    "build_context",
    "get_adapter",
    "resolve_url",
    # Jobs
    "ExportDocument",
    "export_tenant",
    "import_tenant",
    "run_backup",
    "run_due_schedules",
    "run_restore",
    "validate_backup_document",
    # Ledger
    "BackupJob",
    "Ledger",
    "RestoreLog",
]
