"""Exception types raised by the backup, export, and restore jobs.

``UnauthorizedError``, ``NotFoundError`` and ``InvalidStateError`` are raised
before any job row is written.  ``StorageError`` is raised by blob storage
implementations and turned into a ``failed`` job by the callers.  Per-table
failures are never raised -- see ``tenant_backup.reader.TableError``.
"""


class BackupEngineError(Exception):
    """Base class for all engine errors."""

    pass


class UnauthorizedError(BackupEngineError):
    """Raised when the acting user may not run the requested job."""

    def __init__(self, actor_id: str, action: str, tenant_id: str | None = None) -> None:
        self.actor_id = actor_id
        self.action = action
        self.tenant_id = tenant_id
        target = f" on tenant '{tenant_id}'" if tenant_id else ""
        super().__init__(f"Actor '{actor_id}' is not allowed to {action}{target}")


class NotFoundError(BackupEngineError):
    """Raised when a referenced tenant or backup job does not exist."""

    pass


class InvalidStateError(BackupEngineError):
    """Raised when a record is not in a state that allows the operation."""

    pass


class StorageError(BackupEngineError):
    """Raised when a blob storage read, write, or delete fails."""

    pass


class InvalidBackupError(BackupEngineError):
    """Raised when a backup document cannot be parsed or is malformed."""

    pass


class ProfileNotFoundError(BackupEngineError):
    """Raised when no connection profile is configured."""

    pass
