"""Collaborator adapters package.

Provides the ``DatabaseClient``, ``BlobStorage`` and ``AccessControl``
protocols and their concrete async implementations.

Usage:
    from tenant_backup.adapters import AsyncSupabaseAdapter, SupabaseBlobStorage

    adapter = AsyncSupabaseAdapter(url, service_key)
    storage = SupabaseBlobStorage(adapter, bucket="system-backups")
"""

from tenant_backup.adapters.base import AccessControl, BlobStorage, DatabaseClient
from tenant_backup.adapters.local import LocalBlobStorage
from tenant_backup.adapters.postgres import AsyncPostgresAdapter
from tenant_backup.adapters.supabase import (
    AsyncSupabaseAdapter,
    SupabaseAccessControl,
    SupabaseBlobStorage,
)

__all__ = [
    "AccessControl",
    "BlobStorage",
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    "LocalBlobStorage",
    "SupabaseAccessControl",
    "SupabaseBlobStorage",
]
