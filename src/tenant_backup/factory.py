"""Collaborator factory.

Builds the data store adapter, blob storage, access control and ledger for
the active profile in backup.toml.

Profile resolution:
1. ``{env_prefix}BACKUP_PROFILE`` env var
2. ``default_profile`` in backup.toml
3. ``ProfileNotFoundError``

Usage:
    from tenant_backup.factory import build_context

    context = build_context()
    try:
        job = await run_backup(context.adapter, context.storage, context.ledger)
    finally:
        await context.close()
"""

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from tenant_backup.adapters.base import AccessControl, BlobStorage, DatabaseClient
from tenant_backup.adapters.local import LocalBlobStorage
from tenant_backup.adapters.postgres import AsyncPostgresAdapter
from tenant_backup.adapters.supabase import (
    AsyncSupabaseAdapter,
    SupabaseAccessControl,
    SupabaseBlobStorage,
)
from tenant_backup.catalog import DEFAULT_CATALOG, TableCatalog
from tenant_backup.config.loader import load_backup_config
from tenant_backup.config.models import BackupConfig, BackupProfile, EngineSettings
from tenant_backup.errors import ProfileNotFoundError
from tenant_backup.ledger import Ledger

DEFAULT_STORAGE_DIR = "backup-storage"


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(config: BackupConfig, env_prefix: str = "") -> str:
    """Get active profile name from env var or config default.

    Args:
        config: Loaded configuration.
        env_prefix: Prefix for the env var (``APP_`` reads ``APP_BACKUP_PROFILE``).

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}BACKUP_PROFILE")
    if env_profile:
        return env_profile

    if config.default_profile:
        return config.default_profile

    available = ", ".join(config.profiles) or "(none)"
    raise ProfileNotFoundError(
        "No backup profile configured.\n"
        f"Set {env_prefix}BACKUP_PROFILE=<name> or default_profile in backup.toml.\n"
        f"Available profiles: {available}"
    )


def get_active_profile(
    config: BackupConfig, env_prefix: str = ""
) -> tuple[str, BackupProfile]:
    """Get active profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile is configured or the name is unknown
    """
    profile_name = get_active_profile_name(config, env_prefix)
    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in backup.toml.\n"
            f"Available profiles: {', '.join(config.profiles)}"
        )
    return profile_name, config.profiles[profile_name]


def resolve_url(profile: BackupProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Connection profile from config

    Returns:
        Connection URL with ``[YOUR-PASSWORD]`` replaced by the URL-quoted
        ``db_password``
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Collaborators
# ============================================================================


def get_adapter(profile: BackupProfile) -> DatabaseClient:
    """Create the data store adapter for ``profile``.

    Raises:
        ValueError: If the provider is unknown or a Supabase profile has no key.
    """
    if profile.provider == "supabase":
        if not profile.key:
            raise ValueError("Supabase profiles need a service role 'key'")
        return AsyncSupabaseAdapter(url=profile.url, key=profile.key)
    if profile.provider == "postgres":
        return AsyncPostgresAdapter(resolve_url(profile))
    raise ValueError(f"Unknown provider '{profile.provider}' (expected supabase or postgres)")


def get_storage(
    profile: BackupProfile, adapter: DatabaseClient, settings: EngineSettings
) -> BlobStorage:
    """Supabase Storage for Supabase profiles, a local directory otherwise."""
    if isinstance(adapter, AsyncSupabaseAdapter) and not profile.storage_dir:
        return SupabaseBlobStorage(adapter, bucket=settings.storage_bucket)
    return LocalBlobStorage(profile.storage_dir or DEFAULT_STORAGE_DIR)


def get_access_control(adapter: DatabaseClient) -> AccessControl | None:
    """Admin check for Supabase profiles.

    Direct database profiles have no user model; whoever holds the
    connection string is trusted, so ``None`` is returned.
    """
    if isinstance(adapter, AsyncSupabaseAdapter):
        return SupabaseAccessControl(adapter)
    return None


@dataclass
class BackupContext:
    """Everything a job needs, built from one profile."""

    profile_name: str
    adapter: DatabaseClient
    storage: BlobStorage
    ledger: Ledger
    access: AccessControl | None
    settings: EngineSettings
    catalog: TableCatalog = DEFAULT_CATALOG

    async def close(self) -> None:
        await self.adapter.close()


def build_context(
    config_path: Path | None = None,
    env_prefix: str = "",
    config: BackupConfig | None = None,
) -> BackupContext:
    """Load configuration and build the collaborators of the active profile.

    Args:
        config_path: Path to backup.toml (default: ``BACKUP_CONFIG`` or ./backup.toml).
        env_prefix: Prefix for the profile env var.
        config: Already loaded configuration; skips reading the file.

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ProfileNotFoundError: If no usable profile is configured
        ValueError: If the profile is invalid
    """
    config = config or load_backup_config(config_path)
    profile_name, profile = get_active_profile(config, env_prefix)
    adapter = get_adapter(profile)
    return BackupContext(
        profile_name=profile_name,
        adapter=adapter,
        storage=get_storage(profile, adapter, config.engine),
        ledger=Ledger(adapter),
        access=get_access_control(adapter),
        settings=config.engine,
    )
