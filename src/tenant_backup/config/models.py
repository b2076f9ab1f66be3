"""Pydantic models for backup.toml."""

from pydantic import BaseModel, Field


class BackupProfile(BaseModel):
    """Connection profile from backup.toml."""

    url: str
    key: str | None = None              # Supabase service role key
    description: str = ""
    db_password: str | None = None      # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "supabase"          # "supabase" or "postgres"
    storage_dir: str | None = None      # LocalBlobStorage root for postgres profiles


class EngineSettings(BaseModel):
    """Tunables shared by every job (``[engine]`` table)."""

    page_size: int = Field(default=1000, ge=1)
    batch_size: int = Field(default=100, ge=1)
    import_batch_size: int = Field(default=50, ge=1)
    export_concurrency: int = Field(default=8, ge=1)
    in_chunk_size: int = Field(default=200, ge=1)
    storage_bucket: str = "system-backups"
    backup_prefix: str = "backups"
    retention_count: int = Field(default=5, ge=1)


class BackupConfig(BaseModel):
    """Complete configuration from backup.toml."""

    profiles: dict[str, BackupProfile] = Field(default_factory=dict)
    default_profile: str | None = None
    engine: EngineSettings = Field(default_factory=EngineSettings)
