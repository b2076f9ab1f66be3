"""Configuration loading from backup.toml."""

import os
import tomllib
from pathlib import Path

from tenant_backup.config.models import BackupConfig, BackupProfile, EngineSettings

DEFAULT_CONFIG_FILE = "backup.toml"
CONFIG_ENV_VAR = "BACKUP_CONFIG"


def default_config_path() -> Path:
    """Path from the ``BACKUP_CONFIG`` env var, else ``./backup.toml``."""
    return Path(os.environ.get(CONFIG_ENV_VAR) or Path.cwd() / DEFAULT_CONFIG_FILE)


def load_backup_config(config_path: Path | None = None) -> BackupConfig:
    """Load backup configuration from TOML file.

    Args:
        config_path: Path to backup.toml (default: ``default_config_path()``)

    Returns:
        BackupConfig with all profiles and engine settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Backup config not found: {config_path}\n"
            f"Copy backup.toml.example to backup.toml and configure your profiles."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = BackupProfile(**profile_data)

    return BackupConfig(
        profiles=profiles,
        default_profile=data.get("default_profile"),
        engine=EngineSettings(**data.get("engine", {})),
    )
