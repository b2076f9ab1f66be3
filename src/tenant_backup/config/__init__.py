"""Configuration package.

Usage:
    from tenant_backup.config import load_backup_config

    config = load_backup_config()
    print(config.engine.page_size)
"""

from tenant_backup.config.loader import default_config_path, load_backup_config
from tenant_backup.config.models import BackupConfig, BackupProfile, EngineSettings

__all__ = [
    "BackupConfig",
    "BackupProfile",
    "EngineSettings",
    "default_config_path",
    "load_backup_config",
]
