"""Configuration system for db-backup-ng.

This module provides TOML-based configuration loading, validation,
and schema definitions for unattended database backups.
"""

from .loader import ConfigError, find_config_file, load_config
from .schema import (
    Config,
    DatabaseConfig,
    GlobalConfig,
    StorageConfig,
)

__all__ = [
    "GlobalConfig",
    "DatabaseConfig",
    "StorageConfig",
    "Config",
    "load_config",
    "find_config_file",
    "ConfigError",
]
