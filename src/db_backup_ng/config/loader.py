"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .schema import (
    MIN_DUMP_SIZE,
    Config,
    DatabaseConfig,
    GlobalConfig,
    StorageConfig,
)


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "db-backup-ng" / "config.toml",
    Path("/etc/db-backup-ng/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _get(data: dict[str, Any], section: str, key: str, types, default=None):
    """Return data[key] if it has one of the expected types."""
    value = data.get(key, default)
    if value is None:
        return None
    expected = types if isinstance(types, tuple) else (types,)
    # bool is an int subclass
    if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
        raise ConfigError(f"[{section}] '{key}' has invalid type {type(value).__name__}")
    return value


def _require(data: dict[str, Any], section: str, key: str) -> str:
    value = _get(data, section, key, str)
    if not value:
        raise ConfigError(f"[{section}] missing required '{key}' field")
    return value


def _parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse database configuration from dict."""
    extra_args = _get(data, "database", "extra_args", list, [])
    if not all(isinstance(arg, str) for arg in extra_args):
        raise ConfigError("[database] 'extra_args' must be a list of strings")

    return DatabaseConfig(
        host=_require(data, "database", "host"),
        username=_require(data, "database", "username"),
        database=_require(data, "database", "database"),
        port=_get(data, "database", "port", int, 3306),
        password=_get(data, "database", "password", str, ""),
        dump_command=_get(data, "database", "dump_command", str, "mysqldump"),
        extra_args=list(extra_args),
    )


def _parse_storage(data: dict[str, Any]) -> StorageConfig:
    """Parse storage configuration from dict."""
    ssh_opts = _get(data, "storage", "ssh_opts", list, [])
    if not all(isinstance(opt, str) for opt in ssh_opts):
        raise ConfigError("[storage] 'ssh_opts' must be a list of strings")

    return StorageConfig(
        target=_require(data, "storage", "target"),
        scope=_get(data, "storage", "scope", str, "/"),
        ssh_port=_get(data, "storage", "ssh_port", int),
        ssh_key=_get(data, "storage", "ssh_key", str),
        ssh_opts=list(ssh_opts),
        client_id=_get(data, "storage", "client_id", str),
        client_secret=_get(data, "storage", "client_secret", str),
        refresh_token=_get(data, "storage", "refresh_token", str),
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    timezone = _get(data, "global", "timezone", str, "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"[global] unknown timezone: {timezone}")

    return GlobalConfig(
        timezone=timezone,
        extension=_get(data, "global", "extension", str, "db.sql"),
        temp_dir=_get(data, "global", "temp_dir", str),
        min_dump_size=_get(data, "global", "min_dump_size", int, MIN_DUMP_SIZE),
        propagation_delay=float(
            _get(data, "global", "propagation_delay", (int, float), 1.0)
        ),
        log_file=_get(data, "global", "log_file", str),
        quiet=_get(data, "global", "quiet", bool, False),
        verbose=_get(data, "global", "verbose", bool, False),
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if not config.database.password:
        warnings.append("No database password configured")

    if config.global_config.min_dump_size < MIN_DUMP_SIZE:
        warnings.append(
            f"min_dump_size {config.global_config.min_dump_size} is below "
            f"{MIN_DUMP_SIZE} bytes, truncated dumps may be accepted"
        )

    if config.global_config.propagation_delay < 0:
        warnings.append("Negative propagation_delay, no pause before re-listing")

    # Validate SSH URLs
    target = config.storage.target
    if target.startswith("ssh://") and "/" not in target[6:]:
        warnings.append(f"SSH target '{target}' has no path, using '/'")

    if target.startswith("gdrive://"):
        storage = config.storage
        for key in ("client_id", "client_secret", "refresh_token"):
            if not getattr(storage, key):
                warnings.append(f"Google Drive target '{target}' has no {key}")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    for section in ("database", "storage"):
        if not isinstance(data.get(section), dict):
            raise ConfigError(f"Missing required [{section}] section")

    config = Config(
        database=_parse_database(data["database"]),
        storage=_parse_storage(data["storage"]),
        global_config=_parse_global(data.get("global", {})),
    )

    # Validate and collect warnings
    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# db-backup-ng configuration
# See documentation for full options

[global]
timezone = "UTC"            # Timezone of the YYYY-MM/YYYY-MM-DD_HH-MM-SS path
extension = "db.sql"        # Backups are named <timestamp>.db.sql.gz
# temp_dir = "/var/tmp"     # Where the dump is written before upload
min_dump_size = 1024        # Smaller dumps are treated as failed
propagation_delay = 1.0     # Seconds to wait before re-checking a new directory
# log_file = "/var/log/db-backup-ng.log"

[database]
host = "127.0.0.1"
port = 3306
username = "backup"
password = "change-me"
database = "app"
# dump_command = "mariadb-dump"
# extra_args = ["--hex-blob"]

[storage]
target = "/mnt/backup/db"

# Example SSH target
# target = "ssh://backup@server:/backups/db"
# ssh_key = "~/.ssh/id_backup"

# Example Google Drive target, the folder id is the last part of the folder URL
# target = "gdrive://1AbCdEfGhIjKlMnOpQrStUvWxYz"
# client_id = "1234.apps.googleusercontent.com"
# client_secret = "change-me"
# refresh_token = "change-me"
"""
