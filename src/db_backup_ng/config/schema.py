"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional

MIN_DUMP_SIZE = 1024


@dataclass
class DatabaseConfig:
    """Database connection used by the dump process.

    Attributes:
        host: Database server host
        username: Database user
        database: Name of the database to dump
        port: Database server port
        password: Password, handed to the dump process via its environment
        dump_command: Dump executable (mysqldump, mariadb-dump)
        extra_args: Additional arguments appended to the dump command
    """

    host: str
    username: str
    database: str
    port: int = 3306
    password: str = ""
    dump_command: str = "mysqldump"
    extra_args: list[str] = field(default_factory=list)


@dataclass
class StorageConfig:
    """Remote storage target.

    Attributes:
        target: Target path (local path, file://, ssh://user@host:/path or
            gdrive://<folderId>)
        scope: Directory on the target that holds the monthly directories
        ssh_port: SSH port for remote targets
        ssh_key: Path to SSH private key
        ssh_opts: Extra ssh -o options
        client_id: OAuth client id of a Google Drive target
        client_secret: OAuth client secret of a Google Drive target
        refresh_token: OAuth refresh token of a Google Drive target
    """

    target: str
    scope: str = "/"
    ssh_port: Optional[int] = None
    ssh_key: Optional[str] = None
    ssh_opts: list[str] = field(default_factory=list)
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None

    def backend_options(self) -> dict:
        """Options understood by storage.choose_storage."""
        return {
            "ssh_port": self.ssh_port,
            "ssh_key": self.ssh_key,
            "ssh_opts": list(self.ssh_opts),
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
        }


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        timezone: IANA timezone the destination path is computed in
        extension: File extension of the dump, ".gz" is appended
        temp_dir: Directory for the local dump file (None for system default)
        min_dump_size: Smallest compressed dump accepted as a backup
        propagation_delay: Seconds to wait before re-listing a created directory
        log_file: Path to log file (None for no file logging)
        quiet: Suppress non-essential output
        verbose: Enable verbose output
    """

    timezone: str = "UTC"
    extension: str = "db.sql"
    temp_dir: Optional[str] = None
    min_dump_size: int = MIN_DUMP_SIZE
    propagation_delay: float = 1.0
    log_file: Optional[str] = None
    quiet: bool = False
    verbose: bool = False


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        database: Connection of the database to back up
        storage: Where backups are stored
        global_config: Global settings
    """

    database: DatabaseConfig
    storage: StorageConfig
    global_config: GlobalConfig = field(default_factory=GlobalConfig)
