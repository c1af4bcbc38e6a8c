# pyright: standard

"""db-backup-ng: db_backup_ng/storage/__init__.py."""

import urllib.parse
from pathlib import Path

from ..__logger__ import logger

from .common import EntryKind, RemoteEntry, RemoteNotFound, RemoteStorage, latest_entry
from .gdrive import GoogleDriveStorage
from .local import LocalStorage
from .ssh import SSHStorage

__all__ = [
    "EntryKind",
    "RemoteEntry",
    "RemoteNotFound",
    "RemoteStorage",
    "GoogleDriveStorage",
    "LocalStorage",
    "SSHStorage",
    "choose_storage",
    "latest_entry",
]


def choose_storage(spec, options=None):
    """
    Chooses a suitable storage backend for the given target.

    Args:
        spec (str): The target (e.g., "ssh://user@host:/path", "gdrive://<folderId>" or "/mnt/backup").
        options (dict): Optional settings: ssh_port, ssh_key, ssh_opts, ssh_timeout,
            client_id, client_secret, refresh_token.

    Returns:
        RemoteStorage: An instance of the appropriate backend.

    Raises:
        ValueError: If no suitable backend can be determined for the given target.
    """
    options = options or {}

    if spec.startswith("ssh://"):
        parsed = urllib.parse.urlparse(spec)
        if not parsed.hostname:
            raise ValueError("No hostname for SSH specified.")

        logger.debug("Parsed SSH URL: %s", spec)
        storage = SSHStorage(
            parsed.hostname,
            parsed.path.strip() or "/",
            username=parsed.username,
            port=parsed.port or options.get("ssh_port"),
            identity_file=options.get("ssh_key"),
            ssh_opts=options.get("ssh_opts"),
            timeout=options.get("ssh_timeout", 60),
        )
    elif spec.startswith("gdrive://"):
        credentials = {
            key: options.get(key) for key in ("client_id", "client_secret", "refresh_token")
        }
        missing = [key for key, value in credentials.items() if not value]
        if missing:
            raise ValueError(f"Google Drive target needs {', '.join(missing)}")
        storage = GoogleDriveStorage(spec[len("gdrive://"):].strip("/"), **credentials)
    elif spec.startswith("file://"):
        storage = LocalStorage(Path(urllib.parse.urlparse(spec).path))
    elif "://" in spec:
        raise ValueError(f"No storage backend could be generated for this target: {spec}")
    else:
        storage = LocalStorage(Path(spec))

    logger.debug("Storage created: %r", storage)
    return storage
