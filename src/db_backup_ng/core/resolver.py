"""Resolve a logical directory name to the backend's directory id.

Cloud drives address folders by opaque ids, allow several folders with
the same name and do not always list a new folder right after creating
it. Resolution is therefore list, create if missing, wait once, list again.
"""

import logging
import time
from typing import Callable

from .. import __util__, join_remote_path
from ..storage.common import EntryKind, RemoteStorage, latest_entry

logger = logging.getLogger(__name__)

DEFAULT_PROPAGATION_DELAY = 1.0


def find_directory(storage: RemoteStorage, name: str, scope: str = "/") -> str | None:
    """Return the backend id of the newest directory called ``name`` in ``scope``."""
    entry = latest_entry(storage.list_contents(scope, False), name, EntryKind.DIRECTORY)
    return entry.backend_id if entry else None


def resolve_or_create_directory(
    storage: RemoteStorage,
    logical_directory: str,
    scope: str = "/",
    propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Return the backend id of ``logical_directory``, creating it if absent.

    Args:
        storage: Backend to look in
        logical_directory: Directory name, e.g. "2024-03"
        scope: Directory of the backend that holds the logical directories
        propagation_delay: Seconds to wait between creation and the re-list
        sleep: Sleep function

    Returns:
        Backend id of the directory

    Raises:
        DirectoryResolutionFailed: If the directory cannot be listed or
            created, or is still not listed after creation
    """
    target = join_remote_path(scope, logical_directory)
    try:
        backend_id = find_directory(storage, logical_directory, scope)
        if backend_id is not None:
            logger.debug("Found directory %s: %s", logical_directory, backend_id)
            return backend_id

        logger.info("Creating directory %s on %r", target, storage)
        storage.create_directory(target)
        if propagation_delay > 0:
            sleep(propagation_delay)
        backend_id = find_directory(storage, logical_directory, scope)
    except __util__.BackupError:
        raise
    except Exception as e:
        raise __util__.DirectoryResolutionFailed(
            f"Backup failed, error while resolving {target} on the backup drive: {e}"
        ) from e

    if backend_id is None:
        raise __util__.DirectoryResolutionFailed(
            f"Backup failed, was unable to find or create {target} on the backup drive"
        )
    logger.debug("Created directory %s: %s", logical_directory, backend_id)
    return backend_id

