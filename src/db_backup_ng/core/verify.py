"""Upload a dump and verify the stored copy before removing the local one.

The stored object's size is looked up independently of the upload call
and must equal the local file's size byte for byte. Only then is the local
file deleted; on any failure it stays in place for inspection or a manual
re-upload.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable

from .. import __util__, join_remote_path
from ..storage.common import EntryKind, RemoteNotFound, RemoteStorage, latest_entry
from .destination import BackupDestination
from .dump import DumpResult
from .resolver import DEFAULT_PROPAGATION_DELAY, resolve_or_create_directory

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Result of a verified upload."""

    remote_path: str
    local_size: int
    remote_size: int
    duration_seconds: float = 0.0
    details: dict = field(default_factory=dict)


def remote_size(storage: RemoteStorage, directory_id: str, filename: str) -> int:
    """Return the stored size of ``filename`` in directory ``directory_id``.

    Content-addressed backends are re-listed and the newest file with the
    name wins, hierarchical backends are asked by path.

    Raises:
        VerificationFailed: If no such object is stored
    """
    remote_path = join_remote_path(directory_id, filename)
    try:
        if storage.content_addressed:
            entry = latest_entry(
                storage.list_contents(directory_id, False), filename, EntryKind.FILE
            )
            if entry is None:
                raise RemoteNotFound(remote_path)
            return entry.size_bytes
        return storage.size_of(remote_path)
    except RemoteNotFound as e:
        raise __util__.VerificationFailed(
            f"Storing the backup file {remote_path} failed, "
            "the file is missing after upload"
        ) from e
    except Exception as e:
        raise __util__.VerificationFailed(
            f"Storing the backup file {remote_path} failed, size lookup failed: {e}"
        ) from e


def upload(storage: RemoteStorage, local_path, remote_path: str) -> None:
    """Stream ``local_path`` unchanged to ``remote_path``.

    Raises:
        UploadFailed: On any error while reading or writing
    """
    try:
        with open(local_path, "rb") as stream:
            storage.write_stream(remote_path, stream)
    except Exception as e:
        raise __util__.UploadFailed(f"Uploading {local_path} to {remote_path} failed: {e}") from e


def upload_and_verify(
    storage: RemoteStorage,
    dump: DumpResult,
    destination: BackupDestination,
    scope: str = "/",
    propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
    on_progress: Callable[[str], None] | None = None,
) -> VerifyResult:
    """Upload a dump to its destination and confirm the stored size.

    Args:
        storage: Backend to store the dump on
        dump: Local dump, deleted after a verified upload
        destination: Remote directory and filename
        scope: Directory of the backend that holds the logical directories
        propagation_delay: Pause before re-listing a newly created directory
        on_progress: Called with "resolving", "uploading" and "verifying"

    Returns:
        VerifyResult of the verified upload

    Raises:
        DirectoryResolutionFailed: If the remote directory is unavailable
        UploadFailed: If streaming the file failed
        VerificationFailed: If the stored object is missing or differs in size
    """
    start = time.monotonic()
    if on_progress:
        on_progress("resolving")
    directory_id = resolve_or_create_directory(
        storage, destination.logical_directory, scope, propagation_delay
    )
    remote_path = join_remote_path(directory_id, destination.filename)

    if on_progress:
        on_progress("uploading")
    logger.info(
        "Uploading %s to %r:%s (%s) ...",
        dump.local_file_path,
        storage,
        remote_path,
        __util__.human_size(dump.size_bytes),
    )
    upload(storage, dump.local_file_path, remote_path)

    if on_progress:
        on_progress("verifying")
    stored = remote_size(storage, directory_id, destination.filename)
    local = os.path.getsize(dump.local_file_path)
    if stored != local:
        raise __util__.VerificationFailed(
            f"Storing the backup file {remote_path} failed, "
            f"uploaded size is {stored} bytes expected {local} bytes"
        )

    result = VerifyResult(
        remote_path=remote_path,
        local_size=local,
        remote_size=stored,
        duration_seconds=time.monotonic() - start,
        details={"directory_id": directory_id, "storage": storage.get_id()},
    )
    logger.info("Verified %s: %d bytes stored", remote_path, stored)

    # Sole deletion point of the local dump
    os.unlink(dump.local_file_path)
    logger.debug("Removed local dump %s", dump.local_file_path)
    return result
