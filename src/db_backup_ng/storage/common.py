# pyright: standard

"""db-backup-ng: db_backup_ng/storage/common.py
Common functionality among storage backends.
"""

import abc
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Iterable, Optional

from db_backup_ng.__logger__ import logger


class EntryKind(Enum):
    """Kind of a listed remote entry."""

    DIRECTORY = "dir"
    FILE = "file"


@dataclass
class RemoteEntry:
    """One item returned by listing a storage backend.

    Attributes:
        name: Display name of the entry (no directory part)
        kind: Directory or file
        backend_id: Opaque handle in content-addressed backends, the path
            relative to the storage root in hierarchical ones
        size_bytes: Stored size, 0 for directories
        timestamp: Last modification time in epoch seconds
    """

    name: str
    kind: EntryKind
    backend_id: str
    size_bytes: int = 0
    timestamp: int = 0


class RemoteNotFound(Exception):
    """No object exists at the requested remote path."""


def latest_entry(
    entries: Iterable[RemoteEntry], name: str, kind: EntryKind
) -> Optional[RemoteEntry]:
    """Return the newest entry with the given name and kind, or None.

    Retried or overlapping runs can leave several entries with the same name
    behind, the one with the greatest timestamp wins.
    """
    matches = [e for e in entries if e.kind is kind and e.name == name]
    if not matches:
        return None
    return max(matches, key=lambda e: e.timestamp)


class RemoteStorage(abc.ABC):
    """Generic structure of a remote storage backend.

    Backends addressed by opaque folder identifiers rather than paths set
    ``content_addressed`` to True. Callers then pass ``<backend_id>/<name>``
    to ``write_stream`` and look up stored sizes by listing the folder.
    """

    content_addressed = False

    def prepare(self) -> None:
        """Public access to _prepare, which is called after creating a backend."""
        logger.info("Preparing storage %r ...", self)
        self._prepare()

    def _prepare(self) -> None:
        """Called after backend creation for additional checks."""

    def close(self) -> None:
        """Release connections held by the backend."""

    def get_id(self) -> str:
        """Return an id string to identify this backend over multiple runs."""
        return f"unknown://{self!r}"

    @abc.abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if a file or directory exists at ``path``."""

    @abc.abstractmethod
    def create_directory(self, path: str) -> None:
        """Create the directory ``path``."""

    @abc.abstractmethod
    def list_contents(
        self, scope_path: str = "/", recursive: bool = False
    ) -> list[RemoteEntry]:
        """List the entries below ``scope_path``."""

    @abc.abstractmethod
    def write_stream(self, path: str, stream: BinaryIO) -> None:
        """Store the bytes read from ``stream`` unchanged at ``path``."""

    @abc.abstractmethod
    def size_of(self, path: str) -> int:
        """Return the stored size of ``path``.

        Raises:
            RemoteNotFound: If nothing is stored at ``path``
        """
