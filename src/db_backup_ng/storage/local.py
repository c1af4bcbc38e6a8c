# pyright: standard

"""db-backup-ng: db_backup_ng/storage/local.py
Store backups below a local (or mounted) directory.
"""

import os
import shutil
import uuid
from pathlib import Path
from stat import S_ISDIR
from typing import BinaryIO

from db_backup_ng.__logger__ import logger

from .common import EntryKind, RemoteEntry, RemoteNotFound, RemoteStorage

COPY_BUFFER_SIZE = 1024 * 1024


class LocalStorage(RemoteStorage):
    """Hierarchical storage on the local filesystem.

    The backend id of an entry is its path relative to the storage root.
    """

    def __init__(self, root) -> None:
        """
        Initialize the LocalStorage with a root directory.

        Args:
            root (str | Path): Directory all remote paths are relative to.
        """
        self.root = Path(root).expanduser().resolve()

    def __repr__(self) -> str:
        return f"{self.root}"

    def get_id(self) -> str:
        """Return an id string to identify this backend over multiple runs."""
        return f"file://{self.root}"

    def _prepare(self) -> None:
        """Create the storage root if needed."""
        if not self.root.is_dir():
            logger.info("Creating directory: %s", self.root)
            self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path.lstrip("/")).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return resolved

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def create_directory(self, path: str) -> None:
        target = self._resolve(path)
        logger.debug("Creating directory: %s", target)
        target.mkdir(parents=True, exist_ok=True)

    def list_contents(
        self, scope_path: str = "/", recursive: bool = False
    ) -> list[RemoteEntry]:
        scope = self._resolve(scope_path)
        if not scope.is_dir():
            return []
        items = scope.rglob("*") if recursive else scope.iterdir()
        entries = []
        for item in items:
            # in-flight uploads
            if item.name.startswith(".") and item.name.endswith(".part"):
                continue
            try:
                stat = item.stat()
            except FileNotFoundError:
                # dangling symlink or removed while listing
                logger.debug("Skipping unreadable entry: %s", item)
                continue
            is_dir = S_ISDIR(stat.st_mode)
            entries.append(
                RemoteEntry(
                    name=item.name,
                    kind=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
                    backend_id=item.relative_to(self.root).as_posix(),
                    size_bytes=0 if is_dir else stat.st_size,
                    timestamp=int(stat.st_mtime),
                )
            )
        return entries

    def write_stream(self, path: str, stream: BinaryIO) -> None:
        target = self._resolve(path)
        partial = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.part")
        logger.debug("Writing %s via %s", target, partial.name)
        try:
            with open(partial, "wb") as f:
                shutil.copyfileobj(stream, f, COPY_BUFFER_SIZE)
                f.flush()
                os.fsync(f.fileno())
            os.replace(partial, target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

    def size_of(self, path: str) -> int:
        target = self._resolve(path)
        if not target.is_file():
            raise RemoteNotFound(path)
        return target.stat().st_size
