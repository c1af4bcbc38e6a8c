"""Core backup operation: one dump-compress-upload-verify cycle.

A run moves through DUMPING -> RESOLVING -> UPLOADING -> VERIFIED. Any
failure moves it to FAILED, is logged with the run's context and raised
again. There are no retries; the scheduler re-invokes the tool.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from .. import __util__
from ..config.schema import Config
from ..storage import RemoteStorage, choose_storage
from .destination import BackupDestination, compute_destination
from .dump import DumpResult, produce_dump
from .verify import VerifyResult, upload_and_verify

logger = logging.getLogger(__name__)


class RunState(Enum):
    """State of a backup run."""

    PENDING = "pending"
    DUMPING = "dumping"
    RESOLVING = "resolving"
    UPLOADING = "uploading"
    VERIFIED = "verified"
    FAILED = "failed"


class BackupRun:
    """A single backup run against one storage backend."""

    def __init__(
        self,
        config: Config,
        storage: RemoteStorage,
        now: Optional[datetime] = None,
    ) -> None:
        self.config = config
        self.storage = storage
        self.state = RunState.PENDING
        try:
            self.destination: BackupDestination = compute_destination(
                now,
                timezone=config.global_config.timezone,
                extension=config.global_config.extension,
            )
        except ValueError as e:
            logger.error("Invalid destination settings: %s", e)
            raise __util__.BackupError(f"Invalid destination settings: {e}") from e
        self.dump: Optional[DumpResult] = None
        self.result: Optional[VerifyResult] = None
        self.error: Optional[BaseException] = None

    def __repr__(self) -> str:
        return f"BackupRun({self.destination}, state={self.state.value})"

    def execute(self) -> VerifyResult:
        """Run the cycle once.

        Returns:
            VerifyResult of the stored backup

        Raises:
            BackupError: The failure, with its original kind preserved
        """
        try:
            return self._execute()
        except Exception as e:
            self._fail(e)
            if isinstance(e, __util__.BackupError):
                raise
            raise __util__.BackupError(f"Backup failed: {e}") from e

    def _execute(self) -> VerifyResult:
        glob = self.config.global_config

        self.state = RunState.DUMPING
        self.dump = produce_dump(
            self.config.database, temp_dir=glob.temp_dir, min_size=glob.min_dump_size
        )

        self.state = RunState.RESOLVING
        try:
            self.storage.prepare()
        except Exception as e:
            raise __util__.DirectoryResolutionFailed(
                f"Cannot prepare storage {self.storage!r}: {e}"
            ) from e
        self.result = upload_and_verify(
            self.storage,
            self.dump,
            self.destination,
            scope=self.config.storage.scope,
            propagation_delay=glob.propagation_delay,
            on_progress=self._on_progress,
        )
        self.state = RunState.VERIFIED
        logger.info("Backup stored and verified: %s", self.result.remote_path)
        return self.result

    def _on_progress(self, step: str) -> None:
        self.state = RunState.RESOLVING if step == "resolving" else RunState.UPLOADING

    def _fail(self, error: Exception) -> None:
        failed_in = self.state
        self.state = RunState.FAILED
        self.error = error
        logger.error(
            "Backup %s failed while %s: %s: %s",
            self.destination,
            failed_in.value,
            type(error).__name__,
            error,
        )
        if self.dump is not None and self.dump.local_file_path.exists():
            logger.error("Local dump kept for recovery: %s", self.dump.local_file_path)
        logger.debug("Failure details", exc_info=error)


def run_backup(
    config: Config,
    storage: Optional[RemoteStorage] = None,
    now: Optional[datetime] = None,
) -> VerifyResult:
    """Perform one verified backup as described by ``config``.

    Args:
        config: Loaded configuration
        storage: Backend to use, built from ``config.storage`` if None
        now: Time of the backup, current time if None

    Returns:
        VerifyResult of the stored backup

    Raises:
        BackupError: If any step failed
    """
    owned = storage is None
    if storage is None:
        try:
            storage = choose_storage(
                config.storage.target, config.storage.backend_options()
            )
        except ValueError as e:
            logger.error("Invalid storage target %s: %s", config.storage.target, e)
            raise __util__.BackupError(
                f"Invalid storage target {config.storage.target}: {e}"
            ) from e

    try:
        run = BackupRun(config, storage, now=now)
        logger.info(__util__.log_heading(f"Backup {run.destination}"))
        return run.execute()
    finally:
        if owned:
            storage.close()
