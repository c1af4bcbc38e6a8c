"""Core backup operations for db-backup-ng.

One run dumps the database, resolves the remote directory, uploads the
dump and verifies the stored size before the local copy is removed.
"""

from .destination import BackupDestination, compute_destination
from .dump import DumpResult, produce_dump, rewrite_line
from .operations import BackupRun, RunState, run_backup
from .resolver import resolve_or_create_directory
from .verify import VerifyResult, upload_and_verify

__all__ = [
    "BackupDestination",
    "compute_destination",
    "DumpResult",
    "produce_dump",
    "rewrite_line",
    "BackupRun",
    "RunState",
    "run_backup",
    "resolve_or_create_directory",
    "VerifyResult",
    "upload_and_verify",
]
