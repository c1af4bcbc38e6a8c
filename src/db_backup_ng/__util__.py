# pyright: standard

"""db-backup-ng: db_backup_ng/__util__.py
Error taxonomy and small helpers shared by all modules.
"""


class BackupError(Exception):
    """A backup run failed. Every failure of a run is reported as this type."""


class DumpFailed(BackupError):
    """The database export failed or produced an undersized dump."""


class DirectoryResolutionFailed(BackupError):
    """The remote directory could not be found or created."""


# The upload pipeline reports resolution problems under this name.
ResolutionFailed = DirectoryResolutionFailed


class UploadFailed(BackupError):
    """Transport failure while streaming the dump to the backend."""


class VerificationFailed(BackupError):
    """The stored object is missing or its size differs from the local file."""


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"--[ {caption} ]" + "-" * max(0, 50 - len(caption))


def human_size(num_bytes: float) -> str:
    """Return a human readable size string, e.g. '1.5 MiB'."""
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if abs(num_bytes) < 1024 or unit == "TiB":
            if unit == "B":
                return f"{int(num_bytes)} B"
            return f"{num_bytes:.1f} {unit}"
        num_bytes /= 1024
    return f"{num_bytes:.1f} TiB"
