"""Remote naming of a backup: YYYY-MM/YYYY-MM-DD_HH-MM-SS.<ext>.gz."""

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DIRECTORY_FORMAT = "%Y-%m"
FILENAME_FORMAT = "%Y-%m-%d_%H-%M-%S"


@dataclass(frozen=True)
class BackupDestination:
    """Where one run stores its dump."""

    logical_directory: str
    filename: str

    @property
    def path(self) -> str:
        return f"{self.logical_directory}/{self.filename}"

    def __str__(self) -> str:
        return self.path


def compute_destination(
    now: datetime | None = None,
    timezone: str = "UTC",
    extension: str = "db.sql",
) -> BackupDestination:
    """Compute the destination of a backup taken at ``now``.

    Args:
        now: Time of the backup, current time if None. Naive values are
            taken as UTC.
        timezone: IANA timezone the names are rendered in
        extension: Dump extension, ".gz" is appended

    Raises:
        ValueError: If the timezone is unknown
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {timezone}") from e

    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    local = now.astimezone(tz)

    return BackupDestination(
        logical_directory=local.strftime(DIRECTORY_FORMAT),
        filename=f"{local.strftime(FILENAME_FORMAT)}.{extension.strip('.')}.gz",
    )
