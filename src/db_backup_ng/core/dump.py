"""Database dump: export, rewrite and compress into a local temporary file.

The export runs as an external process (mysqldump or a compatible tool).
Its output is rewritten line by line so the artifact can be loaded into a
database with a different name or owner, then gzip-compressed on the fly.
"""

import gzip
import logging
import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .. import __util__
from ..config.schema import MIN_DUMP_SIZE, DatabaseConfig

logger = logging.getLogger(__name__)

# View definitions: /*!50013 DEFINER=`user`@`%` SQL SECURITY DEFINER */ -> /*!50013 */
_DEFINER_COMMENT = re.compile(rb"DEFINER[ ]*=[ ]*[^*]*\*")
_DEFINER_PROCEDURE = re.compile(rb"DEFINER[ ]*=[ ]*[^*]*PROCEDURE")
_DEFINER_FUNCTION = re.compile(rb"DEFINER[ ]*=[ ]*[^*]*FUNCTION")

STDERR_TAIL = 2000


@dataclass
class DumpResult:
    """A compressed dump waiting to be uploaded.

    Attributes:
        local_file_path: Temporary file holding the gzip-compressed dump
        size_bytes: Size of that file
    """

    local_file_path: Path
    size_bytes: int


def build_dump_command(db: DatabaseConfig) -> list[str]:
    """Build the export command for a database connection.

    The password is not part of the command, see ``dump_environment``.
    """
    cmd = [
        db.dump_command,
        "--no-tablespaces",
        "--single-transaction",
        "--routines",
        "--triggers",
        "-P",
        str(db.port),
        "-h",
        db.host,
        "-u",
        db.username,
    ]
    cmd.extend(db.extra_args)
    cmd.append(db.database)
    return cmd


def dump_environment(db: DatabaseConfig) -> dict[str, str]:
    """Environment for the dump process, carrying the password."""
    env = os.environ.copy()
    if db.password:
        env["MYSQL_PWD"] = db.password
    return env


def rewrite_line(line: bytes, database: str) -> bytes:
    """Strip DEFINER clauses and `database`. qualifiers from one dump line."""
    line = _DEFINER_COMMENT.sub(b"*", line)
    line = _DEFINER_PROCEDURE.sub(b"PROCEDURE", line)
    line = _DEFINER_FUNCTION.sub(b"FUNCTION", line)
    return line.replace(b"`" + database.encode() + b"`.", b"")


def _stream_dump(cmd: list[str], env: dict[str, str], out: BinaryIO, database: str) -> None:
    """Run the dump process and write its rewritten output to ``out``."""
    with tempfile.TemporaryFile() as stderr:
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=stderr, env=env)
        except OSError as e:
            raise __util__.DumpFailed(f"Cannot start {cmd[0]}: {e}") from e

        try:
            with proc.stdout:
                for line in proc.stdout:
                    out.write(rewrite_line(line, database))
        except BaseException:
            proc.kill()
            proc.wait()
            raise
        returncode = proc.wait()

        if returncode != 0:
            stderr.seek(0)
            message = stderr.read()[-STDERR_TAIL:].decode(errors="replace").strip()
            raise __util__.DumpFailed(
                f"{cmd[0]} exited with code {returncode}: {message or 'no error output'}"
            )


def produce_dump(
    db: DatabaseConfig,
    temp_dir: str | Path | None = None,
    min_size: int = MIN_DUMP_SIZE,
) -> DumpResult:
    """Dump the database into a new gzip-compressed temporary file.

    Args:
        db: Connection of the database to dump
        temp_dir: Directory for the temporary file (None for system default)
        min_size: Smallest compressed size accepted as a complete dump

    Returns:
        DumpResult; deleting the file is the caller's responsibility

    Raises:
        DumpFailed: If the process cannot start, exits non-zero, or the
            result is smaller than ``min_size``
    """
    cmd = build_dump_command(db)
    logger.info("Dumping database %s from %s:%s ...", db.database, db.host, db.port)
    logger.debug("Dump command: %s", cmd)

    fd, name = tempfile.mkstemp(prefix="backup", dir=temp_dir)
    dest = Path(name)
    try:
        with os.fdopen(fd, "wb") as raw, gzip.GzipFile(fileobj=raw, mode="wb") as gz:
            _stream_dump(cmd, dump_environment(db), gz, db.database)

        size = dest.stat().st_size
        if size < min_size:
            raise __util__.DumpFailed(
                f"Backup failed, the resulting file was {size} bytes, "
                f"expected at least {min_size}"
            )
    except OSError as e:
        dest.unlink(missing_ok=True)
        raise __util__.DumpFailed(f"Writing dump to {dest} failed: {e}") from e
    except BaseException:
        # A failed dump is not a backup, nothing to recover
        dest.unlink(missing_ok=True)
        raise

    logger.info("Dump written to %s (%s)", dest, __util__.human_size(size))
    return DumpResult(local_file_path=dest, size_bytes=size)
