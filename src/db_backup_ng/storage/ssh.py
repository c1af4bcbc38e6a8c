# pyright: standard

"""db-backup-ng: db_backup_ng/storage/ssh.py
Store backups below a directory on a remote host reached over SSH.

All operations are plain POSIX commands (test, mkdir, find, cat, stat)
executed through one multiplexed master connection, so the remote side
needs nothing but a shell and GNU findutils.
"""

import shlex
import shutil
import subprocess
import uuid
from typing import BinaryIO, List, Optional

from db_backup_ng import join_remote_path
from db_backup_ng.__logger__ import logger
from db_backup_ng.sshutil.master import SSHMasterManager

from .common import EntryKind, RemoteEntry, RemoteNotFound, RemoteStorage

# ssh reserves this exit status for its own errors
SSH_TRANSPORT_ERROR = 255
COPY_BUFFER_SIZE = 1024 * 1024


class SSHStorage(RemoteStorage):
    """Hierarchical storage on a remote host.

    The backend id of an entry is its path relative to the storage root.
    """

    def __init__(
        self,
        hostname: str,
        path: str = "/",
        *,
        username: Optional[str] = None,
        port: Optional[int] = None,
        identity_file: Optional[str] = None,
        ssh_opts: Optional[List[str]] = None,
        timeout: int = 60,
    ) -> None:
        self.hostname = hostname
        self.root = "/" + path.strip("/") if path.strip("/") else "/"
        self.timeout = timeout
        self.ssh_manager = SSHMasterManager(
            hostname,
            username=username,
            port=port,
            ssh_opts=ssh_opts,
            identity_file=identity_file,
        )

    def __repr__(self) -> str:
        return f"ssh://{self.ssh_manager.username}@{self.hostname}:{self.root}"

    def get_id(self) -> str:
        """Return an id string to identify this backend over multiple runs."""
        return repr(self)

    def _prepare(self) -> None:
        if not self.ssh_manager.start_master():
            raise ConnectionError(f"Cannot connect to {self.hostname}")
        self._exec_remote_command(["mkdir", "-p", self.root], check=True)

    def close(self) -> None:
        self.ssh_manager.stop_master()

    def _remote_path(self, path: str) -> str:
        rel = join_remote_path(path)
        if ".." in rel.split("/"):
            raise ValueError(f"Path escapes storage root: {path}")
        if not rel:
            return self.root
        return f"{self.root.rstrip('/')}/{rel}"

    def _build_remote_command(self, command: List[str]) -> List[str]:
        return self.ssh_manager.get_ssh_base_cmd() + [
            "--",
            " ".join(shlex.quote(str(arg)) for arg in command),
        ]

    def _exec_remote_command(
        self, command: List[str], check: bool = False, **kwargs
    ) -> subprocess.CompletedProcess:
        """Execute a command on the remote host via SSH.

        Raises:
            ConnectionError: If ssh itself failed to reach the host
            OSError: If ``check`` is set and the remote command failed
        """
        ssh_cmd = self._build_remote_command(command)
        logger.debug("Complete SSH command: %s", ssh_cmd)
        kwargs.setdefault("timeout", self.timeout)
        result = subprocess.run(ssh_cmd, capture_output=True, text=True, **kwargs)

        if result.returncode == SSH_TRANSPORT_ERROR:
            raise ConnectionError(
                f"SSH to {self.hostname} failed: {result.stderr.strip()}"
            )
        if check and result.returncode != 0:
            raise OSError(
                f"Remote command {command[0]} failed with exit code "
                f"{result.returncode}: {result.stderr.strip()}"
            )
        return result

    def exists(self, path: str) -> bool:
        result = self._exec_remote_command(["test", "-e", self._remote_path(path)])
        return result.returncode == 0

    def create_directory(self, path: str) -> None:
        self._exec_remote_command(["mkdir", "-p", self._remote_path(path)], check=True)

    def list_contents(
        self, scope_path: str = "/", recursive: bool = False
    ) -> list[RemoteEntry]:
        scope = self._remote_path(scope_path)
        cmd = ["find", scope, "-mindepth", "1"]
        if not recursive:
            cmd += ["-maxdepth", "1"]
        cmd += ["-printf", r"%y\t%s\t%T@\t%P\n"]
        result = self._exec_remote_command(cmd)
        if result.returncode != 0:
            if self._exec_remote_command(["test", "-d", scope]).returncode != 0:
                logger.debug("Scope %s does not exist", scope)
                return []
            raise OSError(
                f"Listing {scope} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}"
            )

        scope_rel = join_remote_path(scope_path)
        entries = []
        for line in result.stdout.splitlines():
            try:
                kind, size, mtime, rel = line.split("\t", 3)
            except ValueError:
                logger.warning("Could not parse listing line: %r", line)
                continue
            name = rel.rsplit("/", 1)[-1]
            if kind not in ("d", "f") or (name.startswith(".") and name.endswith(".part")):
                continue
            is_dir = kind == "d"
            entries.append(
                RemoteEntry(
                    name=name,
                    kind=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
                    backend_id=join_remote_path(scope_rel, rel),
                    size_bytes=0 if is_dir else int(size),
                    timestamp=int(float(mtime)),
                )
            )
        return entries

    def write_stream(self, path: str, stream: BinaryIO) -> None:
        target = self._remote_path(path)
        directory, _, name = target.rpartition("/")
        partial = f"{directory}/.{name}.{uuid.uuid4().hex[:8]}.part"
        script = (
            f"cat > {shlex.quote(partial)} && mv -f {shlex.quote(partial)} "
            f"{shlex.quote(target)} || {{ rm -f {shlex.quote(partial)}; exit 1; }}"
        )
        ssh_cmd = self.ssh_manager.get_ssh_base_cmd() + ["--", script]
        logger.debug("Streaming to %s:%s", self.hostname, target)

        proc = subprocess.Popen(
            ssh_cmd, stdin=subprocess.PIPE, stderr=subprocess.PIPE
        )
        closed_early = False
        try:
            shutil.copyfileobj(stream, proc.stdin, COPY_BUFFER_SIZE)
        except BrokenPipeError:
            # remote side exited, its status and stderr tell why
            closed_early = True
        except BaseException:
            proc.kill()
            proc.communicate()
            raise
        _, stderr_data = proc.communicate()
        stderr = stderr_data.decode(errors="replace").strip()
        returncode = proc.returncode

        if returncode == SSH_TRANSPORT_ERROR:
            raise ConnectionError(f"SSH to {self.hostname} failed: {stderr}")
        if returncode != 0:
            raise OSError(f"Writing {target} failed with exit code {returncode}: {stderr}")
        if closed_early:
            raise OSError(f"Writing {target} failed, remote side closed the stream early")

    def size_of(self, path: str) -> int:
        result = self._exec_remote_command(["stat", "-c", "%s", self._remote_path(path)])
        if result.returncode != 0:
            raise RemoteNotFound(path)
        return int(result.stdout.strip())
