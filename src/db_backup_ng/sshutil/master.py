"""db-backup-ng: multiplexed SSH master connection shared by storage commands."""

import getpass
import os
import pwd
import subprocess
import threading
from pathlib import Path
from typing import List, Optional

from db_backup_ng.__logger__ import logger


class SSHMasterManager:
    """Keep one ControlMaster connection open so each storage call is cheap."""

    def __init__(
        self,
        hostname: str,
        username: Optional[str] = None,
        port: Optional[int] = None,
        ssh_opts: Optional[List[str]] = None,
        control_dir: Optional[str] = None,
        persist: str = "60",
        identity_file: Optional[str] = None,
    ):
        self.hostname = hostname
        self.username = username or getpass.getuser()
        self.port = port
        self.ssh_opts = ssh_opts or []
        self.persist = persist
        self.identity_file = identity_file

        self.running_as_sudo = os.environ.get("SUDO_USER") is not None and os.geteuid() == 0
        self.sudo_user = os.environ.get("SUDO_USER")

        if self.running_as_sudo and self.sudo_user:
            self.ssh_config_dir = Path(pwd.getpwnam(self.sudo_user).pw_dir) / ".ssh"
        else:
            self.ssh_config_dir = Path.home() / ".ssh"

        if control_dir:
            self.control_dir = Path(control_dir)
        elif self.running_as_sudo:
            self.control_dir = Path(f"/tmp/ssh-controlmasters-{self.sudo_user}")
        else:
            self.control_dir = self.ssh_config_dir / "controlmasters"

        self._instance_id = f"{os.getpid()}_{threading.get_ident()}"
        self.control_path = (
            self.control_dir / f"cm_{self.username}_{self.hostname}_{self._instance_id}.sock"
        )
        self._lock = threading.Lock()
        self._master_started = False

    def _ssh_base_cmd(self) -> List[str]:
        cmd = ["ssh"]

        # Unattended runs never prompt
        opts = [
            f"ControlPath={self.control_path}",
            "ControlMaster=auto",
            f"ControlPersist={self.persist}",
            "ServerAliveInterval=5",
            "ServerAliveCountMax=6",
            "TCPKeepAlive=yes",
            "ConnectTimeout=30",
            "ConnectionAttempts=3",
            "StrictHostKeyChecking=accept-new",
            "BatchMode=yes",
        ]
        opts.extend(self.ssh_opts)

        for opt in opts:
            cmd.extend(["-o", opt])

        if self.port:
            cmd.extend(["-p", str(self.port)])

        if self.identity_file:
            cmd.extend(["-i", str(self.identity_file)])

        cmd.append(f"{self.username}@{self.hostname}")
        return cmd

    def start_master(self) -> bool:
        with self._lock:
            if self.is_master_alive():
                return True

            self.control_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            cmd = self._ssh_base_cmd()
            cmd.insert(1, "-MNf")

            env = os.environ.copy()
            if self.running_as_sudo and self.sudo_user:
                env["HOME"] = pwd.getpwnam(self.sudo_user).pw_dir
                env["USER"] = self.sudo_user

            try:
                subprocess.run(cmd, env=env, check=True)
            except (OSError, subprocess.CalledProcessError) as e:
                logger.error("Failed to start SSH master: %s", e)
                return False
            self._master_started = True
            return True

    def stop_master(self) -> bool:
        if not self._master_started:
            return True

        with self._lock:
            cmd = [
                "ssh", "-O", "exit", "-o", f"ControlPath={self.control_path}",
                f"{self.username}@{self.hostname}",
            ]
            try:
                subprocess.run(cmd, check=True, capture_output=True)
            except (OSError, subprocess.CalledProcessError) as e:
                logger.error("Failed to stop SSH master: %s", e)
                return False
            self._master_started = False
            return True

    def is_master_alive(self) -> bool:
        if not self.control_path.exists():
            return False

        cmd = [
            "ssh", "-O", "check", "-o", f"ControlPath={self.control_path}",
            f"{self.username}@{self.hostname}",
        ]
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except (OSError, subprocess.CalledProcessError):
            return False
        return True

    def get_ssh_base_cmd(self) -> List[str]:
        """Get the base SSH command with all necessary options.

        Returns:
            List[str]: The base SSH command as a list of strings
        """
        return self._ssh_base_cmd()
