"""Pytest configuration and shared fixtures."""

import io
import logging
import random
from unittest import mock

import pytest

from db_backup_ng.config.schema import (
    Config,
    DatabaseConfig,
    GlobalConfig,
    StorageConfig,
)
from db_backup_ng.storage.common import (
    EntryKind,
    RemoteEntry,
    RemoteNotFound,
    RemoteStorage,
)


class FakeDriveStorage(RemoteStorage):
    """In-memory content-addressed backend, folders and files get opaque ids.

    Args:
        hidden_lists: Number of root listings a newly created folder stays
            invisible for, to mimic eventual consistency
        never_visible: Newly created folders never show up in listings
        reported_size: Size reported for every file instead of the real one
        fail_write: Raise ConnectionError from write_stream
    """

    content_addressed = True

    def __init__(
        self,
        hidden_lists=0,
        never_visible=False,
        reported_size=None,
        fail_write=False,
    ):
        self.folders = {}
        self.files = {}
        self.calls = []
        self.hidden_lists = hidden_lists
        self.never_visible = never_visible
        self.reported_size = reported_size
        self.fail_write = fail_write
        self._hidden = {}
        self._clock = 1_700_000_000
        self._next_id = 0

    def __repr__(self):
        return "fakedrive://"

    def _new_id(self, prefix):
        self._next_id += 1
        return f"{prefix}{self._next_id:04d}"

    def _tick(self):
        self._clock += 10
        return self._clock

    def add_folder(self, name, timestamp=None):
        folder_id = self._new_id("fld")
        self.folders[folder_id] = {"name": name, "timestamp": timestamp or self._tick()}
        return folder_id

    def add_file(self, folder_id, name, data, timestamp=None):
        file_id = self._new_id("obj")
        self.files[file_id] = {
            "name": name,
            "parent": folder_id,
            "data": data,
            "timestamp": timestamp or self._tick(),
        }
        return file_id

    def exists(self, path):
        self.calls.append(("exists", path))
        return any(f["name"] == path.strip("/") for f in self.folders.values())

    def create_directory(self, path):
        self.calls.append(("create_directory", path))
        folder_id = self.add_folder(path.strip("/").rsplit("/", 1)[-1])
        if self.never_visible:
            self._hidden[folder_id] = float("inf")
        elif self.hidden_lists:
            self._hidden[folder_id] = self.hidden_lists

    def list_contents(self, scope_path="/", recursive=False):
        self.calls.append(("list_contents", scope_path))
        scope = scope_path.strip("/")
        if not scope:
            entries = []
            for folder_id, folder in self.folders.items():
                if self._hidden.get(folder_id, 0) > 0:
                    self._hidden[folder_id] -= 1
                    continue
                entries.append(
                    RemoteEntry(
                        name=folder["name"],
                        kind=EntryKind.DIRECTORY,
                        backend_id=folder_id,
                        timestamp=folder["timestamp"],
                    )
                )
            return entries
        return [
            RemoteEntry(
                name=f["name"],
                kind=EntryKind.FILE,
                backend_id=file_id,
                size_bytes=self._size(f),
                timestamp=f["timestamp"],
            )
            for file_id, f in self.files.items()
            if f["parent"] == scope
        ]

    def write_stream(self, path, stream):
        self.calls.append(("write_stream", path))
        if self.fail_write:
            raise ConnectionError("connection reset by peer")
        folder_id, name = path.split("/", 1)
        if folder_id not in self.folders:
            raise RemoteNotFound(folder_id)
        self.add_file(folder_id, name, stream.read())

    def size_of(self, path):
        self.calls.append(("size_of", path))
        folder_id, name = path.split("/", 1)
        for f in self.files.values():
            if f["parent"] == folder_id and f["name"] == name:
                return self._size(f)
        raise RemoteNotFound(path)

    def _size(self, f):
        if self.reported_size is not None:
            return self.reported_size
        return len(f["data"])


class FakeProcess:
    """Stand-in for the Popen object of the dump process."""

    def __init__(self, stdout, returncode=0, stderr_data=b"", stderr_file=None):
        self.stdout = io.BytesIO(stdout)
        self.returncode = None
        self._returncode = returncode
        self.killed = False
        if stderr_file is not None and stderr_data:
            stderr_file.write(stderr_data)

    def wait(self):
        self.returncode = self._returncode
        return self.returncode

    def kill(self):
        self.killed = True


def random_dump(size, seed=0):
    """Dump-like output that does not compress, one SQL comment per line."""
    rng = random.Random(seed)
    lines = []
    total = 0
    while total < size:
        line = b"-- " + rng.randbytes(60).hex().encode() + b"\n"
        lines.append(line)
        total += len(line)
    return b"".join(lines)


@pytest.fixture(autouse=True)
def restore_logging():
    """create_logger replaces the root handlers, put them back afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_popen():
    """Patch the dump process; call the fixture to configure the fake output."""
    calls = []

    def configure(stdout=b"", returncode=0, stderr=b""):
        def popen(cmd, stdout=None, stderr=None, env=None):
            calls.append({"cmd": cmd, "env": env})
            return FakeProcess(stdout_data, returncode, stderr_data, stderr)

        stdout_data = stdout
        stderr_data = stderr
        patcher = mock.patch("db_backup_ng.core.dump.subprocess.Popen", side_effect=popen)
        patcher.start()
        return calls

    yield configure
    mock.patch.stopall()


@pytest.fixture
def dump_bytes():
    """Factory for incompressible dump output of at least the given size."""
    return random_dump


@pytest.fixture
def drive_factory():
    """Factory for content-addressed backends with custom behaviour."""
    return FakeDriveStorage


@pytest.fixture
def fake_drive():
    """A content-addressed backend without any folders."""
    return FakeDriveStorage()


@pytest.fixture
def db_config():
    """Database connection used in tests."""
    return DatabaseConfig(
        host="db.internal",
        port=3306,
        username="backup",
        password="s3cret",
        database="shop",
    )


@pytest.fixture
def config(db_config, tmp_path):
    """Configuration writing dumps into a temp directory, no propagation pause."""
    temp_dir = tmp_path / "dumps"
    temp_dir.mkdir()
    return Config(
        database=db_config,
        storage=StorageConfig(target=str(tmp_path / "remote")),
        global_config=GlobalConfig(
            timezone="UTC",
            temp_dir=str(temp_dir),
            propagation_delay=0,
        ),
    )


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
timezone = "Europe/Berlin"
extension = "db.sql"
temp_dir = "/var/tmp"
min_dump_size = 2048
propagation_delay = 2.5
log_file = "/var/log/db-backup-ng.log"

[database]
host = "10.0.0.5"
port = 3307
username = "backup"
password = "s3cret"
database = "shop"
dump_command = "mariadb-dump"
extra_args = ["--hex-blob"]

[storage]
target = "ssh://backup@nas:/backups/db"
scope = "/shop"
ssh_port = 2222
ssh_key = "~/.ssh/id_backup"
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[database]
host = "localhost"
username = "root"
password = "pw"
database = "app"

[storage]
target = "/mnt/backup"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
