"""Tests for config command functionality."""

import argparse

import pytest

from db_backup_ng.cli.config_cmd import _init_config, execute_config
from db_backup_ng.cli.dispatcher import main
from db_backup_ng.config import loader


class TestInitConfig:
    """Tests for _init_config function."""

    def test_prints_to_stdout(self, capsys):
        result = _init_config(argparse.Namespace(output=None))

        assert result == 0
        out = capsys.readouterr().out
        assert "[database]" in out
        assert "[storage]" in out

    def test_writes_file(self, tmp_path, capsys):
        output = tmp_path / "config.toml"

        result = _init_config(argparse.Namespace(output=str(output)))

        assert result == 0
        assert "[database]" in output.read_text()
        assert str(output) in capsys.readouterr().out

    def test_write_error(self, tmp_path, capsys):
        output = tmp_path / "missing" / "config.toml"

        result = _init_config(argparse.Namespace(output=str(output)))

        assert result == 1
        assert "Error writing file" in capsys.readouterr().out


class TestExecuteConfig:
    """Tests for the config command."""

    def test_no_action(self, capsys):
        result = execute_config(argparse.Namespace(config_action=None))

        assert result == 1
        assert "Usage" in capsys.readouterr().out

    def test_validate(self, config_file, capsys):
        result = main(["-c", str(config_file), "config", "validate"])

        assert result == 0
        out = capsys.readouterr().out
        assert "Configuration is valid." in out
        assert "Database: shop@10.0.0.5" in out
        assert "Timezone: Europe/Berlin" in out

    def test_validate_shows_warnings(self, tmp_path, minimal_config_toml, capsys):
        path = tmp_path / "config.toml"
        path.write_text(minimal_config_toml.replace('password = "pw"', ""))

        result = main(["-c", str(path), "config", "validate"])

        assert result == 0
        assert "No database password configured" in capsys.readouterr().out

    def test_validate_invalid(self, tmp_path, capsys):
        path = tmp_path / "config.toml"
        path.write_text("[database]\n")

        result = main(["-c", str(path), "config", "validate"])

        assert result == 1
        assert "Configuration error" in capsys.readouterr().out

    def test_validate_without_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(loader, "CONFIG_PATHS", [tmp_path / "missing.toml"])

        result = main(["config", "validate"])

        assert result == 1
        assert "No configuration file found." in capsys.readouterr().out

    def test_init_via_dispatcher(self, tmp_path):
        output = tmp_path / "new.toml"

        assert main(["config", "init", "-o", str(output)]) == 0
        assert output.exists()


class TestDispatcher:
    """Tests for argument routing."""

    def test_version(self, capsys):
        from db_backup_ng import __version__

        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == f"db-backup-ng {__version__}"

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            main(["restore"])
