"""Tests for CLI common utilities."""

import argparse

import pytest

from db_backup_ng.cli.common import (
    add_config_arg,
    add_verbosity_args,
    get_log_level,
)


class TestAddVerbosityArgs:
    """Tests for add_verbosity_args function."""

    @pytest.mark.parametrize(
        "flag, attr",
        [
            ("--verbose", "verbose"),
            ("-v", "verbose"),
            ("--quiet", "quiet"),
            ("-q", "quiet"),
            ("--debug", "debug"),
        ],
    )
    def test_flags(self, flag, attr):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([flag])
        assert getattr(args, attr) is True

    def test_defaults_are_false(self):
        """Test that defaults are False."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([])
        assert args.verbose is False
        assert args.quiet is False
        assert args.debug is False


class TestAddConfigArg:
    """Tests for add_config_arg function."""

    def test_default_none(self):
        parser = argparse.ArgumentParser()
        add_config_arg(parser)
        assert parser.parse_args([]).config is None

    def test_long_option(self):
        parser = argparse.ArgumentParser()
        add_config_arg(parser)
        assert parser.parse_args(["--config", "x.toml"]).config == "x.toml"


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_default_info(self):
        args = argparse.Namespace(verbose=False, quiet=False, debug=False)
        assert get_log_level(args) == "INFO"

    def test_debug(self):
        args = argparse.Namespace(verbose=False, quiet=True, debug=True)
        assert get_log_level(args) == "DEBUG"

    def test_quiet(self):
        args = argparse.Namespace(verbose=True, quiet=True, debug=False)
        assert get_log_level(args) == "WARNING"

    def test_verbose(self):
        args = argparse.Namespace(verbose=True, quiet=False, debug=False)
        assert get_log_level(args) == "DEBUG"

    def test_missing_attributes(self):
        """Test that a bare namespace falls back to INFO."""
        assert get_log_level(argparse.Namespace()) == "INFO"

    def test_config_defaults(self):
        """Test that configured verbosity applies without flags."""
        args = argparse.Namespace()
        assert get_log_level(args, config_verbose=True) == "DEBUG"
        assert get_log_level(args, config_quiet=True) == "WARNING"

    def test_flags_override_config(self):
        """Test that command line flags win over configured verbosity."""
        args = argparse.Namespace(quiet=True)
        assert get_log_level(args, config_verbose=True) == "WARNING"
