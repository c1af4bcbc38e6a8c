"""Shared CLI utilities and argument parsers."""

import argparse


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_config_arg(parser: argparse.ArgumentParser) -> None:
    """Add the configuration file option to a parser."""
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )


def get_log_level(args: argparse.Namespace, config_verbose: bool = False, config_quiet: bool = False) -> str:
    """Determine log level from parsed arguments.

    Command line flags take precedence over the configured defaults.

    Args:
        args: Parsed command line arguments
        config_verbose: ``verbose`` setting from the configuration file
        config_quiet: ``quiet`` setting from the configuration file

    Returns:
        Log level string (DEBUG, INFO, WARNING)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    elif config_quiet:
        return "WARNING"
    elif config_verbose:
        return "DEBUG"
    else:
        return "INFO"
