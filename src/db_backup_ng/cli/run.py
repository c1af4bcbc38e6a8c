"""Run command: Perform one verified database backup."""

import argparse
import logging
import time

from .. import __util__
from ..__logger__ import create_logger
from ..config import Config, ConfigError, find_config_file, load_config
from ..core.destination import compute_destination
from ..core.operations import run_backup
from .common import get_log_level

logger = logging.getLogger(__name__)


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    # Initialize logger before the config is known, errors must be visible
    create_logger(level=get_log_level(args))

    # Find and load config
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Create one with: db-backup-ng config init")
            return 1

        config, warnings = load_config(config_path)

    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    glob = config.global_config
    create_logger(
        level=get_log_level(args, glob.verbose, glob.quiet),
        log_file=glob.log_file,
    )
    logger.info("Loaded configuration from: %s", config_path)
    for warning in warnings:
        logger.warning("Config: %s", warning)

    # Dry run mode
    if getattr(args, "dry_run", False):
        return _dry_run(config)

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
    try:
        result = run_backup(config)
    except __util__.BackupError as e:
        logger.info(__util__.log_heading(f"Failed at {time.ctime()}"))
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    logger.info(
        "Stored %s (%s) in %.1fs",
        result.remote_path,
        __util__.human_size(result.remote_size),
        result.duration_seconds,
    )
    return 0


def _dry_run(config: Config) -> int:
    """Show what would be done without making changes."""
    destination = compute_destination(
        timezone=config.global_config.timezone,
        extension=config.global_config.extension,
    )
    db = config.database

    print("Dry run mode - showing what would be done:")
    print("")
    print(f"Database: {db.database} on {db.host}:{db.port} as {db.username}")
    print(f"  Dump command: {db.dump_command}")
    print(f"Target: {config.storage.target}")
    print(f"  Scope: {config.storage.scope}")
    print(f"  Destination: {destination.path}")
    print(f"  Timezone: {config.global_config.timezone}")
    print("")

    return 0
