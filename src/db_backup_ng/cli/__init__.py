"""Command line interface for db-backup-ng."""
