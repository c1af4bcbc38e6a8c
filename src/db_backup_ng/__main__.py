# pyright: standard

"""db-backup-ng: db_backup_ng/__main__.py

Back up a database to remote storage:
dump it, compress it, upload it and verify the stored size before the
local copy is removed. Meant to be started by cron or a systemd timer.
"""

import sys

from .cli.dispatcher import main as cli_main


def main() -> None:
    """Main function."""
    sys.exit(cli_main())


if __name__ == "__main__":
    main()
