"""db-backup-ng: db_backup_ng/__init__.py."""

__version__ = "0.3.0"


def join_remote_path(*parts: str) -> str:
    """Join remote path components with '/' and drop empty or slash-only parts"""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))
