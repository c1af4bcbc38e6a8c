"""SSH connection helpers."""
