"""Build version lookup."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

DIST_NAME = "ios-backup-exporter"


def build_version() -> str:
    """Installed distribution version, or ``dev`` when running from a checkout."""
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return "dev"
