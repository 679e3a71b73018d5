"""Application filter — which app's files are counted and exported."""

from __future__ import annotations

from typing import Iterable

from ibexporter.models.backup_source import Record

DOMAIN_PREFIX = "AppDomain-"
DEFAULT_APP_ID = "com.tencent.xin"


def app_domain(app_id: str) -> str:
    """Backup domain holding the sandbox of *app_id*."""
    return DOMAIN_PREFIX + app_id


def select_records(records: Iterable[Record], app_id: str) -> list[Record]:
    """Records whose domain is exactly the app's domain."""
    domain = app_domain(app_id)
    return [rec for rec in records if rec.domain == domain]


def compute_stats(records: Iterable[Record], app_id: str) -> tuple[int, int]:
    """Return ``(file_count, total_bytes)`` for the app's records."""
    selected = select_records(records, app_id)
    return len(selected), sum(rec.length for rec in selected)


class AppFilter:
    """
    The selected application's bundle identifier.

    Shared by reference; any thread may read it, but it is only written by
    commands running on the update-queue consumer.
    """

    def __init__(self, app_id: str = DEFAULT_APP_ID) -> None:
        self._app_id = app_id

    @property
    def app_id(self) -> str:
        return self._app_id

    @property
    def domain(self) -> str:
        return app_domain(self._app_id)

    def set(self, app_id: str) -> bool:
        """Change the filter.  Returns False for a blank or unchanged value."""
        app_id = app_id.strip()
        if not app_id or app_id == self._app_id:
            return False
        self._app_id = app_id
        return True
