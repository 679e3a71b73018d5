"""Orchestrator — discover backups at startup and publish them as one batch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from ibexporter.backup.base import BackupOpenError, EnumerationError
from ibexporter.core.app_filter import compute_stats
from ibexporter.models.backup_item import BackupItem

if TYPE_CHECKING:
    from ibexporter.backup.base import BackupHandle, BackupProvider
    from ibexporter.core.app_filter import AppFilter
    from ibexporter.core.dispatch import Dispatcher
    from ibexporter.core.update_queue import Command
    from ibexporter.models.backup_source import BackupSource


@dataclass
class BackupState:
    """Global, UI-relevant state of the backup list."""

    loading: bool = True
    error: BaseException | None = None
    items: list[BackupItem] = field(default_factory=list)


@dataclass(frozen=True)
class Discovery:
    """Outcome of opening (and, when unencrypted, loading) one source."""

    source: BackupSource
    handle: BackupHandle | None = None
    error: BaseException | None = None
    loaded: bool = False


def discover(provider: BackupProvider, source: BackupSource) -> Discovery:
    """Open *source*; load it right away unless it needs a password."""
    try:
        handle = provider.open(source)
    except Exception as e:
        logger.error(f"Failed to open backup {source.display_name}: {e}")
        return Discovery(source, error=e)

    if handle.is_encrypted:
        logger.info(f"{source.display_name} is encrypted, waiting for password")
        return Discovery(source, handle)

    try:
        handle.load()
    except Exception as e:
        logger.error(f"Failed to load backup {source.display_name}: {e}")
        return Discovery(source, handle, error=e)
    return Discovery(source, handle, loaded=True)


def build_item(discovery: Discovery, app_id: str) -> BackupItem:
    """Turn a discovery into a ``BackupItem``.  Consumer thread only."""
    item = BackupItem(source=discovery.source)
    if discovery.handle is None:
        item.fail_open(discovery.error or BackupOpenError("backup could not be opened"))
        return item

    item.attach(discovery.handle)
    if item.is_encrypted:
        return item

    item.start_loading()
    if discovery.loaded:
        item.finish_loading(*compute_stats(discovery.handle.records, app_id))
    else:
        item.fail_loading(discovery.error or RuntimeError("backup was not loaded"))
    return item


class Orchestrator:
    """
    Enumerates backups on a worker thread.

    Every source is opened and discovered before anything is published; the
    whole batch (or the single enumeration error) then arrives as one
    command, so the list goes from "loading" to "ready" in one step.
    """

    def __init__(
        self,
        provider: BackupProvider,
        dispatcher: Dispatcher,
        app_filter: AppFilter,
        state: BackupState | None = None,
    ) -> None:
        self._provider = provider
        self._dispatcher = dispatcher
        self._filter = app_filter
        self._state = state or BackupState()
        self._running = False

    @property
    def state(self) -> BackupState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """
        Begin (re-)enumeration.  Returns False while an enumeration, a load
        or an export is still running.
        """
        self._dispatcher.updates.bind_consumer()
        if self._running:
            return False
        if any(item.is_loading or item.is_exporting for item in self._state.items):
            return False
        self._running = True
        self._state.loading = True
        self._state.error = None
        self._dispatcher.submit("enumerate-backups", self._enumerate_all, self._published)
        return True

    def _enumerate_all(self) -> list[Discovery]:
        try:
            sources = self._provider.enumerate()
        except EnumerationError:
            raise
        except Exception as e:
            raise EnumerationError(str(e)) from e

        logger.info(f"Found {len(sources)} backup(s)")
        return [discover(self._provider, source) for source in sources]

    def _published(
        self, discoveries: list[Discovery] | None, error: BaseException | None
    ) -> Command:
        def apply() -> None:
            self._running = False
            self._state.loading = False
            if error is not None:
                self._state.error = error
                self._state.items = []
                return
            self._state.error = None
            app_id = self._filter.app_id
            self._state.items = [build_item(d, app_id) for d in discoveries or []]

        return apply
