"""SyncContext — the explicit dependency passed to every service.

The context owns the header index engine, the document store, the plugin
manager and event bus, plus the per-kind schemas and configured statuses
derived from settings. There are no module-level singletons: two contexts
over two vaults are fully independent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import TYPE_CHECKING

from tasksync.config.logging import configure_logging
from tasksync.domain.properties import (
    TASK_PROPERTIES,
    EntityKind,
    EntitySchema,
    build_schema,
    is_valid_property_order,
)
from tasksync.domain.status import StatusDefinition, default_status
from tasksync.infrastructure.database.engine import init_database
from tasksync.infrastructure.index import HeaderIndex
from tasksync.infrastructure.store import DocumentStore
from tasksync.plugins.event_bus import EventBus
from tasksync.plugins.manager import PluginManager

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from tasksync.config.settings import TaskSyncSettings
    from tasksync.infrastructure.locks import PathLocks
    from tasksync.services.sync import StatusDoneSynchronizer

logger = logging.getLogger(__name__)


def build_schemas(
    settings: TaskSyncSettings,
) -> dict[EntityKind, EntitySchema]:
    """Canonical schemas for every kind, honoring the configured task order."""
    order = settings.reconcile.task_property_order
    if not is_valid_property_order(order, TASK_PROPERTIES):
        logger.warning(
            "Ignoring task_property_order %s: not a permutation of %s",
            order,
            list(TASK_PROPERTIES),
        )
    status = default_status(settings.statuses)
    return {
        kind: build_schema(kind, property_order=order, default_status=status)
        for kind in EntityKind
    }


@dataclass
class SyncContext:
    """Everything an operation needs, passed explicitly."""

    settings: TaskSyncSettings
    engine: Engine
    store: DocumentStore
    plugins: PluginManager
    bus: EventBus
    schemas: dict[EntityKind, EntitySchema]
    statuses: tuple[StatusDefinition, ...]
    synchronizer: StatusDoneSynchronizer | None = field(default=None, repr=False)

    @property
    def locks(self) -> PathLocks:
        return self.store.locks

    @property
    def timeout(self) -> float:
        return self.settings.sync.store_timeout_seconds

    def schema_for(self, kind: EntityKind) -> EntitySchema:
        return self.schemas[kind]

    def folder_for(self, kind: EntityKind) -> str:
        return self.settings.folder_for(kind)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def drain(self) -> None:
        """Block until all pending commits are indexed and their events handled.

        Handlers may write, which queues further events, so this loops until
        both the store and the bus are idle.
        """
        while True:
            self.store.flush()
            if self.bus.drain() == 0:
                break

    def close(self) -> None:
        self.drain()
        self.bus.shutdown()
        self.store.close()
        self.engine.dispose()

    def __enter__(self) -> SyncContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def open_context(settings: TaskSyncSettings) -> SyncContext:
    """Wire the store, index, event bus and built-in plugins for one vault.

    With ``[logging] configure`` set, structlog output is installed first.
    With ``[sync] enabled`` the Status/Done synchronizer is registered and,
    if ``prime_on_start`` is set, seeded with the current state of every task.
    """
    from tasksync.services.sync import StatusDoneSynchronizer

    if settings.logging.configure:
        configure_logging(settings.logging)

    sync_dispatch = settings.sync.dispatch == "sync"
    engine = init_database(settings.vault_root)
    store = DocumentStore(
        settings.vault_root,
        HeaderIndex(engine),
        sync=sync_dispatch,
        timeout=settings.sync.store_timeout_seconds,
    )
    plugins = PluginManager()
    bus = EventBus(plugins, sync=sync_dispatch, max_workers=settings.sync.max_workers)

    def _announce(path: str, revision: int, origin: str) -> None:
        bus.dispatch("document_changed", {"path": path, "revision": revision, "origin": origin})

    store.subscribe(_announce)

    context = SyncContext(
        settings=settings,
        engine=engine,
        store=store,
        plugins=plugins,
        bus=bus,
        schemas=build_schemas(settings),
        statuses=tuple(settings.statuses),
    )

    if settings.sync.enabled:
        synchronizer = StatusDoneSynchronizer(context)
        plugins.register_plugin(synchronizer, name="status-done-sync")
        context.synchronizer = synchronizer
        if settings.sync.prime_on_start:
            try:
                seeded = synchronizer.prime()
            except Exception:
                context.close()
                raise
            logger.debug("Primed %d task snapshots", seeded)

    return context
