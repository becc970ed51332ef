"""Pluggy hook specifications for document and entity events.

``document_changed`` fires once per store commit, after the header index
reflects that commit. The entity hooks are informational and fire after the
corresponding write.
"""

from __future__ import annotations

import pluggy

hookspec = pluggy.HookspecMarker("tasksync")


class TaskSyncHookSpec:
    """Hook specifications for the tasksync plugin system."""

    @hookspec
    def document_changed(self, path: str, revision: int, origin: str) -> None:
        """Called after a document commit is indexed.

        *origin* is ``"store"`` for writes made through the store and
        ``"external"`` for edits announced via ``notify_changed``.
        """

    @hookspec
    def entity_created(self, kind: str, path: str, title: str) -> None:
        """Called after a new entity document is created."""

    @hookspec
    def entity_reconciled(self, kind: str, path: str, change_count: int) -> None:
        """Called after an entity header was migrated to its schema."""

    @hookspec
    def status_synced(self, path: str, fields: list[str]) -> None:
        """Called after a corrective Status/Done write."""
