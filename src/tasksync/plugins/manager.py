"""Plugin registry for document and entity hooks.

Plugins are objects with ``@hookimpl`` methods registered on a context's
manager: the built-in Status/Done synchronizer, or listeners an embedding
application adds. Each context owns its own manager.
"""

from __future__ import annotations

import logging

import pluggy

from tasksync.plugins.hookspecs import TaskSyncHookSpec

PROJECT_NAME = "tasksync"

logger = logging.getLogger(__name__)


class PluginManager:
    """Registers plugins and exposes the hook relay the event bus calls."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(TaskSyncHookSpec)

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance under *name* (default: its class name)."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def get_plugins(self) -> list[object]:
        return list(self._pm.get_plugins())

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]
