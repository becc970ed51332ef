"""Tests for PluginManager — registration and hook dispatch."""

from __future__ import annotations

import pluggy
import pytest

from tasksync.plugins import hookimpl
from tasksync.plugins.manager import PluginManager


class ChangeLogger:
    def __init__(self) -> None:
        self.paths: list[str] = []

    @hookimpl
    def document_changed(self, path: str, revision: int, origin: str) -> None:
        self.paths.append(path)


class TestRegistration:
    def test_register_and_call(self) -> None:
        manager = PluginManager()
        plugin = ChangeLogger()
        manager.register_plugin(plugin, name="logger")

        manager.hook.document_changed(path="Tasks/a.md", revision=1, origin="store")

        assert plugin.paths == ["Tasks/a.md"]
        assert manager.list_plugin_names() == ["logger"]
        assert manager.get_plugins() == [plugin]

    def test_default_name_is_class_name(self) -> None:
        manager = PluginManager()
        manager.register_plugin(ChangeLogger())
        assert manager.list_plugin_names() == ["ChangeLogger"]

    def test_duplicate_name_rejected(self) -> None:
        manager = PluginManager()
        manager.register_plugin(ChangeLogger(), name="logger")
        with pytest.raises(ValueError):
            manager.register_plugin(ChangeLogger(), name="logger")

    def test_unknown_hook_argument_rejected(self) -> None:
        class WantsBody:
            @hookimpl
            def document_changed(self, path: str, body: str) -> None:
                pass

        with pytest.raises(pluggy.PluginValidationError):
            PluginManager().register_plugin(WantsBody())

    def test_unregister(self) -> None:
        manager = PluginManager()
        plugin = ChangeLogger()
        manager.register_plugin(plugin)
        manager.unregister(plugin)
        manager.hook.document_changed(path="Tasks/a.md", revision=1, origin="store")
        assert plugin.paths == []
        assert manager.get_plugins() == []
