"""Tests for EventBus — sync and threaded hook dispatch."""

from __future__ import annotations

import logging
import threading
from typing import Any

import pytest

from tasksync.plugins import hookimpl
from tasksync.plugins.event_bus import EventBus
from tasksync.plugins.manager import PluginManager

# ---------------------------------------------------------------------------
# Fake plugins for testing
# ---------------------------------------------------------------------------


class RecordingPlugin:
    """Plugin that records all hook calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.threads: list[str] = []

    @hookimpl
    def document_changed(self, path: str, revision: int, origin: str) -> None:
        self.threads.append(threading.current_thread().name)
        self.calls.append(
            ("document_changed", {"path": path, "revision": revision, "origin": origin})
        )

    @hookimpl
    def entity_created(self, kind: str, path: str, title: str) -> None:
        self.calls.append(("entity_created", {"kind": kind, "path": path, "title": title}))


class FailingPlugin:
    @hookimpl
    def document_changed(self, path: str, revision: int, origin: str) -> None:
        raise RuntimeError("plugin exploded")


@pytest.fixture
def manager() -> PluginManager:
    return PluginManager()


PAYLOAD = {"path": "Tasks/a.md", "revision": 1, "origin": "store"}


class TestSyncDispatch:
    def test_calls_hook_inline(self, manager: PluginManager) -> None:
        plugin = RecordingPlugin()
        manager.register_plugin(plugin)
        bus = EventBus(manager, sync=True)

        bus.dispatch("document_changed", PAYLOAD)

        assert plugin.calls == [("document_changed", PAYLOAD)]
        assert plugin.threads == [threading.current_thread().name]
        assert bus.is_sync is True
        assert bus.drain() == 0

    def test_unknown_hook_ignored(self, manager: PluginManager) -> None:
        EventBus(manager, sync=True).dispatch("no_such_hook", {})

    def test_failure_logged_not_raised(
        self, manager: PluginManager, caplog: pytest.LogCaptureFixture
    ) -> None:
        recorder = RecordingPlugin()
        manager.register_plugin(FailingPlugin())
        manager.register_plugin(recorder)
        bus = EventBus(manager, sync=True)

        with caplog.at_level(logging.WARNING, logger="tasksync.plugins.event_bus"):
            bus.dispatch("document_changed", PAYLOAD)

        assert "Hook document_changed failed" in caplog.text


class TestThreadedDispatch:
    def test_runs_on_worker_and_drains(self, manager: PluginManager) -> None:
        plugin = RecordingPlugin()
        manager.register_plugin(plugin)
        bus = EventBus(manager, max_workers=2)
        try:
            for revision in range(1, 4):
                bus.dispatch("document_changed", {**PAYLOAD, "revision": revision})
            assert bus.drain() == 3
            assert sorted(call[1]["revision"] for call in plugin.calls) == [1, 2, 3]
            assert all(name.startswith("tasksync-event") for name in plugin.threads)
        finally:
            bus.shutdown()

    def test_failure_does_not_reach_caller(self, manager: PluginManager) -> None:
        manager.register_plugin(FailingPlugin())
        bus = EventBus(manager)
        try:
            bus.dispatch("document_changed", PAYLOAD)
            assert bus.drain() == 1
        finally:
            bus.shutdown()
