"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from tasksync.config.logging import HANDLER_NAME, configure_logging
from tasksync.config.models import LoggingConfig
from tasksync.services.context import open_context
from tests.conftest import make_settings


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    tasksync_level = logging.getLogger("tasksync").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("tasksync").setLevel(tasksync_level)
    structlog.reset_defaults()


def _installed() -> list[logging.Handler]:
    return [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]


class TestConfigureLogging:
    def test_quiet_by_default(self) -> None:
        configure_logging()
        assert logging.getLogger("tasksync").level == logging.WARNING

    def test_verbose(self) -> None:
        configure_logging(LoggingConfig(verbose=True))
        assert logging.getLogger("tasksync").level == logging.DEBUG

    def test_repeat_calls_replace_own_handler(self) -> None:
        first = configure_logging()
        second = configure_logging()
        assert _installed() == [second]
        assert first not in logging.getLogger().handlers

    def test_host_handlers_kept(self) -> None:
        host = logging.NullHandler()
        logging.getLogger().addHandler(host)
        configure_logging()
        assert host in logging.getLogger().handlers

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingConfig(json_output=True))
        structlog.get_logger("tasksync.services.sync").warning(
            "status_corrected", path="Tasks/a.md"
        )
        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "status_corrected"
        assert event["path"] == "Tasks/a.md"
        assert event["level"] == "warning"


class TestContextWiring:
    def test_not_installed_unless_configured(self, vault_root: Path) -> None:
        with open_context(make_settings(vault_root)):
            assert _installed() == []

    def test_installed_from_settings(self, vault_root: Path) -> None:
        settings = make_settings(vault_root, logging={"configure": True, "verbose": True})
        with open_context(settings):
            assert len(_installed()) == 1
            assert logging.getLogger("tasksync").level == logging.DEBUG
