"""Shared pytest fixtures and test helpers for tasksync tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.engine import Engine

from tasksync.config.settings import TaskSyncSettings
from tasksync.infrastructure.database.engine import init_database
from tasksync.infrastructure.index import HeaderIndex
from tasksync.infrastructure.store import DocumentStore
from tasksync.services.context import SyncContext, open_context


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's TASKSYNC_* environment out of the tests."""
    monkeypatch.delenv("TASKSYNC_CONFIG", raising=False)
    monkeypatch.delenv("TASKSYNC_VAULT_ROOT", raising=False)


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    """Temporary vault directory with the default folder layout."""
    for folder in ("Tasks", "Projects", "Areas", "Templates"):
        (tmp_path / folder).mkdir()
    return tmp_path


@pytest.fixture
def db_engine(vault_root: Path) -> Iterator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(vault_root)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def store(vault_root: Path, db_engine: Engine) -> Iterator[DocumentStore]:
    """Synchronous document store: commits are indexed on the caller's thread."""
    s = DocumentStore(vault_root, HeaderIndex(db_engine), sync=True, timeout=1.0)
    try:
        yield s
    finally:
        s.close()


def make_settings(vault_root: Path, **overrides: Any) -> TaskSyncSettings:
    sync = {"dispatch": "sync", **overrides.pop("sync", {})}
    return TaskSyncSettings(vault_root=vault_root, sync=sync, **overrides)


@pytest.fixture
def settings(vault_root: Path) -> TaskSyncSettings:
    return make_settings(vault_root)


@pytest.fixture
def context(settings: TaskSyncSettings) -> Iterator[SyncContext]:
    """Fully wired context with synchronous dispatch."""
    ctx = open_context(settings)
    try:
        yield ctx
    finally:
        ctx.close()


@pytest.fixture
def threaded_context(vault_root: Path) -> Iterator[SyncContext]:
    """Context with indexing and event handling on background threads."""
    ctx = open_context(make_settings(vault_root, sync={"dispatch": "thread"}))
    try:
        yield ctx
    finally:
        ctx.close()


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_doc(vault_root: Path, relative: str, text: str) -> str:
    """Write a document as an external editor would and return its relative path."""
    path = vault_root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="")
    return relative


def read_doc(vault_root: Path, relative: str) -> str:
    with (vault_root / relative).open(encoding="utf-8", newline="") as handle:
        return handle.read()
