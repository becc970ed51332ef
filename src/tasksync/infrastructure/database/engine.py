"""Database engine setup for SQLite with WAL mode.

The header index lives at ``{vault_root}/.tasksync/index.db``. SQLAlchemy
Core (not ORM) is enough: rows are plain header snapshots keyed by path.
Connections are shared across the store's indexing thread and callers, so
SQLite's same-thread check is disabled.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, delete, event
from sqlalchemy.engine import Engine

from tasksync.infrastructure.database.schema import documents, metadata

STATE_DIR = ".tasksync"
DB_FILENAME = "index.db"


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode enabled."""
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def init_database(vault_root: Path) -> Engine:
    """Initialize the index at ``{vault_root}/.tasksync/index.db``.

    Creates the state directory and all tables, then clears rows left over
    from a previous session. Idempotent.
    """
    state_dir = vault_root / STATE_DIR
    state_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(state_dir / DB_FILENAME)
    metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(delete(documents))
    return engine
