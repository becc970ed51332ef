"""Header index: last parsed header per document, tagged with a commit revision.

Rows live in SQLite (see :mod:`tasksync.infrastructure.database`). The
revision each path has reached is mirrored in memory behind a condition
variable so readers can block until a specific commit is indexed.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import Engine

from tasksync.infrastructure.database.schema import documents


@dataclass(frozen=True)
class IndexedHeader:
    path: str
    revision: int
    header: dict[str, Any] | None
    entity_type: str | None
    parse_error: str | None


class HeaderIndex:
    """Revision-aware header snapshots keyed by vault-relative path."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._cond = threading.Condition()
        self._revisions: dict[str, int] = {}

    @property
    def engine(self) -> Engine:
        return self._engine

    # -- writes --------------------------------------------------------------

    def record(
        self,
        path: str,
        revision: int,
        *,
        header: dict[str, Any] | None,
        parse_error: str | None = None,
        mtime: float | None = None,
    ) -> None:
        """Store a snapshot unless a newer revision is already indexed."""
        entity_type = header.get("Type") if header else None
        values = {
            "path": path,
            "revision": revision,
            "entity_type": entity_type if isinstance(entity_type, str) else None,
            "header": json.dumps(header, ensure_ascii=False, default=str) if header is not None else None,
            "parse_error": parse_error,
            "mtime": mtime,
            "indexed_at": datetime.now(UTC).isoformat(),
        }
        stmt = insert(documents).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[documents.c.path],
            set_={key: stmt.excluded[key] for key in values if key != "path"},
            where=documents.c.revision <= stmt.excluded.revision,
        )
        with self._cond:
            with self._engine.begin() as conn:
                conn.execute(stmt)
            self._advance(path, revision)

    def forget(self, path: str, revision: int) -> None:
        """Drop the row for a deleted document, still advancing its revision."""
        with self._cond:
            with self._engine.begin() as conn:
                conn.execute(
                    delete(documents).where(
                        documents.c.path == path, documents.c.revision <= revision
                    )
                )
            self._advance(path, revision)

    def _advance(self, path: str, revision: int) -> None:
        if revision >= self._revisions.get(path, -1):
            self._revisions[path] = revision
        self._cond.notify_all()

    # -- reads ---------------------------------------------------------------

    def revision(self, path: str) -> int:
        """Highest revision indexed for *path*; ``-1`` when never indexed."""
        with self._cond:
            return self._revisions.get(path, -1)

    def wait_for(self, path: str, revision: int, timeout: float) -> bool:
        """Block until *path* is indexed at *revision* or later."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._revisions.get(path, -1) >= revision, timeout=timeout
            )

    def get(self, path: str) -> IndexedHeader | None:
        with self._engine.connect() as conn:
            row = conn.execute(select(documents).where(documents.c.path == path)).first()
        if row is None:
            return None
        return IndexedHeader(
            path=row.path,
            revision=row.revision,
            header=json.loads(row.header) if row.header is not None else None,
            entity_type=row.entity_type,
            parse_error=row.parse_error,
        )

    def count(self, entity_type: str | None = None) -> int:
        stmt = select(func.count()).select_from(documents)
        if entity_type is not None:
            stmt = stmt.where(documents.c.entity_type == entity_type)
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())
