"""Filesystem-backed document store.

Every write and every change notification produces a :class:`CommitToken`
carrying a monotonically increasing revision. Each commit is indexed before
change listeners are told about it, so a listener that loads the header at
``at_least=token`` never waits on another listener.

Indexing runs inline (``sync=True``) or on a single dedicated thread, which
keeps commits for the same path indexed in order.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from tasksync.domain.errors import (
    AlreadyExists,
    EntityNotFound,
    ParseError,
    StoreTimeout,
)
from tasksync.domain.records import parse_record, render_record, split_header
from tasksync.infrastructure.filesystem import (
    atomic_write_text,
    create_exclusive,
    find_documents,
    read_document,
    resolve_document_path,
)
from tasksync.infrastructure.index import HeaderIndex
from tasksync.infrastructure.locks import PathLocks

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

# (path, revision, origin) -> None
ChangeListener = Callable[[str, int, str], None]
HeaderTransform = Callable[[dict[str, Any]], Mapping[str, Any] | None]


@dataclass(frozen=True)
class CommitToken:
    path: str
    revision: int


@dataclass(frozen=True)
class DocumentStat:
    path: str
    created_at: datetime
    updated_at: datetime
    mtime_ns: int
    size: int


class DocumentStore:
    """Read, create and transform vault documents; notify listeners of commits."""

    def __init__(
        self,
        vault_root: Path,
        index: HeaderIndex,
        *,
        sync: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._root = vault_root
        self._index = index
        self._timeout = timeout
        self.locks = PathLocks()
        self._revision_lock = threading.Lock()
        self._revision = 0
        self._latest: dict[str, int] = {}
        self._listeners: list[ChangeListener] = []
        self._indexer: ThreadPoolExecutor | None = None
        if not sync:
            self._indexer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tasksync-index")

    @property
    def vault_root(self) -> Path:
        return self._root

    @property
    def index(self) -> HeaderIndex:
        return self._index

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def flush(self, timeout: float | None = None) -> None:
        """Wait until every commit made so far is indexed and announced."""
        if self._indexer is not None:
            self._indexer.submit(lambda: None).result(timeout=timeout or self._timeout)

    def close(self) -> None:
        if self._indexer is not None:
            self._indexer.shutdown(wait=True)
            self._indexer = None

    # -- paths and reads -----------------------------------------------------

    def resolve(self, path: str) -> Path:
        return resolve_document_path(self._root, path)

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def list_documents(self, folder: str) -> list[str]:
        return find_documents(self._root, folder)

    def read_text(self, path: str) -> str:
        """Document text of *path*.

        Raises:
            EntityNotFound: The document does not exist.
            ParseError: The document is not valid UTF-8.
        """
        try:
            return read_document(self.resolve(path))
        except FileNotFoundError as exc:
            raise EntityNotFound(f"No document at {path}", path=path) from exc
        except UnicodeDecodeError as exc:
            msg = f"Document is not valid UTF-8 (byte {exc.start}: {exc.reason})"
            raise ParseError(msg, path=path) from exc

    def read_record(self, path: str) -> tuple[dict[str, Any], str]:
        """Parse the header straight from disk, bypassing the index."""
        return self._parse(path, self.read_text(path))

    def stat(self, path: str) -> DocumentStat:
        try:
            st = self.resolve(path).stat()
        except FileNotFoundError as exc:
            raise EntityNotFound(f"No document at {path}", path=path) from exc
        # st_birthtime is not available on every platform.
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return DocumentStat(
            path=path,
            created_at=datetime.fromtimestamp(created, tz=UTC),
            updated_at=datetime.fromtimestamp(st.st_mtime, tz=UTC),
            mtime_ns=st.st_mtime_ns,
            size=st.st_size,
        )

    # -- writes --------------------------------------------------------------

    def create(self, path: str, text: str) -> CommitToken:
        """Exclusively create a new document.

        Raises:
            AlreadyExists: A file already exists at *path*.
        """
        with self.locks.hold(path):
            try:
                create_exclusive(self.resolve(path), text)
            except FileExistsError as exc:
                raise AlreadyExists(f"Document already exists: {path}", path=path) from exc
        return self._commit(path, origin="store")

    def transform_header(
        self,
        path: str,
        transform: HeaderTransform,
        *,
        order: Sequence[str] = (),
    ) -> CommitToken | None:
        """Atomically rewrite the header of *path*; the body is kept byte-for-byte.

        *transform* receives a copy of the current header and returns the new
        header, or ``None`` to leave the document alone. Fields are written in
        *order* first, then in their existing order. Returns ``None`` when
        nothing was written.
        """
        with self.locks.hold(path):
            file_path = self.resolve(path)
            text = self.read_text(path)
            record, _ = self._parse(path, text)
            updated = transform(dict(record))
            if updated is None:
                return None
            _, body = split_header(text)
            new_text = render_record(updated, order, body)
            if new_text == text:
                return None
            atomic_write_text(file_path, new_text)
        return self._commit(path, origin="store")

    def notify_changed(self, path: str) -> CommitToken:
        """Announce that *path* was modified outside the store."""
        return self._commit(path, origin="external")

    # -- index ---------------------------------------------------------------

    def latest_revision(self, path: str) -> int:
        with self._revision_lock:
            return self._latest.get(path, 0)

    def read_header(
        self,
        path: str,
        *,
        at_least: CommitToken | int | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Indexed header of *path*, at or after the given commit.

        Without *at_least* the latest commit the store made for *path* is
        awaited. A path never committed in this session is indexed from disk.

        Raises:
            StoreTimeout: The index did not reach the revision in time.
            EntityNotFound: The document does not exist.
            ParseError: The document's header is malformed.
        """
        if isinstance(at_least, CommitToken):
            target = at_least.revision
        elif at_least is None:
            target = self.latest_revision(path)
        else:
            target = at_least
        wait = self._timeout if timeout is None else timeout

        if target == 0 and self._index.revision(path) < 0:
            self.reindex(path, 0)
        elif not self._index.wait_for(path, target, wait):
            if self._index.revision(path) < target:
                raise StoreTimeout(
                    f"Index did not reach revision {target} for {path} within {wait:.2f}s",
                    path=path,
                )

        entry = self._index.get(path)
        if entry is None:
            raise EntityNotFound(f"No document at {path}", path=path)
        if entry.parse_error is not None:
            raise ParseError(entry.parse_error, path=path)
        return dict(entry.header or {})

    def reindex(self, path: str, revision: int) -> None:
        """Parse *path* from disk into the index at *revision*."""
        file_path = self.resolve(path)
        try:
            mtime = file_path.stat().st_mtime
            header, _ = self.read_record(path)
        except (FileNotFoundError, EntityNotFound):
            self._index.forget(path, revision)
            return
        except ParseError as exc:
            self._index.record(path, revision, header=None, parse_error=exc.message, mtime=mtime)
            return
        self._index.record(path, revision, header=header, mtime=mtime)

    # -- internals -----------------------------------------------------------

    def _parse(self, path: str, text: str) -> tuple[dict[str, Any], str]:
        try:
            return parse_record(text)
        except ParseError as exc:
            raise ParseError(exc.message, path=path) from exc

    def _commit(self, path: str, *, origin: str) -> CommitToken:
        with self._revision_lock:
            self._revision += 1
            revision = self._revision
            self._latest[path] = revision
        token = CommitToken(path=path, revision=revision)
        if self._indexer is None:
            self._index_and_notify(path, revision, origin)
        else:
            self._indexer.submit(self._index_and_notify, path, revision, origin)
        return token

    def _index_and_notify(self, path: str, revision: int, origin: str) -> None:
        try:
            self.reindex(path, revision)
        except Exception:
            logger.exception("Indexing failed for %s at revision %d", path, revision)
            return
        for listener in self._listeners:
            listener(path, revision, origin)
