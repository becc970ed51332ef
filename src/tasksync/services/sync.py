"""StatusDoneSynchronizer — keeps ``Status`` and ``Done`` consistent.

Registered as a pluggy plugin for ``document_changed``. For every change to a
task document it compares the new ``(Status, Done)`` pair with the last one
it saw for that path, decides which field the edit made authoritative and
writes the minimal correction through the store's atomic header transform.

Termination: before writing, the fingerprint of the corrected pair is armed
in a per-path *settle* entry with a monotonic expiry. The change event the
write itself produces matches that entry and is ignored, so one external
edit causes at most one corrective write.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from tasksync.domain.errors import EntityNotFound, ParseError, TaskSyncError
from tasksync.domain.properties import EntityKind
from tasksync.domain.records import header_fingerprint
from tasksync.domain.status import SYNC_FIELDS, StatusSnapshot, compute_correction
from tasksync.plugins import hookimpl

if TYPE_CHECKING:
    from tasksync.services.context import SyncContext

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Settle:
    fingerprint: str
    expires_at: float


class StatusDoneSynchronizer:
    """Derived-field synchronizer for task documents."""

    def __init__(
        self,
        context: SyncContext,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._context = context
        self._clock = clock
        self._guard = threading.Lock()
        self._snapshots: dict[str, StatusSnapshot] = {}
        self._settles: dict[str, _Settle] = {}
        self.corrections = 0
        self.settled = 0

    @property
    def settle_window(self) -> float:
        return self._context.settings.sync.settle_window_seconds

    # ------------------------------------------------------------------
    # Hook
    # ------------------------------------------------------------------

    @hookimpl
    def document_changed(self, path: str, revision: int, origin: str) -> None:
        self.handle_change(path, revision)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle_change(self, path: str, revision: int | None = None) -> bool:
        """Process one change of *path*. Returns True when a correction was written."""
        store = self._context.store
        with self._context.locks.hold(path):
            try:
                header = store.read_header(path, at_least=revision, timeout=self._context.timeout)
            except EntityNotFound:
                self.forget(path)
                return False
            except ParseError as exc:
                log.warning("sync_skipped", path=path, reason=exc.message)
                return False

            if header.get("Type") != EntityKind.TASK.value:
                self.forget(path)
                return False

            current = StatusSnapshot.from_record(header)
            if self._consume_settle(path, header_fingerprint(header, SYNC_FIELDS)):
                self._remember(path, current)
                log.debug("sync_settled", path=path, revision=revision)
                return False

            correction = compute_correction(self.snapshot(path), current, self._context.statuses)
            if not correction:
                self._remember(path, current)
                return False

            corrected = {**header, **correction}
            self._arm_settle(path, header_fingerprint(corrected, SYNC_FIELDS))

            def _apply(record: dict[str, Any]) -> Mapping[str, Any] | None:
                # A newer edit landed after the index read; its own event follows.
                if StatusSnapshot.from_record(record) != current:
                    return None
                return {**record, **correction}

            token = store.transform_header(path, _apply)
            if token is None:
                self._disarm_settle(path)
                return False

            self._remember(path, current.apply(correction))
            with self._guard:
                self.corrections += 1

        log.info("status_corrected", path=path, fields=sorted(correction), revision=token.revision)
        self._context.bus.dispatch("status_synced", {"path": path, "fields": sorted(correction)})
        return True

    def observe(self, path: str) -> StatusSnapshot | None:
        """Seed the snapshot for *path* from its current header without correcting."""
        with self._context.locks.hold(path):
            header = self._context.store.read_header(path, timeout=self._context.timeout)
            if header.get("Type") != EntityKind.TASK.value:
                self.forget(path)
                return None
            snapshot = StatusSnapshot.from_record(header)
            self._remember(path, snapshot)
            return snapshot

    def prime(self) -> int:
        """Observe every document in the tasks folder. Returns how many were seeded."""
        seeded = 0
        for path in self._context.store.list_documents(self._context.folder_for(EntityKind.TASK)):
            try:
                if self.observe(path) is not None:
                    seeded += 1
            except TaskSyncError as exc:
                log.debug("prime_skipped", path=path, reason=exc.message)
        return seeded

    def snapshot(self, path: str) -> StatusSnapshot | None:
        with self._guard:
            return self._snapshots.get(path)

    def forget(self, path: str) -> None:
        with self._guard:
            self._snapshots.pop(path, None)
            self._settles.pop(path, None)

    def pending_settles(self) -> dict[str, float]:
        """Unexpired settle entries as ``{path: seconds_remaining}``."""
        now = self._clock()
        with self._guard:
            self._expire(now)
            return {path: entry.expires_at - now for path, entry in self._settles.items()}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _remember(self, path: str, snapshot: StatusSnapshot) -> None:
        with self._guard:
            self._snapshots[path] = snapshot

    def _arm_settle(self, path: str, fingerprint: str) -> None:
        with self._guard:
            self._settles[path] = _Settle(fingerprint, self._clock() + self.settle_window)

    def _disarm_settle(self, path: str) -> None:
        with self._guard:
            self._settles.pop(path, None)

    def _consume_settle(self, path: str, fingerprint: str) -> bool:
        now = self._clock()
        with self._guard:
            self._expire(now)
            entry = self._settles.get(path)
            if entry is None:
                return False
            # A different fingerprint means a later edit superseded our write.
            del self._settles[path]
            if entry.fingerprint != fingerprint:
                return False
            self.settled += 1
            return True

    def _expire(self, now: float) -> None:
        expired = [path for path, entry in self._settles.items() if entry.expires_at <= now]
        for path in expired:
            del self._settles[path]
