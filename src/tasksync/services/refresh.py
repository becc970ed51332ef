"""RefreshService — reconcile every entity document in the vault.

Per-file failures are collected as :class:`FileError` entries and never
abort the batch. Documents whose ``Type`` names another kind are skipped
silently: they live in a kind's folder but belong to another kind.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed

import structlog

from tasksync.domain.errors import TaskSyncError, WrongKind
from tasksync.domain.properties import EntityKind
from tasksync.services.base import BaseService
from tasksync.services.entities import EntityService
from tasksync.services.result import FileError, RefreshReport, UpdateOutcome

log = structlog.get_logger(__name__)

_SKIPPED = "skipped"
_CANCELLED = "cancelled"


class RefreshService(BaseService):
    """Batch ``reconcile all`` over the configured entity folders."""

    def reconcile_all(
        self,
        kinds: Iterable[EntityKind | str] | None = None,
        cancel: threading.Event | None = None,
    ) -> RefreshReport:
        """Reconcile every document of *kinds* (default: all kinds).

        Files are processed with bounded parallelism (``[sync] max_workers``).
        Setting *cancel* stops the run between files; files already in flight
        finish.
        """
        entities = EntityService(self._context)
        selected = [EntityKind(kind) for kind in kinds] if kinds is not None else list(EntityKind)
        work = [
            (kind, path) for kind in selected for path in entities.manager(kind).list_paths()
        ]

        scanned = updated = properties = skipped = 0
        errors: list[FileError] = []
        cancelled = False

        def _one(kind: EntityKind, path: str) -> UpdateOutcome | str:
            if cancel is not None and cancel.is_set():
                return _CANCELLED
            try:
                return entities.update_entity_properties(kind, path)
            except WrongKind:
                return _SKIPPED

        with ThreadPoolExecutor(
            max_workers=self._context.settings.sync.max_workers,
            thread_name_prefix="tasksync-refresh",
        ) as pool:
            futures = {pool.submit(_one, kind, path): path for kind, path in work}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    outcome = future.result()
                except TaskSyncError as exc:
                    scanned += 1
                    errors.append(FileError(path=path, code=exc.code, message=exc.message))
                    log.warning("refresh_failed", path=path, code=exc.code, reason=exc.message)
                    continue
                except OSError as exc:
                    scanned += 1
                    errors.append(FileError(path=path, code="IO_ERROR", message=str(exc)))
                    log.warning("refresh_failed", path=path, code="IO_ERROR", reason=str(exc))
                    continue
                except Exception as exc:
                    scanned += 1
                    errors.append(FileError(path=path, code="UNEXPECTED", message=str(exc)))
                    log.exception("refresh_failed", path=path, code="UNEXPECTED")
                    continue

                if outcome == _CANCELLED:
                    cancelled = True
                    continue
                scanned += 1
                if outcome == _SKIPPED:
                    skipped += 1
                elif isinstance(outcome, UpdateOutcome) and outcome.has_changes:
                    updated += 1
                    properties += outcome.change_count

        report = RefreshReport(
            files_scanned=scanned,
            files_updated=updated,
            properties_updated=properties,
            files_skipped=skipped,
            errors=sorted(errors, key=lambda error: error.path),
            cancelled=cancelled,
        )
        log.info(
            "refresh_complete",
            scanned=report.files_scanned,
            updated=report.files_updated,
            properties=report.properties_updated,
            errors=len(report.errors),
            cancelled=report.cancelled,
        )
        return report
