"""BaseService — foundation for all tasksync services.

Every service receives a :class:`SyncContext` at construction time. The
context provides the document store, schemas, per-path locks and event bus.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tasksync.services.context import SyncContext

logger = logging.getLogger(__name__)


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class RefreshService(BaseService):
            def reconcile_all(self) -> RefreshReport:
                with self._context.locks.hold(path):
                    ...
    """

    def __init__(self, context: SyncContext) -> None:
        self._context = context

    @property
    def context(self) -> SyncContext:
        return self._context

    def _dispatch_event(self, hook_name: str, payload: dict[str, Any]) -> None:
        """Dispatch an informational event.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        try:
            self._context.bus.dispatch(hook_name, payload)
        except Exception:
            logger.warning("Event dispatch failed for %s", hook_name, exc_info=True)
