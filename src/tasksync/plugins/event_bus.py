"""Event dispatch via pluggy + ThreadPoolExecutor.

INVARIANT: Plugin failures are warnings, never errors. A failing handler is
logged and never propagates to the writer that triggered the event.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tasksync.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 30.0


class EventBus:
    """Async (or sync) hook dispatch.

    Parameters:
        plugin_manager: PluginManager for hook dispatch.
        sync: Dispatch on the caller's thread (useful for testing).
        max_workers: ThreadPoolExecutor worker count.
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_workers: int = 2,
    ) -> None:
        self._pm = plugin_manager
        self._sync = sync
        self._executor: ThreadPoolExecutor | None = (
            None if sync else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tasksync-event")
        )
        self._futures: list[Future[None]] = []
        self._futures_lock = threading.Lock()

    @property
    def is_sync(self) -> bool:
        return self._sync

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> None:
        """Call *hook_name* on every registered plugin, now or on the pool."""
        if self._executor is None:
            self._execute_hook(hook_name, payload)
            return

        future = self._executor.submit(self._execute_hook, hook_name, payload)
        with self._futures_lock:
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)

    def drain(self, timeout: float = DRAIN_TIMEOUT) -> int:
        """Wait for in-flight dispatches. Returns how many were awaited."""
        with self._futures_lock:
            pending = list(self._futures)
            self._futures.clear()
        if not pending:
            return 0
        _done, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning("%d event dispatches still running after %.1fs", len(not_done), timeout)
        return len(pending)

    def shutdown(self) -> None:
        """Shutdown ThreadPoolExecutor, waiting for pending tasks."""
        self.drain()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _execute_hook(self, hook_name: str, payload: dict[str, Any]) -> None:
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            return

        try:
            hook_fn(**payload)
        except Exception:
            logger.warning("Hook %s failed for %s", hook_name, payload, exc_info=True)
