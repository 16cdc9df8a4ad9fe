"""Detached background refresh tasks.

A refresh runs on a daemon thread. The caller that triggered it never joins
it, cannot cancel it, and never sees its outcome. Before committing, the task
asks `still_current()`; if the identifier it was started for is no longer the
one being displayed, the fresh value is discarded instead of clobbering newer
state. `commit` may repeat the check atomically with its writes. Every
failure is logged and dropped.
"""
from __future__ import annotations

import threading
from typing import Callable, List, Optional, TypeVar

from skycache.result import Result
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="refresh")

T = TypeVar("T")


class BackgroundRefresher:
    """Spawns fire-and-forget refresh threads."""

    def __init__(self, *, daemon: bool = True) -> None:
        self.daemon = daemon
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def submit(
        self,
        label: str,
        fetch: Callable[[], Result],
        still_current: Callable[[], bool],
        commit: Callable[[object], None],
    ) -> threading.Thread:
        """Start a refresh. `commit` runs only on success while `still_current()` holds."""
        thread = threading.Thread(
            target=self._run,
            args=(label, fetch, still_current, commit),
            name=f"refresh-{label}",
            daemon=self.daemon,
        )
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        return thread

    @staticmethod
    def _run(label: str, fetch: Callable[[], Result], still_current: Callable[[], bool],
             commit: Callable[[object], None]) -> None:
        logger.info("Fetching fresh data in background", extra={"label": label})
        try:
            result = fetch()
            if not result.ok:
                logger.warning("Background fetch error: %s", result.error)
                return
            if not still_current():
                logger.info("Background fetch superseded; discarding", extra={"label": label})
                return
            commit(result.value)
            logger.info("Background fetch complete, updated with fresh data", extra={"label": label})
        except Exception:
            logger.exception("Error in background fetch")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every started refresh has finished. For tests and shutdown only."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
        return not any(t.is_alive() for t in threads)
