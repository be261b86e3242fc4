"""Engine-thread affinity: which thread owns the running host."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable

from engine.base import EngineInitializationError

LOGGER = logging.getLogger(__name__)


class GameThread:
    """Scoped engine-thread affinity with an explicit ``bind``/``reset`` pair.

    The host binds its own thread during ``initialize``. Work submitted from
    other threads through ``asynch`` is queued and drained by the engine
    thread on every tick. ``reset`` forgets the bound thread and drops queued
    work, so the next host can bind cleanly.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: threading.Thread | None = None
        self._pending: deque[Callable[[], None]] = deque()

    def bind(self) -> None:
        """Bind the calling thread as the engine thread."""
        current = threading.current_thread()
        with self._lock:
            owner = self._owner
            if owner is not None and owner is not current and owner.is_alive():
                raise EngineInitializationError(
                    f"Engine thread already bound to live thread '{owner.name}'; reset it first."
                )
            self._owner = current
        LOGGER.debug("Engine thread bound to '%s'", current.name)

    def reset(self) -> None:
        """Return to the unbound state and discard queued work."""
        with self._lock:
            self._owner = None
            dropped = len(self._pending)
            self._pending.clear()
        if dropped:
            LOGGER.debug("Engine thread reset dropped %d pending task(s)", dropped)

    def is_bound(self) -> bool:
        with self._lock:
            return self._owner is not None

    def is_current(self) -> bool:
        with self._lock:
            return self._owner is threading.current_thread()

    def asynch(self, task: Callable[[], None]) -> None:
        """Queue ``task`` to run on the engine thread during its next tick."""
        with self._lock:
            self._pending.append(task)

    def process_pending(self) -> int:
        """Run queued tasks if called from the bound thread; return how many ran."""
        if not self.is_current():
            return 0
        with self._lock:
            tasks = list(self._pending)
            self._pending.clear()
        for task in tasks:
            task()
        return len(tasks)


GAME_THREAD = GameThread()
