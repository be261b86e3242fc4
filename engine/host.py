"""Reference simulation host: subsystem lifecycle plus a state-driven tick loop."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Sequence

from engine.base import EngineInitializationError, GameState, Host, HostDisposalError, HostStatus
from engine.context import Context
from engine.subsystems import EngineTime, Subsystem
from engine.thread import GAME_THREAD, GameThread

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostConfig:
    """Per-host settings. Only backend choice and pacing, no harness logic."""

    headless: bool = True
    tick_interval: float = 0.0
    view_distance: int = 1
    chunk_load_rate: int = 4


class ReplayHost(Host):
    """Deterministic host that ticks one ``GameState`` at a time.

    State switches requested through ``change_state`` take effect at the start
    of the next tick. ``shutdown`` may be called from any thread; the tick
    loop observes it on its next call and returns False.
    """

    def __init__(
        self,
        subsystems: Sequence[Subsystem],
        config: HostConfig | None = None,
        game_thread: GameThread = GAME_THREAD,
    ) -> None:
        self.config = config or HostConfig()
        self.game_thread = game_thread
        self.tick_count = 0
        self._subsystems = list(subsystems)
        self._context = Context()
        self._status = HostStatus.CREATED
        self._lock = threading.RLock()
        self._shutdown_requested = threading.Event()
        self._state: GameState | None = None
        self._pending_state: GameState | None = None

    @property
    def status(self) -> HostStatus:
        with self._lock:
            return self._status

    @property
    def context(self) -> Context:
        return self._context

    @property
    def current_state(self) -> GameState | None:
        return self._state

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    def initialize(self) -> None:
        with self._lock:
            if self._status is not HostStatus.CREATED:
                raise EngineInitializationError(f"Cannot initialize host in status '{self._status.value}'.")
            self._status = HostStatus.INITIALIZING

        try:
            self.game_thread.bind()
            for subsystem in self._subsystems:
                subsystem.initialize(self._context)
            if EngineTime not in self._context:
                raise EngineInitializationError("No timer subsystem registered an EngineTime.")
        except Exception:
            LOGGER.error("Host initialization failed; disposing partially initialized subsystems")
            with self._lock:
                self._dispose()
            raise

        with self._lock:
            self._status = HostStatus.INITIALIZED
        LOGGER.info("Host initialized with %d subsystem(s)", len(self._subsystems))

    def change_state(self, state: GameState) -> bool:
        with self._lock:
            if self._status not in {HostStatus.INITIALIZED, HostStatus.RUNNING}:
                return False
            if self._shutdown_requested.is_set():
                return False
            self._pending_state = state
        LOGGER.debug("State change to %s queued", type(state).__name__)
        return True

    def tick(self) -> bool:
        if self._shutdown_requested.is_set():
            return False
        with self._lock:
            if self._status not in {HostStatus.INITIALIZED, HostStatus.RUNNING}:
                return False
            pending, self._pending_state = self._pending_state, None

        self.game_thread.process_pending()
        if pending is not None:
            self._switch_state(pending)

        delta = self._context.require(EngineTime).step()
        for subsystem in self._subsystems:
            subsystem.pre_update(delta)
        if self._state is not None:
            self._state.update(delta)
        self.tick_count += 1

        if self.config.tick_interval > 0:
            # pacing; wakes early on shutdown
            self._shutdown_requested.wait(self.config.tick_interval)
        if self._shutdown_requested.is_set():
            return False
        with self._lock:
            if self._pending_state is not None:
                return True
        return not (self._state is not None and self._state.is_complete)

    def cleanup(self) -> None:
        with self._lock:
            if self._status is HostStatus.DISPOSED:
                return
            self._dispose()
        LOGGER.info("Host cleaned up after %d tick(s)", self.tick_count)

    def shutdown(self) -> None:
        self._shutdown_requested.set()
        with self._lock:
            # nothing is ticking a host that never initialized
            if self._status is HostStatus.CREATED:
                self._dispose()
        LOGGER.info("Host shutdown requested")

    def _switch_state(self, state: GameState) -> None:
        if self._state is not None:
            self._state.dispose()
        self._state = state
        state.init(self)
        with self._lock:
            self._status = HostStatus.RUNNING
        LOGGER.debug("Switched to state %s", type(state).__name__)

    def _dispose(self) -> None:
        """Dispose states and subsystems. Caller holds ``_lock``."""
        errors: list[Exception] = []
        for state in (self._pending_state, self._state):
            if state is None:
                continue
            try:
                state.dispose()
            except Exception as exc:
                errors.append(exc)
        self._pending_state = None
        self._state = None

        for subsystem in reversed(self._subsystems):
            if not subsystem.initialized:
                continue
            try:
                subsystem.shutdown()
            except Exception as exc:
                errors.append(exc)
        self._context.clear()
        self._status = HostStatus.DISPOSED
        if errors:
            raise HostDisposalError(f"Host disposal failed: {errors[0]}") from errors[0]
