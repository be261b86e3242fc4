"""Drives one simulation host through a replay session on a background thread."""

from __future__ import annotations

import dataclasses
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from engine.base import EngineInitializationError, Host, HostStatus
from engine.builder import build_host
from engine.host import HostConfig
from engine.modes import LoadingState, MainMenuState
from engine.thread import GameThread
from harness.errors import HarnessStateError, HostLifecycleFailure
from harness.status import ReplayStatus, StatusChannel
from recording.store import SessionDescriptor, SessionNotFound

LOGGER = logging.getLogger(__name__)

HostFactory = Callable[[HostConfig], Host]
SessionResolver = Callable[[str], SessionDescriptor]
ExitCallback = Callable[["Future[None]"], None]


class HostLifecycleController:
    """Owns the host thread and the host handle for one session at a time.

    Lifecycle on the host thread: build -> initialize -> main menu + one tick
    -> resolve session -> PREPARING -> load -> REPLAYING -> tick loop ->
    FINISHED -> cleanup. The thread is a single-worker executor; its Future
    carries the outcome, and ``join`` re-raises a failure exactly once.
    """

    def __init__(
        self,
        status: StatusChannel,
        resolve_session: SessionResolver,
        host_factory: HostFactory | None = None,
        host_config: HostConfig | None = None,
        game_thread: GameThread | None = None,
    ) -> None:
        self._status = status
        self._resolve_session = resolve_session
        game_thread = game_thread or GameThread()
        self._host_factory = host_factory or (lambda config: build_host(config, game_thread=game_thread))
        self._host_config = host_config or HostConfig()
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._host: Host | None = None
        self._initialised = False
        self._executor: ThreadPoolExecutor | None = None
        self._future: Future[None] | None = None
        self._joined = True
        self._phase = "idle"
        self.stopped_early = False

    @property
    def host(self) -> Host | None:
        with self._lock:
            return self._host

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def running(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    @property
    def failure(self) -> BaseException | None:
        """The host thread's exception once it has ended, else None."""
        with self._lock:
            future = self._future
        if future is None or not future.done() or future.cancelled():
            return None
        return future.exception()

    def is_initialised(self) -> bool:
        """True while the host is initialized and not yet cleaned up."""
        host = self.host
        return (
            self._initialised
            and host is not None
            and host.status in {HostStatus.INITIALIZED, HostStatus.RUNNING}
        )

    def start(self, title: str | None, headless: bool, on_exit: ExitCallback | None = None) -> Future[None]:
        """Start the host thread for ``title`` (``None`` idles in the main menu)."""
        with self._lock:
            if not self._joined:
                raise HarnessStateError("Host thread already started; join it before starting another.")
            if self._host is not None:
                raise HarnessStateError("Previous host was not shut down; tear down before starting another.")
            self._joined = False
            self._stop_event.clear()
            self.stopped_early = False
            self._phase = "starting"
            config = dataclasses.replace(self._host_config, headless=headless)
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="replay-host")
            self._future = self._executor.submit(self._run_session, title, config)
            future = self._future
        if on_exit is not None:
            future.add_done_callback(on_exit)
        LOGGER.info("Started host thread for %s (headless=%s)", repr(title) if title else "main menu", headless)
        return future

    def request_stop(self) -> None:
        """Ask the tick loop to exit at its next iteration."""
        self._stop_event.set()

    def shutdown_host(self) -> None:
        """Stop the tick loop and request host shutdown, if a host is live."""
        self._stop_event.set()
        host = self.host
        if host is None:
            LOGGER.debug("No live host to shut down")
            return
        host.shutdown()
        if self.failure is not None or not self.running:
            # the host thread is gone, so nobody else will release the handle
            self._release(host)

    def release_host(self) -> None:
        """Dispose and forget a handle left behind by a host thread that has ended."""
        host = self.host
        if host is not None and not self.running:
            LOGGER.debug("Releasing host left by a failed session")
            self._release(host)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the host thread; re-raise its failure on the first join."""
        with self._lock:
            future = self._future
            if future is None or self._joined:
                return
        try:
            future.result(timeout=timeout)
        except TimeoutError as exc:
            if not future.done():
                raise HostLifecycleFailure(
                    f"Host thread did not stop within {timeout}s (phase: {self._phase})"
                ) from exc
            self._mark_joined()
            raise
        except BaseException:
            self._mark_joined()
            raise
        self._mark_joined()

    def _mark_joined(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
            self._joined = True
        if executor is not None:
            executor.shutdown(wait=True)

    def _run_session(self, title: str | None, config: HostConfig) -> None:
        host: Host | None = None
        try:
            self._phase = "building host"
            host = self._host_factory(config)
            with self._lock:
                self._host = host
            self._drive(host, title)
        except Exception as exc:
            self._initialised = False
            if isinstance(exc, (SessionNotFound, HostLifecycleFailure)):
                LOGGER.error("Host thread stopped while %s: %s", self._phase, exc)
                failure: Exception = exc
            else:
                LOGGER.exception("Host thread failed while %s", self._phase)
                failure = HostLifecycleFailure(f"Host thread failed while {self._phase}: {exc}")
                failure.__cause__ = exc
            if host is not None:
                try:
                    host.cleanup()
                except Exception as cleanup_exc:
                    failure.add_note(f"Host cleanup after the failure also failed: {cleanup_exc!r}")
            self._phase = "failed"
            raise failure

    def _drive(self, host: Host, title: str | None) -> None:
        self._phase = "initializing host"
        try:
            host.initialize()
        except EngineInitializationError:
            # a failed initialize disposes the host too; only the stop flag marks a shutdown
            if not self._stop_event.is_set():
                raise
            LOGGER.info("Host was shut down before it finished initializing")
            self._stop(host)
            return
        self._initialised = True

        self._phase = "entering main menu"
        if not host.change_state(MainMenuState()):
            if self._shutdown_requested(host):
                self._stop(host)
                return
            raise HostLifecycleFailure("Host refused the main menu state.")
        host.tick()

        if title is None:
            self._phase = "idling in main menu"
            self._tick_until_done(host)
            self._release(host)
            return

        self._phase = "resolving session"
        descriptor = self._resolve_session(title)
        if self._stop_event.is_set():
            self._stop(host)
            return

        self._status.set(ReplayStatus.PREPARING)
        self._phase = "loading session"
        if not host.change_state(LoadingState(descriptor)):
            if self._shutdown_requested(host):
                self._stop(host)
                return
            raise HostLifecycleFailure(f"Host refused to load session '{title}'.")
        del descriptor
        self._status.set(ReplayStatus.REPLAYING)

        self._phase = "replaying"
        self._tick_until_done(host)
        self._status.set(ReplayStatus.FINISHED)

        self._phase = "cleaning up"
        self._release(host)
        self._phase = "stopped early" if self.stopped_early else "finished"

    def _tick_until_done(self, host: Host) -> None:
        ticks = 0
        while not self._stop_event.is_set():
            if not host.tick():
                break
            ticks += 1
        if self._stop_event.is_set():
            self.stopped_early = True
        LOGGER.info("Tick loop exited after %d tick(s)%s", ticks, " on stop request" if self.stopped_early else "")

    def _shutdown_requested(self, host: Host) -> bool:
        return self._stop_event.is_set() or host.status is HostStatus.DISPOSED

    def _stop(self, host: Host) -> None:
        self.stopped_early = True
        self._phase = "stopped early"
        self._release(host)

    def _release(self, host: Host) -> None:
        try:
            host.cleanup()
        finally:
            # the handle goes even when cleanup fails
            self._initialised = False
            with self._lock:
                if self._host is host:
                    self._host = None
