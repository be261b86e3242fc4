"""Replay harness: one host thread, one status channel, one waiter per instance."""

from __future__ import annotations

import enum
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, TypeVar

from configs.loader import HarnessConfig
from engine.base import Host, HostStatus
from engine.context import Context
from engine.events import ReplayEventSystem
from engine.host import HostConfig
from engine.thread import GameThread
from harness.controller import HostFactory, HostLifecycleController
from harness.errors import HarnessStateError, TeardownFailure
from harness.status import ReplayStatus, StatusChannel
from harness.waiting import PollingWaiter
from recording.store import RecordingStore

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class HarnessState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class ReplayScenario(ABC):
    """Checkpoint hooks for one recorded session.

    ``run_test`` calls ``on_replay_start`` once the replay is running and the
    host is initialized, ``during_replay`` right after it, and
    ``on_replay_end`` once the replay has finished. Hooks receive the harness
    and assert on simulation state; failures propagate as test failures.
    """

    title: str = ""
    headless: bool = True

    @abstractmethod
    def on_replay_start(self, harness: ReplayHarness) -> None:
        """Assert on state at the start checkpoint."""

    @abstractmethod
    def during_replay(self, harness: ReplayHarness) -> None:
        """Wait for and assert on mid-session checkpoints."""

    @abstractmethod
    def on_replay_end(self, harness: ReplayHarness) -> None:
        """Assert on state after the replay finished."""


class ReplayHarness:
    """Composition root for replay tests.

    Each instance owns its own ``StatusChannel``, ``PollingWaiter``,
    ``HostLifecycleController`` and, unless one is injected, ``GameThread``,
    so concurrent harnesses never observe each other. ``run_test`` is the
    three-checkpoint template; ``start`` and the ``wait_*`` helpers let a test
    sequence its own checkpoints. ``teardown`` must follow every session and
    is safe to call any number of times.
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        *,
        store: RecordingStore | None = None,
        host_factory: HostFactory | None = None,
        game_thread: GameThread | None = None,
    ) -> None:
        self.config = config or HarnessConfig()
        self.store = store or RecordingStore(self.config.recordings_dir)
        # engine-thread affinity is per harness
        self.game_thread = game_thread or GameThread()
        self._status = StatusChannel()
        self._waiter = PollingWaiter(interval=self.config.poll_interval, timeout=self.config.checkpoint_timeout)
        host_config = HostConfig(
            headless=self.config.headless,
            tick_interval=self.config.tick_interval,
            view_distance=self.config.view_distance,
            chunk_load_rate=self.config.chunk_load_rate,
        )
        self._controller = HostLifecycleController(
            self._status,
            self.store.resolve,
            host_factory=host_factory,
            host_config=host_config,
            game_thread=self.game_thread,
        )
        self._state = HarnessState.IDLE
        self._state_lock = threading.Lock()
        self._watchdog: threading.Timer | None = None
        self._surfaced: BaseException | None = None

    @property
    def state(self) -> HarnessState:
        with self._state_lock:
            return self._state

    @property
    def status(self) -> ReplayStatus:
        return self._status.get()

    @property
    def status_channel(self) -> StatusChannel:
        return self._status

    @property
    def host(self) -> Host | None:
        return self._controller.host

    @property
    def context(self) -> Context:
        host = self._controller.host
        if host is None:
            raise HarnessStateError("No live host; the session has not started or was already cleaned up.")
        return host.context

    def is_initialised(self) -> bool:
        return self._controller.is_initialised()

    def run_test(self, scenario: ReplayScenario, title: str | None = None, headless: bool | None = None) -> None:
        """Replay ``title`` (default ``scenario.title``) and run the scenario's checkpoints."""
        title = title or scenario.title
        if not title:
            raise ValueError("A recording title is required.")
        self.start(title, scenario.headless if headless is None else headless)

        self.wait_for_replay_start()
        LOGGER.info("Start checkpoint for '%s'", title)
        scenario.on_replay_start(self)
        scenario.during_replay(self)
        self.wait_for_replay_end()
        LOGGER.info("End checkpoint for '%s'", title)
        scenario.on_replay_end(self)

    def start(self, title: str, headless: bool | None = None) -> Future[None]:
        """Start replaying ``title`` on the host thread and return at once."""
        self._begin()
        headless = self.config.headless if headless is None else headless
        LOGGER.info("Opening replay '%s'", title)
        return self._launch(title, headless)

    def open_main_menu(self, headless: bool | None = None) -> Host:
        """Start a host that idles in the main menu; ``teardown`` stops it."""
        self._begin()
        headless = self.config.headless if headless is None else headless
        LOGGER.info("Opening main menu")
        self._launch(None, headless)

        def in_menu() -> bool:
            host = self._controller.host
            return self._controller.is_initialised() and host is not None and host.status is HostStatus.RUNNING

        self._wait(in_menu, self.config.start_timeout, "main menu")
        host = self._controller.host
        if host is None:
            raise HarnessStateError("Main menu host stopped before it could be returned.")
        return host

    def wait_for_replay_start(self, timeout: float | None = None) -> float:
        """Block until the status is REPLAYING and the host is initialized."""

        def replay_started() -> bool:
            status = self._status.get()
            if status is ReplayStatus.FINISHED:
                raise HarnessStateError("Replay finished before the start checkpoint was observed.")
            return status is ReplayStatus.REPLAYING and self._controller.is_initialised()

        timeout = self.config.start_timeout if timeout is None else timeout
        return self._wait(replay_started, timeout, "replay start (REPLAYING)")

    def wait_for_replay_end(self, timeout: float | None = None) -> float:
        """Block until the status is FINISHED."""
        return self._wait(
            lambda: self._status.get() is ReplayStatus.FINISHED,
            self.config.finish_timeout if timeout is None else timeout,
            "replay end (FINISHED)",
        )

    def wait_until(
        self,
        predicate: Callable[[], bool],
        timeout: float | None = None,
        description: str | None = None,
    ) -> float:
        """Bounded checkpoint wait; fails fast if the host thread died."""
        timeout = self.config.checkpoint_timeout if timeout is None else timeout
        return self._wait(predicate, timeout, description)

    def wait_for_service(self, kind: type[T], timeout: float | None = None) -> T:
        """Block until the live host has registered ``kind`` and return it."""
        found: list[Any] = []

        def registered() -> bool:
            host = self._controller.host
            service = host.context.get(kind) if host is not None else None
            if service is None:
                return False
            found.append(service)
            return True

        self.wait_until(registered, timeout, f"{kind.__name__} to be registered")
        return found[-1]

    def wait_for_event_index(self, index: int, timeout: float | None = None) -> ReplayEventSystem:
        """Block until the replay has applied the recorded event at ``index``."""
        events = self.wait_for_service(ReplayEventSystem, timeout)
        if events.event_count <= index:
            raise HarnessStateError(f"Recording has {events.event_count} events; index {index} is never reached.")
        self.wait_until(
            lambda: events.last_recorded_event_index >= index,
            timeout,
            f"recorded event index >= {index}",
        )
        return events

    def cancel(self, reason: str = "cancelled") -> None:
        """Unblock pending waits and ask the host thread to stop ticking.

        Safe to call from any thread, including a test-timeout watchdog.
        """
        LOGGER.warning("Cancelling replay session: %s", reason)
        self._waiter.cancel(reason)
        self._controller.request_stop()

    def teardown(self) -> None:
        """Shut down the host, reset engine-thread affinity, then join.

        Every step runs even if an earlier one fails; failures are collected
        into one ``TeardownFailure``. A host-thread failure already raised by
        a wait is not reported a second time.
        """
        self._cancel_watchdog()
        errors: list[BaseException] = []

        try:
            self._controller.shutdown_host()
        except Exception as exc:
            LOGGER.error("Host shutdown failed during teardown: %s", exc)
            errors.append(exc)
        try:
            self.game_thread.reset()
        except Exception as exc:
            errors.append(exc)
        try:
            self._controller.join(timeout=self.config.join_timeout)
        except Exception as exc:
            if exc is not self._surfaced:
                LOGGER.warning("Host thread reported a failure at teardown: %s", exc)
                errors.append(exc)
        try:
            self._controller.release_host()
        except Exception as exc:
            errors.append(exc)

        self._status.reset()
        self._waiter.reset()
        self._surfaced = None
        with self._state_lock:
            was_running = self._state is HarnessState.RUNNING
            self._state = HarnessState.IDLE
        if was_running:
            LOGGER.info("Harness torn down")
        if errors:
            raise TeardownFailure(errors)

    def _begin(self) -> None:
        with self._state_lock:
            if self._state is HarnessState.RUNNING:
                raise HarnessStateError("A session is already running on this harness; call teardown() first.")
            self._state = HarnessState.RUNNING

    def _launch(self, title: str | None, headless: bool) -> Future[None]:
        self._arm_watchdog()
        return self._controller.start(title, headless, on_exit=self._on_host_exit)

    def _on_host_exit(self, future: Future[None]) -> None:
        if future.cancelled():
            return
        failure = future.exception()
        if failure is not None:
            self._waiter.cancel(f"host thread failed: {failure}")

    def _wait(self, predicate: Callable[[], bool], timeout: float | None, description: str | None) -> float:
        if self.state is not HarnessState.RUNNING:
            raise HarnessStateError("No session is running; call start() or run_test() first.")
        return self._waiter.wait_until(
            predicate,
            timeout=timeout,
            description=description,
            abort=self._host_failure,
            describe_state=self._describe_state,
        )

    def _host_failure(self) -> BaseException | None:
        failure = self._controller.failure
        if failure is not None:
            self._surfaced = failure
        return failure

    def _describe_state(self) -> str:
        return f"status={self._status.get().name}, host phase='{self._controller.phase}'"

    def _arm_watchdog(self) -> None:
        timeout = self.config.test_timeout
        if timeout is None:
            return
        watchdog = threading.Timer(timeout, self.cancel, args=(f"test timeout of {timeout}s exceeded",))
        watchdog.daemon = True
        watchdog.start()
        self._watchdog = watchdog

    def _cancel_watchdog(self) -> None:
        watchdog, self._watchdog = self._watchdog, None
        if watchdog is not None:
            watchdog.cancel()
            if watchdog is not threading.current_thread():
                watchdog.join()
