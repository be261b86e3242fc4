"""Tests for the replay harness state machine, teardown and isolation."""

from __future__ import annotations

import threading

import pytest

from configs.loader import HarnessConfig
from engine.base import HostDisposalError, HostStatus
from engine.host import HostConfig, ReplayHost
from engine.modes import MainMenuState
from engine.subsystems import headless_subsystems
from engine.thread import GameThread
from harness.acceptance import AcceptanceHarness
from harness.environment import HarnessState, ReplayHarness, ReplayScenario
from harness.errors import HarnessStateError, HostLifecycleFailure, TeardownFailure
from harness.status import ReplayStatus
from harness.waiting import WaitCancelled
from recording.store import SessionNotFound
from tests.support.recordings import idle, write_recording

FULL_HISTORY = [ReplayStatus.NONE, ReplayStatus.PREPARING, ReplayStatus.REPLAYING, ReplayStatus.FINISHED]


class RecordingScenario(ReplayScenario):
    """Records which hooks ran and the status each one saw."""

    def __init__(self, title: str = "Short") -> None:
        self.title = title
        self.calls: list[tuple[str, ReplayStatus]] = []

    def on_replay_start(self, harness: ReplayHarness) -> None:
        self.calls.append(("start", harness.status))

    def during_replay(self, harness: ReplayHarness) -> None:
        self.calls.append(("during", harness.status))

    def on_replay_end(self, harness: ReplayHarness) -> None:
        self.calls.append(("end", harness.status))


class FailingStartScenario(RecordingScenario):
    def on_replay_start(self, harness: ReplayHarness) -> None:
        raise AssertionError("start checkpoint mismatch")


class StalledStartupHost(ReplayHost):
    """Headless host whose startup stalls until shutdown is requested.

    With ``before_init`` the stall happens before ``initialize`` does any
    work, otherwise right after the host finished initializing.
    """

    def __init__(self, config: HostConfig, game_thread: GameThread, before_init: bool) -> None:
        super().__init__(headless_subsystems(), config=config, game_thread=game_thread)
        self.before_init = before_init
        self.stalled = threading.Event()

    def initialize(self) -> None:
        if self.before_init:
            self._stall()
        super().initialize()
        if not self.before_init:
            self._stall()

    def _stall(self) -> None:
        self.stalled.set()
        self._shutdown_requested.wait(10.0)


class BrokenCleanupHost(ReplayHost):
    """Headless host whose cleanup always reports a disposal failure."""

    def cleanup(self) -> None:
        super().cleanup()
        raise HostDisposalError("audio device did not close")


def broken_cleanup_factory(game_thread: GameThread):
    return lambda config: BrokenCleanupHost(headless_subsystems(), config=config, game_thread=game_thread)


@pytest.fixture()
def local_config(tmp_path, fast_config: HarnessConfig) -> HarnessConfig:
    write_recording(tmp_path, "Short", idle(300))
    write_recording(tmp_path, "Long", idle(100_000))
    return fast_config.with_overrides(recordings_dir=tmp_path)


@pytest.fixture()
def local_harness(local_config: HarnessConfig):
    env = ReplayHarness(local_config, game_thread=GameThread())
    yield env
    env.teardown()


def test_run_test_runs_hooks_in_order(local_harness: ReplayHarness) -> None:
    scenario = RecordingScenario()

    local_harness.run_test(scenario)

    assert [name for name, _ in scenario.calls] == ["start", "during", "end"]
    assert scenario.calls[0][1] is ReplayStatus.REPLAYING
    assert scenario.calls[2][1] is ReplayStatus.FINISHED
    assert local_harness.status_channel.history() == FULL_HISTORY
    assert local_harness.state is HarnessState.RUNNING


def test_teardown_resets_state_and_allows_a_new_session(local_harness: ReplayHarness) -> None:
    local_harness.run_test(RecordingScenario())
    local_harness.teardown()

    assert local_harness.state is HarnessState.IDLE
    assert local_harness.status is ReplayStatus.NONE
    assert local_harness.host is None
    assert not local_harness.game_thread.is_bound()

    scenario = RecordingScenario()
    local_harness.run_test(scenario)
    assert len(scenario.calls) == 3


def test_teardown_is_idempotent(local_harness: ReplayHarness) -> None:
    local_harness.teardown()
    local_harness.run_test(RecordingScenario())
    local_harness.teardown()
    local_harness.teardown()
    assert local_harness.state is HarnessState.IDLE


def test_run_test_is_rejected_while_running(local_harness: ReplayHarness) -> None:
    local_harness.start("Long")
    local_harness.wait_for_replay_start()

    with pytest.raises(HarnessStateError, match="already running"):
        local_harness.run_test(RecordingScenario())


def test_unknown_title_fails_before_preparing(local_harness: ReplayHarness) -> None:
    with pytest.raises(SessionNotFound, match="Missing"):
        local_harness.run_test(RecordingScenario(title="Missing"))

    assert local_harness.status_channel.history() == [ReplayStatus.NONE]
    # already reported by run_test, so teardown stays quiet
    local_harness.teardown()
    assert local_harness.host is None


def test_hook_failure_propagates_and_teardown_still_works(local_harness: ReplayHarness) -> None:
    with pytest.raises(AssertionError, match="start checkpoint mismatch"):
        local_harness.run_test(FailingStartScenario(title="Long"))

    local_harness.teardown()
    assert local_harness.state is HarnessState.IDLE
    assert local_harness.host is None


def test_host_failure_fails_run_test_fast(local_harness: ReplayHarness, monkeypatch) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)

    with pytest.raises(HostLifecycleFailure, match="initializing host"):
        local_harness.run_test(RecordingScenario(), headless=False)

    local_harness.teardown()


def test_checkpoint_helpers_require_a_running_session(local_harness: ReplayHarness) -> None:
    with pytest.raises(HarnessStateError, match="No session is running"):
        local_harness.wait_until(lambda: True)
    with pytest.raises(HarnessStateError):
        local_harness.wait_for_replay_end()


def test_cancel_unblocks_waits_and_stops_the_host(local_harness: ReplayHarness) -> None:
    local_harness.start("Long")
    local_harness.wait_for_replay_start()

    local_harness.cancel("enclosing test timed out")
    with pytest.raises(WaitCancelled, match="enclosing test timed out"):
        local_harness.wait_for_replay_end()

    local_harness.teardown()
    assert local_harness.host is None


def test_test_timeout_watchdog_cancels_the_session(local_config: HarnessConfig) -> None:
    env = ReplayHarness(local_config.with_overrides(test_timeout=0.3), game_thread=GameThread())
    try:
        env.start("Long")
        with pytest.raises(WaitCancelled, match="test timeout"):
            env.wait_for_replay_end()
    finally:
        env.teardown()


def test_open_main_menu_idles_until_teardown(local_harness: ReplayHarness) -> None:
    host = local_harness.open_main_menu()

    assert host.status is HostStatus.RUNNING
    assert isinstance(host.current_state, MainMenuState)
    assert local_harness.status is ReplayStatus.NONE

    local_harness.teardown()
    assert host.status is HostStatus.DISPOSED


def test_concurrent_harnesses_do_not_observe_each_other(local_config: HarnessConfig) -> None:
    first = ReplayHarness(local_config, game_thread=GameThread())
    second = ReplayHarness(local_config, game_thread=GameThread())
    try:
        first.start("Long")
        first.wait_for_replay_start()
        assert second.status is ReplayStatus.NONE

        second.start("Short")
        second.wait_for_replay_end()
        assert second.status_channel.history() == FULL_HISTORY
        assert first.status is ReplayStatus.REPLAYING
        assert first.host is not second.host
    finally:
        first.teardown()
        second.teardown()

    assert first.status is ReplayStatus.NONE
    assert second.status is ReplayStatus.NONE


def test_default_harnesses_run_concurrently(local_config: HarnessConfig) -> None:
    first = ReplayHarness(local_config)
    second = ReplayHarness(local_config)
    assert first.game_thread is not second.game_thread
    try:
        first.start("Long")
        first.wait_for_replay_start()

        scenario = RecordingScenario()
        second.run_test(scenario)
        second.teardown()

        assert [name for name, _ in scenario.calls] == ["start", "during", "end"]
        assert first.status is ReplayStatus.REPLAYING
        assert first.game_thread.is_bound()
        assert first.is_initialised()
    finally:
        first.teardown()
        second.teardown()

    assert not first.game_thread.is_bound()


@pytest.mark.parametrize("before_init", [True, False], ids=["before-initialize", "after-initialize"])
def test_teardown_during_host_startup_is_a_clean_stop(local_config: HarnessConfig, before_init: bool) -> None:
    game_thread = GameThread()
    hosts: list[StalledStartupHost] = []

    def factory(config: HostConfig) -> StalledStartupHost:
        host = StalledStartupHost(config, game_thread, before_init)
        hosts.append(host)
        return host

    env = ReplayHarness(local_config, host_factory=factory, game_thread=game_thread)
    env.start("Short")
    env.wait_until(lambda: bool(hosts) and hosts[0].stalled.is_set(), description="host startup to stall")

    env.teardown()

    assert env.state is HarnessState.IDLE
    assert env.status is ReplayStatus.NONE
    assert env.host is None
    assert hosts[0].status is HostStatus.DISPOSED


def test_teardown_failure_collects_errors_and_still_resets(local_config: HarnessConfig) -> None:
    game_thread = GameThread()
    env = ReplayHarness(local_config, host_factory=broken_cleanup_factory(game_thread), game_thread=game_thread)
    env.start("Long")
    env.wait_for_replay_start()

    with pytest.raises(TeardownFailure, match="audio device did not close") as excinfo:
        env.teardown()

    assert excinfo.value.errors
    assert any(isinstance(err, HostLifecycleFailure) for err in excinfo.value.errors)
    assert env.state is HarnessState.IDLE
    assert env.status is ReplayStatus.NONE
    assert env.host is None
    # nothing left to fail on a second pass
    env.teardown()


def test_hook_failure_keeps_priority_over_teardown_failure(local_config: HarnessConfig) -> None:
    game_thread = GameThread()
    env = AcceptanceHarness(
        FailingStartScenario(title="Long"),
        local_config,
        host_factory=broken_cleanup_factory(game_thread),
        game_thread=game_thread,
    )

    with pytest.raises(AssertionError, match="start checkpoint mismatch") as excinfo:
        env.run()

    notes = getattr(excinfo.value, "__notes__", [])
    assert any(note.startswith("Teardown also failed:") and "audio device did not close" in note for note in notes)
    assert env.state is HarnessState.IDLE
    assert env.host is None


def test_zero_timeout_is_not_replaced_by_the_default(local_harness: ReplayHarness) -> None:
    local_harness.start("Long")

    with pytest.raises(ValueError, match="must be > 0"):
        local_harness.wait_until(lambda: True, timeout=0)
    with pytest.raises(ValueError, match="must be > 0"):
        local_harness.wait_for_replay_end(timeout=0.0)


def test_teardown_leaves_no_watchdog_thread(local_config: HarnessConfig) -> None:
    env = ReplayHarness(local_config.with_overrides(test_timeout=30.0))
    env.start("Short")
    watchdogs = [t for t in threading.enumerate() if isinstance(t, threading.Timer) and t.is_alive()]
    assert watchdogs

    env.teardown()

    assert not any(t.is_alive() for t in watchdogs)
