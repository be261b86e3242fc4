"""Replay of the "Example" recording: the character walks away from spawn."""

from __future__ import annotations

import numpy as np

from configs.loader import HarnessConfig
from engine.entities import LocalPlayer, LocationComponent, vector3f
from engine.thread import GameThread
from harness.acceptance import AcceptanceHarness
from harness.environment import ReplayHarness, ReplayScenario
from harness.status import ReplayStatus
from tests.support.recordings import EXAMPLE_CHECKPOINT_INDEX, EXAMPLE_END, EXAMPLE_START

START = vector3f(EXAMPLE_START)
END = vector3f(EXAMPLE_END)


def _character_location(harness: ReplayHarness) -> LocationComponent:
    player = harness.wait_for_service(LocalPlayer)
    harness.wait_until(player.is_valid, description="local player spawned")
    location = player.character.get_component(LocationComponent)
    assert location is not None
    return location


class ExampleScenario(ReplayScenario):
    title = "Example"

    def on_replay_start(self, harness: ReplayHarness) -> None:
        self.location = _character_location(harness)
        self.initial = self.location.get_local_position()
        assert np.array_equal(self.initial, START), f"start position {self.initial} != {START}"

    def during_replay(self, harness: ReplayHarness) -> None:
        harness.wait_for_event_index(EXAMPLE_CHECKPOINT_INDEX)
        assert not np.array_equal(self.location.get_local_position(), self.initial)

    def on_replay_end(self, harness: ReplayHarness) -> None:
        final = self.location.get_local_position()
        assert np.array_equal(final, END), f"final position {final} != {END}"


def test_example_acceptance(fast_config: HarnessConfig) -> None:
    AcceptanceHarness(ExampleScenario(), fast_config, game_thread=GameThread()).run()


def test_example_with_manual_checkpoints(harness: ReplayHarness) -> None:
    seen = [harness.status]

    harness.start("Example")
    harness.wait_for_replay_start()
    seen.append(harness.status)
    location = _character_location(harness)
    initial = location.get_local_position()
    assert np.array_equal(initial, START)

    harness.wait_for_event_index(EXAMPLE_CHECKPOINT_INDEX)
    seen.append(harness.status)
    assert not np.array_equal(location.get_local_position(), initial)

    harness.wait_for_replay_end()
    seen.append(harness.status)
    assert np.array_equal(location.get_local_position(), END)

    assert [status.rank for status in seen] == sorted(status.rank for status in seen)
    assert seen[-1] is ReplayStatus.FINISHED
