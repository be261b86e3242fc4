"""Replay of the "DirtBreak" recording: two dirt blocks are dug out."""

from __future__ import annotations

from configs.loader import HarnessConfig
from engine.thread import GameThread
from engine.world import BlockType, WorldProvider
from harness.acceptance import AcceptanceHarness
from harness.environment import ReplayHarness, ReplayScenario
from harness.status import ReplayStatus
from tests.support.recordings import DIRT_BREAK_CELLS


class DirtBreakScenario(ReplayScenario):
    title = "DirtBreak"

    def on_replay_start(self, harness: ReplayHarness) -> None:
        self.world = harness.wait_for_service(WorldProvider)
        harness.wait_until(
            lambda: all(self.world.is_loaded(cell) for cell in DIRT_BREAK_CELLS),
            description="dig site chunks loaded",
        )
        assert harness.status is not ReplayStatus.FINISHED
        for cell in DIRT_BREAK_CELLS:
            assert self.world.get_block(cell) == BlockType.DIRT, f"{cell} before digging"

    def during_replay(self, harness: ReplayHarness) -> None:
        pass

    def on_replay_end(self, harness: ReplayHarness) -> None:
        for cell in DIRT_BREAK_CELLS:
            assert self.world.get_block(cell) == BlockType.AIR, f"{cell} after digging"


def test_dirt_break(fast_config: HarnessConfig) -> None:
    AcceptanceHarness(DirtBreakScenario(), fast_config, game_thread=GameThread()).run()
