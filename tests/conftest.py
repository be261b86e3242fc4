"""Shared fixtures: fixture recordings, a fast config and a torn-down harness."""

from __future__ import annotations

from pathlib import Path

import pytest

from configs.loader import HarnessConfig
from engine.thread import GameThread
from harness.environment import ReplayHarness
from tests.support.recordings import write_standard_recordings


@pytest.fixture(scope="session")
def recordings_dir(tmp_path_factory) -> Path:
    return write_standard_recordings(tmp_path_factory.mktemp("recordings"))


@pytest.fixture()
def fast_config(recordings_dir: Path) -> HarnessConfig:
    return HarnessConfig(
        recordings_dir=recordings_dir,
        poll_interval=0.005,
        start_timeout=10.0,
        checkpoint_timeout=10.0,
        finish_timeout=30.0,
        join_timeout=10.0,
        tick_interval=0.001,
    )


@pytest.fixture()
def harness(fast_config: HarnessConfig):
    env = ReplayHarness(fast_config, game_thread=GameThread())
    yield env
    env.teardown()
