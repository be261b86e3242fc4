"""Host composition from headless or headed subsystem sets."""

from __future__ import annotations

import logging

from engine.base import EngineInitializationError
from engine.host import HostConfig, ReplayHost
from engine.subsystems import Subsystem, headed_subsystems, headless_subsystems
from engine.thread import GAME_THREAD, GameThread

LOGGER = logging.getLogger(__name__)


class HostBuilder:
    """Collects subsystems, one per kind, and builds a ``ReplayHost``."""

    def __init__(self) -> None:
        self._subsystems: list[Subsystem] = []

    def add(self, subsystem: Subsystem) -> HostBuilder:
        if any(existing.kind == subsystem.kind for existing in self._subsystems):
            raise EngineInitializationError(f"A '{subsystem.kind}' subsystem is already registered.")
        self._subsystems.append(subsystem)
        return self

    def build(self, config: HostConfig, game_thread: GameThread = GAME_THREAD) -> ReplayHost:
        return ReplayHost(self._subsystems, config=config, game_thread=game_thread)


def build_host(config: HostConfig, game_thread: GameThread = GAME_THREAD) -> ReplayHost:
    """Build a host with the headless or headed backend set ``config`` selects."""
    builder = HostBuilder()
    for subsystem in headless_subsystems() if config.headless else headed_subsystems():
        builder.add(subsystem)
    LOGGER.info("Building %s host", "headless" if config.headless else "headed")
    return builder.build(config, game_thread=game_thread)
