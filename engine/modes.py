"""Host game states: main menu, session loading and in-game replay."""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import TYPE_CHECKING

from engine.base import GameState
from engine.entities import EntityRef, HealthComponent, LocalPlayer, LocationComponent, vector3f
from engine.events import ReplayEventSystem
from engine.world import FlatWorldGenerator, WorldGenerationSettings, WorldProvider, chunks_around
from recording.events import RecordedEvent
from recording.store import SessionDescriptor

if TYPE_CHECKING:
    from engine.host import ReplayHost

LOGGER = logging.getLogger(__name__)


class MainMenuState(GameState):
    """Idle menu; the host sits here until told to load a session."""

    def init(self, host: ReplayHost) -> None:
        self.ticks = 0

    def update(self, delta: float) -> None:
        self.ticks += 1


class LoadingState(GameState):
    """Prepares a recorded session, spread over several ticks.

    Tick 1 decodes the events and creates the world from the manifest. Later
    ticks load ``chunk_load_rate`` chunks each around the spawn point. Once all
    are loaded the character spawns and the host switches to ``InGameState``.
    """

    def __init__(self, descriptor: SessionDescriptor) -> None:
        self._descriptor: SessionDescriptor | None = descriptor
        self._host: ReplayHost | None = None
        self._events: list[RecordedEvent] = []
        self._pending_chunks: deque = deque()
        self._spawn: tuple[float, float, float] = descriptor.spawn
        self._health = descriptor.health
        self.title = descriptor.title

    def init(self, host: ReplayHost) -> None:
        self._host = host

    def update(self, delta: float) -> None:
        host = self._require_host()
        if self._descriptor is not None:
            self._prepare(host, self._descriptor)
            # the manifest is not needed past this point
            self._descriptor = None
            return

        if self._pending_chunks:
            world = host.context.require(WorldProvider)
            for _ in range(min(host.config.chunk_load_rate, len(self._pending_chunks))):
                world.load_chunk(self._pending_chunks.popleft())
            return

        self._spawn_player(host)

    def _prepare(self, host: ReplayHost, descriptor: SessionDescriptor) -> None:
        self._events = descriptor.load_events()
        settings = WorldGenerationSettings(seed=descriptor.seed, world_title=descriptor.title)
        host.context.put(WorldGenerationSettings, settings)
        host.context.put(LocalPlayer, LocalPlayer())
        host.context.put(
            WorldProvider,
            WorldProvider(FlatWorldGenerator(seed=descriptor.seed, trees=descriptor.trees)),
        )
        spawn_cell = (math.floor(self._spawn[0]), math.floor(self._spawn[1]), math.floor(self._spawn[2]))
        self._pending_chunks.extend(chunks_around(spawn_cell, host.config.view_distance))
        LOGGER.info(
            "Loading '%s' (seed=%d, %d events, %d chunks)",
            descriptor.title,
            descriptor.seed,
            len(self._events),
            len(self._pending_chunks),
        )

    def _spawn_player(self, host: ReplayHost) -> None:
        character = EntityRef(
            LocationComponent(vector3f(self._spawn)),
            HealthComponent(max_health=self._health, current_health=self._health),
        )
        player = host.context.require(LocalPlayer)
        player.attach(character)

        event_system = ReplayEventSystem(self._events, host.context.require(WorldProvider), player)
        host.context.put(ReplayEventSystem, event_system)
        LOGGER.info("Session '%s' loaded; character spawned at %s", self.title, self._spawn)
        host.change_state(InGameState(event_system))

    def _require_host(self) -> ReplayHost:
        if self._host is None:
            raise RuntimeError("LoadingState used before init().")
        return self._host


class InGameState(GameState):
    """Replays one recorded event per tick until the stream is exhausted."""

    def __init__(self, event_system: ReplayEventSystem) -> None:
        self.event_system = event_system

    def init(self, host: ReplayHost) -> None:
        LOGGER.info("Replaying %d recorded events", self.event_system.event_count)

    def update(self, delta: float) -> None:
        self.event_system.process_next()

    @property
    def is_complete(self) -> bool:
        return self.event_system.is_exhausted
