"""Replay event system: applies recorded events to the world, one per tick."""

from __future__ import annotations

import logging
from typing import Sequence

from engine.entities import HealthComponent, LocalPlayer, LocationComponent
from engine.world import BlockType, WorldProvider
from recording.events import RecordedEvent

LOGGER = logging.getLogger(__name__)


class ReplayEventSystem:
    """Plays back a recorded event stream in order.

    ``last_recorded_event_index`` is the index of the most recently applied
    event (-1 before the first). It is written only by the engine thread.
    """

    def __init__(self, events: Sequence[RecordedEvent], world: WorldProvider, player: LocalPlayer) -> None:
        self._events = list(events)
        self._world = world
        self._player = player
        self._next = 0
        self.last_recorded_event_index = -1

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def is_exhausted(self) -> bool:
        return self._next >= len(self._events)

    def process_next(self) -> RecordedEvent | None:
        """Apply the next recorded event, if any."""
        if self.is_exhausted:
            return None
        event = self._events[self._next]
        self._apply(event)
        self._next += 1
        self.last_recorded_event_index = event.index
        return event

    def _apply(self, event: RecordedEvent) -> None:
        if event.kind == "idle":
            return
        if event.kind == "move":
            location = self._player.character.get_component(LocationComponent)
            if location is None:
                raise LookupError("Character has no LocationComponent to move.")
            location.set_local_position(event.vector("position"))
        elif event.kind == "destroy_block":
            previous = self._world.set_block(event.cell(), BlockType.AIR)
            LOGGER.debug("Event %d destroyed %s at %s", event.index, previous, event.cell())
        elif event.kind == "place_block":
            self._world.set_block(event.cell(), str(event.data["block"]))
        elif event.kind == "damage":
            health = self._player.character.get_component(HealthComponent)
            if health is None:
                raise LookupError("Character has no HealthComponent to damage.")
            health.current_health = max(0, health.current_health - int(event.data.get("amount", 0)))
