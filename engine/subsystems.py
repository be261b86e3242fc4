"""Engine subsystems for headless and headed hosts."""

from __future__ import annotations

import logging
import os
import time
from abc import ABC
from dataclasses import dataclass, field

from engine.base import EngineInitializationError
from engine.context import Context

LOGGER = logging.getLogger(__name__)

HEADLESS_STEP = 1.0 / 60.0


@dataclass
class ActiveBackends:
    """Which backend serves each subsystem kind on a host."""

    by_kind: dict[str, str] = field(default_factory=dict)

    @property
    def headless(self) -> bool:
        return bool(self.by_kind) and all(name.startswith("headless") for name in self.by_kind.values())


class EngineTime:
    """Game clock advanced once per host tick."""

    def __init__(self, fixed_step: float | None) -> None:
        self.fixed_step = fixed_step
        self.game_time = 0.0
        self._last = time.monotonic()

    def step(self) -> float:
        """Advance the clock and return the tick delta in seconds."""
        if self.fixed_step is not None:
            delta = self.fixed_step
        else:
            now = time.monotonic()
            delta = now - self._last
            self._last = now
        self.game_time += delta
        return delta


class Subsystem(ABC):
    """One engine backend. ``shutdown`` is idempotent."""

    kind = "generic"
    backend = "none"

    def __init__(self) -> None:
        self.initialized = False

    def initialize(self, context: Context) -> None:
        backends = context.get(ActiveBackends) or context.put(ActiveBackends, ActiveBackends())
        backends.by_kind[self.kind] = self.backend
        self.initialized = True

    def pre_update(self, delta: float) -> None:
        """Per-tick hook before the game state updates."""

    def shutdown(self) -> None:
        self.initialized = False


class HeadlessGraphics(Subsystem):
    kind = "graphics"
    backend = "headless-graphics"


class HeadlessAudio(Subsystem):
    kind = "audio"
    backend = "headless-audio"


class HeadlessInput(Subsystem):
    kind = "input"
    backend = "headless-input"


class HeadlessTimer(Subsystem):
    """Fixed-step clock so headless runs advance identically on any machine."""

    kind = "timer"
    backend = "headless-timer"

    def initialize(self, context: Context) -> None:
        super().initialize(context)
        context.put(EngineTime, EngineTime(fixed_step=HEADLESS_STEP))


class DisplayGraphics(Subsystem):
    """Windowed graphics; needs a display server."""

    kind = "graphics"
    backend = "display-graphics"

    def initialize(self, context: Context) -> None:
        if not (os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")):
            raise EngineInitializationError("Headed graphics requested but no DISPLAY or WAYLAND_DISPLAY is set.")
        super().initialize(context)


class DeviceAudio(Subsystem):
    kind = "audio"
    backend = "device-audio"


class DeviceInput(Subsystem):
    kind = "input"
    backend = "device-input"


class WallClockTimer(Subsystem):
    kind = "timer"
    backend = "wall-clock-timer"

    def initialize(self, context: Context) -> None:
        super().initialize(context)
        context.put(EngineTime, EngineTime(fixed_step=None))


def headless_subsystems() -> list[Subsystem]:
    return [HeadlessGraphics(), HeadlessTimer(), HeadlessAudio(), HeadlessInput()]


def headed_subsystems() -> list[Subsystem]:
    return [DisplayGraphics(), WallClockTimer(), DeviceAudio(), DeviceInput()]
