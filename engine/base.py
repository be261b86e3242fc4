"""Host and game-state contracts consumed by the replay harness."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from engine.context import Context


class EngineInitializationError(RuntimeError):
    """Raised when a host or one of its subsystems cannot complete setup."""


class HostStatus(str, enum.Enum):
    """Externally visible host lifecycle status."""

    CREATED = "created"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    RUNNING = "running"
    DISPOSED = "disposed"


class GameState(ABC):
    """One host mode (menu, loading, in game).

    The host calls ``init`` when the state becomes current, ``update`` once per
    tick and ``dispose`` when it is replaced or the host cleans up.
    """

    @abstractmethod
    def init(self, host: Host) -> None:
        """Attach to ``host`` and prepare state-local resources."""

    @abstractmethod
    def update(self, delta: float) -> None:
        """Advance the state by one tick of ``delta`` seconds."""

    def dispose(self) -> None:
        """Release state-local resources."""

    @property
    def is_complete(self) -> bool:
        """True once the state has nothing left to simulate."""
        return False


class Host(ABC):
    """Simulation host driven by the harness controller thread.

    ``cleanup`` and ``shutdown`` must be safe to call in any status, including
    after a failed ``initialize``.
    """

    @property
    @abstractmethod
    def status(self) -> HostStatus:
        """Current lifecycle status."""

    @property
    @abstractmethod
    def context(self) -> Context:
        """Instance-local registry of engine services."""

    @abstractmethod
    def initialize(self) -> None:
        """Bring up subsystems; raises ``EngineInitializationError`` on failure."""

    @abstractmethod
    def change_state(self, state: GameState) -> bool:
        """Request a switch to ``state``; return True if the host accepted it."""

    @abstractmethod
    def tick(self) -> bool:
        """Advance one step; return False when the host should stop running."""

    @abstractmethod
    def cleanup(self) -> None:
        """Dispose the current state and subsystems."""

    @abstractmethod
    def shutdown(self) -> None:
        """Request the host to stop; dispose immediately if it is not ticking."""


class HostDisposalError(RuntimeError):
    """Raised when a state or subsystem fails while the host is being disposed."""
