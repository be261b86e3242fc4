"""Replay lifecycle status and the channel that carries it across threads."""

from __future__ import annotations

import enum
import logging
import threading

LOGGER = logging.getLogger(__name__)


class ReplayStatus(str, enum.Enum):
    """Lifecycle stage of one replay session, in order."""

    NONE = "none"
    PREPARING = "preparing"
    REPLAYING = "replaying"
    FINISHED = "finished"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)


_ORDER: tuple[ReplayStatus, ...] = (
    ReplayStatus.NONE,
    ReplayStatus.PREPARING,
    ReplayStatus.REPLAYING,
    ReplayStatus.FINISHED,
)


class InvalidStatusTransition(AssertionError):
    """Raised when a status write would skip or regress a stage."""


class StatusChannel:
    """Thread-safe holder of the current ``ReplayStatus``.

    Written by the host thread, read by the verifier thread. ``set`` only
    accepts the next stage in order; anything else is a programming error in
    the writer and raises ``InvalidStatusTransition``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status = ReplayStatus.NONE
        self._history: list[ReplayStatus] = [ReplayStatus.NONE]

    def get(self) -> ReplayStatus:
        with self._lock:
            return self._status

    def set(self, status: ReplayStatus) -> None:
        with self._lock:
            current = self._status
            if status.rank != current.rank + 1:
                raise InvalidStatusTransition(
                    f"Illegal replay status transition {current.name} -> {status.name}"
                )
            self._status = status
            self._history.append(status)
        LOGGER.info("Replay status %s -> %s", current.name, status.name)

    def reset(self) -> None:
        with self._lock:
            self._status = ReplayStatus.NONE
            self._history = [ReplayStatus.NONE]

    def history(self) -> list[ReplayStatus]:
        """Every status set since the last reset, oldest first."""
        with self._lock:
            return list(self._history)
