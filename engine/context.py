"""Instance-local typed service registry for one host."""

from __future__ import annotations

import threading
from typing import Any, TypeVar

T = TypeVar("T")


class Context:
    """Maps service types to instances. Each host owns its own context."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[type, Any] = {}

    def put(self, kind: type[T], service: T) -> T:
        with self._lock:
            self._services[kind] = service
        return service

    def get(self, kind: type[T]) -> T | None:
        with self._lock:
            return self._services.get(kind)

    def require(self, kind: type[T]) -> T:
        """Return the registered ``kind`` or raise ``LookupError``."""
        service = self.get(kind)
        if service is None:
            raise LookupError(f"No {kind.__name__} registered in host context.")
        return service

    def clear(self) -> None:
        with self._lock:
            self._services.clear()

    def __contains__(self, kind: type) -> bool:
        with self._lock:
            return kind in self._services
