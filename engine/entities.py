"""Minimal entity/component model for the replayed character."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Iterable, TypeVar

import numpy as np

T = TypeVar("T")

_ENTITY_IDS = itertools.count(1)


def vector3f(values: Iterable[float]) -> np.ndarray:
    """Build a 32-bit float position vector."""
    vector = np.asarray(list(values), dtype=np.float32)
    if vector.shape != (3,):
        raise ValueError(f"Expected 3 components, got shape {vector.shape}")
    return vector


@dataclass
class LocationComponent:
    """World position stored as ``float32`` so values match recorded floats exactly."""

    position: np.ndarray = field(default_factory=lambda: vector3f((0.0, 0.0, 0.0)))

    def get_local_position(self) -> np.ndarray:
        return self.position.copy()

    def set_local_position(self, values: Iterable[float]) -> None:
        self.position = vector3f(values)


@dataclass
class HealthComponent:
    max_health: int = 20
    current_health: int = 20


class EntityRef:
    """Entity handle holding components keyed by type."""

    def __init__(self, *components: Any) -> None:
        self.id = next(_ENTITY_IDS)
        self._components: dict[type, Any] = {}
        for component in components:
            self.add_component(component)

    def add_component(self, component: T) -> T:
        self._components[type(component)] = component
        return component

    def get_component(self, kind: type[T]) -> T | None:
        return self._components.get(kind)

    def has_component(self, kind: type) -> bool:
        return kind in self._components

    def __repr__(self) -> str:
        names = ", ".join(sorted(kind.__name__ for kind in self._components))
        return f"EntityRef(id={self.id}, components=[{names}])"


class LocalPlayer:
    """The player replayed by the recording; valid once its character spawns."""

    def __init__(self) -> None:
        self._character: EntityRef | None = None

    def attach(self, character: EntityRef) -> None:
        self._character = character

    def is_valid(self) -> bool:
        return self._character is not None

    @property
    def character(self) -> EntityRef:
        if self._character is None:
            raise LookupError("Local player has no character entity yet.")
        return self._character
