"""Recorded-event payloads and decoding for replay sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping


EVENT_KINDS: frozenset[str] = frozenset({"idle", "move", "destroy_block", "place_block", "damage"})


class RecordingFormatError(ValueError):
    """Raised when a recording manifest or events file is malformed."""


@dataclass(frozen=True)
class RecordedEvent:
    """One recorded input/event, replayed by the host in recorded order."""

    index: int
    kind: str
    data: dict[str, Any] = field(default_factory=dict)

    def vector(self, key: str) -> tuple[float, float, float]:
        """Return ``data[key]`` as a 3-tuple of floats."""
        return as_vector(self.data.get(key), f"event {self.index} field '{key}'")

    def cell(self, key: str = "cell") -> tuple[int, int, int]:
        """Return ``data[key]`` as an integer world cell."""
        raw = self.data.get(key)
        if not isinstance(raw, (list, tuple)) or len(raw) != 3:
            raise RecordingFormatError(f"event {self.index} field '{key}' must be a list of 3 integers")
        return int(raw[0]), int(raw[1]), int(raw[2])


def as_vector(raw: Any, label: str) -> tuple[float, float, float]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 3:
        raise RecordingFormatError(f"{label} must be a list of 3 numbers")
    try:
        return float(raw[0]), float(raw[1]), float(raw[2])
    except (TypeError, ValueError) as exc:
        raise RecordingFormatError(f"{label} must be a list of 3 numbers") from exc


def decode_event(index: int, payload: Mapping[str, Any]) -> RecordedEvent:
    """Validate one raw event mapping and build a ``RecordedEvent``."""
    if not isinstance(payload, Mapping):
        raise RecordingFormatError(f"event {index} must be a mapping")
    kind = payload.get("kind")
    if kind not in EVENT_KINDS:
        raise RecordingFormatError(
            f"event {index} has unknown kind {kind!r}. Known kinds: {', '.join(sorted(EVENT_KINDS))}"
        )
    data = {str(k): v for k, v in payload.items() if k != "kind"}
    event = RecordedEvent(index=index, kind=str(kind), data=data)

    # validate eagerly so a bad recording fails while loading, not mid-replay
    if event.kind == "move":
        event.vector("position")
    elif event.kind in {"destroy_block", "place_block"}:
        event.cell()
        if event.kind == "place_block" and not isinstance(data.get("block"), str):
            raise RecordingFormatError(f"event {index} field 'block' must be a string")
    elif event.kind == "damage":
        try:
            int(data.get("amount", 0))
        except (TypeError, ValueError) as exc:
            raise RecordingFormatError(f"event {index} field 'amount' must be an integer") from exc
    return event


def read_events(path: str | Path) -> list[RecordedEvent]:
    """Read and decode a JSON list of recorded events."""
    events_path = Path(path)
    if not events_path.exists():
        raise RecordingFormatError(f"Events file not found: {events_path}")
    try:
        payload = json.loads(events_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RecordingFormatError(f"Failed to parse events file '{events_path}': {exc}") from exc
    if not isinstance(payload, list):
        raise RecordingFormatError("Events file must contain a list of events.")
    return [decode_event(index, item) for index, item in enumerate(payload)]
