"""Read-only lookup of recorded replay sessions by title."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from recording.events import RecordedEvent, RecordingFormatError, as_vector, read_events

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.yaml"
EVENTS_NAME = "events.json"
DEFAULT_SPAWN: tuple[float, float, float] = (0.0, 0.41, 0.0)
DEFAULT_HEALTH = 20


class SessionNotFound(LookupError):
    """Raised when no recording matches the requested title."""


@dataclass(frozen=True)
class SessionDescriptor:
    """Resolved recording manifest: everything the host needs to load a session."""

    title: str
    seed: int
    path: Path
    spawn: tuple[float, float, float] = DEFAULT_SPAWN
    health: int = DEFAULT_HEALTH
    trees: tuple[tuple[int, int, int], ...] = field(default_factory=tuple)

    @property
    def events_path(self) -> Path:
        return self.path / EVENTS_NAME

    def load_events(self) -> list[RecordedEvent]:
        """Decode this recording's event stream."""
        return read_events(self.events_path)


class RecordingStore:
    """Lists and resolves recordings stored as ``<root>/<folder>/manifest.yaml``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def list_recordings(self) -> list[SessionDescriptor]:
        """Return descriptors for every readable recording, sorted by title.

        A folder whose manifest cannot be read or validated is logged and
        skipped, so one broken recording never hides the others.
        """
        if not self.root.is_dir():
            return []
        descriptors: list[SessionDescriptor] = []
        for folder in sorted(p for p in self.root.iterdir() if p.is_dir()):
            manifest_path = folder / MANIFEST_NAME
            if not manifest_path.exists():
                continue
            try:
                descriptors.append(load_manifest(manifest_path))
            except (RecordingFormatError, OSError) as exc:
                LOGGER.warning("Skipping unreadable recording in %s: %s", folder, exc)
        descriptors.sort(key=lambda d: d.title)
        return descriptors

    def titles(self) -> list[str]:
        return [descriptor.title for descriptor in self.list_recordings()]

    def resolve(self, title: str) -> SessionDescriptor:
        """Return the recording whose manifest title equals ``title``."""
        recordings = self.list_recordings()
        for descriptor in recordings:
            if descriptor.title == title:
                LOGGER.info("Resolved recording '%s' at %s", title, descriptor.path)
                return descriptor

        available = ", ".join(d.title for d in recordings) or "<none>"
        raise SessionNotFound(f"No recording found with title '{title}'. Available recordings: {available}")


def load_manifest(path: str | Path) -> SessionDescriptor:
    """Parse and validate one recording manifest."""
    manifest_path = Path(path)
    try:
        payload = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise RecordingFormatError(f"Failed to parse manifest '{manifest_path}': {exc}") from exc

    if not isinstance(payload, Mapping):
        raise RecordingFormatError(f"Manifest '{manifest_path}' must contain a mapping.")
    return _validate_and_build(payload, manifest_path.parent)


def _validate_and_build(payload: Mapping[str, Any], folder: Path) -> SessionDescriptor:
    missing = [key for key in ("title", "seed") if key not in payload]
    if missing:
        raise RecordingFormatError(f"Manifest in '{folder}' missing required key(s): {', '.join(missing)}")

    title = payload["title"]
    if not isinstance(title, str) or not title:
        raise RecordingFormatError(f"Manifest in '{folder}': 'title' must be a non-empty string")
    try:
        seed = int(payload["seed"])
        health = int(payload.get("health", DEFAULT_HEALTH))
    except (TypeError, ValueError) as exc:
        raise RecordingFormatError(f"Manifest in '{folder}': 'seed' and 'health' must be integers") from exc

    spawn = as_vector(payload.get("spawn", list(DEFAULT_SPAWN)), f"manifest '{title}' field 'spawn'")

    trees: list[tuple[int, int, int]] = []
    for raw in payload.get("trees") or []:
        if not isinstance(raw, (list, tuple)) or len(raw) != 3:
            raise RecordingFormatError(f"Manifest '{title}': each tree must be a list of 3 integers")
        try:
            trees.append((int(raw[0]), int(raw[1]), int(raw[2])))
        except (TypeError, ValueError) as exc:
            raise RecordingFormatError(f"Manifest '{title}': tree {raw!r} must be 3 integers") from exc

    return SessionDescriptor(
        title=title,
        seed=seed,
        path=folder,
        spawn=spawn,
        health=health,
        trees=tuple(trees),
    )
