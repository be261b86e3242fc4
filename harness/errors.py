"""Harness-level failures."""

from __future__ import annotations

from typing import Sequence


class HostLifecycleFailure(RuntimeError):
    """Raised at join time for any unexpected failure inside the host thread."""


class HarnessStateError(RuntimeError):
    """Raised when a harness operation is used in the wrong lifecycle state."""


class TeardownFailure(RuntimeError):
    """Raised when one or more teardown steps fail; all steps still ran."""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors = list(errors)
        details = "; ".join(f"{type(err).__name__}: {err}" for err in self.errors)
        super().__init__(f"Teardown failed with {len(self.errors)} error(s): {details}")
