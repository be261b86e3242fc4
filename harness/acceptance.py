"""One-call replay acceptance tests."""

from __future__ import annotations

import logging

from configs.loader import HarnessConfig
from harness.environment import ReplayHarness, ReplayScenario

LOGGER = logging.getLogger(__name__)


class AcceptanceHarness(ReplayHarness):
    """Runs a scenario's three checkpoints and always tears down.

    Usage::

        AcceptanceHarness(ExampleScenario(), config).run()
    """

    def __init__(self, scenario: ReplayScenario | None = None, config: HarnessConfig | None = None, **kwargs) -> None:
        super().__init__(config, **kwargs)
        self.scenario = scenario

    def run(self, scenario: ReplayScenario | None = None, title: str | None = None) -> None:
        scenario = scenario or self.scenario
        if scenario is None:
            raise ValueError("AcceptanceHarness.run needs a scenario.")
        try:
            self.run_test(scenario, title=title)
        except BaseException as primary:
            try:
                self.teardown()
            except Exception as secondary:
                LOGGER.error("Teardown after a failed replay test also failed: %s", secondary)
                primary.add_note(f"Teardown also failed: {secondary}")
            raise
        self.teardown()
