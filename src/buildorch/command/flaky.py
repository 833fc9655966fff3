"""Flaky command - show what the result server considers flaky."""

from __future__ import annotations

import httpx
from pydantic import BaseModel, ConfigDict, Field

from buildorch.core.log import logger
from buildorch.testing.flaky import build_filter, list_flaky_tests


class FlakyCommand(BaseModel):
    """Print recently failed tests, one per line, or as a ctest filter."""

    model_config = ConfigDict(populate_by_name=True)

    as_filter: bool = Field(
        default=False,
        alias="filter",
        description="Print a single ctest -R regex instead of names",
    )

    async def run_workflow(self, state: "State") -> int:
        tests = state.config.tests
        if not tests.result_server:
            logger.error("No test result server configured")
            return 1
        try:
            names = list_flaky_tests(
                tests.result_server, tests.flaky_days, tests.flaky_build_pattern
            )
        except httpx.HTTPError as e:
            logger.error("Unable to fetch flaky test list", error=str(e))
            return 1

        if self.as_filter:
            print(build_filter(names))
        else:
            for name in names:
                print(name)
        return 0
