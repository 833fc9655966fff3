"""FetchFlaky node - learn which tests may be retried or re-run."""

from __future__ import annotations

import shlex
from dataclasses import dataclass

import httpx
from pydantic_graph import BaseNode, GraphRunContext

from buildorch.core.config import State
from buildorch.core.errors import ConfigurationError
from buildorch.core.log import logger
from buildorch.testing.flaky import (
    build_filter,
    list_flaky_tests,
    maybe_fetch_flaky_list,
)

FLAKY_LIST_FILE = "build/flaky-tests.txt"


@dataclass
class FetchFlaky(BaseNode[State, None, int]):
    """Apply flaky-test resistance and flaky-only selection."""

    async def run(self, ctx: GraphRunContext[State]) -> Build:
        tests = ctx.state.config.tests
        run = ctx.state.runtime.run
        list_path = ctx.state.config.path(FLAKY_LIST_FILE)
        prefix = tests.env_prefix

        with logger.span("fetch-flaky", attempts=tests.flaky_attempts):
            if tests.flaky_only:
                self._select_flaky_only(ctx.state)

            run.flaky = maybe_fetch_flaky_list(
                tests.flaky_attempts,
                tests.result_server,
                days=tests.flaky_days,
                build_pattern=tests.flaky_build_pattern,
            )
            run.test_env[f"{prefix}_FLAKY_TEST_ATTEMPTS"] = str(run.flaky.attempts)
            if run.flaky.fetched:
                run.flaky.write(list_path)
                run.test_env[f"{prefix}_FLAKY_TEST_LIST"] = str(list_path)

        from buildorch.workflow.nodes.build import Build
        return Build()

    @staticmethod
    def _select_flaky_only(state: State):
        """Restrict the test run to recently failed tests.

        Without the list there is nothing meaningful to run, so any
        failure to obtain it aborts the run.
        """
        tests = state.config.tests
        run = state.runtime.run
        if not tests.result_server:
            raise ConfigurationError(
                "A test result server must be configured to run "
                "flaky tests only"
            )
        try:
            names = list_flaky_tests(
                tests.result_server, tests.flaky_days, tests.flaky_build_pattern
            )
        except httpx.HTTPError as e:
            raise ConfigurationError(
                f"Unable to fetch flaky test list from "
                f"{tests.result_server}: {e}"
            ) from e

        logger.info("Running flaky tests only", tests=list(names))
        # An empty list must select nothing, not everything
        regex = build_filter(names) if names else "^$"
        run.test_filter = f"-R {shlex.quote(regex)}"
        # Flaky detection does not cover the Java suite
        run.secondary_enabled = False
        logger.info("Disabling secondary test suite in flaky-only mode")
