"""RecoverReports node - give crashed tests a JUnit report."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from buildorch.core.config import State
from buildorch.core.log import logger
from buildorch.testing.recovery import recover_missing_reports
from buildorch.testing.results import attach_reports


@dataclass
class RecoverReports(BaseNode[State, None, int]):
    async def run(self, ctx: GraphRunContext[State]) -> Validate:
        config = ctx.state.config
        run = ctx.state.runtime.run
        log_dir = config.path(config.tests.log_dir)

        with logger.span("recover-reports"):
            created = recover_missing_reports(log_dir)
            run.recovered = created
            attach_reports(run.results, created)
            if created:
                logger.warn(
                    f"Synthesized {len(created)} JUnit report(s)",
                    reports=[path.name for path in created],
                )

        from buildorch.workflow.nodes.validate import Validate
        return Validate()
