"""Coverage node - gcovr XML report for coverage builds."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from buildorch.build.variant import PostAction
from buildorch.core.config import State
from buildorch.core.log import logger
from buildorch.core.runner import Runner

COVERAGE_REPORT = "build/coverage.xml"


@dataclass
class Coverage(BaseNode[State, None, int]):
    async def run(self, ctx: GraphRunContext[State]) -> SecondaryTests:
        config = ctx.state.config
        run = ctx.state.runtime.run

        if run.variant.profile.post_action == PostAction.GENERATE_COVERAGE:
            report = config.path(COVERAGE_REPORT)
            with logger.span("coverage", report=str(report)):
                logger.info("Generating coverage report...")
                result = Runner().execute(
                    config.command("coverage"),
                    cwd=config.build.source_root,
                    env=config.tool_env(),
                    check=False,
                )
                report.parent.mkdir(parents=True, exist_ok=True)
                report.write_text(result.stdout)
                if result.exited != 0:
                    logger.error(
                        "Coverage report generation failed",
                        status=result.exited,
                        stderr=result.stderr[-2000:],
                    )
                run.outcome.record(
                    "coverage", result.exited, artifacts=[str(report)]
                )

        from buildorch.workflow.nodes.secondary_tests import SecondaryTests
        return SecondaryTests()
