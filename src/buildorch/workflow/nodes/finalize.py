"""Finalize node - report every failure category and end the run."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from buildorch.core.config import State
from buildorch.core.log import logger


@dataclass
class Finalize(BaseNode[State, None, int]):
    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        run = ctx.state.runtime.run
        outcome = run.outcome

        for failure in outcome.failures:
            logger.error(
                f"{failure.phase}: {failure.detail}",
                phase=failure.phase,
                status=failure.status,
                artifacts=failure.artifacts,
            )

        if outcome.passed:
            logger.info("Build and tests passed")
        else:
            logger.error(
                f"Run failed with status {outcome.exit_status}",
                phases=outcome.failed_phases(),
                cleaned_up=outcome.cleaned_up,
                leak_check_ok=outcome.leak_check_ok,
            )
        run.status = "complete"
        return End(outcome.exit_status)
