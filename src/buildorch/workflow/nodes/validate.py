"""Validate node - scratch dir cleanliness and leak-check coverage."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from buildorch.core.config import State
from buildorch.core.log import logger
from buildorch.testing.validator import validate


@dataclass
class Validate(BaseNode[State, None, int]):
    async def run(self, ctx: GraphRunContext[State]) -> Coverage:
        config = ctx.state.config
        run = ctx.state.runtime.run

        with logger.span("validate"):
            validate(
                config.path(config.tests.scratch_dir),
                run.variant.profile.leak_check,
                run.outcome.exit_status,
                config.path(config.tests.log_dir),
                outcome=run.outcome,
                marker=config.tests.leak_check_marker,
                pattern=config.tests.leak_check_glob,
            )

        from buildorch.workflow.nodes.coverage import Coverage
        return Coverage()
