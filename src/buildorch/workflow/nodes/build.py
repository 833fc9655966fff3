"""Build node - compile the tree for the resolved variant."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from buildorch.core.config import State
from buildorch.core.log import logger
from buildorch.core.runner import Runner


@dataclass
class Build(BaseNode[State, None, int]):
    """Set the build type, clean, and run make.

    This is the last phase allowed to stop the run: a failed compile
    ends it with make's status. Everything after it always runs.
    """

    async def run(self, ctx: GraphRunContext[State]) -> RunTests | End[int]:
        config = ctx.state.config
        run = ctx.state.runtime.run
        runner = Runner()
        env = config.tool_env()
        if run.compiler is not None:
            env.update(CC=run.compiler.cc, CXX=run.compiler.cxx)

        with logger.span("build", subtype=run.variant.profile.build_subtype):
            steps = [
                ("build_type", config.command(
                    "build_type", build_type=run.variant.profile.build_subtype
                )),
                ("clean", config.command("clean")),
            ]
            for phase, command in steps:
                result = runner.execute(
                    command,
                    cwd=config.build.source_root,
                    env=env,
                    log_level="spew",
                    check=False,
                )
                if result.exited != 0:
                    return self._fail(ctx.state, phase, result.exited)

            # Tests leave lots of data lying around
            self._empty_scratch_dir(ctx.state)

            log_file = config.build.source_root / "build.log"
            logger.info(f"Building with {config.build.num_procs} jobs")
            result = runner.execute(
                config.command("build", num_procs=config.build.num_procs),
                cwd=config.build.source_root,
                env=env,
                timeout=config.build.timeout,
                log_file=log_file,
                log_level="spew",
                check=False,
            )
            if result.exited != 0:
                return self._fail(ctx.state, "build", result.exited, log_file)

            run.status = "built"

        from buildorch.workflow.nodes.run_tests import RunTests
        return RunTests()

    @staticmethod
    def _fail(state: State, phase: str, status: int, log_file=None) -> End[int]:
        logger.error(
            f"{phase} step failed; not running tests",
            phase=phase,
            status=status,
            log=str(log_file) if log_file else None,
        )
        state.runtime.run.outcome.record(
            phase, status, artifacts=[str(log_file)] if log_file else None
        )
        state.runtime.run.status = "aborted"
        return End(status)

    @staticmethod
    def _empty_scratch_dir(state: State):
        scratch_dir = state.config.path(state.config.tests.scratch_dir)
        if not scratch_dir.is_dir():
            return
        for entry in scratch_dir.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
