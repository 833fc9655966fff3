"""Configure node - resolve the variant, pick a compiler, run cmake."""

from __future__ import annotations

import os
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from buildorch.build.toolchain import discover_compilers, select_compiler
from buildorch.build.variant import (
    BuildVariant,
    EnvironmentDefaults,
    PostAction,
    resolve,
)
from buildorch.core.config import State
from buildorch.core.log import logger
from buildorch.core.runner import Runner


@dataclass
class Configure(BaseNode[State, None, int]):
    """Turn the requested variant into a configured build tree.

    LINT ends the run here with the lint status.
    """

    async def run(self, ctx: GraphRunContext[State]) -> FetchFlaky | End[int]:
        config = ctx.state.config
        run = ctx.state.runtime.run
        runner = Runner()

        with logger.span("configure", variant=config.build.variant):
            variant = resolve(
                config.build.variant,
                EnvironmentDefaults(
                    allow_slow_tests=config.tests.allow_slow_tests
                ),
            )
            run.variant = variant
            logger.info(
                f"Build variant {variant.name}",
                subtype=variant.profile.build_subtype,
                allow_slow_tests=variant.allow_slow_tests,
            )

            env = config.tool_env()
            if variant.profile.override_compiler:
                search_path = env["PATH"].split(os.pathsep)
                candidates = discover_compilers(
                    config.build.compiler,
                    search_path,
                    runner,
                    config.commands.get("compiler_version", "{compiler} -v"),
                )
                run.compiler = select_compiler(
                    candidates, config.build.compiler, search_path
                )
                env.update(CC=run.compiler.cc, CXX=run.compiler.cxx)

            if variant.profile.post_action == PostAction.LINT_ONLY:
                return End(self._lint(runner, ctx.state, env))

            options = variant.cmake_options(config.build.cmake_option_prefix)
            if options or variant.profile.override_compiler:
                result = runner.execute(
                    config.command("configure", options=" ".join(options)),
                    cwd=config.build.source_root,
                    env=env,
                    log_level="spew",
                    check=False,
                )
                if result.exited != 0:
                    logger.error(
                        "cmake configuration failed",
                        phase="configure", status=result.exited,
                    )
                    run.status = "aborted"
                    return End(result.exited)

            if variant.variant == BuildVariant.COVERAGE:
                self._reset_coverage_data(ctx.state)

            run.status = "configured"

        from buildorch.workflow.nodes.fetch_flaky import FetchFlaky
        return FetchFlaky()

    @staticmethod
    def _lint(runner: Runner, state: State, env: dict[str, str]) -> int:
        config = state.config
        log_dir = config.path(config.tests.log_dir)
        # CI archives these directories and fails the job if they
        # are missing, even for a lint-only run
        (config.build.source_root / "Testing" / "Temporary").mkdir(
            parents=True, exist_ok=True
        )
        log_dir.mkdir(parents=True, exist_ok=True)

        result = runner.execute(
            config.command("configure", options=""),
            cwd=config.build.source_root,
            env=env,
            check=False,
        )
        if result.exited == 0:
            result = runner.execute(
                config.command("lint"),
                cwd=config.build.source_root,
                env=env,
                log_file=log_dir / "lint.log",
                log_level="info",
                check=False,
            )
        state.runtime.run.outcome.record(
            "lint", result.exited, artifacts=[str(log_dir / "lint.log")]
        )
        state.runtime.run.status = "complete"
        logger.info("Lint finished", status=result.exited)
        return result.exited

    @staticmethod
    def _reset_coverage_data(state: State):
        src = state.config.build.source_root / "src"
        removed = 0
        for pattern in ("*.gcda", "*.gcno"):
            for path in src.rglob(pattern):
                path.unlink()
                removed += 1
        logger.debug("Reset coverage data from previous runs", files=removed)
