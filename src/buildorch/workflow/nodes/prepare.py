"""Prepare node - sanity checks and cleanup before anything is built."""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from pydantic_graph import BaseNode, End, GraphRunContext

from buildorch.core.config import State
from buildorch.core.errors import BuildNotRequested, ScratchDirError
from buildorch.core.log import logger
from buildorch.core.runner import Runner

DONT_BUILD_RE = re.compile(r"^\s{4}DONT_BUILD$", re.MULTILINE)


@dataclass
class Prepare(BaseNode[State, None, int]):
    """Refuse unwanted builds, check the scratch dir, drop stale output."""

    async def run(self, ctx: GraphRunContext[State]) -> Configure | End[int]:
        config = ctx.state.config
        runner = Runner()

        with logger.span("prepare"):
            if config.build.honor_dont_build and "head_commit" in config.commands:
                self._check_dont_build(runner, ctx.state)

            self._ensure_scratch_dir(config.path(config.tests.scratch_dir))
            self._remove_stale_artifacts(ctx.state)

            if "thirdparty" in config.commands:
                logger.info("Building third-party dependencies if necessary")
                result = runner.execute(
                    config.command("thirdparty"),
                    cwd=config.build.source_root,
                    env=config.tool_env(),
                    log_level="spew",
                    check=False,
                )
                if result.exited != 0:
                    logger.error(
                        "Third-party build failed",
                        phase="prepare", status=result.exited,
                    )
                    ctx.state.runtime.run.status = "aborted"
                    return End(result.exited)

        from buildorch.workflow.nodes.configure import Configure
        return Configure()

    @staticmethod
    def _check_dont_build(runner: Runner, state: State):
        config = state.config
        result = runner.execute(
            config.command("head_commit"),
            cwd=config.build.source_root,
            check=False,
        )
        if result.exited == 0 and DONT_BUILD_RE.search(result.stdout):
            raise BuildNotRequested("*** Build not requested. Exiting.")

    @staticmethod
    def _ensure_scratch_dir(scratch_dir: Path):
        try:
            scratch_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ScratchDirError(scratch_dir, f"cannot be created: {e}") from e
        if not os.access(scratch_dir, os.W_OK):
            raise ScratchDirError(scratch_dir, "is not writable")

    @staticmethod
    def _remove_stale_artifacts(state: State):
        """Remove output of a previous run.

        Otherwise a run failing during the build would have CI archive
        the previous run's test logs as if they were its own.
        """
        config = state.config
        root = config.build.source_root
        targets = [
            config.path(config.tests.log_dir),
            config.path(config.tests.debug_dir),
        ]
        for pattern in config.build.stale_artifacts:
            targets.extend(root.glob(pattern))

        for target in targets:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            else:
                continue
            logger.debug("Removed stale artifact", path=str(target))
