"""Run command - the full build-and-test pipeline."""

from __future__ import annotations

import signal
import threading

from pydantic import BaseModel
from pydantic_graph import End

from buildorch.core.errors import BuildOrchError
from buildorch.core.log import logger
from buildorch.core.runner import Runner


class CleanupGuard:
    """Run the post-build cleanup command on every exit path.

    Active only when the configuration asks for it (by default: inside
    CI). SIGTERM is turned into SystemExit while the guard is held so
    a job killed by CI still cleans up.
    """

    def __init__(self, state: "State"):
        self.state = state
        self.enabled = state.config.cleanup_enabled()
        self._previous_handler = None

    def __enter__(self):
        if self.enabled and threading.current_thread() is threading.main_thread():
            self._previous_handler = signal.signal(
                signal.SIGTERM, self._on_sigterm
            )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        if self._previous_handler is not None:
            signal.signal(signal.SIGTERM, self._previous_handler)
            self._previous_handler = None
        if self.enabled:
            self.cleanup()
        return False

    @staticmethod
    def _on_sigterm(signum, frame):  # noqa: ARG004
        raise SystemExit(128 + signum)

    def cleanup(self):
        config = self.state.config
        if "post_build_clean" not in config.commands:
            logger.warn("Cleanup requested but post_build_clean is not defined")
            return
        logger.info("Cleaning up all build artifacts...")
        result = Runner().execute(
            config.command("post_build_clean"),
            cwd=config.build.source_root,
            check=False,
        )
        if result.exited != 0:
            logger.error("Post-build cleanup failed", status=result.exited)


class RunCommand(BaseModel):
    """Configure, build and test the project for one build variant.

    After a successful compile every remaining phase runs (tests,
    report recovery, validation, coverage, Java tests) and the exit
    status combines all of their failures.
    """

    async def run_workflow(self, state: "State") -> int:
        """Run the pipeline.

        Returns:
            Exit status (0 = tests passed and the run left no mess)
        """
        from buildorch.workflow.graph import create_workflow
        from buildorch.workflow.nodes import Prepare

        logger.info(
            f"Starting {state.config.build.variant} build",
            source_root=str(state.config.build.source_root),
        )
        workflow = create_workflow()

        with CleanupGuard(state):
            try:
                async with workflow.iter(Prepare(), state=state) as run:
                    async for node in run:
                        if isinstance(node, End):
                            return node.data
            except BuildOrchError as e:
                logger.error(str(e), error=type(e).__name__)
                state.runtime.run.status = "aborted"
                return e.exit_status

        logger.error("Pipeline ended unexpectedly")
        return 1
