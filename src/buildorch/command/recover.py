"""Recover command - synthesize missing JUnit reports by hand."""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from buildorch.core.log import logger
from buildorch.testing.recovery import (
    read_raw_log,
    recover_missing_reports,
    synthesize_report,
)


class RecoverCommand(BaseModel):
    """Write JUnit reports for test logs that have none.

    With --raw-log, print the report for that single log to stdout
    instead (useful with a log copied off a CI worker).
    """

    model_config = ConfigDict(populate_by_name=True)

    log_dir: Path | None = Field(
        default=None,
        alias="log-dir",
        description="Directory of raw test logs (default: tests.log_dir)",
    )
    reports_dir: Path | None = Field(
        default=None,
        alias="reports-dir",
        description="Where to write reports (default: the log directory)",
    )
    raw_log: Path | None = Field(
        default=None,
        alias="raw-log",
        description="Single raw log to convert and print",
    )

    async def run_workflow(self, state: "State") -> int:
        if self.raw_log is not None:
            if not self.raw_log.is_file():
                logger.error("Raw log not found", path=str(self.raw_log))
                return 1
            binary = self.raw_log.name.split(".txt")[0]
            sys.stdout.write(synthesize_report(binary, read_raw_log(self.raw_log)))
            return 0

        log_dir = self.log_dir or state.config.path(state.config.tests.log_dir)
        created = recover_missing_reports(log_dir, self.reports_dir)
        logger.info(
            f"Synthesized {len(created)} report(s)",
            log_dir=str(log_dir),
            reports=[path.name for path in created],
        )
        return 0
