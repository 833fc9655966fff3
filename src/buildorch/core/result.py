"""Result types produced by the test phase and the pipeline."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class TestStatus(str, Enum):
    __test__ = False

    PASS = "pass"
    FAIL = "fail"
    CRASH = "crash"


class TestResult(BaseModel):
    """Outcome of one test executable."""

    __test__ = False  # not a pytest class

    name: str
    status: TestStatus
    report_present: bool
    report_path: Path | None = None
    raw_log: Path | None = None


class PhaseFailure(BaseModel):
    """One failed pipeline phase and the artifacts it blames."""

    phase: str
    status: int
    detail: str
    artifacts: list[str] = Field(default_factory=list)


class RunOutcome(BaseModel):
    """Accumulator threaded through every phase of a run.

    Phases never short-circuit each other: each one records its
    status here and the next phase still runs. The first non-zero
    status becomes the exit status; later failures are kept in
    ``failures`` so every category shows up in the final summary.
    """

    exit_status: int = 0
    cleaned_up: bool = True
    leak_check_ok: bool | None = None
    failures: list[PhaseFailure] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.exit_status == 0

    def record(
        self,
        phase: str,
        status: int,
        detail: str = "",
        artifacts: list[str] | None = None,
    ) -> RunOutcome:
        """Fold one phase status into the outcome."""
        if status == 0:
            return self
        if self.exit_status == 0:
            self.exit_status = status
        self.failures.append(PhaseFailure(
            phase=phase,
            status=status,
            detail=detail or f"{phase} exited with status {status}",
            artifacts=list(artifacts or []),
        ))
        return self

    def failed_phases(self) -> list[str]:
        return [failure.phase for failure in self.failures]
