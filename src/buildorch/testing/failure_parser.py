"""Find failures in raw gtest console output.

Used when a test binary dies before gtest writes its XML report. The
scanner tracks which test case was running and attributes failure
markers to it:

  [ RUN      ] Suite.Case          test case starts
  [       OK ] Suite.Case          ...passes
  [  FAILED  ] Suite.Case (12 ms)  ...fails
  Check failed: / F0102 ...        glog fatal error
  ==123==ERROR: AddressSanitizer   sanitizer report
  *** SIGSEGV / *** Aborted at     signal handler banner
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_RUN_RE = re.compile(r"^\[ RUN      \] (\S+)")
_OK_RE = re.compile(r"^\[       OK \] (\S+)")
_FAILED_RE = re.compile(r"^\[  FAILED  \] (\S+\.\S+)")
_FATAL_RES = (
    re.compile(r"Check failed: .*"),
    re.compile(r"^F\d{4} \d\d:\d\d:\d\d\.\d+ .*"),
    re.compile(r"ERROR: AddressSanitizer.*"),
    re.compile(r"ERROR: LeakSanitizer.*"),
    re.compile(r"WARNING: ThreadSanitizer.*"),
    re.compile(r"runtime error: .*"),
    re.compile(r"\*\*\* SIG[A-Z]+.*"),
    re.compile(r"\*\*\* Aborted at .*"),
)

UNFINISHED = "test did not finish (process crashed or was killed)"

# Keep synthesized reports a sane size when a test spews output
MAX_OUTPUT_LINES = 200


@dataclass
class Failure:
    name: str
    message: str
    output: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        lines = self.output[-MAX_OUTPUT_LINES:]
        return "\n".join(lines)


def _fatal_marker(line: str) -> str | None:
    for pattern in _FATAL_RES:
        match = pattern.search(line)
        if match:
            return match.group(0).strip()
    return None


def parse_failures(text: str) -> list[Failure]:
    """Extract failures, one per test case, in order of appearance.

    A fatal marker outside any running test case (e.g. a leak report
    at process exit) becomes a failure named ``<process>``.
    """
    failures: dict[str, Failure] = {}
    current: str | None = None
    buffer: list[str] = []
    marker: str | None = None

    def add(name: str, message: str, output: list[str]):
        if name not in failures:
            failures[name] = Failure(name, message, list(output))

    for line in text.splitlines():
        run = _RUN_RE.match(line)
        if run:
            current, buffer, marker = run.group(1), [], None
            continue

        ok = _OK_RE.match(line)
        if ok:
            current, buffer, marker = None, [], None
            continue

        failed = _FAILED_RE.match(line)
        if failed:
            name = failed.group(1)
            if name == current:
                add(name, marker or _first_nonblank(buffer) or "failed", buffer)
                current, buffer, marker = None, [], None
            # Lines after the final summary repeat names already seen
            continue

        found = _fatal_marker(line)
        if current is not None:
            buffer.append(line)
            if found and marker is None:
                marker = found
        elif found:
            add("<process>", found, [line])

    if current is not None:
        add(current, marker or UNFINISHED, buffer)

    return list(failures.values())


def _first_nonblank(lines: list[str]) -> str | None:
    for line in lines:
        if line.strip():
            return line.strip()
    return None
