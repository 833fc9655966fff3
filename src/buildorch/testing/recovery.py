"""Synthesize JUnit reports for test binaries that crashed.

gtest writes ``<binary>.xml`` on a clean exit only. A binary that
segfaults, aborts or is killed leaves just its raw console log
(``<binary>.txt`` or ``<binary>.txt.gz``). For each such log this
module writes a minimal report so CI still shows what broke.
"""

from __future__ import annotations

import os
import zlib
from pathlib import Path

import junit_xml

from buildorch.core.log import logger
from buildorch.testing.failure_parser import parse_failures

RAW_SUFFIXES = (".txt.gz", ".txt")
REPORT_SUFFIX = ".xml"
UNKNOWN_CAUSE = "crashed, cause unknown"


def raw_log_name(path: Path) -> str | None:
    """Test binary name of a raw log, or None if it is not one."""
    for suffix in RAW_SUFFIXES:
        if path.name.endswith(suffix):
            return path.name[:-len(suffix)]
    return None


def find_raw_logs(log_dir: Path) -> dict[str, Path]:
    """Raw logs in log_dir keyed by binary name, sorted by name.

    When both ``x.txt`` and ``x.txt.gz`` exist the compressed one wins.
    """
    if not log_dir.is_dir():
        return {}
    logs: dict[str, Path] = {}
    for path in sorted(log_dir.iterdir()):
        name = raw_log_name(path)
        if name is None or not path.is_file():
            continue
        if name not in logs or path.name.endswith(".gz"):
            logs[name] = path
    return dict(sorted(logs.items()))


def read_raw_log(path: Path) -> str:
    """Read a raw log, tolerating a gzip stream cut short by a crash."""
    if not path.name.endswith(".gz"):
        return path.read_text(encoding="utf-8", errors="replace")

    # gzip.open drops the last decompressed chunk when the stream is
    # cut short, and the crash marker is usually in that tail
    decompressor = zlib.decompressobj(wbits=zlib.MAX_WBITS | 16)
    chunks = []
    with open(path, "rb") as f:
        try:
            while data := f.read(64 * 1024):
                chunks.append(decompressor.decompress(data))
            chunks.append(decompressor.flush())
        except zlib.error as e:
            logger.warn(
                f"Raw log {path.name} is corrupt; using what was readable",
                error=str(e),
            )
    if not decompressor.eof:
        logger.warn(
            f"Raw log {path.name} is truncated; using what was readable"
        )
    return b"".join(chunks).decode("utf-8", errors="replace")


def synthesize_report(binary: str, text: str) -> str:
    """JUnit XML for one binary's raw output.

    Every parsed failure becomes a failing test case. Output with no
    recognizable failure still yields one errored test case named
    after the binary, so no crashed binary goes unreported.
    """
    cases = []
    for failure in parse_failures(text):
        case = junit_xml.TestCase(
            name=failure.name, classname=binary, stdout=failure.text
        )
        case.add_failure_info(message=failure.message, output=failure.text)
        cases.append(case)

    if not cases:
        case = junit_xml.TestCase(name=binary, classname=binary)
        tail = "\n".join(text.splitlines()[-50:])
        case.add_error_info(
            message=UNKNOWN_CAUSE, output=tail, error_type="crash"
        )
        cases.append(case)

    suite = junit_xml.TestSuite(name=binary, test_cases=cases)
    return junit_xml.to_xml_report_string([suite])


def recover_missing_reports(
    raw_logs_dir: Path, reports_dir: Path | None = None
) -> list[Path]:
    """Write a report for every raw log that has none.

    Existing reports are never touched, so running this twice over
    the same logs produces the same set of reports.

    Returns:
        Paths of the reports created by this call
    """
    reports_dir = reports_dir or raw_logs_dir
    created = []
    for binary, raw_log in find_raw_logs(raw_logs_dir).items():
        report = reports_dir / f"{binary}{REPORT_SUFFIX}"
        if report.exists():
            continue

        logger.warn(
            "JUnit report missing: generating one from raw output",
            raw_log=str(raw_log),
            report=str(report),
        )
        xml = synthesize_report(binary, read_raw_log(raw_log))
        reports_dir.mkdir(parents=True, exist_ok=True)
        partial = report.with_name(report.name + ".tmp")
        partial.write_text(xml, encoding="utf-8")
        os.replace(partial, report)
        created.append(report)
    return created
