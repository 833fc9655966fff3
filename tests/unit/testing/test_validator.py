"""Tests for the post-test scratch directory and leak checks."""

import pytest

from buildorch.core.result import RunOutcome
from buildorch.testing.validator import (
    DEFAULT_LEAK_MARKER,
    check_leak_markers,
    validate,
)


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def raw_logs_dir(tmp_path):
    path = tmp_path / "test-logs"
    path.mkdir()
    return path


def test_clean_passing_run(scratch_dir):
    outcome = validate(scratch_dir, False, 0)

    assert outcome.passed
    assert outcome.cleaned_up is True
    assert outcome.leak_check_ok is None


def test_leftovers_fail_a_passing_run(scratch_dir):
    (scratch_dir / "foo").mkdir()
    (scratch_dir / "foo" / "bar.tmp").write_text("")

    outcome = validate(scratch_dir, False, 0)

    assert outcome.exit_status != 0
    assert outcome.cleaned_up is False
    assert outcome.failed_phases() == ["cleanup"]
    assert "foo" in outcome.failures[0].detail
    assert outcome.failures[0].artifacts == ["foo"]


def test_leftovers_after_failing_run_keep_test_status(scratch_dir):
    (scratch_dir / "foo").mkdir()

    outcome = validate(scratch_dir, False, 2)

    assert outcome.exit_status == 2
    assert outcome.cleaned_up is False
    assert outcome.failed_phases() == ["tests"]


def test_missing_leak_marker(scratch_dir, raw_logs_dir):
    (raw_logs_dir / "client-test.txt").write_text(
        f"{DEFAULT_LEAK_MARKER}\n[  PASSED  ] 3 tests.\n"
    )
    (raw_logs_dir / "tablet-test.txt").write_text("[  PASSED  ] 5 tests.\n")

    outcome = validate(scratch_dir, True, 0, raw_logs_dir)

    assert outcome.exit_status != 0
    assert outcome.leak_check_ok is False
    assert outcome.failures[0].phase == "leak-check"
    assert outcome.failures[0].artifacts == ["tablet-test"]
    assert "tablet-test" in outcome.failures[0].detail


def test_all_logs_heap_checked(scratch_dir, raw_logs_dir):
    (raw_logs_dir / "tablet-test.txt").write_text(DEFAULT_LEAK_MARKER)

    outcome = validate(scratch_dir, True, 0, raw_logs_dir)

    assert outcome.passed
    assert outcome.leak_check_ok is True


def test_both_checks_reported(scratch_dir, raw_logs_dir):
    (scratch_dir / "foo").mkdir()
    (raw_logs_dir / "tablet-test.txt").write_text("")

    outcome = validate(scratch_dir, True, 0, raw_logs_dir)

    assert outcome.failed_phases() == ["cleanup", "leak-check"]


def test_leak_check_without_logs_fails(raw_logs_dir):
    outcome = check_leak_markers(raw_logs_dir, RunOutcome())

    assert outcome.leak_check_ok is False
    assert not outcome.passed


def test_only_test_logs_are_checked(raw_logs_dir):
    (raw_logs_dir / "tablet-test.txt").write_text(DEFAULT_LEAK_MARKER)
    (raw_logs_dir / "setup.txt").write_text("no marker")

    outcome = check_leak_markers(raw_logs_dir, RunOutcome())

    assert outcome.leak_check_ok is True


def test_leak_check_needs_log_dir(scratch_dir):
    with pytest.raises(ValueError):
        validate(scratch_dir, True, 0)


def test_accumulates_into_given_outcome(scratch_dir):
    outcome = RunOutcome().record("tests", 4)
    (scratch_dir / "foo").mkdir()

    result = validate(scratch_dir, False, 4, outcome=outcome)

    assert result is outcome
    assert outcome.exit_status == 4
    assert outcome.failed_phases() == ["tests"]
