"""Pytest configuration and fixtures for buildorch tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from buildorch.core.log import ConsoleSink, setup_logger

# Stand-ins for cmake, make and friends: every phase succeeds and
# leaves a trace file in the source root
FAKE_COMMANDS = {
    "thirdparty": "true",
    "head_commit": "printf 'commit abc\\n\\n    Regular change\\n'",
    "configure": "echo configure {options} >> configure.out; echo $CC >> cc.out",
    "build_type": "echo {build_type} > build_type.out",
    "clean": "true",
    "build": "echo compiling with -j{num_procs}",
    "lint": "echo lint clean",
    "test": "sh run-tests.sh {test_flags}",
    "coverage": "echo '<coverage/>'",
    "secondary_test": "touch secondary.out",
    "post_build_clean": "touch cleaned.out",
}


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only logging at debug level, nothing sent anywhere."""
    setup_logger(
        log_root=Path(tempfile.gettempdir()) / "buildorch-tests",
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def source_root(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def make_state(tmp_path, source_root, monkeypatch):
    """Build a State for a fake source tree under tmp_path.

    sys.argv is replaced so pydantic-settings does not try to parse
    pytest's own command line.
    """
    from buildorch.core.config import (
        BuildConfig,
        Config,
        SecondaryConfig,
        State,
        TestsConfig,
    )
    from buildorch.core.log import Logger

    monkeypatch.setattr(sys, "argv", ["buildorch"])
    monkeypatch.delenv("BUILD_ID", raising=False)

    def _make(build=None, tests=None, secondary=None, commands=None, **extra):
        config = Config(
            build=BuildConfig(**{
                "source_root": source_root,
                "num_procs": 2,
                "extra_path": [],
                "honor_dont_build": False,
                "stale_artifacts": ["build.log"],
                **(build or {}),
            }),
            tests=TestsConfig(**{
                "scratch_dir": tmp_path / "scratch",
                **(tests or {}),
            }),
            secondary=SecondaryConfig(**{
                "enabled": False,
                **(secondary or {}),
            }),
            commands={**FAKE_COMMANDS, **(commands or {})},
            logger=Logger(level="debug"),
            log_root=tmp_path / "logs",
            cleanup_on_exit=extra.pop("cleanup_on_exit", False),
            **extra,
        )
        return State(config=config)

    return _make


@pytest.fixture
def suite_script(source_root):
    """Write the shell script the fake "test" command runs.

    The script body sees GTEST_OUTPUT, TEST_TMPDIR and the rest of the
    suite environment; $logdir is the report directory.
    """
    def _write(body: str):
        script = source_root / "run-tests.sh"
        script.write_text(
            "printf '%s\\n' \"$*\" > args.out\n"
            "env > env.out\n"
            "logdir=\"${GTEST_OUTPUT#xml:}\"\n"
            "mkdir -p \"$logdir\"\n"
            f"{body}\n"
        )
        return script

    return _write
