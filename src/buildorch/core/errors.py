"""Fatal error taxonomy.

These abort a run immediately. Degraded conditions (flaky list
unavailable, missing JUnit report) and deferred failures (tests,
cleanup, coverage, leak check) never raise; they are recorded in
the RunOutcome instead.
"""


class BuildOrchError(Exception):
    """Base class for errors that abort the whole run."""

    exit_status = 1


class ToolchainNotFound(BuildOrchError):
    """No compiler candidate was found on the search path."""

    def __init__(self, compiler: str, search_path: list[str]):
        self.compiler = compiler
        self.search_path = search_path
        super().__init__(
            f"Could not find {compiler} in the system "
            f"(searched {len(search_path)} directories)"
        )


class ConfigurationError(BuildOrchError):
    """Requested behavior cannot be honored with the given settings."""


class ScratchDirError(BuildOrchError):
    """The scratch directory for test data is missing or unwritable."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Test scratch directory ({path}) {reason}")


class BuildNotRequested(BuildOrchError):
    """HEAD commit message asks CI not to build."""


__all__ = [
    "BuildOrchError",
    "BuildNotRequested",
    "ConfigurationError",
    "ScratchDirError",
    "ToolchainNotFound",
]
