"""Application state: immutable configuration plus runtime state."""

from __future__ import annotations

import getpass
import os
import re
import tempfile
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from buildorch.build.toolchain import CompilerCandidate
from buildorch.build.variant import VariantConfig
from buildorch.core.base import BaseConfig, BaseState
from buildorch.core.errors import ConfigurationError
from buildorch.core.log import Logger
from buildorch.core.result import RunOutcome, TestResult
from buildorch.core.yaml_settings import YamlWithIncludesSettingsSource
from buildorch.testing.flaky import FlakyTestList

APP_NAME = "buildorch"

# Names usable in {module.attr} templates inside YAML values,
# e.g. {platformdirs.user_cache_dir} or {os.getcwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}


def _default_scratch_dir() -> Path:
    return Path(tempfile.gettempdir()) / f"kudutest-{getpass.getuser()}"


class BuildConfig(BaseConfig):
    """What to build and where."""

    variant: str = Field(
        default="debug",
        description=(
            "Build variant: debug, release, asan, tsan, leakcheck, "
            "coverage, lint, client (case-insensitive; unknown values "
            "fall back to debug)"
        ),
    )
    source_root: Path = Field(
        default_factory=Path.cwd,
        description="Root of the source tree; relative paths resolve here",
    )
    num_procs: int = Field(
        default_factory=lambda: os.cpu_count() or 1,
        description="Parallelism for make and ctest",
    )
    timeout: int | None = Field(
        default=None,
        description="Timeout in seconds for the compile step",
    )
    compiler: str = Field(
        default="clang",
        description="Compiler searched for when a variant overrides CC/CXX",
    )
    extra_path: list[Path] = Field(
        default_factory=lambda: [Path("thirdparty/installed/bin")],
        description="Directories prepended to PATH for all tools",
    )
    cmake_option_prefix: str = Field(
        default="KUDU_",
        description="Prefix of the project's cmake feature options",
    )
    honor_dont_build: bool = Field(
        default=True,
        description="Skip the run when HEAD's message has a DONT_BUILD line",
    )
    stale_artifacts: list[str] = Field(
        default_factory=lambda: [
            "Testing/Temporary",
            "build.log",
            "CMakeCache.txt",
            "CMakeFiles",
            "src/*/*/CMakeFiles",
        ],
        description=(
            "Globs under source_root removed before building, in "
            "addition to the test log and debug directories"
        ),
    )


class TestsConfig(BaseConfig):
    """How the C++ test suite runs."""

    __test__ = False

    scratch_dir: Path = Field(
        default_factory=_default_scratch_dir,
        description=(
            "TEST_TMPDIR handed to tests; must be empty again after a "
            "passing run"
        ),
    )
    log_dir: Path = Field(
        default=Path("build/test-logs"),
        description="Where tests write raw logs and JUnit XML reports",
    )
    debug_dir: Path = Field(
        default=Path("build/test-debug"),
        description="Per-test debug artifacts, cleared before each run",
    )
    allow_slow_tests: bool | None = Field(
        default=None,
        description="Run slow tests; unset uses the variant's default",
    )
    compress_output: bool = Field(
        default=True,
        description="Ask tests to gzip their raw output",
    )
    flaky_attempts: int = Field(
        default=1,
        description=(
            "Attempts allowed for known-flaky tests; above 1 the flaky "
            "list is fetched from result_server"
        ),
    )
    result_server: str | None = Field(
        default=None,
        description="host:port of the test result server",
    )
    flaky_only: bool = Field(
        default=False,
        description="Run only recently failed tests (requires result_server)",
    )
    flaky_days: int = Field(
        default=3,
        description="How many days of history count as 'recently failed'",
    )
    flaky_build_pattern: str = Field(
        default="%kudu-test%",
        description="SQL LIKE pattern selecting builds on the result server",
    )
    env_prefix: str = Field(
        default="KUDU",
        description="Prefix of the variables the test binaries read",
    )
    timeout: int | None = Field(
        default=None,
        description="Timeout in seconds for the whole ctest invocation",
    )
    leak_check_marker: str = Field(
        default=(
            "WARNING: Perftools heap leak checker is active -- "
            "Performance may suffer"
        ),
        description="Line every test log must contain under leak checking",
    )
    leak_check_glob: str = Field(
        default="*-test.txt*",
        description="Raw logs inspected for the leak check marker",
    )


class SecondaryConfig(BaseConfig):
    """Java test suite run after the C++ tests."""

    enabled: bool = Field(default=True, description="Build and test java/")
    workdir: Path = Field(
        default=Path("java"),
        description="Directory the Maven build runs in",
    )
    java_home: Path | None = Field(
        default=None,
        description="JAVA_HOME for Maven; unset keeps the environment's",
    )
    tsan_suppressions: Path = Field(
        default=Path("build-support/tsan-suppressions.txt"),
        description="ThreadSanitizer suppressions for JNI code",
    )


class Config(BaseConfig):
    """Configuration loaded from YAML, environment and CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger sinks and levels",
    )
    build: BuildConfig = Field(default_factory=BuildConfig)
    tests: TestsConfig = Field(default_factory=TestsConfig)
    secondary: SecondaryConfig = Field(default_factory=SecondaryConfig)

    commands: dict[str, str] = Field(
        default_factory=dict,
        description=(
            "Shell command templates: thirdparty, configure, build_type, "
            "clean, build, lint, test, coverage, secondary_test, "
            "post_build_clean, head_commit, compiler_version"
        ),
    )
    log_level: str = Field(
        default="info",
        alias="log-level",
        description="Console level: spew, trace, debug, info, warn, error",
    )
    log_root: Path = Field(
        default_factory=lambda: Path(platformdirs.user_state_dir()) / APP_NAME,
        description="Root directory for buildorch's own log files",
    )
    run_name: str = Field(
        default="build",
        description="Name of this run, used in log paths",
    )
    cleanup_on_exit: bool | None = Field(
        default=None,
        description=(
            "Run post_build_clean on every exit; unset enables it only "
            "inside CI (BUILD_ID is set)"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        from buildorch.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger(level=self.log_level)

        setup_logger(
            log_root=self.log_root,
            run_name=self.run_name,
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self

    def path(self, value: Path) -> Path:
        """Resolve a configured path against the source root."""
        value = Path(value).expanduser()
        if value.is_absolute():
            return value
        return self.build.source_root / value

    def command(self, name: str, **params: Any) -> str:
        """Render a command template, failing loudly when undefined."""
        template = self.commands.get(name)
        if template is None:
            raise ConfigurationError(f"Command '{name}' not defined in config")
        return template.format(**params) if params else template

    def tool_env(self) -> dict[str, str]:
        """PATH with the configured extra directories in front."""
        extra = [str(self.path(p)) for p in self.build.extra_path]
        return {"PATH": os.pathsep.join(extra + [os.environ.get("PATH", "")])}

    def cleanup_enabled(self) -> bool:
        if self.cleanup_on_exit is not None:
            return self.cleanup_on_exit
        return bool(os.environ.get("BUILD_ID"))

    def close(self):
        from buildorch.core.log import logger
        logger.close()
        super().close()


class RunState(BaseState):
    """Everything the pipeline learns while it runs."""

    variant: VariantConfig | None = None
    compiler: CompilerCandidate | None = None
    flaky: FlakyTestList | None = None
    test_filter: str = ""
    test_env: dict[str, str] = Field(default_factory=dict)
    results: list[TestResult] = Field(default_factory=list)
    recovered: list[Path] = Field(default_factory=list)
    outcome: RunOutcome = Field(default_factory=RunOutcome)
    secondary_enabled: bool = True
    status: str = Field(
        default="pending",
        description="pending, configured, built, tested, complete, aborted",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Runtime(BaseModel):
    """Container for runtime sections."""

    run: RunState = Field(default_factory=RunState)


class State(BaseSettings):
    """Configuration and runtime state threaded through the pipeline.

    Sources, highest priority first: constructor/CLI arguments,
    YAML files (package defaults < user config < ./buildorch.yaml
    < --include files), .env, BUILDORCH_* environment variables.
    """

    config: Config = Field(default_factory=Config)
    runtime: Runtime = Field(default_factory=Runtime)
    include: list[str] | None = Field(
        default=None,
        description="Extra YAML files merged over the configuration",
    )

    model_config = SettingsConfigDict(
        yaml_file="buildorch.yaml",
        env_file=".env",
        env_prefix="BUILDORCH_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Expand {config.*}, {os.*} and {platformdirs.*} templates.

        Placeholders that do not resolve, such as {num_procs} in
        command templates, are left for the caller to format.
        """
        self._substitute(self)
        return self

    def _substitute(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for name in obj.__class__.model_fields:
                value = getattr(obj, name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i, item in enumerate(obj):
                obj[i] = self._substitute_value(item)

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            text = str(value)
            new_text = self._substitute_string(text)
            return value if new_text == text else Path(new_text)
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute(value)
        return value

    def _substitute_string(self, value: str) -> str:
        def replace(match):
            parts = match.group(1).split(".")
            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                module = parts[0]
                parts = parts[1:]
            else:
                obj = self
                module = None

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = (
                        obj(APP_NAME, appauthor=False)
                        if module == 'platformdirs' else obj()
                    )
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return re.sub(r'\{([a-z_][a-z._]*)\}', replace, value)


__all__ = ["State", "Config", "RunState"]
