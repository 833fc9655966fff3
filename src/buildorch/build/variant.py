"""Build variants and the static table describing each one."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from buildorch.core.log import logger


class BuildVariant(str, Enum):
    DEBUG = "DEBUG"
    RELEASE = "RELEASE"
    ASAN = "ASAN"
    TSAN = "TSAN"
    LEAKCHECK = "LEAKCHECK"
    COVERAGE = "COVERAGE"
    LINT = "LINT"
    CLIENT = "CLIENT"


class PostAction(str, Enum):
    NONE = "none"
    GENERATE_COVERAGE = "generate_coverage"
    LINT_ONLY = "lint_only"


@dataclass(frozen=True)
class VariantProfile:
    """Fixed toolchain settings of one build variant."""

    build_subtype: str = "debug"
    override_compiler: bool = False
    cmake_options: tuple[str, ...] = ()
    extra_test_flags: str | None = None
    post_action: PostAction = PostAction.NONE
    environment: dict[str, str] = field(default_factory=dict)
    leak_check: bool = False
    slow_tests_default: bool = True


DEFAULT_VARIANT = BuildVariant.DEBUG

PROFILES: dict[BuildVariant, VariantProfile] = {
    BuildVariant.DEBUG: VariantProfile(),
    BuildVariant.RELEASE: VariantProfile(build_subtype="release"),
    BuildVariant.ASAN: VariantProfile(
        build_subtype="fastdebug",
        override_compiler=True,
        cmake_options=("USE_ASAN", "USE_UBSAN"),
    ),
    # TSAN builds are slow; slow tests only when explicitly requested
    BuildVariant.TSAN: VariantProfile(
        build_subtype="fastdebug",
        override_compiler=True,
        cmake_options=("USE_TSAN",),
        extra_test_flags="-LE no_tsan",
        slow_tests_default=False,
    ),
    # LD_BIND_NOW works around gperftools issue #497
    BuildVariant.LEAKCHECK: VariantProfile(
        build_subtype="release",
        environment={"HEAPCHECK": "normal", "LD_BIND_NOW": "1"},
        leak_check=True,
    ),
    BuildVariant.COVERAGE: VariantProfile(
        cmake_options=("GENERATE_COVERAGE",),
        post_action=PostAction.GENERATE_COVERAGE,
    ),
    BuildVariant.LINT: VariantProfile(post_action=PostAction.LINT_ONLY),
    # Older gcc leaks unexpected symbols into the exported client library
    BuildVariant.CLIENT: VariantProfile(
        override_compiler=True,
        cmake_options=("EXPORTED_CLIENT",),
    ),
}


@dataclass(frozen=True)
class EnvironmentDefaults:
    """Settings whose defaults depend on the chosen variant."""

    allow_slow_tests: bool | None = None


class VariantConfig(BaseModel):
    """A resolved variant: the table row plus effective settings."""

    requested: str
    variant: BuildVariant
    profile: VariantProfile
    allow_slow_tests: bool

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @property
    def name(self) -> str:
        return self.variant.value

    def cmake_options(self, prefix: str) -> list[str]:
        return [f"-D{prefix}{option}=1" for option in self.profile.cmake_options]


def normalize(variant_name: str | None) -> BuildVariant | None:
    """Upper-case lookup; None for anything unrecognized."""
    key = (variant_name or "").strip().upper()
    try:
        return BuildVariant(key)
    except ValueError:
        return None


def resolve(
    variant_name: str | None,
    env: EnvironmentDefaults | None = None,
) -> VariantConfig:
    """Map a requested variant name to its configuration.

    Never raises: an unknown name resolves to the DEBUG variant.
    """
    env = env or EnvironmentDefaults()
    variant = normalize(variant_name)
    if variant is None:
        logger.warn(
            f"Unknown build variant '{variant_name}', "
            f"using {DEFAULT_VARIANT.value}"
        )
        variant = DEFAULT_VARIANT

    profile = PROFILES[variant]
    allow_slow = (
        profile.slow_tests_default
        if env.allow_slow_tests is None else env.allow_slow_tests
    )
    return VariantConfig(
        requested=variant_name or "",
        variant=variant,
        profile=profile,
        allow_slow_tests=allow_slow,
    )
