"""Compiler discovery for variants that override CC/CXX.

The clang bundled with thirdparty may be older than a system clang
that ships extra runtime support (TSAN in particular), so every
clang on the search path reports its version and the newest one wins.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from buildorch.core.errors import ToolchainNotFound
from buildorch.core.log import logger

_VERSION_RE = re.compile(r"clang version ([0-9.]+)")


class CommandRunner(Protocol):
    def execute(self, command: str, **kwargs): ...


class CompilerCandidate(BaseModel):
    path: Path
    version: str = ""

    @property
    def version_key(self) -> tuple[int, ...]:
        return version_key(self.version)

    @property
    def cc(self) -> str:
        return str(self.path)

    @property
    def cxx(self) -> str:
        return f"{self.path}++"

    def __str__(self) -> str:
        return f"{self.path}:{self.version}"


def version_key(version: str) -> tuple[int, ...]:
    """Numeric sort key, so 10.0 ranks above 9.1."""
    return tuple(int(part) for part in version.split(".") if part.isdigit())


def parse_version(output: str) -> str:
    match = _VERSION_RE.search(output)
    return match.group(1).rstrip(".") if match else ""


def find_executables(name: str, search_path: list[str]) -> list[Path]:
    """Every executable called ``name`` along search_path, in order."""
    found: list[Path] = []
    for directory in search_path:
        if not directory:
            continue
        candidate = Path(directory) / name
        if (
            candidate.is_file()
            and os.access(candidate, os.X_OK)
            and candidate not in found
        ):
            found.append(candidate)
    return found


def discover_compilers(
    name: str,
    search_path: list[str],
    runner: CommandRunner,
    version_command: str = "{compiler} -v",
) -> list[CompilerCandidate]:
    """Ask each ``name`` on the search path for its version."""
    candidates = []
    for path in find_executables(name, search_path):
        result = runner.execute(
            version_command.format(compiler=path), check=False
        )
        version = parse_version(result.stdout + result.stderr)
        candidates.append(CompilerCandidate(path=path, version=version))
    return candidates


def select_compiler(
    candidates: list[CompilerCandidate],
    name: str = "clang",
    search_path: list[str] | None = None,
) -> CompilerCandidate:
    """Pick the highest version; ties go to the first discovered.

    Raises:
        ToolchainNotFound: if there are no candidates at all
    """
    logger.info(
        f"{name} candidates",
        candidates=[str(c) for c in candidates],
    )
    if not candidates:
        raise ToolchainNotFound(name, search_path or [])

    chosen = candidates[0]
    for candidate in candidates[1:]:
        if candidate.version_key > chosen.version_key:
            chosen = candidate

    logger.info(
        f"Selected {chosen.path} as the highest version of {name}",
        version=chosen.version,
    )
    return chosen
