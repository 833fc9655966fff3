"""YAML settings source with include support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from buildorch.core.log import logger

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"


def _cli_includes(argv: list[str]) -> list[str]:
    """Collect the values of every ``--include FILE`` in argv."""
    includes = []
    args = iter(argv[1:])
    for arg in args:
        if arg == "--include":
            value = next(args, None)
            if value is not None:
                includes.append(value)
        elif arg.startswith("--include="):
            includes.append(arg.split("=", 1)[1])
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """Load and deep-merge every YAML layer of the configuration.

    Layers, lowest priority first:
        1. packaged defaults/default.yaml
        2. <user config dir>/buildorch.yaml
        3. ./buildorch.yaml (or the yaml_file given explicitly)
        4. each --include file from the command line

    Any file may carry an ``include:`` key naming more files (relative
    to itself). Included data sits underneath the including file.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        base = yaml_file or settings_cls.model_config.get("yaml_file")
        includes = _cli_includes(sys.argv)
        files = [base] if isinstance(base, (str, os.PathLike)) else list(base or [])
        super().__init__(settings_cls, files + includes)

    def _read_files(self, files, deep_merge: bool = False):  # noqa: ARG002
        if isinstance(files, (str, os.PathLike)):
            files = [files]
        candidates = [
            DEFAULTS_FILE,
            Path(user_config_dir("buildorch", appauthor=False)) / "buildorch.yaml",
        ]
        candidates.extend(Path(f).expanduser() for f in files or [])

        result: dict = {}
        seen: set[Path] = set()
        for path in candidates:
            if path in seen:
                continue
            seen.add(path)
            if not path.is_file():
                logger.debug("Configuration file not found (skipping)", file=str(path))
                continue
            with logger.span("Configuration loading", file=str(path)):
                result = self._deep_merge(
                    result, self._load_file_recursive(path, set())
                )
        return result

    def _load_file_recursive(self, filepath: Path, visited: set[Path]) -> dict:
        """Load one file with its include: chain resolved.

        Raises:
            ValueError: on an include cycle
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited = visited | {filepath}

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]
        for inc in includes:
            inc_path = self._resolve_path(inc, filepath)
            logger.debug(
                f"Including {inc_path.name}",
                included_from=str(filepath),
            )
            data = self._deep_merge(
                self._load_file_recursive(inc_path, visited), data
            )
        return data

    @staticmethod
    def _resolve_path(include_path: str, relative_to: Path) -> Path:
        path = Path(include_path).expanduser()
        if path.is_absolute():
            return path
        return (relative_to.parent / path).resolve()

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Merge override into a copy of base; override wins."""
        result = base.copy()
        for key, value in override.items():
            if isinstance(result.get(key), dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
