"""Base models shared by configuration and runtime state.

Every section of the buildorch State derives from BaseCloseable so
that closing the top-level object walks down the tree and releases
whatever resources a child holds (log files, span processors).
Kept apart from config.py so log.py can import it without a cycle.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Anything with a close() method."""

    def close(self) -> None:
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable fields on close().

    Usable as a context manager. A failing child does not stop the
    remaining children from being closed.
    """

    def close(self):
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None or not isinstance(child, Closeable):
                continue
            try:
                child.close()
            except Exception as e:
                print(
                    f"Warning: failed to close {field_name}: {e}",
                    file=sys.stderr,
                )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Marker base for configuration sections (YAML/env/CLI)."""


class BaseState(BaseCloseable):
    """Marker base for runtime sections mutated by the pipeline."""


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
