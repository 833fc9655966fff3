"""CLI subcommands for buildorch."""

from buildorch.command.flaky import FlakyCommand
from buildorch.command.recover import RecoverCommand
from buildorch.command.run import RunCommand

__all__ = ["RunCommand", "RecoverCommand", "FlakyCommand"]
