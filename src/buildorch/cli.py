"""buildorch CLI - CI build-and-test orchestration."""

import asyncio
import sys

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from buildorch.command.flaky import FlakyCommand
from buildorch.command.recover import RecoverCommand
from buildorch.command.run import RunCommand
from buildorch.core.config import State
from buildorch.core.log import logger


class CliState(State):
    """Configure, build and test a CMake project the way CI does.

    Configuration sources (highest priority first):
    1. Command-line arguments (--config.build.variant tsan)
    2. --include files, ./buildorch.yaml, user config, package defaults
    3. .env file
    4. Environment variables (BUILDORCH_CONFIG__BUILD__VARIANT=tsan)
    """

    run: CliSubCommand[RunCommand]
    recover: CliSubCommand[RecoverCommand]
    flaky: CliSubCommand[FlakyCommand]

    def cli_cmd(self):
        subcommand = get_subcommand(self, is_required=False)
        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Closing the logger flushes the file sink on every exit path
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
