"""Shell command execution on top of invoke."""

from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from buildorch.core.log import logger

TIMED_OUT = -1


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    Every external tool (cmake, make, ctest, gcovr, mvn, clang -v)
    goes through execute(), so tests can substitute a Mock with the
    same signature.
    """

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        log_file: Path | None = None,
        log_level: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Run a shell command and capture its output.

        Args:
            command: Shell command line
            cwd: Working directory
            timeout: Seconds before the command is killed; a timed out
                command reports exit status -1
            log_file: File receiving combined stdout and stderr
            log_level: Replay each output line to the logger at this
                level
            check: Raise invoke.UnexpectedExit on non-zero exit
            env: Variables added on top of os.environ

        Returns:
            invoke.Result (stdout, stderr, exited)
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        logger.debug(f"Executing: {command}", cwd=str(cwd or Path.cwd()))
        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            logger.error(
                f"Command timed out after {timeout}s: {command}"
            )
            result = e.result
            result.exited = TIMED_OUT

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(result.stdout + result.stderr)

        if log_level:
            for line in (result.stdout + result.stderr).splitlines():
                logger.log(log_level, line.rstrip())

        return result
