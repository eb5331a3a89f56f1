"""Command execution on top of invoke."""

import io
import shlex
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from gittyup.core.log import logger


def quote_command(parts: list[str]) -> str:
    """Join argv-style parts into a shell-safe command string."""
    return ' '.join(shlex.quote(str(part)) for part in parts)


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    All external tools (git, gh) go through execute() so that every
    command is logged the same way and never prompts on the
    terminal.
    """

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        stdin: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Run a command and capture its output.

        Args:
            command: Command string to execute
            cwd: Working directory for the command
            timeout: Maximum execution time in seconds
            stdin: Text fed to the command's stdin
            check: Raise invoke.UnexpectedExit on non-zero exit
            env: Extra environment variables (merged into os.environ)

        Returns:
            invoke.Result with stdout, stderr and exited. A timed out
            command is reported with exited == -1.
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if stdin:
            kwargs["in_stream"] = io.StringIO(stdin)
        if env:
            kwargs["env"] = env

        logger.debug("exec", command=command, cwd=str(cwd) if cwd else None)

        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1

        logger.spew(
            "exec finished",
            command=command,
            exited=result.exited,
            stdout_bytes=len(result.stdout),
            stderr_bytes=len(result.stderr),
        )
        return result
