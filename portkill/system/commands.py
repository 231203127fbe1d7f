"""
Thin wrapper around subprocess used by every OS-facing operation.

Each call blocks only the worker thread that issued it; the engine runs these
calls on a thread pool.
"""
import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Sequence

from ..errors import CommandError

DEFAULT_COMMAND_TIMEOUT = 5.0
TIMEOUT_RETURN_CODE = -1


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured standard output of a finished command."""
    returncode: int
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


CommandRunner = Callable[[Sequence[str], float], CommandResult]


def run_command(args: Sequence[str], timeout: float = DEFAULT_COMMAND_TIMEOUT) -> CommandResult:
    """
    Runs a command and captures its output.

    A command that outlives ``timeout`` is reported with a non-zero status.
    Raises CommandError only when the executable cannot be launched.
    """
    try:
        proc = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logging.warning(f"Command timed out after {timeout}s: {' '.join(args)}")
        return CommandResult(returncode=TIMEOUT_RETURN_CODE)
    except OSError as e:
        logging.error(f"Could not launch '{args[0]}': {e}")
        raise CommandError(args[0], f"Could not launch '{args[0]}': {e}") from e
    return CommandResult(returncode=proc.returncode, stdout=proc.stdout or "")
