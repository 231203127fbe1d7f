"""
Signal delivery and liveness checks through the ``kill`` and ``ps`` commands.
"""
import logging

from ..errors import CommandError
from .commands import CommandRunner, DEFAULT_COMMAND_TIMEOUT

KILL_COMMAND = "kill"
PS_COMMAND = "ps"

SIGTERM = 15
SIGKILL = 9


def send_signal(runner: CommandRunner, pid: int, signum: int, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> bool:
    """
    Sends ``signum`` to ``pid``. Returns True when the kill command exits 0.

    Raises CommandError if the kill command cannot be launched.
    """
    result = runner([KILL_COMMAND, f"-{signum}", str(pid)], timeout)
    if not result.ok:
        logging.warning(f"kill -{signum} {pid} exited with status {result.returncode}")
    return result.ok


def is_process_running(runner: CommandRunner, pid: int, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> bool:
    """Returns True if ``ps -p <pid>`` finds the process."""
    try:
        result = runner([PS_COMMAND, "-p", str(pid)], timeout)
    except CommandError as e:
        logging.warning(f"Liveness check for PID {pid} could not run: {e}")
        return False
    return result.ok
