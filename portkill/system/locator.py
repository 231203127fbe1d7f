"""
Maps a single TCP port to the process listening on it.

Uses ``lsof`` to find the listening PID and ``ps`` to resolve its command.
"""
import logging
from typing import Optional

from ..errors import CommandError, ParseError, ProcessNotFound
from ..events import CancelToken
from ..models import ProcessRecord, UNKNOWN_COMMAND
from .commands import CommandRunner, DEFAULT_COMMAND_TIMEOUT, run_command

LSOF_COMMAND = "lsof"
PS_COMMAND = "ps"


def listing_command(port: int) -> list:
    # -iTCP:<port> matches both IPv4 and IPv6 sockets; -nP skips name lookups.
    return [LSOF_COMMAND, "-nP", f"-iTCP:{port}", "-sTCP:LISTEN"]


def name_command(pid: int) -> list:
    return [PS_COMMAND, "-p", str(pid), "-o", "comm="]


def parse_listing_output(port: int, output: str) -> int:
    """
    Extracts the PID from ``lsof`` output.

    The output has a header line; the second column of the first data line is
    the PID. Raises ProcessNotFound for empty output and ParseError when the
    output is malformed.
    """
    text = output.strip()
    if not text:
        raise ProcessNotFound(port)

    lines = text.splitlines()
    if len(lines) < 2:
        raise ParseError(port, f"Not enough lines in listing output for port {port}: {text!r}")

    fields = lines[1].split()
    if len(fields) < 2:
        raise ParseError(port, f"Could not find a PID column for port {port}: {lines[1]!r}")
    if not fields[1].isdecimal():
        raise ParseError(port, f"Could not parse PID '{fields[1]}' for port {port}")
    pid = int(fields[1])
    if pid <= 0:
        raise ParseError(port, f"Invalid PID {pid} for port {port}")
    return pid


class ProcessLocator:
    """Finds the process listening on a port. Holds no mutable state."""

    def __init__(self, runner: CommandRunner = run_command, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.runner = runner
        self.timeout = timeout

    def locate(self, port: int, token: Optional[CancelToken] = None) -> ProcessRecord:
        """
        Returns the record for the process listening on ``port``.

        Raises ProcessNotFound, ParseError, CommandError or OperationCancelled.
        """
        self._checkpoint(token)
        result = self.runner(listing_command(port), self.timeout)
        self._checkpoint(token)

        if not result.ok:
            raise ProcessNotFound(port)
        pid = parse_listing_output(port, result.stdout)

        command = self.resolve_command(pid, token)
        return ProcessRecord.from_command(pid=pid, port=port, command=command)

    def resolve_command(self, pid: int, token: Optional[CancelToken] = None) -> str:
        """Returns the command name for ``pid``, or "unknown" if it can't be read."""
        self._checkpoint(token)
        try:
            result = self.runner(name_command(pid), self.timeout)
        except CommandError as e:
            logging.warning(f"Could not resolve command for PID {pid}: {e}")
            return UNKNOWN_COMMAND
        self._checkpoint(token)

        command = result.stdout.strip() if result.ok else ""
        return command or UNKNOWN_COMMAND

    @staticmethod
    def _checkpoint(token: Optional[CancelToken]) -> None:
        if token is not None:
            token.raise_if_cancelled()
