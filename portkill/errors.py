"""
Error types raised inside the scan-and-terminate engine.

The controller converts these into result values before they reach a caller.
"""
from __future__ import annotations
from typing import Dict, Optional


class PortKillError(Exception):
    """Base class for all engine errors."""
    description = "Port kill operation failed"

    def __str__(self) -> str:
        message = super().__str__()
        return message or self.description


class ProcessNotFound(PortKillError):
    """No process is listening on the requested port."""
    description = "Process not found on port"

    def __init__(self, port: int, message: str = ""):
        super().__init__(message)
        self.port = port


class ParseError(PortKillError):
    """The listing command produced output that could not be parsed."""
    description = "Failed to parse command output"

    def __init__(self, port: int, message: str = ""):
        super().__init__(message)
        self.port = port


class CommandError(PortKillError):
    """A subprocess could not be launched at all."""
    description = "Command execution failed"

    def __init__(self, command: str, message: str = ""):
        super().__init__(message)
        self.command = command


class TerminationFailed(PortKillError):
    """A signal could not be delivered to one or more processes."""
    description = "Failed to kill process"

    def __init__(self, failures: Dict[int, str], message: str = ""):
        if not message and failures:
            pids = ", ".join(str(pid) for pid in sorted(failures))
            message = f"{self.description}: {pids}"
        super().__init__(message)
        self.failures = dict(failures)


class OperationCancelled(PortKillError):
    """The operation observed a cancelled token at a suspension point."""
    description = "Operation was cancelled"


class BackendNotFound(PortKillError):
    """No port-kill backend executable could be located."""
    description = "Backend executable not found"

    def __init__(self, searched: Optional[list] = None, message: str = ""):
        super().__init__(message)
        self.searched = list(searched or [])
