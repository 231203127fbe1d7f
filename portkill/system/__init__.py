"""
OS-facing utilities for PortKill.
"""

from .backend import find_backend_executable, require_backend_executable
from .commands import CommandResult, CommandRunner, run_command
from .locator import ProcessLocator, parse_listing_output
from .signals import SIGKILL, SIGTERM, is_process_running, send_signal

__all__ = [
    "find_backend_executable",
    "require_backend_executable",
    "CommandResult",
    "CommandRunner",
    "run_command",
    "ProcessLocator",
    "parse_listing_output",
    "SIGKILL",
    "SIGTERM",
    "is_process_running",
    "send_signal",
]
