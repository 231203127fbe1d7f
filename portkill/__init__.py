"""
PortKill: find processes listening on monitored TCP ports and terminate them.
"""

from .controller import PortKillController
from .errors import (
    BackendNotFound,
    CommandError,
    OperationCancelled,
    ParseError,
    PortKillError,
    ProcessNotFound,
    TerminationFailed,
)
from .events import CancelToken, EngineState, EngineStateModel
from .models import KillResult, ProcessRecord, ScanSnapshot, StatusSummary
from .parsing import MonitoredPortSet

__version__ = "1.0.0"

__all__ = [
    "PortKillController",
    "BackendNotFound",
    "CommandError",
    "OperationCancelled",
    "ParseError",
    "PortKillError",
    "ProcessNotFound",
    "TerminationFailed",
    "CancelToken",
    "EngineState",
    "EngineStateModel",
    "KillResult",
    "ProcessRecord",
    "ScanSnapshot",
    "StatusSummary",
    "MonitoredPortSet",
]
