from __future__ import annotations
import posixpath
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

UNKNOWN_COMMAND = "unknown"


def display_name_for(command: str) -> str:
    """Returns the final path component of a command string."""
    stripped = command.rstrip("/")
    return posixpath.basename(stripped) or command


@dataclass(frozen=True)
class ProcessRecord:
    """A single process found listening on a monitored port."""
    pid: int
    port: int
    command: str
    name: str

    @classmethod
    def from_command(cls, pid: int, port: int, command: str) -> ProcessRecord:
        return cls(pid=pid, port=port, command=command, name=display_name_for(command))


@dataclass(frozen=True)
class StatusSummary:
    """Human-readable status derived from the number of active processes."""
    text: str
    tooltip: str
    has_processes: bool

    @classmethod
    def from_count(cls, count: int) -> StatusSummary:
        if count <= 0:
            return cls(
                text="No Active Ports",
                tooltip="No processes are currently listening on monitored ports",
                has_processes=False,
            )
        plural = count > 1
        return cls(
            text=f"{count} Active Port{'s' if plural else ''}",
            tooltip=f"{count} process{'es' if plural else ''} found on monitored ports",
            has_processes=True,
        )


@dataclass(frozen=True)
class ScanSnapshot:
    """The published result of one completed scan pass, ordered by port."""
    processes: Tuple[ProcessRecord, ...] = ()

    @classmethod
    def empty(cls) -> ScanSnapshot:
        return cls()

    @classmethod
    def from_records(cls, records: Iterable[ProcessRecord]) -> ScanSnapshot:
        return cls(processes=tuple(sorted(records, key=lambda r: (r.port, r.pid))))

    @property
    def count(self) -> int:
        return len(self.processes)

    @property
    def summary(self) -> StatusSummary:
        return StatusSummary.from_count(self.count)

    @property
    def pids(self) -> List[int]:
        """Distinct PIDs in port order."""
        return list(dict.fromkeys(record.pid for record in self.processes))


@dataclass
class KillResult:
    """Aggregate outcome of a termination request."""
    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)
    cancelled: bool = False
    rejected: bool = False

    @property
    def ok(self) -> bool:
        return not (self.failed or self.cancelled or self.rejected)

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)
