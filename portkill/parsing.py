"""
Handles parsing and validation of the monitored port set.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Tuple

MIN_PORT = 1
MAX_PORT = 65535
DEFAULT_PORTS_STRING = "3000,3001,3002,3003,4000,5000,8000,8080,8888,9000"
DEFAULT_PORT_RANGE = (3000, 9999)


def _validate_port(port: int, original: str) -> int:
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"Invalid port '{original}'. Ports must be between {MIN_PORT} and {MAX_PORT}.")
    return port


@dataclass(frozen=True)
class MonitoredPortSet:
    """An ordered, deduplicated set of TCP ports to watch."""
    ports: Tuple[int, ...] = ()

    @classmethod
    def from_ports(cls, ports: Iterable[int]) -> MonitoredPortSet:
        checked = [_validate_port(int(p), str(p)) for p in ports]
        return cls(ports=tuple(sorted(set(checked))))

    @classmethod
    def from_string(cls, port_str: str) -> MonitoredPortSet:
        """
        Parses a comma-separated list of ports such as ``"3000, 3001,8080"``.

        Blank entries are skipped. Raises ValueError on a non-numeric or
        out-of-range entry.
        """
        ports = []
        for part in port_str.split(','):
            token = part.strip()
            if not token:
                continue
            try:
                value = int(token)
            except ValueError:
                raise ValueError(f"Invalid port '{token}' in '{port_str}'. Use comma-separated numbers (1-65535).")
            ports.append(_validate_port(value, token))
        return cls(ports=tuple(sorted(set(ports))))

    @classmethod
    def from_range(cls, start: int, end: int) -> MonitoredPortSet:
        """Builds a contiguous, inclusive range of ports."""
        _validate_port(start, str(start))
        _validate_port(end, str(end))
        if start > end:
            raise ValueError(f"Invalid port range {start}-{end}: start is greater than end.")
        return cls(ports=tuple(range(start, end + 1)))

    @classmethod
    def parse_range(cls, range_str: str) -> MonitoredPortSet:
        """Parses ``"3000-9999"`` into a range set."""
        start_str, sep, end_str = range_str.partition('-')
        if not sep:
            raise ValueError(f"Invalid port range '{range_str}'. Use START-END, e.g. 3000-9999.")
        try:
            start, end = int(start_str.strip()), int(end_str.strip())
        except ValueError:
            raise ValueError(f"Invalid port range '{range_str}'. Use START-END, e.g. 3000-9999.")
        return cls.from_range(start, end)

    def to_string(self) -> str:
        return ",".join(str(p) for p in self.ports)

    def with_port(self, port: int) -> MonitoredPortSet:
        _validate_port(port, str(port))
        return MonitoredPortSet(ports=tuple(sorted(set(self.ports) | {port})))

    def without_port(self, port: int) -> MonitoredPortSet:
        return MonitoredPortSet(ports=tuple(p for p in self.ports if p != port))

    def __iter__(self) -> Iterator[int]:
        return iter(self.ports)

    def __len__(self) -> int:
        return len(self.ports)

    def __contains__(self, port: object) -> bool:
        return port in self.ports


def load_port_set(config: Dict[str, Any]) -> MonitoredPortSet:
    """Builds the port set described by a configuration mapping."""
    if config.get('use_port_range'):
        start, end = config.get('port_range') or DEFAULT_PORT_RANGE
        return MonitoredPortSet.from_range(int(start), int(end))
    ports = config.get('monitored_ports', DEFAULT_PORTS_STRING)
    if isinstance(ports, (list, tuple)):
        return MonitoredPortSet.from_ports(ports)
    return MonitoredPortSet.from_string(str(ports))
