import threading

import pytest

from portkill.system.commands import CommandResult

LSOF_HEADER = "COMMAND     PID   USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME"


def lsof_output(pid, port, command="node"):
    return (
        f"{LSOF_HEADER}\n"
        f"{command:<10} {pid:>5} dev   23u  IPv6 0x3c1a7e1b2d4f5a6b      0t0  TCP *:{port} (LISTEN)\n"
    )


class FakeRunner:
    """Stands in for lsof, ps and kill without touching real processes."""

    def __init__(self, listeners=None, commands=None):
        self.listeners = dict(listeners or {})
        self.commands = dict(commands or {})
        self.alive = set(self.listeners.values())
        self.survives_term = set()
        self.failing_signals = set()
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, args, timeout):
        args = list(args)
        with self._lock:
            self.calls.append(args)
        name = args[0]
        if name == "lsof":
            port = int(args[2].split(":")[1])
            pid = self.listeners.get(port)
            if pid is None:
                return CommandResult(returncode=1)
            return CommandResult(returncode=0, stdout=lsof_output(pid, port))
        if name == "ps" and "-o" in args:
            pid = int(args[2])
            command = self.commands.get(pid)
            if command is None:
                return CommandResult(returncode=1)
            return CommandResult(returncode=0, stdout=command + "\n")
        if name == "ps":
            return CommandResult(returncode=0 if int(args[2]) in self.alive else 1)
        if name == "kill":
            signum, pid = int(args[1].lstrip("-")), int(args[2])
            if (signum, pid) in self.failing_signals or pid in self.failing_signals:
                return CommandResult(returncode=1)
            if signum == 9 or pid not in self.survives_term:
                self.alive.discard(pid)
                self.listeners = {p: q for p, q in self.listeners.items() if q != pid}
            return CommandResult(returncode=0)
        raise AssertionError(f"unexpected command {args}")

    def calls_for(self, name):
        return [c for c in self.calls if c[0] == name]

    def signals_sent(self):
        return [(int(c[1].lstrip("-")), int(c[2])) for c in self.calls_for("kill")]


@pytest.fixture
def runner():
    return FakeRunner(
        listeners={3000: 1234, 8080: 4321},
        commands={1234: "/usr/bin/node", 4321: "/opt/homebrew/bin/python3"},
    )


@pytest.fixture
def config():
    return {
        'monitored_ports': "3000,3001,8080",
        'use_port_range': False,
        'max_scan_workers': 4,
        'command_timeout_seconds': 1,
        'auto_refresh': False,
        'backend_path': '',
    }
