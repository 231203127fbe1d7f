"""
Command-line shell for PortKill.

This module builds the controller from configuration and command-line
overrides, runs the requested command, and tears the controller down.
"""
import argparse
import logging
import sys
import time
from typing import List, Optional

from . import configuration
from .controller import PortKillController, SCAN_INTERVAL_SECONDS
from .errors import BackendNotFound
from .models import KillResult, ScanSnapshot
from .parsing import MonitoredPortSet
from .system.backend import require_backend_executable


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portkill",
        description="Find processes listening on monitored TCP ports and terminate them.",
    )
    parser.add_argument("--config", help="Path to config.yaml (default: ./config.yaml)")
    ports = parser.add_mutually_exclusive_group()
    ports.add_argument("--ports", help="Comma-separated ports to monitor, e.g. 3000,8080")
    ports.add_argument("--range", dest="port_range", help="Contiguous port range, e.g. 3000-9999")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("scan", help="List processes on monitored ports (default)")
    kill = sub.add_parser("kill", help="Terminate the given PIDs")
    kill.add_argument("pids", nargs="+", type=int)
    sub.add_parser("kill-all", help="Terminate every process found on monitored ports")
    sub.add_parser("watch", help=f"Rescan every {SCAN_INTERVAL_SECONDS:g}s until interrupted")
    sub.add_parser("backend", help="Show the port-kill backend executable in use")
    return parser


def _config_from_args(args: argparse.Namespace) -> dict:
    config = configuration.load_or_create_config(args.config)
    if args.ports:
        config['monitored_ports'] = MonitoredPortSet.from_string(args.ports).to_string()
        config['use_port_range'] = False
    elif args.port_range:
        ports = MonitoredPortSet.parse_range(args.port_range)
        config['use_port_range'] = True
        config['port_range'] = [ports.ports[0], ports.ports[-1]]
    return config


def print_snapshot(snapshot: ScanSnapshot) -> None:
    print(snapshot.summary.text)
    for record in snapshot.processes:
        print(f"  {record.port:>5}  {record.pid:>7}  {record.name}  ({record.command})")


def print_kill_result(result: KillResult) -> None:
    if result.rejected:
        print("Another kill request is in progress.")
        return
    for pid in result.succeeded:
        print(f"Terminated PID {pid}")
    for pid, reason in result.failed.items():
        print(f"Failed to terminate PID {pid}: {reason}")
    if result.cancelled:
        print("Kill request cancelled.")


def _watch(controller: PortKillController) -> None:
    def _on_change(state, snapshot):
        if not state.scanning and not state.destroyed:
            print_snapshot(snapshot)

    controller.subscribe(_on_change)
    controller.start_monitoring()
    try:
        while not controller.is_destroyed:
            time.sleep(SCAN_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        pass


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        config = _config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    persist = not (args.ports or args.port_range)
    controller = PortKillController(config=config, config_path=args.config, persist=persist)
    try:
        command = args.command or "scan"
        if command == "watch":
            _watch(controller)
            return 0
        if command == "backend":
            try:
                print(require_backend_executable(controller.config.get('backend_path') or ""))
            except BackendNotFound as e:
                print(f"Error: {e}; searched {', '.join(e.searched)}", file=sys.stderr)
                return 1
            return 0

        if command == "scan":
            print_snapshot(controller.scan())
        elif command == "kill":
            result = controller.terminate_all(args.pids)
            print_kill_result(result)
            if not result.ok:
                return 1
        elif command == "kill-all":
            controller.scan()
            result = controller.terminate_all()
            print_kill_result(result)
            if not result.ok:
                return 1

        if controller.last_error is not None:
            print(f"Error: {controller.last_error}", file=sys.stderr)
            return 1
        return 0
    finally:
        controller.destroy()
