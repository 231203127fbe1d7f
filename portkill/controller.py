"""
Core controller for PortKill.

This is the surface the shell talks to: trigger scans, request terminations,
observe state, and tear the engine down.
"""
from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import configuration
from .errors import PortKillError, TerminationFailed
from .events import EngineState, EngineStateModel, StateListener
from .kill_manager import KillManager
from .models import KillResult, ProcessRecord, ScanSnapshot, StatusSummary
from .parsing import DEFAULT_PORTS_STRING, MonitoredPortSet, load_port_set
from .scan_manager import DEFAULT_MAX_SCAN_WORKERS, ScanManager
from .system.backend import find_backend_executable
from .system.commands import CommandRunner, DEFAULT_COMMAND_TIMEOUT, run_command
from .system.locator import ProcessLocator

SCAN_INTERVAL_SECONDS = 2.0


class PortKillController:
    """Owns the scan and kill managers and the shared state they publish."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        config_path: Optional[str] = None,
        runner: CommandRunner = run_command,
        persist: Optional[bool] = None,
    ):
        """
        Initializes the controller.

        With an explicit ``config`` nothing is read from or written to disk
        unless ``persist`` is True; otherwise the YAML file at ``config_path``
        is loaded and re-read before every scan.
        """
        self.config_path = config_path
        self._persist = persist if persist is not None else config is None
        self.config = dict(config) if config is not None else configuration.load_or_create_config(config_path)
        for key, value in configuration.DEFAULT_CONFIG.items():
            self.config.setdefault(key, value)

        timeout = float(self.config.get('command_timeout_seconds') or DEFAULT_COMMAND_TIMEOUT)
        self.store = EngineStateModel()
        self.locator = ProcessLocator(runner=runner, timeout=timeout)
        self.scan_manager = ScanManager(
            self.locator,
            self.store,
            max_workers=self.config.get('max_scan_workers') or DEFAULT_MAX_SCAN_WORKERS,
        )
        self.kill_manager = KillManager(self.store, runner=runner, timeout=timeout)
        self.ports = self._load_ports()
        self.backend_path = find_backend_executable(self.config.get('backend_path') or "")

        self._destroy_lock = threading.Lock()
        self._monitor_lock = threading.Lock()
        self._monitor_stop_event = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None

        if self.config.get('auto_refresh'):
            self.start_monitoring()

    # ------------------- Observation -------------------

    @property
    def state(self) -> EngineState:
        return self.store.state

    @property
    def snapshot(self) -> ScanSnapshot:
        return self.store.snapshot

    @property
    def processes(self) -> List[ProcessRecord]:
        return list(self.store.snapshot.processes)

    @property
    def is_scanning(self) -> bool:
        return self.store.state.scanning

    @property
    def is_killing(self) -> bool:
        return self.store.state.killing

    @property
    def is_destroyed(self) -> bool:
        return self.store.state.destroyed

    @property
    def last_error(self) -> Optional[PortKillError]:
        return self.store.state.last_error

    @property
    def status_summary(self) -> StatusSummary:
        return self.store.snapshot.summary

    @property
    def title(self) -> str:
        """Short status line for a menu bar or terminal title."""
        state, snapshot = self.store.view()
        if state.scanning:
            return "Scanning..."
        return snapshot.summary.text

    def subscribe(self, callback: StateListener) -> Callable[[], None]:
        """Registers a callback for state changes. Returns an unsubscribe function."""
        return self.store.subscribe(callback)

    # ------------------- Scanning -------------------

    def _load_ports(self) -> MonitoredPortSet:
        try:
            return load_port_set(self.config)
        except (TypeError, ValueError) as e:
            logging.error(f"Invalid port configuration, falling back to defaults: {e}")
            return load_port_set(configuration.DEFAULT_CONFIG)

    def reload_ports(self) -> MonitoredPortSet:
        """Re-reads the monitored ports from the configuration file."""
        if self._persist:
            self.config = configuration.load_or_create_config(self.config_path)
        self.ports = self._load_ports()
        return self.ports

    def scan(self) -> ScanSnapshot:
        """Runs a full scan pass with the current port configuration."""
        if self.is_destroyed:
            return self.snapshot
        ports = self.reload_ports()
        return self.scan_manager.scan(ports)

    def refresh(self) -> threading.Thread:
        """Starts a scan on a background thread and returns that thread."""
        thread = threading.Thread(target=self.scan, daemon=True)
        thread.start()
        return thread

    def cancel_scan(self) -> None:
        self.scan_manager.cancel()

    def start_monitoring(self) -> None:
        """Rescans every SCAN_INTERVAL_SECONDS until stopped or destroyed."""
        with self._monitor_lock:
            if self.is_destroyed or self._monitor_thread is not None:
                return
            # Each monitor thread owns its stop event so a stopped thread never resumes.
            self._monitor_stop_event = threading.Event()
            self._monitor_thread = threading.Thread(
                target=self._background_monitor,
                args=(self._monitor_stop_event,),
                name="portkill-monitor",
                daemon=True,
            )
            self._monitor_thread.start()

    def stop_monitoring(self) -> None:
        with self._monitor_lock:
            self._monitor_stop_event.set()
            self._monitor_thread = None

    def _background_monitor(self, stop_event: threading.Event):
        while not stop_event.is_set() and not self.is_destroyed:
            self.scan()
            stop_event.wait(SCAN_INTERVAL_SECONDS)

    # ------------------- Termination -------------------

    def terminate(self, pid: int) -> KillResult:
        """Terminates one process and rescans."""
        if self.is_destroyed:
            return KillResult(rejected=True)
        return self._after_kill(self.kill_manager.terminate(pid))

    def terminate_all(self, pids: Optional[Iterable[int]] = None) -> KillResult:
        """Terminates the given PIDs, or every process in the current snapshot, and rescans."""
        if self.is_destroyed:
            return KillResult(rejected=True)
        pids = list(pids) if pids is not None else self.snapshot.pids
        if not pids:
            return KillResult()
        return self._after_kill(self.kill_manager.terminate_all(pids))

    def _after_kill(self, result: KillResult) -> KillResult:
        if result.rejected:
            return result
        if not result.cancelled:
            self.scan()
        # Set after the rescan, which clears last_error.
        if result.failed:
            self.store.update(last_error=TerminationFailed(result.failed))
        return result

    # ------------------- Settings -------------------

    def update_config(self, new_config: Dict[str, Any]) -> None:
        """Updates the config, refreshes derived state, and saves it."""
        self.config = dict(new_config)
        self.ports = self._load_ports()
        if self._persist:
            configuration.save_config(self.config, self.config_path)

    def _listed_ports(self) -> MonitoredPortSet:
        value = self.config.get('monitored_ports') or ''
        if isinstance(value, (list, tuple)):
            return MonitoredPortSet.from_ports(value)
        return MonitoredPortSet.from_string(str(value))

    def set_monitored_ports(self, ports: MonitoredPortSet) -> None:
        new_config = dict(self.config)
        new_config['monitored_ports'] = ports.to_string()
        self.update_config(new_config)

    def add_port(self, port: int) -> MonitoredPortSet:
        ports = self._listed_ports().with_port(port)
        self.set_monitored_ports(ports)
        return ports

    def remove_port(self, port: int) -> MonitoredPortSet:
        ports = self._listed_ports().without_port(port)
        self.set_monitored_ports(ports)
        return ports

    def set_port_range_mode(self, enabled: bool) -> None:
        new_config = dict(self.config)
        new_config['use_port_range'] = bool(enabled)
        self.update_config(new_config)

    def reset_ports(self) -> MonitoredPortSet:
        """Restores the default monitored port list."""
        new_config = dict(self.config)
        new_config['monitored_ports'] = DEFAULT_PORTS_STRING
        self.update_config(new_config)
        return self._listed_ports()

    # ------------------- Lifecycle -------------------

    def destroy(self) -> None:
        """Stops all work. Every entry point is a no-op afterwards. Idempotent."""
        with self._destroy_lock:
            if not self.store.mark_destroyed():
                return
            self.stop_monitoring()
            self.kill_manager.destroy()
            self.scan_manager.destroy()
            logging.info("PortKill controller destroyed.")

    close = destroy

    def __enter__(self) -> PortKillController:
        return self

    def __exit__(self, *exc_info) -> None:
        self.destroy()
