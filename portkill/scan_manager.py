"""
Manages the lifecycle of scan passes over the monitored ports.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum, auto
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import CommandError, OperationCancelled, ParseError, ProcessNotFound
from .events import CancelToken, EngineStateModel
from .models import ProcessRecord, ScanSnapshot
from .system.locator import ProcessLocator

DEFAULT_MAX_SCAN_WORKERS = 16
# How often a waiting pass re-checks its cancel token.
_POLL_INTERVAL = 0.05


class ScanState(Enum):
    """Represents the scanning state of the engine."""
    IDLE = auto()
    SCANNING = auto()
    DESTROYED = auto()


class ScanManager:
    """
    Runs the locator over a port set and publishes complete passes.

    Starting a pass cancels the previous one. Only the most recently started
    pass may publish, and only if it ran to completion.
    """

    def __init__(
        self,
        locator: ProcessLocator,
        store: EngineStateModel,
        max_workers: int = DEFAULT_MAX_SCAN_WORKERS,
    ):
        self.locator = locator
        self.store = store
        self.max_workers = max(1, int(max_workers))
        self.state = ScanState.IDLE
        self._lock = threading.RLock()
        self._token: Optional[CancelToken] = None
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="portkill-scan")

    def scan(self, ports: Iterable[int]) -> ScanSnapshot:
        """
        Scans every port and returns the published snapshot.

        If this pass is cancelled or superseded, nothing is published and the
        previously published snapshot is returned.
        """
        ports = list(ports)
        with self._lock:
            if self.state == ScanState.DESTROYED:
                return self.store.snapshot
            if self._token is not None:
                logging.info("Cancelling in-flight scan before starting a new one.")
                self._token.cancel()
            token = CancelToken()
            self._token = token
            self.state = ScanState.SCANNING
            self.store.update(scanning=True, last_error=None)

        logging.info(f"Scanning {len(ports)} port(s) for listening processes.")
        records, launch_error = self._run_pass(ports, token)
        return self._finish(token, records, launch_error)

    def cancel(self) -> None:
        """Cancels the in-flight pass, if any. Its results are discarded."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def destroy(self) -> None:
        """Cancels any pass and releases the worker pool. Safe to call repeatedly."""
        with self._lock:
            if self.state == ScanState.DESTROYED:
                return
            self.state = ScanState.DESTROYED
            if self._token is not None:
                self._token.cancel()
                self._token = None
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _run_pass(self, ports: List[int], token: CancelToken) -> Tuple[List[ProcessRecord], Optional[CommandError]]:
        futures: Dict[Future, int] = {}
        try:
            for port in ports:
                futures[self._executor.submit(self.locator.locate, port, token)] = port
        except RuntimeError:
            # The pool was shut down by destroy() while submitting.
            token.cancel()

        records: List[ProcessRecord] = []
        launch_error: Optional[CommandError] = None
        pending = set(futures)
        while pending and not token.cancelled:
            done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
            for future in done:
                port = futures[future]
                try:
                    record = future.result()
                except ProcessNotFound:
                    logging.debug(f"No listener on port {port}")
                except ParseError as e:
                    logging.warning(f"Could not parse listing output for port {port}: {e}")
                except CommandError as e:
                    logging.error(f"Listing command failed for port {port}: {e}")
                    launch_error = launch_error or e
                except OperationCancelled:
                    pass
                except Exception as e:
                    logging.error(f"Unexpected error checking port {port}: {e}")
                else:
                    logging.debug(f"Port {port}: {record.name} (PID {record.pid})")
                    records.append(record)

        for future in pending:
            future.cancel()
        return records, launch_error

    def _finish(
        self,
        token: CancelToken,
        records: List[ProcessRecord],
        launch_error: Optional[CommandError],
    ) -> ScanSnapshot:
        with self._lock:
            if self._token is not token:
                logging.info("Discarding results of a superseded scan.")
                return self.store.snapshot
            self._token = None
            if self.state != ScanState.DESTROYED:
                self.state = ScanState.IDLE

            if token.cancelled:
                logging.info("Scan cancelled; keeping the previous results.")
                self.store.update(scanning=False)
                return self.store.snapshot

            snapshot = ScanSnapshot.from_records(records)
            self.store.update(snapshot=snapshot, scanning=False, last_error=launch_error)
            logging.info(f"Scan complete: {snapshot.summary.text}")
            return snapshot
