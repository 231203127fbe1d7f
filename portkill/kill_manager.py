"""
Terminates processes with a graceful signal, escalating to SIGKILL when the
process outlives the grace period.
"""
from __future__ import annotations
import logging
import threading
from typing import Iterable, Optional

from .errors import CommandError, OperationCancelled, TerminationFailed
from .events import CancelToken, EngineStateModel
from .models import KillResult
from .system.commands import CommandRunner, DEFAULT_COMMAND_TIMEOUT, run_command
from .system.signals import SIGKILL, SIGTERM, is_process_running, send_signal

GRACE_PERIOD_SECONDS = 0.5


class KillManager:
    """
    Runs one kill sequence at a time.

    A request arriving while another is in flight is rejected rather than
    queued. The manager knows nothing about scanning; callers rescan after a
    request completes.
    """

    def __init__(
        self,
        store: EngineStateModel,
        runner: CommandRunner = run_command,
        grace_period: Optional[float] = None,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        self.store = store
        self.runner = runner
        self.grace_period = GRACE_PERIOD_SECONDS if grace_period is None else grace_period
        self.timeout = timeout
        self._busy = threading.Lock()
        self._lock = threading.Lock()
        self._token: Optional[CancelToken] = None
        self._destroyed = False

    def terminate(self, pid: int) -> KillResult:
        """Terminates a single process."""
        return self.terminate_all([pid])

    def terminate_all(self, pids: Iterable[int]) -> KillResult:
        """
        Terminates each PID in turn.

        A failure for one PID is recorded and the batch continues. Cancellation
        stops the batch; PIDs not yet reached are left alone.
        """
        pids = list(dict.fromkeys(pids))
        if not self._busy.acquire(blocking=False):
            logging.warning("A kill request is already in progress; rejecting new request.")
            return KillResult(rejected=True)

        try:
            with self._lock:
                if self._destroyed:
                    return KillResult(rejected=True)
                token = CancelToken()
                self._token = token
            self.store.update(killing=True)
            try:
                return self._run_batch(pids, token)
            finally:
                with self._lock:
                    self._token = None
                self.store.update(killing=False)
        finally:
            self._busy.release()

    def cancel(self) -> None:
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def destroy(self) -> None:
        with self._lock:
            self._destroyed = True
            if self._token is not None:
                self._token.cancel()

    @property
    def is_killing(self) -> bool:
        return self._busy.locked()

    def _run_batch(self, pids, token: CancelToken) -> KillResult:
        result = KillResult()
        for pid in pids:
            try:
                self.kill_pid(pid, token)
            except OperationCancelled:
                logging.info(f"Kill sequence cancelled at PID {pid}.")
                result.cancelled = True
                break
            except TerminationFailed as e:
                logging.error(f"Could not terminate PID {pid}: {e}")
                result.failed[pid] = str(e)
            else:
                result.succeeded.append(pid)
        return result

    def kill_pid(self, pid: int, token: Optional[CancelToken] = None) -> None:
        """
        Sends SIGTERM, waits the grace period, and sends SIGKILL if the process
        is still alive.

        Raises TerminationFailed if a signal can't be delivered and
        OperationCancelled if ``token`` is cancelled at a suspension point.
        """
        token = token or CancelToken()
        if pid <= 0:
            raise TerminationFailed({pid: "invalid pid"}, f"Refusing to signal invalid PID {pid}")

        token.raise_if_cancelled()
        if not self._signal(pid, SIGTERM):
            raise TerminationFailed({pid: "SIGTERM failed"}, f"Could not send SIGTERM to PID {pid}")
        logging.info(f"Sent SIGTERM to PID {pid}")

        if token.wait(self.grace_period):
            raise OperationCancelled()

        alive = is_process_running(self.runner, pid, self.timeout)
        token.raise_if_cancelled()
        if not alive:
            return

        logging.info(f"PID {pid} survived SIGTERM; sending SIGKILL")
        if not self._signal(pid, SIGKILL):
            raise TerminationFailed({pid: "SIGKILL failed"}, f"Could not send SIGKILL to PID {pid}")

    def _signal(self, pid: int, signum: int) -> bool:
        try:
            return send_signal(self.runner, pid, signum, self.timeout)
        except CommandError as e:
            raise TerminationFailed({pid: str(e)}, f"Could not run kill for PID {pid}: {e}") from e
