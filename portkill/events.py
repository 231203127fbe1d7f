"""
Defines the engine's state model and the cancellation primitive shared by the
scan and kill managers.

The state record and the latest scan snapshot live together in one
``EngineStateModel`` and are always replaced as a unit, so observers never see
a partially applied update.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Tuple

from .errors import OperationCancelled, PortKillError
from .models import ScanSnapshot

StateListener = Callable[["EngineState", ScanSnapshot], None]


@dataclass(frozen=True)
class EngineState:
    """Flags describing what the engine is currently doing."""
    scanning: bool = False
    killing: bool = False
    destroyed: bool = False
    last_error: Optional[PortKillError] = None


class CancelToken:
    """A one-shot cancellation flag that can also be waited on."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    def wait(self, timeout: float) -> bool:
        """Sleeps for ``timeout`` seconds; returns True early if cancelled."""
        return self._event.wait(timeout)


class EngineStateModel:
    """
    Thread-safe holder for the engine state and the published snapshot.

    Listeners are invoked while the lock is held so they observe updates in
    the order they were applied. A listener must not block on another thread
    that writes to the model.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._state = EngineState()
        self._snapshot = ScanSnapshot.empty()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def snapshot(self) -> ScanSnapshot:
        return self._snapshot

    def view(self) -> Tuple[EngineState, ScanSnapshot]:
        """Returns the state and snapshot as one consistent pair."""
        with self._lock:
            return self._state, self._snapshot

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Registers a listener and returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def update(self, snapshot: Optional[ScanSnapshot] = None, **changes: Any) -> bool:
        """
        Applies flag changes and optionally a new snapshot in one step.

        Returns False without changing anything once the engine is destroyed.
        """
        with self._lock:
            if self._state.destroyed:
                return False
            self._state = replace(self._state, **changes)
            if snapshot is not None:
                self._snapshot = snapshot
            self._notify()
            return True

    def mark_destroyed(self) -> bool:
        """Sets the terminal destroyed flag. Returns False if it was already set."""
        with self._lock:
            if self._state.destroyed:
                return False
            self._state = replace(self._state, scanning=False, killing=False, destroyed=True)
            self._notify()
            self._listeners.clear()
            return True

    def _notify(self) -> None:
        state, snapshot = self._state, self._snapshot
        for listener in list(self._listeners):
            try:
                listener(state, snapshot)
            except Exception as e:
                logging.error(f"State listener {listener!r} failed: {e}")
