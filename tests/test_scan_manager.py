import threading

from portkill.errors import CommandError
from portkill.events import EngineStateModel
from portkill.models import ProcessRecord, ScanSnapshot
from portkill.scan_manager import ScanManager, ScanState
from portkill.system.commands import CommandResult
from portkill.system.locator import ProcessLocator

from conftest import FakeRunner, lsof_output


def make_manager(runner, max_workers=4):
    store = EngineStateModel()
    return ScanManager(ProcessLocator(runner=runner), store, max_workers=max_workers), store


def test_scan_publishes_sorted_snapshot(runner):
    manager, store = make_manager(runner)
    snapshot = manager.scan([8080, 3001, 3000])

    assert [(r.port, r.pid, r.name) for r in snapshot.processes] == [
        (3000, 1234, "node"),
        (8080, 4321, "python3"),
    ]
    assert store.snapshot is snapshot
    assert store.state.scanning is False
    assert store.state.last_error is None
    assert manager.state == ScanState.IDLE
    manager.destroy()


def test_per_port_failures_are_swallowed():
    def runner(args, timeout):
        port = int(args[2].split(":")[1]) if args[0] == "lsof" else None
        if port == 3000:
            return CommandResult(0, lsof_output(10, 3000))
        if port == 3001:
            return CommandResult(0, "COMMAND PID\ngarbage")
        if port == 3002:
            return CommandResult(1, "")
        return CommandResult(0, "/usr/bin/node")

    manager, store = make_manager(runner)
    snapshot = manager.scan([3000, 3001, 3002])
    assert [r.port for r in snapshot.processes] == [3000]
    assert store.state.last_error is None
    manager.destroy()


def test_listing_launch_failure_surfaces_as_last_error():
    def runner(args, timeout):
        raise CommandError(args[0], "lsof: not found")

    manager, store = make_manager(runner)
    snapshot = manager.scan([3000, 3001])
    assert snapshot.count == 0
    assert isinstance(store.state.last_error, CommandError)
    assert store.state.scanning is False
    manager.destroy()


def test_new_scan_clears_last_error(runner):
    manager, store = make_manager(runner)
    store.update(last_error=CommandError("lsof"))
    manager.scan([3000])
    assert store.state.last_error is None
    manager.destroy()


def test_scanning_flag_set_during_pass():
    flags = []
    store = EngineStateModel()
    store.subscribe(lambda state, snapshot: flags.append(state.scanning))
    manager = ScanManager(ProcessLocator(runner=FakeRunner()), store)
    manager.scan([3000])
    assert flags == [True, False]
    manager.destroy()


def test_empty_port_set_publishes_empty_snapshot(runner):
    manager, store = make_manager(runner)
    store.update(snapshot=ScanSnapshot.from_records([ProcessRecord.from_command(1, 1, "x")]))
    snapshot = manager.scan([])
    assert snapshot.count == 0
    assert store.snapshot.count == 0
    manager.destroy()


def test_superseded_scan_never_publishes():
    """Scan B started while scan A is in flight is the only pass published."""
    release = threading.Event()
    a_started = threading.Event()
    phase = {"value": "A"}

    def runner(args, timeout):
        if args[0] == "lsof":
            port = int(args[2].split(":")[1])
            if phase["value"] == "A":
                a_started.set()
                release.wait(5)
                return CommandResult(0, lsof_output(111, port))
            return CommandResult(0, lsof_output(222, port))
        return CommandResult(0, "/usr/bin/node\n")

    manager, store = make_manager(runner, max_workers=4)
    published = []
    store.subscribe(lambda state, snapshot: published.append(snapshot))

    results = {}
    thread_a = threading.Thread(target=lambda: results.setdefault("a", manager.scan([3000, 3001])))
    thread_a.start()
    assert a_started.wait(5)

    phase["value"] = "B"
    snapshot_b = manager.scan([3000, 3001])
    release.set()
    thread_a.join(5)
    assert not thread_a.is_alive()

    assert {r.pid for r in snapshot_b.processes} == {222}
    assert store.snapshot is snapshot_b
    assert all(r.pid != 111 for r in results["a"].processes)
    non_empty = {id(s): s for s in published if s.count}
    assert list(non_empty.values()) == [snapshot_b]
    assert store.state.scanning is False
    manager.destroy()


def test_cancelled_scan_keeps_previous_snapshot():
    release = threading.Event()
    started = threading.Event()

    def runner(args, timeout):
        started.set()
        release.wait(5)
        return CommandResult(0, lsof_output(5, 3000))

    manager, store = make_manager(runner)
    previous = ScanSnapshot.from_records([ProcessRecord.from_command(9, 9000, "ruby")])
    store.update(snapshot=previous)

    results = {}
    thread = threading.Thread(target=lambda: results.setdefault("snapshot", manager.scan([3000])))
    thread.start()
    assert started.wait(5)
    manager.cancel()
    thread.join(5)
    release.set()

    assert results["snapshot"] is previous
    assert store.snapshot is previous
    assert store.state.scanning is False
    manager.destroy()


def test_scan_after_destroy_is_noop(runner):
    manager, store = make_manager(runner)
    first = manager.scan([3000])
    manager.destroy()
    manager.destroy()
    runner.calls.clear()

    assert manager.scan([3000, 8080]) is first
    assert runner.calls == []
    assert manager.state == ScanState.DESTROYED


def test_worker_pool_is_bounded():
    active = {"now": 0, "max": 0}
    lock = threading.Lock()

    def runner(args, timeout):
        with lock:
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
        threading.Event().wait(0.01)
        with lock:
            active["now"] -= 1
        return CommandResult(1, "")

    manager, store = make_manager(runner, max_workers=3)
    manager.scan(range(3000, 3030))
    assert active["max"] <= 3
    manager.destroy()
