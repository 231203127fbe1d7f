from portkill.errors import CommandError
from portkill.events import CancelToken, EngineState, EngineStateModel
from portkill.models import ProcessRecord, ScanSnapshot


def test_update_replaces_state_and_snapshot_together():
    store = EngineStateModel()
    seen = []
    store.subscribe(lambda state, snapshot: seen.append((state, snapshot)))
    snapshot = ScanSnapshot.from_records([ProcessRecord.from_command(1, 3000, "node")])

    assert store.update(snapshot=snapshot, scanning=False, last_error=None)

    state, published = store.view()
    assert published is snapshot
    assert seen == [(state, snapshot)]


def test_update_keeps_other_flags():
    store = EngineStateModel()
    store.update(scanning=True)
    store.update(killing=True)
    assert store.state == EngineState(scanning=True, killing=True)


def test_unsubscribe():
    store = EngineStateModel()
    seen = []
    unsubscribe = store.subscribe(lambda state, snapshot: seen.append(state))
    store.update(scanning=True)
    unsubscribe()
    unsubscribe()
    store.update(scanning=False)
    assert len(seen) == 1


def test_failing_listener_does_not_block_others():
    store = EngineStateModel()
    seen = []

    def _broken(state, snapshot):
        raise RuntimeError("boom")

    store.subscribe(_broken)
    store.subscribe(lambda state, snapshot: seen.append(state.scanning))
    assert store.update(scanning=True)
    assert seen == [True]


def test_destroyed_is_terminal():
    store = EngineStateModel()
    store.update(scanning=True, killing=True, last_error=CommandError("lsof"))
    assert store.mark_destroyed()
    before = store.view()

    assert not store.mark_destroyed()
    assert not store.update(snapshot=ScanSnapshot.from_records([]), scanning=True)
    assert store.view() == before
    assert before[0].destroyed and not before[0].scanning and not before[0].killing


def test_cancel_token():
    token = CancelToken()
    assert not token.cancelled
    assert token.wait(0) is False
    token.cancel()
    assert token.cancelled
    assert token.wait(10) is True
