from datetime import timedelta

from conftest import FakeClock, InMemoryTenderStore, make_tender
from services.background_loop import LoopState
from services.retention_sweeper import RetentionSweeper


def _sweeper(store, clock):
    return RetentionSweeper(store, clock=clock, interval_seconds=86400, initial_delay_seconds=30)


def test_only_tenders_past_the_grace_window_are_deleted():
    clock = FakeClock()
    now = clock.now()
    store = InMemoryTenderStore()
    store.add(make_tender("old", application_deadline=now - timedelta(hours=48)))
    store.add(make_tender("recent", application_deadline=now - timedelta(hours=12)))
    store.add(make_tender("open", application_deadline=now + timedelta(hours=12)))
    store.add(make_tender("no-deadline"))

    deleted = _sweeper(store, clock).run_cycle()

    assert deleted == 1
    assert set(store.rows) == {"recent", "open", "no-deadline"}


def test_deadline_exactly_at_cutoff_is_kept():
    clock = FakeClock()
    store = InMemoryTenderStore()
    store.add(make_tender("edge", application_deadline=clock.now() - timedelta(days=1)))

    assert _sweeper(store, clock).run_cycle() == 0
    assert "edge" in store.rows


def test_nothing_expired_skips_delete():
    clock = FakeClock()
    store = InMemoryTenderStore()
    store.add(make_tender("open", application_deadline=clock.now() + timedelta(days=3)))

    assert _sweeper(store, clock).run_cycle() == 0
    assert store.delete_calls == []


def test_expired_tenders_are_deleted_in_one_batch():
    clock = FakeClock()
    store = InMemoryTenderStore()
    for i in range(15):
        store.add(make_tender(f"old-{i}", application_deadline=clock.now() - timedelta(days=10 + i)))

    sweeper = _sweeper(store, clock)
    assert sweeper.run_cycle() == 15
    assert len(store.delete_calls) == 1
    assert sweeper.status()["totalDeleted"] == 15


def test_failed_sweep_does_not_stop_the_loop():
    clock = FakeClock()
    store = InMemoryTenderStore()
    store.fail_find = True
    sweeper = _sweeper(store, clock)
    intervals = []

    def on_sleep(seconds):
        if seconds == 86400:
            intervals.append(seconds)
            if len(intervals) == 1:
                store.fail_find = False
                store.add(make_tender("old", application_deadline=clock.now() - timedelta(days=5)))
            else:
                sweeper.stop_event.set()

    clock.on_sleep = on_sleep
    sweeper.run_forever()

    assert sweeper.cycles_completed == 2
    assert "old" not in store.rows
    assert sweeper.last_error is None
    assert sweeper.state == LoopState.STOPPED
    assert clock.sleeps == [30, 86400, 86400]
