from monitor.models import BackInRangeAlert, OutOfRangeAlert, RangeState
from monitor.range_tracker import RangeStateStore, RangeStateTracker

from tests.conftest import make_snapshot, make_v3_config, make_v4_config


def run_sequence(tracker, flags, config=None):
    return [tracker.observe(make_snapshot(config=config, in_range=flag)) for flag in flags]


def test_store_defaults_to_unknown():
    store = RangeStateStore()
    assert store.get("missing") == RangeState.UNKNOWN
    assert len(store) == 0


def test_first_in_range_is_silent():
    tracker = RangeStateTracker(RangeStateStore())
    assert tracker.observe(make_snapshot(in_range=True)) is None
    assert tracker.store.get("eth-usdc") == RangeState.IN_RANGE


def test_first_out_of_range_is_initial_alert():
    tracker = RangeStateTracker(RangeStateStore())
    event = tracker.observe(make_snapshot(in_range=False))
    assert isinstance(event, OutOfRangeAlert)
    assert event.initial
    assert event.position_name == "ETH/USDC V3"
    assert event.deviation_percent == -3.96


def test_in_out_out_in_sequence():
    tracker = RangeStateTracker(RangeStateStore())
    events = run_sequence(tracker, [True, False, False, True])

    assert events[0] is None
    assert isinstance(events[1], OutOfRangeAlert)
    assert not events[1].initial
    assert events[2] is None
    assert isinstance(events[3], BackInRangeAlert)


def test_out_out_in_sequence():
    tracker = RangeStateTracker(RangeStateStore())
    events = run_sequence(tracker, [False, False, True])

    assert isinstance(events[0], OutOfRangeAlert)
    assert events[0].initial
    assert events[1] is None
    assert isinstance(events[2], BackInRangeAlert)


def test_positions_tracked_independently():
    store = RangeStateStore()
    tracker = RangeStateTracker(store)
    v3, v4 = make_v3_config(), make_v4_config()

    tracker.observe(make_snapshot(config=v3, in_range=False))
    tracker.observe(make_snapshot(config=v4, in_range=True))

    assert store.snapshot() == {
        "eth-usdc": RangeState.OUT_OF_RANGE,
        "mon-ausd": RangeState.IN_RANGE,
    }


def test_separate_stores_do_not_share_state():
    first = RangeStateTracker(RangeStateStore())
    second = RangeStateTracker(RangeStateStore())

    first.observe(make_snapshot(in_range=True))
    event = second.observe(make_snapshot(in_range=False))

    assert event.initial
    assert first.store.get("eth-usdc") == RangeState.IN_RANGE
