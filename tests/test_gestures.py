from metrics.blinks import BlinkEvent
from metrics.gestures import Gesture, GestureAccumulator


def run(accumulator, blink_times, until, dt=0.05):
    """Tick the accumulator every dt seconds, injecting blinks at the given times."""
    finalized = []
    pending = sorted(blink_times)
    t = 0.0
    while t <= until:
        event = None
        if pending and pending[0] <= t + 1e-9:
            event = BlinkEvent(pending.pop(0))
        result = accumulator.update(t, event)
        if result['finalized_gesture'] is not None:
            finalized.append(result['finalized_gesture'])
        t = round(t + dt, 6)
    return finalized


def test_blinks_inside_window_form_one_gesture():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.0}})
    gestures = run(accumulator, [0.5, 1.2], until=5.0)
    assert [g.blink_count for g in gestures] == [2]
    assert gestures[0].started_at == 0.5
    assert gestures[0].last_blink_at == 1.2


def test_blinks_outside_window_form_two_gestures():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.0}})
    gestures = run(accumulator, [0.5, 2.0], until=5.0)
    assert [g.blink_count for g in gestures] == [1, 1]


def test_window_measured_from_last_blink():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.0}})
    gestures = run(accumulator, [0.0, 0.8, 1.6, 2.4, 3.2], until=6.0)
    assert [g.blink_count for g in gestures] == [5]


def test_finalized_exactly_once():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.0}})
    accumulator.update(0.0, BlinkEvent(0.0))
    first = accumulator.update(1.5)
    assert first['finalized_gesture'] == Gesture(1, 0.0, 0.0)
    assert accumulator.update(1.6)['finalized_gesture'] is None
    assert accumulator.update(10.0)['finalized_gesture'] is None
    assert accumulator.gesture_history == [1]


def test_late_blink_closes_stale_gesture_first():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.0}})
    accumulator.update(0.0, BlinkEvent(0.0))
    # no ticks in between, next frame carries a new blink
    result = accumulator.update(3.0, BlinkEvent(3.0))
    assert result['finalized_gesture'].blink_count == 1
    assert result['current_blink_count'] == 1
    assert result['gesture_open'] is True


def test_reports_time_until_settle():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.5}})
    accumulator.update(2.0, BlinkEvent(2.0))
    result = accumulator.update(2.5)
    assert abs(result['time_until_settle'] - 1.0) < 1e-9
    assert result['current_blink_count'] == 1


def test_discard_drops_without_finalizing():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.0}})
    accumulator.update(0.0, BlinkEvent(0.0))
    accumulator.update(0.3, BlinkEvent(0.3))
    dropped = accumulator.discard()
    assert dropped.blink_count == 2
    assert accumulator.update(5.0)['finalized_gesture'] is None
    assert accumulator.gesture_history == []


def test_update_config_changes_settle_window():
    accumulator = GestureAccumulator({'gestures': {'settle_window_s': 1.5}})
    accumulator.update_config({'gestures': {'settle_window_s': 0.5}})
    accumulator.update(0.0, BlinkEvent(0.0))
    result = accumulator.update(0.6)
    assert result['finalized_gesture'].blink_count == 1
