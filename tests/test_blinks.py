from metrics.blinks import BlinkDebouncer, BlinkEvent


def feed(debouncer, ears, start=0.0, dt=0.1):
    """Return the frame indices that emitted a blink."""
    emitted = []
    for i, ear in enumerate(ears):
        result = debouncer.update(ear, start + i * dt)
        if result['blink_detected']:
            emitted.append(i)
    return emitted


def test_two_closed_frames_make_one_blink():
    debouncer = BlinkDebouncer()
    assert feed(debouncer, [0.3, 0.3, 0.15, 0.15, 0.3]) == [4]


def test_single_closed_frame_is_noise():
    debouncer = BlinkDebouncer()
    assert feed(debouncer, [0.3, 0.15, 0.3]) == []


def test_blink_event_carries_reopen_timestamp():
    debouncer = BlinkDebouncer()
    for ear, ts in ((0.15, 1.0), (0.15, 1.1)):
        debouncer.update(ear, ts)
    result = debouncer.update(0.3, 1.2)
    assert result['blink_event'] == BlinkEvent(1.2)
    assert result['consecutive_closed_frames'] == 0


def test_prolonged_closure_emits_once():
    debouncer = BlinkDebouncer()
    assert feed(debouncer, [0.1] * 20 + [0.3, 0.3, 0.3]) == [20]


def test_separate_blinks_each_emit():
    debouncer = BlinkDebouncer()
    ears = [0.3, 0.15, 0.15, 0.3, 0.3, 0.15, 0.15, 0.3, 0.3]
    assert feed(debouncer, ears) == [3, 7]
    assert debouncer.total_blinks == 2


def test_closure_right_after_reopen_is_not_counted_again():
    debouncer = BlinkDebouncer()
    assert feed(debouncer, [0.15, 0.15, 0.3, 0.15, 0.15, 0.3]) == [2]


def test_threshold_is_exclusive():
    debouncer = BlinkDebouncer()
    assert feed(debouncer, [0.2, 0.2, 0.2, 0.3]) == []


def test_state_reports_closing():
    debouncer = BlinkDebouncer()
    assert debouncer.update(0.1, 0.0)['current_state'] == BlinkDebouncer.STATE_CLOSING
    assert debouncer.update(0.3, 0.1)['current_state'] == BlinkDebouncer.STATE_OPEN


def test_config_values():
    debouncer = BlinkDebouncer({'eyes': {'ear_thresh': 0.25}, 'blinks': {'min_consecutive_closed_frames': 3}})
    assert feed(debouncer, [0.22, 0.22, 0.3]) == []
    assert feed(debouncer, [0.22, 0.22, 0.22, 0.3], start=5.0) == [3]


def test_update_config():
    debouncer = BlinkDebouncer()
    debouncer.update_config({'blinks': {'min_consecutive_closed_frames': 1}})
    assert feed(debouncer, [0.3, 0.15, 0.3]) == [2]


def test_reset_clears_closure():
    debouncer = BlinkDebouncer()
    debouncer.update(0.1, 0.0)
    debouncer.update(0.1, 0.1)
    debouncer.reset()
    assert debouncer.update(0.3, 0.2)['blink_detected'] is False
    assert debouncer.total_blinks == 0
