import pytest

from actions.dispatcher import ActionDispatcher, ActionId, DEFAULT_ACTION_MAPPING, parse_action_mapping


def recording_handlers(calls):
    return {action: (lambda a=action: calls.append(a)) for action in ActionId}


def test_two_blinks_toggle_light_only():
    calls = []
    dispatcher = ActionDispatcher(handlers=recording_handlers(calls))
    assert dispatcher.dispatch(2) is ActionId.TOGGLE_LIGHT
    assert calls == [ActionId.TOGGLE_LIGHT]


def test_unmapped_count_does_nothing():
    calls = []
    dispatcher = ActionDispatcher(handlers=recording_handlers(calls))
    assert dispatcher.dispatch(4) is None
    assert dispatcher.dispatch(1) is None
    assert calls == []
    assert dispatcher.last_action is None


@pytest.mark.parametrize("count,action", sorted(DEFAULT_ACTION_MAPPING.items()))
def test_default_mapping(count, action):
    calls = []
    dispatcher = ActionDispatcher(handlers=recording_handlers(calls))
    dispatcher(count)
    assert calls == [action]


def test_mapping_from_config():
    calls = []
    config = {'actions': {'mapping': {'2': 'toggle_fan', 4: 'voice_message'}}}
    dispatcher = ActionDispatcher(config, handlers=recording_handlers(calls))
    assert dispatcher.resolve(2) is ActionId.TOGGLE_FAN
    assert dispatcher.resolve(3) is None
    dispatcher.dispatch(4)
    assert calls == [ActionId.VOICE_MESSAGE]


def test_unknown_action_name_rejected():
    with pytest.raises(ValueError):
        ActionDispatcher({'actions': {'mapping': {2: 'open_garage'}}})


def test_non_positive_count_rejected():
    with pytest.raises(ValueError):
        parse_action_mapping({0: 'toggle_light'})


def test_missing_handler_is_ignored():
    dispatcher = ActionDispatcher()
    assert dispatcher.dispatch(2) is None


def test_register_replaces_handler():
    calls = []
    dispatcher = ActionDispatcher(handlers=recording_handlers(calls))
    dispatcher.register(ActionId.TOGGLE_LIGHT, lambda: calls.append("custom"))
    dispatcher.dispatch(2)
    assert calls == ["custom"]


def test_describe_sorted():
    assert ActionDispatcher().describe() == [
        "2 blinks: toggle_light",
        "3 blinks: toggle_fan",
        "5 blinks: emergency_alert",
        "6 blinks: voice_message",
    ]
