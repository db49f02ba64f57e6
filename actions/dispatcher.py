# actions/dispatcher.py
from enum import Enum


class ActionId(Enum):
    """Actions a blink gesture can trigger."""
    TOGGLE_LIGHT = "toggle_light"
    TOGGLE_FAN = "toggle_fan"
    EMERGENCY_ALERT = "emergency_alert"
    VOICE_MESSAGE = "voice_message"


DEFAULT_ACTION_MAPPING = {
    2: ActionId.TOGGLE_LIGHT,
    3: ActionId.TOGGLE_FAN,
    5: ActionId.EMERGENCY_ALERT,
    6: ActionId.VOICE_MESSAGE,
}


def parse_action_mapping(raw_mapping):
    """
    Build a blink count -> ActionId table from config values

    Args:
        raw_mapping: dict of blink count to action name (e.g. {2: 'toggle_light'})

    Returns:
        dict: blink count -> ActionId

    Raises:
        ValueError: unknown action name or non-positive blink count
    """
    mapping = {}
    for count, action in raw_mapping.items():
        count = int(count)
        if count < 1:
            raise ValueError(f"Blink count must be positive, got {count}")
        mapping[count] = action if isinstance(action, ActionId) else ActionId(action)
    return mapping


class ActionDispatcher:
    """
    Maps finalized gesture blink counts to actions
    - Static table, read-only once built
    - At most one handler runs per gesture
    - Unmapped counts are ignored
    """

    def __init__(self, config=None, handlers=None):
        """
        Initialize Action Dispatcher

        Args:
            config: Configuration dictionary with an optional actions.mapping table
            handlers: dict of ActionId -> zero-argument callable
        """
        self.config = config or {}

        actions_config = self.config.get('actions', {})
        raw_mapping = actions_config.get('mapping')
        if raw_mapping:
            self.mapping = parse_action_mapping(raw_mapping)
        else:
            self.mapping = dict(DEFAULT_ACTION_MAPPING)

        self.handlers = dict(handlers or {})
        self.last_action = None

    def register(self, action_id, handler):
        self.handlers[action_id] = handler

    def resolve(self, blink_count):
        """Return the ActionId mapped to blink_count, or None"""
        return self.mapping.get(blink_count)

    def dispatch(self, blink_count):
        """
        Invoke the effect mapped to a finalized gesture

        Args:
            blink_count: Blink count of the finalized gesture

        Returns:
            ActionId | None: The action that ran
        """
        action_id = self.resolve(blink_count)
        if action_id is None:
            return None

        handler = self.handlers.get(action_id)
        if handler is None:
            return None

        handler()
        self.last_action = action_id
        return action_id

    __call__ = dispatch

    def describe(self):
        """Human readable mapping, sorted by blink count"""
        return [f"{count} blinks: {action.value}" for count, action in sorted(self.mapping.items())]
