# metrics/blinks.py
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class BlinkEvent:
    """One completed closed-then-reopened eye transition."""
    timestamp: float


class BlinkDebouncer:
    """
    Turns per-frame EAR samples into discrete blink events
    - FSM with OPEN and CLOSING states
    - A closure must last a minimum number of consecutive frames to count
    - Frame-count based, so it works at any frame rate
    """

    STATE_OPEN = 'OPEN'
    STATE_CLOSING = 'CLOSING'

    def __init__(self, config=None):
        """
        Initialize Blink Debouncer with configuration

        Args:
            config: Configuration dictionary with eye and blink parameters
        """
        self.config = config or {}

        eyes_config = self.config.get('eyes', {})
        blinks_config = self.config.get('blinks', {})

        self.ear_threshold = eyes_config.get('ear_thresh', 0.2)
        self.min_consecutive_closed_frames = blinks_config.get('min_consecutive_closed_frames', 2)

        # Debounce state
        self.consecutive_closed_frames = 0
        self.was_blinking = False
        self.total_blinks = 0

    @property
    def current_state(self):
        return self.STATE_CLOSING if self.consecutive_closed_frames > 0 else self.STATE_OPEN

    def update(self, ear_value, timestamp=None):
        """
        Feed one averaged EAR sample

        Args:
            ear_value: Averaged Eye Aspect Ratio for this frame
            timestamp: Current timestamp (optional)

        Returns:
            dict: Debounce state and the blink event emitted this frame, if any
        """
        if timestamp is None:
            timestamp = time.monotonic()

        is_closed = ear_value < self.ear_threshold
        blink_event = None

        if is_closed:
            self.consecutive_closed_frames += 1
        else:
            if self.consecutive_closed_frames >= self.min_consecutive_closed_frames:
                if not self.was_blinking:
                    self.was_blinking = True
                    blink_event = BlinkEvent(timestamp)
                    self.total_blinks += 1
            else:
                # Too short to be a blink
                self.was_blinking = False
            self.consecutive_closed_frames = 0

        return {
            'current_state': self.current_state,
            'is_eyes_closed': is_closed,
            'blink_detected': blink_event is not None,
            'blink_event': blink_event,
            'consecutive_closed_frames': self.consecutive_closed_frames,
            'total_blinks_detected': self.total_blinks,
            'ear_threshold': self.ear_threshold
        }

    def reset(self):
        """Reset debounce state"""
        self.consecutive_closed_frames = 0
        self.was_blinking = False
        self.total_blinks = 0

    def update_config(self, new_config):
        """
        Update configuration parameters

        Args:
            new_config: New configuration dictionary
        """
        if 'eyes' in new_config:
            self.ear_threshold = new_config['eyes'].get('ear_thresh', self.ear_threshold)
        if 'blinks' in new_config:
            self.min_consecutive_closed_frames = new_config['blinks'].get(
                'min_consecutive_closed_frames', self.min_consecutive_closed_frames)
