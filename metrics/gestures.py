# metrics/gestures.py
import time
from dataclasses import dataclass


@dataclass
class Gesture:
    """A burst of blinks terminated by a pause."""
    blink_count: int
    started_at: float
    last_blink_at: float


class GestureAccumulator:
    """
    Groups blink events into gestures
    - A gesture stays open while each blink follows the previous one within the settle window
    - Once the window passes with no new blink the gesture is finalized exactly once
    - The settle window is checked on every frame, no timer thread
    """

    def __init__(self, config=None):
        """
        Initialize Gesture Accumulator with configuration

        Args:
            config: Configuration dictionary with gesture parameters
        """
        self.config = config or {}

        gestures_config = self.config.get('gestures', {})
        self.settle_window = gestures_config.get('settle_window_s', 1.5)

        self.current_gesture = None
        self.gesture_history = []  # blink counts of finalized gestures

    @property
    def deadline(self):
        if self.current_gesture is None:
            return None
        return self.current_gesture.last_blink_at + self.settle_window

    def update(self, timestamp=None, blink_event=None):
        """
        Advance the accumulator to the current frame

        Args:
            timestamp: Current timestamp (optional)
            blink_event: BlinkEvent emitted by the debouncer this frame (optional)

        Returns:
            dict: Gesture state and the gesture finalized this frame, if any
        """
        if timestamp is None:
            timestamp = time.monotonic()

        finalized = None

        # Settle window elapsed since the last blink
        if self.current_gesture is not None and timestamp > self.deadline:
            finalized = self.current_gesture
            self.current_gesture = None
            self.gesture_history.append(finalized.blink_count)

        if blink_event is not None:
            if self.current_gesture is None:
                self.current_gesture = Gesture(
                    blink_count=1,
                    started_at=blink_event.timestamp,
                    last_blink_at=blink_event.timestamp
                )
            else:
                self.current_gesture.blink_count += 1
                self.current_gesture.last_blink_at = blink_event.timestamp

        if self.current_gesture is not None:
            time_until_settle = max(0.0, self.deadline - timestamp)
        else:
            time_until_settle = 0.0

        return {
            'gesture_open': self.current_gesture is not None,
            'current_blink_count': self.current_gesture.blink_count if self.current_gesture else 0,
            'time_until_settle': time_until_settle,
            'finalized_gesture': finalized,
            'settle_window': self.settle_window
        }

    def discard(self):
        """Drop the open gesture without finalizing it"""
        dropped = self.current_gesture
        self.current_gesture = None
        return dropped

    def reset(self):
        """Reset the accumulator state and clear history"""
        self.current_gesture = None
        self.gesture_history.clear()

    def update_config(self, new_config):
        """
        Update configuration parameters

        Args:
            new_config: New configuration dictionary
        """
        if 'gestures' in new_config:
            self.settle_window = new_config['gestures'].get('settle_window_s', self.settle_window)
