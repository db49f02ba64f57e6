# metrics/session.py
import time

from metrics.blinks import BlinkDebouncer
from metrics.gestures import GestureAccumulator


class DetectionSession:
    """
    Per-session blink pipeline: debouncer -> gesture accumulator
    Holds all mutable detection state for one start/stop cycle.
    """

    def __init__(self, config=None, on_blink=None, on_gesture=None):
        """
        Args:
            config: Configuration dictionary
            on_blink: Called with no arguments for every detected blink
            on_gesture: Called with the blink count of every finalized gesture
        """
        self.config = config or {}
        self.on_blink = on_blink
        self.on_gesture = on_gesture

        self.debouncer = BlinkDebouncer(self.config)
        self.gestures = GestureAccumulator(self.config)
        self.frames_processed = 0
        self.frames_without_face = 0
        self._generation = 0

    def process(self, ear_value, timestamp=None):
        """
        Run one frame through the pipeline

        Args:
            ear_value: Averaged EAR, or None when no face was found in this frame
            timestamp: Current timestamp (optional)

        Returns:
            dict: Blink and gesture results for this frame
        """
        if timestamp is None:
            timestamp = time.monotonic()

        self.frames_processed += 1
        blink_result = None
        blink_event = None

        # No face: leave the debouncer untouched so a dropout does not break a closure
        if ear_value is None:
            self.frames_without_face += 1
        else:
            blink_result = self.debouncer.update(ear_value, timestamp)
            blink_event = blink_result['blink_event']

        gesture_result = self.gestures.update(timestamp, blink_event)
        finalized = gesture_result['finalized_gesture']

        # A callback may reset the session (stop); skip the rest of this frame if so
        generation = self._generation
        if finalized is not None and self.on_gesture is not None:
            self.on_gesture(finalized.blink_count)

        if blink_event is not None and self.on_blink is not None and generation == self._generation:
            self.on_blink()

        return {
            'face_detected': ear_value is not None,
            'blinks': blink_result,
            'gestures': gesture_result,
            'timestamp': timestamp
        }

    def reset(self):
        """Reset debounce state and drop any open gesture without dispatching it"""
        self.debouncer.reset()
        self.gestures.discard()
        self._generation += 1
        self.frames_processed = 0
        self.frames_without_face = 0
