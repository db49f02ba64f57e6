import numpy as np
import pytest

from vision.eyes import LandmarkPoint, LEFT_EYE_EAR_INDICES, RIGHT_EYE_EAR_INDICES

OPEN_EYE = 0.03
CLOSED_EYE = 0.005
EYE_WIDTH = 0.1


def make_landmarks(opening=OPEN_EYE, width=EYE_WIDTH, dx=0.0, dy=0.0):
    """478-point face with both eyes set to the given lid opening and width."""
    points = [LandmarkPoint(0.5 + dx, 0.5 + dy, 0.0)] * 478
    for (top, bottom, inner, outer), cx in ((LEFT_EYE_EAR_INDICES, 0.35), (RIGHT_EYE_EAR_INDICES, 0.65)):
        points[inner] = LandmarkPoint(cx - width / 2 + dx, 0.4 + dy, 0.0)
        points[outer] = LandmarkPoint(cx + width / 2 + dx, 0.4 + dy, 0.0)
        points[top] = LandmarkPoint(cx + dx, 0.4 - opening / 2 + dy, 0.0)
        points[bottom] = LandmarkPoint(cx + dx, 0.4 + opening / 2 + dy, 0.0)
    return points


OPEN = make_landmarks(OPEN_EYE)
CLOSED = make_landmarks(CLOSED_EYE)


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now


class FakeLandmarkProvider:
    """Replays a script of landmark frames; None means no face."""

    def __init__(self, script, ready=True, error=None):
        self.script = list(script)
        self.ready = ready
        self.error = error
        self.calls = 0

    def initialize(self):
        return self.ready

    def detect(self, frame, timestamp=None):
        item = self.script[self.calls] if self.calls < len(self.script) else OPEN
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


class FakeFrameSource:
    """Yields blank frames, advancing the clock by dt per read."""

    def __init__(self, clock, frames, dt=0.1):
        self.clock = clock
        self.frames = frames
        self.dt = dt
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.reads > self.frames:
            return False, None
        self.clock.now += self.dt
        return True, np.zeros((4, 4, 3), dtype=np.uint8)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def base_config(tmp_path):
    return {
        'logging': {'log_dir': str(tmp_path / 'logs')},
        'display': {'show_landmarks': False},
        'gestures': {'settle_window_s': 1.5},
    }
