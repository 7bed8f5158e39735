import threading

import numpy as np
import pytest

from headcam.rendering import PerspectiveCamera, Renderer
from headcam.tracking import BoundingBox, FaceDetection
from headcam.utils import DevicePermissionError, DeviceUnavailableError


class FakeDetector:
    """Returns scripted detections; can block until released."""

    def __init__(self, detections=None, block: bool = False, error: Exception = None):
        self.detections = detections or []
        self.error = error
        self.release = threading.Event()
        self.entered = threading.Event()
        if not block:
            self.release.set()
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def detect(self, frame):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        try:
            self.release.wait(timeout=5.0)
            if self.error is not None:
                raise self.error
            return list(self.detections)
        finally:
            with self._lock:
                self.active -= 1


class FakeRenderer(Renderer):

    def __init__(self, close_after: int = None, fail_on: int = None):
        self.camera = PerspectiveCamera()
        self.frames = 0
        self.dispose_calls = 0
        self.close_after = close_after
        self.fail_on = fail_on
        self.positions = []

    def render_frame(self):
        if self.fail_on is not None and self.frames + 1 == self.fail_on:
            raise RuntimeError("render failed")
        self.frames += 1
        self.positions.append(self.camera.position.copy())

    def is_open(self) -> bool:
        if self.dispose_calls:
            return False
        return self.close_after is None or self.frames < self.close_after

    def dispose(self):
        self.dispose_calls += 1


class FakeStream:
    """Stands in for VideoStream: 640x480 frames, no hardware."""

    events = []
    instances = []

    def __init__(self, source, on_resolution=None, on_error=None):
        if source == 'denied':
            raise DevicePermissionError(f"Permission denied: {source}", source)
        if source == 'missing':
            raise DeviceUnavailableError(f"Could not open capture source: {source}", source)
        self.source = source
        self.on_resolution = on_resolution
        self.on_error = on_error
        self.frame = None
        self.released = False
        self.events.append(('open', source))
        self.instances.append(self)

    def start(self):
        self.frame = np.zeros((480, 640, 3), dtype=np.uint8)
        if self.on_resolution is not None:
            self.on_resolution(640, 480)
        return self

    def read_latest(self):
        return None if self.released else self.frame

    def release(self):
        self.released = True
        self.events.append(('release', self.source))

    def fail(self):
        self.on_error(DeviceUnavailableError(f"Device stopped delivering frames: {self.source}", self.source))


def face(x, y, w, h, confidence=0.9):
    return FaceDetection(BoundingBox(x, y, w, h), confidence)


@pytest.fixture
def fake_stream_cls():
    class Stream(FakeStream):
        events = []
        instances = []
    return Stream


@pytest.fixture
def make_detector():
    return FakeDetector


@pytest.fixture
def make_renderer():
    return FakeRenderer


@pytest.fixture
def make_face():
    return face


@pytest.fixture
def frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)
