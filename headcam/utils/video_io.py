import cv2
import numpy as np
import os
import threading
import time
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union
from pathlib import Path

logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """A capture device could not be opened or was lost."""

    def __init__(self, message: str, device_id: Optional[str] = None):
        super().__init__(message)
        self.device_id = device_id


class DevicePermissionError(CaptureError):
    pass


class DeviceUnavailableError(CaptureError):
    pass


@dataclass(frozen=True)
class DeviceInfo:
    id: str
    label: str


def _capture_arg(source: Union[str, int]) -> Union[str, int]:
    # cv2 wants an int for camera indices and a str for paths/URLs
    if isinstance(source, int):
        return source
    if source.isdigit():
        return int(source)
    return source


def _device_label(index: int) -> str:
    name_file = Path(f"/sys/class/video4linux/video{index}/name")
    try:
        label = name_file.read_text(encoding='utf-8').strip()
    except OSError:
        label = ''
    return label or f"Camera {index}"


def probe_devices(max_index: int = 5) -> List[DeviceInfo]:
    """Open camera indices 0..max_index-1 and report the ones that respond."""
    devices = []
    for index in range(max_index):
        cap = cv2.VideoCapture(index)
        try:
            if cap.isOpened():
                devices.append(DeviceInfo(id=str(index), label=_device_label(index)))
        finally:
            cap.release()
    logger.debug(f"Probed {max_index} camera indices, found {len(devices)}")
    return devices


def _open_error(source: Union[str, int]) -> CaptureError:
    device_id = str(source)
    if not device_id.isdigit():
        if os.path.exists(device_id) and not os.access(device_id, os.R_OK):
            return DevicePermissionError(f"Permission denied: {device_id}", device_id)
    elif os.name != 'nt':
        node = f"/dev/video{device_id}"
        if os.path.exists(node) and not os.access(node, os.R_OK | os.W_OK):
            return DevicePermissionError(f"Permission denied: {node}", device_id)
    return DeviceUnavailableError(f"Could not open capture source: {source}", device_id)


class VideoStream:
    """
    Live handle on a capture device (or a video file replayed in a loop).

    A background thread keeps grabbing frames so that readers always get the
    most recent one without blocking. `on_resolution(width, height)` fires once,
    from the grab thread, when the first frame arrives.
    """

    def __init__(
        self,
        source: Union[str, int],
        on_resolution: Optional[Callable[[int, int], None]] = None,
        on_error: Optional[Callable[[CaptureError], None]] = None,
        max_read_failures: int = 30,
        loop_file: bool = True
    ):
        self.source = source
        self.on_resolution = on_resolution
        self.on_error = on_error
        self.max_read_failures = max_read_failures
        self.loop_file = loop_file

        arg = _capture_arg(source)
        self.is_file = isinstance(arg, str) and Path(arg).is_file()
        self.cap = cv2.VideoCapture(arg)

        if not self.cap.isOpened():
            self.cap.release()
            raise _open_error(source)

        self.fps = self.cap.get(cv2.CAP_PROP_FPS)
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

        self.frame_count = 0
        self._frame: Optional[np.ndarray] = None
        self._resolution_reported = False
        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> 'VideoStream':
        if self._running:
            return self
        self._running = True
        self._thread = threading.Thread(
            target=self._grab_loop,
            name=f"capture-{self.source}",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Capture started: {self.source} ({self.width}x{self.height} @ {self.fps:.1f}fps)")
        return self

    def _grab_loop(self):
        failures = 0
        frame_period = 1.0 / self.fps if self.is_file and self.fps > 0 else 0.0

        while self._running:
            ret, frame = self.cap.read()

            if not ret or frame is None:
                if self.is_file and self.loop_file and self.frame_count > 0:
                    self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                    continue
                failures += 1
                if failures >= self.max_read_failures:
                    logger.warning(f"Capture lost after {failures} failed reads: {self.source}")
                    self._running = False
                    if self.on_error is not None:
                        self.on_error(DeviceUnavailableError(
                            f"Device stopped delivering frames: {self.source}", str(self.source)))
                    break
                time.sleep(0.01)
                continue

            failures = 0
            with self._lock:
                self._frame = frame
                self.frame_count += 1

            if not self._resolution_reported:
                h, w = frame.shape[:2]
                self.width, self.height = w, h
                self._resolution_reported = True
                if self.on_resolution is not None:
                    self.on_resolution(w, h)

            if frame_period:
                time.sleep(frame_period)

    def read_latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    @property
    def is_running(self) -> bool:
        return self._running

    def release(self):
        self._running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        self.cap.release()
        with self._lock:
            self._frame = None
        logger.info(f"Capture released: {self.source}")

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class VideoWriter:
    def __init__(
        self,
        output_path: str,
        width: int,
        height: int,
        fps: float = 30.0,
        codec: str = 'mp4v'
    ):
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.width = width
        self.height = height

        fourcc = cv2.VideoWriter_fourcc(*codec)
        self.writer = cv2.VideoWriter(
            str(self.output_path),
            fourcc,
            fps,
            (width, height)
        )

        if not self.writer.isOpened():
            raise ValueError(f"Could not create video file: {output_path}")

    def write(self, frame: np.ndarray):
        if frame.shape[1] != self.width or frame.shape[0] != self.height:
            frame = cv2.resize(frame, (self.width, self.height))
        self.writer.write(frame)

    def release(self):
        self.writer.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

