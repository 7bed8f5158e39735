"""
Capture source adapter.

    UNBOUND -> ENUMERATING -> BOUND(device) -> STREAMING -> UNBOUND

Open failures and mid-session loss are reported through `on_error` and leave
the adapter UNBOUND; nothing here raises into the loops that poll it. With no
stream there are simply no frames, and the camera holds its last pose.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from headcam.tracking import FrameSize
from headcam.utils import CaptureError, DeviceInfo, VideoStream, probe_devices

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    UNBOUND = 'unbound'
    ENUMERATING = 'enumerating'
    BOUND = 'bound'
    STREAMING = 'streaming'


class CaptureSource:
    """
    Owns at most one live VideoStream.

    Every open gets a new generation number and the stream's callbacks are
    bound to it, so callbacks from a stream that was already released are
    ignored even when the same device is bound again. Streams are released
    outside the lock: a stream's grab thread may be waiting on it to report
    its own loss.
    """

    def __init__(
        self,
        stream_factory: Callable[..., VideoStream] = VideoStream,
        device_lister: Optional[Callable[[], List[DeviceInfo]]] = None,
        on_resolution: Optional[Callable[[FrameSize], None]] = None,
        on_error: Optional[Callable[[CaptureError], None]] = None,
        max_probe: int = 5
    ):
        self.stream_factory = stream_factory
        self.device_lister = device_lister or (lambda: probe_devices(max_probe))
        self.on_resolution = on_resolution
        self.on_error = on_error

        self._lock = threading.RLock()
        self._state = CaptureState.UNBOUND
        self._device_id: Optional[str] = None
        self._stream: Optional[VideoStream] = None
        self._frame_size: Optional[FrameSize] = None
        self._generation = 0
        self.last_error: Optional[CaptureError] = None

        self.stats = {
            'streams_opened': 0,
            'open_failures': 0,
            'streams_lost': 0,
            'stale_callbacks': 0
        }

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    @property
    def frame_size(self) -> Optional[FrameSize]:
        return self._frame_size

    def list_devices(self) -> List[DeviceInfo]:
        with self._lock:
            previous = self._state
            self._state = CaptureState.ENUMERATING
            try:
                devices = list(self.device_lister())
            except Exception as e:
                logger.warning(f"Device enumeration failed: {e}")
                devices = []
            finally:
                self._state = previous
        logger.info(f"Found {len(devices)} capture device(s): {[d.label for d in devices]}")
        return devices

    def select_device(self, device_id) -> bool:
        """Bind and start streaming `device_id`, releasing any current stream first."""
        device_id = str(device_id)
        with self._lock:
            previous = self._detach()
            self._device_id = device_id
            self._state = CaptureState.BOUND
            generation = self._generation

        self._release(previous)

        with self._lock:
            if generation != self._generation:
                logger.info(f"Binding of device {device_id} superseded")
                return False

            logger.info(f"Binding capture device {device_id}")
            try:
                stream = self.stream_factory(
                    device_id,
                    on_resolution=self._make_resolution_handler(device_id, generation),
                    on_error=self._make_error_handler(generation)
                )
                stream.start()
            except CaptureError as e:
                self.stats['open_failures'] += 1
                self._device_id = None
                self._state = CaptureState.UNBOUND
                self._report(e)
                return False

            self._stream = stream
            self._state = CaptureState.STREAMING
            self.stats['streams_opened'] += 1
            return True

    def latest_frame(self) -> Optional[np.ndarray]:
        stream = self._stream
        if stream is None or self._frame_size is None:
            return None
        return stream.read_latest()

    def close(self):
        with self._lock:
            stream = self._detach()
        self._release(stream)

    def _detach(self) -> Optional[VideoStream]:
        # Caller holds the lock; the returned stream is released after it is dropped
        stream = self._stream
        self._stream = None
        self._frame_size = None
        self._device_id = None
        self._state = CaptureState.UNBOUND
        self._generation += 1
        return stream

    def _release(self, stream: Optional[VideoStream]):
        if stream is None:
            return
        logger.info(f"Releasing capture device {stream.source}")
        stream.release()

    def _make_resolution_handler(self, device_id: str, generation: int):
        def handle(width: int, height: int):
            if generation != self._generation:
                self.stats['stale_callbacks'] += 1
                return
            self._frame_size = FrameSize(width, height)
            logger.info(f"Device {device_id} resolution: {width}x{height}")
            if self.on_resolution is not None:
                self.on_resolution(self._frame_size)
        return handle

    def _make_error_handler(self, generation: int):
        def handle(error: CaptureError):
            # Runs on the lost stream's grab thread; release() skips the join there
            with self._lock:
                if generation != self._generation:
                    self.stats['stale_callbacks'] += 1
                    return
                self.stats['streams_lost'] += 1
                stream = self._detach()
            self._release(stream)
            self._report(error)
        return handle

    def _report(self, error: CaptureError):
        self.last_error = error
        logger.warning(f"Capture error ({type(error).__name__}): {error}")
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception:
                logger.exception("Capture error callback failed")

    def get_stats(self) -> dict:
        return self.stats.copy()
