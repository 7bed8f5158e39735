"""
Fixed-period face sampling.

Every `interval` seconds the sampler takes the latest captured frame, runs the
detector on a single worker thread and publishes the normalized signal (or
None) to the signal channel. A tick that finds the previous detection still
running is skipped, so at most one detection is ever in flight.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Tuple

import numpy as np

from headcam.tracking import ControlSignal, FaceDetection, FrameSize, SignalChannel, SignalNormalizer, select_primary

logger = logging.getLogger(__name__)


class DetectionSampler:
    """Periodic face sampling on its own thread, one detection at a time."""

    def __init__(
        self,
        detector,
        frame_source: Callable[[], Optional[np.ndarray]],
        normalizer: SignalNormalizer,
        channel: SignalChannel,
        interval: float = 0.1,
        stall_timeout: float = 1.0,
        clock: Callable[[], float] = time.monotonic
    ):
        if interval <= 0:
            raise ValueError(f"Sampling interval must be positive, got {interval}")
        if stall_timeout <= 0:
            raise ValueError(f"Stall timeout must be positive, got {stall_timeout}")

        self.detector = detector
        self.frame_source = frame_source
        self.normalizer = normalizer
        self.channel = channel
        self.interval = interval
        self.stall_timeout = stall_timeout
        self._clock = clock

        self._executor: Optional[ThreadPoolExecutor] = None
        self._in_flight: Optional[Future] = None
        self._in_flight_since = 0.0
        self._stall_reported = False

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # (frame, detections, primary) of the last finished sample, for overlays
        self.last_result: Optional[Tuple[np.ndarray, List[FaceDetection], Optional[FaceDetection]]] = None

        self.stats = {
            'ticks': 0,
            'samples': 0,
            'signals': 0,
            'absent': 0,
            'no_frame': 0,
            'busy_skips': 0,
            'stalled_ticks': 0,
            'detector_errors': 0
        }

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def busy(self) -> bool:
        pending = self._in_flight
        return pending is not None and not pending.done()

    def tick(self) -> Optional[Future]:
        """One sampling step. Returns the submitted detection, or None if skipped."""
        self.stats['ticks'] += 1

        if self._stop_event.is_set():
            return None

        if self.busy:
            waited = self._clock() - self._in_flight_since
            if waited > self.stall_timeout:
                self.stats['stalled_ticks'] += 1
                if not self._stall_reported:
                    logger.warning(f"Face detection outstanding for {waited:.2f}s, skipping samples")
                    self._stall_reported = True
            else:
                self.stats['busy_skips'] += 1
            return None

        frame = self.frame_source()
        if frame is None:
            self.stats['no_frame'] += 1
            return None

        # Size from the frame itself, the normalizer can lag behind a device switch
        frame_size = FrameSize(frame.shape[1], frame.shape[0])
        self._stall_reported = False
        self._in_flight_since = self._clock()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='face-detect')
        self._in_flight = self._executor.submit(self._sample, frame, frame_size)
        return self._in_flight

    def _sample(self, frame: np.ndarray, frame_size: Optional[FrameSize]) -> Optional[ControlSignal]:
        self.stats['samples'] += 1
        try:
            detections = list(self.detector.detect(frame))
        except Exception:
            self.stats['detector_errors'] += 1
            logger.exception("Face detection failed, treating sample as absent")
            detections = []

        signal = self.normalizer.normalize(detections, frame_size)
        self.last_result = (frame, detections, select_primary(detections))

        if signal is None:
            self.stats['absent'] += 1
        else:
            self.stats['signals'] += 1

        if self._stop_event.is_set():
            return signal
        self.channel.publish(signal)
        return signal

    def start(self) -> bool:
        if self.is_running:
            logger.warning("DetectionSampler already running")
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='detection-sampler', daemon=True)
        self._thread.start()
        logger.info(f"DetectionSampler started: every {self.interval * 1000:.0f}ms")
        return True

    def _run(self):
        next_tick = self._clock()
        while not self._stop_event.is_set():
            self.tick()
            next_tick += self.interval
            delay = next_tick - self._clock()
            if delay < 0:
                # Behind schedule: drop the missed ticks instead of bursting
                next_tick = self._clock()
                delay = 0.0
            self._stop_event.wait(delay)

    def stop(self):
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None
        executor = self._executor
        self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
            pending = self._in_flight
            if pending is not None and not pending.done():
                done, _ = wait([pending], timeout=self.stall_timeout)
                if not done:
                    logger.warning(f"Face detection still running {self.stall_timeout:.2f}s after stop, abandoning it")
        logger.info(f"DetectionSampler stopped: {self.stats}")

    def get_stats(self) -> dict:
        return self.stats.copy()
