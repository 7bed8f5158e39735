"""
Display-rate render loop.

Each tick takes whatever the sampler published since the previous tick (or
nothing), advances the smoother, copies the resulting pose into the renderer's
camera and redraws. It never waits for a detection.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Optional

import numpy as np

from headcam.camera import CameraMotionSmoother, CameraState
from headcam.rendering import Renderer
from headcam.tracking import SignalChannel

logger = logging.getLogger(__name__)


class RenderLoop:
    """
    Drives smoother and renderer at `refresh_hz`. Runs once per instance,
    either blocking (`run`) or on a background thread (`start`); the renderer
    is disposed exactly once whichever way it ends.
    """

    def __init__(
        self,
        smoother: CameraMotionSmoother,
        renderer: Renderer,
        channel: SignalChannel,
        refresh_hz: float = 60.0,
        on_frame: Optional[Callable[[CameraState], None]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if refresh_hz <= 0:
            raise ValueError(f"Refresh rate must be positive, got {refresh_hz}")

        self.smoother = smoother
        self.renderer = renderer
        self.channel = channel
        self.refresh_hz = refresh_hz
        self.period = 1.0 / refresh_hz
        self.on_frame = on_frame
        self._clock = clock

        self._guard = threading.Lock()
        self._started = False
        self._stop_event = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._thread: Optional[threading.Thread] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._disposed = False
        self._dispose_lock = threading.Lock()

        self.error: Optional[BaseException] = None
        self.tick_times = deque(maxlen=120)
        self.stats = {
            'ticks': 0,
            'signals_applied': 0
        }

    @property
    def is_running(self) -> bool:
        return not self._idle.is_set()

    def tick(self) -> CameraState:
        if self._disposed:
            return self.smoother.state

        signal = self.channel.take()
        if signal is not None:
            self.stats['signals_applied'] += 1

        state = self.smoother.advance(signal)
        self.renderer.camera.apply(state)
        self.renderer.render_frame()

        if self.on_frame is not None:
            self.on_frame(state)

        self.stats['ticks'] += 1
        self.tick_times.append(self._clock())
        return state

    def _claim(self) -> bool:
        with self._guard:
            if self._started:
                logger.warning("RenderLoop already started for this viewer, ignoring")
                return False
            self._started = True
            self._idle.clear()
            return True

    def start(self) -> bool:
        """Run the loop on a background thread."""
        if not self._claim():
            return False
        self._thread = threading.Thread(target=self._loop, name='render-loop', daemon=True)
        self._thread.start()
        return True

    def run(self) -> bool:
        """Run the loop on the calling thread until stopped or the renderer closes."""
        if not self._claim():
            return False
        self._loop()
        return True

    def _loop(self):
        self._loop_thread = threading.current_thread()
        logger.info(f"RenderLoop started at {self.refresh_hz:.0f}Hz")
        try:
            while not self._stop_event.is_set() and self.renderer.is_open():
                tick_start = self._clock()
                try:
                    self.tick()
                except Exception as e:
                    self.error = e
                    logger.exception(f"Render tick failed, stopping loop: {e}")
                    break

                if self.stats['ticks'] % 600 == 0:
                    logger.debug(f"RenderLoop stats: {self.get_stats()}")

                remaining = self.period - (self._clock() - tick_start)
                if remaining > 0:
                    self._stop_event.wait(remaining)
        finally:
            self._dispose()
            self._idle.set()
            logger.info(f"RenderLoop finished after {self.stats['ticks']} ticks")

    def stop(self):
        """Stop ticking and release the renderer. Safe to call more than once."""
        self._stop_event.set()
        if threading.current_thread() is self._loop_thread:
            # Called from inside a tick: the loop exits and disposes on its way out
            return
        if not self._idle.wait(timeout=2.0):
            logger.warning("RenderLoop did not finish its last tick within 2s")
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._dispose()

    def _dispose(self):
        with self._dispose_lock:
            if self._disposed:
                return
            self._disposed = True
        try:
            self.renderer.dispose()
        except Exception:
            logger.exception("Renderer dispose failed")

    def measured_fps(self) -> float:
        if len(self.tick_times) < 2:
            return 0.0
        span = self.tick_times[-1] - self.tick_times[0]
        return (len(self.tick_times) - 1) / span if span > 0 else 0.0

    def get_stats(self) -> dict:
        stats = self.stats.copy()
        stats['fps'] = round(self.measured_fps(), 1)
        if len(self.tick_times) >= 2:
            stats['max_frame_gap_ms'] = float(np.max(np.diff(self.tick_times)) * 1000)
        return stats
