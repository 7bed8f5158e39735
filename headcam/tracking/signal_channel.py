import threading
from typing import Optional

from .normalizer import ControlSignal


class SignalChannel:
    """
    Latest-value mailbox between the detection sampler and the render loop.

    One slot: a publish replaces whatever is pending, `take()` hands the
    pending value out once and then reports absent (None) until the next
    publish. A published None ("no face this sample") is also absent.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[ControlSignal] = None
        self._has_pending = False
        self.published = 0
        self.superseded = 0

    def publish(self, signal: Optional[ControlSignal]):
        with self._lock:
            if self._has_pending:
                self.superseded += 1
            self._pending = signal
            self._has_pending = True
            self.published += 1

    def take(self) -> Optional[ControlSignal]:
        with self._lock:
            signal = self._pending
            self._pending = None
            self._has_pending = False
            return signal

    def clear(self):
        with self._lock:
            self._pending = None
            self._has_pending = False
