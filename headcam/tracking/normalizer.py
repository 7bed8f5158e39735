"""
Face box -> control signal normalization.

The control signal is resolution independent:
    dx, dy  ~ [-0.5, 0.5]  offset of the face centre from the frame centre
    size    ~ [0, 1]       min(box side) / frame width, a distance proxy

Sign convention: with `mirror=True` (webcam facing the viewer) both offsets
are negated, so a viewer stepping to their left produces dx > 0 and the
virtual camera follows them. Flipping it inverts every perceived motion, so
it is set once per deployment and only here.
"""

import math
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self):
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def is_degenerate(self) -> bool:
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            return True
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class FrameSize:
    width: int
    height: int

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class ControlSignal:
    dx: float
    dy: float
    size: float


@dataclass(frozen=True)
class FaceDetection:
    box: BoundingBox
    confidence: float = 1.0


def select_primary(detections: Iterable[FaceDetection]) -> Optional[FaceDetection]:
    """
    Pick the one face that drives the camera.

    Largest box wins (nearest subject); ties go to the higher confidence, then
    the top-most, then the left-most box so the choice never depends on the
    detector's output order. Degenerate boxes are discarded first.
    """
    candidates = [d for d in detections if not d.box.is_degenerate()]
    if not candidates:
        return None
    return max(candidates, key=lambda d: (d.box.area, d.confidence, -d.box.y, -d.box.x))


def normalize_box(
    box: Optional[BoundingBox],
    frame: Optional[FrameSize],
    mirror: bool = True
) -> Optional[ControlSignal]:
    if box is None or frame is None or not frame.is_valid():
        return None
    if box.is_degenerate():
        return None

    center_x, center_y = box.center
    if not (0.0 <= center_x <= frame.width and 0.0 <= center_y <= frame.height):
        return None

    sign = -1.0 if mirror else 1.0
    dx = sign * (center_x / frame.width - 0.5)
    dy = sign * (center_y / frame.height - 0.5)
    size = min(box.width, box.height) / frame.width

    return ControlSignal(dx=dx, dy=dy, size=size)


class SignalNormalizer:
    """Holds the active frame size and turns detector output into signals."""

    def __init__(self, mirror: bool = True, frame_size: Optional[FrameSize] = None):
        self.mirror = mirror
        self._frame_size = frame_size
        self._warned_no_size = False

    @property
    def frame_size(self) -> Optional[FrameSize]:
        return self._frame_size

    def set_frame_size(self, frame_size: FrameSize):
        if frame_size != self._frame_size:
            logger.info(f"Frame size set to {frame_size.width}x{frame_size.height}")
        self._frame_size = frame_size
        self._warned_no_size = False

    def normalize(
        self,
        detections: Iterable[FaceDetection],
        frame_size: Optional[FrameSize] = None
    ) -> Optional[ControlSignal]:
        frame = frame_size if frame_size is not None else self._frame_size
        if frame is None or not frame.is_valid():
            if not self._warned_no_size:
                logger.warning("Frame size unknown or zero, skipping face normalization")
                self._warned_no_size = True
            return None

        primary = select_primary(detections)
        if primary is None:
            return None
        return normalize_box(primary.box, frame, self.mirror)
