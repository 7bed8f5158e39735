"""
Face signal handling: detector boxes become normalized control signals and
are handed to the render side through a single-slot channel.
"""

from .normalizer import (
    BoundingBox,
    FrameSize,
    ControlSignal,
    FaceDetection,
    SignalNormalizer,
    normalize_box,
    select_primary,
)
from .signal_channel import SignalChannel

__all__ = ['BoundingBox', 'FrameSize', 'ControlSignal', 'FaceDetection', 'SignalNormalizer',
           'normalize_box', 'select_primary', 'SignalChannel']
