"""
Virtual camera driven by the viewer's face position.
Holds the smoothing filters and the single authoritative camera pose.
"""

from .filters import LowPassFilter, lerp, rescale_alpha
from .smoothing_config import SmoothingConfig
from .smoother import CameraMotionSmoother, CameraState, implied_pose

__all__ = ['LowPassFilter', 'lerp', 'rescale_alpha', 'SmoothingConfig',
           'CameraMotionSmoother', 'CameraState', 'implied_pose']
