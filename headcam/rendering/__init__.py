"""
Scene rendering: perspective camera, point-cloud rasterizer and debug overlays.
"""

from .perspective_camera import PerspectiveCamera, look_at_matrix, perspective_matrix
from .scene import PointCloudScene
from .renderer import Renderer, PointCloudRenderer, has_display
from .overlay import draw_detections

__all__ = ['PerspectiveCamera', 'look_at_matrix', 'perspective_matrix', 'PointCloudScene',
           'Renderer', 'PointCloudRenderer', 'has_display', 'draw_detections']
