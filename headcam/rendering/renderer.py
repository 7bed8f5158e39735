"""
Point-cloud renderer.

Projects the scene through the PerspectiveCamera with numpy, splats points
far-to-near into a BGR image and shows it with cv2.imshow (and/or records it).
The render loop only talks to it through `camera`, `render_frame()`,
`is_open()` and `dispose()`.
"""

import cv2
import numpy as np
import os
import logging
from typing import Optional, Tuple

from headcam.utils import VideoWriter
from .perspective_camera import PerspectiveCamera
from .scene import PointCloudScene

logger = logging.getLogger(__name__)


def has_display() -> bool:
    """Check if display is available for cv2.imshow"""
    if os.environ.get('DISPLAY') is None and os.environ.get('WAYLAND_DISPLAY') is None and os.name != 'nt':
        return False
    try:
        cv2.namedWindow('test', cv2.WINDOW_NORMAL)
        cv2.destroyWindow('test')
        return True
    except cv2.error:
        return False


class Renderer:
    """Interface the render loop drives."""

    camera: PerspectiveCamera

    def render_frame(self):
        raise NotImplementedError

    def is_open(self) -> bool:
        return True

    def dispose(self):
        pass


class PointCloudRenderer(Renderer):

    def __init__(
        self,
        scene: PointCloudScene,
        width: int = 960,
        height: int = 540,
        point_size: int = 2,
        background: Tuple[int, int, int] = (20, 20, 20),
        near: float = 0.1,
        far: float = 100.0,
        show_window: bool = True,
        window_name: str = 'headcam',
        record_path: Optional[str] = None,
        record_fps: float = 30.0
    ):
        self.scene = scene
        self.width = width
        self.height = height
        self.point_size = max(1, int(point_size))
        self.background = np.array(background, dtype=np.uint8)
        self.window_name = window_name
        self.camera = PerspectiveCamera(aspect=width / height, near=near, far=far)

        self._homogeneous = np.hstack([
            scene.points.astype(np.float64),
            np.ones((len(scene), 1))
        ])

        self.show_window = show_window and has_display()
        if show_window and not self.show_window:
            logger.info("No display detected - rendering headless (cv2.imshow disabled)")
        if self.show_window:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            cv2.resizeWindow(self.window_name, width, height)

        self.recorder = None
        if record_path:
            self.recorder = VideoWriter(record_path, width, height, fps=record_fps)
            logger.info(f"Recording rendered frames to {record_path}")

        self.last_frame: Optional[np.ndarray] = None
        self.frames_rendered = 0
        self._open = True
        self._disposed = False

        logger.info(f"PointCloudRenderer initialized: {len(scene)} points, {width}x{height}")

    def project(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Pixel coordinates, NDC depth and scene indices of the visible points."""
        clip = self._homogeneous @ self.camera.view_projection().T
        w = clip[:, 3]
        in_front = w > 1e-9
        ndc = clip[in_front, :3] / w[in_front, None]
        indices = np.nonzero(in_front)[0]

        inside = np.all(np.abs(ndc) <= 1.0, axis=1)
        ndc = ndc[inside]
        indices = indices[inside]

        xs = np.round((ndc[:, 0] + 1.0) * 0.5 * (self.width - 1)).astype(np.int64)
        ys = np.round((1.0 - ndc[:, 1]) * 0.5 * (self.height - 1)).astype(np.int64)
        pixels = np.stack([xs, ys], axis=1)
        return pixels, ndc[:, 2], indices

    def render_frame(self) -> np.ndarray:
        image = np.empty((self.height, self.width, 3), dtype=np.uint8)
        image[:] = self.background

        pixels, depth, indices = self.project()
        # Far first so that nearer points overwrite them
        order = np.argsort(-depth, kind='stable')
        pixels = pixels[order]
        colors = self.scene.colors[indices[order]]

        radius = self.point_size // 2
        for oy in range(-radius, self.point_size - radius):
            for ox in range(-radius, self.point_size - radius):
                xs = np.clip(pixels[:, 0] + ox, 0, self.width - 1)
                ys = np.clip(pixels[:, 1] + oy, 0, self.height - 1)
                image[ys, xs] = colors

        if self.show_window:
            cv2.imshow(self.window_name, image)
            key = cv2.waitKey(1) & 0xFF
            if key in (ord('q'), 27):
                logger.info("Quit requested from viewer window")
                self._open = False
            elif cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) < 1:
                self._open = False

        if self.recorder is not None:
            self.recorder.write(image)

        self.last_frame = image
        self.frames_rendered += 1
        return image

    def is_open(self) -> bool:
        return self._open

    def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self._open = False
        if self.recorder is not None:
            self.recorder.release()
            self.recorder = None
        if self.show_window:
            cv2.destroyWindow(self.window_name)
        logger.info(f"PointCloudRenderer disposed after {self.frames_rendered} frames")
