import cv2
import logging
from typing import Any, Callable, Dict, List, Optional

from headcam.camera import CameraMotionSmoother, CameraState, SmoothingConfig
from headcam.capture import CaptureSource
from headcam.inference import FaceDetector
from headcam.rendering import PointCloudRenderer, PointCloudScene, Renderer, draw_detections, has_display
from headcam.tracking import SignalChannel, SignalNormalizer
from headcam.utils import CaptureError, DeviceInfo, VideoStream
from .detection_sampler import DetectionSampler
from .render_loop import RenderLoop

logger = logging.getLogger(__name__)

PREVIEW_WINDOW = 'headcam-preview'


class ViewerPipeline:
    """
    Face-driven viewer: capture -> sampler -> normalizer -> channel ->
    smoother <- render loop. Collaborators can be injected; anything left
    out is built from `config`.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        detector=None,
        renderer: Optional[Renderer] = None,
        stream_factory: Optional[Callable[..., VideoStream]] = None,
        device_lister: Optional[Callable[[], List[DeviceInfo]]] = None
    ):
        self.config = config
        capture_cfg = config.get('capture', {}) or {}
        detection_cfg = config.get('detection', {}) or {}
        signal_cfg = config.get('signal', {}) or {}
        render_cfg = config.get('render', {}) or {}

        logger.info("Initializing ViewerPipeline")

        self.refresh_hz = float(render_cfg.get('refresh_hz', 60.0))
        self.default_device = capture_cfg.get('device')

        self.normalizer = SignalNormalizer(mirror=signal_cfg.get('mirror', True))
        self.channel = SignalChannel()

        smoothing = SmoothingConfig.from_dict(config.get('smoothing', {}) or {})
        self.smoother = CameraMotionSmoother(smoothing.rescaled(self.refresh_hz))

        self.capture_errors: List[CaptureError] = []
        self.capture = CaptureSource(
            stream_factory=stream_factory or VideoStream,
            device_lister=device_lister,
            on_resolution=self.normalizer.set_frame_size,
            on_error=self._on_capture_error,
            max_probe=capture_cfg.get('max_probe', 5)
        )

        self.detector = detector or FaceDetector(
            model_path=detection_cfg.get('model_path'),
            confidence_threshold=detection_cfg.get('confidence', 0.6),
            scale_factor=detection_cfg.get('scale_factor', 1.1),
            min_neighbors=detection_cfg.get('min_neighbors', 5),
            min_size=detection_cfg.get('min_size', 40)
        )

        self.sampler = DetectionSampler(
            detector=self.detector,
            frame_source=self.capture.latest_frame,
            normalizer=self.normalizer,
            channel=self.channel,
            interval=detection_cfg.get('interval_ms', 100) / 1000.0,
            stall_timeout=detection_cfg.get('stall_timeout_ms', 1000) / 1000.0
        )

        self.renderer = renderer or self._build_renderer(render_cfg)

        self.preview = bool(render_cfg.get('preview', False)) and renderer is None and has_display()
        self._preview_shown = None

        self.render_loop = RenderLoop(
            smoother=self.smoother,
            renderer=self.renderer,
            channel=self.channel,
            refresh_hz=self.refresh_hz,
            on_frame=self._show_preview if self.preview else None
        )

        self._stopped = False

    def _build_renderer(self, render_cfg: Dict[str, Any]) -> PointCloudRenderer:
        scene_path = render_cfg.get('scene')
        scene = PointCloudScene.load(scene_path) if scene_path else PointCloudScene.demo()
        return PointCloudRenderer(
            scene,
            width=render_cfg.get('width', 960),
            height=render_cfg.get('height', 540),
            point_size=render_cfg.get('point_size', 2),
            near=render_cfg.get('near', 0.1),
            far=render_cfg.get('far', 100.0),
            show_window=render_cfg.get('show_window', True),
            window_name=render_cfg.get('window_name', 'headcam'),
            record_path=render_cfg.get('record_path'),
            record_fps=self.refresh_hz
        )

    @property
    def camera_state(self) -> CameraState:
        return self.smoother.state

    def _on_capture_error(self, error: CaptureError):
        self.capture_errors.append(error)
        logger.warning(f"Capture unavailable, camera will hold its pose: {error}")

    def list_devices(self) -> List[DeviceInfo]:
        return self.capture.list_devices()

    def switch_device(self, device_id) -> bool:
        return self.capture.select_device(device_id)

    def start(self, device_id=None) -> bool:
        """Bind the capture device and start sampling. Returns False if no device could be opened."""
        if device_id is None:
            device_id = self.default_device
        if device_id is None:
            devices = self.list_devices()
            if devices:
                device_id = devices[0].id
            else:
                logger.warning("No capture device found, viewer will render without face tracking")

        bound = False
        if device_id is not None:
            bound = self.switch_device(device_id)

        self.sampler.start()
        return bound

    def run(self, device_id=None):
        try:
            self.start(device_id)
            self.render_loop.run()
        finally:
            self.stop()

    def stop(self):
        if self._stopped:
            return
        self._stopped = True
        logger.info("Stopping ViewerPipeline")
        try:
            self.sampler.stop()
        finally:
            try:
                self.render_loop.stop()
            finally:
                self.capture.close()
                if self._preview_shown is not None:
                    cv2.destroyWindow(PREVIEW_WINDOW)
                    self._preview_shown = None
        logger.info(f"ViewerPipeline stopped: {self.get_stats()}")

    def _show_preview(self, state: CameraState):
        result = self.sampler.last_result
        if result is None or result is self._preview_shown:
            return
        frame, detections, primary = result
        cv2.imshow(PREVIEW_WINDOW, draw_detections(frame, detections, primary))
        self._preview_shown = result

    def get_stats(self) -> Dict[str, Any]:
        return {
            'render': self.render_loop.get_stats(),
            'sampler': self.sampler.get_stats(),
            'smoother': self.smoother.get_stats(),
            'capture': self.capture.get_stats(),
            'channel_superseded': self.channel.superseded
        }
