"""
Face detector wrapper over OpenCV.

Backends:
- YuNet (cv2.FaceDetectorYN) when an ONNX model path is given and exists
- Haar cascade bundled with opencv-python otherwise

Both return List[FaceDetection] in frame-pixel coordinates.
"""

import cv2
import numpy as np
import logging
import time
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional

from headcam.tracking import BoundingBox, FaceDetection

logger = logging.getLogger(__name__)

HAAR_CASCADE = 'haarcascade_frontalface_default.xml'


class FaceDetector:

    def __init__(
        self,
        model_path: Optional[str] = None,
        confidence_threshold: float = 0.6,
        nms_threshold: float = 0.3,
        scale_factor: float = 1.1,
        min_neighbors: int = 5,
        min_size: int = 40
    ):
        self.model_path = Path(model_path) if model_path else None
        self.confidence_threshold = confidence_threshold
        self.nms_threshold = nms_threshold
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size

        self._yunet = None
        self._cascade = None
        self._yunet_input_size = None

        if self.model_path and self.model_path.exists():
            logger.info(f"Loading YuNet face model: {self.model_path}")
            self._yunet = cv2.FaceDetectorYN.create(
                str(self.model_path),
                "",
                (320, 320),
                self.confidence_threshold,
                self.nms_threshold
            )
            self.backend = 'yunet'
        else:
            if self.model_path:
                logger.warning(f"Face model not found: {self.model_path}, using Haar cascade")
            cascade_path = Path(cv2.data.haarcascades) / HAAR_CASCADE
            self._cascade = cv2.CascadeClassifier(str(cascade_path))
            if self._cascade.empty():
                raise FileNotFoundError(f"Could not load Haar cascade: {cascade_path}")
            self.backend = 'haar'

        self.inference_times = deque(maxlen=100)
        self.stats = {
            'total_inferences': 0,
            'total_detections': 0,
            'empty_frames': 0
        }

        logger.info(f"FaceDetector ready (backend={self.backend})")

    def detect(self, frame: np.ndarray) -> List[FaceDetection]:
        start_time = time.time()
        self.stats['total_inferences'] += 1

        if self._yunet is not None:
            detections = self._detect_yunet(frame)
        else:
            detections = self._detect_haar(frame)

        self.inference_times.append((time.time() - start_time) * 1000)

        if detections:
            self.stats['total_detections'] += len(detections)
        else:
            self.stats['empty_frames'] += 1

        if self.stats['total_inferences'] % 100 == 0:
            logger.debug(f"Detector stats: inferences={self.stats['total_inferences']}, "
                         f"avg_time={np.mean(self.inference_times):.2f}ms")

        return detections

    def _detect_yunet(self, frame: np.ndarray) -> List[FaceDetection]:
        h, w = frame.shape[:2]
        if self._yunet_input_size != (w, h):
            self._yunet.setInputSize((w, h))
            self._yunet_input_size = (w, h)

        _, faces = self._yunet.detect(frame)
        if faces is None:
            return []

        # Each row: x, y, w, h, 5 landmark pairs, score
        return [
            FaceDetection(
                box=BoundingBox(float(f[0]), float(f[1]), float(f[2]), float(f[3])),
                confidence=float(f[14])
            )
            for f in faces
        ]

    def _detect_haar(self, frame: np.ndarray) -> List[FaceDetection]:
        if frame.ndim == 3:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        else:
            gray = frame

        rects, _, weights = self._cascade.detectMultiScale3(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=(self.min_size, self.min_size),
            outputRejectLevels=True
        )

        detections = []
        for (x, y, bw, bh), weight in zip(rects, np.ravel(weights)):
            detections.append(FaceDetection(
                box=BoundingBox(float(x), float(y), float(bw), float(bh)),
                confidence=float(weight)
            ))
        return detections

    def get_stats(self) -> Dict:
        stats = self.stats.copy()
        if self.inference_times:
            stats['avg_inference_time_ms'] = float(np.mean(self.inference_times))
            stats['max_inference_time_ms'] = float(np.max(self.inference_times))
        return stats
