import cv2
import numpy as np
from typing import Iterable, Optional

from headcam.tracking import FaceDetection

PRIMARY_COLOR = (0, 220, 0)
OTHER_COLOR = (0, 160, 255)


def draw_detections(
    frame: np.ndarray,
    detections: Iterable[FaceDetection],
    primary: Optional[FaceDetection] = None
) -> np.ndarray:
    """Copy of `frame` with every face box drawn; the driving face in green."""
    annotated = frame.copy()
    for det in detections:
        box = det.box
        if box.is_degenerate():
            continue
        color = PRIMARY_COLOR if det == primary else OTHER_COLOR
        p1 = (int(box.x), int(box.y))
        p2 = (int(box.x + box.width), int(box.y + box.height))
        cv2.rectangle(annotated, p1, p2, color, 2)
        cv2.putText(annotated, f"{det.confidence:.2f}", (p1[0], max(12, p1[1] - 6)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
    return annotated
