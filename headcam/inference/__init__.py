"""
Face detection over OpenCV (YuNet or Haar cascade).
"""

from .detector import FaceDetector

__all__ = ['FaceDetector']
