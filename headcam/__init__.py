"""
headcam
Face-tracked 3D viewer: the viewer's head position drives the virtual camera.
"""

__version__ = '1.0.0'
