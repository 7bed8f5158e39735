import numpy as np
from pyrr import Matrix44, Vector3
from typing import Sequence

from headcam.camera import CameraState


def look_at_matrix(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    """World -> view matrix for column vectors (camera looks down -Z)."""
    eye = np.asarray(eye, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    up = np.asarray(up, dtype=np.float64)

    forward = target - eye
    if np.linalg.norm(forward) < 1e-9:
        target = eye + np.array([0.0, 0.0, -1.0])
        forward = target - eye
    if np.linalg.norm(np.cross(forward, up)) < 1e-9:
        # looking along up: any perpendicular axis will do
        up = np.array([0.0, 0.0, -1.0]) if forward[1] < 0 else np.array([0.0, 0.0, 1.0])

    # pyrr builds row-vector matrices
    view = Matrix44.look_at(Vector3(eye), Vector3(target), Vector3(up), dtype=np.float64)
    return np.asarray(view).T


def perspective_matrix(fov_deg: float, aspect: float, near: float, far: float) -> np.ndarray:
    proj = Matrix44.perspective_projection(fov_deg, aspect, near, far, dtype=np.float64)
    return np.asarray(proj).T


class PerspectiveCamera:
    """Mutable renderer-side camera; the render loop copies CameraState into it."""

    def __init__(
        self,
        fov: float = 40.0,
        aspect: float = 16 / 9,
        near: float = 0.1,
        far: float = 1000.0,
        up: Sequence[float] = (0.0, 1.0, 0.0)
    ):
        self.fov = fov
        self.aspect = aspect
        self.near = near
        self.far = far
        self.up = np.array(up, dtype=np.float64)
        self.position = np.array([0.0, 0.0, 3.0])
        self.target = np.zeros(3)

    def apply(self, state: CameraState):
        self.position = np.array(state.position, dtype=np.float64)
        self.target = np.array(state.target, dtype=np.float64)
        self.fov = state.fov

    def view_matrix(self) -> np.ndarray:
        return look_at_matrix(self.position, self.target, self.up)

    def projection_matrix(self) -> np.ndarray:
        return perspective_matrix(self.fov, self.aspect, self.near, self.far)

    def view_projection(self) -> np.ndarray:
        return self.projection_matrix() @ self.view_matrix()
