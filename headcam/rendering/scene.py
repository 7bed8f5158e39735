import logging
from pathlib import Path
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class PointCloudScene:
    """Points (N, 3) float32 in world units with BGR colors (N, 3) uint8."""

    def __init__(self, points: np.ndarray, colors: Optional[np.ndarray] = None):
        points = np.asarray(points, dtype=np.float32)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Points must be (N, 3), got {points.shape}")
        if colors is None:
            colors = np.full(points.shape, 220, dtype=np.uint8)
        colors = np.asarray(colors)
        if colors.shape != points.shape:
            raise ValueError(f"Colors must match points {points.shape}, got {colors.shape}")
        self.points = points
        self.colors = np.clip(colors, 0, 255).astype(np.uint8)

    def __len__(self):
        return len(self.points)

    @classmethod
    def load(cls, path: str) -> 'PointCloudScene':
        """
        .npy with (N, 3) or (N, 6) rows, or whitespace text (.xyz/.txt) with
        `x y z [r g b]` per line. Colors in files are RGB.
        """
        scene_path = Path(path)
        if not scene_path.exists():
            raise FileNotFoundError(f"Scene not found: {path}")

        if scene_path.suffix == '.npy':
            data = np.load(scene_path)
        else:
            data = np.loadtxt(scene_path, ndmin=2)

        if data.ndim != 2 or data.shape[1] not in (3, 6):
            raise ValueError(f"Scene rows must have 3 or 6 columns, got {data.shape}")

        colors = None
        if data.shape[1] == 6:
            colors = data[:, 3:6][:, ::-1]
        logger.info(f"Loaded scene {scene_path.name}: {len(data)} points")
        return cls(data[:, :3], colors)

    @classmethod
    def demo(cls, spacing: float = 0.1) -> 'PointCloudScene':
        """Colored cube lattice standing on a grid floor."""
        axis = np.arange(-0.5, 0.5 + 1e-6, spacing)
        gx, gy, gz = np.meshgrid(axis, axis, axis, indexing='ij')
        cube = np.stack([gx.ravel(), gy.ravel() + 0.5, gz.ravel()], axis=1)
        # Color each point by its position inside the cube
        cube_colors = ((cube - cube.min(axis=0)) / np.ptp(cube, axis=0) * 200 + 55)[:, ::-1]

        floor_axis = np.arange(-3.0, 3.0 + 1e-6, spacing * 2)
        fx, fz = np.meshgrid(floor_axis, floor_axis, indexing='ij')
        floor = np.stack([fx.ravel(), np.zeros(fx.size), fz.ravel()], axis=1)
        floor_colors = np.full(floor.shape, 90)

        points = np.vstack([cube, floor])
        colors = np.vstack([cube_colors, floor_colors])
        return cls(points, colors)
