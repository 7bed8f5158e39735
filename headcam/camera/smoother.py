"""
Camera motion smoother.

Owns the one authoritative camera pose (position, look-at target, fov) and
moves it a fixed fraction of the remaining distance toward the pose implied by
the most recent face signal on every render tick:

- Absent samples hold the last known target; the camera keeps gliding toward
  it instead of snapping back to a default.
- Before the first signal the camera stays at its seeded pose.
- Blending runs at render cadence, so motion stays smooth even though the
  face signal only updates at detection cadence.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from headcam.tracking import ControlSignal
from .filters import LowPassFilter
from .smoothing_config import SmoothingConfig, Vec3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraState:
    position: Vec3
    target: Vec3
    fov: float


def implied_pose(signal: ControlSignal, config: SmoothingConfig) -> Tuple[np.ndarray, np.ndarray, float]:
    """Pose the camera should settle at for `signal`. Pure and continuous in the signal."""
    position = np.array([
        config.gain_x * signal.dx,
        config.base_y + config.gain_y * signal.dy,
        config.depth - config.depth_gain * abs(signal.dx)
    ], dtype=np.float64)
    target = np.array([
        config.look_gain_x * signal.dx,
        config.look_base_y + config.look_gain_y * signal.dy,
        config.look_depth
    ], dtype=np.float64)
    fov = float(np.clip(config.base_fov + config.size_gain * signal.size, config.fov_min, config.fov_max))
    return position, target, fov


class CameraMotionSmoother:
    """
    Single writer of the camera pose. `advance()` is called once per render
    tick and returns the new CameraState by value.
    """

    def __init__(self, config: Optional[SmoothingConfig] = None):
        self.config = config or SmoothingConfig()
        cfg = self.config

        initial_fov = float(np.clip(cfg.initial_fov, cfg.fov_min, cfg.fov_max))
        self._position = LowPassFilter(cfg.alpha_position, cfg.initial_position)
        self._target = LowPassFilter(cfg.alpha_target, cfg.initial_target)
        self._fov = LowPassFilter(cfg.alpha_fov, initial_fov)

        self._last_signal: Optional[ControlSignal] = None
        self._goal: Optional[Tuple[np.ndarray, np.ndarray, float]] = None
        self._state = self._snapshot()

        self.stats = {
            'ticks': 0,
            'signals': 0,
            'held_ticks': 0,
            'idle_ticks': 0,
            'settled_ticks': 0
        }

        logger.info(f"CameraMotionSmoother initialized: alphas=({cfg.alpha_position:.3f}, "
                    f"{cfg.alpha_target:.3f}, {cfg.alpha_fov:.3f}) @ {cfg.reference_rate_hz:.0f}Hz, "
                    f"fov=[{cfg.fov_min}, {cfg.fov_max}]")

    @property
    def state(self) -> CameraState:
        return self._state

    @property
    def last_signal(self) -> Optional[ControlSignal]:
        return self._last_signal

    @property
    def has_signal(self) -> bool:
        return self._last_signal is not None

    def implied_pose(self) -> Optional[CameraState]:
        if self._goal is None:
            return None
        position, target, fov = self._goal
        return CameraState(tuple(position.tolist()), tuple(target.tolist()), fov)

    @property
    def is_settled(self) -> bool:
        if self._goal is None:
            return True
        position, target, fov = self._goal
        eps = self.config.settle_epsilon
        return (self._position.distance(position) <= eps
                and self._target.distance(target) <= eps
                and self._fov.distance(fov) <= eps)

    def advance(self, signal: Optional[ControlSignal] = None) -> CameraState:
        """One render tick. `None` means no new face signal since the last tick."""
        self.stats['ticks'] += 1

        if signal is not None:
            if signal != self._last_signal:
                self._goal = implied_pose(signal, self.config)
            self._last_signal = signal
            self.stats['signals'] += 1
        elif self._last_signal is None:
            self.stats['idle_ticks'] += 1
            return self._state
        else:
            self.stats['held_ticks'] += 1

        if self.is_settled:
            self.stats['settled_ticks'] += 1
            return self._state

        position, target, fov = self._goal
        self._position.filter(position)
        self._target.filter(target)
        self._fov.filter(fov)
        self._fov.value = np.clip(self._fov.value, self.config.fov_min, self.config.fov_max)

        self._state = self._snapshot()

        if self.stats['ticks'] % 600 == 0:
            logger.debug(f"Smoother stats: {self.stats}")

        return self._state

    def _snapshot(self) -> CameraState:
        return CameraState(
            position=tuple(self._position.value.tolist()),
            target=tuple(self._target.value.tolist()),
            fov=float(self._fov.value)
        )

    def get_stats(self) -> dict:
        return self.stats.copy()
