"""
First-order exponential smoothing used by the camera smoother.

    y_i = y_{i-1} + alpha * (target - y_{i-1})

Unlike a measurement filter the target is held between updates, so the
output keeps gliding toward the last known target on every step.
"""

import numpy as np
from typing import Union

ArrayLike = Union[float, np.ndarray, tuple, list]


def lerp(start: np.ndarray, end: np.ndarray, t: float) -> np.ndarray:
    return start + (end - start) * t


def rescale_alpha(alpha: float, reference_rate_hz: float, rate_hz: float) -> float:
    """
    Blend factor that gives the same settle time at `rate_hz` as `alpha` does
    at `reference_rate_hz`: the remaining distance after one second must match.
    """
    if reference_rate_hz <= 0 or rate_hz <= 0:
        raise ValueError("Rates must be positive")
    if alpha >= 1.0:
        return 1.0
    return 1.0 - (1.0 - alpha) ** (reference_rate_hz / rate_hz)


class LowPassFilter:
    __slots__ = ('alpha', 'value')

    def __init__(self, alpha: float, init_value: ArrayLike):
        self.alpha = alpha
        self.value = np.array(init_value, dtype=np.float64)

    def filter(self, target: ArrayLike) -> np.ndarray:
        self.value = lerp(self.value, np.asarray(target, dtype=np.float64), self.alpha)
        return self.value

    def distance(self, target: ArrayLike) -> float:
        return float(np.max(np.abs(np.asarray(target, dtype=np.float64) - self.value)))
