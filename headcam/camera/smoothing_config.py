import dataclasses
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Tuple

from .filters import rescale_alpha

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class SmoothingConfig:
    # Blend factors per render tick at reference_rate_hz
    alpha_position: float = 0.05
    alpha_target: float = 0.05
    alpha_fov: float = 0.05
    reference_rate_hz: float = 60.0

    fov_min: float = 30.0
    fov_max: float = 60.0
    base_fov: float = 40.0
    size_gain: float = -40.0

    # Camera position = (gain_x*dx, base_y + gain_y*dy, depth - depth_gain*|dx|)
    gain_x: float = 4.0
    gain_y: float = 4.0
    base_y: float = 1.0
    depth: float = 2.0
    depth_gain: float = 0.0

    # Look-at point = (look_gain_x*dx, look_base_y + look_gain_y*dy, look_depth)
    look_gain_x: float = 0.0
    look_gain_y: float = 0.0
    look_base_y: float = 0.0
    look_depth: float = 0.0

    initial_position: Vec3 = (0.0, 2.0, 3.0)
    initial_target: Vec3 = (0.0, 0.0, 0.0)
    initial_fov: float = 40.0

    settle_epsilon: float = 1e-4

    def __post_init__(self):
        for name in ('alpha_position', 'alpha_target', 'alpha_fov'):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.fov_min >= self.fov_max:
            raise ValueError(f"fov_min ({self.fov_min}) must be below fov_max ({self.fov_max})")
        if self.reference_rate_hz <= 0:
            raise ValueError(f"reference_rate_hz must be positive, got {self.reference_rate_hz}")
        if self.settle_epsilon < 0:
            raise ValueError(f"settle_epsilon must be >= 0, got {self.settle_epsilon}")
        for name in ('initial_position', 'initial_target'):
            value = tuple(float(v) for v in getattr(self, name))
            if len(value) != 3:
                raise ValueError(f"{name} needs 3 components, got {len(value)}")
            object.__setattr__(self, name, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SmoothingConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown smoothing keys: {unknown}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def rescaled(self, render_rate_hz: float) -> 'SmoothingConfig':
        """Same settle times, blend factors for a loop ticking at render_rate_hz."""
        if render_rate_hz == self.reference_rate_hz:
            return self
        return dataclasses.replace(
            self,
            alpha_position=rescale_alpha(self.alpha_position, self.reference_rate_hz, render_rate_hz),
            alpha_target=rescale_alpha(self.alpha_target, self.reference_rate_hz, render_rate_hz),
            alpha_fov=rescale_alpha(self.alpha_fov, self.reference_rate_hz, render_rate_hz),
            reference_rate_hz=render_rate_hz
        )
