"""Configuration dataclasses for the retargeting engine."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Dict, Literal, Tuple

from .presets import REST_DIRECTIONS

STRATEGIES = ("direction", "ratio")
AXES = ("x", "y", "z")


@dataclass
class RootMotionConfig:
    """Whole-rig placement from shoulder position, width, tilt and turn."""

    enabled: bool = False
    vertical_offset: float = -0.15
    scale_multiplier: float = 5.0
    min_x: float = -0.6
    max_x: float = 0.6
    min_y: float = -7.0
    max_y: float = 0.9
    min_scale: float = 0.6
    max_scale: float = 1.8
    apply_tilt: bool = True
    apply_turn: bool = True
    base_rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)  # radians, XYZ

    def __post_init__(self):
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError("RootMotionConfig: position bounds are inverted")
        if self.min_scale <= 0 or self.min_scale > self.max_scale:
            raise ValueError("RootMotionConfig: scale bounds must be positive and ordered")
        self.base_rotation = tuple(float(v) for v in self.base_rotation)
        if len(self.base_rotation) != 3:
            raise ValueError("RootMotionConfig: base_rotation needs 3 angles")


def _default_rest_directions() -> Dict[str, Tuple[float, float, float]]:
    return {k: tuple(v) for k, v in REST_DIRECTIONS.items()}


@dataclass
class RetargetConfig:
    """Engine-level settings. Angles are in degrees, fractions in [0, 1]."""

    smoothing_factor: float = 0.35
    strategy: Literal["direction", "ratio"] = "direction"

    # Ratio strategy calibration
    arms_down_angle: float = 13.0
    t_pose_angle: float = -48.0
    ratio_axis: Literal["x", "y", "z"] = "y"
    ratio_axis_relative: bool = False
    euler_order: str = "XYZ"

    # Landmark preprocessing
    mirror: bool = True
    aspect: float = 16 / 9
    world_scale: float = 2.0
    depth_scale: float = 0.5
    turn_scale: float = 1.5
    min_visibility: float = 0.0

    # Direction strategy
    spine_fraction: float = 0.3
    head_fraction: float = 1.0
    rest_directions: Dict[str, Tuple[float, float, float]] = field(
        default_factory=_default_rest_directions
    )

    enable_tracking: bool = True
    root_motion: RootMotionConfig = field(default_factory=RootMotionConfig)
    verbose: bool = False
    log_every: int = 120

    def __post_init__(self):
        if not (0.0 < self.smoothing_factor <= 1.0):
            raise ValueError(
                f"smoothing_factor must be in (0, 1], got {self.smoothing_factor}"
            )
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy '{self.strategy}', expected one of {STRATEGIES}")
        if self.ratio_axis not in AXES:
            raise ValueError(f"Unknown ratio_axis '{self.ratio_axis}', expected one of {AXES}")
        order = self.euler_order
        if len(order) != 3 or not (order.isupper() or order.islower()) or set(order.lower()) != set("xyz"):
            raise ValueError(f"Invalid euler_order '{order}'")
        for name in ("spine_fraction", "head_fraction", "min_visibility"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.aspect <= 0 or self.world_scale <= 0:
            raise ValueError("aspect and world_scale must be positive")
        if self.log_every < 1:
            raise ValueError("log_every must be >= 1")

        merged = _default_rest_directions()
        for key, vec in self.rest_directions.items():
            vec = tuple(float(v) for v in vec)
            if len(vec) != 3:
                raise ValueError(f"Rest direction for '{key}' needs 3 components")
            merged[key] = vec
        self.rest_directions = merged

        if isinstance(self.root_motion, dict):
            unknown = set(self.root_motion) - {f.name for f in fields(RootMotionConfig)}
            if unknown:
                raise ValueError(f"Unknown root_motion keys: {sorted(unknown)}")
            self.root_motion = RootMotionConfig(**self.root_motion)

    @property
    def ratio_axis_index(self) -> int:
        return AXES.index(self.ratio_axis)

    @classmethod
    def default(cls) -> "RetargetConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> "RetargetConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, filepath: str) -> "RetargetConfig":
        with open(filepath, "r") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["rest_directions"] = {k: list(v) for k, v in self.rest_directions.items()}
        data["root_motion"]["base_rotation"] = list(self.root_motion.base_rotation)
        return data

    def to_json(self, filepath: str) -> None:
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
