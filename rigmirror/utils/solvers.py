"""
Retargeting solvers: landmark pose -> per joint key rotation targets.

DirectionSolver (quaternion deltas, slerp smoothing) matches each limb's
observed direction against its canonical rest direction.
RatioSolver (Euler radians, linear smoothing) maps the vertical arm angle
onto a single calibrated rotation axis.
Both produce values relative to each bone's captured rest rotation; the
engine smooths them and calls `compose` per bound bone.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from .config import RetargetConfig, RootMotionConfig
from .landmarks import PreparedPose
from .presets import (
    JOINT_KEYS,
    LIMB_CHAINS,
    LOWER_ARM_KEYS,
    RATIO_ARMS,
    ROOT_POSITION_KEY,
    ROOT_ROTATION_KEY,
    ROOT_SCALE_KEY,
    SPINE_KEYS,
    UPPER_ARM_KEYS,
)
from .retarget_utils import (
    euler_xyz_to_quaternion,
    quaternion_identity,
    quaternion_multiply,
    quaternion_normalize,
    quaternion_slerp,
    quaternion_to_euler_xyz,
    solve_rotation_between_vectors,
)


def wrap_angle(angle: float) -> float:
    """Wrap radians into (-pi, pi]."""
    wrapped = (angle + np.pi) % (2 * np.pi) - np.pi
    return np.pi if wrapped == -np.pi else float(wrapped)


def _manual_vector(key: str, value, sizes: tuple) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape[0] not in sizes or not np.all(np.isfinite(arr)):
        raise ValueError(
            f"Manual rotation for '{key}' must be {' or '.join(map(str, sizes))} finite numbers"
        )
    return arr


# =============================================================================
# Solver Interface
# =============================================================================


class RetargetSolver:
    """Common interface of the retargeting strategies."""

    name = "base"
    smoothing_mode = "slerp"
    keys: tuple = ()

    def __init__(self, config: Optional[RetargetConfig] = None):
        self.config = config or RetargetConfig()
        self.last_debug: dict = {}

    def solve(self, pose: PreparedPose) -> dict[str, np.ndarray]:
        raise NotImplementedError

    def from_manual(self, overrides: dict) -> dict[str, np.ndarray]:
        raise NotImplementedError

    def identity(self) -> np.ndarray:
        raise NotImplementedError

    def compose(self, rest: np.ndarray, value: np.ndarray, key: Optional[str] = None) -> np.ndarray:
        raise NotImplementedError

    def _check_manual_key(self, key: str):
        if key not in JOINT_KEYS:
            raise ValueError(f"Unknown joint key '{key}'")


# =============================================================================
# Strategy A: Direction Matching
# =============================================================================


class DirectionSolver(RetargetSolver):
    name = "direction"
    smoothing_mode = "slerp"
    keys = tuple(LIMB_CHAINS) + SPINE_KEYS + ("head",)

    def rest_direction(self, key: str) -> np.ndarray:
        return np.asarray(self.config.rest_directions[key], dtype=np.float64)

    def solve(self, pose: PreparedPose) -> dict[str, np.ndarray]:
        threshold = self.config.min_visibility
        targets = {}

        for key, (parent_lm, child_lm) in LIMB_CHAINS.items():
            if not pose.is_visible((parent_lm, child_lm), threshold):
                continue
            observed = pose.direction(parent_lm, child_lm)
            targets[key] = solve_rotation_between_vectors(self.rest_direction(key), observed)

        # Torso bend spread over the spine chain
        torso = ("left_hip", "right_hip", "left_shoulder", "right_shoulder")
        if pose.is_visible(torso, threshold):
            hip_mid = pose.midpoint("left_hip", "right_hip")
            shoulder_mid = pose.midpoint("left_shoulder", "right_shoulder")
            full = solve_rotation_between_vectors(self.rest_direction("spine"), shoulder_mid - hip_mid)
            partial = quaternion_slerp(quaternion_identity(), full, self.config.spine_fraction)
            for key in SPINE_KEYS:
                targets[key] = partial.copy()

        if self.config.head_fraction > 0.0 and pose.is_visible(("nose", "left_ear", "right_ear"), threshold):
            ear_mid = pose.midpoint("left_ear", "right_ear")
            full = solve_rotation_between_vectors(self.rest_direction("head"), pose.world("nose") - ear_mid)
            targets["head"] = quaternion_slerp(quaternion_identity(), full, self.config.head_fraction)

        self.last_debug = {
            "keys": len(targets),
            "spine_deg": _delta_degrees(targets.get("spine")),
            "leftUpperArm_deg": _delta_degrees(targets.get("leftUpperArm")),
            "rightUpperArm_deg": _delta_degrees(targets.get("rightUpperArm")),
        }
        return targets

    def from_manual(self, overrides: dict) -> dict[str, np.ndarray]:
        """Quaternion [w, x, y, z] or Euler degrees [x, y, z] deltas."""
        targets = {}
        for key, value in overrides.items():
            self._check_manual_key(key)
            arr = _manual_vector(key, value, (3, 4))
            if arr.shape[0] == 4:
                targets[key] = quaternion_normalize(arr)
            else:
                targets[key] = euler_xyz_to_quaternion(np.radians(arr), self.config.euler_order)
        return targets

    def identity(self) -> np.ndarray:
        return quaternion_identity()

    def compose(self, rest: np.ndarray, value: np.ndarray, key: Optional[str] = None) -> np.ndarray:
        return quaternion_normalize(quaternion_multiply(rest, value))


def _delta_degrees(q: Optional[np.ndarray]) -> Optional[float]:
    if q is None:
        return None
    return round(float(np.degrees(2.0 * np.arccos(min(1.0, abs(q[0]))))), 1)


# =============================================================================
# Strategy B: Single-Axis Ratio
# =============================================================================


def arm_ratio(vertical_angle: float) -> float:
    """-pi/2 (arm down) -> 0, 0 (horizontal) -> 1, clamped."""
    ratio = (vertical_angle + np.pi / 2) / (np.pi / 2)
    return float(np.clip(ratio, 0.0, 1.0))


def ratio_to_degrees(ratio: float, down_deg: float, tpose_deg: float) -> float:
    return down_deg + (tpose_deg - down_deg) * ratio


class RatioSolver(RetargetSolver):
    name = "ratio"
    smoothing_mode = "linear"
    keys = UPPER_ARM_KEYS + LOWER_ARM_KEYS

    def solve(self, pose: PreparedPose) -> dict[str, np.ndarray]:
        cfg = self.config
        axis = cfg.ratio_axis_index
        targets = {}
        debug = {}

        for key, (shoulder, elbow) in RATIO_ARMS.items():
            if not pose.is_visible((shoulder, elbow), cfg.min_visibility):
                continue
            ratio = arm_ratio(pose.vertical_arm_angle(shoulder, elbow))
            degrees = ratio_to_degrees(ratio, cfg.arms_down_angle, cfg.t_pose_angle)
            value = np.zeros(3)
            value[axis] = np.radians(degrees)
            targets[key] = value
            debug[f"{key}_ratio"] = round(ratio, 2)
            debug[f"{key}_deg"] = round(degrees, 1)

        # No forearm tracking: hold lower arms at rest
        for key in LOWER_ARM_KEYS:
            targets[key] = np.zeros(3)

        self.last_debug = debug
        return targets

    def from_manual(self, overrides: dict) -> dict[str, np.ndarray]:
        """Euler degrees [x, y, z] per key."""
        targets = {}
        for key, value in overrides.items():
            self._check_manual_key(key)
            targets[key] = np.radians(_manual_vector(key, value, (3,)))
        return targets

    def identity(self) -> np.ndarray:
        return np.zeros(3)

    def compose(self, rest: np.ndarray, value: np.ndarray, key: Optional[str] = None) -> np.ndarray:
        """
        Rest Euler angles plus the delta. In absolute mode the calibrated axis
        of an upper arm is overwritten instead of offset.
        """
        order = self.config.euler_order
        euler = quaternion_to_euler_xyz(rest, order)
        out = euler + value
        if not self.config.ratio_axis_relative and key in UPPER_ARM_KEYS:
            axis = self.config.ratio_axis_index
            out[axis] = value[axis]
        return euler_xyz_to_quaternion(out, order)


SOLVERS = {
    DirectionSolver.name: DirectionSolver,
    RatioSolver.name: RatioSolver,
}


def make_solver(config: RetargetConfig) -> RetargetSolver:
    if config.strategy not in SOLVERS:
        raise ValueError(f"Unknown strategy '{config.strategy}'")
    return SOLVERS[config.strategy](config)


# =============================================================================
# Root Motion
# =============================================================================


def solve_root_motion(pose: PreparedPose, cfg: RootMotionConfig) -> dict[str, np.ndarray]:
    """
    Whole-rig placement targets: shoulder-midpoint position, uniform scale
    from shoulder width, roll from shoulder tilt and yaw from body turn.
    """
    mid = pose.midpoint("left_shoulder", "right_shoulder")
    x = float(np.clip(mid[0], cfg.min_x, cfg.max_x))
    y = float(np.clip(mid[1] + cfg.vertical_offset, cfg.min_y, cfg.max_y))
    scale = float(np.clip(pose.shoulder_width * cfg.scale_multiplier, cfg.min_scale, cfg.max_scale))

    rotation = np.array(cfg.base_rotation, dtype=np.float64)
    if cfg.apply_turn:
        rotation[1] += pose.body_turn_angle
    if cfg.apply_tilt:
        # Level shoulders read as +-pi (left shoulder sits at larger x)
        rotation[2] += wrap_angle(pose.shoulder_tilt_angle - np.pi)

    return {
        ROOT_POSITION_KEY: np.array([x, y, 0.0]),
        ROOT_SCALE_KEY: np.array([scale]),
        ROOT_ROTATION_KEY: rotation,
    }

