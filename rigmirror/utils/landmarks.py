"""
Landmark preprocessing: coordinate conventions and derived body measures.

Normalized image space (MediaPipe): x=[0,1] left->right, y=[0,1] top->bottom,
z=depth with negative values closer to the camera.
World space: centered on the image, Y up, +Z towards the viewer.
"""
from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from .data_types import LandmarkFrame
from .presets import MIRROR_PERMUTATION, POSE_LANDMARKS


def landmark_to_world(
    xyz: np.ndarray, scale: float = 1.0, depth_scale: float = 0.5
) -> np.ndarray:
    """Normalized [x, y, z] -> centered world position."""
    return np.array(
        [
            (xyz[0] - 0.5) * scale,
            -(xyz[1] - 0.5) * scale,
            -xyz[2] * scale * depth_scale,
        ]
    )


def landmark_to_screen(xyz: np.ndarray, aspect: float = 16 / 9) -> np.ndarray:
    """Normalized [x, y, z] -> orthographic overlay position (z dropped)."""
    return np.array([(xyz[0] - 0.5) * 2 * aspect, -(xyz[1] - 0.5) * 2, 0.0])


def mirror_landmarks(data: np.ndarray) -> np.ndarray:
    """Selfie mirror: flip x and swap every left/right joint pair."""
    mirrored = data[MIRROR_PERMUTATION].copy()
    mirrored[:, 0] = 1.0 - mirrored[:, 0]
    return mirrored


def shoulder_width(data: np.ndarray) -> float:
    left = data[POSE_LANDMARKS["left_shoulder"]]
    right = data[POSE_LANDMARKS["right_shoulder"]]
    return float(np.hypot(left[0] - right[0], left[1] - right[1]))


def shoulder_tilt_angle(data: np.ndarray) -> float:
    """Signed roll of the shoulder line, (-pi, pi]."""
    left = data[POSE_LANDMARKS["left_shoulder"]]
    right = data[POSE_LANDMARKS["right_shoulder"]]
    return float(np.arctan2(right[1] - left[1], right[0] - left[0]))


def body_turn_angle(data: np.ndarray, turn_scale: float = 1.5) -> float:
    """Approximate yaw from the depth difference between the shoulders."""
    left = data[POSE_LANDMARKS["left_shoulder"]]
    right = data[POSE_LANDMARKS["right_shoulder"]]
    return float(np.arctan2(left[2] - right[2], shoulder_width(data)) * turn_scale)


def vertical_arm_angle(shoulder: np.ndarray, elbow: np.ndarray) -> float:
    """0 for a horizontal arm, +pi/2 raised, -pi/2 hanging down."""
    dx = abs(elbow[0] - shoulder[0])
    dy = -(elbow[1] - shoulder[1])  # image y grows downward
    return float(np.arctan2(dy, dx))


class PreparedPose:
    """
    A frame after mirroring, with lazily derived positions and measures.
    Every solver reads from this object so mirroring is applied exactly once.
    """

    def __init__(
        self,
        data: np.ndarray,
        world_scale: float = 2.0,
        depth_scale: float = 0.5,
        aspect: float = 16 / 9,
        turn_scale: float = 1.5,
        timestamp: Optional[float] = None,
    ):
        self.data = data
        self.world_scale = world_scale
        self.depth_scale = depth_scale
        self.aspect = aspect
        self.turn_scale = turn_scale
        self.timestamp = timestamp

    def normalized(self, name: str) -> np.ndarray:
        return self.data[POSE_LANDMARKS[name], :3]

    def visibility(self, name: str) -> float:
        return float(self.data[POSE_LANDMARKS[name], 3])

    def is_visible(self, names: Iterable[str], threshold: float) -> bool:
        if threshold <= 0.0:
            return True
        return all(self.visibility(n) >= threshold for n in names)

    def world(self, name: str) -> np.ndarray:
        return landmark_to_world(self.normalized(name), self.world_scale, self.depth_scale)

    def screen(self, name: str) -> np.ndarray:
        return landmark_to_screen(self.normalized(name), self.aspect)

    def midpoint(self, a: str, b: str, space: str = "world") -> np.ndarray:
        fn = self.world if space == "world" else self.screen
        return (fn(a) + fn(b)) * 0.5

    def direction(self, a: str, b: str) -> np.ndarray:
        """Unit world-space vector a->b, zero vector when the joints coincide."""
        return normalize_or_zero(self.world(b) - self.world(a))

    @property
    def shoulder_width(self) -> float:
        return shoulder_width(self.data)

    @property
    def shoulder_tilt_angle(self) -> float:
        return shoulder_tilt_angle(self.data)

    @property
    def body_turn_angle(self) -> float:
        return body_turn_angle(self.data, self.turn_scale)

    def vertical_arm_angle(self, shoulder: str, elbow: str) -> float:
        return vertical_arm_angle(self.normalized(shoulder), self.normalized(elbow))


def normalize_or_zero(v: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(v)
    if n < 1e-9 or not np.isfinite(n):
        return np.zeros(3)
    return v / n


class LandmarkPreprocessor:
    """Turns a raw LandmarkFrame into a PreparedPose using the engine config."""

    def __init__(
        self,
        mirror: bool = True,
        aspect: float = 16 / 9,
        world_scale: float = 2.0,
        depth_scale: float = 0.5,
        turn_scale: float = 1.5,
    ):
        self.mirror = mirror
        self.aspect = aspect
        self.world_scale = world_scale
        self.depth_scale = depth_scale
        self.turn_scale = turn_scale

    @classmethod
    def from_config(cls, config) -> "LandmarkPreprocessor":
        return cls(
            mirror=config.mirror,
            aspect=config.aspect,
            world_scale=config.world_scale,
            depth_scale=config.depth_scale,
            turn_scale=config.turn_scale,
        )

    def prepare(self, frame: LandmarkFrame) -> PreparedPose:
        data = np.array(frame.data, dtype=np.float64)
        # Missing depth is treated as "on the image plane"
        data[:, 2] = np.nan_to_num(data[:, 2], nan=0.0, posinf=0.0, neginf=0.0)
        if self.mirror:
            data = mirror_landmarks(data)
        return PreparedPose(
            data,
            world_scale=self.world_scale,
            depth_scale=self.depth_scale,
            aspect=self.aspect,
            turn_scale=self.turn_scale,
            timestamp=frame.timestamp,
        )
