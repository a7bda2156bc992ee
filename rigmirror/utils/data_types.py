from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .presets import NUM_LANDMARKS, POSE_LANDMARKS


def _field(lm, key: str):
    if isinstance(lm, dict):
        return lm.get(key)
    return getattr(lm, key, None)


@dataclass(frozen=True)
class Landmark:
    """A single tracked joint in normalized image space (y grows downward)."""

    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


class LandmarkFrame:
    """
    One pose-estimation result: a fixed (33, 4) array of [x, y, z, visibility].

    Missing depth is stored as 0.0 and missing visibility as 1.0 so every
    downstream computation sees the same layout.
    """

    def __init__(self, data: np.ndarray, timestamp: Optional[float] = None):
        self.data = np.asarray(data, dtype=np.float64)
        self.timestamp = timestamp

    @classmethod
    def from_landmarks(
        cls, landmarks: Sequence, timestamp: Optional[float] = None
    ) -> "LandmarkFrame":
        """Build from objects or dicts exposing x, y and optionally z / visibility."""
        rows = []
        for lm in landmarks:
            z = _field(lm, "z")
            vis = _field(lm, "visibility")
            rows.append(
                [
                    float(_field(lm, "x")),
                    float(_field(lm, "y")),
                    0.0 if z is None else float(z),
                    1.0 if vis is None else float(vis),
                ]
            )
        return cls(np.array(rows, dtype=np.float64).reshape(-1, 4), timestamp)

    @classmethod
    def from_array(
        cls, array: np.ndarray, timestamp: Optional[float] = None
    ) -> "LandmarkFrame":
        """Build from an (N, 2), (N, 3) or (N, 4) array."""
        arr = np.asarray(array, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] < 2 or arr.shape[1] > 4:
            raise ValueError(f"Expected an (N, 2..4) landmark array, got {arr.shape}")
        data = np.zeros((arr.shape[0], 4), dtype=np.float64)
        data[:, 3] = 1.0
        data[:, : arr.shape[1]] = arr
        return cls(data, timestamp)

    def __len__(self) -> int:
        return int(self.data.shape[0])

    def is_valid(self) -> bool:
        """True when the frame has the full joint table and finite x/y."""
        data = self.data
        if not isinstance(data, np.ndarray) or data.shape != (NUM_LANDMARKS, 4):
            return False
        if not np.issubdtype(data.dtype, np.number):
            return False
        return bool(np.all(np.isfinite(data[:, :2])))

    def get(self, name: str) -> Landmark:
        x, y, z, vis = self.data[POSE_LANDMARKS[name]]
        return Landmark(float(x), float(y), float(z), float(vis))

    def __repr__(self) -> str:
        return f"LandmarkFrame(joints={len(self)}, timestamp={self.timestamp})"
