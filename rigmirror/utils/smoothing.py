from __future__ import annotations

from typing import Optional

import numpy as np

from .retarget_utils import quaternion_normalize, quaternion_slerp

SMOOTHING_MODES = ("slerp", "linear")


class TemporalSmoother:
    """
    Single-pole exponential filter per joint key.

    "slerp" mode filters [w, x, y, z] quaternions along the shortest arc,
    "linear" mode filters each component independently (Euler radians,
    positions, scales). The first value seen for a key is taken as is.
    """

    def __init__(self, alpha: float = 0.35, mode: str = "slerp"):
        if not (0.0 < alpha <= 1.0):
            raise ValueError(f"Smoothing factor must be in (0, 1], got {alpha}")
        if mode not in SMOOTHING_MODES:
            raise ValueError(f"Unknown smoothing mode '{mode}', expected one of {SMOOTHING_MODES}")
        self.alpha = alpha
        self.mode = mode
        self._state: dict[str, np.ndarray] = {}

    def update(self, key: str, target, alpha: Optional[float] = None) -> np.ndarray:
        a = self.alpha if alpha is None else alpha
        target = np.asarray(target, dtype=np.float64)
        current = self._state.get(key)

        if current is None:
            value = quaternion_normalize(target) if self.mode == "slerp" else target.copy()
        elif self.mode == "slerp":
            target = quaternion_normalize(target)
            if np.dot(current, target) < 0.0:
                target = -target
            value = quaternion_normalize(quaternion_slerp(current, target, a))
            if np.dot(value, current) < 0.0:
                value = -value
        else:
            value = current + (target - current) * a

        self._state[key] = value
        return value.copy()

    def get(self, key: str) -> Optional[np.ndarray]:
        value = self._state.get(key)
        return None if value is None else value.copy()

    def __contains__(self, key: str) -> bool:
        return key in self._state

    def __len__(self) -> int:
        return len(self._state)

    def keys(self) -> list[str]:
        return list(self._state.keys())

    def reset(self, key: Optional[str] = None):
        if key is None:
            self._state.clear()
        else:
            self._state.pop(key, None)
