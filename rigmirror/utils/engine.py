"""
Retargeting engine: owns bone bindings, rest pose and smoothing state for one
bound rig and drives the per-frame solve -> smooth -> apply cycle.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from .bone_resolver import BoneResolver, has_skeleton, iter_rig_bones
from .config import RetargetConfig
from .data_types import LandmarkFrame
from .landmarks import LandmarkPreprocessor
from .presets import ROOT_POSITION_KEY, ROOT_ROTATION_KEY, ROOT_SCALE_KEY
from .retarget_utils import quaternion_normalize
from .smoothing import TemporalSmoother
from .solvers import RetargetSolver, make_solver, solve_root_motion


# =============================================================================
# Rest Pose
# =============================================================================


class RestPose:
    """Bind-time local rotations keyed by bone identity, captured once per bone."""

    def __init__(self):
        self._rotations: dict[int, np.ndarray] = {}
        self._bones: dict[int, object] = {}  # keeps captured bones alive so ids stay unique

    def capture(self, bindings: dict[str, list]) -> int:
        captured = 0
        for bones in bindings.values():
            for bone in bones:
                bid = id(bone)
                if bid in self._rotations:
                    continue
                self._rotations[bid] = quaternion_normalize(np.array(bone.rotation, dtype=np.float64))
                self._bones[bid] = bone
                captured += 1
        return captured

    def get(self, bone) -> Optional[np.ndarray]:
        rotation = self._rotations.get(id(bone))
        return None if rotation is None else rotation.copy()

    def __contains__(self, bone) -> bool:
        return id(bone) in self._rotations

    def __len__(self) -> int:
        return len(self._rotations)

    def restore(self) -> int:
        """Write every captured rotation back onto its bone."""
        for bid, bone in self._bones.items():
            bone.rotation = self._rotations[bid].copy()
            bone.update_matrix_world()
        return len(self._bones)

    def clear(self):
        self._rotations.clear()
        self._bones.clear()


# =============================================================================
# Multi-Armature Applier
# =============================================================================


def apply_to_bones(
    solver: RetargetSolver, bones: list, rest_pose: RestPose, value: np.ndarray, key: str
) -> int:
    """Write one smoothed value to every bone bound to `key`, composed with each bone's own rest."""
    written = 0
    for bone in bones:
        rest = rest_pose.get(bone)
        if rest is None:
            continue
        bone.rotation = solver.compose(rest, value, key)
        bone.update_matrix_world()
        written += 1
    return written


# =============================================================================
# Engine
# =============================================================================


class RetargetEngine:
    def __init__(
        self,
        config: Optional[RetargetConfig] = None,
        resolver: Optional[BoneResolver] = None,
    ):
        self.config = config or RetargetConfig()
        self.preprocessor = LandmarkPreprocessor.from_config(self.config)
        self.solver = make_solver(self.config)
        self.resolver = resolver or BoneResolver(verbose=self.config.verbose)

        self._rig = None
        self._has_skeleton = False
        self._bindings: dict[str, list] = {}
        self._rest_pose = RestPose()
        self._root_rest = None
        self._smoothing = TemporalSmoother(self.config.smoothing_factor, self.solver.smoothing_mode)
        self._root_smoothing = TemporalSmoother(self.config.smoothing_factor, "linear")
        self._frame_count = 0
        self._last_timestamp: Optional[float] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def rig(self):
        return self._rig

    @property
    def bindings(self) -> dict[str, list]:
        return {k: list(v) for k, v in self._bindings.items()}

    @property
    def rest_pose(self) -> RestPose:
        return self._rest_pose

    @property
    def smoothing(self) -> TemporalSmoother:
        return self._smoothing

    @property
    def root_smoothing(self) -> TemporalSmoother:
        return self._root_smoothing

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def is_bound(self) -> bool:
        return self._rig is not None

    @property
    def has_skeleton(self) -> bool:
        return self._has_skeleton

    def _log(self, msg: str):
        if self.config.verbose:
            print(f"[Rigging] {msg}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bind(self, rig) -> bool:
        """Bind a rig, dropping any previous state. Returns False when `rig` is already bound."""
        if rig is not None and rig is self._rig:
            return False
        self.release()
        if rig is None:
            return False

        self._rig = rig
        self._has_skeleton = has_skeleton(rig)
        if not self._has_skeleton:
            print(f"[Rigging] WARNING: rig '{getattr(rig, 'name', rig)}' has no skeleton, no bones will be driven")
            return True

        self._bindings = self.resolver.resolve_all(rig)
        # Rest pose must be taken before the first write to any bone
        captured = self._rest_pose.capture(self._bindings)
        self._root_rest = (
            np.array(getattr(rig, "position", np.zeros(3)), dtype=np.float64),
            np.array(getattr(rig, "scale", np.ones(3)), dtype=np.float64),
            np.array(getattr(rig, "rotation_euler", np.zeros(3)), dtype=np.float64),
        )
        self._smoothing.reset()
        self._root_smoothing.reset()

        bound_keys = [k for k, v in self._bindings.items() if v]
        n_skeletons = len(getattr(rig, "skeletons", None) or [])
        self._log(
            f"Bound {len(bound_keys)} joint keys ({captured} bones, {len(iter_rig_bones(rig))} total) "
            f"across {n_skeletons} skeleton(s), strategy={self.solver.name}"
        )
        return True

    def release(self, restore_rest: bool = False):
        if self._rig is not None and restore_rest:
            restored = self._rest_pose.restore()
            if self._root_rest is not None and self.config.root_motion.enabled:
                self._rig.position, self._rig.scale, self._rig.rotation_euler = (
                    v.copy() for v in self._root_rest
                )
            self._log(f"Restored rest pose on {restored} bones")

        self._rig = None
        self._has_skeleton = False
        self._bindings = {}
        self._rest_pose.clear()
        self._root_rest = None
        self._smoothing.reset()
        self._root_smoothing.reset()
        self._frame_count = 0
        self._last_timestamp = None

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------

    def _coerce_frame(self, frame) -> Optional[LandmarkFrame]:
        """Accept a LandmarkFrame, an (N, 2..4) array or a sequence of landmark objects/dicts."""
        if isinstance(frame, LandmarkFrame):
            return frame
        try:
            if isinstance(frame, np.ndarray):
                return LandmarkFrame.from_array(frame)
            if isinstance(frame, (list, tuple)):
                if all(isinstance(lm, (list, tuple, np.ndarray)) for lm in frame):
                    return LandmarkFrame.from_array(np.asarray(frame, dtype=np.float64))
                return LandmarkFrame.from_landmarks(frame)
        except (TypeError, ValueError):
            return None
        return None

    def update(self, frame) -> dict[str, np.ndarray]:
        """
        Retarget one landmark frame onto the bound rig.

        Absent, malformed or stale frames leave every bone and all smoothing
        state untouched. Returns the smoothed value written per joint key.
        """
        if not self.config.enable_tracking or frame is None:
            return {}
        if not self.is_bound or not self._has_skeleton:
            return {}

        frame = self._coerce_frame(frame)
        if frame is None or not frame.is_valid():
            self._log("Ignoring malformed landmark frame")
            return {}
        if (
            frame.timestamp is not None
            and self._last_timestamp is not None
            and frame.timestamp < self._last_timestamp
        ):
            self._log(f"Discarding stale frame t={frame.timestamp:.3f} (last {self._last_timestamp:.3f})")
            return {}

        pose = self.preprocessor.prepare(frame)
        written = self._apply(self.solver.solve(pose))
        if self.config.root_motion.enabled:
            self._apply_root_motion(solve_root_motion(pose, self.config.root_motion))

        self._frame_count += 1
        if frame.timestamp is not None:
            self._last_timestamp = frame.timestamp

        n = self._frame_count
        if n <= 5 or n % self.config.log_every == 0:
            self._log(f"Frame {n} {self.solver.last_debug} keys={len(written)}")
        return written

    def apply_manual(self, overrides: dict) -> dict[str, np.ndarray]:
        """Drive joint keys from directly supplied rotations, through smoothing and application."""
        targets = self.solver.from_manual(overrides)
        if not self.is_bound or not self._has_skeleton:
            return {}
        return self._apply(targets)

    def _apply(self, targets: dict[str, np.ndarray]) -> dict[str, np.ndarray]:
        written = {}
        for key, target in targets.items():
            bones = self._bindings.get(key)
            if not bones:
                continue
            value = self._smoothing.update(key, target)
            apply_to_bones(self.solver, bones, self._rest_pose, value, key)
            written[key] = value
        return written

    def _apply_root_motion(self, targets: dict[str, np.ndarray]):
        position = self._root_smoothing.update(ROOT_POSITION_KEY, targets[ROOT_POSITION_KEY])
        scale = self._root_smoothing.update(ROOT_SCALE_KEY, targets[ROOT_SCALE_KEY])
        rotation = self._root_smoothing.update(ROOT_ROTATION_KEY, targets[ROOT_ROTATION_KEY])
        self._rig.position = position
        self._rig.scale = np.full(3, float(scale[0]))
        self._rig.rotation_euler = rotation
