"""
Minimal in-memory skeletal scene graph.

The engine only needs `rig.skeletons`, `skeleton.bones`, `bone.name`,
`bone.rotation` and `bone.update_matrix_world()`, so any host scene graph with
the same surface can replace these classes.
"""
from __future__ import annotations

import json
import os
from typing import Iterator, Optional

import numpy as np

from .retarget_utils import (
    euler_xyz_to_quaternion,
    quaternion_identity,
    quaternion_normalize,
    quaternion_to_euler_xyz,
    quaternion_to_matrix,
)


# =============================================================================
# Core Data Structures
# =============================================================================


class BoneData:
    def __init__(
        self,
        name: str,
        parent_name: Optional[str] = None,
        rotation=None,
        position=None,
        scale=None,
    ):
        self.name = name
        self.parent_name = parent_name
        self.rotation = (
            quaternion_identity() if rotation is None else quaternion_normalize(rotation)
        )  # local [w, x, y, z]
        self.position = np.zeros(3) if position is None else np.asarray(position, dtype=np.float64)
        self.scale = np.ones(3) if scale is None else np.asarray(scale, dtype=np.float64)
        self.local_matrix = np.eye(4)
        self.world_matrix = np.eye(4)
        self.skeleton: Optional[Skeleton] = None  # set by Skeleton.add_bone
        self.update_matrix()

    def get_euler(self, order: str = "XYZ") -> np.ndarray:
        """Local rotation as radians indexed x, y, z."""
        return quaternion_to_euler_xyz(self.rotation, order)

    def set_euler(self, angles, order: str = "XYZ"):
        self.rotation = euler_xyz_to_quaternion(angles, order)

    def update_matrix(self):
        mat = np.eye(4)
        mat[:3, :3] = quaternion_to_matrix(self.rotation) * self.scale[np.newaxis, :]
        mat[:3, 3] = self.position
        self.local_matrix = mat

    def update_matrix_world(self):
        """Recompute this bone's matrices and push them down to its descendants."""
        self.update_matrix()
        parent = None
        if self.skeleton is not None and self.parent_name:
            parent = self.skeleton.get_bone_case_insensitive(self.parent_name)
        if parent is not None:
            self.world_matrix = parent.world_matrix @ self.local_matrix
        else:
            self.world_matrix = self.local_matrix.copy()
        if self.skeleton is not None:
            for child in self.skeleton.get_children(self.name):
                child.update_matrix_world()

    @property
    def world_position(self) -> np.ndarray:
        return self.world_matrix[:3, 3].copy()

    def __repr__(self):
        return f"BoneData({self.name!r}, parent={self.parent_name!r})"


class Skeleton:
    def __init__(self, name: str = "Skeleton"):
        self.name = name
        self.bones: dict[str, BoneData] = {}  # lower name -> bone, insertion ordered
        self.bone_children: dict[str, list[str]] = {}  # lower parent name -> child names

    def add_bone(self, bone: BoneData):
        key = bone.name.lower()
        if key in self.bones:
            raise ValueError(f"Skeleton '{self.name}' already has a bone named '{bone.name}'")
        self.bones[key] = bone
        bone.skeleton = self
        if bone.parent_name:
            pname = bone.parent_name.lower()
            if pname not in self.bone_children:
                self.bone_children[pname] = []
            if bone.name not in self.bone_children[pname]:
                self.bone_children[pname].append(bone.name)

    def get_children(self, bone_name: str) -> list[BoneData]:
        names = self.bone_children.get(bone_name.lower(), [])
        return [self.bones[n.lower()] for n in names if n.lower() in self.bones]

    def get_bone_case_insensitive(self, name: str) -> Optional[BoneData]:
        if not name:
            return None
        lower_name = name.lower()
        if lower_name in self.bones:
            return self.bones[lower_name]

        # Strip namespaces (e.g. mixamorig:Hips -> hips)
        simplified = lower_name.split(":")[-1]
        if simplified in self.bones:
            return self.bones[simplified]
        for bname, bone in self.bones.items():
            if bname.split(":")[-1] == simplified:
                return bone
        return None

    def roots(self) -> list[BoneData]:
        return [
            b
            for b in self.bones.values()
            if not b.parent_name or b.parent_name.lower() not in self.bones
        ]

    def update_matrix_world(self):
        for root in self.roots():
            root.update_matrix_world()

    def __iter__(self) -> Iterator[BoneData]:
        return iter(self.bones.values())

    def __len__(self) -> int:
        return len(self.bones)


class Rig:
    """A loaded character: one or more armatures plus the root transform."""

    def __init__(self, name: str = "Rig", skeletons: Optional[list[Skeleton]] = None):
        self.name = name
        self.skeletons: list[Skeleton] = list(skeletons) if skeletons else []
        self.position = np.zeros(3)
        self.scale = np.ones(3)
        self.rotation_euler = np.zeros(3)  # radians, XYZ

    def add_skeleton(self, skeleton: Skeleton) -> Skeleton:
        self.skeletons.append(skeleton)
        return skeleton

    def traverse_bones(self) -> Iterator[tuple[Skeleton, BoneData]]:
        for skeleton in self.skeletons:
            for bone in skeleton.bones.values():
                yield skeleton, bone

    def update_matrix_world(self):
        for skeleton in self.skeletons:
            skeleton.update_matrix_world()

    def __repr__(self):
        counts = ", ".join(f"{s.name}:{len(s)}" for s in self.skeletons)
        return f"Rig({self.name!r}, skeletons=[{counts}])"


# =============================================================================
# JSON I/O
# =============================================================================


def _vector(value, size: int, what: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (size,) or not np.all(np.isfinite(arr)):
        raise ValueError(f"{what}: expected {size} finite numbers, got {value!r}")
    return arr


def rig_from_dict(data: dict) -> Rig:
    if not isinstance(data, dict) or not isinstance(data.get("skeletons"), list):
        raise ValueError("Rig file must be an object with a 'skeletons' list")

    rig = Rig(data.get("name", "Rig"))
    for s_idx, s_data in enumerate(data["skeletons"]):
        if not isinstance(s_data, dict) or not isinstance(s_data.get("bones"), list):
            raise ValueError(f"Skeleton #{s_idx} must be an object with a 'bones' list")
        skeleton = Skeleton(s_data.get("name", f"Skeleton_{s_idx}"))
        for b_data in s_data["bones"]:
            if not isinstance(b_data, dict) or "name" not in b_data:
                raise ValueError(f"Skeleton '{skeleton.name}': every bone needs a name")
            where = f"Bone '{b_data['name']}'"
            if "rotation" in b_data:
                rotation = _vector(b_data["rotation"], 4, where + " rotation")
            elif "euler_deg" in b_data:
                angles = np.radians(_vector(b_data["euler_deg"], 3, where + " euler_deg"))
                rotation = euler_xyz_to_quaternion(angles, b_data.get("euler_order", "XYZ"))
            else:
                rotation = None
            position = _vector(b_data["position"], 3, where + " position") if "position" in b_data else None
            scale = _vector(b_data["scale"], 3, where + " scale") if "scale" in b_data else None
            skeleton.add_bone(
                BoneData(b_data["name"], b_data.get("parent"), rotation, position, scale)
            )
        rig.add_skeleton(skeleton)

    rig.update_matrix_world()
    return rig


def rig_to_dict(rig: Rig) -> dict:
    return {
        "name": rig.name,
        "skeletons": [
            {
                "name": skeleton.name,
                "bones": [
                    {
                        "name": bone.name,
                        "parent": bone.parent_name,
                        "rotation": [float(v) for v in bone.rotation],
                        "position": [float(v) for v in bone.position],
                        "scale": [float(v) for v in bone.scale],
                    }
                    for bone in skeleton.bones.values()
                ],
            }
            for skeleton in rig.skeletons
        ],
    }


def load_rig(filepath: str) -> Rig:
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Rig file not found: {filepath}")
    with open(filepath, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Rig file {filepath} is not valid JSON: {e}") from e
    return rig_from_dict(data)


def save_rig(rig: Rig, filepath: str):
    with open(filepath, "w") as f:
        json.dump(rig_to_dict(rig), f, indent=2)
