"""Shared landmark frames and rigs for the tests."""
import os
import sys

import numpy as np

script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

from rigmirror.utils.data_types import LandmarkFrame
from rigmirror.utils.presets import NUM_LANDMARKS, POSE_LANDMARKS
from rigmirror.utils.scene_graph import BoneData, Rig, Skeleton

# Subject facing the camera: their left side sits at larger image x
T_POSE = {
    "nose": (0.5, 0.3, -0.2),
    "left_ear": (0.55, 0.3, 0.0),
    "right_ear": (0.45, 0.3, 0.0),
    "left_shoulder": (0.6, 0.4, 0.0),
    "right_shoulder": (0.4, 0.4, 0.0),
    "left_elbow": (0.7, 0.4, 0.0),
    "right_elbow": (0.3, 0.4, 0.0),
    "left_wrist": (0.8, 0.4, 0.0),
    "right_wrist": (0.2, 0.4, 0.0),
    "left_hip": (0.57, 0.7, 0.0),
    "right_hip": (0.43, 0.7, 0.0),
    "left_knee": (0.57, 0.85, 0.0),
    "right_knee": (0.43, 0.85, 0.0),
    "left_ankle": (0.57, 1.0, 0.0),
    "right_ankle": (0.43, 1.0, 0.0),
}

ARMS_DOWN = dict(
    T_POSE,
    left_elbow=(0.6, 0.55, 0.0),
    left_wrist=(0.6, 0.7, 0.0),
    right_elbow=(0.4, 0.55, 0.0),
    right_wrist=(0.4, 0.7, 0.0),
)

UE_BONES = [
    ("pelvis", None),
    ("spine_01", "pelvis"),
    ("spine_02", "spine_01"),
    ("spine_04", "spine_02"),
    ("neck_01", "spine_04"),
    ("head", "neck_01"),
    ("clavicle_l", "spine_04"),
    ("upperarm_l", "clavicle_l"),
    ("upperarm_twist_01_l", "upperarm_l"),
    ("lowerarm_l", "upperarm_l"),
    ("hand_l", "lowerarm_l"),
    ("clavicle_r", "spine_04"),
    ("upperarm_r", "clavicle_r"),
    ("lowerarm_r", "upperarm_r"),
    ("hand_r", "lowerarm_r"),
    ("thigh_l", "pelvis"),
    ("calf_l", "thigh_l"),
    ("foot_l", "calf_l"),
    ("ball_l", "foot_l"),
    ("thigh_r", "pelvis"),
    ("calf_r", "thigh_r"),
    ("foot_r", "calf_r"),
    ("ball_r", "foot_r"),
]


def make_frame(joints=None, timestamp=None, default=(0.5, 0.5, 0.0)):
    joints = T_POSE if joints is None else joints
    data = np.zeros((NUM_LANDMARKS, 4))
    data[:, :3] = default
    data[:, 3] = 1.0
    for name, xyz in joints.items():
        data[POSE_LANDMARKS[name], : len(xyz)] = xyz
    return LandmarkFrame(data, timestamp)


def make_skeleton(name="Armature", bones=None, rotations=None):
    rotations = rotations or {}
    skeleton = Skeleton(name)
    for bone_name, parent in bones or UE_BONES:
        position = np.array([0.0, 0.1, 0.0]) if parent else np.zeros(3)
        skeleton.add_bone(BoneData(bone_name, parent, rotations.get(bone_name), position))
    return skeleton


def make_rig(n_skeletons=1, rotations=None, bones=None, name="TestRig"):
    rig = Rig(name, [make_skeleton(f"Armature_{i}", bones, rotations) for i in range(n_skeletons)])
    rig.update_matrix_world()
    return rig


def random_rest_rotations(seed=0, bones=None):
    rng = np.random.default_rng(seed)
    rotations = {}
    for bone_name, _ in bones or UE_BONES:
        q = rng.normal(size=4)
        rotations[bone_name] = q / np.linalg.norm(q)
    return rotations
