"""
Static tables for pose-to-rig retargeting: landmark indices, joint keys,
bone-name patterns and canonical rest directions.
"""

# =============================================================================
# Landmarks (MediaPipe Pose, 33 joints)
# =============================================================================

POSE_LANDMARKS = {
    "nose": 0,
    "left_eye_inner": 1,
    "left_eye": 2,
    "left_eye_outer": 3,
    "right_eye_inner": 4,
    "right_eye": 5,
    "right_eye_outer": 6,
    "left_ear": 7,
    "right_ear": 8,
    "mouth_left": 9,
    "mouth_right": 10,
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_elbow": 13,
    "right_elbow": 14,
    "left_wrist": 15,
    "right_wrist": 16,
    "left_pinky": 17,
    "right_pinky": 18,
    "left_index": 19,
    "right_index": 20,
    "left_thumb": 21,
    "right_thumb": 22,
    "left_hip": 23,
    "right_hip": 24,
    "left_knee": 25,
    "right_knee": 26,
    "left_ankle": 27,
    "right_ankle": 28,
    "left_heel": 29,
    "right_heel": 30,
    "left_foot_index": 31,
    "right_foot_index": 32,
}

NUM_LANDMARKS = len(POSE_LANDMARKS)
LANDMARK_NAMES = sorted(POSE_LANDMARKS, key=POSE_LANDMARKS.get)


def _mirror_name(name: str) -> str:
    if name.startswith("left_"):
        return "right_" + name[len("left_") :]
    if name.startswith("right_"):
        return "left_" + name[len("right_") :]
    if name == "mouth_left":
        return "mouth_right"
    if name == "mouth_right":
        return "mouth_left"
    return name


# Index permutation that swaps every left/right landmark pair
MIRROR_PERMUTATION = [POSE_LANDMARKS[_mirror_name(n)] for n in LANDMARK_NAMES]


# =============================================================================
# Joint Keys
# =============================================================================

JOINT_KEYS = (
    "hips",
    "spine",
    "spine1",
    "spine2",
    "neck",
    "head",
    "leftShoulder",
    "leftUpperArm",
    "leftLowerArm",
    "leftHand",
    "rightShoulder",
    "rightUpperArm",
    "rightLowerArm",
    "rightHand",
    "leftUpperLeg",
    "leftLowerLeg",
    "leftFoot",
    "leftToe",
    "rightUpperLeg",
    "rightLowerLeg",
    "rightFoot",
    "rightToe",
)

UPPER_ARM_KEYS = ("leftUpperArm", "rightUpperArm")
LOWER_ARM_KEYS = ("leftLowerArm", "rightLowerArm")
SPINE_KEYS = ("spine", "spine1", "spine2")

# Ordered candidates per key, most specific first.
# Covers MetaHuman/UE (upperarm_l), Mixamo (leftarm), Blender/Rigify (upper_arm.l)
BONE_NAME_PATTERNS = {
    "hips": ["pelvis", "hips", "root", "hip"],
    "spine": ["spine_01", "spine", "spine1", "spine.001"],
    "spine1": ["spine_02", "spine_03", "spine2", "spine.002", "chest"],
    "spine2": ["spine_04", "spine_05", "spine3", "spine.003", "upperchest"],
    "neck": ["neck_01", "neck_02", "neck"],
    "head": ["head", "head_01"],
    "leftShoulder": ["clavicle_l", "leftshoulder", "shoulder_l", "l_clavicle", "shoulder.l"],
    "leftUpperArm": ["upperarm_l", "leftarm", "l_upperarm", "arm_l", "upper_arm.l", "upperarm.l"],
    "leftLowerArm": ["lowerarm_l", "leftforearm", "l_lowerarm", "forearm_l", "lower_arm.l", "lowerarm.l"],
    "leftHand": ["hand_l", "lefthand", "l_hand", "hand.l"],
    "rightShoulder": ["clavicle_r", "rightshoulder", "shoulder_r", "r_clavicle", "shoulder.r"],
    "rightUpperArm": ["upperarm_r", "rightarm", "r_upperarm", "arm_r", "upper_arm.r", "upperarm.r"],
    "rightLowerArm": ["lowerarm_r", "rightforearm", "r_lowerarm", "forearm_r", "lower_arm.r", "lowerarm.r"],
    "rightHand": ["hand_r", "righthand", "r_hand", "hand.r"],
    "leftUpperLeg": ["thigh_l", "leftupleg", "l_thigh", "upperleg_l", "upper_leg.l", "thigh.l"],
    "leftLowerLeg": ["calf_l", "leftleg", "l_calf", "lowerleg_l", "lower_leg.l", "shin.l"],
    "leftFoot": ["foot_l", "leftfoot", "l_foot", "foot.l"],
    "leftToe": ["ball_l", "lefttoebase", "toe_l", "l_toe", "toe.l"],
    "rightUpperLeg": ["thigh_r", "rightupleg", "r_thigh", "upperleg_r", "upper_leg.r", "thigh.r"],
    "rightLowerLeg": ["calf_r", "rightleg", "r_calf", "lowerleg_r", "lower_leg.r", "shin.r"],
    "rightFoot": ["foot_r", "rightfoot", "r_foot", "foot.r"],
    "rightToe": ["ball_r", "righttoebase", "toe_r", "r_toe", "toe.r"],
}

# Secondary deformation bones never receive primary rotation
EXCLUDED_MARKERS = ["twist", "corrective", "_in", "_out", "_fwd", "_bck"]
UPPER_ARM_EXCLUDED_MARKERS = ["bicep", "tricep"]


# =============================================================================
# Solver Tables
# =============================================================================

# (parent landmark, child landmark) per limb segment
LIMB_CHAINS = {
    "leftUpperArm": ("left_shoulder", "left_elbow"),
    "leftLowerArm": ("left_elbow", "left_wrist"),
    "rightUpperArm": ("right_shoulder", "right_elbow"),
    "rightLowerArm": ("right_elbow", "right_wrist"),
    "leftUpperLeg": ("left_hip", "left_knee"),
    "leftLowerLeg": ("left_knee", "left_ankle"),
    "rightUpperLeg": ("right_hip", "right_knee"),
    "rightLowerLeg": ("right_knee", "right_ankle"),
}

# Bone directions for a T-posed rig facing +Z (viewer), left side at +X, Y up
REST_DIRECTIONS = {
    "spine": (0.0, 1.0, 0.0),
    "head": (0.0, 0.0, 1.0),
    "leftUpperArm": (1.0, 0.0, 0.0),
    "leftLowerArm": (1.0, 0.0, 0.0),
    "rightUpperArm": (-1.0, 0.0, 0.0),
    "rightLowerArm": (-1.0, 0.0, 0.0),
    "leftUpperLeg": (0.0, -1.0, 0.0),
    "leftLowerLeg": (0.0, -1.0, 0.0),
    "rightUpperLeg": (0.0, -1.0, 0.0),
    "rightLowerLeg": (0.0, -1.0, 0.0),
}

# Upper arm -> (shoulder landmark, elbow landmark) for the ratio strategy
RATIO_ARMS = {
    "leftUpperArm": ("left_shoulder", "left_elbow"),
    "rightUpperArm": ("right_shoulder", "right_elbow"),
}

# Smoothing keys used for whole-rig placement
ROOT_POSITION_KEY = "__root_position__"
ROOT_SCALE_KEY = "__root_scale__"
ROOT_ROTATION_KEY = "__root_rotation__"
