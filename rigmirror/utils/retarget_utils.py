"""
Rotation utilities shared by the solvers, smoother and scene graph.
Quaternions are numpy arrays in [w, x, y, z] order; scipy is used for the
conversions (scipy itself works in [x, y, z, w]).
"""
from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation as R, Slerp

# Shortest-arc thresholds on the cosine between the two directions
PARALLEL_DOT = 0.9999
WORLD_UP = np.array([0.0, 1.0, 0.0])
WORLD_X = np.array([1.0, 0.0, 0.0])


def quaternion_identity() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0])


def quaternion_inverse(q: np.ndarray) -> np.ndarray:
    """Inverse of quaternion [w, x, y, z]."""
    return np.array([q[0], -q[1], -q[2], -q[3]]) / np.sum(q**2)


def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product of two quaternions [w, x, y, z]."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ]
    )


def quaternion_normalize(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    n = np.linalg.norm(q)
    if n < 1e-12 or not np.isfinite(n):
        return quaternion_identity()
    return q / n


def to_rotation(q: np.ndarray) -> R:
    """[w, x, y, z] -> scipy Rotation."""
    q = quaternion_normalize(q)
    return R.from_quat([q[1], q[2], q[3], q[0]])


def from_rotation(rot: R) -> np.ndarray:
    """scipy Rotation -> [w, x, y, z]."""
    q = rot.as_quat()
    return np.array([q[3], q[0], q[1], q[2]])


def quaternion_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    n = np.linalg.norm(axis)
    if n < 1e-12:
        return quaternion_identity()
    return from_rotation(R.from_rotvec(axis / n * angle))


def quaternion_to_euler(q: np.ndarray, order: str = "XYZ") -> np.ndarray:
    """Euler angles in radians, in the axis sequence given by `order`."""
    return to_rotation(q).as_euler(order)


def euler_to_quaternion(angles, order: str = "XYZ", degrees: bool = False) -> np.ndarray:
    return from_rotation(R.from_euler(order, np.asarray(angles, dtype=np.float64), degrees=degrees))


def euler_xyz_to_quaternion(xyz, order: str = "XYZ") -> np.ndarray:
    """
    Angles given per axis (x, y, z) regardless of the application order.
    `order` decides the sequence they are composed in.
    """
    xyz = np.asarray(xyz, dtype=np.float64)
    seq = [xyz["xyz".index(axis)] for axis in order.lower()]
    return euler_to_quaternion(seq, order)


def quaternion_to_euler_xyz(q: np.ndarray, order: str = "XYZ") -> np.ndarray:
    """Inverse of euler_xyz_to_quaternion: returns angles indexed x, y, z."""
    seq = quaternion_to_euler(q, order)
    xyz = np.zeros(3)
    for i, axis in enumerate(order.lower()):
        xyz["xyz".index(axis)] = seq[i]
    return xyz


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    return to_rotation(q).as_matrix()


def quaternion_angle(q1: np.ndarray, q2: np.ndarray) -> float:
    """Angle in radians of the rotation taking q1 to q2."""
    d = abs(float(np.dot(quaternion_normalize(q1), quaternion_normalize(q2))))
    return 2.0 * float(np.arccos(min(1.0, d)))


def quaternion_slerp(q0: np.ndarray, q1: np.ndarray, t: float) -> np.ndarray:
    """Shortest-path spherical interpolation, t in [0, 1]."""
    if t <= 0.0:
        return quaternion_normalize(q0)
    if t >= 1.0:
        return quaternion_normalize(q1)
    key_rots = R.concatenate([to_rotation(q0), to_rotation(q1)])
    return from_rotation(Slerp([0.0, 1.0], key_rots)([t])[0])


def solve_rotation_between_vectors(v1: np.ndarray, v2: np.ndarray) -> np.ndarray:
    """
    Shortest-arc quaternion [w, x, y, z] that rotates direction v1 onto v2.

    Degenerate input never produces NaN:
    - zero-length or non-finite vectors -> identity
    - parallel -> identity
    - anti-parallel -> 180 deg about an axis perpendicular to v1 (world up,
      or world X when v1 is close to vertical)
    """
    v1 = np.asarray(v1, dtype=np.float64)
    v2 = np.asarray(v2, dtype=np.float64)
    v1_norm = np.linalg.norm(v1)
    v2_norm = np.linalg.norm(v2)
    if not (np.isfinite(v1_norm) and np.isfinite(v2_norm)):
        return quaternion_identity()
    if v1_norm < 1e-9 or v2_norm < 1e-9:
        return quaternion_identity()
    v1 = v1 / v1_norm
    v2 = v2 / v2_norm

    dot = float(np.dot(v1, v2))
    if dot > PARALLEL_DOT:
        return quaternion_identity()
    if dot < -PARALLEL_DOT:
        helper = WORLD_X if abs(np.dot(v1, WORLD_UP)) > 0.9 else WORLD_UP
        axis = np.cross(v1, helper)
        return quaternion_from_axis_angle(axis, np.pi)

    axis = np.cross(v1, v2)
    axis_len = np.linalg.norm(axis)
    if axis_len < 1e-12:
        return quaternion_identity()
    angle = np.arccos(np.clip(dot, -1.0, 1.0))
    return quaternion_from_axis_angle(axis / axis_len, angle)


def rotate_vector(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    return to_rotation(q).apply(np.asarray(v, dtype=np.float64))
