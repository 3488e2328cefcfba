"""4x4 rigid-transform and quaternion utilities.

Conventions: right-handed; quaternions stored as (x, y, z, w); a 4x4 pose
keeps its rotation in the upper-left 3x3 block and the translation in the
fourth column, with homogeneous 1 in the bottom-right (column-vector
convention, p' = T @ p).
"""

import numpy as np
from typing import Tuple

from .errors import SingularPose

QUAT_EPS = 1e-8
DET_EPS = 1e-9


def normalize_quaternion(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64).reshape(4)
    if not np.all(np.isfinite(q)):
        raise SingularPose(f"Non-finite quaternion: {q.tolist()}")
    n = np.linalg.norm(q)
    if n < QUAT_EPS:
        raise SingularPose("Quaternion has near-zero norm")
    return q / n


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    """
    Convert a unit quaternion (x, y, z, w) to a 3x3 rotation matrix.

    The input is normalized first; degenerate quaternions raise SingularPose.
    """
    x, y, z, w = normalize_quaternion(q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def matrix_to_quaternion(R: np.ndarray) -> np.ndarray:
    """
    Convert a 3x3 rotation matrix to a unit quaternion (x, y, z, w).

    Branches on the largest of trace and diagonal entries so the divisor is
    always at least 1/2 in magnitude, which keeps the extraction stable near
    the identity and near 180 degree rotations. The result has w >= 0.
    """
    R = np.asarray(R, dtype=np.float64)[:3, :3]
    m00, m11, m22 = R[0, 0], R[1, 1], R[2, 2]
    trace = m00 + m11 + m22

    if trace >= max(m00, m11, m22):
        s = 2.0 * np.sqrt(max(1.0 + trace, 0.0))
        w = 0.25 * s
        x = (R[2, 1] - R[1, 2]) / s
        y = (R[0, 2] - R[2, 0]) / s
        z = (R[1, 0] - R[0, 1]) / s
    elif m00 >= m11 and m00 >= m22:
        s = 2.0 * np.sqrt(max(1.0 + m00 - m11 - m22, 0.0))
        w = (R[2, 1] - R[1, 2]) / s
        x = 0.25 * s
        y = (R[0, 1] + R[1, 0]) / s
        z = (R[0, 2] + R[2, 0]) / s
    elif m11 >= m22:
        s = 2.0 * np.sqrt(max(1.0 - m00 + m11 - m22, 0.0))
        w = (R[0, 2] - R[2, 0]) / s
        x = (R[0, 1] + R[1, 0]) / s
        y = 0.25 * s
        z = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(max(1.0 - m00 - m11 + m22, 0.0))
        w = (R[1, 0] - R[0, 1]) / s
        x = (R[0, 2] + R[2, 0]) / s
        y = (R[1, 2] + R[2, 1]) / s
        z = 0.25 * s

    q = np.array([x, y, z, w])
    q /= np.linalg.norm(q)
    if q[3] < 0:
        q = -q
    return q


def quaternion_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a * b, both (x, y, z, w)."""
    ax, ay, az, aw = np.asarray(a, dtype=np.float64).reshape(4)
    bx, by, bz, bw = np.asarray(b, dtype=np.float64).reshape(4)
    return np.array([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ])


def quaternion_from_axis_angle(axis, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64).reshape(3)
    axis = axis / np.linalg.norm(axis)
    half = 0.5 * angle
    return np.array([*(axis * np.sin(half)), np.cos(half)])


def translation_matrix(t) -> np.ndarray:
    T = np.eye(4)
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def rotation_matrix(q) -> np.ndarray:
    T = np.eye(4)
    T[:3, :3] = quaternion_to_matrix(q)
    return T


def pose_to_matrix(position, rotation) -> np.ndarray:
    """
    Build translate(position) @ rotate(rotation) as a 4x4 matrix.

    Args:
        position: translation (3,)
        rotation: quaternion (x, y, z, w)

    Returns:
        4x4 homogeneous transformation matrix
    """
    return translation_matrix(position) @ rotation_matrix(rotation)


def matrix_to_pose(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Split a 4x4 rigid transform into (position, quaternion)."""
    T = np.asarray(T, dtype=np.float64)
    return T[:3, 3].copy(), matrix_to_quaternion(T[:3, :3])


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    Uses a general inverse rather than the rigid [R^T, -R^T t] shortcut so a
    scaled or sheared input is still inverted correctly; singular or
    non-finite input raises SingularPose.
    """
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        raise SingularPose("Pose matrix must be a finite 4x4 matrix")
    if abs(np.linalg.det(T)) < DET_EPS:
        raise SingularPose("Pose matrix is not invertible")
    try:
        return np.linalg.inv(T)
    except np.linalg.LinAlgError as exc:
        raise SingularPose(str(exc)) from exc
