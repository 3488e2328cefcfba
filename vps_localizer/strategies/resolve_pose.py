import logging

import numpy as np

from ..errors import DegeneratePose, SingularPose
from ..transforms import invert_transform, matrix_to_pose, pose_to_matrix
from ..vps_types import CapturePose, CorrectiveTransform, LocalizationResult

logger = logging.getLogger(__name__)

DEGENERATE_EPS = 1e-6


def check_capture_position(position, epsilon: float = DEGENERATE_EPS) -> np.ndarray:
    """Raise DegeneratePose when tracking had not produced a usable position."""
    p = np.array(position, dtype=np.float64).reshape(3)
    if not np.all(np.isfinite(p)):
        raise DegeneratePose(f"Capture position is not finite: {p.tolist()}")
    if np.linalg.norm(p) < epsilon:
        raise DegeneratePose("Capture position is too close to origin; tracking not initialized")
    return p


def corrective_matrix(M: np.ndarray, T: np.ndarray) -> np.ndarray:
    """
    C = T @ inv(M).

    M is the camera pose in map space as returned by the service, T the
    camera pose in local tracking space at capture time. C maps map-space
    coordinates into local tracking space.
    """
    return np.asarray(T, dtype=np.float64) @ invert_transform(M)


class PoseResolver:
    """
    Strategy: turn a VPS pose plus the capture-time tracking pose into the
    transform that aligns the map frame with the local tracking frame.
    """

    def __init__(self, epsilon: float = DEGENERATE_EPS):
        self.epsilon = epsilon

    def resolve(self, result: LocalizationResult, capture_pose: CapturePose) -> CorrectiveTransform:
        if not result.pose_found:
            raise ValueError("resolve() requires a result with pose_found=True")

        position = check_capture_position(capture_pose.position, self.epsilon)

        res_pos = np.asarray(result.position, dtype=np.float64).reshape(3)
        if not np.all(np.isfinite(res_pos)):
            raise SingularPose(f"Service position is not finite: {res_pos.tolist()}")

        M = pose_to_matrix(res_pos, result.rotation)
        T = pose_to_matrix(position, capture_pose.rotation)
        C = corrective_matrix(M, T)

        c_pos, c_rot = matrix_to_pose(C)
        logger.debug("corrective transform position=%s rotation=%s", c_pos.tolist(), c_rot.tolist())
        return CorrectiveTransform(matrix=C, position=c_pos, rotation=c_rot)
