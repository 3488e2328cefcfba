"""Snapshot the tracking pose that belongs to a captured frame."""

from __future__ import annotations

import numpy as np

from .errors import TrackingNotReady
from .strategies.resolve_pose import DEGENERATE_EPS, check_capture_position
from .transforms import matrix_to_quaternion, quaternion_from_axis_angle, quaternion_multiply
from .vps_types import CameraFrame, CapturePose, TrackingState

# Rotation reported relative to landscape: portrait poses carry an extra
# quarter turn about the camera Z axis.
PORTRAIT_CORRECTION = quaternion_from_axis_angle([0.0, 0.0, 1.0], np.pi / 2)

_TRACKING_LABELS = {
    TrackingState.NOT_AVAILABLE: "Not Available",
    TrackingState.NORMAL: "Tracking Normal",
    TrackingState.LIMITED_EXCESSIVE_MOTION: "Excessive Motion",
    TrackingState.LIMITED_INITIALIZING: "Tracking Initializing",
    TrackingState.LIMITED_INSUFFICIENT_FEATURES: "Insufficient Features",
}


def tracking_state_label(state: TrackingState) -> str:
    return _TRACKING_LABELS.get(state, "Unknown")


def capture_pose_from_frame(frame: CameraFrame, epsilon: float = DEGENERATE_EPS) -> CapturePose:
    """
    Build the CapturePose for the same instant as `frame`.

    Raises TrackingNotReady unless tracking is NORMAL, and DegeneratePose when
    the camera still sits at the tracking origin.
    """
    if frame.tracking_state is not TrackingState.NORMAL:
        raise TrackingNotReady(
            f"AR tracking is not in normal state: {tracking_state_label(frame.tracking_state)}"
        )

    T = np.asarray(frame.camera_transform, dtype=np.float64)
    position = check_capture_position(T[:3, 3], epsilon)
    rotation = matrix_to_quaternion(T[:3, :3])

    if frame.orientation.is_portrait:
        rotation = quaternion_multiply(rotation, PORTRAIT_CORRECTION)

    return CapturePose(position=position, rotation=rotation, timestamp=frame.timestamp)
