import numpy as np
import pytest

from vps_localizer.vps_types import CameraFrame, LocalizationResult, Orientation, TrackingState


def make_intrinsics(fx=1500.0, fy=1490.0, cx=950.0, cy=715.0):
    return np.array([
        [fx, 0.0, cx],
        [0.0, fy, cy],
        [0.0, 0.0, 1.0],
    ])


def make_frame(
    width=1920,
    height=1440,
    orientation=Orientation.LANDSCAPE,
    position=(0.0, 0.0, 2.0),
    tracking_state=TrackingState.NORMAL,
    intrinsics=None,
):
    """Build a CameraFrame with a gradient image so resize/encode have real content."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[..., 0] = xs[None, :].astype(np.uint8)
    image[..., 1] = ys[:, None].astype(np.uint8)
    transform = np.eye(4)
    transform[:3, 3] = position
    return CameraFrame(
        image=image,
        intrinsics=make_intrinsics() if intrinsics is None else intrinsics,
        orientation=orientation,
        camera_transform=transform,
        tracking_state=tracking_state,
        timestamp=12.5,
    )


@pytest.fixture
def landscape_frame():
    return make_frame()


@pytest.fixture
def portrait_frame():
    return make_frame(orientation=Orientation.PORTRAIT)


@pytest.fixture
def found_result():
    return LocalizationResult(
        pose_found=True,
        position=np.array([1.0, 0.0, 0.0]),
        rotation=np.array([0.0, 0.0, 0.0, 1.0]),
        confidence=0.9,
        map_ids=("MAP_A",),
        raw={"poseFound": True},
    )


@pytest.fixture
def response_json():
    return {
        "poseFound": True,
        "position": {"x": 1.0, "y": 0.0, "z": 0.0},
        "rotation": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0},
        "confidence": 0.9,
        "mapIds": ["MAP_A"],
    }
