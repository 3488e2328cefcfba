import numpy as np
import pytest

from vps_localizer.errors import DegeneratePose, SingularPose
from vps_localizer.strategies.resolve_pose import PoseResolver, check_capture_position, corrective_matrix
from vps_localizer.transforms import invert_transform, pose_to_matrix, quaternion_from_axis_angle
from vps_localizer.vps_types import CapturePose, LocalizationResult

IDENTITY_Q = np.array([0.0, 0.0, 0.0, 1.0])


def test_translation_only_scenario(found_result):
    """Map camera at (1,0,0), local camera at (0,0,2): map origin sits at (-1,0,2) locally."""
    capture = CapturePose(position=np.array([0.0, 0.0, 2.0]), rotation=IDENTITY_Q)

    C = PoseResolver().resolve(found_result, capture)

    assert np.allclose(C.position, [-1.0, 0.0, 2.0], atol=1e-6)
    assert np.allclose(C.matrix[:3, 3], [-1.0, 0.0, 2.0], atol=1e-6)
    assert np.allclose(C.rotation, IDENTITY_Q, atol=1e-6)
    # map-space origin expressed in local tracking space
    assert np.allclose((C.matrix @ [0, 0, 0, 1])[:3], [-1.0, 0.0, 2.0], atol=1e-6)


def test_identity_capture_gives_inverse_of_service_pose():
    M = pose_to_matrix([0.3, 1.5, -2.0], quaternion_from_axis_angle([0, 1, 0], 0.9))
    C = corrective_matrix(M, np.eye(4))
    assert np.allclose(C, invert_transform(M), atol=1e-9)


def test_corrective_maps_map_camera_onto_local_camera():
    """C @ M == T: the service's camera pose lands on the tracked camera pose."""
    q_map = quaternion_from_axis_angle([0.2, 1.0, 0.1], 1.3)
    q_local = quaternion_from_axis_angle([0.0, 1.0, 0.0], -0.4)
    result = LocalizationResult(
        pose_found=True,
        position=np.array([3.0, 0.2, -1.0], dtype=np.float32),
        rotation=q_map.astype(np.float32),
        confidence=0.8,
    )
    capture = CapturePose(position=np.array([0.5, 1.4, 0.25]), rotation=q_local)

    C = PoseResolver().resolve(result, capture)

    M = pose_to_matrix(result.position, result.rotation)
    T = pose_to_matrix(capture.position, capture.rotation)
    assert np.allclose(C.matrix @ M, T, atol=1e-5)
    assert np.allclose(pose_to_matrix(C.position, C.rotation), C.matrix, atol=1e-6)


def test_half_turn_decomposition_is_finite():
    result = LocalizationResult(
        pose_found=True,
        position=np.array([0.0, 0.0, 1.0]),
        rotation=quaternion_from_axis_angle([0, 1, 0], np.pi),
    )
    capture = CapturePose(position=np.array([0.0, 0.0, 1.0]), rotation=IDENTITY_Q)
    C = PoseResolver().resolve(result, capture)
    assert np.all(np.isfinite(C.rotation))
    assert np.isclose(np.linalg.norm(C.rotation), 1.0)


@pytest.mark.parametrize("position", [(0.0, 0.0, 0.0), (1e-7, 0.0, 0.0), (np.nan, 0.0, 1.0)])
def test_degenerate_capture_position(found_result, position):
    capture = CapturePose(position=np.array(position), rotation=IDENTITY_Q)
    with pytest.raises(DegeneratePose):
        PoseResolver().resolve(found_result, capture)


def test_epsilon_is_configurable():
    with pytest.raises(DegeneratePose):
        check_capture_position([0.01, 0.0, 0.0], epsilon=0.1)
    assert np.allclose(check_capture_position([0.01, 0.0, 0.0], epsilon=1e-3), [0.01, 0.0, 0.0])


@pytest.mark.parametrize("position,rotation", [
    ((1.0, 0.0, 0.0), (0.0, 0.0, 0.0, 0.0)),
    ((1.0, 0.0, 0.0), (np.nan, 0.0, 0.0, 1.0)),
    ((np.inf, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0)),
])
def test_singular_service_pose(position, rotation):
    result = LocalizationResult(pose_found=True, position=np.array(position), rotation=np.array(rotation))
    capture = CapturePose(position=np.array([0.0, 0.0, 2.0]), rotation=IDENTITY_Q)
    with pytest.raises(SingularPose):
        PoseResolver().resolve(result, capture)


def test_resolve_requires_pose_found():
    capture = CapturePose(position=np.array([0.0, 0.0, 2.0]), rotation=IDENTITY_Q)
    with pytest.raises(ValueError):
        PoseResolver().resolve(LocalizationResult(pose_found=False), capture)
