"""
Tests for Jacobian based singularity detection and classification.

Singular poses of the IRB 1200 used below:
- wrist:    joint 5 = 0, axes 4 and 6 collinear
- elbow:    joint 3 = atan2(-451, 42), joint 3 and the wrist center in line with joint 2
- shoulder: joint 2 = atan2(-451, 490) with joint 3 = 0, wrist center on axis 1
"""

import math

import numpy as np
import pytest

from exceptions import WristIntersectionError
from kinematic_model import (ForwardKinematics, LinkGeometry, RobotJointPosition, create_geometry_from_dimensions,
                             create_irb1200_geometry)
from singularity_classifier import (ELBOW, SHOULDER, WRIST, SingularityReport, alignment_angles, build_jacobian,
                                    check_jacobian_singularity, classify, singularity_type, wrist_center)

ELBOW_Q3 = math.degrees(math.atan2(-451.0, 42.0))
SHOULDER_Q2 = math.degrees(math.atan2(-451.0, 490.0))


def _single(joint_position):
    return [RobotJointPosition(joint_position)] + [None] * 7


def test_check_jacobian_singularity():
    assert not check_jacobian_singularity(np.eye(6))
    assert not check_jacobian_singularity(np.diag([1, 1, 1, 1, 1, 1e-3]))
    assert check_jacobian_singularity(np.diag([1, 1, 1, 1, 1, 1e-5]))
    assert check_jacobian_singularity(np.diag([1, 1, 1, 1, 1, 0]))
    assert check_jacobian_singularity(np.zeros((6, 6)))


def test_jacobian_columns_at_home():
    fk = ForwardKinematics(create_irb1200_geometry()).calculate([0] * 6)
    J = build_jacobian(fk)

    assert J.shape == (6, 6)
    # joint 1 about +Z moves the TCP at (533, 0, 889) along +Y
    assert np.allclose(J[:, 0], [0, 533, 0, 0, 0, 1])
    # joint 2 about +Y through (0, 0, 399)
    assert np.allclose(J[:, 1], [490, 0, -533, 0, 1, 0])
    # axes 4 and 6 coincide at home
    assert np.allclose(J[:, 3], J[:, 5])
    assert check_jacobian_singularity(J)


def test_jacobian_linear_rows_scale_with_units():
    q = [10, 20, 10, 30, 90, 40]
    mm = create_irb1200_geometry()
    m = create_geometry_from_dimensions([0.399, 0.0, 0.448, 0.042, 0.451, 0.0, 0.0], 0.082)
    J_mm = build_jacobian(ForwardKinematics(mm).calculate(q))
    J_m = build_jacobian(ForwardKinematics(m).calculate(q))

    assert np.allclose(J_mm[:3], J_m[:3] * 1000.0)
    assert np.allclose(J_mm[3:], J_m[3:])


def test_wrist_center_irb1200():
    fk = ForwardKinematics(create_irb1200_geometry())
    assert np.allclose(wrist_center(fk.calculate([0] * 6)), [451, 0, 889])

    fk.calculate([10, 20, 10, 30, 45, 40])
    assert np.allclose(wrist_center(fk), fk.posed_axis_frames[4].origin)


def test_singularity_type_tie_break():
    assert singularity_type(1.0, 2.0, 3.0) == WRIST
    assert singularity_type(2.0, 1.0, 3.0) == ELBOW
    assert singularity_type(3.0, 2.0, 1.0) == SHOULDER
    assert singularity_type(1.0, 1.0, 3.0) == SHOULDER
    assert singularity_type(2.0, 1.0, 1.0) == SHOULDER


def test_wrist_singularity():
    geometry = create_irb1200_geometry()
    wrist, elbow, shoulder = alignment_angles(ForwardKinematics(geometry).calculate([10, 20, 10, 30, 0, 40]))
    assert wrist == pytest.approx(0.0, abs=1e-4)
    assert elbow > 10.0 and shoulder > 10.0

    report = classify(_single([10, 20, 10, 30, 0, 40]), geometry)
    assert report.flags(0) == (True, False, False, False)
    assert report.kind(0) == WRIST


def test_elbow_singularity():
    geometry = create_irb1200_geometry()
    report = classify(_single([10, 20, ELBOW_Q3, 30, 45, 40]), geometry)
    assert report.flags(0) == (False, True, False, False)


def test_shoulder_singularity():
    geometry = create_irb1200_geometry()
    q = [10, SHOULDER_Q2, 0, 30, 60, 40]
    fk = ForwardKinematics(geometry).calculate(q)
    assert np.allclose(fk.posed_axis_frames[5].origin[:2], 0.0, atol=1e-9)

    report = classify(_single(q), geometry)
    assert report.flags(0) == (False, False, True, False)


def test_regular_pose_is_not_flagged():
    geometry = create_geometry_from_dimensions([0.399, 0.0, 0.448, 0.042, 0.451, 0.0, 0.0], 0.082)
    q = [10, 20, 10, 30, 90, 40]
    assert not check_jacobian_singularity(build_jacobian(ForwardKinematics(geometry).calculate(q)))

    report = classify(_single(q), geometry)
    assert report.flags(0) == (False, False, False, False)
    assert report.kind(0) is None


def test_no_result_iff_slot_missing():
    geometry = create_irb1200_geometry()
    arranged = [None, RobotJointPosition(10, 20, 10, 30, 0, 40), None, RobotJointPosition(0, 10, 20, 0, 30, 0),
                None, None, None, None]
    report = classify(arranged, geometry)

    assert report.no_result == tuple(slot is None for slot in arranged)
    for slot in range(8):
        wrist, elbow, shoulder, missing = report.flags(slot)
        assert wrist + elbow + shoulder <= 1
        if missing:
            assert not (wrist or elbow or shoulder)


def test_empty_report():
    report = SingularityReport.empty()
    assert report.no_result == (True,) * 8
    assert not any(report.wrist + report.elbow + report.shoulder)


def test_classify_needs_eight_slots():
    with pytest.raises(ValueError):
        classify([None] * 6, create_irb1200_geometry())


def test_malformed_wrist_raises():
    geometry = create_irb1200_geometry()
    frames = list(geometry.axis_frames)
    # axis 5 lifted 40 mm above axis 4: axes 4, 5, 6 no longer meet
    frames[4] = frames[4].translate([0.0, 0.0, 40.0])
    malformed = LinkGeometry(frames, geometry.base_frame, geometry.mounting_frame, geometry.tool_frame)

    with pytest.raises(WristIntersectionError):
        classify(_single([0, 0, 0, 0, 0, 0]), malformed)
