"""
Tests for the Cfx arrangement of IK solutions.
"""

import logging

import numpy as np
import pytest

from cfx_arranger import (arrange_joint_positions, as_legacy_array, compute_cf1, compute_cf4, compute_cfx,
                          from_legacy_array)
from ik_spherical_2_parallel import forward_kinematics, kinematics_from_geometry, solve_ik_spherical_2_parallel
from ikgeo_config import METERS, MISSING_JOINT_VALUE
from kinematic_model import (ForwardKinematics, RobotJointPosition, create_geometry_from_dimensions,
                             create_irb1200_geometry)


def _all_solutions(geometry, q_deg, to_meters=0.001):
    kin = kinematics_from_geometry(geometry, to_meters)
    R, p = forward_kinematics(np.radians(q_deg), kin)
    return [RobotJointPosition.from_radians(q) for q in solve_ik_spherical_2_parallel(R, p, kin)]


def test_front_elbow_up_configuration():
    geometry = create_irb1200_geometry()
    fk = ForwardKinematics(geometry).calculate([0, 10, 20, 0, 30, 0])
    assert compute_cf1(fk) == 0
    assert compute_cfx(fk) == compute_cf4(fk) << 1


def test_cf6_follows_joint5_sign():
    geometry = create_irb1200_geometry()
    fk = ForwardKinematics(geometry)
    assert compute_cfx(fk.calculate([10, 20, 10, 30, 45, 40])) & 1 == 0
    assert compute_cfx(fk.calculate([10, 20, 10, 30, -45, 40])) & 1 == 1


def test_wrist_flip_changes_only_cf6():
    geometry = create_irb1200_geometry()
    fk = ForwardKinematics(geometry)
    q = [25, 15, -10, 40, 50, -60]
    flipped = [25, 15, -10, 40 + 180, -50, -60 + 180]

    cfx = compute_cfx(fk.calculate(q))
    tcp = fk.tcp_frame
    cfx_flipped = compute_cfx(fk.calculate(flipped))

    assert fk.tcp_frame.is_close(tcp, 1e-9, 1e-9)
    assert cfx ^ cfx_flipped == 1


def test_shoulder_flip_changes_cf1():
    geometry = create_irb1200_geometry()
    solutions = _all_solutions(geometry, [20, 15, 10, 30, 60, -40])
    fk = ForwardKinematics(geometry)
    cf1 = {compute_cf1(fk.calculate(s)) for s in solutions}
    assert cf1 == {0, 1}


def test_arrangement_is_complete():
    geometry = create_irb1200_geometry()
    solutions = _all_solutions(geometry, [20, 15, 10, 30, 60, -40])
    assert len(solutions) == 8

    arranged = arrange_joint_positions(solutions, geometry)
    assert all(slot is not None for slot in arranged)

    fk = ForwardKinematics(geometry)
    for cfx, joint_position in enumerate(arranged):
        assert compute_cfx(fk.calculate(joint_position)) == cfx
    assert {tuple(p) for p in arranged} == {tuple(p) for p in solutions}


def test_arrangement_in_meters():
    geometry = create_geometry_from_dimensions([0.399, 0.0, 0.448, 0.042, 0.451, 0.0, 0.0], 0.082)
    solutions = _all_solutions(geometry, [20, 15, 10, 30, 60, -40], to_meters=1.0)
    arranged = arrange_joint_positions(solutions, geometry, METERS)

    reference = arrange_joint_positions(_all_solutions(create_irb1200_geometry(), [20, 15, 10, 30, 60, -40]),
                                        create_irb1200_geometry())
    for slot, ref in zip(arranged, reference):
        assert slot.same_as(ref, 1e-6)


def test_missing_slots_stay_empty():
    geometry = create_irb1200_geometry()
    arranged = arrange_joint_positions([RobotJointPosition(0, 10, 20, 0, 30, 0)], geometry)
    assert sum(slot is not None for slot in arranged) == 1
    assert arrange_joint_positions([], geometry) == [None] * 8


def test_duplicate_cfx_last_write_wins(caplog):
    geometry = create_irb1200_geometry()
    first = RobotJointPosition(10, 20, 10, 30, 45, 40)
    second = RobotJointPosition(12, 20, 10, 30, 45, 40)

    with caplog.at_level(logging.WARNING, logger="cfx_arranger"):
        arranged = arrange_joint_positions([first, second], geometry)

    cfx = compute_cfx(ForwardKinematics(geometry).calculate(second))
    assert arranged[cfx] == second
    assert any("already holds" in record.getMessage() for record in caplog.records)


def test_legacy_array_uses_sentinel():
    geometry = create_irb1200_geometry()
    joint_position = RobotJointPosition(0, 10, 20, 0, 30, 0)
    arranged = arrange_joint_positions([joint_position], geometry)
    legacy = as_legacy_array(arranged)

    assert legacy.shape == (8, 6)
    for slot, row in zip(arranged, legacy):
        if slot is None:
            assert np.all(row == MISSING_JOINT_VALUE)
        else:
            assert np.allclose(row, joint_position.to_array())
    assert from_legacy_array(legacy) == arranged


def test_legacy_array_shape_checks():
    with pytest.raises(ValueError):
        as_legacy_array([None] * 7)
    with pytest.raises(ValueError):
        from_legacy_array(np.zeros((7, 6)))
