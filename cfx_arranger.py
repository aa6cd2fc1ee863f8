"""
Cfx Arrangement of IK Solutions

ABB controllers select one of up to eight arm configurations through the Cfx
value of a robtarget's confdata. Cfx is a 3-bit mask:

    Cfx = Cf1 << 2 | Cf4 << 1 | Cf6

Cf1 (shoulder side): on the horizontal plane, the line from the robot base to
    the TCP; Cf1 = 1 when the shoulder lies on its left side.
Cf4 (elbow side): in the plane of the arm, the line from joint 2 to joint 3;
    Cf4 = 1 when the TCP lies on its left side. Inverted when Cf1 = 1 because
    the arm plane flips with the shoulder.
Cf6 (wrist flip): Cf6 = 1 when joint 5 is negative.

Arranged results are lists of 8 slots indexed by Cfx. Slots without a solution
hold None.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from ikgeo_config import MILLIMETERS, MISSING_JOINT_VALUE, SHOULDER_OFFSET_MM, UnitSystem
from kinematic_model import ForwardKinematics, LinkGeometry, RobotJointPosition, is_missing

logger = logging.getLogger(__name__)

NUM_CONFIGURATIONS = 8


def _cross_z(a, b) -> float:
    return float(a[0] * b[1] - a[1] * b[0])


def compute_cf1(fk: ForwardKinematics, units: UnitSystem = MILLIMETERS) -> int:
    axes = fk.posed_axis_frames
    base = axes[0].origin[:2]
    tcp = fk.tcp_frame.origin[:2]
    shoulder = axes[1].origin - axes[1].z_axis * units.scale_mm(SHOULDER_OFFSET_MM)

    base_to_tcp = tcp - base
    base_to_shoulder = shoulder[:2] - base
    return 1 if _cross_z(base_to_tcp, base_to_shoulder) > 0 else 0


def compute_cf4(fk: ForwardKinematics) -> int:
    """Elbow bit before the Cf1 inversion, evaluated in the posed joint-2 frame."""
    joint2 = fk.posed_axis_frames[1]
    shoulder = joint2.to_local(joint2.origin)[:2]
    elbow = joint2.to_local(fk.posed_axis_frames[2].origin)[:2]
    tcp = joint2.to_local(fk.tcp_frame.origin)[:2]
    return 1 if _cross_z(elbow - shoulder, tcp - shoulder) < 0 else 0


def compute_cfx(fk: ForwardKinematics, units: UnitSystem = MILLIMETERS) -> int:
    """
    Cfx of the joint position currently posed by ``fk``.

    Args:
        fk: ForwardKinematics after ``calculate``
        units: working unit system of the geometry

    Returns:
        Integer in [0, 7]
    """
    cf1 = compute_cf1(fk, units)
    cf4 = compute_cf4(fk)
    if cf1 == 1:
        cf4 = 1 - cf4
    cf6 = 1 if fk.joint_position[4] < 0 else 0
    return cf1 << 2 | cf4 << 1 | cf6


def arrange_joint_positions(joint_positions: Sequence[RobotJointPosition], geometry: LinkGeometry,
                            units: UnitSystem = MILLIMETERS) -> List[Optional[RobotJointPosition]]:
    """
    Sort joint positions into their Cfx slots.

    When two positions share a Cfx the later one is kept and a warning is logged.
    """
    arranged: List[Optional[RobotJointPosition]] = [None] * NUM_CONFIGURATIONS
    fk = ForwardKinematics(geometry)

    for joint_position in joint_positions:
        fk.calculate(joint_position)
        cfx = compute_cfx(fk, units)
        if arranged[cfx] is not None:
            logger.warning("Cfx %d already holds %r; replacing it with %r",
                           cfx, arranged[cfx], fk.joint_position)
        arranged[cfx] = fk.joint_position
        logger.debug("Cfx %d <- %r", cfx, fk.joint_position)

    return arranged


def as_legacy_array(arranged: Sequence[Optional[RobotJointPosition]]) -> np.ndarray:
    """8x6 array of arranged positions with 9e9 in every missing slot."""
    if len(arranged) != NUM_CONFIGURATIONS:
        raise ValueError(f"Expected {NUM_CONFIGURATIONS} arranged slots, got {len(arranged)}")
    out = np.full((NUM_CONFIGURATIONS, 6), MISSING_JOINT_VALUE)
    for cfx, joint_position in enumerate(arranged):
        if joint_position is not None:
            out[cfx] = joint_position.to_array()
    return out


def from_legacy_array(array) -> List[Optional[RobotJointPosition]]:
    """Inverse of ``as_legacy_array``: rows holding the sentinel become None."""
    array = np.asarray(array, dtype=float)
    if array.shape != (NUM_CONFIGURATIONS, 6):
        raise ValueError(f"Expected an array of shape ({NUM_CONFIGURATIONS}, 6), got {array.shape}")
    return [None if is_missing(row) else RobotJointPosition(row) for row in array]
