"""
Near-Singularity Detection for Arranged IK Solutions

For every occupied Cfx slot the robot is posed, its geometric Jacobian is built
and tested with an SVD. Near-singular slots are then labelled by the alignment
that comes closest to degenerate:

- wrist:    axes 4 and 6 become collinear (joint 5 near 0)
- elbow:    joint 3 and the wrist center line up as seen from joint 2
- shoulder: the wrist reaches the axis of joint 1

Angles are in degrees.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from exceptions import WristIntersectionError
from frames import closest_point_on_line, distance_to_line, line_plane_intersection, vector_angle
from ikgeo_config import JACOBIAN_TOL, RAD2DEG, WRIST_INTERSECTION_TOL
from kinematic_model import ForwardKinematics, LinkGeometry, RobotJointPosition, is_missing

logger = logging.getLogger(__name__)

WRIST = "wrist"
ELBOW = "elbow"
SHOULDER = "shoulder"


def build_jacobian(fk: ForwardKinematics) -> np.ndarray:
    """
    6x6 geometric Jacobian of the posed robot in world coordinates.

    Column i is [z_i x (o_tcp - o_i); z_i]. The linear rows are in the
    working length unit.
    """
    o_tcp = fk.tcp_frame.origin
    J = np.zeros((6, 6))
    for i, frame in enumerate(fk.posed_axis_frames):
        z = frame.z_axis / np.linalg.norm(frame.z_axis)
        J[:3, i] = np.cross(z, o_tcp - frame.origin)
        J[3:, i] = z
    return J


def check_jacobian_singularity(J, tol: float = JACOBIAN_TOL) -> bool:
    """Relative SVD test: near-singular when s_min/s_max <= tol or cond > 1/tol."""
    s = np.linalg.svd(np.asarray(J, dtype=float), compute_uv=False)
    sigma_max = s[0]
    sigma_min = s[-1]
    if sigma_max == 0.0:
        return True

    cond = np.inf if sigma_min == 0.0 else sigma_max / sigma_min
    return bool(sigma_min / sigma_max <= tol or cond > 1.0 / tol)


def wrist_center(fk: ForwardKinematics, tol: float = WRIST_INTERSECTION_TOL) -> np.ndarray:
    """
    Common point of axes 4, 5 and 6 of the posed robot.

    Axis 4 is intersected with the plane through joint 6 spanned by its z and x
    axes. If axis 4 lies in (or almost in) that plane the point of axis 4
    closest to axis 5 is taken instead.

    Raises:
        WristIntersectionError: no candidate lies on all three wrist axes
    """
    f4, f5, f6 = fk.posed_axis_frames[3:6]

    candidates = []
    t = line_plane_intersection(f4.origin, f4.z_axis, f6.origin, f6.y_axis)
    if t is not None:
        candidates.append(f4.origin + t * f4.z_axis)
    candidates.append(closest_point_on_line(f4.origin, f4.z_axis, f5.origin, f5.z_axis))

    for wc in candidates:
        misses = [(joint, distance_to_line(wc, frame.origin, frame.z_axis))
                  for joint, frame in ((4, f4), (5, f5), (6, f6))]
        joint, distance = max(misses, key=lambda miss: miss[1])
        if distance <= tol:
            return wc

    raise WristIntersectionError(
        f"No wrist intersection found: candidate {np.round(wc, 6)} is {distance:.6g} away from axis {joint}")


def alignment_angles(fk: ForwardKinematics) -> Tuple[float, float, float]:
    """(wrist, elbow, shoulder) alignment angles in degrees."""
    axes = fk.posed_axis_frames

    wrist = vector_angle(axes[3].z_axis, axes[5].z_axis) * RAD2DEG
    if wrist > abs(wrist - 180.0):
        wrist = abs(wrist - 180.0)

    wc = wrist_center(fk)
    o2 = axes[1].origin
    elbow = vector_angle(axes[2].origin - o2, wc - o2) * RAD2DEG

    shoulder = vector_angle(axes[0].z_axis, axes[5].origin - axes[0].origin) * RAD2DEG
    return wrist, elbow, shoulder


def singularity_type(wrist: float, elbow: float, shoulder: float) -> str:
    if wrist < elbow and wrist < shoulder:
        return WRIST
    if elbow < wrist and elbow < shoulder:
        return ELBOW
    return SHOULDER


@dataclass(frozen=True)
class SingularityReport:
    """Per-slot flags, each a tuple of 8 booleans indexed by Cfx."""

    wrist: Tuple[bool, ...]
    elbow: Tuple[bool, ...]
    shoulder: Tuple[bool, ...]
    no_result: Tuple[bool, ...]

    @classmethod
    def empty(cls) -> "SingularityReport":
        none = (False,) * 8
        return cls(none, none, none, (True,) * 8)

    def flags(self, slot: int) -> Tuple[bool, bool, bool, bool]:
        """(wrist, elbow, shoulder, no_result) for one Cfx slot."""
        return self.wrist[slot], self.elbow[slot], self.shoulder[slot], self.no_result[slot]

    def kind(self, slot: int) -> Optional[str]:
        if self.wrist[slot]:
            return WRIST
        if self.elbow[slot]:
            return ELBOW
        if self.shoulder[slot]:
            return SHOULDER
        return None


def classify(arranged: Sequence[Optional[RobotJointPosition]], geometry: LinkGeometry,
             tol: float = JACOBIAN_TOL) -> SingularityReport:
    """
    Classify the near singularities of 8 arranged slots.

    Missing slots are flagged in ``no_result`` and not analysed further.
    """
    if len(arranged) != 8:
        raise ValueError(f"Expected 8 arranged slots, got {len(arranged)}")

    wrist = [False] * 8
    elbow = [False] * 8
    shoulder = [False] * 8
    no_result = [False] * 8
    fk = ForwardKinematics(geometry)

    for slot, joint_position in enumerate(arranged):
        if is_missing(joint_position):
            no_result[slot] = True
            continue

        fk.calculate(joint_position)
        if not check_jacobian_singularity(build_jacobian(fk), tol):
            continue

        angles = alignment_angles(fk)
        kind = singularity_type(*angles)
        logger.debug("Cfx %d near %s singularity (wrist %.4f, elbow %.4f, shoulder %.4f deg)",
                     slot, kind, *angles)
        if kind == WRIST:
            wrist[slot] = True
        elif kind == ELBOW:
            elbow[slot] = True
        else:
            shoulder[slot] = True

    return SingularityReport(tuple(wrist), tuple(elbow), tuple(shoulder), tuple(no_result))
