"""
Inverse Kinematics Solver for 6R Robots with a Spherical Wrist and Parallel Joints 2, 3

Kinematic family: spherical wrist (axes 4, 5, 6 intersect) + axes 2, 3 parallel.
The robot is written in product-of-exponentials form:

    R_06 = rot(h1, q1) rot(h2, q2) ... rot(h6, q6)
    p_0T = P0 + R_01 P1 + R_02 P2 + ... + R_06 P6

with H = [h1..h6] (3x6 unit axes) and P = [P0..P6] (3x7 offsets) given in the
home configuration. P4 = P5 = 0 because joints 4-6 share the wrist center.

Strategy:
1. Solve q1 from subproblem 4: the wrist center, seen from joint 2, has a fixed
   component along h2 (rotations about h2 and h3 cannot change it).
2. Solve q3 from subproblem 3: the distance from joint 2 to the wrist center
   fixes the elbow angle (elbow up / elbow down).
3. Solve q2 from subproblem 1.
4. With R_36 known, solve q5 from subproblem 4 (wrist flip), then q4 and q6
   from subproblem 1.

Typical solution count: 8 (2 shoulder x 2 elbow x 2 wrist branches).

Units: meters and radians. Conversion from working units happens in
``kinematics_from_geometry`` and in the solver facade.
"""

import logging
import math
from typing import List, Tuple

import numpy as np

from frames import rot
from geometry_types import Quaternion, Vector3d, Vector6d
from ikgeo_config import (DEG2RAD, DUPLICATE_ANGLE_TOL, FK_POSITION_TOL, FK_ROTATION_TOL,
                          TOOL_FRAME_ROTATION_DEG)
from kinematic_model import LinkGeometry
from subproblems import SubproblemBackend, normalize_angle, load_backend

logger = logging.getLogger(__name__)

# Engine end-effector convention relative to the TCP frame.
R_TOOL_CONVENTION = rot([1.0, 0.0, 0.0], TOOL_FRAME_ROTATION_DEG * DEG2RAD)


def lines_intersection(points, directions):
    """
    Least-squares intersection point of several 3D lines.

    Returns (point, residual) where residual is the largest distance from the
    point to any of the lines.
    """
    A = np.zeros((3, 3))
    b = np.zeros(3)
    for p, d in zip(points, directions):
        d = np.asarray(d, dtype=float) / np.linalg.norm(d)
        M = np.eye(3) - np.outer(d, d)
        A += M
        b += M @ np.asarray(p, dtype=float)
    point = np.linalg.lstsq(A, b, rcond=None)[0]

    residual = 0.0
    for p, d in zip(points, directions):
        d = np.asarray(d, dtype=float) / np.linalg.norm(d)
        v = point - np.asarray(p, dtype=float)
        residual = max(residual, float(np.linalg.norm(v - np.dot(v, d) * d)))
    return point, residual


def kinematics_from_geometry(geometry: LinkGeometry, to_meters: float = 0.001) -> dict:
    """
    Convert a LinkGeometry (working units) into the engine's POE description.

    Returns a dict with:
        'H': (3, 6) joint axes
        'P': (3, 7) offsets in meters
        'R6T': (3, 3) home orientation of the engine end-effector frame
    All quantities are in robot base coordinates.
    """
    frames = geometry.axis_frames
    H = np.column_stack([f.z_axis for f in frames])
    o = [f.origin for f in frames]

    wrist_center, residual = lines_intersection(o[3:6], [H[:, 3], H[:, 4], H[:, 5]])
    if residual > 1e-6 / to_meters:
        logger.warning("%s: axes 4, 5, 6 miss a common wrist center by %.3g units; "
                       "the closed-form solution will not be exact", geometry.name, residual)

    if np.linalg.norm(np.cross(H[:, 1], H[:, 2])) > 1e-9:
        logger.warning("%s: axes 2 and 3 are not parallel", geometry.name)

    tcp = geometry.tcp_frame
    P = np.column_stack([
        o[0],
        o[1] - o[0],
        o[2] - o[1],
        wrist_center - o[2],
        np.zeros(3),
        np.zeros(3),
        tcp.origin - wrist_center,
    ]) * to_meters

    return {
        'H': H,
        'P': P,
        'R6T': tcp.rotation @ R_TOOL_CONVENTION,
    }


def forward_kinematics(q, kin) -> Tuple[np.ndarray, np.ndarray]:
    """Forward kinematics: returns (R_0T, p_0T) for joint vector q (radians)."""
    H = kin['H']
    P = kin['P']
    R = np.eye(3)
    p = P[:, 0].copy()
    for i in range(6):
        R = R @ rot(H[:, i], q[i])
        p = p + R @ P[:, i + 1]
    return R @ kin['R6T'], p


def _is_duplicate(q, solutions, tol=DUPLICATE_ANGLE_TOL) -> bool:
    for existing in solutions:
        if all(abs(normalize_angle(a - b)) <= tol for a, b in zip(q, existing)):
            return True
    return False


def solve_ik_spherical_2_parallel(R_0T, p_0T, kin, backend: SubproblemBackend = None,
                                  verbose: bool = False) -> List[np.ndarray]:
    """
    Solve inverse kinematics for a spherical-wrist robot with parallel joints 2, 3.

    Args:
        R_0T: (3,3) desired end-effector rotation (engine convention)
        p_0T: (3,) desired end-effector position in meters
        kin: dict from kinematics_from_geometry
        backend: subproblem backend (numpy by default)
        verbose: log each branch at INFO level

    Returns:
        List of verified solution arrays [q1, q2, q3, q4, q5, q6] in radians
    """
    trace = logger.info if verbose else logger.debug
    sp = backend if backend is not None else load_backend("numpy")

    H = kin['H']
    P = kin['P']
    R_0T = np.asarray(R_0T, dtype=float)
    p_0T = np.asarray(p_0T, dtype=float).flatten()
    R_06 = R_0T @ kin['R6T'].T

    candidates = []

    # Step 1: q1 from subproblem 4
    p_sp4 = p_0T - R_06 @ P[:, 6] - P[:, 0]
    d_sp4 = float(H[:, 1] @ (P[:, 1] + P[:, 2] + P[:, 3]))
    t1_arr, t1_ls = sp.sp4(H[:, 1], p_sp4, -H[:, 0], d_sp4)
    trace("q1 candidates: %s%s", np.degrees(t1_arr), " (least squares)" if t1_ls else "")

    for q1 in t1_arr:
        # Step 2: q3 from subproblem 3
        v = rot(-H[:, 0], q1) @ (-p_0T + R_06 @ P[:, 6] + P[:, 0]) + P[:, 1]
        d_sp3 = float(np.linalg.norm(v))
        t3_arr, t3_ls = sp.sp3(-P[:, 3], P[:, 2], H[:, 2], d_sp3)
        trace("  q1=%.4f deg -> q3 candidates: %s%s", math.degrees(q1), np.degrees(t3_arr),
              " (least squares)" if t3_ls else "")

        for q3 in t3_arr:
            # Step 3: q2 from subproblem 1
            p1_q2 = -P[:, 2] - rot(H[:, 2], q3) @ P[:, 3]
            q2_arr, _ = sp.sp1(p1_q2, v, H[:, 1])
            q2 = q2_arr[0]

            R_36 = rot(-H[:, 2], q3) @ rot(-H[:, 1], q2) @ rot(-H[:, 0], q1) @ R_06

            # Step 4: q5 from subproblem 4
            d_sp4_q5 = float(H[:, 3] @ R_36 @ H[:, 5])
            t5_arr, t5_ls = sp.sp4(H[:, 3], H[:, 5], H[:, 4], d_sp4_q5)
            if t5_ls:
                trace("    q3=%.4f deg -> q5 least squares %s", math.degrees(q3), np.degrees(t5_arr))

            for q5 in t5_arr:
                # Step 5: q4 and q6 from subproblem 1
                q4_arr, _ = sp.sp1(rot(H[:, 4], q5) @ H[:, 5], R_36 @ H[:, 5], H[:, 3])
                q6_arr, _ = sp.sp1(rot(-H[:, 4], q5) @ H[:, 3], R_36.T @ H[:, 3], -H[:, 5])
                candidates.append(np.array([q1, q2, q3, q4_arr[0], q5, q6_arr[0]]))

    # Verify solutions using FK; least-squares branches survive only when exact (tangent cases)
    solutions = []
    for q in candidates:
        R_check, p_check = forward_kinematics(q, kin)
        pos_error = np.linalg.norm(p_check - p_0T)
        rot_error = np.linalg.norm(R_check - R_0T, 'fro')
        if pos_error > FK_POSITION_TOL or rot_error > FK_ROTATION_TOL:
            trace("  rejected %s: pos_err=%.2e, rot_err=%.2e", np.degrees(q), pos_error, rot_error)
            continue
        if _is_duplicate(q, solutions):
            trace("  duplicate %s", np.degrees(q))
            continue
        solutions.append(q)

    trace("Found %d verified solution(s) out of %d candidates", len(solutions), len(candidates))
    return solutions


def compute_inverse_kinematics(position: Vector3d, orientation: Quaternion, kin,
                               backend: SubproblemBackend = None,
                               verbose: bool = False) -> Tuple[List[Vector6d], int]:
    """
    Engine boundary: native position/orientation in, joint vectors (radians) out.

    Returns (solutions, count). An unreachable pose gives ([], 0).
    """
    solutions = solve_ik_spherical_2_parallel(orientation.to_rotation_matrix(), position.to_array(),
                                              kin, backend=backend, verbose=verbose)
    result = [Vector6d.from_array(q) for q in solutions]
    return result, len(result)
