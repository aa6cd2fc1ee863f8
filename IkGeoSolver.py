"""
IK-GEO SOLVER FOR 6-AXIS ROBOTS WITH A SPHERICAL WRIST

End-to-end inverse kinematics for ABB style articulated arms:

1. The target frame (world coordinates, working units) is made safe for the
   closed-form engine: near-vertical approach axes are tilted by 0.01 degrees
   and targets with x ~ 0 are shifted by 0.001 units along world x.
2. The target is rotated 90 degrees about its own x-axis (engine end-effector
   convention), moved into robot coordinates and converted to meters.
3. The analytic engine returns up to 8 joint vectors (radians), converted to
   degrees.
4. The solutions are arranged into the 8 Cfx slots and every occupied slot is
   checked for near singularities.

Usage:
    geometry = create_irb1200_geometry()
    solver = IkGeoSolver(geometry)
    result = solver.compute(target_frame)
    result.joint_positions[cfx]   # RobotJointPosition in degrees, or None
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from cfx_arranger import arrange_joint_positions, as_legacy_array
from exceptions import UnsupportedPlatformError
from frames import Frame, vector_angle
from geometry_types import Quaternion, Vector3d
from ik_spherical_2_parallel import compute_inverse_kinematics, kinematics_from_geometry
from ikgeo_config import (DEG2RAD, DEGENERATE_ROTATION_DEG, DEGENERATE_TRANSLATION, MILLIMETERS, RAD2DEG,
                          TOOL_FRAME_ROTATION_DEG, VERTICAL_ALIGNMENT_TOL_DEG, ZERO_X_TOL, UnitSystem)
from kinematic_model import LinkGeometry, RobotJointPosition
from singularity_classifier import SingularityReport, classify
from subproblems import load_backend

logger = logging.getLogger(__name__)


def is_64bit_platform() -> bool:
    return sys.maxsize > 2 ** 32 and np.dtype(np.intp).itemsize == 8


def check_platform():
    if not is_64bit_platform():
        raise UnsupportedPlatformError(
            "The IkGeo kinematics solver cannot be used: a 64-bit interpreter is required.")


def perturb_target(end_frame: Frame) -> Frame:
    """Nudge targets off the exact degeneracies of the closed-form branch selection."""
    target = end_frame

    z = target.z_axis
    up_angle = vector_angle(z, [0.0, 0.0, 1.0]) * RAD2DEG
    down_angle = vector_angle(z, [0.0, 0.0, -1.0]) * RAD2DEG
    if up_angle < VERTICAL_ALIGNMENT_TOL_DEG or down_angle < VERTICAL_ALIGNMENT_TOL_DEG:
        target = target.rotate(DEGENERATE_ROTATION_DEG * DEG2RAD, target.x_axis)
        logger.debug("Target z-axis is vertical; rotated %.3g deg about its x-axis", DEGENERATE_ROTATION_DEG)

    if abs(target.origin[0]) < ZERO_X_TOL:
        target = target.translate([DEGENERATE_TRANSLATION, 0.0, 0.0])
        logger.debug("Target x is zero; shifted by %.3g along world x", DEGENERATE_TRANSLATION)

    return target


def prepare_target(end_frame: Frame) -> Frame:
    """Perturbed target rotated into the engine's end-effector convention."""
    target = perturb_target(end_frame)
    return target.rotate(TOOL_FRAME_ROTATION_DEG * DEG2RAD, target.x_axis)


@dataclass
class IkResult:
    """
    Outcome of one IK computation.

    joint_positions: 8 slots indexed by Cfx, None where no solution exists
    solutions: engine solutions in the order they were found
    """

    joint_positions: List[Optional[RobotJointPosition]]
    solutions: List[RobotJointPosition]
    singularities: SingularityReport = field(default_factory=SingularityReport.empty)

    @property
    def num_solutions(self) -> int:
        return len(self.solutions)

    def as_array(self) -> np.ndarray:
        """8x6 array in degrees with 9e9 in missing slots."""
        return as_legacy_array(self.joint_positions)


class IkGeoSolver:
    """
    Inverse kinematics solver for spherical-wrist robots with parallel joints 2, 3.

    The geometry is shared read-only; all results are rebuilt on every call
    to ``compute``.
    """

    def __init__(self, geometry: LinkGeometry, units: UnitSystem = MILLIMETERS, backend: str = "numpy"):
        self.geometry = geometry
        self.units = units
        self.backend = load_backend(backend)
        self.kin = kinematics_from_geometry(geometry, units.to_meters)
        self._reset()

    def _reset(self):
        self._result = IkResult([None] * 8, [])

    def solve(self, target_frame: Frame, verbose: bool = False) -> Tuple[List[RobotJointPosition], int]:
        """
        Unordered engine solutions for a target frame in world coordinates.

        Returns:
            (positions in degrees, count); an unreachable target gives ([], 0)
        """
        check_platform()
        return self._solve(target_frame, verbose)

    def _solve(self, target_frame: Frame, verbose: bool) -> Tuple[List[RobotJointPosition], int]:
        engine_frame = prepare_target(target_frame)
        robot_frame = engine_frame.transform(self.geometry.base_frame.inverse().to_matrix())

        position = Vector3d.from_point(robot_frame.origin, self.units.to_meters)
        orientation = Quaternion.from_frame(robot_frame)

        solutions, count = compute_inverse_kinematics(position, orientation, self.kin,
                                                      backend=self.backend, verbose=verbose)
        positions = [v.to_joint_position() for v in solutions]
        if count == 0:
            logger.info("No IK solution for target %r", target_frame)
        return positions, count

    def compute(self, end_frame: Frame, verbose: bool = False) -> IkResult:
        """
        Solve, arrange by Cfx and classify singularities.

        Args:
            end_frame: target TCP frame in world coordinates (working units)
            verbose: log engine branches at INFO level

        Raises:
            UnsupportedPlatformError: not running on a 64-bit interpreter
            WristIntersectionError: the geometry has no common wrist center
        """
        check_platform()
        self._reset()

        positions, count = self._solve(end_frame, verbose)
        arranged = arrange_joint_positions(positions, self.geometry, self.units)
        report = classify(arranged, self.geometry)

        self._result = IkResult(arranged, positions, report)
        if verbose:
            logger.info("%s: %d solution(s), occupied Cfx slots %s", self.geometry.name, count,
                        [i for i, p in enumerate(arranged) if p is not None])
        return self._result

    def joint_position(self, cfx: int) -> Optional[RobotJointPosition]:
        if not 0 <= cfx < 8:
            raise ValueError(f"Cfx must be in [0, 7], got {cfx}")
        return self._result.joint_positions[cfx]

    @property
    def robot_joint_positions(self) -> List[Optional[RobotJointPosition]]:
        return list(self._result.joint_positions)

    @property
    def num_solutions(self) -> int:
        return self._result.num_solutions

    @property
    def wrist_singularities(self) -> List[bool]:
        return list(self._result.singularities.wrist)

    @property
    def elbow_singularities(self) -> List[bool]:
        return list(self._result.singularities.elbow)

    @property
    def shoulder_singularities(self) -> List[bool]:
        return list(self._result.singularities.shoulder)

    @property
    def no_solver_results(self) -> List[bool]:
        return list(self._result.singularities.no_result)


def compute_ik(geometry: LinkGeometry, end_frame: Frame, units: UnitSystem = MILLIMETERS,
               backend: str = "numpy", verbose: bool = False) -> IkResult:
    return IkGeoSolver(geometry, units=units, backend=backend).compute(end_frame, verbose=verbose)


if __name__ == "__main__":
    from kinematic_model import create_irb1200_geometry

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    robot = create_irb1200_geometry()
    target = Frame.from_axes([450.0, 120.0, 550.0], [0.0, 1.0, 0.0], [1.0, 0.0, -0.3])

    print("=" * 70)
    print(f"IK-GEO SOLVER: {robot.name}")
    print("=" * 70)
    print(f"Target: {target}")

    result = compute_ik(robot, target, verbose=True)
    print(f"\nTOTAL SOLUTIONS FOUND: {result.num_solutions}")
    for cfx, joint_position in enumerate(result.joint_positions):
        wrist, elbow, shoulder, missing = result.singularities.flags(cfx)
        if missing:
            print(f"  Cfx {cfx}: -")
            continue
        tags = [name for name, flag in (("wrist", wrist), ("elbow", elbow), ("shoulder", shoulder)) if flag]
        print(f"  Cfx {cfx}: {np.round(joint_position.to_array(), 3)} {' '.join(tags)}")
