"""
Solver-native value types.

These mirror the plain structs the closed-form engine works with: positions in
meters, orientations as scalar-last quaternions and joint vectors in radians.
Host frames (working units, degrees) are converted here and nowhere else.

Be careful with quaternion naming conventions: the engine stores (x, y, z, w),
which is also scipy's ``as_quat`` order.
"""

from dataclasses import dataclass
from typing import List

import numpy as np
from scipy.spatial.transform import Rotation

from frames import Frame
from ikgeo_config import RAD2DEG
from kinematic_model import RobotJointPosition


@dataclass(frozen=True)
class Vector3d:
    x: float
    y: float
    z: float

    @classmethod
    def from_point(cls, point, scale: float = 1.0) -> "Vector3d":
        """Build from a host point, multiplying by ``scale`` (e.g. mm -> m)."""
        p = np.asarray(point, dtype=float) * scale
        return cls(float(p[0]), float(p[1]), float(p[2]))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])

    def to_point(self, scale: float = 1.0) -> np.ndarray:
        return self.to_array() * scale


@dataclass(frozen=True)
class Quaternion:
    x: float
    y: float
    z: float
    w: float

    @classmethod
    def from_rotation_matrix(cls, R) -> "Quaternion":
        x, y, z, w = Rotation.from_matrix(np.asarray(R, dtype=float)).as_quat()
        return cls(float(x), float(y), float(z), float(w))

    @classmethod
    def from_frame(cls, frame: Frame, reference: Frame = None) -> "Quaternion":
        """Rotation that maps ``reference`` (world XY by default) onto ``frame``."""
        if reference is None:
            reference = Frame.world_xy()
        return cls.from_rotation_matrix(frame.rotation @ reference.rotation.T)

    def to_rotation_matrix(self) -> np.ndarray:
        return Rotation.from_quat([self.x, self.y, self.z, self.w]).as_matrix()

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z, self.w])


@dataclass(frozen=True)
class Vector6d:
    """One joint-angle vector as returned by the engine (radians)."""

    x1: float
    x2: float
    x3: float
    x4: float
    x5: float
    x6: float

    @classmethod
    def from_array(cls, q) -> "Vector6d":
        q = np.asarray(q, dtype=float).reshape(6)
        return cls(*(float(v) for v in q))

    def to_array(self) -> np.ndarray:
        return np.array([self.x1, self.x2, self.x3, self.x4, self.x5, self.x6])

    def to_list(self) -> List[float]:
        return [self.x1, self.x2, self.x3, self.x4, self.x5, self.x6]

    def to_joint_position(self):
        """Convert to a RobotJointPosition in degrees."""
        return RobotJointPosition(self.to_array() * RAD2DEG)
