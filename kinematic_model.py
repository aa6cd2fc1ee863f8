"""
KINEMATIC MODEL FOR 6-AXIS ARTICULATED ROBOTS

The robot is described by its joint (axis) frames in the home configuration,
all expressed in robot base coordinates. The z-axis of every axis frame is the
rotation axis of that joint, and positive joint angles follow the right-hand
rule about it. A base frame places the robot in the world and a mounting frame
(the flange, tool0) carries an optional tool frame (TCP offset).

Default robot layout (ABB style, millimeters):

Joint  |  origin                          |  axis
-------|----------------------------------|------
1      |  (0, 0, 0)                       |  +Z
2      |  (d1, 0, d0)                     |  +Y
3      |  (d1, 0, d0 + d2)                |  +Y
4      |  (d1, 0, d0 + d2 + d3)           |  +X
5      |  (d1 + d4, 0, d0 + d2 + d3)      |  +Y
6      |  (X5 + d6, 0, Z5 + d5)           |  +X

The seven numbers d0..d6 are the robot dimensions the closed-form engine was
historically fed with (see ``robot_dimensions``).
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from frames import Frame, rot
from ikgeo_config import DEG2RAD, MISSING_JOINT_VALUE, RAD2DEG


class RobotJointPosition:
    """
    Six joint angles in degrees.

    The legacy "missing" sentinel (9e9) is rejected on construction, so a
    RobotJointPosition always holds real angles. Missing configurations are
    represented by ``None`` instead.
    """

    __slots__ = ("_values",)

    def __init__(self, *values):
        if len(values) == 1:
            values = values[0]
        arr = np.asarray(values, dtype=float).reshape(-1)
        if arr.shape != (6,):
            raise ValueError(f"RobotJointPosition needs 6 values, got {arr.shape[0]}")
        if not np.all(np.isfinite(arr)):
            raise ValueError(f"Joint values must be finite, got {arr}")
        if np.any(np.abs(arr) >= MISSING_JOINT_VALUE):
            raise ValueError("Joint values at or beyond the missing sentinel are not valid angles")
        self._values = tuple(float(v) for v in arr)

    @classmethod
    def from_radians(cls, q) -> "RobotJointPosition":
        return cls(np.asarray(q, dtype=float) * RAD2DEG)

    def to_array(self) -> np.ndarray:
        return np.array(self._values)

    def to_radians(self) -> np.ndarray:
        return self.to_array() * DEG2RAD

    def same_as(self, other: "RobotJointPosition", tol: float = 1e-9) -> bool:
        if other is None:
            return False
        return bool(np.all(np.abs(self.to_array() - other.to_array()) <= tol))

    def __getitem__(self, index):
        return self._values[index]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return 6

    def __eq__(self, other):
        if not isinstance(other, RobotJointPosition):
            return NotImplemented
        return self._values == other._values

    def __hash__(self):
        return hash(self._values)

    def __repr__(self):
        return "RobotJointPosition(" + ", ".join(f"{v:.3f}" for v in self._values) + ")"


def is_missing(joint_position) -> bool:
    """True for an empty configuration slot: None or a row holding the legacy sentinel."""
    if joint_position is None:
        return True
    if isinstance(joint_position, RobotJointPosition):
        return False
    return bool(np.any(np.abs(np.asarray(joint_position, dtype=float)) >= MISSING_JOINT_VALUE))


@dataclass(frozen=True, eq=False)
class LinkGeometry:
    """
    Immutable link geometry of a 6-axis robot.

    Args:
        axis_frames: 6 joint frames (home configuration, robot coordinates)
        base_frame: robot base pose in world coordinates
        mounting_frame: flange frame at home (robot coordinates)
        tool_frame: TCP offset relative to the mounting frame
    """

    axis_frames: Tuple[Frame, ...]
    base_frame: Frame = field(default_factory=Frame.world_xy)
    mounting_frame: Frame = field(default_factory=Frame.world_xy)
    tool_frame: Frame = field(default_factory=Frame.world_xy)
    name: str = "robot"

    def __post_init__(self):
        frames = tuple(self.axis_frames)
        if len(frames) != 6:
            raise ValueError(f"LinkGeometry needs exactly 6 axis frames, got {len(frames)}")
        for i, frame in enumerate(frames + (self.base_frame, self.mounting_frame, self.tool_frame)):
            if not isinstance(frame, Frame):
                raise ValueError(f"Frame {i} is not a Frame instance: {frame!r}")
            if not frame.is_orthonormal():
                raise ValueError(f"Frame {i} is not a right-handed orthonormal frame")
        object.__setattr__(self, "axis_frames", frames)

    @property
    def tcp_frame(self) -> Frame:
        """Home TCP frame in robot coordinates."""
        return Frame.from_matrix(self.mounting_frame.to_matrix() @ self.tool_frame.to_matrix())

    @property
    def world_axis_frames(self) -> List[Frame]:
        B = self.base_frame.to_matrix()
        return [f.transform(B) for f in self.axis_frames]

    @property
    def world_tcp_frame(self) -> Frame:
        return self.tcp_frame.transform(self.base_frame.to_matrix())

    def with_tool(self, tool_frame: Frame) -> "LinkGeometry":
        return LinkGeometry(self.axis_frames, self.base_frame, self.mounting_frame, tool_frame, self.name)

    def with_base(self, base_frame: Frame) -> "LinkGeometry":
        return LinkGeometry(self.axis_frames, base_frame, self.mounting_frame, self.tool_frame, self.name)


def _screw(axis_frame: Frame, theta: float) -> np.ndarray:
    """4x4 rotation by theta about the z-axis line of a home axis frame."""
    R = rot(axis_frame.z_axis, theta)
    S = np.eye(4)
    S[:3, :3] = R
    S[:3, 3] = axis_frame.origin - R @ axis_frame.origin
    return S


class ForwardKinematics:
    """
    Poses the axis frames and the TCP frame of a LinkGeometry.

    After ``calculate`` the posed frames are available in world coordinates
    through ``posed_axis_frames`` and ``tcp_frame``.
    """

    def __init__(self, geometry: LinkGeometry):
        self.geometry = geometry
        self.joint_position: Optional[RobotJointPosition] = None
        self.posed_axis_frames: List[Frame] = []
        self.tcp_frame: Optional[Frame] = None

    def calculate(self, joint_position) -> "ForwardKinematics":
        if joint_position is None:
            raise ValueError("Cannot pose a missing joint position")
        if not isinstance(joint_position, RobotJointPosition):
            joint_position = RobotJointPosition(joint_position)

        q = joint_position.to_radians()
        B = self.geometry.base_frame.to_matrix()
        G = np.eye(4)
        posed = []
        for axis_frame, theta in zip(self.geometry.axis_frames, q):
            G = G @ _screw(axis_frame, theta)
            posed.append(axis_frame.transform(B @ G))

        self.joint_position = joint_position
        self.posed_axis_frames = posed
        self.tcp_frame = self.geometry.tcp_frame.transform(B @ G)
        return self


def robot_dimensions(geometry: LinkGeometry, to_meters: float = 0.001) -> np.ndarray:
    """
    The seven link dimensions derived from the axis frame origins.

    [Z2-Z1, X2-X1, Z3-Z2, Z4-Z3, X5-X3, Z6-Z5, X6-X5], scaled by ``to_meters``.
    """
    o = [f.origin for f in geometry.axis_frames]
    dims = np.array([
        o[1][2] - o[0][2],
        o[1][0] - o[0][0],
        o[2][2] - o[1][2],
        o[3][2] - o[2][2],
        o[4][0] - o[2][0],
        o[5][2] - o[4][2],
        o[5][0] - o[4][0],
    ])
    return dims * to_meters


def create_geometry_from_dimensions(dimensions: Sequence[float], flange_length: float,
                                    base_frame: Frame = None, tool_frame: Frame = None,
                                    name: str = "robot") -> LinkGeometry:
    """
    Build an ABB-style geometry from the seven link dimensions (working units).

    The mounting frame sits ``flange_length`` beyond joint 6 along its axis,
    with z along +X and x pointing down (tool0 convention).
    """
    d = [float(v) for v in dimensions]
    if len(d) != 7:
        raise ValueError(f"Expected 7 robot dimensions, got {len(d)}")

    o1 = np.array([0.0, 0.0, 0.0])
    o2 = o1 + [d[1], 0.0, d[0]]
    o3 = o2 + [0.0, 0.0, d[2]]
    o4 = o3 + [0.0, 0.0, d[3]]
    o5 = np.array([o3[0] + d[4], 0.0, o4[2]])
    o6 = o5 + [d[6], 0.0, d[5]]

    ex, ey, ez = np.eye(3)
    axis_frames = (
        Frame.from_axes(o1, ex, ey),   # +Z
        Frame.from_axes(o2, ez, ex),   # +Y
        Frame.from_axes(o3, ez, ex),   # +Y
        Frame.from_axes(o4, ey, ez),   # +X
        Frame.from_axes(o5, ez, ex),   # +Y
        Frame.from_axes(o6, ey, ez),   # +X
    )
    mounting_frame = Frame.from_axes(o6 + [flange_length, 0.0, 0.0], -ez, ey)

    return LinkGeometry(
        axis_frames=axis_frames,
        base_frame=base_frame if base_frame is not None else Frame.world_xy(),
        mounting_frame=mounting_frame,
        tool_frame=tool_frame if tool_frame is not None else Frame.world_xy(),
        name=name,
    )


def create_irb1200_geometry(**kwargs) -> LinkGeometry:
    """ABB IRB 1200-5/0.9 (millimeters)."""
    return create_geometry_from_dimensions(
        [399.0, 0.0, 448.0, 42.0, 451.0, 0.0, 0.0], 82.0, name="IRB1200-5/0.9", **kwargs)


def create_irb6700_geometry(**kwargs) -> LinkGeometry:
    """ABB IRB 6700-200/2.60 (millimeters)."""
    return create_geometry_from_dimensions(
        [780.0, 320.0, 1075.0, 200.0, 1142.5, 0.0, 0.0], 200.0, name="IRB6700-200/2.60", **kwargs)
