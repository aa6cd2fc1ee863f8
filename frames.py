"""
Rigid Frames and Small Geometry Helpers

A Frame plays the role of a CAD plane: an origin plus three orthonormal axes.
For robot joint frames the z-axis is the rotation axis of the joint.

All lengths are in the caller's working unit (millimeters by default).
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.spatial.transform import Rotation


def rot(k, theta):
    """Rodrigues' rotation: rotate around unit vector k by angle theta."""
    k = np.asarray(k, dtype=float).flatten()
    K = np.array([
        [0, -k[2], k[1]],
        [k[2], 0, -k[0]],
        [-k[1], k[0], 0]
    ])
    return np.eye(3) + np.sin(theta) * K + (1 - np.cos(theta)) * (K @ K)


def unitize(v):
    v = np.asarray(v, dtype=float)
    n = np.linalg.norm(v)
    if n < 1e-15:
        raise ValueError("Cannot unitize a zero-length vector")
    return v / n


def vector_angle(a, b):
    """Angle between two vectors in radians, in [0, pi]."""
    a = unitize(a)
    b = unitize(b)
    return float(np.arccos(np.clip(np.dot(a, b), -1.0, 1.0)))


def line_plane_intersection(point, direction, plane_origin, plane_normal, tol=1e-12) -> Optional[float]:
    """
    Intersect the infinite line point + t*direction with a plane.

    Returns the line parameter t, or None when the line is parallel to the plane.
    """
    direction = np.asarray(direction, dtype=float)
    plane_normal = np.asarray(plane_normal, dtype=float)
    denom = float(np.dot(direction, plane_normal))
    if abs(denom) <= tol * np.linalg.norm(direction) * np.linalg.norm(plane_normal):
        return None
    return float(np.dot(np.asarray(plane_origin) - np.asarray(point), plane_normal) / denom)


def distance_to_line(point, line_point, line_direction):
    d = unitize(line_direction)
    v = np.asarray(point, dtype=float) - np.asarray(line_point, dtype=float)
    return float(np.linalg.norm(v - np.dot(v, d) * d))


def closest_point_on_line(line_point, line_direction, other_point, other_direction):
    """
    Point on the first line closest to the second line.

    For parallel lines the foot of other_point on the first line is returned.
    """
    p1 = np.asarray(line_point, dtype=float)
    d1 = unitize(line_direction)
    p2 = np.asarray(other_point, dtype=float)
    d2 = unitize(other_direction)
    w = p1 - p2
    b = np.dot(d1, d2)
    denom = 1.0 - b * b
    if denom < 1e-12:
        t = -np.dot(w, d1)
    else:
        t = (b * np.dot(d2, w) - np.dot(d1, w)) / denom
    return p1 + t * d1


@dataclass(frozen=True, eq=False)
class Frame:
    """
    Immutable rigid frame.

    ``rotation`` holds the x, y and z axes as its columns, so
    ``rotation @ local + origin`` maps local coordinates to the parent frame.
    """

    origin: np.ndarray
    rotation: np.ndarray

    def __post_init__(self):
        origin = np.array(self.origin, dtype=float).reshape(3)
        rotation = np.array(self.rotation, dtype=float).reshape(3, 3)
        origin.setflags(write=False)
        rotation.setflags(write=False)
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "rotation", rotation)

    # Construction ----------------------------------------------------------

    @classmethod
    def world_xy(cls) -> "Frame":
        return cls(np.zeros(3), np.eye(3))

    @classmethod
    def from_axes(cls, origin, x_axis, y_axis) -> "Frame":
        """Frame from an origin and two in-plane directions (y is orthogonalized)."""
        x = unitize(x_axis)
        y = np.asarray(y_axis, dtype=float)
        y = unitize(y - np.dot(y, x) * x)
        z = np.cross(x, y)
        return cls(origin, np.column_stack((x, y, z)))

    @classmethod
    def from_matrix(cls, T) -> "Frame":
        T = np.asarray(T, dtype=float)
        return cls(T[:3, 3], T[:3, :3])

    # Axes ------------------------------------------------------------------

    @property
    def x_axis(self):
        return self.rotation[:, 0]

    @property
    def y_axis(self):
        return self.rotation[:, 1]

    @property
    def z_axis(self):
        return self.rotation[:, 2]

    @property
    def orientation(self) -> Rotation:
        """Rotation of the frame as a scipy Rotation (``as_quat`` gives x, y, z, w)."""
        return Rotation.from_matrix(self.rotation)

    # Transformations -------------------------------------------------------

    def to_matrix(self):
        T = np.eye(4)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.origin
        return T

    def inverse(self) -> "Frame":
        R_T = self.rotation.T
        return Frame(-R_T @ self.origin, R_T)

    def transform(self, T) -> "Frame":
        """Apply a 4x4 transform expressed in the parent frame."""
        return Frame.from_matrix(np.asarray(T, dtype=float) @ self.to_matrix())

    def rotate(self, angle, axis, center=None) -> "Frame":
        """Rotate about an axis through ``center`` (defaults to this origin)."""
        center = self.origin if center is None else np.asarray(center, dtype=float)
        R = rot(unitize(axis), angle)
        return Frame(R @ (self.origin - center) + center, R @ self.rotation)

    def translate(self, vector) -> "Frame":
        return Frame(self.origin + np.asarray(vector, dtype=float), self.rotation)

    def to_local(self, point):
        """Coordinates of a parent-frame point in this frame."""
        return self.rotation.T @ (np.asarray(point, dtype=float) - self.origin)

    def to_parent(self, point):
        return self.rotation @ np.asarray(point, dtype=float) + self.origin

    def is_orthonormal(self, tol=1e-9) -> bool:
        R = self.rotation
        return (np.allclose(R.T @ R, np.eye(3), atol=tol)
                and abs(np.linalg.det(R) - 1.0) < tol)

    def is_close(self, other: "Frame", position_tol=1e-6, rotation_tol=1e-6) -> bool:
        pos_error = np.linalg.norm(self.origin - other.origin)
        rot_error = np.linalg.norm(self.rotation - other.rotation, 'fro')
        return pos_error <= position_tol and rot_error <= rotation_tol

    def __repr__(self):
        o = ", ".join(f"{v:.3f}" for v in self.origin)
        z = ", ".join(f"{v:.3f}" for v in self.z_axis)
        return f"Frame(origin=[{o}], z=[{z}])"
