# ==========================================
# IK-GEO SOLVER CONFIGURATION
# ==========================================
# Working units: Millimeters (mm) and degrees at the public surface.
# Engine units:  Meters (m) and radians.

import math
from dataclasses import dataclass

# 1. Angle conversion
# Exactly 180/pi in both directions.
RAD2DEG = 180.0 / math.pi
DEG2RAD = math.pi / 180.0

# 2. Missing configuration sentinel
# Only used when arranged results are exported as a plain 8x6 array.
MISSING_JOINT_VALUE = 9e9

# 3. Degenerate target handling
# Targets whose z-axis is within this angle of world +Z/-Z are rotated
# slightly about their own x-axis before solving.
VERTICAL_ALIGNMENT_TOL_DEG = 0.01
DEGENERATE_ROTATION_DEG = 0.01

# Targets with |x| below this value (working units) are shifted along world x.
ZERO_X_TOL = 0.001
DEGENERATE_TRANSLATION = 0.001

# 4. Engine tool convention
# The engine's end-effector frame is the TCP frame rotated about its own x-axis.
TOOL_FRAME_ROTATION_DEG = 90.0

# 5. Solution verification (engine units)
FK_POSITION_TOL = 1e-6   # meters
FK_ROTATION_TOL = 1e-6   # Frobenius norm of the rotation difference
DUPLICATE_ANGLE_TOL = 1e-9  # radians

# 6. Cfx arrangement
# Outward offset of the shoulder point along -z2, in millimeters.
SHOULDER_OFFSET_MM = 100.0

# 7. Singularity analysis
JACOBIAN_TOL = 2e-4
WRIST_INTERSECTION_TOL = 1e-3  # working units


@dataclass(frozen=True)
class UnitSystem:
    """Length unit of the host environment and its factor to meters."""

    name: str
    to_meters: float

    @property
    def from_meters(self) -> float:
        return 1.0 / self.to_meters

    def scale_mm(self, value_mm: float) -> float:
        """Express a length given in millimeters in this unit system."""
        return value_mm * 0.001 / self.to_meters


MILLIMETERS = UnitSystem("mm", 0.001)
CENTIMETERS = UnitSystem("cm", 0.01)
METERS = UnitSystem("m", 1.0)

_UNIT_SYSTEMS = {u.name: u for u in (MILLIMETERS, CENTIMETERS, METERS)}


def unit_system(name: str) -> UnitSystem:
    try:
        return _UNIT_SYSTEMS[name]
    except KeyError:
        raise ValueError(f"Unknown unit system '{name}', expected one of {sorted(_UNIT_SYSTEMS)}") from None
