"""
Error types raised by the IK-Geo solver.

Unreachable targets are not errors: they are reported as zero solutions.
"""


class IkGeoError(Exception):
    """Base class for solver errors."""


class UnsupportedPlatformError(IkGeoError, RuntimeError):
    """The interpreter cannot provide the 64-bit numerics the solver needs."""


class NativeLibraryError(IkGeoError, ImportError):
    """A requested external numeric component is missing or failed to load."""

    def __init__(self, message, expected=None):
        super().__init__(message)
        self.expected = expected


class WristIntersectionError(IkGeoError):
    """Axes 4, 5 and 6 of a posed robot do not meet in a wrist center."""
