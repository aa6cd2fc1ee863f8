"""
Canonical Geometric Subproblems for Closed-Form IK

Each subproblem finds rotation angles theta about a unit axis k:

    SP1:  rot(k, theta) @ p1 = p2
    SP3:  || rot(k, theta) @ p1 - p2 || = d
    SP4:  h^T @ rot(k, theta) @ p = d

Every solver returns a tuple (thetas, is_ls):
- thetas: list of angles in [-pi, pi]
- is_ls: True when no exact solution exists and the least-squares
  angle is returned instead

Two backends are available:
- "numpy": the solvers in this module
- "ik-geo": the compiled subproblem library shipped as the
  ``linearSubproblemSltns`` distribution (optional dependency)
"""

import importlib
import logging
import math
from typing import Callable, List, NamedTuple, Tuple

import numpy as np

from exceptions import NativeLibraryError

logger = logging.getLogger(__name__)


def normalize_angle(angle: float) -> float:
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped < 0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def sp1(p1, p2, k) -> Tuple[List[float], bool]:
    """
    Subproblem 1: rotate p1 onto p2 about k.

    Decompose p1 into the part along k and the part perpendicular to it:
    rot(k, theta) p1 = p_par + cos(theta) p_perp + sin(theta) (k x p1).
    Projecting p2 onto (k x p1, p_perp) gives sin and cos up to a common scale.

    is_ls is True when |p1| != |p2| or the components along k differ.
    """
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    k = np.asarray(k, dtype=float)

    KxP = np.cross(k, p1)
    A = np.column_stack((KxP, -np.cross(k, KxP)))
    x = A.T @ p2
    theta = math.atan2(x[0], x[1])

    tol = 1e-8 * max(1.0, np.linalg.norm(p1), np.linalg.norm(p2))
    is_ls = (abs(np.linalg.norm(p1) - np.linalg.norm(p2)) > tol
             or abs(np.dot(k, p1) - np.dot(k, p2)) > tol)
    return [normalize_angle(theta)], bool(is_ls)


def sp4(h, p, k, d) -> Tuple[List[float], bool]:
    """
    Subproblem 4: h^T rot(k, theta) p = d.

    Expanding the rotation gives a linear equation in (sin, cos):
        A @ [sin(theta), cos(theta)] = b
    with A = h^T [k x p, -k x (k x p)] and b = d - (h.k)(k.p).
    Two solutions exist when |A| > |b|, otherwise the least-squares angle
    (closest to the unit circle) is returned.
    """
    h = np.asarray(h, dtype=float)
    p = np.asarray(p, dtype=float)
    k = np.asarray(k, dtype=float)

    A_11 = np.cross(k, p)
    A_1 = np.column_stack((A_11, -np.cross(k, A_11)))
    A = h @ A_1
    b = float(d - np.dot(h, k) * np.dot(k, p))

    norm_A_2 = float(np.dot(A, A))
    x_ls_tilde = A * b

    if norm_A_2 > b * b:
        xi = math.sqrt(norm_A_2 - b * b)
        x_N_prime_tilde = np.array([A[1], -A[0]])
        sc_1 = x_ls_tilde + xi * x_N_prime_tilde
        sc_2 = x_ls_tilde - xi * x_N_prime_tilde
        thetas = [math.atan2(sc_1[0], sc_1[1]), math.atan2(sc_2[0], sc_2[1])]
        return [normalize_angle(t) for t in thetas], False

    theta = math.atan2(x_ls_tilde[0], x_ls_tilde[1])
    return [normalize_angle(theta)], True


def sp3(p1, p2, k, d) -> Tuple[List[float], bool]:
    """
    Subproblem 3: || rot(k, theta) p1 - p2 || = d.

    Squaring the distance turns this into subproblem 4:
        p2^T rot(k, theta) p1 = (|p1|^2 + |p2|^2 - d^2) / 2
    """
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    d_sp4 = 0.5 * (np.dot(p1, p1) + np.dot(p2, p2) - d * d)
    return sp4(p2, p1, k, d_sp4)


class SubproblemBackend(NamedTuple):
    name: str
    sp1: Callable
    sp3: Callable
    sp4: Callable


NUMPY_BACKEND = SubproblemBackend("numpy", sp1, sp3, sp4)

IKGEO_DISTRIBUTION = "linearSubproblemSltns"


def _ensure_iterable(x):
    """Ensure subproblem result is always iterable (handles scalar vs array)."""
    x = np.atleast_1d(np.asarray(x, dtype=float))
    return [float(v) for v in x[~np.isnan(x)]]


def _load_ikgeo_backend() -> SubproblemBackend:
    """
    Bind the compiled ik-geo subproblems.

    The library orders SP4 arguments as (p, k, h, d); it is wrapped here so
    callers keep the (h, p, k, d) order used throughout this package.
    """
    try:
        sp1_lib = importlib.import_module(f"{IKGEO_DISTRIBUTION}.sp1_lib")
        sp3_lib = importlib.import_module(f"{IKGEO_DISTRIBUTION}.sp3_lib")
        sp4_lib = importlib.import_module(f"{IKGEO_DISTRIBUTION}.sp4_lib")
    except ImportError as e:
        raise NativeLibraryError(
            f"The 'ik-geo' subproblem backend requires the '{IKGEO_DISTRIBUTION}' package "
            f"(pip install {IKGEO_DISTRIBUTION}); loading it failed: {e}",
            expected=IKGEO_DISTRIBUTION,
        ) from e

    def _sp1(p1, p2, k):
        theta, is_ls = sp1_lib.sp1_run(np.asarray(p1, dtype=float), np.asarray(p2, dtype=float),
                                       np.asarray(k, dtype=float))
        return _ensure_iterable(theta), bool(is_ls)

    def _sp3(p1, p2, k, d):
        theta, is_ls = sp3_lib.sp3_run(np.asarray(p1, dtype=float), np.asarray(p2, dtype=float),
                                       np.asarray(k, dtype=float), float(d))
        return _ensure_iterable(theta), bool(is_ls)

    def _sp4(h, p, k, d):
        theta, is_ls = sp4_lib.sp4_run(np.asarray(p, dtype=float), np.asarray(k, dtype=float),
                                       np.asarray(h, dtype=float), float(d))
        return _ensure_iterable(theta), bool(is_ls)

    return SubproblemBackend("ik-geo", _sp1, _sp3, _sp4)


_BACKEND_LOADERS = {
    "numpy": lambda: NUMPY_BACKEND,
    "ik-geo": _load_ikgeo_backend,
}


def load_backend(name: str = "numpy") -> SubproblemBackend:
    """Resolve a subproblem backend by name. Unknown names raise ValueError."""
    try:
        loader = _BACKEND_LOADERS[name]
    except KeyError:
        raise ValueError(f"Unknown subproblem backend '{name}', expected one of {sorted(_BACKEND_LOADERS)}") from None
    backend = loader()
    logger.debug("Using '%s' subproblem backend", backend.name)
    return backend
