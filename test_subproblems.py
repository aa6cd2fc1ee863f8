"""
Tests for the canonical subproblem solvers and backend selection.
"""

import math

import numpy as np
import pytest

import subproblems
from exceptions import NativeLibraryError
from frames import rot
from subproblems import load_backend, normalize_angle, sp1, sp3, sp4


def _random_unit(rng):
    v = rng.normal(size=3)
    return v / np.linalg.norm(v)


def _contains_angle(thetas, theta, tol=1e-9):
    return any(abs(normalize_angle(t - theta)) < tol for t in thetas)


def test_normalize_angle_range():
    for angle in (-7.0, -math.pi, 0.0, 3.0, math.pi + 0.1, 12.0):
        wrapped = normalize_angle(angle)
        assert -math.pi <= wrapped < math.pi
        assert math.isclose(math.cos(wrapped), math.cos(angle), abs_tol=1e-12)
        assert math.isclose(math.sin(wrapped), math.sin(angle), abs_tol=1e-12)


def test_sp1_recovers_rotation():
    rng = np.random.default_rng(1)
    for _ in range(20):
        k = _random_unit(rng)
        p1 = rng.normal(size=3)
        theta = rng.uniform(-math.pi, math.pi)
        p2 = rot(k, theta) @ p1

        thetas, is_ls = sp1(p1, p2, k)
        assert not is_ls
        assert len(thetas) == 1
        assert _contains_angle(thetas, theta)


def test_sp1_flags_least_squares():
    thetas, is_ls = sp1([1.0, 0.0, 0.0], [0.0, 2.0, 0.0], [0.0, 0.0, 1.0])
    assert is_ls
    assert math.isclose(thetas[0], math.pi / 2, abs_tol=1e-12)


def test_sp3_contains_generating_angle():
    rng = np.random.default_rng(3)
    for _ in range(20):
        k = _random_unit(rng)
        p1 = rng.normal(size=3)
        p2 = rng.normal(size=3)
        theta = rng.uniform(-math.pi, math.pi)
        d = np.linalg.norm(rot(k, theta) @ p1 - p2)

        thetas, is_ls = sp3(p1, p2, k, d)
        assert not is_ls
        assert _contains_angle(thetas, theta, tol=1e-7)
        for t in thetas:
            assert math.isclose(np.linalg.norm(rot(k, t) @ p1 - p2), d, rel_tol=1e-9, abs_tol=1e-9)


def test_sp4_two_solutions():
    rng = np.random.default_rng(4)
    for _ in range(20):
        h = _random_unit(rng)
        k = _random_unit(rng)
        p = rng.normal(size=3)
        theta = rng.uniform(-math.pi, math.pi)
        d = h @ rot(k, theta) @ p

        thetas, is_ls = sp4(h, p, k, d)
        assert not is_ls
        assert len(thetas) == 2
        assert _contains_angle(thetas, theta, tol=1e-7)


def test_sp4_unreachable_is_least_squares():
    thetas, is_ls = sp4([1.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0], 5.0)
    assert is_ls
    assert len(thetas) == 1
    assert math.isclose(thetas[0], 0.0, abs_tol=1e-12)


def test_load_backend_numpy():
    backend = load_backend()
    assert backend.name == "numpy"
    assert backend.sp4 is sp4


def test_load_backend_unknown_name():
    with pytest.raises(ValueError):
        load_backend("lapack")


def test_missing_native_backend(monkeypatch):
    real_import = subproblems.importlib.import_module

    def fake_import(name, *args, **kwargs):
        if name.startswith(subproblems.IKGEO_DISTRIBUTION):
            raise ImportError(f"No module named '{name}'")
        return real_import(name, *args, **kwargs)

    monkeypatch.setattr(subproblems.importlib, "import_module", fake_import)

    with pytest.raises(NativeLibraryError) as excinfo:
        load_backend("ik-geo")
    assert isinstance(excinfo.value, ImportError)
    assert excinfo.value.expected == subproblems.IKGEO_DISTRIBUTION
    assert subproblems.IKGEO_DISTRIBUTION in str(excinfo.value)
