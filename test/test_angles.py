"""
test_angles.py — Unit tests for angles.py.

Covers:
    - normalize_angle / normalize_angle_positive ranges
    - shortest / major arc differences
    - unwind
    - ZYX Euler ⟷ rotation matrix ⟷ quaternion conversions
"""

import math

import numpy as np
import pytest

from egraph_lattice import angles


class TestNormalize:

    @pytest.mark.parametrize("a, expected", [
        (0.0, 0.0),
        (math.pi, math.pi),
        (-math.pi, math.pi),
        (3 * math.pi / 2, -math.pi / 2),
        (-3 * math.pi / 2, math.pi / 2),
        (5 * math.pi / 2, math.pi / 2),
    ])
    def test_normalize_angle(self, a, expected):
        assert angles.normalize_angle(a) == pytest.approx(expected)

    @pytest.mark.parametrize("a", [-7.0, -math.pi, -1e-17, 0.0, 1.0, 2 * math.pi, 13.0])
    def test_normalize_angle_positive_range(self, a):
        v = angles.normalize_angle_positive(a)
        assert 0.0 <= v < 2 * math.pi
        assert math.cos(v) == pytest.approx(math.cos(a))
        assert math.sin(v) == pytest.approx(math.sin(a))

    @pytest.mark.parametrize("a", list(np.linspace(-20.0, 20.0, 161)) + [
        k * math.pi / 2 for k in range(-9, 10)
    ])
    def test_normalize_angle_range_and_idempotent(self, a):
        v = angles.normalize_angle(a)
        assert -math.pi < v <= math.pi
        assert angles.normalize_angle(v) == v
        assert math.cos(v) == pytest.approx(math.cos(a), abs=1e-9)
        assert math.sin(v) == pytest.approx(math.sin(a), abs=1e-9)

    def test_degrees_radians(self):
        assert angles.to_degrees(math.pi) == pytest.approx(180.0)
        assert angles.to_radians(90.0) == pytest.approx(math.pi / 2)


class TestArcs:

    def test_shortest_diff_wraps(self):
        diff = angles.shortest_angle_diff(math.pi - 0.1, -math.pi + 0.1)
        assert diff == pytest.approx(-0.2)

    def test_shortest_dist_symmetric(self):
        a, b = 0.3, -2.9
        assert angles.shortest_angle_dist(a, b) == pytest.approx(
            angles.shortest_angle_dist(b, a))
        assert 0.0 <= angles.shortest_angle_dist(a, b) <= math.pi

    @pytest.mark.parametrize("a", [-7.5, -math.pi, -0.3, 0.0, 0.3, 2.0, math.pi, 11.0])
    @pytest.mark.parametrize("turns", [-3, -1, 0, 1, 2])
    def test_dist_zero_for_congruent_angles(self, a, turns):
        b = a + turns * 2 * math.pi
        assert angles.shortest_angle_dist(a, b) == pytest.approx(0.0, abs=1e-9)

    @pytest.mark.parametrize("a, b", [
        (0.3, 0.31),
        (0.3, 0.3 + math.pi),
        (-math.pi + 0.01, math.pi - 0.01),
        (0.3, 0.3 + 4 * math.pi + 0.05),
    ])
    def test_dist_positive_for_distinct_angles(self, a, b):
        assert angles.shortest_angle_dist(a, b) > 1e-6

    def test_dist_zero_after_full_turns(self):
        assert angles.shortest_angle_dist(0.3, 0.3 + 4 * math.pi) == pytest.approx(0.0, abs=1e-9)
        assert angles.shortest_angle_dist(0.3, 0.31) == pytest.approx(0.01)

    def test_major_arc(self):
        assert angles.major_arc_diff(0.5, 0.0) == pytest.approx(-(2 * math.pi - 0.5))
        assert angles.major_arc_dist(0.5, 0.0) == pytest.approx(2 * math.pi - 0.5)
        assert angles.minor_arc_dist(0.5, 0.0) == pytest.approx(0.5)

    def test_unwind(self):
        v = angles.unwind(1.0, 0.5)
        assert v >= 1.0
        assert v == pytest.approx(0.5 + 2 * math.pi)
        assert angles.unwind(0.0, 0.5) == pytest.approx(0.5)


class TestEuler:

    def test_matrix_round_trip(self):
        y, p, r = 0.4, -0.3, 1.1
        rot = angles.from_euler_zyx(y, p, r)
        np.testing.assert_allclose(rot @ rot.T, np.eye(3), atol=1e-12)
        assert angles.get_euler_zyx(rot) == pytest.approx((y, p, r))

    def test_yaw_only_matrix(self):
        rot = angles.from_euler_zyx(math.pi / 2, 0.0, 0.0)
        np.testing.assert_allclose(rot @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)

    def test_quaternion_xyzw_order(self):
        q = angles.quaternion_from_euler_zyx(math.pi / 2, 0.0, 0.0)
        np.testing.assert_allclose(
            q, [0.0, 0.0, math.sin(math.pi / 4), math.cos(math.pi / 4)], atol=1e-12)
        assert angles.euler_zyx_from_quaternion(q) == pytest.approx((math.pi / 2, 0.0, 0.0))

    def test_normalize_euler_keeps_rotation(self):
        y, p, r = angles.normalize_euler_zyx(0.2, 2.5, 0.1)
        assert -math.pi / 2 <= p <= math.pi / 2
        np.testing.assert_allclose(
            angles.from_euler_zyx(y, p, r), angles.from_euler_zyx(0.2, 2.5, 0.1), atol=1e-12)

    @pytest.mark.parametrize("theta", [0.5, -0.5, 2.0])
    def test_nearest_planar_rotation(self, theta):
        q = [0.0, 0.0, math.sin(theta / 2), math.cos(theta / 2)]
        assert angles.get_nearest_planar_rotation(q) == pytest.approx(theta)

    def test_nearest_planar_rotation_identity(self):
        assert angles.get_nearest_planar_rotation([0.0, 0.0, 0.0, 1.0]) == 0.0
