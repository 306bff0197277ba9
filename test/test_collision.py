"""
test_collision.py — Unit tests for collision.py.

Covers:
    - interpolate_motion (linear and wrapping variables)
    - GridCollisionSpace state / path checks for point and DH robots
    - behaviour without obstacle data
"""

import logging
import math

import numpy as np
import pytest

from egraph_lattice.collision import GridCollisionSpace, interpolate_motion
from egraph_lattice.models import Obstacle
from egraph_lattice.occupancy import OccupancyGrid
from egraph_lattice.robot import DHRobot, PointRobot


class TestInterpolateMotion:

    def test_excludes_start_includes_end(self):
        states = interpolate_motion(np.array([0.0]), np.array([0.1]), 0.05)
        assert len(states) == 2
        np.testing.assert_allclose(states[0], [0.05])
        assert states[-1][0] == 0.1

    def test_zero_length(self):
        states = interpolate_motion(np.array([0.3]), np.array([0.3]), 0.05)
        assert len(states) == 1
        np.testing.assert_allclose(states[0], [0.3])

    def test_continuous_takes_short_arc(self):
        states = interpolate_motion(np.array([3.0]), np.array([-3.0]), 0.05, [True])
        assert states[-1][0] == -3.0
        # the short way round passes through +pi, never through 0
        assert all(abs(q[0]) > 2.9 for q in states[:-1])
        assert len(states) == math.ceil((2 * math.pi - 6.0) / 0.05)


@pytest.fixture()
def blocked_space(one_joint_robot, empty_grid):
    """Obstacle covering j0 ∈ [0.07, 0.3] on the x axis."""
    empty_grid.add_obstacle(Obstacle([0.07, -0.1, -0.1], [0.3, 0.1, 0.1], name="wall"))
    return GridCollisionSpace(one_joint_robot, empty_grid)


class TestGridCollisionSpace:

    def test_free_without_obstacles(self, free_space):
        assert free_space.is_state_valid(np.array([0.5]))
        assert free_space.is_free([np.array([0.0]), np.array([0.5])])

    def test_joint_limits(self, free_space):
        assert not free_space.is_state_valid(np.array([1.5]))

    def test_point_in_obstacle(self, blocked_space):
        assert not blocked_space.is_state_valid(np.array([0.1]))
        assert blocked_space.is_state_valid(np.array([-0.1]))
        assert blocked_space.is_state_valid(np.array([0.0]))

    def test_path_through_obstacle(self, blocked_space):
        assert not blocked_space.is_free([np.array([0.0]), np.array([0.5])])
        assert blocked_space.is_free([np.array([0.0]), np.array([-0.5])])

    def test_counter(self, blocked_space):
        blocked_space.reset_counter()
        blocked_space.is_state_valid(np.array([0.0]))
        blocked_space.is_state_valid(np.array([-0.2]))
        assert blocked_space.n_collision_checks == 2
        blocked_space.reset_counter()
        assert blocked_space.n_collision_checks == 0

    def test_reset_clears_obstacles(self, blocked_space):
        blocked_space.reset()
        assert blocked_space.is_state_valid(np.array([0.1]))

    def test_world_size(self, free_space):
        assert free_space.world_size == pytest.approx((2.0, 2.0, 2.0))
        assert free_space.resolution == pytest.approx(0.05)

    def test_visualization_delegates(self, blocked_space):
        assert blocked_space.get_visualization('bounds').shape == (10, 3)


class TestWithoutGrid:

    def test_no_grid_means_free(self, caplog):
        caplog.set_level(logging.WARNING, logger="egraph_lattice.collision")
        space = GridCollisionSpace(PointRobot(['x']))
        assert space.is_state_valid(np.array([0.2]))
        assert space.is_state_valid(np.array([0.4]))
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    def test_no_grid_geometry(self):
        space = GridCollisionSpace(PointRobot(['x']))
        assert space.world_size == (0.0, 0.0, 0.0)
        assert space.resolution == 0.0
        assert space.get_visualization('bounds') is None

    def test_add_obstacle_ignored(self, caplog):
        caplog.set_level(logging.WARNING, logger="egraph_lattice.collision")
        space = GridCollisionSpace(PointRobot(['x']))
        space.add_obstacle(Obstacle([0, 0, 0], [1, 1, 1], name="box"))
        assert any("box" in r.getMessage() for r in caplog.records)


class TestArmCollision:

    @pytest.fixture()
    def arm_space(self):
        dh = [
            {"alpha": 0, "a": 1.0, "d": 0, "theta": 0, "type": "revolute"},
            {"alpha": 0, "a": 1.0, "d": 0, "theta": 0, "type": "revolute"},
        ]
        robot = DHRobot(dh, variable_names=['shoulder', 'elbow'])
        grid = OccupancyGrid(4.0, 4.0, 2.0, 0.05, origin=(-2.0, -2.0, -1.0))
        grid.add_cube((1.5, 0.0, 0.0), (0.1, 0.1, 0.1))
        return GridCollisionSpace(robot, grid, padding=0.02)

    def test_link_hits_obstacle(self, arm_space):
        assert not arm_space.is_state_valid(np.array([0.0, 0.0]))

    def test_bent_arm_clears_obstacle(self, arm_space):
        assert arm_space.is_state_valid(np.array([math.pi / 2, 0.0]))
