"""
test_occupancy.py — Unit tests for occupancy.py.

Covers:
    - grid geometry and world ⟷ voxel conversion
    - cube / obstacle insertion and distance queries
    - reset and empty point-cloud updates
    - visualization payloads
"""

import logging

import numpy as np
import pytest

from egraph_lattice.models import Obstacle
from egraph_lattice.occupancy import OccupancyGrid, sample_segment


@pytest.fixture()
def grid():
    return OccupancyGrid(2.0, 2.0, 2.0, 0.05, origin=(-1.0, -1.0, -1.0))


class TestGeometry:

    def test_sizes(self, grid):
        assert grid.grid_size == (40, 40, 40)
        assert grid.world_size == pytest.approx((2.0, 2.0, 2.0))
        assert grid.resolution == pytest.approx(0.05)
        np.testing.assert_allclose(grid.origin, [-1.0, -1.0, -1.0])

    def test_world_to_grid(self, grid):
        assert grid.world_to_grid((-1.0, -1.0, -1.0)) == (0, 0, 0)
        assert grid.world_to_grid((1.5, 0.0, 0.0)) is None
        assert not grid.is_in_bounds((0.0, -1.2, 0.0))

    def test_grid_to_world_is_voxel_centre(self, grid):
        np.testing.assert_allclose(grid.grid_to_world(0, 0, 0), [-0.975, -0.975, -0.975])

    def test_invalid_resolution(self):
        with pytest.raises(ValueError):
            OccupancyGrid(1.0, 1.0, 1.0, 0.0)


class TestUpdates:

    def test_add_cube(self, grid):
        n = grid.add_cube((0.0, 0.0, 0.0), (0.1, 0.1, 0.1))
        assert n > 0
        assert grid.n_occupied == n
        assert grid.is_occupied((0.0, 0.0, 0.0))
        assert not grid.is_occupied((0.5, 0.5, 0.5))

    def test_add_cube_outside(self, grid):
        assert grid.add_cube((5.0, 5.0, 5.0), (0.1, 0.1, 0.1)) == 0
        assert grid.n_occupied == 0

    def test_add_obstacle(self, grid):
        grid.add_obstacle(Obstacle([0.2, 0.2, 0.2], [0.3, 0.3, 0.3]))
        assert grid.is_occupied((0.25, 0.25, 0.25))

    def test_add_points(self, grid):
        n = grid.add_points([(0.0, 0.0, 0.0), (3.0, 0.0, 0.0)])
        assert n == 1
        assert grid.n_occupied == 1

    def test_reset(self, grid):
        grid.add_cube((0.0, 0.0, 0.0), (0.2, 0.2, 0.2))
        grid.reset()
        assert grid.n_occupied == 0
        assert grid.get_distance((0.0, 0.0, 0.0)) == pytest.approx(grid.max_distance)

    def test_empty_update_is_noop(self, grid, caplog):
        caplog.set_level(logging.DEBUG, logger="egraph_lattice.occupancy")
        grid.update_from_points([])
        assert grid.n_occupied == 0
        assert any("为空" in r.getMessage() for r in caplog.records)


class TestDistance:

    def test_distance_field(self, grid):
        grid.add_cube((0.0, 0.0, 0.0), (0.1, 0.1, 0.1))
        assert grid.get_distance((0.0, 0.0, 0.0)) == pytest.approx(0.0)
        d = grid.get_distance((0.2, 0.0, 0.0))
        assert 0.0 < d < grid.max_distance
        assert grid.get_distance((0.5, 0.0, 0.0)) == pytest.approx(grid.max_distance)

    def test_outside_is_unknown(self, grid):
        grid.add_cube((0.0, 0.0, 0.0), (0.1, 0.1, 0.1))
        assert grid.get_distance((9.0, 9.0, 9.0)) == pytest.approx(grid.max_distance)

    def test_distance_recomputed_after_update(self, grid):
        assert grid.get_distance((0.3, 0.0, 0.0)) == pytest.approx(grid.max_distance)
        grid.add_cube((0.3, 0.0, 0.0), (0.1, 0.1, 0.1))
        assert grid.get_distance((0.3, 0.0, 0.0)) == pytest.approx(0.0)


class TestVisualization:

    def test_bounds(self, grid):
        pts = grid.get_visualization('bounds')
        assert pts.shape == (10, 3)
        np.testing.assert_allclose(pts[0], pts[4])

    def test_distance_field(self, grid):
        grid.add_cube((0.0, 0.0, 0.0), (0.1, 0.1, 0.1))
        pts = grid.get_visualization('distance_field')
        assert pts.shape == (grid.n_occupied, 3)

    def test_unknown_type(self, grid, caplog):
        caplog.set_level(logging.ERROR, logger="egraph_lattice.occupancy")
        assert grid.get_visualization('mesh') is None
        assert any(r.levelno == logging.ERROR for r in caplog.records)


def test_sample_segment_includes_endpoints():
    p0 = np.array([0.0, 0.0, 0.0])
    p1 = np.array([0.1, 0.0, 0.0])
    pts = sample_segment(p0, p1, 0.05)
    np.testing.assert_allclose(pts[0], p0)
    np.testing.assert_allclose(pts[-1], p1)
    assert len(pts) >= 3
