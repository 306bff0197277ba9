"""
conftest.py — pytest fixtures shared across the test suite.

Provides a one-joint robot discretized at 0.1, an obstacle-free collision
space, action-file writers and ready-to-expand lattices so that individual
test modules stay short and focused.
"""

import json

import pytest

from egraph_lattice.action_space import PrimitiveActionSpace
from egraph_lattice.collision import GridCollisionSpace
from egraph_lattice.experience_graph import save_demonstration
from egraph_lattice.lattice import Lattice
from egraph_lattice.lattice_egraph import LatticeEGraph
from egraph_lattice.occupancy import OccupancyGrid
from egraph_lattice.robot import PointRobot


# =========================================================================
# Robot / collision fixtures
# =========================================================================

@pytest.fixture()
def one_joint_robot() -> PointRobot:
    """Single planning variable 'j0' limited to [-1, 1]."""
    return PointRobot(['j0'], joint_limits=[(-1.0, 1.0)], name="OneJoint")


@pytest.fixture()
def empty_grid() -> OccupancyGrid:
    """2m cube centred on the origin, 5cm voxels, nothing occupied."""
    return OccupancyGrid(2.0, 2.0, 2.0, 0.05, origin=(-1.0, -1.0, -1.0))


@pytest.fixture()
def free_space(one_joint_robot, empty_grid) -> GridCollisionSpace:
    return GridCollisionSpace(one_joint_robot, empty_grid)


# =========================================================================
# Action file fixtures
# =========================================================================

@pytest.fixture()
def write_action_file(tmp_path):
    """Factory: dump a primitive document to JSON and return its path."""
    def _write(data, name="actions.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding='utf-8')
        return str(path)
    return _write


@pytest.fixture()
def one_joint_actions(write_action_file) -> str:
    """+0.1 / -0.1 long-distance primitives on j0."""
    return write_action_file({
        "primitives": [
            {"type": "long_distance", "deltas": {"j0": 0.1}, "bidirectional": True},
        ],
    })


# =========================================================================
# Lattice fixtures
# =========================================================================

@pytest.fixture()
def lattice(one_joint_robot, free_space, one_joint_actions) -> Lattice:
    """Initialized lattice with the ±0.1 action space bound."""
    pspace = Lattice(one_joint_robot, free_space)
    pspace.init([0.1])
    aspace = PrimitiveActionSpace(pspace)
    aspace.load(one_joint_actions)
    pspace.set_action_space(aspace)
    return pspace


@pytest.fixture()
def demo_dir(tmp_path):
    """Directory holding the demonstration [0.0] → [0.1] → [0.2]."""
    d = tmp_path / "demos"
    save_demonstration(d / "demo_0.json", [[0.0], [0.1], [0.2]], ['j0'])
    return d


@pytest.fixture()
def egraph_lattice(one_joint_robot, free_space, one_joint_actions, demo_dir) -> LatticeEGraph:
    """Experience-graph lattice with the three-node demonstration loaded."""
    pspace = LatticeEGraph(one_joint_robot, free_space)
    pspace.init([0.1])
    aspace = PrimitiveActionSpace(pspace)
    aspace.load(one_joint_actions)
    pspace.set_action_space(aspace)
    pspace.load_experience_graph(str(demo_dir))
    return pspace
