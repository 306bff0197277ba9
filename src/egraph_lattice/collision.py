"""
egraph_lattice/collision.py - 碰撞检测协作者

规划空间依赖的碰撞检测接口 ``CollisionSpace``，以及基于占据栅格距离场的
实现 ``GridCollisionSpace``：

- 单状态检测：关节限制 → 连杆端点 → 沿连杆段按栅格分辨率采样 → 距离场查询
- 运动检测：相邻路点间按插值步长插值，逐点检测（连续变量沿最短弧）

栅格缺失或为空时视为"没有已知障碍物"，所有状态无碰撞。
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .angles import shortest_angle_diff
from .models import Obstacle
from .occupancy import OccupancyGrid, sample_segment
from .robot import RobotModel


def interpolate_motion(
    q_start: np.ndarray,
    q_end: np.ndarray,
    resolution: float,
    continuous: Optional[Sequence[bool]] = None,
) -> List[np.ndarray]:
    """q_start → q_end 等间隔插值

    连续变量沿最短弧插值。返回序列不含起点、含终点（终点与 q_end 完全相同）。

    Args:
        q_start: 起始状态
        q_end: 终止状态
        resolution: 相邻插值点的最大 L2 距离
        continuous: 各变量是否为连续变量

    Returns:
        插值状态列表
    """
    q_start = np.asarray(q_start, dtype=np.float64)
    q_end = np.asarray(q_end, dtype=np.float64)
    diff = q_end - q_start
    if continuous is not None:
        for i, c in enumerate(continuous):
            if c:
                diff[i] = shortest_angle_diff(q_end[i], q_start[i])
    dist = float(np.linalg.norm(diff))
    n_steps = max(1, int(np.ceil(dist / resolution))) if resolution > 0 else 1
    states = [q_start + (k / n_steps) * diff for k in range(1, n_steps)]
    states.append(q_end.copy())
    return states


class CollisionSpace(ABC):
    """规划空间所需的碰撞检测接口

    实现须保证查询对规划状态无副作用；障碍物更新只发生在两次规划之间。
    """

    interpolation_resolution: float = 0.05
    continuous: Optional[Sequence[bool]] = None

    @abstractmethod
    def is_state_valid(self, state: np.ndarray) -> bool:
        """单个状态是否无碰撞且满足限制"""

    def is_free(self, path: Sequence[np.ndarray]) -> bool:
        """路点序列（含相邻路点间的插值运动）是否全程无碰撞"""
        if len(path) == 0:
            return True
        if not self.is_state_valid(np.asarray(path[0], dtype=np.float64)):
            return False
        for a, b in zip(path[:-1], path[1:]):
            for q in interpolate_motion(a, b, self.interpolation_resolution, self.continuous):
                if not self.is_state_valid(q):
                    return False
        return True

    @abstractmethod
    def reset(self) -> None:
        """清空障碍物"""

    @abstractmethod
    def add_obstacle(self, obstacle: Obstacle) -> None:
        """插入障碍物区域"""

    @property
    @abstractmethod
    def world_size(self) -> Tuple[float, float, float]:
        """工作空间尺寸 (x, y, z)"""

    @property
    @abstractmethod
    def resolution(self) -> float:
        """障碍物表示的分辨率"""


class GridCollisionSpace(CollisionSpace):
    """基于占据栅格的碰撞检测器

    Args:
        robot: 机器人模型（提供关节限制与连杆端点）
        grid: 占据栅格，None 表示尚未接入障碍物数据
        padding: 安全裕度，连杆采样点到障碍物距离 <= padding 视为碰撞
        interpolation_resolution: 运动插值步长（状态空间 L2 距离）
        logger: 注入的日志器

    Example:
        >>> space = GridCollisionSpace(robot, grid, padding=0.02)
        >>> space.is_state_valid(q)
        >>> space.is_free([q0, q1, q2])
    """

    def __init__(
        self,
        robot: RobotModel,
        grid: Optional[OccupancyGrid] = None,
        padding: float = 0.0,
        interpolation_resolution: float = 0.05,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.robot = robot
        self.grid = grid
        self.padding = float(padding)
        self.interpolation_resolution = float(interpolation_resolution)
        self.continuous = list(robot.continuous)
        self._log = logger if logger is not None else logging.getLogger(__name__)
        self._n_collision_checks = 0
        self._warned_no_grid = False

    @property
    def n_collision_checks(self) -> int:
        """累计单状态检测次数"""
        return self._n_collision_checks

    def reset_counter(self) -> None:
        self._n_collision_checks = 0

    def _obstacles_known(self) -> bool:
        if self.grid is None:
            if not self._warned_no_grid:
                self._log.warning("未接入占据栅格，视为没有已知障碍物")
                self._warned_no_grid = True
            return False
        return self.grid.n_occupied > 0

    def is_state_valid(self, state: np.ndarray) -> bool:
        self._n_collision_checks += 1
        if not self.robot.check_limits(state):
            return False
        if not self._obstacles_known():
            return True

        positions = self.robot.get_link_positions(state)
        step = self.grid.resolution
        if len(positions) == 1:
            return self.grid.get_distance(positions[0]) > self.padding

        # 逐连杆段检查（link i 的段是 positions[i-1] 到 positions[i]）
        for li in range(1, len(positions)):
            p_start = np.asarray(positions[li - 1], dtype=np.float64)
            p_end = np.asarray(positions[li], dtype=np.float64)
            if np.linalg.norm(p_end - p_start) < 1e-10:
                continue
            for p in sample_segment(p_start, p_end, step):
                if self.grid.get_distance(p) <= self.padding:
                    return False
        return True

    def reset(self) -> None:
        if self.grid is not None:
            self.grid.reset()

    def add_obstacle(self, obstacle: Obstacle) -> None:
        if self.grid is None:
            self._log.warning("未接入占据栅格，忽略障碍物 '%s'", obstacle.name)
            return
        n = self.grid.add_obstacle(obstacle)
        self._log.debug("添加障碍物 '%s': 新增 %d 个占据体素", obstacle.name, n)

    @property
    def world_size(self) -> Tuple[float, float, float]:
        if self.grid is None:
            return (0.0, 0.0, 0.0)
        return self.grid.world_size

    @property
    def resolution(self) -> float:
        if self.grid is None:
            return 0.0
        return self.grid.resolution

    def get_visualization(self, type: str):
        """转发可视化请求到占据栅格（无栅格时返回 None）"""
        if self.grid is None:
            return None
        return self.grid.get_visualization(type)
