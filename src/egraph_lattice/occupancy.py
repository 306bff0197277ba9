"""
egraph_lattice/occupancy.py - 占据栅格与距离场

三维体素占据栅格，附带惰性重算的欧氏距离场（scipy.ndimage）。
规划空间只通过 CollisionSpace 接口间接使用它：
占据/距离查询、障碍物插入、世界尺寸与分辨率。
"""

import logging
import math
from typing import Any, Iterable, Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage

from .models import Obstacle


class OccupancyGrid:
    """体素占据栅格

    Args:
        size_x, size_y, size_z: 世界尺寸 (m)
        resolution: 体素边长 (m)
        origin: 栅格 (0, 0, 0) 体素的最小角点世界坐标
        max_distance: 距离场截断距离 (m)
        reference_frame: 坐标系名称（可视化使用）
        logger: 注入的日志器（缺省为模块日志器）

    Example:
        >>> grid = OccupancyGrid(2.0, 2.0, 1.0, 0.02, origin=(-1, -1, 0))
        >>> grid.add_cube((0.5, 0.0, 0.3), (0.2, 0.2, 0.6))
        >>> grid.get_distance((0.5, 0.3, 0.3))
    """

    def __init__(
        self,
        size_x: float,
        size_y: float,
        size_z: float,
        resolution: float,
        origin: Sequence[float] = (0.0, 0.0, 0.0),
        max_distance: float = 0.4,
        reference_frame: str = "map",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if resolution <= 0.0:
            raise ValueError(f"分辨率必须为正，得到 {resolution}")
        self._log = logger if logger is not None else logging.getLogger(__name__)
        self._resolution = float(resolution)
        self._origin = np.array(origin, dtype=np.float64)
        self.max_distance = float(max_distance)
        self.reference_frame = reference_frame
        self._shape = tuple(
            max(1, int(round(s / self._resolution)))
            for s in (size_x, size_y, size_z)
        )
        self._occupied = np.zeros(self._shape, dtype=bool)
        self._distance: Optional[np.ndarray] = None

    # ── 尺寸与坐标 ──

    @property
    def resolution(self) -> float:
        return self._resolution

    @property
    def origin(self) -> np.ndarray:
        return self._origin.copy()

    @property
    def grid_size(self) -> Tuple[int, int, int]:
        return self._shape

    @property
    def world_size(self) -> Tuple[float, float, float]:
        return tuple(n * self._resolution for n in self._shape)

    @property
    def n_occupied(self) -> int:
        return int(np.count_nonzero(self._occupied))

    def world_to_grid(self, point: Sequence[float]) -> Optional[Tuple[int, int, int]]:
        """世界坐标 → 体素索引（越界返回 None）"""
        idx = np.floor((np.asarray(point[:3], dtype=np.float64) - self._origin)
                       / self._resolution).astype(int)
        if np.any(idx < 0) or np.any(idx >= self._shape):
            return None
        return tuple(int(i) for i in idx)

    def grid_to_world(self, i: int, j: int, k: int) -> np.ndarray:
        """体素索引 → 体素中心世界坐标"""
        return self._origin + (np.array([i, j, k], dtype=np.float64) + 0.5) * self._resolution

    def is_in_bounds(self, point: Sequence[float]) -> bool:
        return self.world_to_grid(point) is not None

    # ── 更新 ──

    def reset(self) -> None:
        """清空所有占据体素"""
        self._occupied[:] = False
        self._distance = None

    def add_points(self, points: Iterable[Sequence[float]]) -> int:
        """将点集标记为占据

        Returns:
            落在栅格内的点数
        """
        n_added = 0
        for p in points:
            idx = self.world_to_grid(p)
            if idx is None:
                continue
            self._occupied[idx] = True
            n_added += 1
        if n_added:
            self._distance = None
        return n_added

    def update_from_points(self, points: Sequence[Sequence[float]]) -> None:
        """用一帧点云更新栅格（空点云视为无操作）"""
        if len(points) == 0:
            self._log.debug("[grid] 收到的点云为空")
            return
        n = self.add_points(points)
        self._log.debug("[grid] 点云更新: %d/%d 点在栅格内", n, len(points))

    def add_cube(
        self,
        center: Sequence[float],
        size: Sequence[float],
    ) -> int:
        """将以 center 为中心、尺寸为 size 的盒子内的体素标记为占据

        Returns:
            新增占据的体素数
        """
        center = np.asarray(center, dtype=np.float64)
        half = np.asarray(size, dtype=np.float64) / 2.0
        lo = np.floor((center - half - self._origin) / self._resolution).astype(int)
        hi = np.floor((center + half - self._origin) / self._resolution).astype(int)
        lo = np.maximum(lo, 0)
        hi = np.minimum(hi, np.array(self._shape) - 1)
        if np.any(hi < lo):
            self._log.debug("[grid] 盒子 center=%s size=%s 完全在栅格外",
                            center.tolist(), (2 * half).tolist())
            return 0
        region = self._occupied[lo[0]:hi[0] + 1, lo[1]:hi[1] + 1, lo[2]:hi[2] + 1]
        n_new = int(region.size - np.count_nonzero(region))
        region[...] = True
        self._distance = None
        return n_new

    def add_obstacle(self, obstacle: Obstacle) -> int:
        """插入 AABB 障碍物"""
        return self.add_cube(obstacle.center, obstacle.size)

    # ── 查询 ──

    def _distance_field(self) -> np.ndarray:
        if self._distance is None:
            if self.n_occupied == 0:
                self._distance = np.full(self._shape, self.max_distance)
            else:
                edt = ndimage.distance_transform_edt(~self._occupied)
                self._distance = np.minimum(edt * self._resolution, self.max_distance)
        return self._distance

    def is_occupied(self, point: Sequence[float]) -> bool:
        idx = self.world_to_grid(point)
        return idx is not None and bool(self._occupied[idx])

    def get_distance(self, point: Sequence[float]) -> float:
        """点到最近占据体素的距离（截断到 max_distance，栅格外视为未知 = max_distance）"""
        idx = self.world_to_grid(point)
        if idx is None:
            return self.max_distance
        return float(self._distance_field()[idx])

    def get_occupied_voxels(self) -> np.ndarray:
        """所有占据体素中心 (N, 3)"""
        ijk = np.argwhere(self._occupied)
        return self._origin + (ijk + 0.5) * self._resolution

    def get_visualization(self, type: str) -> Optional[Any]:
        """可视化数据

        Args:
            type: 'bounds' → 栅格边界折线 (10, 3)；
                  'distance_field' → 占据体素中心 (N, 3)

        Returns:
            点数组；未知类型返回 None
        """
        if type == 'bounds':
            ox, oy, oz = self._origin
            dx, dy, dz = self.world_size
            return np.array([
                [ox, oy, oz],
                [ox + dx, oy, oz],
                [ox + dx, oy + dy, oz],
                [ox, oy + dy, oz],
                [ox, oy, oz],
                [ox, oy, oz + dz],
                [ox + dx, oy, oz + dz],
                [ox + dx, oy + dy, oz + dz],
                [ox, oy + dy, oz + dz],
                [ox, oy, oz + dz],
            ])
        if type == 'distance_field':
            return self.get_occupied_voxels()
        self._log.error("不存在类型为 '%s' 的可视化", type)
        return None

    def __repr__(self) -> str:
        return (f"OccupancyGrid(shape={self._shape}, resolution={self._resolution}, "
                f"n_occupied={self.n_occupied})")


def sample_segment(p0: np.ndarray, p1: np.ndarray, step: float) -> np.ndarray:
    """在线段 p0→p1 上按 step 等间隔采样（含两端点）"""
    length = float(np.linalg.norm(p1 - p0))
    n = max(2, int(math.ceil(length / step)) + 1)
    t = np.linspace(0.0, 1.0, n)[:, None]
    return p0[None, :] + t * (p1 - p0)[None, :]
