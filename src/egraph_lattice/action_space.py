"""
egraph_lattice/action_space.py - 动作空间

动作空间只负责"从一个连续状态出发有哪些候选运动"，不做碰撞检测、
不做离散化，也不修改规划空间的状态表。

- ActionSpace: 抽象基类，持有所属规划空间的非拥有引用（weakref）
- PrimitiveActionSpace: 从 JSON 运动基元文件加载的动作空间，
  包含固定偏移基元（长/短距离）和吸附目标的自适应基元

运动基元文件格式::

    {
      "units": "radians",
      "use_long_and_short_prims": false,
      "position_variables": ["x", "y", "z"],
      "orientation_variables": ["yaw"],
      "primitives": [
        {"type": "long_distance", "deltas": {"j0": 0.1}, "bidirectional": true},
        {"type": "short_distance", "deltas": [{"j0": 0.02}, {"j0": 0.04}],
         "enabled": true, "threshold": 0.2},
        {"type": "snap_to_xyz", "enabled": true, "threshold": 0.2}
      ]
    }

``units`` 只作用于 deltas；阈值始终以弧度/米为单位。
"""

import json
import math
import logging
import weakref
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

from .angles import shortest_angle_dist
from .collision import interpolate_motion
from .errors import ConfigError, LoadError, UnknownVariableError
from .models import Action, GoalConstraint, MotionPrimitive, MotionPrimitiveType

_T = MotionPrimitiveType

DEFAULT_THRESHOLDS = {
    _T.LONG_DISTANCE: 0.0,
    _T.SHORT_DISTANCE: 0.2,
    _T.SNAP_TO_XYZ: 0.2,
    _T.SNAP_TO_RPY: 0.2,
    _T.SNAP_TO_XYZ_RPY: 0.2,
}


class ActionSpace(ABC):
    """动作空间基类

    Args:
        planning_space: 所属规划空间（只保留弱引用，生命周期不得超过它）
        logger: 注入的日志器
    """

    def __init__(self, planning_space, logger: Optional[logging.Logger] = None) -> None:
        self._pspace_ref = weakref.ref(planning_space)
        self._log = logger if logger is not None else logging.getLogger(__name__)

    @property
    def planning_space(self):
        pspace = self._pspace_ref()
        if pspace is None:
            raise ReferenceError("所属规划空间已被释放")
        return pspace

    @abstractmethod
    def apply(self, state: np.ndarray) -> List[Action]:
        """给定状态的候选动作（对同一状态和基元集合结果确定）"""

    def update_start(self, state: np.ndarray) -> None:
        """规划空间起点变化通知"""

    def update_goal(self, goal: GoalConstraint) -> None:
        """规划空间目标变化通知"""


class PrimitiveActionSpace(ActionSpace):
    """基于运动基元的动作空间

    Example:
        >>> aspace = PrimitiveActionSpace(lattice)
        >>> aspace.load("actions.json")
        >>> lattice.set_action_space(aspace)
        >>> actions = aspace.apply(lattice.id_to_state(start_id))
    """

    def __init__(self, planning_space, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(planning_space, logger)
        self._mprims: List[MotionPrimitive] = []
        self._enabled: Dict[MotionPrimitiveType, bool] = {t: False for t in _T}
        self._enabled[_T.LONG_DISTANCE] = True
        self._thresh: Dict[MotionPrimitiveType, float] = dict(DEFAULT_THRESHOLDS)
        self.use_long_and_short_prims = False
        self._start: Optional[np.ndarray] = None
        self._goal: Optional[GoalConstraint] = None

        # 缺省：连续变量视为姿态变量，其余视为位置变量
        continuous = planning_space.robot.continuous
        self.position_variables: List[int] = [
            i for i, c in enumerate(continuous) if not c]
        self.orientation_variables: List[int] = [
            i for i, c in enumerate(continuous) if c]

    # ── 基元集合 ──

    @property
    def primitives(self) -> List[MotionPrimitive]:
        return list(self._mprims)

    def __iter__(self) -> Iterator[MotionPrimitive]:
        return iter(self._mprims)

    def __len__(self) -> int:
        return len(self._mprims)

    def clear(self) -> None:
        self._mprims.clear()
        self._enabled = {t: False for t in _T}
        self._enabled[_T.LONG_DISTANCE] = True
        self._thresh = dict(DEFAULT_THRESHOLDS)

    def add_motion_primitive(
        self,
        prim: MotionPrimitive,
        bidirectional: bool = False,
    ) -> None:
        """添加运动基元；自适应基元每种类型只保留一个"""
        if prim.type.is_adaptive:
            if any(p.type is prim.type for p in self._mprims):
                return
            self._mprims.append(prim)
            return
        n = self.planning_space.robot.n_variables
        for d in prim.action:
            if d.shape != (n,):
                raise ValueError(f"基元偏移维度 {d.shape} 与规划变量数 {n} 不符")
        self._mprims.append(prim)
        if bidirectional:
            self._mprims.append(prim.negated())

    def use_amp(self, type: MotionPrimitiveType) -> bool:
        return self._enabled[type]

    def amp_thresh(self, type: MotionPrimitiveType) -> float:
        return self._thresh[type]

    def set_amp(
        self,
        type: MotionPrimitiveType,
        enabled: bool,
        thresh: Optional[float] = None,
    ) -> None:
        """开关某类基元的激活并设置阈值"""
        self._enabled[type] = bool(enabled)
        if thresh is not None:
            self._thresh[type] = float(thresh)

    # ── 加载 ──

    def load(self, filename: str) -> None:
        """从 JSON 文件加载运动基元（覆盖当前基元集合）

        Raises:
            ConfigError: 规划空间尚未设置离散化分辨率
            UnknownVariableError: 引用了不在离散化配置中的变量
            LoadError: 文件不可读或格式错误
        """
        pspace = self.planning_space
        if not pspace.initialized:
            raise ConfigError("规划空间尚未设置离散化分辨率，无法加载运动基元")
        names = pspace.robot.variable_names

        try:
            with open(filename, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise LoadError(f"无法读取运动基元文件 {filename}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get('primitives'), list):
            raise LoadError(f'{filename}: 缺少 "primitives" 列表')

        units = data.get('units', 'radians')
        if units not in ('radians', 'degrees'):
            raise LoadError(f"{filename}: 未知单位 '{units}'")
        scale = math.pi / 180.0 if units == 'degrees' else 1.0

        self.clear()
        self.use_long_and_short_prims = bool(data.get('use_long_and_short_prims', False))
        if 'position_variables' in data:
            self.position_variables = self._variable_indices(
                data['position_variables'], names, filename)
        if 'orientation_variables' in data:
            self.orientation_variables = self._variable_indices(
                data['orientation_variables'], names, filename)

        for i, rec in enumerate(data['primitives']):
            if not isinstance(rec, dict):
                raise LoadError(f"{filename}: 第 {i} 条基元不是对象")
            try:
                ptype = MotionPrimitiveType(rec.get('type', _T.LONG_DISTANCE.value))
            except ValueError:
                raise LoadError(
                    f"{filename}: 第 {i} 条基元类型未知 '{rec.get('type')}'") from None

            if ptype.is_adaptive or ptype is _T.SHORT_DISTANCE:
                thresh = rec.get('threshold')
                if thresh is not None:
                    thresh = self._to_float(thresh, filename, 'threshold')
                self.set_amp(ptype, rec.get('enabled', True), thresh)
            if ptype.is_adaptive:
                self.add_motion_primitive(MotionPrimitive(ptype))
                continue

            deltas = rec.get('deltas')
            if isinstance(deltas, dict):
                deltas = [deltas]
            if not isinstance(deltas, list) or not deltas:
                raise LoadError(f'{filename}: 第 {i} 条基元缺少 "deltas"')
            steps = [self._parse_delta(d, names, scale, filename) for d in deltas]
            self.add_motion_primitive(
                MotionPrimitive(ptype, steps),
                bidirectional=bool(rec.get('bidirectional', False)),
            )

        self._log.info("从 %s 加载 %d 个运动基元", filename, len(self._mprims))

    @staticmethod
    def _to_float(value: Any, source: str, what: str) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise LoadError(f"{source}: {what} 不是数值: {value!r}") from None

    @staticmethod
    def _variable_indices(
        variables: Sequence[str],
        names: Sequence[str],
        source: str,
    ) -> List[int]:
        indices = []
        for name in variables:
            if name not in names:
                raise UnknownVariableError(name, source)
            indices.append(names.index(name))
        return indices

    def _parse_delta(
        self,
        delta: Any,
        names: Sequence[str],
        scale: float,
        source: str,
    ) -> np.ndarray:
        if not isinstance(delta, dict):
            raise LoadError(f"{source}: 偏移必须是 {{变量名: 值}} 对象")
        vec = np.zeros(len(names), dtype=np.float64)
        for name, value in delta.items():
            if name not in names:
                raise UnknownVariableError(name, source)
            vec[names.index(name)] = self._to_float(value, source, name) * scale
        return vec

    # ── 起点 / 目标 ──

    def update_start(self, state: np.ndarray) -> None:
        self._start = np.asarray(state, dtype=np.float64)

    def update_goal(self, goal: GoalConstraint) -> None:
        self._goal = goal

    def _position_distance(self, state: np.ndarray, ref: np.ndarray) -> float:
        if not self.position_variables:
            return math.inf
        idx = self.position_variables
        return float(np.linalg.norm(state[idx] - ref[idx]))

    def goal_distance(self, state: np.ndarray) -> float:
        """到目标的位置距离（无目标时为 inf）"""
        if self._goal is None:
            return math.inf
        return self._position_distance(state, self._goal.target)

    def start_distance(self, state: np.ndarray) -> float:
        if self._start is None:
            return math.inf
        return self._position_distance(state, self._start)

    def orientation_distance(self, state: np.ndarray) -> float:
        """到目标的最大姿态角距离（无目标或无姿态变量时为 inf）"""
        if self._goal is None or not self.orientation_variables:
            return math.inf
        return max(shortest_angle_dist(state[i], self._goal.target[i])
                   for i in self.orientation_variables)

    # ── 动作生成 ──

    def _mprim_active(
        self,
        state: np.ndarray,
        start_dist: float,
        goal_dist: float,
        type: MotionPrimitiveType,
    ) -> bool:
        near_endpoint = (goal_dist <= self._thresh[_T.SHORT_DISTANCE]
                         or start_dist <= self._thresh[_T.SHORT_DISTANCE])
        if type is _T.LONG_DISTANCE:
            if self.use_long_and_short_prims:
                return True
            return not (self._enabled[_T.SHORT_DISTANCE] and near_endpoint)
        if type is _T.SHORT_DISTANCE:
            if self.use_long_and_short_prims:
                return self._enabled[type]
            return self._enabled[type] and near_endpoint
        if not self._enabled[type]:
            return False
        if type is _T.SNAP_TO_RPY:
            return self.orientation_distance(state) <= self._thresh[type]
        return goal_dist <= self._thresh[type]

    def _snap_indices(self, type: MotionPrimitiveType) -> List[int]:
        if type is _T.SNAP_TO_XYZ:
            return list(self.position_variables)
        if type is _T.SNAP_TO_RPY:
            return list(self.orientation_variables)
        return list(self.position_variables) + list(self.orientation_variables)

    def _get_action(self, state: np.ndarray, prim: MotionPrimitive) -> Optional[Action]:
        if not prim.type.is_adaptive:
            return Action([state + d for d in prim.action], prim.type, prim)

        idx = self._snap_indices(prim.type)
        if self._goal is None or not idx:
            return None
        target = state.copy()
        target[idx] = self._goal.target[idx]
        pspace = self.planning_space
        waypoints = interpolate_motion(
            state, target,
            pspace.params.interpolation_resolution,
            pspace.robot.continuous,
        )
        return Action(waypoints, prim.type, prim)

    def apply(self, state: np.ndarray) -> List[Action]:
        state = np.asarray(state, dtype=np.float64)
        goal_dist = self.goal_distance(state)
        start_dist = self.start_distance(state)

        actions: List[Action] = []
        for prim in self._mprims:
            if not self._mprim_active(state, start_dist, goal_dist, prim.type):
                continue
            action = self._get_action(state, prim)
            if action is not None:
                actions.append(action)
        return actions
