"""
egraph_lattice/lattice.py - 规划格点（状态空间图）

把连续关节空间按每变量分辨率离散化为整数坐标，维护
StateID ⟷ 坐标 的双向表，并为搜索算法生成后继：

1. 动作空间给出候选动作（路点序列）
2. 关节限制 + 碰撞检测（相邻路点间插值）
3. 终点离散化，过滤与父状态同坐标的退化动作
4. 终点满足目标时报告目标 id，否则分配/复用坐标对应的 id

State ID 从 0 开始按首次出现顺序分配，在格点生命周期内保持稳定。
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .angles import TWO_PI, normalize_angle, normalize_angle_positive, shortest_angle_diff
from .collision import CollisionSpace
from .errors import ConfigError, PathInconsistencyError, StateLookupError
from .extensions import (
    Extension,
    ExtractRobotStateExtension,
    PointProjectionExtension,
    lookup_extension,
)
from .models import Action, GoalConstraint, LatticeState, PlanningParams
from .robot import RobotModel

Coord = Tuple[int, ...]

COST_METRICS = ('unit', 'joint_distance')


class Lattice(ExtractRobotStateExtension, PointProjectionExtension):
    """离散格点规划空间

    生命周期: 构造后处于未初始化状态；``init(resolutions)`` 后可用。
    分辨率一经设置不可修改。

    Args:
        robot: 机器人模型（变量名、关节限制、连续变量）
        collision_space: 碰撞检测器
        params: 规划参数（代价度量、插值步长等）
        logger: 注入的日志器

    Example:
        >>> lattice = Lattice(robot, cspace)
        >>> lattice.init([0.1])
        >>> aspace = PrimitiveActionSpace(lattice)
        >>> aspace.load("actions.json")
        >>> lattice.set_action_space(aspace)
        >>> start_id = lattice.set_start(np.zeros(1))
        >>> succs, costs = lattice.get_succs(start_id)
    """

    def __init__(
        self,
        robot: RobotModel,
        collision_space: CollisionSpace,
        params: Optional[PlanningParams] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.robot = robot
        self.collision_space = collision_space
        self.params = params if params is not None else PlanningParams()
        self._log = logger if logger is not None else logging.getLogger(__name__)

        self._resolutions: Optional[np.ndarray] = None
        self._num_bins: List[int] = []
        self._weights = np.ones(robot.n_variables)

        self._states: List[LatticeState] = []
        self._coord_to_id: Dict[Coord, int] = {}

        self._action_space = None
        self._start_id: Optional[int] = None
        self._goal: Optional[GoalConstraint] = None
        self._goal_id: Optional[int] = None
        self._n_expansions = 0

    # ── 初始化 ──

    def init(self, resolutions: Sequence[float]) -> None:
        """设置每变量离散化分辨率

        Raises:
            ConfigError: 数量与变量数不符、分辨率非正，或重复初始化
        """
        if self._resolutions is not None:
            raise ConfigError("格点分辨率已设置，不能重复初始化")
        n = self.robot.n_variables
        res = np.asarray(resolutions, dtype=np.float64).ravel()
        if res.shape != (n,):
            raise ConfigError(f"需要 {n} 个分辨率，得到 {res.size} 个")
        if not np.all(np.isfinite(res)) or np.any(res <= 0.0):
            raise ConfigError(f"分辨率必须为正: {res.tolist()}")
        if self.params.cost_metric not in COST_METRICS:
            raise ConfigError(
                f"未知代价度量 '{self.params.cost_metric}'，可选 {COST_METRICS}")

        weights = np.ones(n)
        for name, w in (self.params.variable_weights or {}).items():
            if name not in self.robot.variable_names:
                raise ConfigError(f"variable_weights 中的变量 '{name}' 不存在")
            weights[self.robot.variable_index(name)] = float(w)

        self._resolutions = res
        self._weights = weights
        self._num_bins = [
            max(1, int(round(TWO_PI / r))) if c else 0
            for r, c in zip(res, self.robot.continuous)
        ]
        self._log.debug("格点初始化: 分辨率 %s", res.tolist())

    @property
    def initialized(self) -> bool:
        return self._resolutions is not None

    @property
    def resolutions(self) -> np.ndarray:
        self._require_initialized()
        return self._resolutions.copy()

    def _require_initialized(self) -> None:
        if self._resolutions is None:
            raise ConfigError("格点尚未初始化（缺少离散化分辨率）")

    # ── 离散化 ──

    def discretize(self, state: Sequence[float]) -> Coord:
        """连续状态 → 整数坐标

        非连续变量 round(v / res)；连续变量先归一化到 [0, 2π)，再按 bin 数取模。
        """
        self._require_initialized()
        state = self._as_state(state)
        coord = []
        for i, v in enumerate(state):
            res = self._resolutions[i]
            if self._num_bins[i]:
                c = int(math.floor(normalize_angle_positive(v) / res + 0.5)) % self._num_bins[i]
            else:
                c = int(math.floor(v / res + 0.5))
            coord.append(c)
        return tuple(coord)

    def coord_to_state(self, coord: Sequence[int]) -> np.ndarray:
        """整数坐标 → bin 中心的连续状态"""
        self._require_initialized()
        state = np.asarray(coord, dtype=np.float64) * self._resolutions
        for i, nb in enumerate(self._num_bins):
            if nb:
                state[i] = normalize_angle(state[i])
        return state

    def _as_state(self, state: Sequence[float]) -> np.ndarray:
        state = np.asarray(state, dtype=np.float64)
        if state.shape != (self.robot.n_variables,):
            raise ValueError(
                f"状态维度 {state.shape} 与规划变量数 {self.robot.n_variables} 不符")
        return state

    # ── 状态表 ──

    @property
    def num_states(self) -> int:
        return len(self._states)

    def get_or_create_state(self, coord: Coord, state: np.ndarray) -> int:
        """返回坐标对应的 id，不存在时以 state 作为代表状态新建"""
        state_id = self._coord_to_id.get(coord)
        if state_id is None:
            state_id = len(self._states)
            self._states.append(LatticeState(coord, np.array(state, dtype=np.float64)))
            self._coord_to_id[coord] = state_id
        return state_id

    def state_to_id(self, state: Sequence[float]) -> int:
        """连续状态 → id（坐标未出现过时分配新 id）"""
        state = self._as_state(state)
        return self.get_or_create_state(self.discretize(state), state)

    def find_state_id(self, coord: Sequence[int]) -> Optional[int]:
        """已分配坐标的 id，未分配返回 None"""
        return self._coord_to_id.get(tuple(int(c) for c in coord))

    def _entry(self, state_id: int) -> LatticeState:
        if not isinstance(state_id, (int, np.integer)) or not 0 <= state_id < len(self._states):
            raise StateLookupError(f"未知的 state id: {state_id}")
        return self._states[state_id]

    def id_to_state(self, state_id: int) -> np.ndarray:
        """id → 代表连续状态（副本）

        Raises:
            StateLookupError: id 未分配
        """
        return self._entry(state_id).state.copy()

    def id_to_coord(self, state_id: int) -> Coord:
        return self._entry(state_id).coord

    # ── 动作空间 / 起点 / 目标 ──

    @property
    def action_space(self):
        return self._action_space

    def set_action_space(self, action_space) -> None:
        """绑定动作空间

        Raises:
            ConfigError: 格点未初始化、动作空间属于其他规划空间，
                或已开始生成后继后更换动作空间
        """
        self._require_initialized()
        if action_space.planning_space is not self:
            raise ConfigError("动作空间绑定的规划空间不是当前格点")
        if self._n_expansions > 0 and action_space is not self._action_space:
            raise ConfigError("已开始生成后继，不能更换动作空间")
        self._action_space = action_space
        if self._start_id is not None:
            action_space.update_start(self.id_to_state(self._start_id))
        if self._goal is not None:
            action_space.update_goal(self._goal)

    @property
    def start_state_id(self) -> Optional[int]:
        return self._start_id

    @property
    def goal_state_id(self) -> Optional[int]:
        return self._goal_id

    @property
    def goal(self) -> Optional[GoalConstraint]:
        return self._goal

    def set_start(self, state: Sequence[float]) -> int:
        """设置起点，返回起点 id"""
        self._require_initialized()
        state = self._as_state(state)
        if not self.collision_space.is_state_valid(state):
            self._log.warning("起点 %s 不满足限制或处于碰撞中", np.round(state, 4).tolist())
        self._start_id = self.state_to_id(state)
        if self._action_space is not None:
            self._action_space.update_start(state)
        self._log.debug("起点 id=%d coord=%s", self._start_id, self.id_to_coord(self._start_id))
        return self._start_id

    def set_goal(self, goal: Union[GoalConstraint, Sequence[float]]) -> int:
        """设置目标，返回目标 id

        目标 id 即目标状态所在坐标的 id；任何满足目标容差的后继都以该 id 报告。
        """
        self._require_initialized()
        if not isinstance(goal, GoalConstraint):
            goal = GoalConstraint(goal)
        self._as_state(goal.target)
        self._goal = goal
        self._goal_id = self.state_to_id(goal.target)
        if self._action_space is not None:
            self._action_space.update_goal(goal)
        self._log.debug("目标 id=%d coord=%s", self._goal_id, self.id_to_coord(self._goal_id))
        return self._goal_id

    def is_goal(self, state: Sequence[float]) -> bool:
        """状态是否满足目标容差（连续变量按最短弧）"""
        if self._goal is None:
            return False
        state = np.asarray(state, dtype=np.float64)
        for i, c in enumerate(self.robot.continuous):
            if c:
                d = abs(shortest_angle_diff(state[i], self._goal.target[i]))
            else:
                d = abs(state[i] - self._goal.target[i])
            if d > self._goal.tolerance[i] + 1e-9:
                return False
        return True

    # ── 代价 ──

    def state_distance(self, a: np.ndarray, b: np.ndarray) -> float:
        """加权关节距离（连续变量按最短弧）"""
        diff = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
        for i, c in enumerate(self.robot.continuous):
            if c:
                diff[i] = shortest_angle_diff(b[i], a[i])
        return float(np.sqrt(np.sum(self._weights * diff * diff)))

    def motion_cost(self, parent: np.ndarray, waypoints: Sequence[np.ndarray]) -> int:
        """parent 经 waypoints 的运动代价（正整数）"""
        if self.params.cost_metric == 'unit':
            return int(self.params.cost_per_cell)
        dist = 0.0
        prev = parent
        for q in waypoints:
            dist += self.state_distance(prev, q)
            prev = q
        return max(1, int(round(dist * self.params.cost_per_unit_distance)))

    # ── 后继 ──

    def _check_action(
        self,
        parent: np.ndarray,
        parent_coord: Coord,
        action: Action,
    ) -> Optional[Coord]:
        """动作可行时返回终点坐标；空动作、越限、碰撞或退化时返回 None"""
        if len(action) == 0:
            return None
        for q in action.waypoints:
            if not self.robot.check_limits(q):
                return None
        succ_coord = self.discretize(action.final_state)
        if succ_coord == parent_coord:
            return None
        if not self.collision_space.is_free([parent] + list(action.waypoints)):
            return None
        return succ_coord

    def _require_action_space(self) -> None:
        if self._action_space is None:
            raise ConfigError("尚未设置动作空间")

    def get_succs(self, state_id: int) -> Tuple[List[int], List[int]]:
        """生成 state_id 的后继

        对同一 id 重复调用结果相同（除首次调用时分配新 id 外无其他副作用）。

        Returns:
            (后继 id 列表, 对应代价列表)

        Raises:
            StateLookupError: state_id 未分配
            ConfigError: 未设置动作空间
        """
        entry = self._entry(state_id)
        self._require_action_space()
        self._n_expansions += 1

        parent = entry.state
        succs: List[int] = []
        costs: List[int] = []
        for action in self._action_space.apply(parent):
            succ_coord = self._check_action(parent, entry.coord, action)
            if succ_coord is None:
                continue
            final = action.final_state
            if self._goal_id is not None and self.is_goal(final):
                succ_id = self._goal_id
            else:
                succ_id = self.get_or_create_state(succ_coord, final)
            if succ_id == state_id:
                continue
            succs.append(succ_id)
            costs.append(self.motion_cost(parent, action.waypoints))
        return succs, costs

    # ── 路径提取 ──

    def _find_action_motion(self, src_id: int, dst_id: int) -> Optional[List[np.ndarray]]:
        """src → dst 的最便宜可行动作的路点（不含 src）"""
        entry = self._entry(src_id)
        dst_coord = self.id_to_coord(dst_id)
        parent = entry.state
        best: Optional[Action] = None
        best_cost = math.inf
        for action in self._action_space.apply(parent):
            succ_coord = self._check_action(parent, entry.coord, action)
            if succ_coord is None:
                continue
            reaches = succ_coord == dst_coord or (
                dst_id == self._goal_id and self.is_goal(action.final_state))
            if not reaches:
                continue
            cost = self.motion_cost(parent, action.waypoints)
            if cost < best_cost:
                best, best_cost = action, cost
        if best is None:
            return None
        return [q.copy() for q in best.waypoints]

    def _resolve_transition(self, src_id: int, dst_id: int) -> Optional[List[np.ndarray]]:
        """相邻 id 间的连续运动（子类可扩展其他边类型）"""
        return self._find_action_motion(src_id, dst_id)

    def extract_path(self, ids: Sequence[int]) -> List[np.ndarray]:
        """id 序列 → 连续路点序列

        对每对相邻 id 重新找出连接它们的运动，路点按顺序拼接。

        Raises:
            PathInconsistencyError: 某对相邻 id 无法由任何边连接
        """
        if len(ids) == 0:
            return []
        self._require_action_space()
        path = [self.extract_state(ids[0])]
        for i in range(1, len(ids)):
            try:
                motion = self._resolve_transition(ids[i - 1], ids[i])
            except StateLookupError as e:
                raise PathInconsistencyError(i, ids[i - 1], ids[i]) from e
            if motion is None:
                self._log.error("路径第 %d 步 %d → %d 找不到对应的边", i, ids[i - 1], ids[i])
                raise PathInconsistencyError(i, ids[i - 1], ids[i])
            path.extend(motion)
        return path

    # ── 扩展 ──

    def extract_state(self, state_id: int) -> np.ndarray:
        return self.id_to_state(state_id)

    def project_to_point(self, state_id: int) -> Optional[np.ndarray]:
        """末端连杆位置（机器人不提供正运动学时返回 None）"""
        state = self.id_to_state(state_id)
        try:
            positions = self.robot.get_link_positions(state)
        except NotImplementedError:
            return None
        return np.asarray(positions[-1], dtype=np.float64)

    def get_extension(self, code) -> Optional[Extension]:
        """按扩展代码查询能力，不支持时返回 None"""
        return lookup_extension(self, code)

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(robot={self.robot.name!r}, "
                f"n_states={self.num_states}, initialized={self.initialized})")
