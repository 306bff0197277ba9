"""
egraph_lattice/lattice_egraph.py - 带经验图的规划格点

在 Lattice 的基础上把经验图节点绑定到格点状态：

- 完整坐标 bin: 坐标 → 落在该坐标的经验图节点
- 位姿 bin: 坐标在位姿变量上的投影 → 节点（完整坐标 bin 的超集）

后继在格点动作之外追加两类边：

1. 示教边：父状态所在坐标 bin 中节点的经验图邻居
2. 吸附边：与父状态同位姿 bin 的其他经验图状态（需通过 snap 校验）
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .collision import CollisionSpace, interpolate_motion
from .errors import ConfigError, LoadError, StateLookupError
from .experience_graph import (
    ExperienceGraph,
    find_shortest_experience_graph_path,
    load_demonstration,
)
from .extensions import ExperienceGraphExtension
from .lattice import Coord, Lattice
from .models import PlanningParams
from .robot import RobotModel

DEFAULT_POSE_VARIABLES = ('x', 'y', 'z', 'yaw')
DEMONSTRATION_SUFFIXES = ('.json', '.csv')


class LatticeEGraph(Lattice, ExperienceGraphExtension):
    """支持经验图的离散格点

    Example:
        >>> lattice = LatticeEGraph(robot, cspace)
        >>> lattice.init([0.1])
        >>> lattice.load_experience_graph("demos/")
        >>> nodes = lattice.get_experience_graph_nodes(lattice.state_to_id([0.1]))
        >>> succs, costs = lattice.get_succs(state_id, unique=True)
    """

    def __init__(
        self,
        robot: RobotModel,
        collision_space: CollisionSpace,
        params: Optional[PlanningParams] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(robot, collision_space, params, logger)
        self._egraph = ExperienceGraph()
        self._egraph_node_to_state: List[int] = []
        self._state_to_egraph_node: Dict[int, int] = {}
        self._coord_to_egraph_nodes: Dict[Coord, List[int]] = defaultdict(list)
        self._pose_to_egraph_nodes: Dict[Tuple[int, ...], List[int]] = defaultdict(list)
        self._pose_indices: List[int] = []

    def init(self, resolutions: Sequence[float]) -> None:
        super().init(resolutions)
        self._pose_indices = self._resolve_pose_indices()

    def _resolve_pose_indices(self) -> List[int]:
        names = self.robot.variable_names
        if self.params.pose_variables is not None:
            unknown = [n for n in self.params.pose_variables if n not in names]
            if unknown:
                raise ConfigError(f"pose_variables 中的变量不存在: {unknown}")
            return [names.index(n) for n in self.params.pose_variables]
        if all(n in names for n in DEFAULT_POSE_VARIABLES):
            return [names.index(n) for n in DEFAULT_POSE_VARIABLES]
        return list(range(len(names)))

    def pose_key(self, coord: Sequence[int]) -> Tuple[int, ...]:
        """坐标在位姿变量上的投影"""
        return tuple(coord[i] for i in self._pose_indices)

    # ── 加载 ──

    def _clear_egraph(self) -> None:
        self._egraph.clear()
        self._egraph_node_to_state.clear()
        self._state_to_egraph_node.clear()
        self._coord_to_egraph_nodes.clear()
        self._pose_to_egraph_nodes.clear()

    def _insert_demonstration(self, demo: List[np.ndarray]) -> None:
        for node_id in self._egraph.add_path(demo):
            state = self._egraph.state(node_id)
            coord = self.discretize(state)
            state_id = self.get_or_create_state(coord, state)
            self._egraph_node_to_state.append(state_id)
            self._state_to_egraph_node.setdefault(state_id, node_id)
            self._coord_to_egraph_nodes[coord].append(node_id)
            self._pose_to_egraph_nodes[self.pose_key(coord)].append(node_id)

    def load_experience_graph(self, path: str) -> None:
        """从示教路径文件或目录构建经验图（替换已有经验图）

        目录下所有 .json / .csv 文件按文件名顺序加载；无法解析的文件记录
        警告后跳过。全部文件解析完成后才替换旧经验图，加载失败时旧经验图保持不变。

        Raises:
            ConfigError: 格点尚未初始化
            LoadError: 路径不存在或没有任何可用的示教路径
        """
        self._require_initialized()
        root = Path(path)
        if root.is_dir():
            files = sorted(f for f in root.iterdir()
                           if f.is_file() and f.suffix.lower() in DEMONSTRATION_SUFFIXES)
        elif root.is_file():
            files = [root]
        else:
            raise LoadError(f"经验图路径不存在: {path}")

        demos = []
        for f in files:
            try:
                demo = load_demonstration(f, self.robot.variable_names)
            except LoadError as e:
                self._log.warning("跳过示教路径 %s: %s", f.name, e)
                continue
            if not demo:
                self._log.warning("跳过空示教路径 %s", f.name)
                continue
            demos.append(demo)

        if not demos:
            raise LoadError(f"{path} 中没有可用的示教路径")
        self._clear_egraph()
        for demo in demos:
            self._insert_demonstration(demo)
        self._log.info("经验图加载完成: %d 条示教, %d 个节点, %d 条边",
                       len(demos), self._egraph.num_nodes, self._egraph.num_edges)

    # ── 查询 ──

    def get_experience_graph(self) -> ExperienceGraph:
        return self._egraph

    def get_state_id(self, node_id: int) -> int:
        """经验图节点 → state id

        Raises:
            StateLookupError: 节点不存在
        """
        if not 0 <= node_id < len(self._egraph_node_to_state):
            raise StateLookupError(f"未知的经验图节点: {node_id}")
        return self._egraph_node_to_state[node_id]

    def get_experience_graph_node(self, state_id: int) -> Optional[int]:
        """state id 对应的首个经验图节点（非经验图状态返回 None）"""
        return self._state_to_egraph_node.get(state_id)

    def get_experience_graph_nodes(self, state_id: int) -> List[int]:
        coord = self.id_to_coord(state_id)
        return list(self._coord_to_egraph_nodes.get(coord, ()))

    def get_pose_bin_nodes(self, state_id: int) -> List[int]:
        """与 state_id 位于同一位姿 bin 的经验图节点"""
        key = self.pose_key(self.id_to_coord(state_id))
        return list(self._pose_to_egraph_nodes.get(key, ()))

    # ── 边 ──

    def snap(self, first_id: int, second_id: int) -> Optional[int]:
        """first → second 的吸附运动代价

        second 须为经验图状态（其坐标 bin 中有经验图节点）；两状态须不同、
        位于同一位姿 bin，且插值运动满足限制并无碰撞。
        """
        if first_id == second_id:
            return None
        if not self.get_experience_graph_nodes(second_id):
            return None
        a = self.id_to_state(first_id)
        b = self.id_to_state(second_id)
        if self.pose_key(self.id_to_coord(first_id)) != self.pose_key(self.id_to_coord(second_id)):
            return None
        if not self.robot.check_limits(b):
            return None
        if not self.collision_space.is_free([a, b]):
            return None
        return self.motion_cost(a, [b])

    def shortcut(self, src_id: int, dst_id: int) -> Optional[int]:
        """src、dst 所在坐标 bin 的经验图节点之间的最短经验图路径代价"""
        src_nodes = self.get_experience_graph_nodes(src_id)
        dst_nodes = self.get_experience_graph_nodes(dst_id)
        if not src_nodes or not dst_nodes:
            return None
        found = find_shortest_experience_graph_path(self._egraph, src_nodes, dst_nodes)
        if found is None:
            return None
        return int(round(found[1]))

    def _target_id(self, node_id: int) -> int:
        if self._goal_id is not None and self.is_goal(self._egraph.state(node_id)):
            return self._goal_id
        return self._egraph_node_to_state[node_id]

    def get_succs(self, state_id: int, unique: bool = False) -> Tuple[List[int], List[int]]:
        """格点后继 + 示教边 + 吸附边

        Args:
            state_id: 父状态 id
            unique: 为 True 时同一后继只保留最小代价（保持首次出现顺序）
        """
        succs, costs = super().get_succs(state_id)
        entry = self._entry(state_id)
        parent = entry.state

        for node_id in self._coord_to_egraph_nodes.get(entry.coord, ()):
            for adj in self._egraph.adjacent_nodes(node_id):
                succ_id = self._target_id(adj)
                if succ_id == state_id:
                    continue
                target = self._egraph.state(adj)
                if not self.robot.check_limits(target):
                    continue
                if not self.collision_space.is_free([parent, target]):
                    continue
                succs.append(succ_id)
                costs.append(self.motion_cost(parent, [target]))

        for node_id in self._pose_to_egraph_nodes.get(self.pose_key(entry.coord), ()):
            succ_id = self._egraph_node_to_state[node_id]
            if succ_id == state_id:
                continue
            cost = self.snap(state_id, succ_id)
            if cost is None:
                continue
            if self._goal_id is not None and self.is_goal(self._egraph.state(node_id)):
                succ_id = self._goal_id
            succs.append(succ_id)
            costs.append(cost)

        if unique:
            succs, costs = self._unique(succs, costs)
        return succs, costs

    @staticmethod
    def _unique(succs: List[int], costs: List[int]) -> Tuple[List[int], List[int]]:
        best: Dict[int, int] = {}
        for s, c in zip(succs, costs):
            if s not in best or c < best[s]:
                best[s] = c
        return list(best), list(best.values())

    # ── 路径提取 ──

    def _find_egraph_motion(self, src_id: int, dst_id: int) -> Optional[List[np.ndarray]]:
        src_nodes = self.get_experience_graph_nodes(src_id)
        if not src_nodes:
            return None
        dst_nodes = set(self.get_experience_graph_nodes(dst_id))
        if dst_id == self._goal_id:
            dst_nodes.update(n for n in self._egraph.nodes()
                             if self.is_goal(self._egraph.state(n)))
        found = find_shortest_experience_graph_path(self._egraph, src_nodes, dst_nodes)
        if found is None:
            return None
        route, _ = found
        return [self._egraph.state(n).copy() for n in route[1:]]

    def _find_snap_motion(self, src_id: int, dst_id: int) -> Optional[List[np.ndarray]]:
        targets = [dst_id]
        if dst_id == self._goal_id:
            # 吸附到满足目标容差的节点时，后继被记为 goal id
            for node_id in self.get_pose_bin_nodes(src_id):
                if self.is_goal(self._egraph.state(node_id)):
                    targets.append(self._egraph_node_to_state[node_id])
        for target_id in targets:
            if self.snap(src_id, target_id) is None:
                continue
            return interpolate_motion(
                self.id_to_state(src_id),
                self.id_to_state(target_id),
                self.params.interpolation_resolution,
                self.robot.continuous,
            )
        return None

    def _resolve_transition(self, src_id: int, dst_id: int) -> Optional[List[np.ndarray]]:
        """依次尝试：格点动作 → 经验图路径 → 吸附运动"""
        motion = self._find_action_motion(src_id, dst_id)
        if motion is None:
            motion = self._find_egraph_motion(src_id, dst_id)
        if motion is None:
            motion = self._find_snap_motion(src_id, dst_id)
        return motion
