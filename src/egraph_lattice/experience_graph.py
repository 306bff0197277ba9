"""
egraph_lattice/experience_graph.py - 经验图

由示教路径构成的无向图：节点保存连续状态，边连接示教中相邻的路点。
规划空间把经验图节点绑定到格点状态上，用于 E-Graph 启发式搜索。

示教路径文件格式：

- JSON：与规划结果保存格式一致，读取 ``"path"`` 键（可选 ``"variable_names"``）
- CSV：每行一个路点；首行可以是变量名表头（按表头重排列顺序）
"""

import csv
import heapq
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import LoadError

logger = logging.getLogger(__name__)


@dataclass
class EGraphNode:
    """经验图节点

    Attributes:
        node_id: 节点 id（从 0 连续分配）
        state: 连续状态
        neighbors: 相邻节点 id → 边权
    """
    node_id: int
    state: np.ndarray
    neighbors: Dict[int, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.state = np.asarray(self.state, dtype=np.float64)


class ExperienceGraph:
    """无向经验图

    Example:
        >>> eg = ExperienceGraph()
        >>> ids = eg.add_path([[0.0], [0.1], [0.2]])
        >>> eg.adjacent_nodes(ids[1])
        [0, 2]
    """

    def __init__(self) -> None:
        self._nodes: List[EGraphNode] = []
        self._n_edges = 0

    def clear(self) -> None:
        self._nodes.clear()
        self._n_edges = 0

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    @property
    def num_edges(self) -> int:
        return self._n_edges

    def __len__(self) -> int:
        return len(self._nodes)

    def nodes(self) -> Iterator[int]:
        return iter(range(len(self._nodes)))

    def edges(self, node_id: Optional[int] = None) -> Iterator[Tuple[int, int, float]]:
        """边 (u, v, weight)

        node_id 为 None 时列出所有边，每条无向边只出现一次 (u < v)；
        否则列出与该节点相连的边 (node_id, v, weight)。
        """
        if node_id is not None:
            for v, w in sorted(self._node(node_id).neighbors.items()):
                yield node_id, v, w
            return
        for node in self._nodes:
            for v, w in node.neighbors.items():
                if node.node_id < v:
                    yield node.node_id, v, w

    def _node(self, node_id: int) -> EGraphNode:
        if not 0 <= node_id < len(self._nodes):
            raise KeyError(f"经验图节点 {node_id} 不存在")
        return self._nodes[node_id]

    def state(self, node_id: int) -> np.ndarray:
        return self._node(node_id).state

    def insert_node(self, state: Sequence[float]) -> int:
        node_id = len(self._nodes)
        self._nodes.append(EGraphNode(node_id, np.array(state, dtype=np.float64)))
        return node_id

    def insert_edge(self, u: int, v: int, weight: float = 1.0) -> bool:
        """插入无向边；自环或重复边返回 False"""
        nu, nv = self._node(u), self._node(v)
        if u == v or v in nu.neighbors:
            return False
        nu.neighbors[v] = float(weight)
        nv.neighbors[u] = float(weight)
        self._n_edges += 1
        return True

    def add_path(self, path: Iterable[Sequence[float]]) -> List[int]:
        """插入一条示教路径，相邻路点之间连边

        Returns:
            新节点 id 列表（与路点一一对应）
        """
        ids = [self.insert_node(q) for q in path]
        for u, v in zip(ids[:-1], ids[1:]):
            self.insert_edge(u, v)
        return ids

    def adjacent_nodes(self, node_id: int) -> List[int]:
        return sorted(self._node(node_id).neighbors)

    def edge_weight(self, u: int, v: int) -> Optional[float]:
        return self._node(u).neighbors.get(v)

    def __repr__(self) -> str:
        return f"ExperienceGraph(n_nodes={self.num_nodes}, n_edges={self.num_edges})"


def find_shortest_experience_graph_path(
    egraph: ExperienceGraph,
    sources: Iterable[int],
    targets: Iterable[int],
) -> Optional[Tuple[List[int], float]]:
    """多源多汇 Dijkstra

    Args:
        egraph: 经验图
        sources: 起始节点集合
        targets: 目标节点集合

    Returns:
        (节点序列, 路径代价)；不连通返回 None
    """
    targets = set(targets)
    if not targets:
        return None

    dist: Dict[int, float] = {}
    prev: Dict[int, int] = {}
    heap: List[Tuple[float, int]] = []
    for s in sources:
        if s not in dist:
            dist[s] = 0.0
            heapq.heappush(heap, (0.0, s))
    visited = set()

    while heap:
        d, u = heapq.heappop(heap)
        if u in visited:
            continue
        visited.add(u)

        if u in targets:
            path = [u]
            while path[-1] in prev:
                path.append(prev[path[-1]])
            return list(reversed(path)), d

        for v in egraph.adjacent_nodes(u):
            if v in visited:
                continue
            new_dist = d + egraph.edge_weight(u, v)
            if new_dist < dist.get(v, float('inf')):
                dist[v] = new_dist
                prev[v] = u
                heapq.heappush(heap, (new_dist, v))

    return None


# ── 示教路径读写 ──

def _reorder(
    rows: List[List[float]],
    header: Optional[Sequence[str]],
    variable_names: Optional[Sequence[str]],
    source: Path,
) -> List[np.ndarray]:
    if header is not None and variable_names is not None:
        missing = [n for n in variable_names if n not in header]
        if missing:
            raise LoadError(f"{source}: 缺少变量列 {missing}")
        cols = [list(header).index(n) for n in variable_names]
        rows = [[row[c] for c in cols] for row in rows]
    path = [np.asarray(row, dtype=np.float64) for row in rows]
    if variable_names is not None:
        for q in path:
            if q.shape != (len(variable_names),):
                raise LoadError(
                    f"{source}: 路点维度 {q.shape[0]} 与变量数 {len(variable_names)} 不符")
    return path


def _load_json_demo(filepath: Path, variable_names: Optional[Sequence[str]]) -> List[np.ndarray]:
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict) or not isinstance(data.get('path'), list):
        raise LoadError(f'{filepath}: 缺少 "path" 列表')
    return _reorder(data['path'], data.get('variable_names'), variable_names, filepath)


def _load_csv_demo(filepath: Path, variable_names: Optional[Sequence[str]]) -> List[np.ndarray]:
    with open(filepath, 'r', encoding='utf-8', newline='') as f:
        rows = [row for row in csv.reader(f) if row and any(c.strip() for c in row)]
    if not rows:
        return []
    header = None
    try:
        [float(c) for c in rows[0]]
    except ValueError:
        header = [c.strip() for c in rows[0]]
        rows = rows[1:]
    return _reorder([[float(c) for c in row] for row in rows], header, variable_names, filepath)


def load_demonstration(
    filepath: Union[str, Path],
    variable_names: Optional[Sequence[str]] = None,
) -> List[np.ndarray]:
    """读取一条示教路径

    Args:
        filepath: .json 或 .csv 文件
        variable_names: 期望的变量顺序（用于表头重排与维度校验）

    Raises:
        LoadError: 文件不可读、格式错误或维度不符
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()
    try:
        if suffix == '.json':
            return _load_json_demo(filepath, variable_names)
        if suffix == '.csv':
            return _load_csv_demo(filepath, variable_names)
    except (OSError, ValueError, TypeError, IndexError) as e:
        raise LoadError(f"无法读取示教路径 {filepath}: {e}") from e
    raise LoadError(f"不支持的示教路径格式: {filepath}")


def save_demonstration(
    filepath: Union[str, Path],
    path: Sequence[np.ndarray],
    variable_names: Optional[Sequence[str]] = None,
) -> str:
    """将示教路径保存为 JSON 文件

    Returns:
        保存的文件路径字符串
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "path": [np.asarray(q, dtype=np.float64).tolist() for q in path],
        "n_waypoints": len(path),
    }
    if variable_names is not None:
        data["variable_names"] = list(variable_names)
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.debug("示教路径已保存: %s (%d 个路点)", filepath, len(path))
    return str(filepath)
