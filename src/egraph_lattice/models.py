"""
egraph_lattice/models.py - 规划空间数据模型

定义格点规划空间使用的核心数据结构：Obstacle、MotionPrimitiveType、
MotionPrimitive、Action、LatticeState、GoalConstraint、PlanningParams。
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np


@dataclass
class Obstacle:
    """AABB 障碍物区域

    在工作空间 (Cartesian) 中定义的轴对齐包围盒，作为
    ``CollisionSpace.add_obstacle`` 的输入区域。

    Attributes:
        min_point: AABB 最小角点 [x, y, z]
        max_point: AABB 最大角点 [x, y, z]
        name: 障碍物名称（可选）
    """
    min_point: np.ndarray
    max_point: np.ndarray
    name: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.min_point, np.ndarray):
            self.min_point = np.array(self.min_point, dtype=np.float64)
        if not isinstance(self.max_point, np.ndarray):
            self.max_point = np.array(self.max_point, dtype=np.float64)
        if self.min_point.shape != self.max_point.shape:
            raise ValueError("min_point 和 max_point 维度不匹配")

    @property
    def center(self) -> np.ndarray:
        """障碍物中心点"""
        return (self.min_point + self.max_point) / 2.0

    @property
    def size(self) -> np.ndarray:
        """各轴尺寸"""
        return self.max_point - self.min_point

    def contains_point(self, point: np.ndarray) -> bool:
        """检查点是否在障碍物 AABB 内"""
        return bool(np.all(point >= self.min_point) and np.all(point <= self.max_point))


class MotionPrimitiveType(Enum):
    """运动基元类型

    snap 系列即自适应运动基元 (adaptive motion primitive)：只在离目标
    足够近时激活，并直接以目标为终点生成动作。
    """
    LONG_DISTANCE = 'long_distance'
    SHORT_DISTANCE = 'short_distance'
    SNAP_TO_XYZ = 'snap_to_xyz'
    SNAP_TO_RPY = 'snap_to_rpy'
    SNAP_TO_XYZ_RPY = 'snap_to_xyz_rpy'

    @property
    def is_adaptive(self) -> bool:
        return self in (
            MotionPrimitiveType.SNAP_TO_XYZ,
            MotionPrimitiveType.SNAP_TO_RPY,
            MotionPrimitiveType.SNAP_TO_XYZ_RPY,
        )


@dataclass
class MotionPrimitive:
    """运动基元

    Attributes:
        type: 基元类型
        action: 相对父状态的偏移序列，每个元素对应一个中间路点
            （snap 类型为空，终点由目标决定）
    """
    type: MotionPrimitiveType
    action: List[np.ndarray] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.action = [np.asarray(d, dtype=np.float64) for d in self.action]

    def negated(self) -> 'MotionPrimitive':
        """方向相反的基元"""
        return MotionPrimitive(self.type, [-d for d in self.action])

    def __str__(self) -> str:
        steps = ", ".join(np.array2string(d, precision=3) for d in self.action)
        return f"{self.type.value}[{steps}]"


@dataclass
class Action:
    """由动作空间提出的一条候选运动

    Attributes:
        waypoints: 中间状态序列（不含父状态），最后一个为终点
        type: 产生该动作的基元类型
        primitive: 来源基元（snap 动作同样记录其基元）
    """
    waypoints: List[np.ndarray]
    type: MotionPrimitiveType
    primitive: Optional[MotionPrimitive] = None

    @property
    def final_state(self) -> np.ndarray:
        return self.waypoints[-1]

    def __len__(self) -> int:
        return len(self.waypoints)


@dataclass
class LatticeState:
    """状态表中的一条记录

    Attributes:
        coord: 离散坐标（整数元组，按元素值哈希/比较）
        state: 首次到达该坐标时的连续状态（代表状态）
    """
    coord: Tuple[int, ...]
    state: np.ndarray


@dataclass
class GoalConstraint:
    """目标约束

    Attributes:
        target: 目标状态（与规划变量一一对应）
        tolerance: 各变量容差；标量时对所有变量生效
    """
    target: np.ndarray
    tolerance: Union[float, np.ndarray] = 0.0

    def __post_init__(self) -> None:
        self.target = np.asarray(self.target, dtype=np.float64)
        tol = np.asarray(self.tolerance, dtype=np.float64)
        if tol.ndim == 0:
            tol = np.full(self.target.shape, float(tol))
        if tol.shape != self.target.shape:
            raise ValueError("tolerance 与 target 维度不匹配")
        self.tolerance = tol


@dataclass
class PlanningParams:
    """格点规划空间参数配置

    Attributes:
        discretization: 离散化分辨率，文本 "name value name value ..."
            或 {name: value} 字典
        action_filename: 运动基元 JSON 文件路径
        egraph_path: 经验图示教路径文件或目录（可选）
        cost_metric: 边代价度量 ('unit' / 'joint_distance')
        cost_per_cell: 'unit' 度量下每条动作的固定代价
        cost_per_unit_distance: 'joint_distance' 度量下单位加权距离的代价
        variable_weights: 各变量距离权重（缺省为 1）
        interpolation_resolution: 运动插值（碰撞检测）步长
        pose_variables: 构成位姿 bin 的变量名（缺省为全部变量）
    """
    discretization: Optional[Union[str, Dict[str, float]]] = None
    action_filename: Optional[str] = None
    egraph_path: Optional[str] = None
    cost_metric: str = 'unit'
    cost_per_cell: int = 100
    cost_per_unit_distance: float = 1000.0
    variable_weights: Optional[Dict[str, float]] = None
    interpolation_resolution: float = 0.05
    pose_variables: Optional[List[str]] = None

    # ── JSON 序列化 ──

    def to_dict(self) -> Dict[str, Any]:
        """转为字典"""
        from dataclasses import fields as dc_fields
        return {f.name: getattr(self, f.name) for f in dc_fields(self)}

    def to_json(self, filepath: Union[str, Path]) -> str:
        """保存到 JSON 文件

        Returns:
            保存的文件路径字符串
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        return str(filepath)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlanningParams':
        """从字典创建（忽略未知字段，缺失字段用默认值）"""
        from dataclasses import fields as dc_fields
        valid_fields = {f.name for f in dc_fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    @classmethod
    def from_json(cls, filepath: Union[str, Path]) -> 'PlanningParams':
        """从 JSON 文件加载"""
        filepath = Path(filepath)
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)
