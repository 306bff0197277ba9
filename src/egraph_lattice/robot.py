"""
egraph_lattice/robot.py - 机器人模型

规划空间只把机器人当作黑盒使用：规划变量名、关节限制、
是否为连续（循环）变量，以及用于碰撞检测/点投影的连杆端点位置。

- RobotModel: 基类，声明规划变量
- PointRobot: 状态前三维即工作空间位置（工作空间格点/点机器人）
- DHRobot: 基于修正 DH 参数的串联机械臂正运动学
"""

import json
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np


class RobotModel:
    """规划变量描述

    Args:
        variable_names: 规划变量名（顺序即状态向量顺序）
        joint_limits: 各变量限制 [(lo, hi), ...]，None 表示无限制
        continuous: 各变量是否为连续旋转变量（无限位、按 2pi 回绕）
        name: 机器人名称
    """

    def __init__(
        self,
        variable_names: Sequence[str],
        joint_limits: Optional[Sequence[Tuple[float, float]]] = None,
        continuous: Optional[Sequence[bool]] = None,
        name: str = "Robot",
    ) -> None:
        self.name = name
        self.variable_names: List[str] = [str(v) for v in variable_names]
        if len(set(self.variable_names)) != len(self.variable_names):
            raise ValueError(f"规划变量名重复: {self.variable_names}")
        n = len(self.variable_names)
        self.joint_limits = (
            [(float(lo), float(hi)) for lo, hi in joint_limits]
            if joint_limits else None
        )
        if self.joint_limits is not None and len(self.joint_limits) != n:
            raise ValueError(f'期望 {n} 个关节限制，得到 {len(self.joint_limits)}')
        self.continuous: List[bool] = (
            [bool(c) for c in continuous] if continuous is not None else [False] * n
        )
        if len(self.continuous) != n:
            raise ValueError(f'期望 {n} 个 continuous 标志，得到 {len(self.continuous)}')

    @property
    def n_variables(self) -> int:
        return len(self.variable_names)

    def variable_index(self, name: str) -> int:
        """变量名 → 状态向量索引（未知变量抛出 KeyError）"""
        try:
            return self.variable_names.index(name)
        except ValueError:
            raise KeyError(name) from None

    def check_limits(self, state: Sequence[float]) -> bool:
        """检查状态是否在关节限制内（连续变量不检查）"""
        if self.joint_limits is None:
            return True
        for i, (lo, hi) in enumerate(self.joint_limits):
            if self.continuous[i]:
                continue
            if state[i] < lo - 1e-10 or state[i] > hi + 1e-10:
                return False
        return True

    def get_link_positions(self, state: Sequence[float]) -> List[np.ndarray]:
        """连杆端点的世界坐标 [p0, ..., pn]，由子类实现"""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, variables={self.variable_names})"


class PointRobot(RobotModel):
    """点机器人：状态前（至多）三维即工作空间位置，其余维度补 0"""

    def get_link_positions(self, state: Sequence[float]) -> List[np.ndarray]:
        p = np.zeros(3, dtype=np.float64)
        k = min(3, len(state))
        p[:k] = np.asarray(state[:k], dtype=np.float64)
        return [p]


class DHRobot(RobotModel):
    """基于 DH 参数的串联机械臂

    使用修正DH约定 (Modified DH Convention)，每个 DH 行对应一个规划变量。

    Example:
        >>> dh = [
        ...     {"alpha": 0, "a": 1.0, "d": 0, "theta": 0, "type": "revolute"},
        ...     {"alpha": 0, "a": 1.0, "d": 0, "theta": 0, "type": "revolute"},
        ... ]
        >>> robot = DHRobot(dh, name="Planar2")
        >>> robot.get_link_positions([0.0, 0.0])[-1]
    """

    def __init__(
        self,
        dh_params: List[Dict],
        variable_names: Optional[Sequence[str]] = None,
        joint_limits: Optional[Sequence[Tuple[float, float]]] = None,
        continuous: Optional[Sequence[bool]] = None,
        name: str = "Robot",
        tool_frame: Optional[Dict] = None,
    ) -> None:
        self.dh_params = [self._normalize_param(p) for p in dh_params]
        if variable_names is None:
            variable_names = [f"joint_{i}" for i in range(len(self.dh_params))]
        super().__init__(variable_names, joint_limits, continuous, name)
        if self.n_variables != len(self.dh_params):
            raise ValueError(
                f'期望 {len(self.dh_params)} 个变量名，得到 {self.n_variables}')
        # 末端工具坐标系（可选，提供最后一段固定连杆的 DH 参数）
        self.tool_frame: Optional[Dict] = None
        if tool_frame is not None:
            self.tool_frame = {
                'alpha': float(tool_frame.get('alpha', 0.0)),
                'a': float(tool_frame.get('a', 0.0)),
                'd': float(tool_frame.get('d', 0.0)),
            }

    @staticmethod
    def _normalize_param(p: Dict) -> Dict:
        """标准化DH参数"""
        param = {
            'alpha': float(p.get('alpha', 0.0)),
            'a': float(p.get('a', 0.0)),
            'd': float(p.get('d') or 0.0),
            'theta': float(p.get('theta') or 0.0),
            'type': p.get('type', 'revolute'),
        }
        if param['type'] not in ('revolute', 'prismatic'):
            raise ValueError("关节类型必须是 'revolute' 或 'prismatic'")
        return param

    @classmethod
    def from_json(cls, filepath: str) -> 'DHRobot':
        """从JSON配置文件加载机器人

        格式::

            {
                "name": "Planar2",
                "dh_params": [...],
                "variable_names": ["shoulder", "elbow"],
                "joint_limits": [[lo, hi], ...],
                "continuous": [false, false],
                "tool_frame": {"a": 0.1}
            }
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f'{filepath}: JSON 必须是 dict')
        dh_list = data.get('dh_params') or data.get('dh')
        if dh_list is None:
            raise ValueError(f'{filepath}: 缺少 "dh_params" 或 "dh" 字段')
        joint_limits = (
            [tuple(lim) for lim in data['joint_limits']]
            if 'joint_limits' in data else None
        )
        return cls(
            dh_params=dh_list,
            variable_names=data.get('variable_names'),
            joint_limits=joint_limits,
            continuous=data.get('continuous'),
            name=data.get('name', 'Robot'),
            tool_frame=data.get('tool_frame'),
        )

    @staticmethod
    def dh_transform(alpha: float, a: float, d: float, theta: float) -> np.ndarray:
        """单个DH变换矩阵 (Modified DH Convention)"""
        ca, sa = math.cos(alpha), math.sin(alpha)
        ct, st = math.cos(theta), math.sin(theta)
        return np.array([
            [ct, -st, 0.0, a],
            [st * ca, ct * ca, -sa, -d * sa],
            [st * sa, ct * sa, ca, d * ca],
            [0.0, 0.0, 0.0, 1.0]
        ], dtype=float)

    def forward_kinematics(
        self,
        joint_values: Sequence[float],
        return_all: bool = False,
    ):
        """正向运动学

        Returns:
            return_all=False: 末端 4x4 变换矩阵
            return_all=True: 所有连杆变换矩阵列表 [T0, T1, ..., Tn]
        """
        if len(joint_values) != self.n_variables:
            raise ValueError(f'期望 {self.n_variables} 个关节值，得到 {len(joint_values)}')

        transforms = [np.eye(4)]
        T = np.eye(4)
        for param, q in zip(self.dh_params, joint_values):
            if param['type'] == 'revolute':
                d = param['d']
                theta = q + param['theta']
            else:  # prismatic
                d = param['d'] + q
                theta = param['theta']
            T = T @ self.dh_transform(param['alpha'], param['a'], d, theta)
            transforms.append(T.copy())

        if self.tool_frame is not None:
            T = T @ self.dh_transform(
                self.tool_frame['alpha'],
                self.tool_frame['a'],
                self.tool_frame['d'],
                0.0,
            )
            transforms.append(T.copy())

        return transforms if return_all else transforms[-1]

    def get_link_positions(self, state: Sequence[float]) -> List[np.ndarray]:
        transforms = self.forward_kinematics(state, return_all=True)
        return [T[:3, 3] for T in transforms]
