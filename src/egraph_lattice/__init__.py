"""
egraph_lattice - 搜索式运动规划的离散格点与经验图

为启发式图搜索（A*、加权 A*、E-Graph 搜索等）提供状态空间图：
搜索算法只看到整数 State ID 与 (后继, 代价) 列表，连续状态、
离散化、碰撞检测与示教经验都封装在规划空间内部。

核心思路：
1. 按每变量分辨率把连续关节空间离散为整数坐标
2. 动作空间从运动基元文件生成候选动作（含吸附目标的自适应基元）
3. 格点对候选动作做限制/碰撞检测并分配 State ID
4. 经验图把示教路径绑定到格点状态，提供示教边、吸附边与捷径代价
5. 路径提取把 State ID 序列还原为连续路点
"""

from .errors import (
    LatticeError,
    ConfigError,
    LoadError,
    UnknownVariableError,
    StateLookupError,
    ExtensionLookupError,
    PathInconsistencyError,
)
from .models import (
    Obstacle,
    MotionPrimitiveType,
    MotionPrimitive,
    Action,
    LatticeState,
    GoalConstraint,
    PlanningParams,
)
from .robot import RobotModel, PointRobot, DHRobot
from .occupancy import OccupancyGrid
from .collision import CollisionSpace, GridCollisionSpace, interpolate_motion
from .extensions import (
    EXTRACT_ROBOT_STATE,
    POINT_PROJECTION,
    EXPERIENCE_GRAPH,
    ExtractRobotStateExtension,
    PointProjectionExtension,
    ExperienceGraphExtension,
    lookup_extension,
    register_extension,
)
from .action_space import ActionSpace, PrimitiveActionSpace
from .lattice import Lattice
from .experience_graph import (
    ExperienceGraph,
    find_shortest_experience_graph_path,
    load_demonstration,
    save_demonstration,
)
from .lattice_egraph import LatticeEGraph
from .allocator import allocate_lattice, parse_discretization

__version__ = "0.1.0"

__all__ = [
    # 异常
    'LatticeError',
    'ConfigError',
    'LoadError',
    'UnknownVariableError',
    'StateLookupError',
    'ExtensionLookupError',
    'PathInconsistencyError',
    # 数据模型
    'Obstacle',
    'MotionPrimitiveType',
    'MotionPrimitive',
    'Action',
    'LatticeState',
    'GoalConstraint',
    'PlanningParams',
    # 机器人与碰撞
    'RobotModel',
    'PointRobot',
    'DHRobot',
    'OccupancyGrid',
    'CollisionSpace',
    'GridCollisionSpace',
    'interpolate_motion',
    # 扩展
    'EXTRACT_ROBOT_STATE',
    'POINT_PROJECTION',
    'EXPERIENCE_GRAPH',
    'ExtractRobotStateExtension',
    'PointProjectionExtension',
    'ExperienceGraphExtension',
    'lookup_extension',
    'register_extension',
    # 规划空间
    'ActionSpace',
    'PrimitiveActionSpace',
    'Lattice',
    'ExperienceGraph',
    'find_shortest_experience_graph_path',
    'load_demonstration',
    'save_demonstration',
    'LatticeEGraph',
    'allocate_lattice',
    'parse_discretization',
]
