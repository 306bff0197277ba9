"""
egraph_lattice/extensions.py - 规划空间扩展接口

规划空间除了后继生成之外，可以在运行时声明额外的能力（扩展）。
使用方通过扩展代码查询，而不需要知道具体类型::

    egraph = pspace.get_extension(EXPERIENCE_GRAPH)
    if egraph is not None:
        nodes = egraph.get_experience_graph_nodes(state_id)

每个扩展类用 ``register_extension(code)`` 注册唯一代码。
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type, Union

import numpy as np

from .errors import ExtensionLookupError

EXTRACT_ROBOT_STATE = 'extract_robot_state'
POINT_PROJECTION = 'point_projection'
EXPERIENCE_GRAPH = 'experience_graph'

_EXTENSION_REGISTRY: Dict[str, Type['Extension']] = {}


class Extension:
    """扩展基类"""

    class_code: str = ''


def register_extension(code: str):
    """类装饰器：以 code 注册扩展类"""
    def decorator(cls):
        if code in _EXTENSION_REGISTRY and _EXTENSION_REGISTRY[code] is not cls:
            raise ValueError(f"扩展代码 '{code}' 已注册")
        cls.class_code = code
        _EXTENSION_REGISTRY[code] = cls
        return cls
    return decorator


def registered_extensions() -> List[str]:
    return sorted(_EXTENSION_REGISTRY)


def lookup_extension(
    obj: object,
    code: Union[str, Type[Extension]],
) -> Optional[Extension]:
    """在 obj 上查找扩展

    Args:
        obj: 规划空间实例
        code: 扩展代码或扩展类

    Returns:
        obj 实现了该扩展时返回 obj，否则 None

    Raises:
        ExtensionLookupError: 代码未注册
    """
    if isinstance(code, type):
        code = getattr(code, 'class_code', '')
    cls = _EXTENSION_REGISTRY.get(code)
    if cls is None:
        raise ExtensionLookupError(f"未注册的扩展代码 '{code}'")
    return obj if isinstance(obj, cls) else None


@register_extension(EXTRACT_ROBOT_STATE)
class ExtractRobotStateExtension(Extension, ABC):
    """state id → 连续机器人状态"""

    @abstractmethod
    def extract_state(self, state_id: int) -> np.ndarray:
        ...


@register_extension(POINT_PROJECTION)
class PointProjectionExtension(Extension, ABC):
    """state id → 工作空间点（供启发式使用）"""

    @abstractmethod
    def project_to_point(self, state_id: int) -> Optional[np.ndarray]:
        ...


@register_extension(EXPERIENCE_GRAPH)
class ExperienceGraphExtension(Extension, ABC):
    """经验图能力集

    把经验图绑定到具体格点上，提供节点查询、捷径代价与吸附边校验。
    """

    @abstractmethod
    def load_experience_graph(self, path: str) -> None:
        ...

    @abstractmethod
    def get_experience_graph_nodes(self, state_id: int) -> List[int]:
        """与 state_id 位于同一完整坐标 bin 的经验图节点"""

    @abstractmethod
    def shortcut(self, src_id: int, dst_id: int) -> Optional[int]:
        """两经验图状态间沿经验图的最短路代价，不连通返回 None"""

    @abstractmethod
    def snap(self, first_id: int, second_id: int) -> Optional[int]:
        """吸附运动 first → second 的代价，无效返回 None"""

    @abstractmethod
    def get_experience_graph(self):
        ...

    @abstractmethod
    def get_state_id(self, node_id: int) -> int:
        """经验图节点 → state id"""
