"""
egraph_lattice/allocator.py - 规划空间装配

从 PlanningParams 装配一个可直接用于搜索的格点：

    离散化文本 → 分辨率 → Lattice.init → 动作空间加载 → 绑定 → (经验图)

任何一步失败都只记录一次错误日志并把异常抛给调用方，不返回半初始化对象。
"""

import logging
from typing import Dict, Mapping, Optional, Union

from .action_space import PrimitiveActionSpace
from .collision import CollisionSpace
from .errors import ConfigError, LatticeError
from .lattice import Lattice
from .lattice_egraph import LatticeEGraph
from .models import MotionPrimitiveType, PlanningParams
from .robot import RobotModel


def parse_discretization(discretization: Union[str, Mapping[str, float]]) -> Dict[str, float]:
    """解析离散化配置

    Args:
        discretization: "name value name value ..." 文本或 {name: value} 字典

    Returns:
        变量名 → 分辨率

    Raises:
        ConfigError: 名值不成对、数值非法或非正
    """
    if isinstance(discretization, Mapping):
        pairs = list(discretization.items())
    else:
        tokens = str(discretization).split()
        if len(tokens) % 2 != 0:
            raise ConfigError(f"离散化配置必须是 'name value' 成对出现: {discretization!r}")
        pairs = list(zip(tokens[0::2], tokens[1::2]))

    disc: Dict[str, float] = {}
    for name, value in pairs:
        try:
            res = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"变量 '{name}' 的分辨率不是数值: {value!r}") from None
        if not res > 0.0:
            raise ConfigError(f"变量 '{name}' 的分辨率必须为正: {res}")
        disc[str(name)] = res
    return disc


def _log_action_set(aspace: PrimitiveActionSpace, log: logging.Logger) -> None:
    log.debug("Action Set:")
    for prim in aspace:
        log.debug("  type: %s", prim.type.value)
        if prim.type.is_adaptive:
            log.debug("    enabled: %s", aspace.use_amp(prim.type))
            log.debug("    thresh: %0.3f", aspace.amp_thresh(prim.type))
        else:
            log.debug("    action: %s", prim)
    if aspace.use_amp(MotionPrimitiveType.SHORT_DISTANCE):
        log.debug("  short distance thresh: %0.3f",
                  aspace.amp_thresh(MotionPrimitiveType.SHORT_DISTANCE))


def allocate_lattice(
    robot: RobotModel,
    collision_space: CollisionSpace,
    params: PlanningParams,
    logger: Optional[logging.Logger] = None,
) -> Lattice:
    """按参数装配格点

    ``params.egraph_path`` 非空时返回 LatticeEGraph 并加载经验图。

    Raises:
        ConfigError: 缺少离散化配置、缺少某个规划变量的分辨率、
            缺少动作文件，或动作文件引用了未离散化的变量
        LoadError: 动作文件或经验图不可读
    """
    log = logger if logger is not None else logging.getLogger(__name__)
    try:
        if not params.discretization:
            raise ConfigError("规划参数中缺少 'discretization'")
        disc = parse_discretization(params.discretization)
        log.debug("解析到 %d 个变量的离散化分辨率", len(disc))

        resolutions = []
        for name in robot.variable_names:
            if name not in disc:
                raise ConfigError(f"规划参数中缺少变量 '{name}' 的离散化分辨率")
            resolutions.append(disc[name])
        extra = sorted(set(disc) - set(robot.variable_names))
        if extra:
            log.debug("忽略非规划变量的离散化条目: %s", extra)

        if not params.action_filename:
            raise ConfigError("规划参数中缺少 'action_filename'")

        cls = LatticeEGraph if params.egraph_path else Lattice
        pspace = cls(robot, collision_space, params, logger=log)
        pspace.init(resolutions)

        aspace = PrimitiveActionSpace(pspace, logger=log)
        aspace.load(params.action_filename)
        _log_action_set(aspace, log)
        pspace.set_action_space(aspace)

        if params.egraph_path:
            pspace.load_experience_graph(params.egraph_path)
    except LatticeError as e:
        log.error("规划空间初始化失败: %s", e)
        raise
    return pspace
