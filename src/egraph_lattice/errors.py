"""
egraph_lattice/errors.py - 异常类型

规划空间各组件共用的异常层级：

- ConfigError: 离散化参数缺失/非法，初始化前缺少必要参数
- LoadError: 运动基元文件或经验图路径不可读/格式错误
- UnknownVariableError: 运动基元文件引用了没有离散化条目的变量
- StateLookupError / ExtensionLookupError: 未知的 state id / 扩展代码
- PathInconsistencyError: extract_path 遇到无法解释的状态转移
"""


class LatticeError(Exception):
    """规划空间异常基类"""


class ConfigError(LatticeError, ValueError):
    """配置错误（不可重试，初始化中止）"""


class LoadError(LatticeError):
    """文件加载错误（只影响对应组件的初始化）"""


class UnknownVariableError(ConfigError, LoadError):
    """运动基元引用了不在离散化配置中的变量"""

    def __init__(self, name: str, source: str = "") -> None:
        self.name = name
        self.source = source
        where = f"{source}: " if source else ""
        super().__init__(f"{where}变量 '{name}' 没有离散化分辨率")


class StateLookupError(LatticeError, LookupError):
    """未知的 state id"""


class ExtensionLookupError(LatticeError, LookupError):
    """未注册的扩展代码"""


class PathInconsistencyError(LatticeError):
    """路径中存在既不是动作也不是经验图边的状态转移"""

    def __init__(self, index: int, src_id: int, dst_id: int) -> None:
        self.index = index
        self.src_id = src_id
        self.dst_id = dst_id
        super().__init__(
            f"路径第 {index} 段 {src_id} -> {dst_id} 无法由任何动作或经验图边解释")
