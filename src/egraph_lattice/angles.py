"""
egraph_lattice/angles.py - 角度工具

纯函数集合：角度归一化、最短/最长弧距离、ZYX 欧拉角与旋转矩阵/四元数互转。
四元数统一使用 (x, y, z, w) 顺序（与 scipy.spatial.transform.Rotation 一致）。
"""

import math
from typing import Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

TWO_PI = 2.0 * math.pi


def normalize_angle(angle: float) -> float:
    """将角度归一化到 (-pi, pi]"""
    if math.fabs(angle) > TWO_PI:
        angle = math.fmod(angle, TWO_PI)
    if angle <= -math.pi:
        angle += TWO_PI
    if angle > math.pi:
        angle -= TWO_PI
    return angle


def normalize_angle_positive(angle: float) -> float:
    """将角度归一化到 [0, 2pi)"""
    angle = normalize_angle(angle)
    if angle < 0.0:
        angle += TWO_PI
    # -1e-17 + 2pi 在浮点下会等于 2pi
    if angle >= TWO_PI:
        angle -= TWO_PI
    return angle


def to_degrees(rads: float) -> float:
    return rads * 180.0 / math.pi


def to_radians(degs: float) -> float:
    return degs * math.pi / 180.0


def shortest_angle_diff(af: float, ai: float) -> float:
    """af - ai 的最短有符号角差，范围 (-pi, pi]"""
    return normalize_angle(af - ai)


def shortest_angle_dist(af: float, ai: float) -> float:
    """两角之间的最短距离，范围 [0, pi]"""
    return math.fabs(shortest_angle_diff(af, ai))


def minor_arc_diff(af: float, ai: float) -> float:
    return shortest_angle_diff(af, ai)


def major_arc_diff(af: float, ai: float) -> float:
    """沿长弧从 ai 到 af 的有符号角差"""
    diff = shortest_angle_diff(af, ai)
    return -1.0 * math.copysign(1.0, diff) * (TWO_PI - math.fabs(diff))


def minor_arc_dist(af: float, ai: float) -> float:
    return math.fabs(minor_arc_diff(af, ai))


def major_arc_dist(af: float, ai: float) -> float:
    return math.fabs(major_arc_diff(af, ai))


def unwind(ai: float, af: float) -> float:
    """返回与 af 等价、且不小于 ai 的最小角度"""
    return ai + normalize_angle_positive(af - ai)


def get_euler_zyx(rot: np.ndarray) -> Tuple[float, float, float]:
    """旋转矩阵 → (yaw, pitch, roll)，ZYX 约定"""
    rot = np.asarray(rot, dtype=np.float64)
    y = math.atan2(rot[1, 0], rot[0, 0])
    p = math.atan2(-rot[2, 0], math.sqrt(rot[2, 1] ** 2 + rot[2, 2] ** 2))
    r = math.atan2(rot[2, 1], rot[2, 2])
    return y, p, r


def from_euler_zyx(y: float, p: float, r: float) -> np.ndarray:
    """(yaw, pitch, roll) → 3x3 旋转矩阵，R = Rz(y) * Ry(p) * Rx(r)"""
    return Rotation.from_euler('ZYX', [y, p, r]).as_matrix()


def quaternion_from_euler_zyx(y: float, p: float, r: float) -> np.ndarray:
    """(yaw, pitch, roll) → 四元数 (x, y, z, w)"""
    return Rotation.from_euler('ZYX', [y, p, r]).as_quat()


def euler_zyx_from_quaternion(q: Sequence[float]) -> Tuple[float, float, float]:
    """四元数 (x, y, z, w) → (yaw, pitch, roll)"""
    return get_euler_zyx(Rotation.from_quat(q).as_matrix())


def normalize_euler_zyx(y: float, p: float, r: float) -> Tuple[float, float, float]:
    """经旋转矩阵往返一次，得到 pitch ∈ [-pi/2, pi/2] 的规范欧拉角"""
    return get_euler_zyx(from_euler_zyx(y, p, r))


def get_nearest_planar_rotation(q: Sequence[float]) -> float:
    """四元数绕 z 轴的最近平面转角"""
    _, _, z, w = (float(v) for v in q)
    s_squared = 1.0 - w * w
    if s_squared < 10.0 * np.finfo(np.float64).eps:
        return 0.0
    s = 1.0 / math.sqrt(s_squared)
    return 2.0 * math.acos(max(-1.0, min(1.0, w))) * (z * s)
