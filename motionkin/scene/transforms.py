# motionkin/scene/transforms.py
from __future__ import annotations

import math
from typing import Dict, List, Tuple

from .nodes import SceneNode


Vec3 = Tuple[float, float, float]
Mat4 = List[List[float]]                 # row-major, translation in [0][3],[1][3],[2][3]


def mat4_identity() -> Mat4:
    return [
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ]


def mat4_translate(x: float, y: float, z: float) -> Mat4:
    return [
        [1.0, 0.0, 0.0, float(x)],
        [0.0, 1.0, 0.0, float(y)],
        [0.0, 0.0, 1.0, float(z)],
        [0.0, 0.0, 0.0, 1.0],
    ]


def mat4_scale(x: float, y: float, z: float) -> Mat4:
    return [
        [float(x), 0.0,      0.0,      0.0],
        [0.0,      float(y), 0.0,      0.0],
        [0.0,      0.0,      float(z), 0.0],
        [0.0,      0.0,      0.0,      1.0],
    ]


def mat4_mul(A: Mat4, B: Mat4) -> Mat4:
    # row-major multiply: C = A * B
    C = [[0.0] * 4 for _ in range(4)]
    for r in range(4):
        ar0, ar1, ar2, ar3 = A[r]
        for c in range(4):
            C[r][c] = ar0 * B[0][c] + ar1 * B[1][c] + ar2 * B[2][c] + ar3 * B[3][c]
    return C


def euler_xyz_to_mat4(rx: float, ry: float, rz: float) -> Mat4:
    """
    Rotation for intrinsic XYZ Euler angles in radians, R = Rx * Ry * Rz
    (the default order of three.js Object3D.rotation).
    """
    a, b = math.cos(rx), math.sin(rx)
    c, d = math.cos(ry), math.sin(ry)
    e, f = math.cos(rz), math.sin(rz)

    ae, af, be, bf = a * e, a * f, b * e, b * f
    return [
        [c * e,            -c * f,            d,      0.0],
        [af + be * d,      ae - bf * d,       -b * c, 0.0],
        [bf - ae * d,      be + af * d,       a * c,  0.0],
        [0.0,              0.0,               0.0,    1.0],
    ]


def transform_point(M: Mat4, v: Vec3) -> Vec3:
    # assumes v as (x,y,z,1) column vector; with row-major M
    x, y, z = v
    tx = M[0][0] * x + M[0][1] * y + M[0][2] * z + M[0][3]
    ty = M[1][0] * x + M[1][1] * y + M[1][2] * z + M[1][3]
    tz = M[2][0] * x + M[2][1] * y + M[2][2] * z + M[2][3]
    return (tx, ty, tz)


def local_matrix(node: SceneNode) -> Mat4:
    """Local = T(position) * R(rotation) * S(scale)"""
    p, r, s = node.position, node.rotation, node.scale
    T = mat4_translate(p.x, p.y, p.z)
    R = euler_xyz_to_mat4(r.x, r.y, r.z)
    S = mat4_scale(s.x, s.y, s.z)
    return mat4_mul(T, mat4_mul(R, S))


def world_matrices(root: SceneNode) -> Dict[str, Mat4]:
    """World = ParentWorld * Local, keyed by node name (unnamed nodes skipped)."""
    out: Dict[str, Mat4] = {}
    stack: List[Tuple[SceneNode, Mat4]] = [(root, mat4_identity())]
    while stack:
        node, parent_world = stack.pop()
        world = mat4_mul(parent_world, local_matrix(node))
        if node.name:
            out[node.name] = world
        for ch in node.children:
            stack.append((ch, world))
    return out


def world_positions(root: SceneNode) -> Dict[str, Vec3]:
    return {name: transform_point(M, (0.0, 0.0, 0.0)) for name, M in world_matrices(root).items()}
