# composition.py
"""
Kernels of the composition engine.

Every kernel takes (4, 4) float64 arrays indexed [col, row] and writes a
fully determined ``out``. Operands are read before ``out`` is written, so
``out`` may be the same array as any operand.
"""

import math
import warnings

import numpy as np
from numba import njit
from numba.core.errors import NumbaPerformanceWarning

from polymatrix.options import jit_options

warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

_JIT = jit_options()


########
# Products
#

@njit(**_JIT)
def mul_generic(a, b, out):
    """Dense ``a * b``: 64 multiplies, 48 adds."""
    res = np.empty((4, 4))
    for c in range(4):
        b0 = b[c, 0]
        b1 = b[c, 1]
        b2 = b[c, 2]
        b3 = b[c, 3]
        for r in range(4):
            res[c, r] = a[0, r] * b0 + a[1, r] * b1 + a[2, r] * b2 + a[3, r] * b3
    out[:, :] = res


@njit(**_JIT)
def mul_affine_r(a, b, out):
    """``a * b`` where the last row of ``b`` is (0, 0, 0, 1)."""
    res = np.empty((4, 4))
    for c in range(3):
        b0 = b[c, 0]
        b1 = b[c, 1]
        b2 = b[c, 2]
        for r in range(4):
            res[c, r] = a[0, r] * b0 + a[1, r] * b1 + a[2, r] * b2
    b0 = b[3, 0]
    b1 = b[3, 1]
    b2 = b[3, 2]
    for r in range(4):
        res[3, r] = a[0, r] * b0 + a[1, r] * b1 + a[2, r] * b2 + a[3, r]
    out[:, :] = res


@njit(**_JIT)
def mul_affine(a, b, out):
    """``a * b`` where both last rows are (0, 0, 0, 1)."""
    res = np.empty((4, 4))
    for c in range(4):
        b0 = b[c, 0]
        b1 = b[c, 1]
        b2 = b[c, 2]
        for r in range(3):
            res[c, r] = a[0, r] * b0 + a[1, r] * b1 + a[2, r] * b2
        res[c, 3] = 0.0
    for r in range(3):
        res[3, r] += a[3, r]
    res[3, 3] = 1.0
    out[:, :] = res


@njit(**_JIT)
def mul_translation_affine(a, b, out):
    """``a * b`` where ``a`` is a pure translation and ``b`` is affine."""
    tx = a[3, 0]
    ty = a[3, 1]
    tz = a[3, 2]
    for c in range(3):
        out[c, 0] = b[c, 0]
        out[c, 1] = b[c, 1]
        out[c, 2] = b[c, 2]
        out[c, 3] = 0.0
    out[3, 0] = b[3, 0] + tx
    out[3, 1] = b[3, 1] + ty
    out[3, 2] = b[3, 2] + tz
    out[3, 3] = 1.0


@njit(**_JIT)
def mul_perspective_affine(a, b, out):
    """
    ``a * b`` where ``a`` has the symmetric perspective pattern (only m00,
    m11, m22, m23 and m32 non-zero) and ``b`` is affine.
    """
    a00 = a[0, 0]
    a11 = a[1, 1]
    a22 = a[2, 2]
    a23 = a[2, 3]
    a32 = a[3, 2]
    res = np.empty((4, 4))
    for c in range(4):
        b2 = b[c, 2]
        b3 = b[c, 3]
        res[c, 0] = a00 * b[c, 0]
        res[c, 1] = a11 * b[c, 1]
        res[c, 2] = a22 * b2 + a32 * b3
        res[c, 3] = a23 * b2
    out[:, :] = res


@njit(**_JIT)
def mul_ortho_affine(a, b, out):
    """
    ``a * b`` where ``a`` is an orthographic projection (diagonal scale plus
    translation) and ``b`` is affine.
    """
    a00 = a[0, 0]
    a11 = a[1, 1]
    a22 = a[2, 2]
    a30 = a[3, 0]
    a31 = a[3, 1]
    a32 = a[3, 2]
    res = np.empty((4, 4))
    for c in range(4):
        b3 = b[c, 3]
        res[c, 0] = a00 * b[c, 0] + a30 * b3
        res[c, 1] = a11 * b[c, 1] + a31 * b3
        res[c, 2] = a22 * b[c, 2] + a32 * b3
        res[c, 3] = b3
    out[:, :] = res


########
# Translation and scale
#

@njit(**_JIT)
def translate(a, x, y, z, out):
    """``a * T(x, y, z)``: only the last column changes."""
    for r in range(4):
        a0 = a[0, r]
        a1 = a[1, r]
        a2 = a[2, r]
        a3 = a[3, r]
        out[0, r] = a0
        out[1, r] = a1
        out[2, r] = a2
        out[3, r] = a0 * x + a1 * y + a2 * z + a3


@njit(**_JIT)
def translate_local(a, x, y, z, out):
    """``T(x, y, z) * a``."""
    for c in range(4):
        w = a[c, 3]
        out[c, 0] = a[c, 0] + x * w
        out[c, 1] = a[c, 1] + y * w
        out[c, 2] = a[c, 2] + z * w
        out[c, 3] = w


@njit(**_JIT)
def scale(a, x, y, z, out):
    """``a * S(x, y, z)``: scales the first three columns."""
    for r in range(4):
        out[0, r] = a[0, r] * x
        out[1, r] = a[1, r] * y
        out[2, r] = a[2, r] * z
        out[3, r] = a[3, r]


@njit(**_JIT)
def scale_local(a, x, y, z, out):
    """``S(x, y, z) * a``: scales the first three rows."""
    for c in range(4):
        out[c, 0] = a[c, 0] * x
        out[c, 1] = a[c, 1] * y
        out[c, 2] = a[c, 2] * z
        out[c, 3] = a[c, 3]


########
# Rotation
#

@njit(**_JIT)
def rotate_x(a, angle, out):
    """``a * Rx(angle)``: mixes columns 1 and 2."""
    s = math.sin(angle)
    co = math.cos(angle)
    for r in range(4):
        a1 = a[1, r]
        a2 = a[2, r]
        out[0, r] = a[0, r]
        out[1, r] = a1 * co + a2 * s
        out[2, r] = a2 * co - a1 * s
        out[3, r] = a[3, r]


@njit(**_JIT)
def rotate_y(a, angle, out):
    """``a * Ry(angle)``: mixes columns 0 and 2."""
    s = math.sin(angle)
    co = math.cos(angle)
    for r in range(4):
        a0 = a[0, r]
        a2 = a[2, r]
        out[0, r] = a0 * co - a2 * s
        out[1, r] = a[1, r]
        out[2, r] = a0 * s + a2 * co
        out[3, r] = a[3, r]


@njit(**_JIT)
def rotate_z(a, angle, out):
    """``a * Rz(angle)``: mixes columns 0 and 1."""
    s = math.sin(angle)
    co = math.cos(angle)
    for r in range(4):
        a0 = a[0, r]
        a1 = a[1, r]
        out[0, r] = a0 * co + a1 * s
        out[1, r] = a1 * co - a0 * s
        out[2, r] = a[2, r]
        out[3, r] = a[3, r]


@njit(**_JIT)
def rotate_local_x(a, angle, out):
    """``Rx(angle) * a``: mixes rows 1 and 2."""
    s = math.sin(angle)
    co = math.cos(angle)
    for c in range(4):
        a1 = a[c, 1]
        a2 = a[c, 2]
        out[c, 0] = a[c, 0]
        out[c, 1] = co * a1 - s * a2
        out[c, 2] = s * a1 + co * a2
        out[c, 3] = a[c, 3]


@njit(**_JIT)
def rotate_local_y(a, angle, out):
    """``Ry(angle) * a``: mixes rows 0 and 2."""
    s = math.sin(angle)
    co = math.cos(angle)
    for c in range(4):
        a0 = a[c, 0]
        a2 = a[c, 2]
        out[c, 0] = co * a0 + s * a2
        out[c, 1] = a[c, 1]
        out[c, 2] = co * a2 - s * a0
        out[c, 3] = a[c, 3]


@njit(**_JIT)
def rotate_local_z(a, angle, out):
    """``Rz(angle) * a``: mixes rows 0 and 1."""
    s = math.sin(angle)
    co = math.cos(angle)
    for c in range(4):
        a0 = a[c, 0]
        a1 = a[c, 1]
        out[c, 0] = co * a0 - s * a1
        out[c, 1] = s * a0 + co * a1
        out[c, 2] = a[c, 2]
        out[c, 3] = a[c, 3]


@njit(**_JIT)
def mul_rotation(a, rot, out):
    """``a * R`` for a (3, 3) block ``rot`` indexed [col, row]."""
    for r in range(4):
        a0 = a[0, r]
        a1 = a[1, r]
        a2 = a[2, r]
        for c in range(3):
            out[c, r] = a0 * rot[c, 0] + a1 * rot[c, 1] + a2 * rot[c, 2]
        out[3, r] = a[3, r]


@njit(**_JIT)
def mul_rotation_local(a, rot, out):
    """``R * a`` for a (3, 3) block ``rot`` indexed [col, row]."""
    for c in range(4):
        a0 = a[c, 0]
        a1 = a[c, 1]
        a2 = a[c, 2]
        for r in range(3):
            out[c, r] = rot[0, r] * a0 + rot[1, r] * a1 + rot[2, r] * a2
        out[c, 3] = a[c, 3]


@njit(**_JIT)
def axis_angle_rotation(angle, x, y, z):
    """Rotation block about the axis (x, y, z), indexed [col, row]. The axis is normalized."""
    inv = 1.0 / math.sqrt(x * x + y * y + z * z)
    x *= inv
    y *= inv
    z *= inv
    s = math.sin(angle)
    co = math.cos(angle)
    c = 1.0 - co
    xy = x * y * c
    xz = x * z * c
    yz = y * z * c
    rot = np.empty((3, 3))
    rot[0, 0] = co + x * x * c
    rot[0, 1] = xy + z * s
    rot[0, 2] = xz - y * s
    rot[1, 0] = xy - z * s
    rot[1, 1] = co + y * y * c
    rot[1, 2] = yz + x * s
    rot[2, 0] = xz + y * s
    rot[2, 1] = yz - x * s
    rot[2, 2] = co + z * z * c
    return rot


@njit(**_JIT)
def quaternion_rotation(x, y, z, w):
    """Rotation block of the unit quaternion (x, y, z, w), indexed [col, row]."""
    w2 = w * w
    x2 = x * x
    y2 = y * y
    z2 = z * z
    xy = x * y
    xz = x * z
    yz = y * z
    xw = x * w
    yw = y * w
    zw = z * w
    rot = np.empty((3, 3))
    rot[0, 0] = w2 + x2 - z2 - y2
    rot[0, 1] = 2.0 * (xy + zw)
    rot[0, 2] = 2.0 * (xz - yw)
    rot[1, 0] = 2.0 * (xy - zw)
    rot[1, 1] = y2 - z2 + w2 - x2
    rot[1, 2] = 2.0 * (yz + xw)
    rot[2, 0] = 2.0 * (yw + xz)
    rot[2, 1] = 2.0 * (yz - xw)
    rot[2, 2] = z2 - y2 - x2 + w2
    return rot


@njit(**_JIT)
def translation_rotate_scale(tx, ty, tz, qx, qy, qz, qw, sx, sy, sz, out):
    """``T(t) * R(q) * S(s)`` written in one pass."""
    dqx = qx + qx
    dqy = qy + qy
    dqz = qz + qz
    q00 = dqx * qx
    q11 = dqy * qy
    q22 = dqz * qz
    q01 = dqx * qy
    q02 = dqx * qz
    q03 = dqx * qw
    q12 = dqy * qz
    q13 = dqy * qw
    q23 = dqz * qw
    out[0, 0] = sx - (q11 + q22) * sx
    out[0, 1] = (q01 + q23) * sx
    out[0, 2] = (q02 - q13) * sx
    out[0, 3] = 0.0
    out[1, 0] = (q01 - q23) * sy
    out[1, 1] = sy - (q22 + q00) * sy
    out[1, 2] = (q12 + q03) * sy
    out[1, 3] = 0.0
    out[2, 0] = (q02 + q13) * sz
    out[2, 1] = (q12 - q03) * sz
    out[2, 2] = sz - (q11 + q00) * sz
    out[2, 3] = 0.0
    out[3, 0] = tx
    out[3, 1] = ty
    out[3, 2] = tz
    out[3, 3] = 1.0
