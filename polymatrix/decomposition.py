# decomposition.py
import math
import warnings

import numpy as np
from numba import njit
from numba.core.errors import NumbaPerformanceWarning

from polymatrix.options import jit_options

warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

_JIT = jit_options()


@njit(**_JIT)
def get_scale(m):
    """Euclidean length of each upper-left column."""
    out = np.empty(3)
    for c in range(3):
        out[c] = math.sqrt(m[c, 0] * m[c, 0] + m[c, 1] * m[c, 1] + m[c, 2] * m[c, 2])
    return out


@njit(**_JIT)
def quaternion_from_normalized(m):
    """
    Quaternion [x, y, z, w] of the upper-left 3x3, which must have unit columns.

    Uses the trace when it is non-negative, otherwise the largest diagonal
    term, so that the square root never sees a cancelled small value.
    """
    m00 = m[0, 0]
    m01 = m[0, 1]
    m02 = m[0, 2]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m12 = m[1, 2]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    q = np.empty(4)
    tr = m00 + m11 + m22
    if tr >= 0.0:
        t = math.sqrt(tr + 1.0)
        q[3] = t * 0.5
        t = 0.5 / t
        q[0] = (m12 - m21) * t
        q[1] = (m20 - m02) * t
        q[2] = (m01 - m10) * t
    elif m00 >= m11 and m00 >= m22:
        t = math.sqrt(m00 - (m11 + m22) + 1.0)
        q[0] = t * 0.5
        t = 0.5 / t
        q[1] = (m10 + m01) * t
        q[2] = (m02 + m20) * t
        q[3] = (m12 - m21) * t
    elif m11 > m22:
        t = math.sqrt(m11 - (m22 + m00) + 1.0)
        q[1] = t * 0.5
        t = 0.5 / t
        q[2] = (m21 + m12) * t
        q[0] = (m10 + m01) * t
        q[3] = (m20 - m02) * t
    else:
        t = math.sqrt(m22 - (m00 + m11) + 1.0)
        q[2] = t * 0.5
        t = 0.5 / t
        q[0] = (m02 + m20) * t
        q[1] = (m21 + m12) * t
        q[3] = (m01 - m10) * t
    return q


@njit(**_JIT)
def quaternion_from_unnormalized(m):
    """Quaternion [x, y, z, w] of the upper-left 3x3 after dividing out column lengths."""
    n = np.empty((3, 3))
    for c in range(3):
        inv = 1.0 / math.sqrt(m[c, 0] * m[c, 0] + m[c, 1] * m[c, 1] + m[c, 2] * m[c, 2])
        n[c, 0] = m[c, 0] * inv
        n[c, 1] = m[c, 1] * inv
        n[c, 2] = m[c, 2] * inv
    return quaternion_from_normalized(n)


@njit(**_JIT)
def euler_angles_zyx(m):
    """Angles (x, y, z) such that the rotation equals Rz(z) * Ry(y) * Rx(x)."""
    out = np.empty(3)
    out[0] = math.atan2(m[1, 2], m[2, 2])
    out[1] = math.atan2(-m[0, 2], math.sqrt(m[1, 2] * m[1, 2] + m[2, 2] * m[2, 2]))
    out[2] = math.atan2(m[0, 1], m[0, 0])
    return out


@njit(**_JIT)
def euler_angles_xyz(m):
    """Angles (x, y, z) such that the rotation equals Rx(x) * Ry(y) * Rz(z)."""
    out = np.empty(3)
    out[0] = math.atan2(-m[2, 1], m[2, 2])
    out[1] = math.atan2(m[2, 0], math.sqrt(m[2, 1] * m[2, 1] + m[2, 2] * m[2, 2]))
    out[2] = math.atan2(-m[1, 0], m[0, 0])
    return out


@njit(**_JIT)
def normal(m, out):
    """
    Inverse transpose of the upper-left 3x3, rest of ``out`` set to identity.
    """
    m00 = m[0, 0]
    m01 = m[0, 1]
    m02 = m[0, 2]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m12 = m[1, 2]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    s = 1.0 / ((m00 * m11 - m01 * m10) * m22
               + (m02 * m10 - m00 * m12) * m21
               + (m01 * m12 - m02 * m11) * m20)
    out[0, 0] = (m11 * m22 - m21 * m12) * s
    out[0, 1] = (m20 * m12 - m10 * m22) * s
    out[0, 2] = (m10 * m21 - m20 * m11) * s
    out[0, 3] = 0.0
    out[1, 0] = (m21 * m02 - m01 * m22) * s
    out[1, 1] = (m00 * m22 - m20 * m02) * s
    out[1, 2] = (m20 * m01 - m00 * m21) * s
    out[1, 3] = 0.0
    out[2, 0] = (m01 * m12 - m02 * m11) * s
    out[2, 1] = (m02 * m10 - m00 * m12) * s
    out[2, 2] = (m00 * m11 - m01 * m10) * s
    out[2, 3] = 0.0
    out[3, 0] = 0.0
    out[3, 1] = 0.0
    out[3, 2] = 0.0
    out[3, 3] = 1.0


@njit(**_JIT)
def normalize_3x3(m, out):
    """Divide each upper-left column by its length; everything else is copied."""
    for c in range(3):
        inv = 1.0 / math.sqrt(m[c, 0] * m[c, 0] + m[c, 1] * m[c, 1] + m[c, 2] * m[c, 2])
        out[c, 0] = m[c, 0] * inv
        out[c, 1] = m[c, 1] * inv
        out[c, 2] = m[c, 2] * inv
        out[c, 3] = m[c, 3]
    for r in range(4):
        out[3, r] = m[3, r]


@njit(**_JIT)
def positive_axis(m, axis):
    """
    Unit vector that the upper-left 3x3 maps onto the world ``axis``
    (0, 1, 2 for +X, +Y, +Z): a column of the 3x3 inverse, up to its length.
    """
    m00 = m[0, 0]
    m01 = m[0, 1]
    m02 = m[0, 2]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m12 = m[1, 2]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    out = np.empty(3)
    if axis == 0:
        out[0] = m11 * m22 - m12 * m21
        out[1] = m02 * m21 - m01 * m22
        out[2] = m01 * m12 - m02 * m11
    elif axis == 1:
        out[0] = m12 * m20 - m10 * m22
        out[1] = m00 * m22 - m02 * m20
        out[2] = m02 * m10 - m00 * m12
    else:
        out[0] = m10 * m21 - m11 * m20
        out[1] = m20 * m01 - m21 * m00
        out[2] = m00 * m11 - m01 * m10
    inv = 1.0 / math.sqrt(out[0] * out[0] + out[1] * out[1] + out[2] * out[2])
    out *= inv
    return out
