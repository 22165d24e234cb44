# inversion.py
"""
Kernels of the inversion engine.

The general inverse expands the 2x2 minors of the first two and last two
columns and divides by the determinant once. A singular input gives
NaN/Inf elements, never an exception.
"""

import warnings

from numba import njit
from numba.core.errors import NumbaPerformanceWarning

from polymatrix.options import jit_options

warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

_JIT = jit_options()


@njit(**_JIT)
def determinant(m):
    a = m[0, 0] * m[1, 1] - m[0, 1] * m[1, 0]
    b = m[0, 0] * m[1, 2] - m[0, 2] * m[1, 0]
    c = m[0, 0] * m[1, 3] - m[0, 3] * m[1, 0]
    d = m[0, 1] * m[1, 2] - m[0, 2] * m[1, 1]
    e = m[0, 1] * m[1, 3] - m[0, 3] * m[1, 1]
    f = m[0, 2] * m[1, 3] - m[0, 3] * m[1, 2]
    g = m[2, 0] * m[3, 1] - m[2, 1] * m[3, 0]
    h = m[2, 0] * m[3, 2] - m[2, 2] * m[3, 0]
    i = m[2, 0] * m[3, 3] - m[2, 3] * m[3, 0]
    j = m[2, 1] * m[3, 2] - m[2, 2] * m[3, 1]
    k = m[2, 1] * m[3, 3] - m[2, 3] * m[3, 1]
    l = m[2, 2] * m[3, 3] - m[2, 3] * m[3, 2]
    return a * l - b * k + c * j + d * i - e * h + f * g


@njit(**_JIT)
def determinant_3x3(m):
    """Determinant of the upper-left 3x3, which is the full determinant when affine."""
    return ((m[0, 0] * m[1, 1] - m[0, 1] * m[1, 0]) * m[2, 2]
            + (m[0, 2] * m[1, 0] - m[0, 0] * m[1, 2]) * m[2, 1]
            + (m[0, 1] * m[1, 2] - m[0, 2] * m[1, 1]) * m[2, 0])


@njit(**_JIT)
def invert_general(m, out):
    m00 = m[0, 0]
    m01 = m[0, 1]
    m02 = m[0, 2]
    m03 = m[0, 3]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m12 = m[1, 2]
    m13 = m[1, 3]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    m23 = m[2, 3]
    m30 = m[3, 0]
    m31 = m[3, 1]
    m32 = m[3, 2]
    m33 = m[3, 3]
    a = m00 * m11 - m01 * m10
    b = m00 * m12 - m02 * m10
    c = m00 * m13 - m03 * m10
    d = m01 * m12 - m02 * m11
    e = m01 * m13 - m03 * m11
    f = m02 * m13 - m03 * m12
    g = m20 * m31 - m21 * m30
    h = m20 * m32 - m22 * m30
    i = m20 * m33 - m23 * m30
    j = m21 * m32 - m22 * m31
    k = m21 * m33 - m23 * m31
    l = m22 * m33 - m23 * m32
    det = 1.0 / (a * l - b * k + c * j + d * i - e * h + f * g)
    out[0, 0] = (m11 * l - m12 * k + m13 * j) * det
    out[0, 1] = (-m01 * l + m02 * k - m03 * j) * det
    out[0, 2] = (m31 * f - m32 * e + m33 * d) * det
    out[0, 3] = (-m21 * f + m22 * e - m23 * d) * det
    out[1, 0] = (-m10 * l + m12 * i - m13 * h) * det
    out[1, 1] = (m00 * l - m02 * i + m03 * h) * det
    out[1, 2] = (-m30 * f + m32 * c - m33 * b) * det
    out[1, 3] = (m20 * f - m22 * c + m23 * b) * det
    out[2, 0] = (m10 * k - m11 * i + m13 * g) * det
    out[2, 1] = (-m00 * k + m01 * i - m03 * g) * det
    out[2, 2] = (m30 * e - m31 * c + m33 * a) * det
    out[2, 3] = (-m20 * e + m21 * c - m23 * a) * det
    out[3, 0] = (-m10 * j + m11 * h - m12 * g) * det
    out[3, 1] = (m00 * j - m01 * h + m02 * g) * det
    out[3, 2] = (-m30 * d + m31 * b - m32 * a) * det
    out[3, 3] = (m20 * d - m21 * b + m22 * a) * det


@njit(**_JIT)
def invert_affine(m, out):
    """Cofactor inverse of the 3x3, then translation ``-R^-1 t``."""
    m00 = m[0, 0]
    m01 = m[0, 1]
    m02 = m[0, 2]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m12 = m[1, 2]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    m30 = m[3, 0]
    m31 = m[3, 1]
    m32 = m[3, 2]
    s = 1.0 / ((m00 * m11 - m01 * m10) * m22
               + (m02 * m10 - m00 * m12) * m21
               + (m01 * m12 - m02 * m11) * m20)
    n00 = (m11 * m22 - m12 * m21) * s
    n01 = (m21 * m02 - m22 * m01) * s
    n02 = (m01 * m12 - m02 * m11) * s
    n10 = (m12 * m20 - m10 * m22) * s
    n11 = (m22 * m00 - m20 * m02) * s
    n12 = (m02 * m10 - m00 * m12) * s
    n20 = (m10 * m21 - m11 * m20) * s
    n21 = (m20 * m01 - m21 * m00) * s
    n22 = (m00 * m11 - m01 * m10) * s
    out[0, 0] = n00
    out[0, 1] = n01
    out[0, 2] = n02
    out[0, 3] = 0.0
    out[1, 0] = n10
    out[1, 1] = n11
    out[1, 2] = n12
    out[1, 3] = 0.0
    out[2, 0] = n20
    out[2, 1] = n21
    out[2, 2] = n22
    out[2, 3] = 0.0
    out[3, 0] = -(n00 * m30 + n10 * m31 + n20 * m32)
    out[3, 1] = -(n01 * m30 + n11 * m31 + n21 * m32)
    out[3, 2] = -(n02 * m30 + n12 * m31 + n22 * m32)
    out[3, 3] = 1.0


@njit(**_JIT)
def invert_affine_unit_scale(m, out):
    """Inverse of a rotation plus translation: transpose the 3x3, translation ``-R^T t``."""
    m00 = m[0, 0]
    m01 = m[0, 1]
    m02 = m[0, 2]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m12 = m[1, 2]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    m30 = m[3, 0]
    m31 = m[3, 1]
    m32 = m[3, 2]
    out[0, 0] = m00
    out[0, 1] = m10
    out[0, 2] = m20
    out[0, 3] = 0.0
    out[1, 0] = m01
    out[1, 1] = m11
    out[1, 2] = m21
    out[1, 3] = 0.0
    out[2, 0] = m02
    out[2, 1] = m12
    out[2, 2] = m22
    out[2, 3] = 0.0
    out[3, 0] = -(m00 * m30 + m01 * m31 + m02 * m32)
    out[3, 1] = -(m10 * m30 + m11 * m31 + m12 * m32)
    out[3, 2] = -(m20 * m30 + m21 * m31 + m22 * m32)
    out[3, 3] = 1.0


@njit(**_JIT)
def invert_perspective(m, out):
    """Inverse of the symmetric perspective pattern (m00, m11, m22, m23, m32)."""
    a = 1.0 / (m[0, 0] * m[1, 1])
    l = -1.0 / (m[2, 3] * m[3, 2])
    n00 = m[1, 1] * a
    n11 = m[0, 0] * a
    n23 = -m[2, 3] * l
    n32 = -m[3, 2] * l
    n33 = m[2, 2] * l
    out[:, :] = 0.0
    out[0, 0] = n00
    out[1, 1] = n11
    out[2, 3] = n23
    out[3, 2] = n32
    out[3, 3] = n33


@njit(**_JIT)
def invert_frustum(m, out):
    """Inverse of an asymmetric frustum: the perspective pattern plus m20 and m21."""
    inv00 = 1.0 / m[0, 0]
    inv11 = 1.0 / m[1, 1]
    inv23 = 1.0 / m[2, 3]
    inv32 = 1.0 / m[3, 2]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m22 = m[2, 2]
    out[:, :] = 0.0
    out[0, 0] = inv00
    out[1, 1] = inv11
    out[2, 3] = inv32
    out[3, 0] = -m20 * inv00 * inv23
    out[3, 1] = -m21 * inv11 * inv23
    out[3, 2] = inv23
    out[3, 3] = -m22 * inv23 * inv32


@njit(**_JIT)
def invert_ortho(m, out):
    """Each axis inverts independently: reciprocal scale, negated and rescaled offset."""
    inv00 = 1.0 / m[0, 0]
    inv11 = 1.0 / m[1, 1]
    inv22 = 1.0 / m[2, 2]
    m30 = m[3, 0]
    m31 = m[3, 1]
    m32 = m[3, 2]
    out[:, :] = 0.0
    out[0, 0] = inv00
    out[1, 1] = inv11
    out[2, 2] = inv22
    out[3, 0] = -m30 * inv00
    out[3, 1] = -m31 * inv11
    out[3, 2] = -m32 * inv22
    out[3, 3] = 1.0


@njit(**_JIT)
def invert_perspective_view(p, v, out):
    """
    Inverse of ``p * v`` where ``p`` has the symmetric perspective pattern and
    ``v`` is a rotation plus translation (a look-at view matrix).
    """
    a = 1.0 / (p[0, 0] * p[1, 1])
    l = -1.0 / (p[2, 3] * p[3, 2])
    pm00 = p[1, 1] * a
    pm11 = p[0, 0] * a
    pm23 = -p[2, 3] * l
    pm32 = -p[3, 2] * l
    pm33 = p[2, 2] * l
    v00 = v[0, 0]
    v01 = v[0, 1]
    v02 = v[0, 2]
    v10 = v[1, 0]
    v11 = v[1, 1]
    v12 = v[1, 2]
    v20 = v[2, 0]
    v21 = v[2, 1]
    v22 = v[2, 2]
    v30 = v[3, 0]
    v31 = v[3, 1]
    v32 = v[3, 2]
    t0 = -v00 * v30 - v01 * v31 - v02 * v32
    t1 = -v10 * v30 - v11 * v31 - v12 * v32
    t2 = -v20 * v30 - v21 * v31 - v22 * v32
    out[0, 0] = v00 * pm00
    out[0, 1] = v10 * pm00
    out[0, 2] = v20 * pm00
    out[0, 3] = 0.0
    out[1, 0] = v01 * pm11
    out[1, 1] = v11 * pm11
    out[1, 2] = v21 * pm11
    out[1, 3] = 0.0
    out[2, 0] = t0 * pm23
    out[2, 1] = t1 * pm23
    out[2, 2] = t2 * pm23
    out[2, 3] = pm23
    out[3, 0] = v02 * pm32 + t0 * pm33
    out[3, 1] = v12 * pm32 + t1 * pm33
    out[3, 2] = v22 * pm32 + t2 * pm33
    out[3, 3] = pm33
