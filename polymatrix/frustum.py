# frustum.py
"""
Frustum planes, corners and rays of a projection or view-projection
matrix, and the conservative culling tests built on them.

Plane ``i`` is stored as (a, b, c, d) with ``a*x + b*y + c*z + d >= 0``
inside the frustum. With ``zero_to_one`` the near plane is taken at
normalized depth 0 instead of -1.
"""

import logging
import math
from typing import Union

import numpy as np
from numba import njit
from numpy import asarray as np_asarray
from numpy import float64 as np_float64

from polymatrix.conventions import (CORNER_PLANES, DepthRange, FrustumCorner,
                                    FrustumPlane, Intersection)
from polymatrix.options import jit_options

logger = logging.getLogger(__name__)

_JIT = jit_options(exact=True)

_CORNER_PLANES = np.array([CORNER_PLANES[corner] for corner in FrustumCorner], dtype=np.int64)

ALL_PLANES = 0b111111


@njit(**_JIT)
def planes(m, zero_to_one):
    """Unnormalized planes, one row per FrustumPlane: row 3 plus or minus rows 0, 1, 2."""
    out = np.empty((6, 4))
    for c in range(4):
        w = m[c, 3]
        out[0, c] = w + m[c, 0]
        out[1, c] = w - m[c, 0]
        out[2, c] = w + m[c, 1]
        out[3, c] = w - m[c, 1]
        out[4, c] = m[c, 2] if zero_to_one else w + m[c, 2]
        out[5, c] = w - m[c, 2]
    return out


@njit(**_JIT)
def normalize_planes(p):
    """Scale each plane so that (a, b, c) has unit length."""
    out = np.empty((6, 4))
    for i in range(6):
        inv = 1.0 / math.sqrt(p[i, 0] * p[i, 0] + p[i, 1] * p[i, 1] + p[i, 2] * p[i, 2])
        for k in range(4):
            out[i, k] = p[i, k] * inv
    return out


@njit(**_JIT)
def intersect_planes(p1, p2, p3):
    """The point shared by three planes."""
    c23x = p2[1] * p3[2] - p2[2] * p3[1]
    c23y = p2[2] * p3[0] - p2[0] * p3[2]
    c23z = p2[0] * p3[1] - p2[1] * p3[0]
    c31x = p3[1] * p1[2] - p3[2] * p1[1]
    c31y = p3[2] * p1[0] - p3[0] * p1[2]
    c31z = p3[0] * p1[1] - p3[1] * p1[0]
    c12x = p1[1] * p2[2] - p1[2] * p2[1]
    c12y = p1[2] * p2[0] - p1[0] * p2[2]
    c12z = p1[0] * p2[1] - p1[1] * p2[0]
    inv_dot = 1.0 / (p1[0] * c23x + p1[1] * c23y + p1[2] * c23z)
    out = np.empty(3)
    out[0] = (-c23x * p1[3] - c31x * p2[3] - c12x * p3[3]) * inv_dot
    out[1] = (-c23y * p1[3] - c31y * p2[3] - c12y * p3[3]) * inv_dot
    out[2] = (-c23z * p1[3] - c31z * p2[3] - c12z * p3[3]) * inv_dot
    return out


@njit(**_JIT)
def corners(m, zero_to_one):
    p = planes(m, zero_to_one)
    out = np.empty((8, 3))
    for i in range(8):
        out[i, :] = intersect_planes(p[_CORNER_PLANES[i, 0]],
                                     p[_CORNER_PLANES[i, 1]],
                                     p[_CORNER_PLANES[i, 2]])
    return out


@njit(**_JIT)
def perspective_origin(m):
    """Apex of a perspective frustum: where the left, right and top planes meet."""
    p = planes(m, False)
    return intersect_planes(p[0], p[1], p[3])


@njit(**_JIT)
def ray_dir(m, x, y):
    """
    Direction of the ray through the normalized frustum position (x, y),
    (0, 0) being the bottom-left and (1, 1) the top-right edge. The four
    edge rays are interpolated bilinearly.
    """
    m00 = m[0, 0]
    m01 = m[0, 1]
    m03 = m[0, 3]
    m10 = m[1, 0]
    m11 = m[1, 1]
    m13 = m[1, 3]
    m20 = m[2, 0]
    m21 = m[2, 1]
    m23 = m[2, 3]
    a = m10 * m23
    b = m13 * m21
    c = m10 * m21
    d = m11 * m23
    e = m13 * m20
    f = m11 * m20
    g = m03 * m20
    h = m01 * m23
    i = m01 * m20
    j = m03 * m21
    k = m00 * m23
    l = m00 * m21
    mm = m00 * m13
    n = m03 * m11
    o = m00 * m11
    p = m01 * m13
    q = m03 * m10
    r = m01 * m10
    m1x = (d + e + f - a - b - c) * (1.0 - y) + (a - b - c + d - e + f) * y
    m1y = (j + k + l - g - h - i) * (1.0 - y) + (g - h - i + j - k + l) * y
    m1z = (p + q + r - mm - n - o) * (1.0 - y) + (mm - n - o + p - q + r) * y
    m2x = (b - c - d + e + f - a) * (1.0 - y) + (a + b - c - d - e + f) * y
    m2y = (h - i - j + k + l - g) * (1.0 - y) + (g + h - i - j - k + l) * y
    m2z = (n - o - p + q + r - mm) * (1.0 - y) + (mm + n - o - p - q + r) * y
    out = np.empty(3)
    out[0] = m1x * (1.0 - x) + m2x * x
    out[1] = m1y * (1.0 - x) + m2y * x
    out[2] = m1z * (1.0 - x) + m2z * x
    inv = 1.0 / math.sqrt(out[0] * out[0] + out[1] * out[1] + out[2] * out[2])
    out *= inv
    return out


########
# Culling tests
#

@njit(**_JIT)
def point_inside(p, x, y, z):
    for i in range(6):
        if p[i, 0] * x + p[i, 1] * y + p[i, 2] * z + p[i, 3] < 0.0:
            return False
    return True


@njit(**_JIT)
def sphere_inside(p, x, y, z, radius):
    """``p`` must be normalized. May report spheres that are not visible."""
    for i in range(6):
        if p[i, 0] * x + p[i, 1] * y + p[i, 2] * z + p[i, 3] < -radius:
            return False
    return True


@njit(**_JIT)
def aab_inside(p, min_x, min_y, min_z, max_x, max_y, max_z):
    """
    Evaluates each plane at the box corner furthest along its normal.
    May report boxes that are not visible.
    """
    for i in range(6):
        a = p[i, 0]
        b = p[i, 1]
        c = p[i, 2]
        if (a * (min_x if a < 0.0 else max_x)
                + b * (min_y if b < 0.0 else max_y)
                + c * (min_z if c < 0.0 else max_z)) < -p[i, 3]:
            return False
    return True


@njit(**_JIT)
def intersect_sphere(p, x, y, z, radius):
    """-2 inside, -1 intersecting, otherwise the index of the culling plane."""
    inside = True
    for i in range(6):
        dist = p[i, 0] * x + p[i, 1] * y + p[i, 2] * z + p[i, 3]
        if dist < -radius:
            return i
        inside = inside and dist >= radius
    return -2 if inside else -1


@njit(**_JIT)
def intersect_aab(p, min_x, min_y, min_z, max_x, max_y, max_z, mask):
    """
    -2 inside, -1 intersecting, otherwise the index of the first plane in
    ``mask`` that culls the box.
    """
    inside = True
    for i in range(6):
        if not (mask >> i) & 1:
            continue
        a = p[i, 0]
        b = p[i, 1]
        c = p[i, 2]
        w = p[i, 3]
        if (a * (min_x if a < 0.0 else max_x)
                + b * (min_y if b < 0.0 else max_y)
                + c * (min_z if c < 0.0 else max_z)) < -w:
            return i
        near = (a * (max_x if a < 0.0 else min_x)
                + b * (max_y if b < 0.0 else min_y)
                + c * (max_z if c < 0.0 else min_z))
        inside = inside and near >= -w
    return -2 if inside else -1


def _result(code: int) -> Union[Intersection, FrustumPlane]:
    if code < 0:
        return Intersection(code)
    return FrustumPlane(code)


class FrustumCuller:
    """
    The six normalized planes of a (view-)projection matrix, extracted once
    and reused for many culling queries.

    All tests are conservative: they may report a volume as visible when it
    is not, and never report a visible volume as culled.

    Attributes:
        planes (ndarray): (6, 4) normalized planes in FrustumPlane order.
    """
    __slots__ = ("planes",)

    def __init__(self, matrix=None, *, depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE):
        self.planes = np.zeros((6, 4), dtype=np_float64)
        if matrix is not None:
            self.set(matrix, depth_range=depth_range)

    def set(self, matrix, *, depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> "FrustumCuller":
        """
        Extract the planes of ``matrix``.

        Args:
            matrix: a Matrix4.
            depth_range: normalized depth convention the matrix projects to.

        Returns:
            self
        """
        raw = planes(matrix.m, depth_range is DepthRange.ZERO_TO_ONE)
        self.planes = normalize_planes(raw)
        logger.debug("Frustum planes updated:\n%s", self.planes)
        return self

    def test_point(self, point) -> bool:
        x, y, z = np_asarray(point, dtype=np_float64)[:3]
        return bool(point_inside(self.planes, x, y, z))

    def test_sphere(self, center, radius: float) -> bool:
        x, y, z = np_asarray(center, dtype=np_float64)[:3]
        return bool(sphere_inside(self.planes, x, y, z, float(radius)))

    def test_aab(self, minimum, maximum) -> bool:
        lo = np_asarray(minimum, dtype=np_float64)
        hi = np_asarray(maximum, dtype=np_float64)
        return bool(aab_inside(self.planes, lo[0], lo[1], lo[2], hi[0], hi[1], hi[2]))

    def intersect_sphere(self, center, radius: float) -> Union[Intersection, FrustumPlane]:
        """
        Classify a sphere against the frustum.

        Returns:
            Intersection.INSIDE, Intersection.INTERSECT, or the FrustumPlane
            that culled the sphere.
        """
        x, y, z = np_asarray(center, dtype=np_float64)[:3]
        return _result(intersect_sphere(self.planes, x, y, z, float(radius)))

    def intersect_aab(self, minimum, maximum, mask: int = ALL_PLANES) -> Union[Intersection, FrustumPlane]:
        """
        Classify an axis-aligned box against the frustum.

        Args:
            minimum: the box's minimum corner.
            maximum: the box's maximum corner.
            mask: bit ``1 << plane`` set for every FrustumPlane to test.

        Returns:
            Intersection.INSIDE, Intersection.INTERSECT, or the FrustumPlane
            that culled the box.
        """
        lo = np_asarray(minimum, dtype=np_float64)
        hi = np_asarray(maximum, dtype=np_float64)
        return _result(intersect_aab(self.planes, lo[0], lo[1], lo[2], hi[0], hi[1], hi[2], int(mask)))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(planes=\n{self.planes}\n)"


def plane_mask(*selected: FrustumPlane) -> int:
    """Bit mask selecting ``selected`` planes for ``FrustumCuller.intersect_aab``."""
    mask = 0
    for plane in selected:
        mask |= 1 << int(plane)
    return mask
