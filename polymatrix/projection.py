# projection.py
"""
Projection and view builders.

Every builder writes the right-handed matrix first; the left-handed variant
is the same matrix with its z column negated (view-space z mirrored).
``zero_to_one`` selects a [0, 1] normalized device depth instead of [-1, 1].

An infinite ``z_far`` (or ``z_near``, for reversed depth) is replaced by
the limit of the finite formula biased by ``INFINITY_EPSILON``, see
"Infinite Projection Matrix", Lengyel, GDC 2007. Both infinite at once is
undefined.
"""

import math

from numba import njit

from polymatrix.options import jit_options

# these kernels test for infinities, fastmath would fold the tests away
_JIT = jit_options(exact=True)

INFINITY_EPSILON = 1e-6


@njit(**_JIT)
def depth_terms(z_near, z_far, zero_to_one):
    """(m22, m32) of a right-handed perspective."""
    far_inf = z_far > 0.0 and math.isinf(z_far)
    near_inf = z_near > 0.0 and math.isinf(z_near)
    if far_inf:
        m22 = INFINITY_EPSILON - 1.0
        m32 = (INFINITY_EPSILON - (1.0 if zero_to_one else 2.0)) * z_near
    elif near_inf:
        m22 = (0.0 if zero_to_one else 1.0) - INFINITY_EPSILON
        m32 = ((1.0 if zero_to_one else 2.0) - INFINITY_EPSILON) * z_far
    else:
        m22 = (z_far if zero_to_one else z_far + z_near) / (z_near - z_far)
        m32 = (z_far if zero_to_one else z_far + z_far) * z_near / (z_near - z_far)
    return m22, m32


@njit(**_JIT)
def mirror_z(out):
    for r in range(4):
        out[2, r] = -out[2, r]


@njit(**_JIT)
def perspective(fovy, aspect, z_near, z_far, left_handed, zero_to_one, out):
    h = math.tan(fovy * 0.5)
    m22, m32 = depth_terms(z_near, z_far, zero_to_one)
    out[:, :] = 0.0
    out[0, 0] = 1.0 / (h * aspect)
    out[1, 1] = 1.0 / h
    out[2, 2] = m22
    out[2, 3] = -1.0
    out[3, 2] = m32
    if left_handed:
        mirror_z(out)


@njit(**_JIT)
def perspective_off_center(fovy, offset_x, offset_y, aspect, z_near, z_far, left_handed, zero_to_one, out):
    """Perspective whose line of sight is tilted by the angles ``offset_x``/``offset_y``."""
    perspective(fovy, aspect, z_near, z_far, False, zero_to_one, out)
    out[2, 0] = math.tan(offset_x) * out[0, 0]
    out[2, 1] = math.tan(offset_y) * out[1, 1]
    if left_handed:
        mirror_z(out)


@njit(**_JIT)
def frustum(left, right, bottom, top, z_near, z_far, left_handed, zero_to_one, out):
    m22, m32 = depth_terms(z_near, z_far, zero_to_one)
    out[:, :] = 0.0
    out[0, 0] = (z_near + z_near) / (right - left)
    out[1, 1] = (z_near + z_near) / (top - bottom)
    out[2, 0] = (right + left) / (right - left)
    out[2, 1] = (top + bottom) / (top - bottom)
    out[2, 2] = m22
    out[2, 3] = -1.0
    out[3, 2] = m32
    if left_handed:
        mirror_z(out)


@njit(**_JIT)
def ortho(left, right, bottom, top, z_near, z_far, left_handed, zero_to_one, out):
    out[:, :] = 0.0
    out[0, 0] = 2.0 / (right - left)
    out[1, 1] = 2.0 / (top - bottom)
    out[2, 2] = (1.0 if zero_to_one else 2.0) / (z_near - z_far)
    out[3, 0] = (right + left) / (left - right)
    out[3, 1] = (top + bottom) / (bottom - top)
    out[3, 2] = (z_near if zero_to_one else z_far + z_near) / (z_near - z_far)
    out[3, 3] = 1.0
    if left_handed:
        mirror_z(out)


@njit(**_JIT)
def intrinsic_frustum(alpha_x, alpha_y, u0, v0, width, height, z_near):
    """
    Frustum bounds at ``z_near`` of a pinhole camera with focal lengths
    ``alpha_x``/``alpha_y`` (pixels) and principal point (u0, v0) measured
    from the bottom-left corner of a ``width`` x ``height`` image.
    """
    left = -u0 * z_near / alpha_x
    right = (width - u0) * z_near / alpha_x
    bottom = -v0 * z_near / alpha_y
    top = (height - v0) * z_near / alpha_y
    return left, right, bottom, top


@njit(**_JIT)
def intrinsic_skew(gamma, width):
    """Clip-space x shear of a camera whose image axes are skewed by ``gamma``."""
    return 2.0 * gamma / width


@njit(**_JIT)
def look_at(ex, ey, ez, cx, cy, cz, ux, uy, uz, left_handed, out):
    """
    View matrix placing the eye at (ex, ey, ez) looking at (cx, cy, cz).
    Right-handed views look down -z, left-handed down +z.
    """
    if left_handed:
        dx = cx - ex
        dy = cy - ey
        dz = cz - ez
    else:
        dx = ex - cx
        dy = ey - cy
        dz = ez - cz
    inv = 1.0 / math.sqrt(dx * dx + dy * dy + dz * dz)
    dx *= inv
    dy *= inv
    dz *= inv
    # left = up x dir
    lx = uy * dz - uz * dy
    ly = uz * dx - ux * dz
    lz = ux * dy - uy * dx
    inv = 1.0 / math.sqrt(lx * lx + ly * ly + lz * lz)
    lx *= inv
    ly *= inv
    lz *= inv
    # up = dir x left
    upx = dy * lz - dz * ly
    upy = dz * lx - dx * lz
    upz = dx * ly - dy * lx
    out[0, 0] = lx
    out[0, 1] = upx
    out[0, 2] = dx
    out[0, 3] = 0.0
    out[1, 0] = ly
    out[1, 1] = upy
    out[1, 2] = dy
    out[1, 3] = 0.0
    out[2, 0] = lz
    out[2, 1] = upz
    out[2, 2] = dz
    out[2, 3] = 0.0
    out[3, 0] = -(lx * ex + ly * ey + lz * ez)
    out[3, 1] = -(upx * ex + upy * ey + upz * ez)
    out[3, 2] = -(dx * ex + dy * ey + dz * ez)
    out[3, 3] = 1.0


@njit(**_JIT)
def plane_distance(m, ndc_z):
    """
    Distance from the eye to the plane a perspective matrix maps to the
    normalized device depth ``ndc_z``.
    """
    return abs(m[3, 2] / (m[2, 2] - ndc_z * m[2, 3]))


@njit(**_JIT)
def perspective_fov(m):
    """Angle between the bottom and top clipping planes."""
    n1x = m[0, 3] + m[0, 1]
    n1y = m[1, 3] + m[1, 1]
    n1z = m[2, 3] + m[2, 1]
    n2x = m[0, 1] - m[0, 3]
    n2y = m[1, 1] - m[1, 3]
    n2z = m[2, 1] - m[2, 3]
    n1len = math.sqrt(n1x * n1x + n1y * n1y + n1z * n1z)
    n2len = math.sqrt(n2x * n2x + n2y * n2y + n2z * n2z)
    return math.acos((n1x * n2x + n1y * n2y + n1z * n2z) / (n1len * n2len))
