# transforms.py
import warnings

import numpy as np
from numba import njit
from numba.core.errors import NumbaPerformanceWarning

from polymatrix.options import jit_options

warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

_JIT = jit_options()


@njit(**_JIT)
def transform(m, x, y, z, w):
    """``M * (x, y, z, w)``."""
    out = np.empty(4)
    for r in range(4):
        out[r] = m[0, r] * x + m[1, r] * y + m[2, r] * z + m[3, r] * w
    return out


@njit(**_JIT)
def transform_position(m, x, y, z):
    """Affine transform of a point: w = 1 and the last row is ignored."""
    out = np.empty(3)
    for r in range(3):
        out[r] = m[0, r] * x + m[1, r] * y + m[2, r] * z + m[3, r]
    return out


@njit(**_JIT)
def transform_direction(m, x, y, z):
    """Transform of a direction: w = 0, translation is ignored."""
    out = np.empty(3)
    for r in range(3):
        out[r] = m[0, r] * x + m[1, r] * y + m[2, r] * z
    return out


@njit(**_JIT)
def transform_project(m, x, y, z, w):
    """``M * (x, y, z, w)`` followed by the perspective divide."""
    out = transform(m, x, y, z, w)
    inv_w = 1.0 / out[3]
    out[0] *= inv_w
    out[1] *= inv_w
    out[2] *= inv_w
    out[3] = 1.0
    return out


@njit(**_JIT)
def project(m, x, y, z, viewport):
    """
    Window coordinates of a point: normalized device coordinates mapped onto
    ``viewport`` = (x, y, width, height), depth mapped onto [0, 1].
    """
    ndc = transform_project(m, x, y, z, 1.0)
    out = np.empty(3)
    out[0] = (ndc[0] * 0.5 + 0.5) * viewport[2] + viewport[0]
    out[1] = (ndc[1] * 0.5 + 0.5) * viewport[3] + viewport[1]
    out[2] = (1.0 + ndc[2]) * 0.5
    return out


@njit(**_JIT)
def unproject(inv, win_x, win_y, win_z, viewport):
    """Inverse of ``project``; ``inv`` is the inverse of the projecting matrix."""
    ndc_x = (win_x - viewport[0]) / viewport[2] * 2.0 - 1.0
    ndc_y = (win_y - viewport[1]) / viewport[3] * 2.0 - 1.0
    ndc_z = win_z + win_z - 1.0
    return transform_project(inv, ndc_x, ndc_y, ndc_z, 1.0)[:3]


@njit(**_JIT)
def unproject_ray(inv, win_x, win_y, viewport):
    """
    (origin, direction) of the picking ray through a window position: the
    origin lies on the near plane, the direction reaches the far plane.
    """
    near = unproject(inv, win_x, win_y, 0.0, viewport)
    far = unproject(inv, win_x, win_y, 1.0, viewport)
    return near, far - near
