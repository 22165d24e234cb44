"""
Polymatrix: a 4x4 matrix library for 3D graphics, with cached structural
property flags that select cheaper multiplication and inversion algorithms,
projection builders for every handedness and depth convention, and frustum
culling.

Kernels are compiled with numba. Set ``POLYMATRIX_DEBUG`` to verify every
structural assumption at runtime.
"""

import logging

__version__ = version = "0.1.0"

# exposing the public API of the package
from polymatrix._matrix4 import Matrix4, intrinsic_to_frustum
from polymatrix.buffers import (pack_matrix3, pack_matrix3x2, unpack_matrix3,
                                unpack_matrix3x2)
from polymatrix.conventions import (DepthRange, FrustumCorner, FrustumPlane,
                                    Handedness, Intersection)
from polymatrix.errors import (BufferSizeError, PolymatrixError,
                               PropertyAssumptionError)
from polymatrix.frustum import ALL_PLANES, FrustumCuller, plane_mask
from polymatrix.options import OPTIONS, Options
from polymatrix.properties import Property

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Matrix4",
    "intrinsic_to_frustum",
    "Property",
    "Handedness",
    "DepthRange",
    "FrustumPlane",
    "FrustumCorner",
    "Intersection",
    "FrustumCuller",
    "ALL_PLANES",
    "plane_mask",
    "pack_matrix3",
    "pack_matrix3x2",
    "unpack_matrix3",
    "unpack_matrix3x2",
    "PolymatrixError",
    "PropertyAssumptionError",
    "BufferSizeError",
    "Options",
    "OPTIONS",
]
