# conventions.py
from enum import Enum, IntEnum


class Handedness(Enum):
    """Handedness of the view space a projection maps from."""
    RIGHT = 0
    LEFT = 1


class DepthRange(Enum):
    """Range of normalized device z after the perspective divide."""
    NEGATIVE_ONE_TO_ONE = 0     # OpenGL
    ZERO_TO_ONE = 1             # Vulkan, Direct3D, Metal


class FrustumPlane(IntEnum):
    """
    The six clipping planes, in the order of ``Matrix4.frustum_planes()``.

    NX is the plane at x = -1 in normalized device coordinates (left), PX at
    x = +1 (right), NY bottom, PY top, NZ near and PZ far.
    """
    NX = 0
    PX = 1
    NY = 2
    PY = 3
    NZ = 4
    PZ = 5


class FrustumCorner(IntEnum):
    """
    The eight frustum corners named by the sign of their normalized device
    coordinates, in the order of ``Matrix4.frustum_corners()``.
    """
    NXNYNZ = 0
    PXNYNZ = 1
    PXPYNZ = 2
    NXPYNZ = 3
    PXNYPZ = 4
    NXNYPZ = 5
    NXPYPZ = 6
    PXPYPZ = 7


class Intersection(IntEnum):
    """Outcome of ``FrustumCuller.intersect_*`` when the volume is not culled."""
    INTERSECT = -1
    INSIDE = -2


# the three planes meeting at each corner, x plane first
CORNER_PLANES = {
    FrustumCorner.NXNYNZ: (FrustumPlane.NX, FrustumPlane.NY, FrustumPlane.NZ),
    FrustumCorner.PXNYNZ: (FrustumPlane.PX, FrustumPlane.NY, FrustumPlane.NZ),
    FrustumCorner.PXPYNZ: (FrustumPlane.PX, FrustumPlane.PY, FrustumPlane.NZ),
    FrustumCorner.NXPYNZ: (FrustumPlane.NX, FrustumPlane.PY, FrustumPlane.NZ),
    FrustumCorner.PXNYPZ: (FrustumPlane.PX, FrustumPlane.NY, FrustumPlane.PZ),
    FrustumCorner.NXNYPZ: (FrustumPlane.NX, FrustumPlane.NY, FrustumPlane.PZ),
    FrustumCorner.NXPYPZ: (FrustumPlane.NX, FrustumPlane.PY, FrustumPlane.PZ),
    FrustumCorner.PXPYPZ: (FrustumPlane.PX, FrustumPlane.PY, FrustumPlane.PZ),
}
