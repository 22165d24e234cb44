# properties.py
"""
Property flags cached on every Matrix4, and the static table that derives
the flags of an operation's result from the flags of its operands.
"""

from enum import Enum, IntFlag

from numpy import eye as np_eye
from numpy import ndarray


class Property(IntFlag):
    """
    Structural guarantees known to hold for a matrix.

    IDENTITY implies AFFINE and TRANSLATION. TRANSLATION implies AFFINE.
    PERSPECTIVE is the element pattern of the symmetric perspective builder:
    only m00, m11, m22, m23 and m32 are non-zero and m23 is +1 or -1.
    """
    NONE = 0
    PERSPECTIVE = 1 << 0
    AFFINE = 1 << 1
    IDENTITY = 1 << 2
    TRANSLATION = 1 << 3


IDENTITY_FLAGS = Property.IDENTITY | Property.AFFINE | Property.TRANSLATION
TRANSLATION_FLAGS = Property.AFFINE | Property.TRANSLATION

_EYE3 = np_eye(3)


class Operation(Enum):
    """In-place edits whose result flags depend only on the receiver's flags."""
    TRANSLATE = "translate"          # translate, translate_local, set_translation
    LINEAR = "linear"                # rotate, scale, set_3x3, normalize_3x3
    ELEMENTWISE = "elementwise"      # add, sub, lerp, fma, mul_component_wise
    RAW = "raw"                      # element, row and column writes


_KEEP = {
    Operation.TRANSLATE: TRANSLATION_FLAGS,
    Operation.LINEAR: Property.AFFINE,
    Operation.ELEMENTWISE: Property.NONE,
    Operation.RAW: Property.NONE,
}


def after(operation: Operation, flags: Property) -> Property:
    """Flags of the receiver after ``operation`` was applied to it."""
    if flags & Property.IDENTITY:
        flags = flags | IDENTITY_FLAGS
    return Property(flags & _KEEP[operation])


def compose(left: Property, right: Property) -> Property:
    """Flags of ``left * right``."""
    if left & Property.IDENTITY:
        return Property(right)
    if right & Property.IDENTITY:
        return Property(left)
    if left & Property.TRANSLATION and right & Property.TRANSLATION:
        return TRANSLATION_FLAGS
    if left & Property.AFFINE and right & Property.AFFINE:
        return Property.AFFINE
    return Property.NONE


def inverted(flags: Property) -> Property:
    """Flags of the inverse of a matrix with ``flags``."""
    if flags & Property.IDENTITY:
        return IDENTITY_FLAGS
    if flags & Property.AFFINE:
        return Property(flags & TRANSLATION_FLAGS)
    return Property.NONE


def transposed(flags: Property) -> Property:
    if flags & Property.IDENTITY:
        return IDENTITY_FLAGS
    return Property.NONE


def classify(m: ndarray) -> Property:
    """
    Prove the flags that hold for the elements of ``m`` (indexed [col, row]).

    Comparisons are exact: a matrix that is affine only up to rounding is
    reported as not affine.
    """
    flags = Property.NONE
    if m[0, 3] == 0.0 and m[1, 3] == 0.0 and m[2, 3] == 0.0 and m[3, 3] == 1.0:
        flags |= Property.AFFINE
        if (m[0, 0] == 1.0 and m[1, 1] == 1.0 and m[2, 2] == 1.0
                and m[0, 1] == 0.0 and m[0, 2] == 0.0 and m[1, 0] == 0.0
                and m[1, 2] == 0.0 and m[2, 0] == 0.0 and m[2, 1] == 0.0):
            flags |= Property.TRANSLATION
            if m[3, 0] == 0.0 and m[3, 1] == 0.0 and m[3, 2] == 0.0:
                flags |= Property.IDENTITY
        return flags
    if (abs(m[2, 3]) == 1.0 and m[3, 3] == 0.0
            and m[0, 1] == 0.0 and m[0, 2] == 0.0 and m[0, 3] == 0.0
            and m[1, 0] == 0.0 and m[1, 2] == 0.0 and m[1, 3] == 0.0
            and m[2, 0] == 0.0 and m[2, 1] == 0.0
            and m[3, 0] == 0.0 and m[3, 1] == 0.0):
        flags |= Property.PERSPECTIVE
    return flags


def satisfies(actual: Property, required: Property) -> bool:
    """True if every flag in ``required`` is present in ``actual``."""
    return (actual & required) == required


########
# Structure predicates for fast paths that have no flag of their own
#

def is_frustum(m: ndarray) -> bool:
    """Perspective pattern plus the m20 and m21 terms of an asymmetric frustum."""
    return (abs(m[2, 3]) == 1.0 and m[3, 3] == 0.0
            and m[0, 1] == 0.0 and m[0, 2] == 0.0 and m[0, 3] == 0.0
            and m[1, 0] == 0.0 and m[1, 2] == 0.0 and m[1, 3] == 0.0
            and m[3, 0] == 0.0 and m[3, 1] == 0.0)


def is_ortho(m: ndarray) -> bool:
    """Affine with a diagonal upper-left 3x3."""
    return (satisfies(classify(m), Property.AFFINE)
            and m[0, 1] == 0.0 and m[0, 2] == 0.0 and m[1, 0] == 0.0
            and m[1, 2] == 0.0 and m[2, 0] == 0.0 and m[2, 1] == 0.0)


def has_unit_columns(m: ndarray, tol: float = 1e-9) -> bool:
    lengths = (m[:3, :3] ** 2).sum(axis=1)
    return bool(abs(lengths - 1.0).max() <= tol)


def has_orthonormal_3x3(m: ndarray, tol: float = 1e-9) -> bool:
    block = m[:3, :3]
    return bool(abs(block @ block.T - _EYE3).max() <= tol)
