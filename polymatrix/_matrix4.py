# _matrix4.py

import logging
from typing import List, Optional, Sequence, Tuple, Union

from numpy import allclose as np_allclose
from numpy import array as np_array
from numpy import array2string as np_array2string
from numpy import asarray as np_asarray
from numpy import empty as np_empty
from numpy import eye as np_eye
from numpy import float64 as np_float64
from numpy import ndarray
from numpy import ndim as np_ndim

from polymatrix import buffers, options
from polymatrix import composition as _comp
from polymatrix import decomposition as _dec
from polymatrix import frustum as _fru
from polymatrix import inversion as _inv
from polymatrix import projection as _proj
from polymatrix import transforms as _xf
from polymatrix.conventions import (CORNER_PLANES, DepthRange, FrustumCorner,
                                    FrustumPlane, Handedness)
from polymatrix.errors import PropertyAssumptionError
from polymatrix.properties import (IDENTITY_FLAGS, TRANSLATION_FLAGS,
                                   Operation, Property, after, classify,
                                   compose, has_orthonormal_3x3,
                                   has_unit_columns, inverted, is_frustum,
                                   is_ortho, satisfies, transposed)

logger = logging.getLogger(__name__)

VectorLike = Union[ndarray, Sequence[float]]

# preallocate the identity matrix for performance
_EYE4 = np_eye(4, dtype=np_float64)


def _vector(v: VectorLike, size: int) -> ndarray:
    arr = np_asarray(v, dtype=np_float64)
    if arr.shape != (size,):
        raise ValueError(f"Expected a vector of length {size}, got shape {arr.shape}")
    return arr


def _xyz(x, y=None, z=None) -> Tuple[float, float, float]:
    if y is None and z is None:
        x, y, z = _vector(x, 3)
    return float(x), float(y), float(z)


def _scale_xyz(x, y=None, z=None) -> Tuple[float, float, float]:
    if y is None and z is None and np_ndim(x) == 0:
        return float(x), float(x), float(x)
    return _xyz(x, y, z)


def _quaternion(q: VectorLike, w_last: bool) -> Tuple[float, float, float, float]:
    q = _vector(q, 4)
    if w_last:
        return float(q[0]), float(q[1]), float(q[2]), float(q[3])
    return float(q[1]), float(q[2]), float(q[3]), float(q[0])


def _viewport(viewport: VectorLike) -> ndarray:
    return _vector(viewport, 4)


class Matrix4:
    """
    A 4x4 float64 matrix for 3D graphics, column-major, transforming column
    vectors as ``M @ v``.

    Elements are stored in ``m``, a C-contiguous (4, 4) array indexed
    ``[col, row]`` so that its memory is in column-major order. ``matrix``
    is the transposed view indexed ``[row, col]``. The named accessors
    ``m00`` .. ``m33`` follow the column-then-row convention: ``m30`` is
    the x translation.

    Every matrix caches a set of :class:`Property` flags describing its
    proven structure. Operations read the flags to pick cheaper algorithms
    and derive the flags of their result. The ``assume_*`` methods set
    flags without proof and silently corrupt later results when wrong.

    Operations return a new matrix by default. Pass ``dest=`` to write into
    an existing matrix (which may be ``self`` or an operand) or
    ``inplace=True`` to modify ``self``.

    Attributes:
        m (ndarray): (4, 4) elements indexed [col, row].
    """
    __slots__ = ("m", "_properties")

    def __init__(self, matrix: Optional[ndarray] = None):
        """
        Args:
            matrix: (4, 4) array in [row, col] orientation. Identity when omitted.
        """
        if matrix is None:
            self.m = _EYE4.copy()
            self._properties = IDENTITY_FLAGS
            return
        matrix = np_asarray(matrix, dtype=np_float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Invalid matrix shape: {matrix.shape}")
        self.m = np_array(matrix.T, dtype=np_float64, order="C")
        self._properties = classify(self.m)

    @classmethod
    def _blank(cls) -> "Matrix4":
        instance = cls.__new__(cls)
        instance.m = np_empty((4, 4), dtype=np_float64)
        instance._properties = Property.NONE
        return instance

    @classmethod
    def _wrap(cls, m: ndarray, properties: Property) -> "Matrix4":
        instance = cls.__new__(cls)
        instance.m = m
        instance._properties = Property(properties)
        return instance

    def _target(self, dest: Optional["Matrix4"], inplace: bool) -> "Matrix4":
        if inplace:
            return self
        if dest is None:
            return self._blank()
        return dest

    def _require(self, required: Property, operation: str) -> None:
        if options.OPTIONS.debug and not satisfies(classify(self.m), required):
            self._assumption_failed(operation, required.name)

    def _require_structure(self, holds: bool, operation: str, structure: str) -> None:
        if options.OPTIONS.debug and not holds:
            self._assumption_failed(operation, structure)

    def _assumption_failed(self, operation: str, structure: str) -> None:
        logger.warning("%s called on a matrix that is not %s:\n%s", operation, structure, self.matrix)
        raise PropertyAssumptionError(f"{operation} requires a matrix that is {structure}")

    ########
    # Builders
    #

    @classmethod
    def identity(cls, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        out = cls._blank() if dest is None else dest
        out.m[:, :] = _EYE4
        out._properties = IDENTITY_FLAGS
        return out

    @classmethod
    def zero(cls, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        out = cls._blank() if dest is None else dest
        out.m[:, :] = 0.0
        out._properties = Property.NONE
        return out

    @classmethod
    def from_values(cls, *values: float) -> "Matrix4":
        """
        Create a Matrix4 from 16 values in column-major order
        (m00, m01, m02, m03, m10, ... m33).
        """
        if len(values) != 16:
            raise ValueError(f"Expected 16 values, got {len(values)}")
        m = np_array(values, dtype=np_float64).reshape(4, 4)
        return cls._wrap(m, classify(m))

    @classmethod
    def from_columns(cls, c0: VectorLike, c1: VectorLike, c2: VectorLike, c3: VectorLike) -> "Matrix4":
        m = np_empty((4, 4), dtype=np_float64)
        for i, column in enumerate((c0, c1, c2, c3)):
            m[i] = _vector(column, 4)
        return cls._wrap(m, classify(m))

    @classmethod
    def from_flat_array(cls, flat_array: VectorLike, *, transposed: bool = False) -> "Matrix4":
        """
        Create a Matrix4 from 16 values, column-major unless ``transposed``.
        """
        return cls.from_buffer(np_asarray(flat_array, dtype=np_float64).reshape(-1), transposed=transposed)

    @classmethod
    def from_buffer(cls, buffer, offset: int = 0, *, transposed: bool = False, dtype=None) -> "Matrix4":
        """
        Read 16 elements from a flat buffer, see :mod:`polymatrix.buffers`.
        """
        m = buffers.unpack(buffer, 16, offset, transposed=transposed, dtype=dtype)
        return cls._wrap(m, classify(m))

    @classmethod
    def from_translation(cls, x, y=None, z=None, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create a pure translation.

        Args:
            x: x offset, or a 3-vector holding all three offsets.
            y: y offset.
            z: z offset.
            dest: matrix to overwrite instead of allocating one.

        Returns:
            Matrix4 flagged AFFINE | TRANSLATION.
        """
        x, y, z = _xyz(x, y, z)
        out = cls.identity(dest=dest)
        out.m[3, 0] = x
        out.m[3, 1] = y
        out.m[3, 2] = z
        out._properties = TRANSLATION_FLAGS
        return out

    @classmethod
    def from_scale(cls, x, y=None, z=None, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Create a scaling; a single scalar scales uniformly."""
        x, y, z = _scale_xyz(x, y, z)
        out = cls.identity(dest=dest)
        out.m[0, 0] = x
        out.m[1, 1] = y
        out.m[2, 2] = z
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_rotation(cls, angle: float, axis: VectorLike, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create a rotation of ``angle`` radians about ``axis`` (normalized here).
        """
        out = cls.identity(dest=dest)
        x, y, z = _xyz(axis)
        out.m[:3, :3] = _comp.axis_angle_rotation(float(angle), x, y, z)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_axis_angle(cls, axis_angle: VectorLike, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Create a rotation from ``(angle, x, y, z)``."""
        angle, x, y, z = _vector(axis_angle, 4)
        return cls.from_rotation(angle, (x, y, z), dest=dest)

    @classmethod
    def from_rotation_x(cls, angle: float, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        out = cls.identity(dest=dest)
        _comp.rotate_x(out.m, float(angle), out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_rotation_y(cls, angle: float, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        out = cls.identity(dest=dest)
        _comp.rotate_y(out.m, float(angle), out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_rotation_z(cls, angle: float, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        out = cls.identity(dest=dest)
        _comp.rotate_z(out.m, float(angle), out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_euler_xyz(cls, x: float, y: float, z: float, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Rx(x) * Ry(y) * Rz(z)."""
        return cls.identity(dest=dest).rotate_xyz(x, y, z, inplace=True)

    @classmethod
    def from_euler_zyx(cls, z: float, y: float, x: float, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Rz(z) * Ry(y) * Rx(x)."""
        return cls.identity(dest=dest).rotate_zyx(z, y, x, inplace=True)

    @classmethod
    def from_euler_yxz(cls, y: float, x: float, z: float, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Ry(y) * Rx(x) * Rz(z)."""
        return cls.identity(dest=dest).rotate_yxz(y, x, z, inplace=True)

    @classmethod
    def from_quaternion(cls, quaternion: VectorLike, w_last: bool = True, *,
                        dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create the rotation of a unit quaternion.

        Args:
            quaternion: 4-element array.
            w_last: if True, the quaternion is [x, y, z, w], else [w, x, y, z].
            dest: matrix to overwrite instead of allocating one.

        Returns:
            Matrix4 flagged AFFINE.
        """
        out = cls.identity(dest=dest)
        out.m[:3, :3] = _comp.quaternion_rotation(*_quaternion(quaternion, w_last))
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_translation_rotate_scale(cls, translation: VectorLike, quaternion: VectorLike, scale: VectorLike,
                                      w_last: bool = True, *, dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create ``T(translation) * R(quaternion) * S(scale)`` in a single pass.

        Args:
            translation: length-3 translation.
            quaternion: unit quaternion, [x, y, z, w] unless ``w_last`` is False.
            scale: length-3 scale factors, or one uniform scalar.
            dest: matrix to overwrite instead of allocating one.

        Returns:
            Matrix4 flagged AFFINE.
        """
        out = cls._blank() if dest is None else dest
        tx, ty, tz = _xyz(translation)
        sx, sy, sz = _scale_xyz(scale)
        qx, qy, qz, qw = _quaternion(quaternion, w_last)
        _comp.translation_rotate_scale(tx, ty, tz, qx, qy, qz, qw, sx, sy, sz, out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_perspective(cls, fovy: float, aspect: float, z_near: float, z_far: float, *,
                         handedness: Handedness = Handedness.RIGHT,
                         depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                         dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create a symmetric perspective projection.

        Args:
            fovy: vertical field of view in radians, in (0, pi).
            aspect: width / height of the viewport.
            z_near: distance to the near plane; ``inf`` for reversed infinite depth.
            z_far: distance to the far plane; ``inf`` for an infinite far plane.
                Only one of the two may be infinite.
            handedness: handedness of the view space.
            depth_range: normalized device depth range.
            dest: matrix to overwrite instead of allocating one.

        Returns:
            Matrix4 flagged PERSPECTIVE.
        """
        out = cls._blank() if dest is None else dest
        _proj.perspective(float(fovy), float(aspect), float(z_near), float(z_far),
                          handedness is Handedness.LEFT, depth_range is DepthRange.ZERO_TO_ONE, out.m)
        out._properties = Property.PERSPECTIVE
        return out

    @classmethod
    def from_perspective_off_center(cls, fovy: float, offset_x: float, offset_y: float, aspect: float,
                                    z_near: float, z_far: float, *,
                                    handedness: Handedness = Handedness.RIGHT,
                                    depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                                    dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create a perspective projection whose line of sight is tilted by
        ``offset_x`` radians horizontally and ``offset_y`` vertically, keeping
        the image plane perpendicular to the view axis.

        Returns:
            Matrix4 flagged PERSPECTIVE only when both offsets are zero.
        """
        out = cls._blank() if dest is None else dest
        _proj.perspective_off_center(float(fovy), float(offset_x), float(offset_y), float(aspect),
                                     float(z_near), float(z_far), handedness is Handedness.LEFT,
                                     depth_range is DepthRange.ZERO_TO_ONE, out.m)
        out._properties = classify(out.m)
        return out

    @classmethod
    def from_frustum(cls, left: float, right: float, bottom: float, top: float, z_near: float, z_far: float, *,
                     handedness: Handedness = Handedness.RIGHT,
                     depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                     dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create a perspective projection of the frustum whose near plane spans
        ``left`` .. ``right`` and ``bottom`` .. ``top``. Infinite planes are
        handled as in :meth:`from_perspective`.

        Returns:
            Matrix4 flagged PERSPECTIVE when the frustum is symmetric.
        """
        out = cls._blank() if dest is None else dest
        _proj.frustum(float(left), float(right), float(bottom), float(top), float(z_near), float(z_far),
                      handedness is Handedness.LEFT, depth_range is DepthRange.ZERO_TO_ONE, out.m)
        out._properties = classify(out.m)
        return out

    @classmethod
    def from_ortho(cls, left: float, right: float, bottom: float, top: float, z_near: float, z_far: float, *,
                   handedness: Handedness = Handedness.RIGHT,
                   depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                   dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create an orthographic projection of the given box.

        Returns:
            Matrix4 flagged AFFINE.
        """
        out = cls._blank() if dest is None else dest
        _proj.ortho(float(left), float(right), float(bottom), float(top), float(z_near), float(z_far),
                    handedness is Handedness.LEFT, depth_range is DepthRange.ZERO_TO_ONE, out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_ortho_symmetric(cls, width: float, height: float, z_near: float, z_far: float, *,
                             handedness: Handedness = Handedness.RIGHT,
                             depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                             dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Orthographic projection of a box centered on the view axis."""
        half_w = float(width) * 0.5
        half_h = float(height) * 0.5
        return cls.from_ortho(-half_w, half_w, -half_h, half_h, z_near, z_far,
                              handedness=handedness, depth_range=depth_range, dest=dest)

    @classmethod
    def from_ortho_2d(cls, left: float, right: float, bottom: float, top: float, *,
                      handedness: Handedness = Handedness.RIGHT,
                      dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Orthographic projection with ``z_near = -1`` and ``z_far = 1``."""
        return cls.from_ortho(left, right, bottom, top, -1.0, 1.0, handedness=handedness, dest=dest)

    @classmethod
    def from_intrinsic(cls, alpha_x: float, alpha_y: float, gamma: float, u0: float, v0: float,
                       width: float, height: float, z_near: float, z_far: float, *,
                       handedness: Handedness = Handedness.RIGHT,
                       depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                       dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create the perspective projection of a calibrated pinhole camera.

        The result equals :meth:`from_frustum` called with
        :func:`intrinsic_to_frustum` of the same parameters, plus the skew
        term ``m10 = 2 * gamma / width``.

        Args:
            alpha_x: focal length along x, in pixels.
            alpha_y: focal length along y, in pixels.
            gamma: skew between the image axes.
            u0: principal point x, in pixels from the left edge.
            v0: principal point y, in pixels from the bottom edge.
            width: image width in pixels.
            height: image height in pixels.
            z_near: near plane distance.
            z_far: far plane distance.

        Returns:
            Matrix4, flagged PERSPECTIVE only for a centered, unskewed camera.
        """
        left, right, bottom, top = intrinsic_to_frustum(alpha_x, alpha_y, u0, v0, width, height, z_near)
        out = cls.from_frustum(left, right, bottom, top, z_near, z_far,
                               handedness=handedness, depth_range=depth_range, dest=dest)
        out.m[1, 0] = _proj.intrinsic_skew(float(gamma), float(width))
        out._properties = classify(out.m)
        return out

    @classmethod
    def from_look_at(cls, eye: VectorLike, center: VectorLike, up: VectorLike, *,
                     handedness: Handedness = Handedness.RIGHT,
                     dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Create a view matrix for a camera at ``eye`` looking at ``center``.

        Returns:
            Matrix4 flagged AFFINE; its 3x3 is orthonormal, so
            :meth:`invert_look_at` applies.
        """
        out = cls._blank() if dest is None else dest
        _proj.look_at(*_xyz(eye), *_xyz(center), *_xyz(up), handedness is Handedness.LEFT, out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_look_along(cls, direction: VectorLike, up: VectorLike, *,
                        handedness: Handedness = Handedness.RIGHT,
                        dest: Optional["Matrix4"] = None) -> "Matrix4":
        """Rotation-only view matrix looking along ``direction``: :meth:`from_look_at` with the eye at the origin."""
        out = cls._blank() if dest is None else dest
        _proj.look_at(0.0, 0.0, 0.0, *_xyz(direction), *_xyz(up), handedness is Handedness.LEFT, out.m)
        out._properties = Property.AFFINE
        return out

    @classmethod
    def from_rotation_towards(cls, direction: VectorLike, up: VectorLike, *,
                              dest: Optional["Matrix4"] = None) -> "Matrix4":
        """
        Rotation that turns +Z onto ``direction`` and keeps +Y as close to
        ``up`` as possible. The model-space counterpart of :meth:`from_look_along`.
        """
        out = cls._blank() if dest is None else dest
        _proj.look_at(0.0, 0.0, 0.0, *_xyz(direction), *_xyz(up), True, out.m)
        out.m[:3, :3] = out.m[:3, :3].T.copy()
        out._properties = Property.AFFINE
        return out

    #########
    # Property flags
    #

    @property
    def properties(self) -> Property:
        """The cached structural flags."""
        return self._properties

    def determine_properties(self) -> "Matrix4":
        """Replace the cached flags with the ones proven from the elements."""
        self._properties = classify(self.m)
        return self

    def assume_affine(self) -> "Matrix4":
        """
        Flag this matrix AFFINE without checking its last row.

        This is a trust boundary: a false claim makes every later fast path
        return wrong numbers. With ``POLYMATRIX_DEBUG`` set the claim is
        verified and PropertyAssumptionError is raised when it is false.
        """
        self._require(Property.AFFINE, "assume_affine")
        self._properties = Property.AFFINE
        return self

    def assume_perspective(self) -> "Matrix4":
        """
        Flag this matrix PERSPECTIVE without checking its elements. Same
        trust boundary as :meth:`assume_affine`.
        """
        self._require(Property.PERSPECTIVE, "assume_perspective")
        self._properties = Property.PERSPECTIVE
        return self

    def assume_nothing(self) -> "Matrix4":
        """Drop all flags, forcing general algorithms."""
        self._properties = Property.NONE
        return self

    #########
    # Element access
    #

    @property
    def matrix(self) -> ndarray:
        """
        The elements in [row, col] orientation, as a view.

        Writing through the view does not update the cached flags; call
        :meth:`determine_properties` or :meth:`assume_nothing` afterwards.
        """
        return self.m.T

    @matrix.setter
    def matrix(self, value: ndarray) -> None:
        value = np_asarray(value, dtype=np_float64)
        if value.shape != (4, 4):
            raise ValueError(f"Invalid matrix shape: {value.shape}")
        self.m[:, :] = value.T
        self._properties = classify(self.m)

    def get_column(self, column: int) -> ndarray:
        return self.m[column].copy()

    def set_column(self, column: int, values: VectorLike) -> "Matrix4":
        self.m[column] = _vector(values, 4)
        self._properties = after(Operation.RAW, self._properties)
        return self

    def get_row(self, row: int) -> ndarray:
        return self.m[:, row].copy()

    def set_row(self, row: int, values: VectorLike) -> "Matrix4":
        self.m[:, row] = _vector(values, 4)
        self._properties = after(Operation.RAW, self._properties)
        return self

    def set(self, other: "Matrix4") -> "Matrix4":
        """Copy the elements and flags of ``other`` into this matrix."""
        self.m[:, :] = other.m
        self._properties = other._properties
        return self

    def set_values(self, *values: float) -> "Matrix4":
        """Set all 16 elements from column-major values; flags are re-proven."""
        if len(values) != 16:
            raise ValueError(f"Expected 16 values, got {len(values)}")
        self.m[:, :] = np_array(values, dtype=np_float64).reshape(4, 4)
        self._properties = classify(self.m)
        return self

    def set_buffer(self, buffer, offset: int = 0, *, transposed: bool = False, dtype=None) -> "Matrix4":
        """Read 16 elements from ``buffer`` into this matrix; flags are re-proven."""
        self.m[:, :] = buffers.unpack(buffer, 16, offset, transposed=transposed, dtype=dtype)
        self._properties = classify(self.m)
        return self

    def get_buffer(self, buffer=None, offset: int = 0, *, transposed: bool = False, dtype=None):
        """
        Write the 16 elements into ``buffer``, see :func:`polymatrix.buffers.pack`.

        Returns:
            The buffer, or a new 1-D array when ``buffer`` is None.
        """
        return buffers.pack(self.m, buffer, offset, transposed=transposed, dtype=dtype)

    def get_4x3_buffer(self, buffer=None, offset: int = 0, *, transposed: bool = False, dtype=None):
        """Write the 12 elements of the first three rows, column by column."""
        return buffers.pack(self.m[:, :3], buffer, offset, transposed=transposed, dtype=dtype)

    def get_3x3(self) -> ndarray:
        """The upper-left 3x3 in [row, col] orientation."""
        return self.m[:3, :3].T.copy()

    def set_3x3(self, matrix3: ndarray) -> "Matrix4":
        """Overwrite the upper-left 3x3 from a [row, col] (3, 3) array."""
        matrix3 = np_asarray(matrix3, dtype=np_float64)
        if matrix3.shape != (3, 3):
            raise ValueError(f"Invalid matrix shape: {matrix3.shape}")
        self.m[:3, :3] = matrix3.T
        self._properties = after(Operation.LINEAR, self._properties)
        return self

    def to_flat_array(self, *, transposed: bool = False) -> ndarray:
        """The 16 elements, column-major unless ``transposed``."""
        return self.get_buffer(transposed=transposed)

    def to_list(self) -> List[float]:
        """The 16 elements in column-major order."""
        return self.m.reshape(-1).tolist()

    def copy(self) -> "Matrix4":
        return self._wrap(self.m.copy(), self._properties)

    ########
    # Composition
    #

    def mul(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """
        Multiply ``self * right``, so that ``right`` is applied to a vector first.

        The cheapest product valid for the operands' flags is used.

        Args:
            right: the right operand.
            dest: matrix receiving the result; may be ``self`` or ``right``.
            inplace: if True, store the result in ``self``.

        Returns:
            The product.
        """
        out = self._target(dest, inplace)
        left_flags = self._properties
        right_flags = right._properties
        if left_flags & Property.IDENTITY:
            out.m[:, :] = right.m
        elif right_flags & Property.IDENTITY:
            out.m[:, :] = self.m
        elif left_flags & Property.TRANSLATION and right_flags & Property.AFFINE:
            _comp.mul_translation_affine(self.m, right.m, out.m)
        elif left_flags & Property.AFFINE and right_flags & Property.AFFINE:
            _comp.mul_affine(self.m, right.m, out.m)
        elif left_flags & Property.PERSPECTIVE and right_flags & Property.AFFINE:
            _comp.mul_perspective_affine(self.m, right.m, out.m)
        elif right_flags & Property.AFFINE:
            _comp.mul_affine_r(self.m, right.m, out.m)
        else:
            _comp.mul_generic(self.m, right.m, out.m)
        out._properties = compose(left_flags, right_flags)
        return out

    def mul_local(self, left: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Pre-multiply: ``left * self``."""
        return left.mul(self, dest=self if inplace else dest)

    def mul_generic(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Dense product without looking at flags."""
        out = self._target(dest, inplace)
        flags = compose(self._properties, right._properties)
        _comp.mul_generic(self.m, right.m, out.m)
        out._properties = flags
        return out

    def mul_affine_r(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Product assuming ``right`` is affine."""
        right._require(Property.AFFINE, "mul_affine_r")
        out = self._target(dest, inplace)
        flags = compose(self._properties, right._properties | Property.AFFINE)
        _comp.mul_affine_r(self.m, right.m, out.m)
        out._properties = flags
        return out

    def mul_affine(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Product assuming both operands are affine; the result is flagged AFFINE."""
        self._require(Property.AFFINE, "mul_affine")
        right._require(Property.AFFINE, "mul_affine")
        out = self._target(dest, inplace)
        flags = compose(self._properties | Property.AFFINE, right._properties | Property.AFFINE)
        _comp.mul_affine(self.m, right.m, out.m)
        out._properties = flags
        return out

    def mul_local_affine(self, left: "Matrix4", *, dest: Optional["Matrix4"] = None,
                         inplace: bool = False) -> "Matrix4":
        """``left * self`` assuming both are affine."""
        return left.mul_affine(self, dest=self if inplace else dest)

    def mul_translation_affine(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None,
                               inplace: bool = False) -> "Matrix4":
        """Product assuming ``self`` is a pure translation and ``right`` is affine."""
        self._require(Property.TRANSLATION, "mul_translation_affine")
        right._require(Property.AFFINE, "mul_translation_affine")
        out = self._target(dest, inplace)
        flags = compose(self._properties | TRANSLATION_FLAGS, right._properties | Property.AFFINE)
        _comp.mul_translation_affine(self.m, right.m, out.m)
        out._properties = flags
        return out

    def mul_perspective_affine(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None,
                               inplace: bool = False) -> "Matrix4":
        """Product assuming ``self`` is a symmetric perspective and ``right`` is affine."""
        self._require(Property.PERSPECTIVE, "mul_perspective_affine")
        right._require(Property.AFFINE, "mul_perspective_affine")
        out = self._target(dest, inplace)
        _comp.mul_perspective_affine(self.m, right.m, out.m)
        out._properties = Property.NONE
        return out

    def mul_ortho_affine(self, right: "Matrix4", *, dest: Optional["Matrix4"] = None,
                         inplace: bool = False) -> "Matrix4":
        """Product assuming ``self`` is an orthographic projection and ``right`` is affine."""
        self._require_structure(is_ortho(self.m), "mul_ortho_affine", "an orthographic projection")
        right._require(Property.AFFINE, "mul_ortho_affine")
        out = self._target(dest, inplace)
        _comp.mul_ortho_affine(self.m, right.m, out.m)
        out._properties = Property.AFFINE
        return out

    def mul_3x2(self, matrix3x2: ndarray, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """
        Multiply by a 2D affine transform embedded in the xy plane.

        Args:
            matrix3x2: (2, 3) array ``[[m00, m10, m20], [m01, m11, m21]]``
                in [row, col] orientation, the last column being the 2D translation.
        """
        matrix3x2 = np_asarray(matrix3x2, dtype=np_float64)
        if matrix3x2.shape != (2, 3):
            raise ValueError(f"Invalid matrix shape: {matrix3x2.shape}")
        right = Matrix4.identity()
        right.m[0, :2] = matrix3x2[:, 0]
        right.m[1, :2] = matrix3x2[:, 1]
        right.m[3, :2] = matrix3x2[:, 2]
        right._properties = Property.AFFINE
        return self.mul(right, dest=dest, inplace=inplace)

    def mul_component_wise(self, other: "Matrix4", *, dest: Optional["Matrix4"] = None,
                           inplace: bool = False) -> "Matrix4":
        out = self._target(dest, inplace)
        out.m[:, :] = self.m * other.m
        out._properties = Property.NONE
        return out

    def add(self, other: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        out = self._target(dest, inplace)
        out.m[:, :] = self.m + other.m
        out._properties = after(Operation.ELEMENTWISE, self._properties)
        return out

    def sub(self, other: "Matrix4", *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        out = self._target(dest, inplace)
        out.m[:, :] = self.m - other.m
        out._properties = after(Operation.ELEMENTWISE, self._properties)
        return out

    def fma(self, other: "Matrix4", factor: float, *, dest: Optional["Matrix4"] = None,
            inplace: bool = False) -> "Matrix4":
        """``self + other * factor``, element-wise."""
        out = self._target(dest, inplace)
        out.m[:, :] = self.m + other.m * float(factor)
        out._properties = after(Operation.ELEMENTWISE, self._properties)
        return out

    def lerp(self, other: "Matrix4", t: float, *, dest: Optional["Matrix4"] = None,
             inplace: bool = False) -> "Matrix4":
        """Element-wise linear interpolation, ``t = 0`` giving ``self``."""
        out = self._target(dest, inplace)
        out.m[:, :] = self.m + (other.m - self.m) * float(t)
        out._properties = after(Operation.ELEMENTWISE, self._properties)
        return out

    ########
    # Apply methods
    #

    def translate(self, x, y=None, z=None, *, dest: Optional["Matrix4"] = None,
                  inplace: bool = False) -> "Matrix4":
        """
        Apply a translation: ``self * T(x, y, z)``, translating first.

        Args:
            x: x offset, or a 3-vector.
            y: y offset.
            z: z offset.
            dest: matrix receiving the result.
            inplace: if True, modify this matrix in place.

        Returns:
            The translated matrix.
        """
        x, y, z = _xyz(x, y, z)
        out = self._target(dest, inplace)
        flags = after(Operation.TRANSLATE, self._properties)
        _comp.translate(self.m, x, y, z, out.m)
        out._properties = flags
        return out

    def translate_local(self, x, y=None, z=None, *, dest: Optional["Matrix4"] = None,
                        inplace: bool = False) -> "Matrix4":
        """Pre-multiply a translation: ``T(x, y, z) * self``, translating last."""
        x, y, z = _xyz(x, y, z)
        out = self._target(dest, inplace)
        flags = after(Operation.TRANSLATE, self._properties)
        _comp.translate_local(self.m, x, y, z, out.m)
        out._properties = flags
        return out

    def scale(self, x, y=None, z=None, *, dest: Optional["Matrix4"] = None,
              inplace: bool = False) -> "Matrix4":
        """
        Apply a scaling: ``self * S(x, y, z)``. A single scalar scales uniformly.
        """
        x, y, z = _scale_xyz(x, y, z)
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.scale(self.m, x, y, z, out.m)
        out._properties = flags
        return out

    def scale_local(self, x, y=None, z=None, *, dest: Optional["Matrix4"] = None,
                    inplace: bool = False) -> "Matrix4":
        """Pre-multiply a scaling: ``S(x, y, z) * self``."""
        x, y, z = _scale_xyz(x, y, z)
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.scale_local(self.m, x, y, z, out.m)
        out._properties = flags
        return out

    def scale_around(self, factor, origin: VectorLike, *, dest: Optional["Matrix4"] = None,
                     inplace: bool = False) -> "Matrix4":
        """
        Apply a scaling that keeps ``origin`` fixed:
        ``self * T(origin) * S(factor) * T(-origin)``.
        """
        sx, sy, sz = _scale_xyz(factor)
        ox, oy, oz = _xyz(origin)
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.translate(self.m, ox, oy, oz, out.m)
        _comp.scale(out.m, sx, sy, sz, out.m)
        _comp.translate(out.m, -ox, -oy, -oz, out.m)
        out._properties = flags
        return out

    def rotate(self, angle: float, axis: VectorLike, *, dest: Optional["Matrix4"] = None,
               inplace: bool = False) -> "Matrix4":
        """
        Apply a rotation of ``angle`` radians about ``axis``: ``self * R``.
        """
        x, y, z = _xyz(axis)
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.mul_rotation(self.m, _comp.axis_angle_rotation(float(angle), x, y, z), out.m)
        out._properties = flags
        return out

    def rotate_local(self, angle: float, axis: VectorLike, *, dest: Optional["Matrix4"] = None,
                     inplace: bool = False) -> "Matrix4":
        """Pre-multiply a rotation about ``axis``: ``R * self``."""
        x, y, z = _xyz(axis)
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.mul_rotation_local(self.m, _comp.axis_angle_rotation(float(angle), x, y, z), out.m)
        out._properties = flags
        return out

    def rotate_quaternion(self, quaternion: VectorLike, w_last: bool = True, *,
                          dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply the rotation of a unit quaternion: ``self * R(q)``."""
        rotation = _comp.quaternion_rotation(*_quaternion(quaternion, w_last))
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.mul_rotation(self.m, rotation, out.m)
        out._properties = flags
        return out

    def rotate_local_quaternion(self, quaternion: VectorLike, w_last: bool = True, *,
                                dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Pre-multiply the rotation of a unit quaternion: ``R(q) * self``."""
        rotation = _comp.quaternion_rotation(*_quaternion(quaternion, w_last))
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.mul_rotation_local(self.m, rotation, out.m)
        out._properties = flags
        return out

    def _rotate_axes(self, kernels, angles, dest, inplace) -> "Matrix4":
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        source = self.m
        for kernel, angle in zip(kernels, angles):
            kernel(source, float(angle), out.m)
            source = out.m
        out._properties = flags
        return out

    def rotate_x(self, angle: float, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a rotation about the x axis: ``self * Rx(angle)``."""
        return self._rotate_axes((_comp.rotate_x,), (angle,), dest, inplace)

    def rotate_y(self, angle: float, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a rotation about the y axis: ``self * Ry(angle)``."""
        return self._rotate_axes((_comp.rotate_y,), (angle,), dest, inplace)

    def rotate_z(self, angle: float, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a rotation about the z axis: ``self * Rz(angle)``."""
        return self._rotate_axes((_comp.rotate_z,), (angle,), dest, inplace)

    def rotate_local_x(self, angle: float, *, dest: Optional["Matrix4"] = None,
                       inplace: bool = False) -> "Matrix4":
        return self._rotate_axes((_comp.rotate_local_x,), (angle,), dest, inplace)

    def rotate_local_y(self, angle: float, *, dest: Optional["Matrix4"] = None,
                       inplace: bool = False) -> "Matrix4":
        return self._rotate_axes((_comp.rotate_local_y,), (angle,), dest, inplace)

    def rotate_local_z(self, angle: float, *, dest: Optional["Matrix4"] = None,
                       inplace: bool = False) -> "Matrix4":
        return self._rotate_axes((_comp.rotate_local_z,), (angle,), dest, inplace)

    def rotate_xyz(self, x: float, y: float, z: float, *, dest: Optional["Matrix4"] = None,
                   inplace: bool = False) -> "Matrix4":
        """``self * Rx(x) * Ry(y) * Rz(z)``."""
        return self._rotate_axes((_comp.rotate_x, _comp.rotate_y, _comp.rotate_z), (x, y, z), dest, inplace)

    def rotate_zyx(self, z: float, y: float, x: float, *, dest: Optional["Matrix4"] = None,
                   inplace: bool = False) -> "Matrix4":
        """``self * Rz(z) * Ry(y) * Rx(x)``."""
        return self._rotate_axes((_comp.rotate_z, _comp.rotate_y, _comp.rotate_x), (z, y, x), dest, inplace)

    def rotate_yxz(self, y: float, x: float, z: float, *, dest: Optional["Matrix4"] = None,
                   inplace: bool = False) -> "Matrix4":
        """``self * Ry(y) * Rx(x) * Rz(z)``."""
        return self._rotate_axes((_comp.rotate_y, _comp.rotate_x, _comp.rotate_z), (y, x, z), dest, inplace)

    def look_at(self, eye: VectorLike, center: VectorLike, up: VectorLike, *,
                handedness: Handedness = Handedness.RIGHT,
                dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a view transform: ``self * from_look_at(eye, center, up)``."""
        view = Matrix4.from_look_at(eye, center, up, handedness=handedness)
        return self.mul(view, dest=dest, inplace=inplace)

    def look_along(self, direction: VectorLike, up: VectorLike, *,
                   handedness: Handedness = Handedness.RIGHT,
                   dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a rotation-only view transform: ``self * from_look_along(direction, up)``."""
        view = Matrix4.from_look_along(direction, up, handedness=handedness)
        return self.mul(view, dest=dest, inplace=inplace)

    def rotate_towards(self, direction: VectorLike, up: VectorLike, *,
                       dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply ``from_rotation_towards(direction, up)``: ``self * R``."""
        rotation = Matrix4.from_rotation_towards(direction, up)
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _comp.mul_rotation(self.m, rotation.m[:3, :3].copy(), out.m)
        out._properties = flags
        return out

    def rotate_around(self, quaternion: VectorLike, origin: VectorLike, w_last: bool = True, *,
                      dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """
        Apply the rotation of a unit quaternion about the point ``origin``:
        ``self * T(origin) * R(q) * T(-origin)``.
        """
        ox, oy, oz = _xyz(origin)
        out = self.translate(ox, oy, oz, dest=dest, inplace=inplace)
        out.rotate_quaternion(quaternion, w_last, inplace=True)
        return out.translate(-ox, -oy, -oz, inplace=True)

    def perspective(self, fovy: float, aspect: float, z_near: float, z_far: float, *,
                    handedness: Handedness = Handedness.RIGHT,
                    depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                    dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a perspective projection: ``self * from_perspective(...)``."""
        projection = Matrix4.from_perspective(fovy, aspect, z_near, z_far,
                                              handedness=handedness, depth_range=depth_range)
        return self.mul(projection, dest=dest, inplace=inplace)

    def perspective_off_center(self, fovy: float, offset_x: float, offset_y: float, aspect: float,
                               z_near: float, z_far: float, *,
                               handedness: Handedness = Handedness.RIGHT,
                               depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                               dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply ``self * from_perspective_off_center(...)``."""
        projection = Matrix4.from_perspective_off_center(fovy, offset_x, offset_y, aspect, z_near, z_far,
                                                         handedness=handedness, depth_range=depth_range)
        return self.mul(projection, dest=dest, inplace=inplace)

    def frustum(self, left: float, right: float, bottom: float, top: float, z_near: float, z_far: float, *,
                handedness: Handedness = Handedness.RIGHT,
                depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply a frustum projection: ``self * from_frustum(...)``."""
        projection = Matrix4.from_frustum(left, right, bottom, top, z_near, z_far,
                                          handedness=handedness, depth_range=depth_range)
        return self.mul(projection, dest=dest, inplace=inplace)

    def ortho(self, left: float, right: float, bottom: float, top: float, z_near: float, z_far: float, *,
              handedness: Handedness = Handedness.RIGHT,
              depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
              dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Apply an orthographic projection: ``self * from_ortho(...)``."""
        projection = Matrix4.from_ortho(left, right, bottom, top, z_near, z_far,
                                        handedness=handedness, depth_range=depth_range)
        return self.mul(projection, dest=dest, inplace=inplace)

    def ortho_symmetric(self, width: float, height: float, z_near: float, z_far: float, *,
                        handedness: Handedness = Handedness.RIGHT,
                        depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE,
                        dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        projection = Matrix4.from_ortho_symmetric(width, height, z_near, z_far,
                                                  handedness=handedness, depth_range=depth_range)
        return self.mul(projection, dest=dest, inplace=inplace)

    def ortho_2d(self, left: float, right: float, bottom: float, top: float, *,
                 handedness: Handedness = Handedness.RIGHT,
                 dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        projection = Matrix4.from_ortho_2d(left, right, bottom, top, handedness=handedness)
        return self.mul(projection, dest=dest, inplace=inplace)

    ########
    # Inversion
    #

    def determinant(self) -> float:
        if self._properties & Property.AFFINE:
            return float(_inv.determinant_3x3(self.m))
        return float(_inv.determinant(self.m))

    def determinant_3x3(self) -> float:
        """Determinant of the upper-left 3x3."""
        return float(_inv.determinant_3x3(self.m))

    def determinant_affine(self) -> float:
        """Determinant assuming this matrix is affine."""
        self._require(Property.AFFINE, "determinant_affine")
        return float(_inv.determinant_3x3(self.m))

    def invert(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """
        Invert this matrix, choosing the cheapest algorithm its flags allow.

        A singular matrix yields NaN or infinite elements.

        Args:
            dest: matrix receiving the inverse; may be ``self``.
            inplace: if True, modify this matrix in place.

        Returns:
            The inverse.
        """
        flags = self._properties
        if flags & Property.IDENTITY:
            return Matrix4.identity(dest=self._target(dest, inplace))
        if flags & Property.AFFINE:
            return self.invert_affine(dest=dest, inplace=inplace)
        if flags & Property.PERSPECTIVE:
            return self.invert_perspective(dest=dest, inplace=inplace)
        return self.invert_general(dest=dest, inplace=inplace)

    def invert_general(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Cofactor inverse with a single division by the determinant."""
        out = self._target(dest, inplace)
        flags = IDENTITY_FLAGS if self._properties & Property.IDENTITY else Property.NONE
        _inv.invert_general(self.m, out.m)
        out._properties = flags
        return out

    def invert_affine(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Inverse assuming the last row is (0, 0, 0, 1)."""
        self._require(Property.AFFINE, "invert_affine")
        out = self._target(dest, inplace)
        flags = inverted(self._properties | Property.AFFINE)
        _inv.invert_affine(self.m, out.m)
        out._properties = flags
        return out

    def invert_affine_unit_scale(self, *, dest: Optional["Matrix4"] = None,
                                 inplace: bool = False) -> "Matrix4":
        """
        Inverse assuming an affine matrix whose 3x3 is a pure rotation:
        the 3x3 is transposed instead of inverted.
        """
        self._require_structure(satisfies(classify(self.m), Property.AFFINE) and has_orthonormal_3x3(self.m),
                                "invert_affine_unit_scale", "affine with an orthonormal 3x3")
        out = self._target(dest, inplace)
        flags = inverted(self._properties | Property.AFFINE)
        _inv.invert_affine_unit_scale(self.m, out.m)
        out._properties = flags
        return out

    def invert_look_at(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Inverse of a matrix built by :meth:`from_look_at`."""
        return self.invert_affine_unit_scale(dest=dest, inplace=inplace)

    def invert_perspective(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Inverse assuming the symmetric perspective pattern of :meth:`from_perspective`."""
        self._require(Property.PERSPECTIVE, "invert_perspective")
        out = self._target(dest, inplace)
        _inv.invert_perspective(self.m, out.m)
        out._properties = Property.NONE
        return out

    def invert_frustum(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Inverse assuming an unskewed matrix built by :meth:`from_frustum`."""
        self._require_structure(is_frustum(self.m), "invert_frustum", "a frustum projection")
        out = self._target(dest, inplace)
        _inv.invert_frustum(self.m, out.m)
        out._properties = Property.NONE
        return out

    def invert_ortho(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Inverse assuming a matrix built by :meth:`from_ortho`."""
        self._require_structure(is_ortho(self.m), "invert_ortho", "an orthographic projection")
        out = self._target(dest, inplace)
        flags = inverted(self._properties | Property.AFFINE)
        _inv.invert_ortho(self.m, out.m)
        out._properties = flags
        return out

    def invert_perspective_view(self, view: "Matrix4", *, dest: Optional["Matrix4"] = None,
                                inplace: bool = False) -> "Matrix4":
        """
        Inverse of ``self * view`` where ``self`` is a symmetric perspective
        and ``view`` a rotation plus translation, without forming the product.
        """
        self._require(Property.PERSPECTIVE, "invert_perspective_view")
        view._require_structure(satisfies(classify(view.m), Property.AFFINE) and has_orthonormal_3x3(view.m),
                                "invert_perspective_view", "affine with an orthonormal 3x3")
        out = self._target(dest, inplace)
        _inv.invert_perspective_view(self.m, view.m, out.m)
        out._properties = Property.NONE
        return out

    def transpose(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        out = self._target(dest, inplace)
        flags = transposed(self._properties)
        out.m[:, :] = self.m.T.copy()
        out._properties = flags
        return out

    def transpose_3x3(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Transpose the upper-left 3x3 and keep the rest."""
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        block = self.m[:3, :3].T.copy()
        out.m[:, :] = self.m
        out.m[:3, :3] = block
        out._properties = flags
        return out

    ########
    # Decomposition
    #

    def get_translation(self) -> ndarray:
        """The last column's first three elements."""
        return self.m[3, :3].copy()

    def set_translation(self, x, y=None, z=None) -> "Matrix4":
        """Overwrite the translation column, leaving the rest untouched."""
        self.m[3, :3] = _xyz(x, y, z)
        self._properties = after(Operation.TRANSLATE, self._properties)
        return self

    def get_scale(self) -> ndarray:
        """Length of each upper-left column."""
        return _dec.get_scale(self.m)

    def get_unnormalized_rotation(self, w_last: bool = True) -> ndarray:
        """
        Quaternion of the rotation in the upper-left 3x3, tolerating scale.

        Args:
            w_last: if True, return [x, y, z, w], else [w, x, y, z].
        """
        q = _dec.quaternion_from_unnormalized(self.m)
        return q if w_last else q[[3, 0, 1, 2]]

    def get_normalized_rotation(self, w_last: bool = True) -> ndarray:
        """
        Quaternion of the upper-left 3x3, assuming its columns have unit length.
        """
        self._require_structure(has_unit_columns(self.m), "get_normalized_rotation", "free of scale")
        q = _dec.quaternion_from_normalized(self.m)
        return q if w_last else q[[3, 0, 1, 2]]

    def get_euler_angles_zyx(self) -> ndarray:
        """
        Angles (x, y, z) in radians with rotation ``Rz(z) * Ry(y) * Rx(x)``.
        Degenerate (gimbal lock) when ``|m02|`` reaches 1.
        """
        return _dec.euler_angles_zyx(self.m)

    def get_euler_angles_xyz(self) -> ndarray:
        """
        Angles (x, y, z) in radians with rotation ``Rx(x) * Ry(y) * Rz(z)``.
        Degenerate (gimbal lock) when ``|m20|`` reaches 1.
        """
        return _dec.euler_angles_xyz(self.m)

    def normal(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """
        The normal matrix: inverse transpose of the upper-left 3x3, with the
        remaining elements set to identity. A pure translation yields the identity.
        """
        out = self._target(dest, inplace)
        if self._properties & Property.TRANSLATION:
            out.m[:, :] = _EYE4
            out._properties = IDENTITY_FLAGS
            return out
        _dec.normal(self.m, out.m)
        out._properties = Property.AFFINE
        return out

    def normal_3x3(self) -> ndarray:
        """The normal matrix as a (3, 3) array in [row, col] orientation."""
        return self.normal().get_3x3()

    def normalize_3x3(self, *, dest: Optional["Matrix4"] = None, inplace: bool = False) -> "Matrix4":
        """Divide each upper-left column by its length, removing scale."""
        out = self._target(dest, inplace)
        flags = after(Operation.LINEAR, self._properties)
        _dec.normalize_3x3(self.m, out.m)
        out._properties = flags
        return out

    def positive_x(self) -> ndarray:
        """Unit vector this matrix rotates onto +X."""
        return _dec.positive_axis(self.m, 0)

    def positive_y(self) -> ndarray:
        """Unit vector this matrix rotates onto +Y."""
        return _dec.positive_axis(self.m, 1)

    def positive_z(self) -> ndarray:
        """Unit vector this matrix rotates onto +Z."""
        return _dec.positive_axis(self.m, 2)

    def normalized_positive_x(self) -> ndarray:
        """:meth:`positive_x` for an orthonormal 3x3, read from the first row."""
        return self.m[:3, 0].copy()

    def normalized_positive_y(self) -> ndarray:
        return self.m[:3, 1].copy()

    def normalized_positive_z(self) -> ndarray:
        return self.m[:3, 2].copy()

    def origin(self) -> ndarray:
        """
        Camera position of a view or view-projection matrix.

        For a projective matrix this is the center of projection, the point
        mapped to clip (0, 0, z, 0). An affine matrix has no such point and
        yields the point it maps to the origin, as :meth:`origin_affine`.
        """
        inverse = self.invert_general()
        if Property.AFFINE in self._properties or inverse.m[2, 3] == 0.0:
            return inverse.m[3, :3] / inverse.m[3, 3]
        return inverse.m[2, :3] / inverse.m[2, 3]

    def origin_affine(self) -> ndarray:
        """:meth:`origin` assuming an affine matrix."""
        return self.invert_affine().m[3, :3].copy()

    ########
    # Projection queries
    #

    def perspective_near(self, *, depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> float:
        """Near plane distance of a perspective projection."""
        ndc = 0.0 if depth_range is DepthRange.ZERO_TO_ONE else -1.0
        return float(_proj.plane_distance(self.m, ndc))

    def perspective_far(self) -> float:
        """Far plane distance of a perspective projection."""
        return float(_proj.plane_distance(self.m, 1.0))

    def perspective_fov(self) -> float:
        """Vertical field of view of a perspective projection, in radians."""
        return float(_proj.perspective_fov(self.m))

    def perspective_origin(self) -> ndarray:
        """Eye position of a perspective or view-projection matrix."""
        return _fru.perspective_origin(self.m)

    ########
    # Frustum and culling
    #

    def frustum_plane(self, plane: FrustumPlane, *,
                      depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> ndarray:
        """
        One clipping plane (a, b, c, d) with unit normal pointing inside.

        Args:
            plane: which plane.
            depth_range: normalized depth convention of this projection.
        """
        return self.frustum_planes(depth_range=depth_range)[FrustumPlane(plane)]

    def frustum_planes(self, *, depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> ndarray:
        """All six clipping planes as a (6, 4) array in FrustumPlane order."""
        raw = _fru.planes(self.m, depth_range is DepthRange.ZERO_TO_ONE)
        return _fru.normalize_planes(raw)

    def frustum_corner(self, corner: FrustumCorner, *,
                       depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> ndarray:
        """World-space position of one frustum corner."""
        raw = _fru.planes(self.m, depth_range is DepthRange.ZERO_TO_ONE)
        x_plane, y_plane, z_plane = CORNER_PLANES[FrustumCorner(corner)]
        return _fru.intersect_planes(raw[x_plane], raw[y_plane], raw[z_plane])

    def frustum_corners(self, *, depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> ndarray:
        """All eight corners as an (8, 3) array in FrustumCorner order."""
        return _fru.corners(self.m, depth_range is DepthRange.ZERO_TO_ONE)

    def frustum_aabb(self, *, depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> Tuple[ndarray, ndarray]:
        """(minimum, maximum) of the axis-aligned box enclosing the frustum."""
        corners = self.frustum_corners(depth_range=depth_range)
        return corners.min(axis=0), corners.max(axis=0)

    def frustum_ray_dir(self, x: float, y: float) -> ndarray:
        """
        Unit direction of the ray through (x, y) of the frustum, where
        (0, 0) is its bottom-left and (1, 1) its top-right edge.
        """
        return _fru.ray_dir(self.m, float(x), float(y))

    def test_point(self, point: VectorLike, *,
                   depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> bool:
        """True if ``point`` is on the inside of all six planes."""
        x, y, z = _xyz(point)
        return bool(_fru.point_inside(_fru.planes(self.m, depth_range is DepthRange.ZERO_TO_ONE), x, y, z))

    def test_sphere(self, center: VectorLike, radius: float, *,
                    depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> bool:
        """
        True if the sphere may be visible. Conservative: spheres near a
        frustum edge can be reported although they are outside.
        """
        x, y, z = _xyz(center)
        return bool(_fru.sphere_inside(self.frustum_planes(depth_range=depth_range), x, y, z, float(radius)))

    def test_aab(self, minimum: VectorLike, maximum: VectorLike, *,
                 depth_range: DepthRange = DepthRange.NEGATIVE_ONE_TO_ONE) -> bool:
        """
        True if the axis-aligned box may be visible. Conservative like
        :meth:`test_sphere`.
        """
        lo = _xyz(minimum)
        hi = _xyz(maximum)
        raw = _fru.planes(self.m, depth_range is DepthRange.ZERO_TO_ONE)
        return bool(_fru.aab_inside(raw, *lo, *hi))

    ########
    # Vector transformation
    #

    def transform(self, v: VectorLike) -> ndarray:
        """``M @ v`` for a 4-vector."""
        x, y, z, w = _vector(v, 4)
        return _xf.transform(self.m, x, y, z, w)

    def transform_position(self, point: VectorLike) -> ndarray:
        """Transform a 3D point (w = 1), ignoring the last row."""
        return _xf.transform_position(self.m, *_xyz(point))

    def transform_direction(self, direction: VectorLike) -> ndarray:
        """Transform a 3D direction (w = 0)."""
        return _xf.transform_direction(self.m, *_xyz(direction))

    def transform_project(self, v: VectorLike) -> ndarray:
        """
        Transform and divide by the resulting w.

        Args:
            v: a 3D point (w = 1 is implied) or a 4-vector.

        Returns:
            A vector of the same length as ``v``.
        """
        v = np_asarray(v, dtype=np_float64)
        if v.shape == (3,):
            return _xf.transform_project(self.m, v[0], v[1], v[2], 1.0)[:3]
        x, y, z, w = _vector(v, 4)
        return _xf.transform_project(self.m, x, y, z, w)

    def project(self, position: VectorLike, viewport: VectorLike) -> ndarray:
        """
        Window coordinates of ``position``.

        Args:
            position: 3D point.
            viewport: (x, y, width, height).

        Returns:
            (window x, window y, depth in [0, 1]).
        """
        return _xf.project(self.m, *_xyz(position), _viewport(viewport))

    def unproject(self, window: VectorLike, viewport: VectorLike) -> ndarray:
        """Point whose window coordinates are ``window`` = (x, y, depth)."""
        inverse = self.invert()
        return _xf.unproject(inverse.m, *_xyz(window), _viewport(viewport))

    def unproject_ray(self, window: VectorLike, viewport: VectorLike) -> Tuple[ndarray, ndarray]:
        """
        Picking ray through the window position (x, y).

        Returns:
            (origin on the near plane, direction reaching the far plane).
        """
        win = np_asarray(window, dtype=np_float64)
        inverse = self.invert()
        return _xf.unproject_ray(inverse.m, float(win[0]), float(win[1]), _viewport(viewport))

    #########
    # Dunder methods
    #

    def __matmul__(self, other: Union["Matrix4", ndarray]) -> Union["Matrix4", ndarray]:
        """
        ``self @ other``.

        A Matrix4 operand is composed (``other`` applied first). A 3-vector
        is transformed as a point, a 4-vector as a homogeneous vector, and
        any other array is multiplied with ``matrix``.
        """
        if isinstance(other, Matrix4):
            return self.mul(other)
        if isinstance(other, (ndarray, list, tuple)):
            other = np_asarray(other, dtype=np_float64)
            if other.shape == (3,):
                return self.transform_position(other)
            if other.shape == (4,):
                return self.transform(other)
            return self.matrix @ other
        return NotImplemented

    def __mul__(self, other: Union["Matrix4", ndarray]) -> Union["Matrix4", ndarray]:
        """
        Alias for the @ operator.
        """
        return self.__matmul__(other)

    def __add__(self, other: "Matrix4") -> "Matrix4":
        if not isinstance(other, Matrix4):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: "Matrix4") -> "Matrix4":
        if not isinstance(other, Matrix4):
            return NotImplemented
        return self.sub(other)

    def __eq__(self, other: object) -> bool:
        """
        True if `other` is a Matrix4 with elements equal within a small tolerance.
        """
        if not isinstance(other, Matrix4):
            return NotImplemented
        return np_allclose(self.m, other.m)

    __hash__ = None

    def equals(self, other: "Matrix4", delta: float = 0.0) -> bool:
        """True if every element differs from ``other``'s by at most ``delta``."""
        return bool((abs(self.m - other.m) <= delta).all())

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        mat = np_array2string(self.matrix, precision=6, separator=', ')
        return f"{cls}(matrix=\n{mat}\n)"

    def __copy__(self) -> "Matrix4":
        return self.copy()

    def __deepcopy__(self, memo) -> "Matrix4":
        # the element array holds plain floats, copying it is already a deep copy
        return self.copy()

    def __reduce__(self):
        """
        Pickle support: flags are proven again when loading.
        """
        return (self.__class__, (self.matrix.copy(),))


def _element(col: int, row: int) -> property:
    def getter(self: Matrix4) -> float:
        return float(self.m[col, row])

    def setter(self: Matrix4, value: float) -> None:
        self.m[col, row] = value
        self._properties = after(Operation.RAW, self._properties)

    return property(getter, setter, doc=f"Element in column {col}, row {row}.")


for _col in range(4):
    for _row in range(4):
        setattr(Matrix4, f"m{_col}{_row}", _element(_col, _row))
del _col, _row


def intrinsic_to_frustum(alpha_x: float, alpha_y: float, u0: float, v0: float,
                         width: float, height: float, z_near: float) -> Tuple[float, float, float, float]:
    """
    Near-plane bounds (left, right, bottom, top) of a pinhole camera, for
    :meth:`Matrix4.from_frustum`.
    """
    return _proj.intrinsic_frustum(float(alpha_x), float(alpha_y), float(u0), float(v0),
                                   float(width), float(height), float(z_near))
