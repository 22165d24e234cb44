# buffers.py
"""
Packing of matrix elements into flat buffers and back.

Elements are written column by column (``m00, m01, m02, m03, m10, ...``),
or row by row with ``transposed=True`` for consumers that expect row-major
data. ``offset`` counts elements, not bytes. Buffers may be 1-D numpy
arrays, objects supporting the buffer protocol (``bytearray``,
``memoryview``, ``bytes`` for reading) interpreted with ``dtype``, or
lists. Passing ``dtype=numpy.float32`` narrows the values.

Supported layouts (columns x rows):

    16  Matrix4     4 x 4
    12  Matrix4x3   4 x 3 (last row dropped)
     9  Matrix3     3 x 3
     6  Matrix3x2   3 x 2
"""

from typing import Tuple

import numpy as np
from numpy import float64 as np_float64
from numpy import ndarray

from polymatrix.errors import BufferSizeError

LAYOUTS = {
    16: (4, 4),
    12: (4, 3),
    9: (3, 3),
    6: (3, 2),
}


def _layout(count: int) -> Tuple[int, int]:
    try:
        return LAYOUTS[count]
    except KeyError:
        raise ValueError(f"Unsupported element count: {count}") from None


def _view(buffer, dtype) -> ndarray:
    if isinstance(buffer, ndarray):
        if buffer.ndim != 1:
            raise ValueError(f"Buffer must be 1-D, got shape {buffer.shape}")
        return buffer
    return np.frombuffer(buffer, dtype=np_float64 if dtype is None else dtype)


def _check_size(available: int, offset: int, count: int) -> None:
    if offset < 0 or offset + count > available:
        raise BufferSizeError(
            f"Need {count} elements at offset {offset}, buffer holds {available}")


def pack(block: ndarray, buffer=None, offset: int = 0, *, transposed: bool = False, dtype=None):
    """
    Write ``block`` (indexed [col, row]) into ``buffer``.

    Args:
        block: (columns, rows) array, e.g. ``Matrix4.m`` or ``Matrix4.m[:, :3]``.
        buffer: destination; a new 1-D array of ``dtype`` when None.
        offset: index of the first element written.
        transposed: write row by row instead of column by column.
        dtype: element type for new arrays and raw byte buffers.

    Returns:
        The buffer written to.
    """
    values = block.T if transposed else block
    flat = np.ascontiguousarray(values).reshape(-1)
    count = flat.size
    if buffer is None:
        return flat.astype(np_float64 if dtype is None else dtype)
    if isinstance(buffer, list):
        _check_size(len(buffer), offset, count)
        buffer[offset:offset + count] = flat.tolist()
        return buffer
    view = _view(buffer, dtype)
    _check_size(view.size, offset, count)
    view[offset:offset + count] = flat
    return buffer


def unpack(buffer, count: int, offset: int = 0, *, transposed: bool = False, dtype=None) -> ndarray:
    """
    Read ``count`` elements starting at ``offset``.

    Returns:
        float64 array of shape (columns, rows) indexed [col, row].
    """
    columns, rows = _layout(count)
    if isinstance(buffer, (list, tuple)):
        _check_size(len(buffer), offset, count)
        flat = np.array(buffer[offset:offset + count], dtype=np_float64)
    else:
        view = _view(buffer, dtype)
        _check_size(view.size, offset, count)
        flat = np.array(view[offset:offset + count], dtype=np_float64)
    if transposed:
        return np.ascontiguousarray(flat.reshape(rows, columns).T)
    return flat.reshape(columns, rows)


def pack_matrix3(matrix: ndarray, buffer=None, offset: int = 0, *, transposed: bool = False, dtype=None):
    """Pack a (3, 3) matrix given in [row, col] orientation."""
    matrix = np.asarray(matrix, dtype=np_float64)
    if matrix.shape != (3, 3):
        raise ValueError(f"Invalid matrix shape: {matrix.shape}")
    return pack(matrix.T, buffer, offset, transposed=transposed, dtype=dtype)


def pack_matrix3x2(matrix: ndarray, buffer=None, offset: int = 0, *, transposed: bool = False, dtype=None):
    """Pack a 2D affine (2, 3) matrix given in [row, col] orientation."""
    matrix = np.asarray(matrix, dtype=np_float64)
    if matrix.shape != (2, 3):
        raise ValueError(f"Invalid matrix shape: {matrix.shape}")
    return pack(matrix.T, buffer, offset, transposed=transposed, dtype=dtype)


def unpack_matrix3(buffer, offset: int = 0, *, transposed: bool = False, dtype=None) -> ndarray:
    """Read a (3, 3) matrix and return it in [row, col] orientation."""
    return unpack(buffer, 9, offset, transposed=transposed, dtype=dtype).T.copy()


def unpack_matrix3x2(buffer, offset: int = 0, *, transposed: bool = False, dtype=None) -> ndarray:
    """Read a 2D affine matrix and return it as (2, 3) in [row, col] orientation."""
    return unpack(buffer, 6, offset, transposed=transposed, dtype=dtype).T.copy()

