# errors.py


class PolymatrixError(Exception):
    """Base class of the errors raised by polymatrix."""


class PropertyAssumptionError(PolymatrixError, AssertionError):
    """
    A fast path or an ``assume_*`` call was used on a matrix that does not
    have the required structure. Only raised when ``POLYMATRIX_DEBUG`` is set;
    otherwise such calls silently produce wrong numbers.
    """


class BufferSizeError(PolymatrixError, ValueError):
    """The target or source buffer is too small for the requested region."""
