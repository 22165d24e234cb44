# options.py
"""
Process-wide switches, read once from the environment at import time.

A flag is enabled when its variable is present and empty, or set to one of
``1``, ``true``, ``yes`` or ``on`` (case-insensitive).

POLYMATRIX_DEBUG
    Verify the structural precondition of every specialized fast path
    (``mul_affine``, ``invert_perspective``, ``assume_affine`` ...) and raise
    :class:`polymatrix.errors.PropertyAssumptionError` when it does not hold.
POLYMATRIX_FASTMATH
    Compile the composition, inversion and decomposition kernels with
    ``fastmath=True``. Projection and culling kernels are never compiled
    with it since they rely on infinities.
POLYMATRIX_JIT_CACHE
    Cache compiled kernels on disk (enabled unless set to a false value).
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

_TRUE = ("", "1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.warning("Ignoring unrecognized value %r for %s", value, name)
    return default


@dataclass(frozen=True)
class Options:
    debug: bool = False
    fastmath: bool = False
    jit_cache: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Options":
        """
        Build the options from ``env`` (defaults to ``os.environ``).
        """
        if env is None:
            env = os.environ
        options = cls(
            debug=_flag(env, "POLYMATRIX_DEBUG", False),
            fastmath=_flag(env, "POLYMATRIX_FASTMATH", False),
            jit_cache=_flag(env, "POLYMATRIX_JIT_CACHE", True),
        )
        logger.debug("Loaded %s", options)
        return options


OPTIONS = Options.from_env()


def jit_options(exact: bool = False) -> dict:
    """
    Keyword arguments for ``numba.njit``.

    Args:
        exact: if True, never enable fastmath (kernels that test for infinities).

    Returns:
        dict of njit keyword arguments.
    """
    return dict(
        cache=OPTIONS.jit_cache,
        fastmath=OPTIONS.fastmath and not exact,
        error_model="numpy",
    )
